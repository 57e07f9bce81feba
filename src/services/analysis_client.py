"""HTTP client for the chat-completions style analysis service."""
import asyncio
import logging
from typing import Any

import httpx

from core.config import Settings

logger = logging.getLogger(__name__)

USER_AGENT = "bookmark-enrichment/0.1"


class AnalysisServiceError(Exception):
    """Base class for failed calls to the analysis service."""

    pass


class ServiceUnreachableError(AnalysisServiceError):
    """Raised when the analysis service cannot be reached (DNS, refused connection, ...)."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Analysis service at '{url}' is unreachable: {reason}")


class ServiceTimeoutError(AnalysisServiceError):
    """Raised when a single analysis call exceeds its time budget."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Analysis service did not answer within {timeout:g}s")


class ServiceErrorResponseError(AnalysisServiceError):
    """Raised on a non-2xx status or a body without choices[0].message.content."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Analysis service returned HTTP {status_code}: {detail}")


class AnalysisServiceClient:
    """
    Sends one chat-completion request per call.

    Owns no global state: an instance is built from settings when the app starts
    and closed when it stops. Failed calls are not retried.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        url: str,
        model: str,
        max_tokens: int,
        api_key: str | None = None,
    ) -> None:
        self._http = http_client
        self.url = url
        self.model = model
        self.max_tokens = max_tokens
        self._api_key = api_key

    async def complete(
        self,
        messages: list[dict[str, str]],
        temperature: float,
        timeout: float,  # noqa: ASYNC109
    ) -> str:
        """
        Request a completion and return the generated text.

        Args:
            messages: OpenAI-style message list ({"role", "content"} dicts).
            temperature: Sampling temperature for this call.
            timeout: Seconds allowed for the whole request/response cycle.

        Returns:
            The content of the first choice (empty string if the service sent null).

        Raises:
            ServiceTimeoutError: If the call exceeded `timeout`.
            ServiceUnreachableError: If the request could not be sent.
            ServiceErrorResponseError: On non-2xx status or an unusable body.
        """
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": self.max_tokens,
        }
        headers = {"User-Agent": USER_AGENT}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        try:
            async with asyncio.timeout(timeout):
                response = await self._http.post(self.url, json=payload, headers=headers)
        except TimeoutError as e:
            raise ServiceTimeoutError(timeout) from e
        except httpx.TimeoutException as e:
            raise ServiceTimeoutError(timeout) from e
        except httpx.RequestError as e:
            raise ServiceUnreachableError(self.url, str(e) or type(e).__name__) from e

        if not response.is_success:
            raise ServiceErrorResponseError(response.status_code, response.text[:200])

        return _content_from_body(response)

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._http.aclose()


def _content_from_body(response: httpx.Response) -> str:
    """Pull choices[0].message.content out of a completion response."""
    try:
        body: Any = response.json()
    except ValueError as e:
        raise ServiceErrorResponseError(response.status_code, "response body is not JSON") from e

    try:
        content = body["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise ServiceErrorResponseError(
            response.status_code, "response body has no choices[0].message.content",
        ) from e

    if content is None:
        return ""
    if not isinstance(content, str):
        raise ServiceErrorResponseError(response.status_code, "message content is not text")
    return content


def build_analysis_client(settings: Settings) -> AnalysisServiceClient:
    """Create a client (and its connection pool) from application settings."""
    http_client = httpx.AsyncClient(
        # Per-call budgets are enforced in complete(); this only caps a hung connect.
        timeout=httpx.Timeout(settings.analysis_stage_timeout),
    )
    logger.info(
        "Analysis service configured: url=%s model=%s mode=%s",
        settings.analysis_api_url,
        settings.analysis_model,
        settings.analysis_mode,
    )
    return AnalysisServiceClient(
        http_client,
        url=settings.analysis_api_url,
        model=settings.analysis_model,
        max_tokens=settings.analysis_max_tokens,
        api_key=settings.analysis_api_key,
    )
