"""
Bookmark analysis through the external analysis service.

One orchestrator covers both modes:

- single: one call that returns the structured JSON directly.
- reflective: ideation -> critique -> synthesis, where each stage's prompt embeds
  the text produced by the stages before it and only the synthesis output is
  parsed.

Whatever goes wrong (service down, timeout, non-2xx, no or broken JSON) the
caller receives fallback metadata built from the input alone. Enrichment is
best effort and never blocks ingestion.
"""
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any

from core.config import AnalysisMode, Settings
from schemas.bookmark import BookmarkIngest
from services import analysis_prompts
from services.analysis_client import AnalysisServiceClient, AnalysisServiceError
from services.response_extractor import ExtractionError, extract_structured_content

logger = logging.getLogger(__name__)

FALLBACK_CATEGORY = "Uncategorized"
FALLBACK_SUMMARY = "Automatic analysis failed."


@dataclass
class ThoughtTrace:
    """Intermediate texts of a reflective analysis, kept for auditing."""

    ideation: str
    critique: str


@dataclass
class AnalysisMetadata:
    """
    Structured result of analysing one bookmark.

    Values parsed from the model are stored as produced (no type coercion), so a
    field may hold an unexpected type; consumers normalize what they use.
    `confidence == 0.0` together with `degraded` marks fallback output.
    """

    title: str
    category: str
    status: str
    tags: list[str]
    summary: str
    group: str | None = None
    content_value: str | None = None
    key_points: list[str] | None = None
    suggested_folder: str | None = None
    sentiment: str | None = None
    confidence: float | None = None
    thought_trace: ThoughtTrace | None = None
    degraded: bool = False

    @classmethod
    def from_payload(
        cls,
        payload: dict[str, Any],
        raw: BookmarkIngest,
        default_status: str,
    ) -> "AnalysisMetadata":
        """Build metadata from an extracted JSON object, defaulting absent or null fields."""
        title = payload.get("title")
        category = payload.get("category")
        status = payload.get("status")
        tags = payload.get("tags")
        summary = payload.get("summary")
        return cls(
            title=title if title is not None else raw.title or raw.url or "",
            category=category if category is not None else FALLBACK_CATEGORY,
            status=status if status is not None else default_status,
            tags=tags if tags is not None else [],
            summary=summary if summary is not None else "",
            group=payload.get("group"),
            content_value=payload.get("contentValue"),
            key_points=payload.get("keyPoints"),
            suggested_folder=payload.get("suggestedFolder"),
            sentiment=payload.get("sentiment"),
            confidence=payload.get("confidence"),
        )

    @classmethod
    def fallback(cls, raw: BookmarkIngest, default_status: str) -> "AnalysisMetadata":
        """Metadata derived from the input alone, used whenever analysis fails."""
        return cls(
            title=raw.title or raw.url or "",
            category=FALLBACK_CATEGORY,
            status=default_status,
            tags=[],
            summary=FALLBACK_SUMMARY,
            confidence=0.0,
            degraded=True,
        )

    def confidence_value(self) -> float | None:
        """Confidence as a float in [0, 1], or None if the model gave something else."""
        value = self.confidence
        if isinstance(value, bool) or not isinstance(value, int | float):
            return None
        return min(max(float(value), 0.0), 1.0)

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the same field names the analysis service produces."""
        data = {
            "title": self.title,
            "category": self.category,
            "group": self.group,
            "status": self.status,
            "contentValue": self.content_value,
            "tags": self.tags,
            "summary": self.summary,
            "keyPoints": self.key_points,
            "suggestedFolder": self.suggested_folder,
            "sentiment": self.sentiment,
            "confidence": self.confidence,
            "degraded": self.degraded,
        }
        if self.thought_trace is not None:
            data["thoughtTrace"] = asdict(self.thought_trace)
        return data


@dataclass(frozen=True)
class StageTemperatures:
    """Sampling temperature for each kind of call."""

    single: float = 0.3
    ideation: float = 0.8
    critique: float = 0.5
    synthesis: float = 0.2


class AnalysisOrchestrator:
    """Runs single-pass or reflective analysis and always returns metadata."""

    def __init__(
        self,
        client: AnalysisServiceClient,
        mode: AnalysisMode = AnalysisMode.SINGLE,
        stage_timeout: float = 30.0,
        default_status: str = "To read",
        temperatures: StageTemperatures | None = None,
    ) -> None:
        self.client = client
        self.mode = mode
        self.stage_timeout = stage_timeout
        self.default_status = default_status
        self.temperatures = temperatures or StageTemperatures()

    @classmethod
    def from_settings(
        cls,
        client: AnalysisServiceClient,
        settings: Settings,
    ) -> "AnalysisOrchestrator":
        """Create an orchestrator configured from application settings."""
        return cls(
            client,
            mode=settings.analysis_mode,
            stage_timeout=settings.analysis_stage_timeout,
            default_status=settings.default_status,
            temperatures=StageTemperatures(
                single=settings.analysis_temperature_single,
                ideation=settings.analysis_temperature_ideation,
                critique=settings.analysis_temperature_critique,
                synthesis=settings.analysis_temperature_synthesis,
            ),
        )

    async def analyze(self, raw: BookmarkIngest) -> AnalysisMetadata:
        """
        Analyze a bookmark.

        Never raises for service or extraction failures; those produce
        `AnalysisMetadata.fallback`. Cancellation is not intercepted, so an
        abandoned request stops at the pending call.

        Args:
            raw: The bookmark input (URL already normalized by the caller, if desired).

        Returns:
            Enriched metadata, or fallback metadata if any stage failed.
        """
        bookmark_json = analysis_prompts.serialize_input(
            url=raw.url or "",
            title=raw.title,
            source_text=raw.source_text,
            source=str(raw.source),
            tags=raw.tags,
        )
        try:
            if self.mode == AnalysisMode.REFLECTIVE:
                return await self._analyze_reflective(raw, bookmark_json)
            return await self._analyze_single(raw, bookmark_json)
        except (AnalysisServiceError, ExtractionError) as e:
            logger.warning(
                "Analysis of %s failed (%s), using fallback metadata: %s",
                raw.url, type(e).__name__, e,
            )
        except Exception:
            logger.exception("Unexpected error analysing %s, using fallback metadata", raw.url)
        return AnalysisMetadata.fallback(raw, self.default_status)

    async def _analyze_single(self, raw: BookmarkIngest, bookmark_json: str) -> AnalysisMetadata:
        text = await self._call(
            "single",
            analysis_prompts.single_pass_messages(bookmark_json),
            self.temperatures.single,
        )
        payload = extract_structured_content(text)
        return AnalysisMetadata.from_payload(payload, raw, self.default_status)

    async def _analyze_reflective(
        self,
        raw: BookmarkIngest,
        bookmark_json: str,
    ) -> AnalysisMetadata:
        # Any failure below aborts the chain; a partial chain is never synthesized
        ideation = await self._call(
            "ideation",
            analysis_prompts.ideation_messages(bookmark_json),
            self.temperatures.ideation,
        )
        critique = await self._call(
            "critique",
            analysis_prompts.critique_messages(bookmark_json, ideation),
            self.temperatures.critique,
        )
        synthesis = await self._call(
            "synthesis",
            analysis_prompts.synthesis_messages(bookmark_json, ideation, critique),
            self.temperatures.synthesis,
        )
        payload = extract_structured_content(synthesis)
        metadata = AnalysisMetadata.from_payload(payload, raw, self.default_status)
        metadata.thought_trace = ThoughtTrace(ideation=ideation, critique=critique)
        return metadata

    async def _call(
        self,
        stage: str,
        messages: list[dict[str, str]],
        temperature: float,
    ) -> str:
        """Issue one stage call under its own timeout."""
        started = time.perf_counter()
        text = await self.client.complete(
            messages,
            temperature=temperature,
            timeout=self.stage_timeout,
        )
        logger.debug(
            "Analysis stage %s finished in %.2fs (%d chars)",
            stage, time.perf_counter() - started, len(text),
        )
        return text
