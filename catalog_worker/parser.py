"""Parse free-text vision model replies into structured, reconciled metadata.

The model is asked to answer in a line-oriented grammar::

    OBJECTS: <comma-separated list>
    SCENE: <comma-separated list>
    DESCRIPTION: <free text, may span lines, runs to end of input>

Any marker may be missing. Parsing never raises; absent sections fall back to
empty lists and the whole reply becomes the description.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable

from catalog_worker.config import ENTITY_CONFIDENCE, TITLE_TAG_MIN_LENGTH
from catalog_worker.schemas.image import (
    AnalysisContext,
    AnalysisResult,
    ExtractedEntity,
    LlmAnalysis,
    RawResults,
    TechnicalDetails,
)

logger = logging.getLogger(__name__)

_OBJECTS_RE = re.compile(r"OBJECTS:[ \t]*([^\n]+)", re.IGNORECASE)
_SCENE_RE = re.compile(r"SCENE:[ \t]*([^\n]+)", re.IGNORECASE)
_DESCRIPTION_RE = re.compile(r"DESCRIPTION:\s*(.+)", re.IGNORECASE | re.DOTALL)

AI_ANALYSIS_SEPARATOR = "\n\nAI Analysis: "


@dataclass(frozen=True)
class ParsedSections:
    """Grammar sections found in a reply; ``None`` means the marker was absent."""

    objects: list[str] | None = None
    scenes: list[str] | None = None
    description: str | None = None


def unique(values: Iterable[str]) -> list[str]:
    """Order-preserving, case-sensitive deduplication."""
    return list(dict.fromkeys(values))


def _split_labels(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


def extract_sections(text: str) -> ParsedSections:
    """Extract the OBJECTS/SCENE/DESCRIPTION sections from a reply."""
    objects_match = _OBJECTS_RE.search(text)
    scene_match = _SCENE_RE.search(text)
    description_match = _DESCRIPTION_RE.search(text)

    description = None
    if description_match:
        description = description_match.group(1).strip() or None

    return ParsedSections(
        objects=_split_labels(objects_match.group(1)) if objects_match else None,
        scenes=_split_labels(scene_match.group(1)) if scene_match else None,
        description=description,
    )


def title_words(title: str, min_length: int = TITLE_TAG_MIN_LENGTH) -> list[str]:
    """Lower-cased whitespace-separated title words of at least ``min_length`` chars."""
    return [w for w in title.lower().split() if len(w) >= min_length]


def _technical_from_context(context: AnalysisContext) -> TechnicalDetails:
    if context.technical is None:
        return TechnicalDetails()
    return context.technical.model_copy(deep=True)


def parse_analysis_response(
    response: str, context: AnalysisContext | None = None
) -> AnalysisResult:
    """Parse a model reply and reconcile it with the known context.

    Context values always come first in the unioned lists, and a user-authored
    description is kept with the model's description appended after it.
    """
    context = context or AnalysisContext()
    response = response or ""
    sections = extract_sections(response)

    if sections.objects is None and sections.scenes is None and sections.description is None:
        logger.debug(
            f"No grammar markers in model reply ({len(response)} chars); "
            "using whole reply as description"
        )
    else:
        missing = [
            name
            for name, value in (
                ("OBJECTS", sections.objects),
                ("SCENE", sections.scenes),
                ("DESCRIPTION", sections.description),
            )
            if value is None
        ]
        if missing:
            logger.debug(f"Model reply missing sections: {', '.join(missing)}")

    objects = [
        ExtractedEntity(label=label, confidence=ENTITY_CONFIDENCE)
        for label in sections.objects or []
    ]
    scenes = [
        ExtractedEntity(label=label, confidence=ENTITY_CONFIDENCE)
        for label in sections.scenes or []
    ]
    description = sections.description if sections.description is not None else response

    tags = unique(entity.label.lower() for entity in objects + scenes)

    final_objects = unique([*context.objects, *(o.label for o in objects)])
    final_scenes = unique([*context.scenes, *(s.label for s in scenes)])
    final_tags = unique([*title_words(context.title), *context.tags, *tags])

    final_description = description
    if context.description:
        final_description = f"{context.description}{AI_ANALYSIS_SEPARATOR}{description}"

    result = AnalysisResult(
        objects=final_objects,
        scenes=final_scenes,
        tags=final_tags,
        description=final_description,
        technical_details=_technical_from_context(context),
        raw_results=RawResults(
            llm_analysis=LlmAnalysis(
                objects=objects,
                scenes=scenes,
                tags=tags,
                description=description,
            )
        ),
    )
    logger.debug(
        f"Parsed reply: {len(result.objects)} objects, {len(result.scenes)} scenes, "
        f"{len(result.tags)} tags, description {len(result.description)} chars"
    )
    return result


def create_error_response(
    error: BaseException | str, context: AnalysisContext | None = None
) -> AnalysisResult:
    """Build the empty analysis envelope returned when analysis fails."""
    context = context or AnalysisContext()
    technical = context.technical or TechnicalDetails()
    return AnalysisResult(
        technical_details=TechnicalDetails(
            orientation=technical.orientation,
            quality=technical.quality,
            lighting=technical.lighting,
        ),
        error=str(error) or type(error).__name__,
    )
