"""Prompt construction for the vision model."""

from typing import Any

from catalog_worker.schemas.image import PROMPT, AnalysisContext


def build_analysis_prompt(context: AnalysisContext | None = None) -> str:
    """Render the instruction text, quoting any known title and description."""
    context = context or AnalysisContext()
    known = ""
    if context.title:
        known += f'The image is titled "{context.title}". '
    if context.description:
        known += f'Current description: "{context.description}". '
    return PROMPT.format(context=known)


def build_analysis_messages(
    image_url: str, context: AnalysisContext | None = None
) -> list[dict[str, Any]]:
    """Build the single-message chat conversation: image part first, then instructions."""
    return [
        {
            "role": "user",
            "content": [
                {"type": "image_url", "image_url": {"url": image_url}},
                {"type": "text", "text": build_analysis_prompt(context)},
            ],
        }
    ]
