"""Image analysis and catalog metadata schemas."""

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

Orientation = Literal["landscape", "portrait"]
Quality = Literal["low", "medium", "high"]

DEFAULT_ORIENTATION = "landscape"
DEFAULT_QUALITY = "high"
DEFAULT_LIGHTING = "natural"


class ExtractedEntity(BaseModel):
    """An object or scene label pulled out of the model reply."""

    label: str = Field(min_length=1)
    confidence: float = Field(ge=0.0, le=1.0)

    @field_validator("label", mode="before")
    @classmethod
    def strip_label(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v


class TechnicalDetails(BaseModel):
    """Photographic settings. Only ever copied from user context, never inferred."""

    model_config = {"extra": "ignore"}

    orientation: Orientation = DEFAULT_ORIENTATION
    quality: Quality = DEFAULT_QUALITY
    lighting: str = DEFAULT_LIGHTING
    composition: list[str] = Field(default_factory=list)

    @field_validator("orientation", mode="before")
    @classmethod
    def default_orientation(cls, v: Any) -> str:
        return v if v in ("landscape", "portrait") else DEFAULT_ORIENTATION

    @field_validator("quality", mode="before")
    @classmethod
    def default_quality(cls, v: Any) -> str:
        return v if v in ("low", "medium", "high") else DEFAULT_QUALITY

    @field_validator("lighting", mode="before")
    @classmethod
    def default_lighting(cls, v: Any) -> str:
        return v if isinstance(v, str) and v else DEFAULT_LIGHTING

    @field_validator("composition", mode="before")
    @classmethod
    def composition_list(cls, v: Any) -> list:
        return v if isinstance(v, list) else []


class LlmAnalysis(BaseModel):
    """The model reply as parsed, before reconciliation with user context."""

    model_config = {"frozen": True}

    objects: list[ExtractedEntity] = Field(default_factory=list)
    scenes: list[ExtractedEntity] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    description: str = ""


class RawResults(BaseModel):
    llm_analysis: LlmAnalysis = Field(default_factory=LlmAnalysis)


class AnalysisResult(BaseModel):
    """Reconciled analysis output.

    Successful and failed analyses share this shape; failures carry ``error``
    and empty content.
    """

    objects: list[str] = Field(default_factory=list)
    scenes: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    description: str = ""
    technical_details: TechnicalDetails = Field(default_factory=TechnicalDetails)
    raw_results: RawResults = Field(default_factory=RawResults)
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class AnalysisContext(BaseModel):
    """Metadata already known about an image when analysis is requested."""

    model_config = {"extra": "ignore"}

    title: str = ""
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    objects: list[str] = Field(default_factory=list)
    scenes: list[str] = Field(default_factory=list)
    technical: TechnicalDetails | None = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v


def _dedupe(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


class ReconciledMetadata(BaseModel):
    """The editable metadata a user reviews before saving a batch."""

    title: str = ""
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    objects: list[str] = Field(default_factory=list)
    scenes: list[str] = Field(default_factory=list)
    emotions: list[str] = Field(default_factory=list)
    technical_details: TechnicalDetails = Field(default_factory=TechnicalDetails)

    @field_validator("tags", "objects", "scenes", "emotions")
    @classmethod
    def unique_values(cls, v: list[str]) -> list[str]:
        return _dedupe(v)

    def to_context(self) -> AnalysisContext:
        return AnalysisContext(
            title=self.title,
            description=self.description,
            tags=self.tags,
            objects=self.objects,
            scenes=self.scenes,
            technical=self.technical_details,
        )


class RecordMetadata(BaseModel):
    objects: list[str] = Field(default_factory=list)
    scenes: list[str] = Field(default_factory=list)
    emotions: list[str] = Field(default_factory=list)
    technical_details: TechnicalDetails = Field(default_factory=TechnicalDetails)


class ImageRecord(BaseModel):
    """Row written to the images table."""

    url: str
    title: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    user_id: str
    metadata: RecordMetadata = Field(default_factory=RecordMetadata)


# Prompt template for image analysis
PROMPT = """Analyze this image in detail. {context}

Please provide:
1. A list of main objects and elements visible in the image
2. The overall scene or setting
3. Any notable visual characteristics
4. A natural, detailed description of the image

Format the response as:
OBJECTS: [comma-separated list of objects]
SCENE: [brief scene description]
DESCRIPTION: [detailed description]"""
