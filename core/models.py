# --------------------------------------------------------------------------------------
# Pydantic models
# --------------------------------------------------------------------------------------
import time
from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.config import PipelineConfig


class GenerationRequest(BaseModel):
    """Case data for one prediction batch. Immutable for the duration of the batch."""
    model_config = ConfigDict(frozen=True)

    reference_image: bytes = Field(..., min_length=1, repr=False)
    reference_mime_type: str = "image/jpeg"
    name: str = ""
    gender: str = "Unspecified"
    age_at_missing: int = Field(..., ge=0)
    years_missing: int = Field(..., ge=0)
    location: str = ""
    scenario: str = PipelineConfig.AUTO_DETECT_SCENARIO
    additional_details: str = ""
    variation_count: int = Field(
        PipelineConfig.DEFAULT_VARIATIONS,
        ge=PipelineConfig.MIN_VARIATIONS,
        le=PipelineConfig.MAX_VARIATIONS,
    )

    @field_validator("scenario")
    @classmethod
    def _known_scenario(cls, value: str) -> str:
        if value not in PipelineConfig.SCENARIOS:
            raise ValueError(f"Unknown scenario: {value!r}")
        return value

    @field_validator("gender")
    @classmethod
    def _gender_not_blank(cls, value: str) -> str:
        return value.strip() or "Unspecified"

    @property
    def current_age(self) -> int:
        return self.age_at_missing + self.years_missing

    @property
    def is_auto_detect(self) -> bool:
        return self.scenario == PipelineConfig.AUTO_DETECT_SCENARIO

    def approx_missing_year(self, today: Optional[date] = None) -> int:
        return (today or date.today()).year - self.years_missing


class VariationSpec(BaseModel):
    prompt: str = Field(..., min_length=1)
    reasoning: str = Field(..., min_length=1)

    @field_validator("prompt", "reasoning", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value


class PredictionResultItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    image: str  # data:<mime>;base64,<payload>
    caption: str


class PlanConstraints(BaseModel):
    """Structured plan rules derived from (scenario, requested count)."""
    model_config = ConfigDict(frozen=True)

    auto_detect: bool
    locked_scenario: Optional[str] = None
    variation_count: int
    explore_lifestyles: bool = False
    require_weight_gain: bool = False
    weight_gain_suppressed: bool = False


class InlineImage(BaseModel):
    data: bytes = Field(..., repr=False)
    mime_type: str = "image/png"


class ContentPart(BaseModel):
    """Transport-neutral view of one part of a render response."""
    text: Optional[str] = None
    inline_image: Optional[InlineImage] = None


class BatchStage(str, Enum):
    IDLE = "idle"
    COMPILING = "compiling"
    PLANNING = "planning"
    PLAN_FAILED = "plan_failed"
    RENDERING = "rendering"
    DONE = "done"


class BatchSummary(BaseModel):
    batch_id: str
    planned: int = 0
    delivered: int = 0
    failed_indices: List[int] = Field(default_factory=list)
    empty_indices: List[int] = Field(default_factory=list)
    stage: BatchStage = BatchStage.IDLE
    # epoch ms at submission; prefixes every result id of the batch
    submitted_at_ms: int = Field(default_factory=lambda: int(time.time() * 1000))


class PredictionOptions(BaseModel):
    aspect_ratio: Optional[str] = None
    image_size: Optional[str] = None

    @field_validator("aspect_ratio")
    @classmethod
    def _supported_ratio(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in PipelineConfig.SUPPORTED_ASPECT_RATIOS:
            raise ValueError(f"Unsupported aspect ratio: {value}")
        return value

    @field_validator("image_size")
    @classmethod
    def _supported_size(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in PipelineConfig.SUPPORTED_IMAGE_SIZES:
            raise ValueError(f"Unsupported image size: {value}")
        return value


class PredictionBatchResult(BaseModel):
    items: List[PredictionResultItem]
    summary: BatchSummary
    saved_files: List[str] = Field(default_factory=list)


class ScenarioCatalog(BaseModel):
    auto_detect: str
    scenarios: List[str]
    genders: List[str]
    min_variations: int
    max_variations: int
    default_variations: int
