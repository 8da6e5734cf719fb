from __future__ import annotations

import time
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


Phase = Literal["idle", "content", "images", "finalizing", "completed", "error"]
ImageStatus = Literal["pending", "generating", "completed", "failed"]

# section key -> ordered records, e.g. {"faq": [{"question": ..., "answer": ...}]}
GeneratedContentBundle = Dict[str, List[Dict[str, Any]]]


class GenerationError(Exception):
    """Fatal pipeline failure; moves a run to the error phase."""


class MissingInputError(GenerationError):
    pass


class TemplateNotFoundError(GenerationError):
    pass


def now_ms() -> int:
    return int(time.time() * 1000)


class _Model(BaseModel):
    # Records travel to the UI and the stores in camelCase
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Service(_Model):
    id: str = ""
    name: str
    description: str = ""
    is_ai_generated: bool = False


class ContactInfo(_Model):
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = ""
    phone: str = ""
    email: str = ""
    business_hours: str = ""
    facebook: str = ""
    instagram: str = ""
    twitter: str = ""
    linkedin: str = ""


class StoreSetup(_Model):
    store_name: str = ""
    currency: str = "USD"
    currency_symbol: str = "$"
    shipping_type: str = "physical"
    selected_categories: List[str] = Field(default_factory=list)


class GenerationProfile(_Model):
    """Immutable snapshot of the confirmed onboarding answers."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    business_name: str = Field(..., min_length=1)
    industry: str = Field(..., min_length=1)
    description: str = ""
    tagline: str = ""
    language: str = "en"
    selected_template_id: Optional[str] = None
    # None means "use the template's visible sections"
    enabled_components: Optional[List[str]] = None
    disabled_components: List[str] = Field(default_factory=list)
    services: List[Service] = Field(default_factory=list)
    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    has_ecommerce: bool = False
    ecommerce_type: Optional[str] = None
    store_setup: Optional[StoreSetup] = None
    user_id: Optional[str] = None

    @property
    def is_spanish(self) -> bool:
        return self.language == "es"

    @property
    def language_name(self) -> str:
        return "Spanish" if self.is_spanish else "English"

    @property
    def industry_label(self) -> str:
        return self.industry.replace("-", " ") if self.industry else "business"

    def store_categories(self) -> List[str]:
        if self.store_setup is None:
            return []
        return list(self.store_setup.selected_categories)


class SiteTemplate(_Model):
    """A read-only site template: a data tree keyed by section plus presentation metadata."""

    id: str
    name: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    section_visibility: Dict[str, bool] = Field(default_factory=dict)
    component_order: List[str] = Field(default_factory=list)
    theme: Dict[str, Any] = Field(default_factory=dict)
    thumbnail_url: str = ""
    industries: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    def visible_sections(self) -> List[str]:
        return [k for k, on in self.section_visibility.items() if on]


class ImageDraft(_Model):
    """One planned image before execution: target field path, prompt and framing."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    key: str
    prompt: str
    aspect_ratio: str = "1:1"
    style: str = "Photorealistic"


class ImageTask(_Model):
    id: str
    prompt_key: str
    prompt: str
    aspect_ratio: str = "1:1"
    style: str = "Photorealistic"
    status: ImageStatus = "pending"
    image_url: Optional[str] = None
    error: Optional[str] = None
    estimated_time: int = 20
    started_at: Optional[int] = None
    completed_at: Optional[int] = None


class GenerationProgress(_Model):
    phase: Phase = "idle"
    content_progress: int = 0
    images_total: int = 0
    images_completed: int = 0
    all_images: List[ImageTask] = Field(default_factory=list)
    current_image: Optional[ImageTask] = None
    started_at: Optional[int] = None
    completed_at: Optional[int] = None
    error: Optional[str] = None
    generation_id: Optional[str] = None
    project_id: Optional[str] = None


class TemplateRecommendation(_Model):
    template_id: str
    template_name: str
    match_score: int = 70
    match_reasons: List[str] = Field(default_factory=list)
    suggested_components: List[str] = Field(default_factory=list)
    disabled_components: List[str] = Field(default_factory=list)
