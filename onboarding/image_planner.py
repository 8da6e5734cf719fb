from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

from onboarding import industries
from onboarding.llm_parsing import normalize
from onboarding.merger import slot_count
from onboarding.models import GeneratedContentBundle, GenerationProfile, ImageDraft


log = logging.getLogger(__name__)

IMAGE_STYLE = "Photorealistic"

# Upper bound of generated images per list section
SECTION_IMAGE_CAPS: Dict[str, int] = {
    "features": 6,
    "portfolio": 6,
    "menu": 3,
    "slideshow": 1,
}

NO_TEXT = "no text, no words, no letters, no watermark, no logos"


class ImageSlot(NamedTuple):
    key: str
    section: str
    index: int
    aspect_ratio: str
    description: str
    item: Dict[str, Any]


def _items(section_data: Any, *names: str) -> List[Any]:
    if not isinstance(section_data, dict):
        return []
    for name in names:
        value = section_data.get(name)
        if isinstance(value, list):
            return value
    return []


def _text(item: Dict[str, Any], field: str) -> str:
    value = item.get(field)
    return value.strip() if isinstance(value, str) else ""


def _list_slots(
    section: str,
    list_name: str,
    template_items: List[Any],
    generated: List[Dict[str, Any]],
    aspect_ratio: str,
) -> List[ImageSlot]:
    # only indexes the merger can place; generated lists are cut to the template slots
    count = slot_count(section, len(generated), template_items) if generated else len(template_items)
    count = min(count, SECTION_IMAGE_CAPS[section])
    slots = []
    for i in range(count):
        if i < len(generated):
            item = generated[i]
        elif i < len(template_items) and isinstance(template_items[i], dict):
            item = template_items[i]
        else:
            item = {}
        slots.append(
            ImageSlot(
                key=f"{section}.{list_name}[{i}].imageUrl",
                section=section,
                index=i,
                aspect_ratio=aspect_ratio,
                description=_slot_description(section, i, item),
                item=item,
            )
        )
    return slots


def _slot_description(section: str, i: int, item: Dict[str, Any]) -> str:
    if section == "features":
        return f"Feature: {_text(item, 'title') or f'Feature {i + 1}'}"
    if section == "portfolio":
        return f"Portfolio: {_text(item, 'title')} - {_text(item, 'description')}"
    if section == "menu":
        return f"Menu dish: {_text(item, 'name') or 'Dish'} - {_text(item, 'description')}"
    if section == "slideshow":
        return f"Gallery/Slideshow: {_text(item, 'title') or f'Image {i + 1}'} - {_text(item, 'subtitle')}"
    return section


def image_slots(
    template_data: Dict[str, Any],
    enabled_sections: Sequence[str],
    bundle: Optional[GeneratedContentBundle] = None,
) -> List[ImageSlot]:
    """Every image-bearing field the enabled sections of ``template_data`` expose, in section order."""
    bundle = bundle or {}
    enabled = set(enabled_sections)

    def is_on(section: str) -> bool:
        return section in enabled and isinstance(template_data.get(section), dict)

    slots: List[ImageSlot] = []
    if is_on("hero"):
        slots.append(ImageSlot("hero.imageUrl", "hero", 0, "16:9", "Main hero banner image", {}))
    if is_on("heroSplit"):
        slots.append(ImageSlot("heroSplit.imageUrl", "heroSplit", 0, "3:4", "Vertical split hero image", {}))
    if is_on("banner"):
        slots.append(ImageSlot("banner.backgroundImageUrl", "banner", 0, "21:9", "Wide panoramic banner", {}))
    if is_on("cta") and "backgroundImage" in template_data["cta"]:
        slots.append(ImageSlot("cta.backgroundImage", "cta", 0, "16:9", "Call to action background", {}))
    if is_on("features"):
        slots += _list_slots("features", "items", _items(template_data["features"], "items"), bundle.get("features") or [], "1:1")
    if is_on("portfolio"):
        slots += _list_slots("portfolio", "items", _items(template_data["portfolio"], "items"), bundle.get("portfolio") or [], "4:3")
    if is_on("menu"):
        slots += _list_slots("menu", "items", _items(template_data["menu"], "items"), bundle.get("menu") or [], "1:1")
    if is_on("slideshow"):
        slots += _list_slots(
            "slideshow", "items", _items(template_data["slideshow"], "items", "slides"), bundle.get("slideshow") or [], "16:9"
        )
    return slots


def _fallback_prompt(slot: ImageSlot, profile: GenerationProfile, consistency: str) -> str:
    ind = profile.industry_label
    name = profile.business_name
    desc = (profile.description or "").strip()
    business_id = f'"{name}" {ind} business'
    context = f', representing "{name}" - {desc[:300]}' if desc else f', for "{name}"'
    item = slot.item
    i = slot.index

    if slot.section == "hero":
        return (
            f"{business_id} hero scene showing their main products or services{context}, "
            f"{consistency}, professional photography, high quality, {NO_TEXT}"
        )
    if slot.section == "heroSplit":
        return f"{business_id} vertical showcase{context}, {consistency}, modern professional, {NO_TEXT}"
    if slot.section == "banner":
        return f"{business_id} panoramic scene{context}, {consistency}, elegant wide view, {NO_TEXT}"
    if slot.section == "cta":
        return f"Abstract background representing {business_id}, {consistency}, subtle elegant, {NO_TEXT}"

    parts: List[str]
    if slot.section == "features":
        parts = [f"{ind} {_text(item, 'title') or f'concept {i + 1}'}", _text(item, "description")]
        tail = "clean minimal illustration"
    elif slot.section == "portfolio":
        parts = [f"{ind} {_text(item, 'title') or f'project {i + 1}'}", _text(item, "description"), _text(item, "category")]
        tail = "professional work showcase"
    elif slot.section == "menu":
        category = _text(item, "category")
        parts = [
            _text(item, "name") or "delicious dish",
            _text(item, "description"),
            f"{category} cuisine" if category else "",
            f"{ind} restaurant style",
        ]
        tail = "professional food photography, appetizing"
    else:
        parts = [f"{ind} {_text(item, 'title') or f'showcase scene {i + 1}'}", _text(item, "subtitle")]
        tail = "professional quality"
    subject = ", ".join(p for p in parts if p)
    return f"{subject}, {consistency}, {tail}, {NO_TEXT}"


def build_fallback_prompts(slots: Sequence[ImageSlot], profile: GenerationProfile) -> List[ImageDraft]:
    """Template-string prompts for every slot; no network access."""
    consistency = f"consistent style, {industries.visual_style(profile.industry)}, cohesive visual identity"
    drafts = [
        ImageDraft(
            key=slot.key,
            prompt=_fallback_prompt(slot, profile, consistency),
            aspect_ratio=slot.aspect_ratio,
            style=IMAGE_STYLE,
        )
        for slot in slots
    ]
    if not drafts:
        drafts.append(generic_hero_draft(profile))
    return drafts


def generic_hero_draft(profile: GenerationProfile) -> ImageDraft:
    consistency = f"consistent style, {industries.visual_style(profile.industry)}, cohesive visual identity"
    return ImageDraft(
        key="hero.imageUrl",
        prompt=f"{profile.industry_label} business hero, {consistency}, professional modern, {NO_TEXT}",
        aspect_ratio="16:9",
        style=IMAGE_STYLE,
    )


def _prompt_values(profile: GenerationProfile, slots: Sequence[ImageSlot], bundle: GeneratedContentBundle) -> Dict[str, Any]:
    services = ", ".join(f"{s.name}: {s.description}" if s.description else s.name for s in profile.services)
    categories = profile.store_categories()
    return {
        "businessName": profile.business_name,
        "tagline": profile.tagline or "Professional quality and service",
        "industry": profile.industry_label,
        "description": profile.description or "A professional business offering quality products and services",
        "services": services or "Not specified",
        "storeCategories": ", ".join(categories) if categories else "Not applicable",
        "generatedContent": json.dumps(bundle, indent=2, ensure_ascii=False),
        "imagesToGenerate": "\n".join(f"- {s.key} ({s.aspect_ratio}): {s.description}" for s in slots),
    }


class ImagePromptPlanner:
    """Turns enabled sections and generated content into image drafts.

    A single model call writes business-specific prompts for every slot; when
    that call fails or its answer is unusable the deterministic builder is used
    instead. The planner never executes generation and never touches progress.
    """

    def __init__(self, generator=None) -> None:
        # generator: ContentGenerator (or anything with run_prompt); None means deterministic only
        self.generator = generator

    async def plan(
        self,
        template_data: Dict[str, Any],
        profile: GenerationProfile,
        enabled_sections: Sequence[str],
        bundle: Optional[GeneratedContentBundle] = None,
    ) -> List[ImageDraft]:
        bundle = bundle or {}
        slots = image_slots(template_data, enabled_sections, bundle)
        if not slots:
            log.info("image_planner.plan: no image slots in enabled sections; using generic hero")
            return [generic_hero_draft(profile)]
        if self.generator is None:
            return build_fallback_prompts(slots, profile)

        try:
            text = await self.generator.run_prompt(
                "onboarding-generate-image-prompts",
                "image-prompts",
                _prompt_values(profile, slots, bundle),
                {"temperature": 0.7, "maxOutputTokens": 4000},
                profile.user_id,
            )
        except Exception as exc:
            log.warning("image_planner.plan: prompt call failed, using template prompts: %r", exc)
            return build_fallback_prompts(slots, profile)

        answer = normalize(text, None)
        if not isinstance(answer, dict) or not answer:
            log.warning("image_planner.plan: unusable prompt response, using template prompts")
            return build_fallback_prompts(slots, profile)

        drafts: List[ImageDraft] = []
        missing = 0
        for slot in slots:
            prompt = answer.get(slot.key)
            if not isinstance(prompt, str) or not prompt.strip():
                missing += 1
                prompt = (
                    f"{profile.industry_label} {slot.description}, professional photography, "
                    "high quality, no text, no watermarks"
                )
            drafts.append(ImageDraft(key=slot.key, prompt=prompt.strip(), aspect_ratio=slot.aspect_ratio, style=IMAGE_STYLE))
        if missing:
            log.info("image_planner.plan: %d of %d prompts missing from response; filled generically", missing, len(slots))
        log.info("image_planner.plan: planned %d images", len(drafts))
        return drafts
