from __future__ import annotations

import logging
import random
import re
from typing import Any, Dict, List, Optional, Sequence

from onboarding import industries
from onboarding.llm_client import GENERATION_CALL_TIMEOUT_SECS, bounded
from onboarding.llm_parsing import normalize, strip_fences
from onboarding.llm_prompts import PromptStore, fill_prompt
from onboarding.models import (
    GeneratedContentBundle,
    GenerationProfile,
    MissingInputError,
    Service,
    SiteTemplate,
    TemplateRecommendation,
    now_ms,
)
from onboarding.validators import clean_content_bundle


log = logging.getLogger(__name__)

# Sections whose lists are written by the model rather than copied from the profile
CONTENT_SECTIONS = (
    "testimonials",
    "team",
    "portfolio",
    "pricing",
    "howItWorks",
    "menu",
    "faq",
    "slideshow",
    "features",
)

_DESCRIPTION_PREFIX_RE = re.compile(r'^\s*\{\s*"description"\s*:\s*"', re.IGNORECASE)
_DESCRIPTION_TAGLINE_SUFFIX_RE = re.compile(r'"\s*,?\s*"tagline"\s*:\s*"[^"]*"\s*\}\s*$', re.IGNORECASE)
_DESCRIPTION_SUFFIX_RE = re.compile(r'"\s*\}\s*$')


def fallback_description(profile: GenerationProfile) -> str:
    if profile.is_spanish:
        return (
            f"{profile.business_name} es un negocio de {profile.industry_label} comprometido con "
            "ofrecer productos y servicios de calidad a sus clientes."
        )
    return (
        f"{profile.business_name} is a {profile.industry_label} business committed to delivering "
        "quality products and services to its customers."
    )


def fallback_services() -> List[Service]:
    ts = now_ms()
    return [
        Service(id=f"service-{ts}-0", name="Service 1", description="Main service", is_ai_generated=True),
        Service(id=f"service-{ts}-1", name="Service 2", description="Additional service", is_ai_generated=True),
    ]


def _template_colors(template: SiteTemplate) -> str:
    theme = template.theme or {}
    colors: List[str] = []
    for label, key in (
        ("primary", "primaryColor"),
        ("secondary", "secondaryColor"),
        ("background", "backgroundColor"),
        ("accent", "accentColor"),
    ):
        if theme.get(key):
            colors.append(f"{label}: {theme[key]}")
    hero_colors = (template.data.get("hero") or {}).get("colors") or {}
    if isinstance(hero_colors, dict) and hero_colors.get("primary"):
        colors.append(f"hero: {hero_colors['primary']}")
    return ", ".join(colors) if colors else "default colors"


def describe_color_mood(colors: str) -> str:
    c = colors.lower()
    if "#000" in c or "black" in c or "#1" in c or "#2" in c:
        return "dark, elegant, sophisticated"
    if "#fff" in c or "white" in c or "#f" in c:
        return "clean, minimal, bright"
    if "blue" in c or "#0" in c:
        return "professional, trustworthy, corporate"
    if "green" in c or "#3" in c:
        return "natural, fresh, growth"
    if "red" in c or "#e" in c or "#c" in c:
        return "bold, energetic, passionate"
    if "orange" in c:
        return "warm, friendly, creative"
    if "purple" in c or "#9" in c or "#7" in c:
        return "luxurious, creative, premium"
    return "balanced, versatile"


def summarize_templates(templates: Sequence[SiteTemplate], rng: Optional[random.Random] = None) -> str:
    """Human-readable catalog for the recommendation prompt, shuffled so position carries no weight."""
    entries = []
    for index, tpl in enumerate(templates):
        colors = _template_colors(tpl)
        components = [
            label
            for label, key in (
                ("Hero", "hero"),
                ("Services", "services"),
                ("Team", "team"),
                ("Portfolio", "portfolio"),
                ("Pricing", "pricing"),
                ("Menu", "menu"),
            )
            if tpl.data.get(key)
        ]
        entries.append(
            f'\nTEMPLATE #{index + 1}: "{tpl.name}"\n'
            f"  ID: {tpl.id}\n"
            f"  Industries: {', '.join(tpl.industries) if tpl.industries else 'General/All'}\n"
            f"  Color Mood: {describe_color_mood(colors)}\n"
            f"  Color Scheme: {colors}\n"
            f"  Components: {', '.join(components) or 'Basic'}\n"
        )
    (rng or random).shuffle(entries)
    return "".join(entries)


class ContentGenerator:
    """One model call per phase, normalized and degraded to a fallback on failure."""

    def __init__(self, endpoint, prompts: PromptStore, call_logger=None, call_timeout: Optional[float] = None) -> None:
        self.endpoint = endpoint
        self.prompts = prompts
        self.call_logger = call_logger
        self.call_timeout = GENERATION_CALL_TIMEOUT_SECS if call_timeout is None else call_timeout

    def _record(self, user_id: Optional[str], model: str, feature: str, success: bool, error: Optional[str] = None) -> None:
        if self.call_logger is None:
            return
        try:
            self.call_logger.record(user_id, model, feature, success, error)
        except Exception:
            log.warning("content.call_log: logger raised; ignoring", exc_info=True)

    async def run_prompt(
        self,
        prompt_key: str,
        feature: str,
        values: Dict[str, Any],
        options: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> str:
        """Fill ``prompt_key`` and issue exactly one content call; raises on lookup or endpoint failure."""
        rec = self.prompts.require(prompt_key)
        prompt = fill_prompt(rec.template, **values)
        try:
            text = await bounded(
                self.endpoint.generate_content(f"onboarding-{feature}", prompt, rec.model, options or {}, user_id),
                self.call_timeout,
            )
        except Exception as exc:
            self._record(user_id, rec.model, feature, False, str(exc) or type(exc).__name__)
            raise
        self._record(user_id, rec.model, feature, True)
        return text or ""

    async def generate(self, phase: str, profile: GenerationProfile, **kwargs: Any) -> Any:
        handlers = {
            "description": self.generate_description,
            "services": self.generate_services,
            "categories": self.generate_categories,
            "template": self.recommend_template,
            "content": self.generate_component_content,
        }
        handler = handlers.get(phase)
        if handler is None:
            raise ValueError(f"unknown generation phase '{phase}'")
        return await handler(profile, **kwargs)

    async def generate_description(self, profile: GenerationProfile) -> Dict[str, str]:
        if not profile.business_name or not profile.industry:
            raise MissingInputError("Business name and industry are required")
        values = {
            "businessName": profile.business_name,
            "industry": profile.industry,
            "language": profile.language_name,
        }
        try:
            text = await self.run_prompt("onboarding-generate-description", "description", values, user_id=profile.user_id)
        except Exception as exc:
            log.warning("content.description: generation failed, using fallback: %r", exc)
            return {"description": fallback_description(profile), "tagline": profile.tagline}

        parsed = normalize(text, None)
        if isinstance(parsed, dict) and isinstance(parsed.get("description"), str) and parsed["description"].strip():
            tagline = parsed.get("tagline")
            return {"description": parsed["description"], "tagline": tagline if isinstance(tagline, str) else ""}

        cleaned = strip_fences(text)
        cleaned = _DESCRIPTION_PREFIX_RE.sub("", cleaned)
        cleaned = _DESCRIPTION_TAGLINE_SUFFIX_RE.sub("", cleaned)
        cleaned = _DESCRIPTION_SUFFIX_RE.sub("", cleaned).strip()
        description = cleaned or text.strip()
        if not description:
            log.warning("content.description: empty response, using fallback")
            description = fallback_description(profile)
        return {"description": description, "tagline": ""}

    async def generate_services(self, profile: GenerationProfile) -> List[Service]:
        values = {
            "businessName": profile.business_name,
            "industry": profile.industry,
            "description": profile.description or "Not provided",
            "language": profile.language_name,
        }
        try:
            text = await self.run_prompt("onboarding-generate-services", "services", values, user_id=profile.user_id)
        except Exception as exc:
            log.warning("content.services: generation failed, using placeholders: %r", exc)
            return fallback_services()

        parsed = normalize(text, [])
        if not isinstance(parsed, list):
            log.warning("content.services: response is not an array, returning empty")
            return []
        ts = now_ms()
        services: List[Service] = []
        for index, item in enumerate(parsed):
            item = item if isinstance(item, dict) else {"name": str(item)}
            services.append(
                Service(
                    id=f"service-{ts}-{index}",
                    name=str(item.get("name") or f"Service {index + 1}"),
                    description=str(item.get("description") or ""),
                    is_ai_generated=True,
                )
            )
        return services

    async def generate_categories(self, profile: GenerationProfile) -> List[str]:
        values = {
            "businessName": profile.business_name,
            "industry": profile.industry,
            "description": profile.description,
            "ecommerceType": profile.ecommerce_type or "physical",
            "language": profile.language_name,
        }
        try:
            text = await self.run_prompt(
                "onboarding-generate-categories",
                "categories",
                values,
                {"temperature": 0.7, "maxOutputTokens": 500},
                profile.user_id,
            )
        except Exception as exc:
            log.warning("content.categories: generation failed, using industry defaults: %r", exc)
            return industries.fallback_categories(profile.industry)

        parsed = normalize(text, [])
        categories: List[str] = []
        if isinstance(parsed, list):
            for item in parsed:
                if isinstance(item, str):
                    name = item
                elif isinstance(item, dict):
                    name = item.get("name") or item.get("category") or ""
                else:
                    name = str(item)
                if isinstance(name, str) and name.strip():
                    categories.append(name.strip())
        if not categories:
            log.info("content.categories: nothing usable in response, using industry defaults")
            return industries.fallback_categories(profile.industry)
        return categories

    async def recommend_template(
        self,
        profile: GenerationProfile,
        templates: Sequence[SiteTemplate],
        rng: Optional[random.Random] = None,
    ) -> TemplateRecommendation:
        if not templates:
            raise MissingInputError("No templates available")
        defaults = industries.component_defaults(profile.industry)

        def _result(tpl: Optional[SiteTemplate], score: int, reasons: List[str], name: Optional[str] = None) -> TemplateRecommendation:
            return TemplateRecommendation(
                template_id=tpl.id if tpl else "default",
                template_name=name or (tpl.name if tpl else "Template"),
                match_score=score,
                match_reasons=reasons,
                suggested_components=list(defaults["recommended"]),
                disabled_components=list(defaults["disabled"]),
            )

        values = {
            "businessName": profile.business_name,
            "industry": profile.industry,
            "description": profile.description or "General business",
            "services": ", ".join(s.name for s in profile.services) or "Various services",
            "colorPreference": industries.color_preference(profile.industry),
            "templateSummary": summarize_templates(templates, rng),
        }
        try:
            text = await self.run_prompt(
                "onboarding-template-recommendation",
                "template-rec",
                values,
                {"temperature": 0.7, "maxOutputTokens": 600},
                profile.user_id,
            )
        except Exception as exc:
            log.warning("content.template: recommendation failed, using first template: %r", exc)
            return _result(templates[0], 70, ["Default recommendation"])

        parsed = normalize(text, {})
        if not isinstance(parsed, dict):
            parsed = {}
        chosen = next((t for t in templates if t.id == parsed.get("templateId")), None)
        if chosen is not None:
            try:
                score = int(parsed.get("matchScore") or 80)
            except (TypeError, ValueError):
                score = 80
            reasons = parsed.get("matchReasons")
            if not isinstance(reasons, list):
                reasons = ["Best match for your industry"]
            name = parsed.get("templateName") if isinstance(parsed.get("templateName"), str) else None
            log.info("content.template: model chose %s score=%d", chosen.id, score)
            return _result(chosen, score, [str(r) for r in reasons], name)

        wanted = profile.industry.lower()
        industry_match = next(
            (t for t in templates if any(wanted in (i or "").lower() for i in t.industries)),
            None,
        )
        log.info("content.template: model answer unusable, falling back to %s", (industry_match or templates[0]).id)
        return _result(industry_match or templates[0], 70, ["Best available match"])

    async def generate_component_content(
        self, profile: GenerationProfile, enabled_sections: Sequence[str]
    ) -> GeneratedContentBundle:
        to_generate = [s for s in CONTENT_SECTIONS if s in enabled_sections]
        if not to_generate:
            log.debug("content.sections: no enabled section needs generated content")
            return {}
        values = {
            "industry": profile.industry_label,
            "businessName": profile.business_name,
            "description": profile.description,
            "language": profile.language_name,
            "sectionsToGenerate": ", ".join(to_generate),
        }
        try:
            text = await self.run_prompt(
                "onboarding-generate-component-content",
                "content-gen",
                values,
                {"temperature": 0.7, "maxOutputTokens": 2000},
                profile.user_id,
            )
        except Exception as exc:
            log.warning("content.sections: generation failed, continuing with template content: %r", exc)
            return {}
        bundle = clean_content_bundle(normalize(text, {}), to_generate)
        log.info("content.sections: generated %s", ",".join(sorted(bundle)) or "nothing")
        return bundle
