from __future__ import annotations

import functools
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional

from jinja2 import DebugUndefined, Environment, Template


log = logging.getLogger(__name__)

DEFAULT_MODEL = os.getenv("GEMINI_CONTENT_MODEL", "gemini-2.5-flash").strip() or "gemini-2.5-flash"
PROMPT_OVERRIDES_FILE = os.getenv("PROMPT_OVERRIDES_FILE", "").strip()

# Plain-text rendering; unknown {{tokens}} survive so a broken override is visible in logs
_env = Environment(
    undefined=DebugUndefined,
    autoescape=False,
    keep_trailing_newline=True,
)


class PromptNotFoundError(LookupError):
    pass


class PromptRecord(NamedTuple):
    name: str
    template: str
    model: str


_DESCRIPTION = """You are a professional copywriter. Generate a compelling business description AND a catchy tagline for:

Business Name: {{businessName}}
Industry: {{industry}}
Language: {{language}}

Requirements for DESCRIPTION:
- Write 2-3 paragraphs
- Be professional but engaging
- Highlight unique value propositions
- Include a call to action

Requirements for TAGLINE:
- Maximum 10 words
- Catchy and memorable
- Captures the essence of the business
- Can include the business name or not

Return ONLY valid JSON in this exact format:
{
  "description": "The full business description here...",
  "tagline": "Short catchy tagline here"
}"""

_SERVICES = """You are a business consultant. Generate a list of services/products for:

Business Name: {{businessName}}
Industry: {{industry}}
Description: {{description}}
Language: {{language}}

Requirements:
- Generate 4-6 relevant services or products
- Each should have a name and brief description
- Be specific to the industry
- Output as JSON array with format: [{"name": "Service Name", "description": "Brief description"}]

Generate the services:"""

_CATEGORIES = """You are an e-commerce consultant. Generate product categories for an online store.

Business Name: {{businessName}}
Industry: {{industry}}
Business Description: {{description}}
Product Type: {{ecommerceType}} (physical products, digital products, or both)
Language: {{language}}

Requirements:
- Generate 5-8 relevant product categories
- Categories should be specific to the industry
- Use clear, customer-friendly names
- Make them suitable for navigation and filtering
- For physical products: focus on tangible items
- For digital products: focus on downloadable/virtual items
- Output as JSON array with category names only: ["Category 1", "Category 2", "Category 3", ...]

Generate the categories:"""

_TEMPLATE_RECOMMENDATION = """You are a web design expert selecting the PERFECT template for a specific business.

IMPORTANT: Carefully analyze ALL templates before deciding. Do NOT default to the first option.

BUSINESS DETAILS:
- Name: "{{businessName}}"
- Industry: {{industry}}
- Description: {{description}}
- Services: {{services}}

IDEAL COLOR PALETTE for {{industry}} businesses: {{colorPreference}}

ANALYZE ALL TEMPLATES:
{{templateSummary}}

SELECTION RULES:
1. PRIORITIZE templates that list "{{industry}}" in their industries
2. Match color mood to business personality ({{colorPreference}})
3. Ensure template has the components this business needs
4. Consider visual style appropriate for the industry

Return ONLY valid JSON:
{
  "templateId": "the-exact-template-id",
  "templateName": "Template Name",
  "matchScore": 75-95,
  "matchReasons": ["industry reason", "color reason", "component reason"]
}"""

_COMPONENT_CONTENT = """Generate realistic content for a {{industry}} business called "{{businessName}}".
Business description: {{description}}
Language: {{language}}

Generate ONLY for these sections: {{sectionsToGenerate}}

Return JSON with this exact structure (only include sections that were requested):
{
  "testimonials": [
    { "quote": "short testimonial", "name": "Customer Name", "title": "Role/Company" }
  ],
  "team": [
    { "name": "Team Member", "role": "Position" }
  ],
  "portfolio": [
    { "title": "Project", "description": "Brief description", "category": "Category" }
  ],
  "pricing": [
    { "name": "Basic", "price": "$XX", "frequency": "/month", "features": ["Feature 1", "Feature 2"], "featured": false },
    { "name": "Pro", "price": "$XX", "frequency": "/month", "features": ["Feature 1", "Feature 2", "Feature 3"], "featured": true }
  ],
  "howItWorks": [
    { "title": "Step", "description": "Brief description" }
  ],
  "menu": [
    { "name": "Dish", "description": "Brief appetizing description", "price": "$X.XX", "category": "Category" }
  ],
  "faq": [
    { "question": "Common question?", "answer": "Brief helpful answer" }
  ],
  "slideshow": [
    { "title": "Slide headline", "subtitle": "Brief description", "ctaText": "Call to action" }
  ],
  "features": [
    { "title": "Feature", "description": "Brief benefit description" }
  ]
}

Generate 3 testimonials, 3 team members, 3 portfolio projects, 3 pricing tiers, 3 steps, 6 menu dishes, 4 FAQ entries, 3 slides and 4 features when requested.
Keep all text SHORT and CONCISE. Return ONLY valid JSON."""

_IMAGE_PROMPTS = """You are an expert AI image prompt engineer. Generate HIGHLY SPECIFIC and DETAILED prompts for ALL images needed for this website. The images must clearly represent THIS SPECIFIC BUSINESS, not generic stock photos.

**BUSINESS IDENTITY:**
- Business Name: "{{businessName}}"
- Tagline/Slogan: "{{tagline}}"
- Industry: {{industry}}

**DETAILED BUSINESS DESCRIPTION:**
{{description}}

**SERVICES/PRODUCTS OFFERED:**
{{services}}

**PRODUCT CATEGORIES (for ecommerce):**
{{storeCategories}}

**GENERATED CONTENT (specific items to show):**
{{generatedContent}}

**IMAGES NEEDED:**
{{imagesToGenerate}}

**CRITICAL REQUIREMENTS:**
1. HERO IMAGE: Must visually represent "{{businessName}}" - show their ACTUAL products/services, not generic {{industry}} imagery
2. For ECOMMERCE stores: Show the SPECIFIC product categories listed above
3. For SERVICE businesses: Show people actively receiving/providing the services listed
4. Use the TAGLINE "{{tagline}}" as inspiration for the mood and message
5. Each image must feel like it belongs to THIS business, not a competitor

**PROMPT STRUCTURE (follow this for each image):**
"[Specific scene for {{businessName}}], [exact products/services shown], [mood from tagline], [industry-appropriate style], professional photography, high quality, no text, no watermarks, no logos"

**OUTPUT FORMAT:**
Return ONLY valid JSON mapping every image key listed above to its prompt:
{
  "hero.imageUrl": "detailed prompt specific to {{businessName}}...",
  "features.items[0].imageUrl": "prompt showing specific service/product..."
}"""


DEFAULT_PROMPTS: Dict[str, PromptRecord] = {
    rec.name: rec
    for rec in (
        PromptRecord("onboarding-generate-description", _DESCRIPTION, "gemini-2.5-flash"),
        PromptRecord("onboarding-generate-services", _SERVICES, "gemini-2.5-flash"),
        PromptRecord("onboarding-generate-categories", _CATEGORIES, "gemini-2.5-flash"),
        PromptRecord("onboarding-template-recommendation", _TEMPLATE_RECOMMENDATION, "gemini-2.5-flash"),
        PromptRecord("onboarding-generate-component-content", _COMPONENT_CONTENT, "gemini-2.5-flash"),
        PromptRecord("onboarding-generate-image-prompts", _IMAGE_PROMPTS, "gemini-2.5-flash"),
    )
}


class PromptStore:
    """Named prompt templates, defaults overlaid with optional per-key overrides."""

    def __init__(self, prompts: Optional[Dict[str, PromptRecord]] = None) -> None:
        self._prompts: Dict[str, PromptRecord] = dict(DEFAULT_PROMPTS if prompts is None else prompts)

    def lookup(self, key: str) -> Optional[PromptRecord]:
        return self._prompts.get(key)

    def require(self, key: str) -> PromptRecord:
        rec = self.lookup(key)
        if rec is None:
            raise PromptNotFoundError(f"prompt '{key}' not found")
        return rec

    def override(self, key: str, template: Optional[str] = None, model: Optional[str] = None) -> None:
        current = self._prompts.get(key)
        self._prompts[key] = PromptRecord(
            key,
            template if template is not None else (current.template if current else ""),
            model or (current.model if current else DEFAULT_MODEL),
        )

    def keys(self):
        return self._prompts.keys()


def _read_overrides(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except Exception:
        log.warning("llm_prompts.overrides: failed to read %s", path, exc_info=True)
        return {}
    if not isinstance(data, dict):
        log.warning("llm_prompts.overrides: %s is not a JSON object", path)
        return {}
    return data


def load_prompt_store(overrides_file: Optional[str] = None) -> PromptStore:
    store = PromptStore()
    raw_path = overrides_file if overrides_file is not None else PROMPT_OVERRIDES_FILE
    if not raw_path:
        return store
    path = Path(raw_path)
    if not path.exists():
        log.warning("llm_prompts.overrides: file not found %s", path)
        return store
    for key, entry in _read_overrides(path).items():
        if isinstance(entry, str):
            store.override(key, template=entry)
        elif isinstance(entry, dict):
            template = entry.get("template")
            model = entry.get("model")
            store.override(
                key,
                template=template if isinstance(template, str) else None,
                model=model if isinstance(model, str) else None,
            )
    log.info("llm_prompts.overrides: loaded overrides from %s", path)
    return store


@functools.lru_cache(maxsize=64)
def _compile(template: str) -> Template:
    return _env.from_string(template)


def fill_prompt(template: str, **values: Any) -> str:
    """Substitute ``{{token}}`` placeholders; tokens without a value render back as ``{{ token }}``."""
    return _compile(template).render(**values)
