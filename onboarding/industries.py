from __future__ import annotations

from typing import Dict, List


# recommended / optional / disabled sections per industry
INDUSTRY_COMPONENT_DEFAULTS: Dict[str, Dict[str, List[str]]] = {
    "restaurant": {
        "recommended": ["header", "hero", "menu", "testimonials", "map", "leads", "footer"],
        "optional": ["slideshow", "team", "faq", "newsletter", "banner"],
        "disabled": ["pricing", "portfolio", "howItWorks", "features", "services"],
    },
    "cafe": {
        "recommended": ["header", "hero", "menu", "testimonials", "map", "leads", "footer"],
        "optional": ["slideshow", "team", "newsletter", "banner"],
        "disabled": ["pricing", "portfolio", "howItWorks", "features", "services", "faq"],
    },
    "technology": {
        "recommended": ["header", "hero", "features", "pricing", "testimonials", "faq", "cta", "footer"],
        "optional": ["team", "portfolio", "video", "howItWorks", "newsletter"],
        "disabled": ["menu", "map", "services", "banner", "slideshow"],
    },
    "healthcare": {
        "recommended": ["header", "hero", "services", "team", "testimonials", "leads", "map", "footer"],
        "optional": ["faq", "newsletter", "video"],
        "disabled": ["menu", "pricing", "portfolio", "slideshow", "banner", "howItWorks"],
    },
    "consulting": {
        "recommended": ["header", "hero", "services", "testimonials", "team", "leads", "cta", "footer"],
        "optional": ["faq", "portfolio", "newsletter", "video"],
        "disabled": ["menu", "map", "pricing", "slideshow", "banner", "howItWorks"],
    },
    "ecommerce": {
        "recommended": ["header", "hero", "features", "testimonials", "faq", "newsletter", "cta", "footer"],
        "optional": ["video", "howItWorks", "team"],
        "disabled": ["menu", "map", "leads", "services", "portfolio", "slideshow"],
    },
    "fitness-gym": {
        "recommended": ["header", "hero", "services", "pricing", "team", "testimonials", "leads", "map", "footer"],
        "optional": ["slideshow", "video", "faq", "newsletter", "cta"],
        "disabled": ["menu", "portfolio", "howItWorks", "banner"],
    },
    "photography": {
        "recommended": ["header", "hero", "portfolio", "testimonials", "pricing", "leads", "footer"],
        "optional": ["slideshow", "video", "faq", "team"],
        "disabled": ["menu", "map", "services", "features", "howItWorks", "newsletter", "banner"],
    },
    "real-estate": {
        "recommended": ["header", "hero", "portfolio", "services", "testimonials", "leads", "map", "footer"],
        "optional": ["team", "faq", "video", "slideshow"],
        "disabled": ["menu", "pricing", "howItWorks", "newsletter", "banner"],
    },
    "beauty-spa": {
        "recommended": ["header", "hero", "services", "pricing", "testimonials", "team", "leads", "map", "footer"],
        "optional": ["slideshow", "faq", "newsletter", "video"],
        "disabled": ["menu", "portfolio", "howItWorks", "banner"],
    },
    "automotive": {
        "recommended": ["header", "hero", "services", "portfolio", "testimonials", "leads", "map", "footer"],
        "optional": ["team", "faq", "slideshow", "video"],
        "disabled": ["menu", "pricing", "howItWorks", "newsletter", "banner"],
    },
    "legal": {
        "recommended": ["header", "hero", "services", "team", "testimonials", "leads", "footer"],
        "optional": ["faq", "portfolio", "map"],
        "disabled": ["menu", "pricing", "howItWorks", "newsletter", "banner", "slideshow", "video"],
    },
    "finance": {
        "recommended": ["header", "hero", "services", "features", "testimonials", "team", "leads", "footer"],
        "optional": ["faq", "cta"],
        "disabled": ["menu", "pricing", "portfolio", "howItWorks", "newsletter", "banner", "slideshow", "map", "video"],
    },
    "construction": {
        "recommended": ["header", "hero", "services", "portfolio", "testimonials", "leads", "map", "footer"],
        "optional": ["team", "faq", "video"],
        "disabled": ["menu", "pricing", "howItWorks", "newsletter", "banner", "slideshow"],
    },
    "education": {
        "recommended": ["header", "hero", "features", "services", "testimonials", "team", "faq", "leads", "footer"],
        "optional": ["video", "pricing", "newsletter"],
        "disabled": ["menu", "portfolio", "howItWorks", "banner", "slideshow", "map"],
    },
    "travel": {
        "recommended": ["header", "hero", "portfolio", "testimonials", "leads", "footer"],
        "optional": ["slideshow", "team", "faq", "video", "newsletter", "map"],
        "disabled": ["menu", "pricing", "services", "howItWorks", "banner"],
    },
    "event-planning": {
        "recommended": ["header", "hero", "services", "portfolio", "testimonials", "leads", "footer"],
        "optional": ["team", "faq", "pricing", "slideshow", "video"],
        "disabled": ["menu", "map", "howItWorks", "newsletter", "banner"],
    },
    "default": {
        "recommended": ["header", "hero", "features", "testimonials", "cta", "leads", "footer"],
        "optional": ["services", "team", "faq", "newsletter", "video", "portfolio"],
        "disabled": ["menu", "map", "slideshow", "banner", "howItWorks", "pricing"],
    },
}

_VISUAL_STYLES: Dict[str, str] = {
    "restaurant": "warm lighting, cozy atmosphere, rich colors, appetizing, inviting ambiance",
    "technology": "clean minimalist, blue tones, modern sleek, futuristic, cool lighting",
    "healthcare": "clean white, soft blue accents, calm serene, professional medical, trustworthy",
    "consulting": "corporate professional, neutral tones, sophisticated, elegant business",
    "fitness-gym": "dynamic energetic, high contrast, motivational, athletic, bold colors",
    "photography": "artistic creative, dramatic lighting, professional portfolio style",
    "real-estate": "bright airy, natural light, luxurious, aspirational, warm welcoming",
    "education": "bright cheerful, friendly colors, inclusive, inspiring, approachable",
    "beauty-spa": "soft pastel, relaxing serene, luxurious elegant, calming, feminine",
    "automotive": "sleek metallic, dramatic lighting, powerful dynamic, premium quality",
    "legal": "formal traditional, dark wood tones, authoritative, trustworthy, professional",
    "finance": "corporate blue, clean professional, trustworthy, sophisticated, stable",
    "construction": "industrial strong, earthy tones, solid reliable, professional craft",
    "retail": "bright vibrant, appealing display, inviting, commercial quality",
    "travel": "vibrant scenic, adventure inspiring, wanderlust, natural beauty",
    "event-planning": "elegant celebration, festive glamorous, joyful, memorable moments",
}
DEFAULT_VISUAL_STYLE = "professional modern, clean aesthetic, high quality, balanced lighting"

_COLOR_PREFERENCES: Dict[str, str] = {
    "restaurant": "warm colors (orange, red, brown), appetizing, cozy",
    "technology": "blue, dark themes, modern, sleek",
    "healthcare": "blue, white, green, clean, trustworthy",
    "consulting": "blue, dark, professional, corporate",
    "fitness-gym": "bold colors (red, orange, black), energetic, dynamic",
    "photography": "dark, minimal, artistic, elegant",
    "real-estate": "blue, green, luxurious, trustworthy",
    "beauty-spa": "soft pastels, pink, purple, elegant, relaxing",
    "automotive": "dark, red, metallic, powerful, premium",
    "legal": "dark blue, gold, traditional, authoritative",
    "finance": "blue, green, stable, trustworthy",
    "construction": "orange, yellow, strong, industrial",
    "education": "bright, friendly, approachable, blue/green",
    "travel": "blue, vibrant, adventurous, inspiring",
    "event-planning": "elegant, festive, purple, gold",
}

_FALLBACK_CATEGORIES: Dict[str, List[str]] = {
    "fashion": ["Ropa de Mujer", "Ropa de Hombre", "Accesorios", "Calzado", "Bolsos"],
    "retail": ["Productos Destacados", "Ofertas", "Nuevos Productos", "Categoría Principal"],
    "jewelry": ["Anillos", "Collares", "Aretes", "Pulseras", "Relojes"],
    "electronics": ["Smartphones", "Laptops", "Accesorios", "Audio", "Gaming"],
    "home-decor": ["Sala", "Dormitorio", "Cocina", "Baño", "Decoración"],
    "beauty-products": ["Skincare", "Maquillaje", "Cabello", "Fragancias", "Sets"],
    "food-products": ["Alimentos", "Bebidas", "Snacks", "Orgánicos", "Gourmet"],
    "crafts": ["Artesanías", "Manualidades", "Arte", "Decorativo", "Personalizado"],
    "sports-equipment": ["Fitness", "Deportes", "Outdoor", "Accesorios", "Ropa Deportiva"],
}
DEFAULT_CATEGORIES = ["Categoría 1", "Categoría 2", "Categoría 3", "Categoría 4"]


def component_defaults(industry: str) -> Dict[str, List[str]]:
    return INDUSTRY_COMPONENT_DEFAULTS.get(industry) or INDUSTRY_COMPONENT_DEFAULTS["default"]


def visual_style(industry: str) -> str:
    """Style preset shared by every image of one project."""
    key = "-".join((industry or "").lower().split()) or "default"
    return _VISUAL_STYLES.get(key, DEFAULT_VISUAL_STYLE)


def color_preference(industry: str) -> str:
    return _COLOR_PREFERENCES.get(industry, "professional, balanced")


def fallback_categories(industry: str) -> List[str]:
    return list(_FALLBACK_CATEGORIES.get(industry, DEFAULT_CATEGORIES))
