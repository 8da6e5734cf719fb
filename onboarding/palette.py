from __future__ import annotations

from typing import Any, Dict, Mapping

# Values naming a global colour role are resolved against the theme; anything else is literal
ROLES = ("primary", "secondary", "accent", "background", "surface", "text", "textMuted", "heading", "border", "success", "error")

WHITE = "#ffffff"
CARD_TEXT = "rgba(255, 255, 255, 0.9)"

COMPONENT_COLORS: Dict[str, Dict[str, str]] = {
    "hero": {
        "primary": "primary",
        "secondary": "secondary",
        "background": "background",
        "text": "text",
        "heading": "heading",
        "buttonBackground": "primary",
        "buttonText": WHITE,
        "secondaryButtonBackground": "surface",
        "secondaryButtonText": "text",
    },
    "heroSplit": {
        "textBackground": "background",
        "imageBackground": "surface",
        "heading": "heading",
        "text": "text",
        "buttonBackground": "primary",
        "buttonText": WHITE,
    },
    "banner": {
        "background": "surface",
        "overlayColor": "#000000",
        "heading": "heading",
        "text": "text",
        "buttonBackground": "primary",
        "buttonText": WHITE,
    },
    "map": {
        "background": "background",
        "heading": "heading",
        "text": "text",
        "accent": "primary",
        "cardBackground": "primary",
        "borderColor": "border",
    },
    "features": {
        "background": "background",
        "accent": "primary",
        "borderColor": "border",
        "text": "text",
        "heading": "heading",
        "description": "text",
        "cardBackground": "primary",
        "cardHeading": WHITE,
        "cardText": CARD_TEXT,
    },
    "testimonials": {
        "background": "surface",
        "accent": "primary",
        "borderColor": "border",
        "text": "text",
        "heading": "heading",
        "cardBackground": "primary",
    },
    "cta": {
        "background": "background",
        "gradientStart": "primary",
        "gradientEnd": "secondary",
        "text": WHITE,
        "heading": WHITE,
        "description": "rgba(255, 255, 255, 0.8)",
        "buttonBackground": WHITE,
        "buttonText": "primary",
    },
    "services": {
        "background": "surface",
        "accent": "primary",
        "borderColor": "border",
        "text": "text",
        "heading": "heading",
        "description": "text",
        "cardBackground": "primary",
        "cardHeading": WHITE,
        "cardText": CARD_TEXT,
    },
    "team": {
        "background": "background",
        "text": "text",
        "heading": "heading",
        "accent": "primary",
        "cardBackground": "surface",
        "photoBorderColor": "primary",
    },
    "slideshow": {
        "background": "surface",
        "heading": "heading",
        "arrowBackground": "rgba(0, 0, 0, 0.5)",
        "arrowText": WHITE,
        "dotActive": WHITE,
        "dotInactive": "rgba(255, 255, 255, 0.5)",
        "captionBackground": "rgba(0, 0, 0, 0.7)",
        "captionText": WHITE,
    },
    "pricing": {
        "background": "background",
        "accent": "primary",
        "borderColor": "border",
        "text": "text",
        "heading": "heading",
        "buttonBackground": "primary",
        "buttonText": WHITE,
        "gradientStart": "primary",
        "gradientEnd": "secondary",
        "cardBackground": "surface",
    },
    "faq": {
        "background": "secondary",
        "accent": "primary",
        "borderColor": "border",
        "text": WHITE,
        "heading": WHITE,
        "cardBackground": "secondary",
        "gradientStart": "primary",
        "gradientEnd": "secondary",
    },
    "portfolio": {
        "background": "background",
        "accent": "primary",
        "borderColor": "border",
        "text": "text",
        "heading": "heading",
        "cardBackground": "rgba(0,0,0,0.8)",
        "cardTitleColor": WHITE,
        "cardTextColor": "rgba(255,255,255,0.9)",
        "cardOverlayStart": "rgba(0,0,0,0.9)",
        "cardOverlayEnd": "rgba(0,0,0,0.2)",
    },
    "leads": {
        "background": "background",
        "accent": "primary",
        "borderColor": "border",
        "text": "text",
        "heading": "heading",
        "buttonBackground": "primary",
        "buttonText": WHITE,
        "cardBackground": "primary",
        "inputBackground": "background",
        "inputText": "heading",
        "inputBorder": "border",
        "gradientStart": "primary",
        "gradientEnd": "secondary",
    },
    "newsletter": {
        "background": "surface",
        "accent": "primary",
        "borderColor": "border",
        "text": WHITE,
        "heading": WHITE,
        "buttonBackground": "primary",
        "buttonText": WHITE,
        "inputBackground": "background",
        "inputText": "heading",
        "inputBorder": "border",
    },
    "video": {"background": "surface", "text": "text", "heading": "heading"},
    "howItWorks": {"background": "background", "accent": "primary", "text": "text", "heading": "heading"},
    "footer": {
        "background": "surface",
        "border": "border",
        "text": "textMuted",
        "linkHover": "primary",
        "heading": "heading",
    },
    "header": {"background": "primary", "text": WHITE, "accent": WHITE, "border": "transparent"},
    "menu": {
        "background": "background",
        "accent": "primary",
        "borderColor": "border",
        "text": "text",
        "heading": "heading",
        "cardBackground": "primary",
        "cardTitleColor": WHITE,
        "cardText": CARD_TEXT,
        "priceColor": "secondary",
    },
    "chatbot": {
        "primaryColor": "primary",
        "secondaryColor": "secondary",
        "accentColor": "accent",
        "userBubbleColor": "primary",
        "userTextColor": WHITE,
        "botBubbleColor": "surface",
        "botTextColor": "text",
        "backgroundColor": "background",
        "inputBackground": "surface",
        "inputBorder": "border",
        "inputText": "text",
        "headerBackground": "primary",
        "headerText": WHITE,
    },
    "featuredProducts": {
        "background": "background",
        "heading": "heading",
        "text": "text",
        "accent": "primary",
        "cardBackground": "surface",
        "cardText": "heading",
        "buttonBackground": "primary",
        "buttonText": WHITE,
        "badgeBackground": "primary",
        "badgeText": WHITE,
        "priceColor": "heading",
        "salePriceColor": "error",
        "overlayStart": "transparent",
        "overlayEnd": "rgba(0,0,0,0.7)",
        "borderColor": "border",
    },
    "categoryGrid": {
        "background": "background",
        "heading": "heading",
        "text": "text",
        "accent": "primary",
        "cardBackground": "surface",
        "cardText": "heading",
        "overlayStart": "transparent",
        "overlayEnd": "rgba(0,0,0,0.7)",
        "borderColor": "border",
    },
    "productHero": {
        "background": "background",
        "overlayColor": "#000000",
        "heading": WHITE,
        "text": WHITE,
        "accent": "primary",
        "buttonBackground": "primary",
        "buttonText": WHITE,
        "badgeBackground": "error",
        "badgeText": WHITE,
    },
    "trustBadges": {"background": "surface", "heading": "heading", "text": "text", "accent": "primary", "borderColor": "border"},
    "saleCountdown": {
        "background": "surface",
        "heading": WHITE,
        "text": "textMuted",
        "accent": "error",
        "countdownBackground": "background",
        "countdownText": WHITE,
        "buttonBackground": "error",
        "buttonText": WHITE,
        "badgeBackground": "error",
        "badgeText": WHITE,
    },
    "announcementBar": {
        "background": "primary",
        "text": WHITE,
        "linkColor": WHITE,
        "iconColor": WHITE,
        "borderColor": "border",
    },
    "collectionBanner": {
        "background": "background",
        "overlayColor": "#000000",
        "heading": WHITE,
        "text": WHITE,
        "accent": "primary",
        "buttonBackground": "primary",
        "buttonText": WHITE,
    },
    "recentlyViewed": {
        "background": "background",
        "heading": "heading",
        "text": "text",
        "accent": "primary",
        "cardBackground": "surface",
        "cardText": "heading",
    },
    "productReviews": {
        "background": "background",
        "heading": "heading",
        "text": "text",
        "accent": "primary",
        "cardBackground": "surface",
        "cardText": "heading",
        "starColor": "#fbbf24",
        "verifiedBadgeColor": "success",
    },
    "productBundle": {
        "background": "surface",
        "heading": "heading",
        "text": "text",
        "accent": "primary",
        "cardBackground": "background",
        "cardText": "heading",
        "priceColor": "heading",
        "savingsColor": "success",
        "buttonBackground": "primary",
        "buttonText": WHITE,
        "badgeBackground": "primary",
        "badgeText": WHITE,
    },
    "storeSettings": {
        "background": "background",
        "heading": "heading",
        "text": "text",
        "accent": "primary",
        "cardBackground": "surface",
        "cardText": "heading",
        "buttonBackground": "primary",
        "buttonText": WHITE,
        "badgeBackground": "error",
        "badgeText": WHITE,
        "priceColor": "heading",
        "salePriceColor": "error",
        "borderColor": "border",
        "starColor": "#fbbf24",
    },
    "products": {
        "background": "background",
        "heading": "heading",
        "text": "text",
        "accent": "primary",
        "cardBackground": "surface",
        "cardText": "heading",
        "buttonBackground": "primary",
        "buttonText": WHITE,
    },
    "productDetailPage": {
        "background": "background",
        "heading": "heading",
        "text": "text",
        "accent": "primary",
        "cardBackground": "surface",
        "cardText": "heading",
        "buttonBackground": "primary",
        "buttonText": WHITE,
        "badgeBackground": "error",
        "badgeText": WHITE,
        "priceColor": "heading",
        "salePriceColor": "error",
        "borderColor": "border",
        "starColor": "#fbbf24",
        "linkColor": "primary",
        "secondaryButtonBackground": "surface",
        "secondaryButtonText": "text",
    },
}

# Created with colours only when the template lacks them, so the storefront and chat widget match the site
STUB_COMPONENTS = (
    "chatbot",
    "featuredProducts",
    "categoryGrid",
    "productHero",
    "trustBadges",
    "saleCountdown",
    "announcementBar",
    "collectionBanner",
    "recentlyViewed",
    "productReviews",
    "productBundle",
    "storeSettings",
    "productDetailPage",
)


def hex_to_rgba(color: str, alpha: float) -> str:
    value = color.lstrip("#")
    if len(value) == 3:
        value = "".join(c * 2 for c in value)
    try:
        r, g, b = (int(value[i : i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        return color
    return f"rgba({r}, {g}, {b}, {alpha})"


def is_dark(color: str) -> bool:
    value = color.lstrip("#")
    try:
        r, g, b = (int(value[i : i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        return False
    return (0.299 * r + 0.587 * g + 0.114 * b) / 255 < 0.5


def component_colors(colors: Mapping[str, str]) -> Dict[str, Dict[str, str]]:
    """Per-component ``colors`` blocks derived from one set of global colours."""
    mapping: Dict[str, Dict[str, str]] = {}
    for component, fields in COMPONENT_COLORS.items():
        resolved = {}
        for field, value in fields.items():
            if value in ROLES:
                value = colors.get(value)
            if value:
                resolved[field] = value
        mapping[component] = resolved
    mapping["newsletter"]["cardBackground"] = hex_to_rgba(colors.get("primary", ""), 0.75)
    return mapping


def apply_component_colors(data: Dict[str, Any], colors: Mapping[str, str]) -> Dict[str, Any]:
    """Overlay the derived colours onto every component of ``data`` in place; returns ``data``."""
    for component, resolved in component_colors(colors).items():
        section = data.get(component)
        if isinstance(section, dict):
            existing = section.get("colors") if isinstance(section.get("colors"), dict) else {}
            section["colors"] = {**existing, **resolved}
        elif component in STUB_COMPONENTS:
            data[component] = {"colors": dict(resolved)}
    return data
