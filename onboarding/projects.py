from __future__ import annotations

import copy
import datetime
import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from onboarding.assistant import assistant_config
from onboarding.models import GenerationProfile, ImageDraft, SiteTemplate, now_ms


log = logging.getLogger(__name__)

PROJECTS_DIR = Path(os.getenv("PROJECTS_DIR", "cache/projects"))

DEFAULT_FONT = "Inter, system-ui, sans-serif"

DEFAULT_GLOBAL_COLORS: Dict[str, str] = {
    "primary": "#4f46e5",
    "secondary": "#7c3aed",
    "accent": "#f59e0b",
    "background": "#ffffff",
    "surface": "#f8fafc",
    "text": "#334155",
    "textMuted": "#64748b",
    "heading": "#0f172a",
    "border": "#e2e8f0",
    "success": "#10b981",
    "error": "#ef4444",
}

_SLUG_SPACE_RE = re.compile(r"\s+")
_SLUG_STRIP_RE = re.compile(r"[^a-z0-9-]")
_SAFE_ID_RE = re.compile(r"[^A-Za-z0-9_.-]+")


def _timestamp() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def category_slug(name: str) -> str:
    return _SLUG_STRIP_RE.sub("", _SLUG_SPACE_RE.sub("-", name.lower()))


def global_colors(theme: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    colors = (theme or {}).get("globalColors")
    if not isinstance(colors, dict):
        return dict(DEFAULT_GLOBAL_COLORS)
    return {**DEFAULT_GLOBAL_COLORS, **{k: v for k, v in colors.items() if isinstance(v, str) and v}}


def storefront_theme(colors: Mapping[str, str], theme: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    theme = theme or {}
    return {
        "primaryColor": colors["primary"],
        "secondaryColor": colors["secondary"],
        "accentColor": colors["accent"],
        "backgroundColor": colors["background"],
        "cardBackground": colors["surface"],
        "headerBackground": colors["primary"],
        "footerBackground": colors["surface"],
        "textColor": colors["text"],
        "headingColor": colors["heading"],
        "mutedTextColor": colors["textMuted"],
        "linkColor": colors["primary"],
        "buttonBackground": colors["primary"],
        "buttonText": "#ffffff",
        "buttonSecondaryBackground": colors["surface"],
        "buttonSecondaryText": colors["text"],
        "buttonHoverBackground": colors["secondary"],
        "badgeBackground": colors["primary"],
        "badgeText": "#ffffff",
        "saleBadgeBackground": colors["error"],
        "saleBadgeText": "#ffffff",
        "priceColor": colors["heading"],
        "salePriceColor": colors["error"],
        "originalPriceColor": colors["textMuted"],
        "overlayStart": "transparent",
        "overlayEnd": "rgba(0,0,0,0.7)",
        "borderColor": colors["border"],
        "dividerColor": colors["border"],
        "inputBorderColor": colors["border"],
        "successColor": colors["success"],
        "warningColor": colors["accent"],
        "errorColor": colors["error"],
        "infoColor": colors["primary"],
        "cartBadgeBackground": colors["error"],
        "cartBadgeText": "#ffffff",
        "checkoutAccent": colors["primary"],
        "fontFamily": theme.get("fontFamilyBody") or DEFAULT_FONT,
        "headingFontFamily": theme.get("fontFamilyHeader") or DEFAULT_FONT,
    }


def build_menus(spanish: bool) -> List[Dict[str, Any]]:
    def t(es: str, en: str) -> str:
        return es if spanish else en

    return [
        {
            "id": "main",
            "title": "Main Menu",
            "handle": "main-menu",
            "items": [
                {"id": "nav-1", "text": t("Inicio", "Home"), "href": "/", "type": "section"},
                {"id": "nav-2", "text": t("Servicios", "Services"), "href": "/#services", "type": "section"},
                {"id": "nav-3", "text": t("Nosotros", "About"), "href": "/#about", "type": "section"},
                {"id": "nav-4", "text": t("Contacto", "Contact"), "href": "/#contact", "type": "section"},
            ],
        },
        {
            "id": "footer",
            "title": "Footer Menu",
            "handle": "footer-menu",
            "items": [
                {"id": "f-1", "text": t("Inicio", "Home"), "href": "/", "type": "section"},
                {"id": "f-2", "text": t("Contacto", "Contact"), "href": "/#contact", "type": "section"},
            ],
        },
    ]


def section_visibility(template: SiteTemplate, profile: GenerationProfile) -> Dict[str, bool]:
    visibility = dict(template.section_visibility)
    for section in profile.enabled_components or []:
        visibility[section] = True
    for section in profile.disabled_components:
        visibility[section] = False
    return visibility


STORE_PAGE_SECTIONS = ("header", "productHero", "featuredProducts", "categoryGrid", "trustBadges", "footer")


def _page(
    page_id: str,
    title: str,
    slug: str,
    sections: Sequence[str],
    data: Mapping[str, Any],
    seo: Dict[str, str],
    order: int,
) -> Dict[str, Any]:
    ts = _timestamp()
    return {
        "id": page_id,
        "title": title,
        "slug": slug,
        "type": "static",
        "sections": list(sections),
        "sectionData": {s: copy.deepcopy(data[s]) for s in sections if isinstance(data.get(s), dict)},
        "seo": seo,
        "isHomePage": slug == "/",
        "showInNavigation": True,
        "navigationOrder": order,
        "createdAt": ts,
        "updatedAt": ts,
    }


def build_pages(
    component_order: Sequence[str],
    visibility: Mapping[str, bool],
    merged: Mapping[str, Any],
    profile: GenerationProfile,
) -> List[Dict[str, Any]]:
    """Home page from the visible sections in order, plus a store page for e-commerce profiles."""
    es = profile.is_spanish
    sections = [s for s in component_order if visibility.get(s, False)]
    seo = {"title": profile.business_name, "description": (profile.description or "")[:160] or profile.business_name}
    pages = [_page("page-home", "Inicio" if es else "Home", "/", sections, merged, seo, 0)]
    if profile.has_ecommerce:
        title = "Tienda" if es else "Store"
        store_seo = {
            "title": f"{title} - {profile.business_name}",
            "description": "Explora nuestra tienda online" if es else "Browse our online store",
        }
        pages.append(_page("page-store", title, "/tienda" if es else "/store", STORE_PAGE_SECTIONS, merged, store_seo, 1))
    return pages


def build_project(
    template: SiteTemplate,
    profile: GenerationProfile,
    merged: Dict[str, Any],
    image_urls: Mapping[str, str],
    drafts: Sequence[ImageDraft],
) -> Dict[str, Any]:
    """Project record handed to the repository: merged data plus presentation metadata."""
    visibility = section_visibility(template, profile)
    return {
        "id": f"proj_{now_ms()}",
        "name": profile.business_name,
        "thumbnailUrl": image_urls.get("hero.imageUrl") or template.thumbnail_url,
        "status": "Draft",
        "lastUpdated": _timestamp(),
        "data": merged,
        "theme": template.theme,
        "brandIdentity": {
            "name": profile.business_name,
            "industry": profile.industry,
            "targetAudience": "General",
            "toneOfVoice": "Professional",
            "coreValues": (profile.description or "")[:100],
            "language": profile.language_name,
        },
        "componentOrder": list(template.component_order),
        "sectionVisibility": visibility,
        "pages": build_pages(template.component_order, visibility, merged, profile),
        "sourceTemplateId": template.id,
        "imagePrompts": {d.key: d.prompt for d in drafts},
        "menus": build_menus(profile.is_spanish),
        "aiAssistantConfig": assistant_config(profile, global_colors(template.theme)),
    }


def ecommerce_documents(
    project: Mapping[str, Any],
    profile: GenerationProfile,
    template: SiteTemplate,
) -> List[tuple]:
    """``(collection, doc_id, document)`` triples that scaffold a store for ``project``."""
    setup = profile.store_setup
    if setup is None:
        return []
    pid = project["id"]
    owner = profile.user_id or ""
    store_name = setup.store_name or profile.business_name
    colors = global_colors(template.theme)
    sf_theme = storefront_theme(colors, template.theme)
    ts = _timestamp()

    docs: List[tuple] = [
        (
            f"projects/{pid}/ecommerce",
            "config",
            {
                "projectId": pid,
                "projectName": project["name"],
                "ecommerceEnabled": True,
                "storeId": pid,
                "storeName": store_name,
                "createdAt": ts,
                "updatedAt": ts,
            },
        ),
        (
            "stores",
            pid,
            {
                "name": setup.store_name or f"Tienda - {profile.business_name}",
                "projectId": pid,
                "isActive": True,
                "ownerId": owner,
                "createdAt": ts,
                "updatedAt": ts,
            },
        ),
        (
            f"stores/{pid}/settings",
            "store",
            {
                "storeName": store_name,
                "storeEmail": profile.contact_info.email or "",
                "currency": setup.currency,
                "currencySymbol": setup.currency_symbol,
                "taxEnabled": False,
                "taxRate": 0,
                "taxName": "IVA",
                "taxIncluded": False,
                "shippingZones": [],
                "freeShippingThreshold": 0,
                "stripeEnabled": False,
                "paypalEnabled": False,
                "cashOnDeliveryEnabled": True,
                "lowStockNotifications": True,
                "lowStockThreshold": 5,
                "notifyOnNewOrder": True,
                "notifyOnLowStock": True,
                "sendOrderConfirmation": True,
                "sendShippingNotification": True,
                "requirePhone": False,
                "requireShippingAddress": setup.shipping_type != "digital_only",
                "storefrontTheme": sf_theme,
                "createdAt": ts,
                "updatedAt": ts,
            },
        ),
    ]
    ms = now_ms()
    for i, name in enumerate(setup.selected_categories):
        cat_id = f"cat-{ms}-{i}"
        docs.append(
            (
                f"stores/{pid}/categories",
                cat_id,
                {
                    "id": cat_id,
                    "name": name,
                    "slug": category_slug(name),
                    "description": "",
                    "imageUrl": "",
                    "order": i,
                    "isActive": True,
                    "createdAt": ts,
                    "updatedAt": ts,
                },
            )
        )
    docs.append(
        (
            "publicStores",
            pid,
            {
                "storeId": pid,
                "storeName": store_name,
                "ownerId": owner,
                "isActive": True,
                "storefrontTheme": sf_theme,
                "theme": {
                    "primaryColor": colors["primary"],
                    "secondaryColor": colors["secondary"],
                    "accentColor": colors["accent"],
                    "backgroundColor": colors["background"],
                    "textColor": colors["text"],
                    "headingColor": colors["heading"],
                    "fontFamily": (template.theme or {}).get("fontFamilyBody") or DEFAULT_FONT,
                },
                "currencySymbol": setup.currency_symbol,
                "createdAt": ts,
                "updatedAt": ts,
            },
        )
    )
    return docs


class FileProjectRepository:
    """Documents stored as ``{root}/{collection}/{doc_id}.json``, written atomically."""

    def __init__(self, root: Optional[Path] = None) -> None:
        self.root = Path(root) if root is not None else PROJECTS_DIR

    def _path(self, collection: str, doc_id: str) -> Path:
        parts = [_SAFE_ID_RE.sub("_", p) for p in collection.split("/") if p]
        return self.root.joinpath(*parts, f"{_SAFE_ID_RE.sub('_', doc_id)}.json")

    async def put(self, collection: str, doc_id: str, doc: Mapping[str, Any]) -> Path:
        path = self._path(collection, doc_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(doc, ensure_ascii=False, separators=(",", ":")), encoding="utf-8")
        tmp.replace(path)
        return path

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        path = self._path(collection, doc_id)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    async def create_project(self, project: Mapping[str, Any]) -> str:
        await self.put("projects", project["id"], project)
        log.info("projects.create: stored %s (%s)", project["id"], project.get("name"))
        return project["id"]

    async def provision_ecommerce(
        self,
        project: Mapping[str, Any],
        profile: GenerationProfile,
        template: SiteTemplate,
    ) -> int:
        docs = ecommerce_documents(project, profile, template)
        for collection, doc_id, doc in docs:
            await self.put(collection, doc_id, doc)
        log.info(
            "projects.ecommerce: scaffolded store for %s (%d categories)",
            project["id"],
            len(profile.store_categories()),
        )
        return len(docs)
