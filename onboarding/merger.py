from __future__ import annotations

import copy
import datetime
import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from onboarding.models import GeneratedContentBundle, GenerationProfile


log = logging.getLogger(__name__)

# Slot count assumed when the template section has no list of its own
DEFAULT_SLOTS: Dict[str, int] = {
    "services": 6,
    "features": 6,
    "testimonials": 3,
    "team": 4,
    "portfolio": 6,
    "howItWorks": 4,
    "pricing": 3,
    "faq": 6,
    "menu": 6,
    "slideshow": 5,
}

# Never render more than this many entries, whatever the template or model offers
HARD_CAPS: Dict[str, int] = {
    "services": 6,
    "features": 6,
    "testimonials": 6,
    "team": 8,
    "portfolio": 9,
    "howItWorks": 6,
    "pricing": 4,
    "faq": 10,
    "menu": 6,
    "slideshow": 5,
}

_PATH_TOKEN_RE = re.compile(r"([A-Za-z_][A-Za-z0-9_]*)|\[(\d+)\]")


def parse_path(path: str) -> List[Any]:
    """``features.items[2].imageUrl`` -> ``["features", "items", 2, "imageUrl"]``."""
    tokens: List[Any] = []
    for name, index in _PATH_TOKEN_RE.findall(path):
        tokens.append(int(index) if index else name)
    return tokens


def set_path(tree: Dict[str, Any], path: str, value: Any) -> bool:
    """Overwrite an existing leaf container's field; never creates sections or list entries."""
    tokens = parse_path(path)
    if not tokens:
        return False
    node: Any = tree
    for token in tokens[:-1]:
        if isinstance(token, int):
            if not isinstance(node, list) or token >= len(node):
                return False
        elif not isinstance(node, dict) or token not in node:
            return False
        node = node[token]
    last = tokens[-1]
    if isinstance(last, int):
        if not isinstance(node, list) or last >= len(node):
            return False
        node[last] = value
        return True
    if not isinstance(node, dict):
        return False
    node[last] = value
    return True


def slot_count(section: str, generated: int, template_items: Any) -> int:
    slots = len(template_items) if isinstance(template_items, list) and template_items else DEFAULT_SLOTS[section]
    return max(0, min(generated, slots, HARD_CAPS[section]))


def _s(value: Any) -> Any:
    return "" if value is None else value


class _Merge:
    def __init__(
        self,
        data: Dict[str, Any],
        profile: GenerationProfile,
        images: Mapping[str, str],
        bundle: GeneratedContentBundle,
        year: int,
    ) -> None:
        self.data = data
        self.profile = profile
        self.images = images
        self.bundle = bundle
        self.year = year
        self.es = profile.is_spanish
        self.name = profile.business_name
        self.desc = profile.description or ""
        self.tag = profile.tagline or self.desc[:80]
        enabled = profile.enabled_components or []
        self.enabled = set(enabled)

    def t(self, spanish: str, english: str) -> str:
        return spanish if self.es else english

    def is_on(self, section: str) -> bool:
        return isinstance(self.data.get(section), dict) and (not self.enabled or section in self.enabled)

    def image(self, key: str, fallback: Any = "") -> Any:
        url = self.images.get(key)
        return url if url else fallback

    def _rebuild(self, section: str, list_name: str, build) -> bool:
        """Replace ``data[section][list_name]`` from generated records; False when nothing was generated."""
        generated = self.bundle.get(section) or []
        if not generated:
            return False
        sec = self.data[section]
        existing = sec.get(list_name) if isinstance(sec.get(list_name), list) else []
        count = slot_count(section, len(generated), existing)
        items = []
        for i, record in enumerate(generated[:count]):
            base = existing[i] if i < len(existing) and isinstance(existing[i], dict) else {}
            items.append({**base, **build(i, record, base)})
        sec[list_name] = items
        return True

    def _images_only(self, section: str, list_name: str = "items") -> None:
        items = self.data[section].get(list_name)
        if not isinstance(items, list):
            return
        for i, item in enumerate(items):
            url = self.images.get(f"{section}.{list_name}[{i}].imageUrl")
            if url and isinstance(item, dict):
                item["imageUrl"] = url

    def header(self) -> None:
        header = self.data.get("header")
        if not isinstance(header, dict):
            return
        header["companyName"] = self.name
        if "logoText" in header:
            header["logoText"] = self.name
        header["links"] = [
            {"text": self.t("Inicio", "Home"), "href": "/"},
            {"text": self.t("Servicios", "Services"), "href": "/#services"},
            {"text": self.t("Nosotros", "About"), "href": "/#about"},
            {"text": self.t("Contacto", "Contact"), "href": "/#contact"},
        ]

    def hero(self) -> None:
        if self.is_on("hero"):
            hero = self.data["hero"]
            hero["heroVariant"] = "modern"
            hero["headline"] = self.name
            hero["subheadline"] = self.tag
            if "primaryCta" in hero:
                hero["primaryCta"] = self.t("Comenzar", "Get Started")
            if "secondaryCta" in hero:
                hero["secondaryCta"] = self.t("Más Info", "Learn More")
            if "badgeText" in hero:
                hero["badgeText"] = ""
            if self.images.get("hero.imageUrl"):
                hero["imageUrl"] = self.images["hero.imageUrl"]
        if self.is_on("heroSplit"):
            split = self.data["heroSplit"]
            split["headline"] = self.name
            split["subheadline"] = self.tag
            if "buttonText" in split:
                split["buttonText"] = self.t("Contactar", "Contact")
            if self.images.get("heroSplit.imageUrl"):
                split["imageUrl"] = self.images["heroSplit.imageUrl"]

    def services(self) -> None:
        services = self.profile.services
        if not self.is_on("services") or not services:
            return
        sec = self.data["services"]
        sec["servicesVariant"] = "minimal"
        sec["title"] = self.t("Servicios", "Services")
        sec["description"] = self.t("Lo que ofrecemos", "What we offer")
        existing = sec.get("items") if isinstance(sec.get("items"), list) else []
        count = slot_count("services", len(services), existing)
        items = []
        for i, svc in enumerate(services[:count]):
            base = existing[i] if i < len(existing) and isinstance(existing[i], dict) else {}
            items.append({"title": svc.name, "description": svc.description or "", "icon": base.get("icon") or "star"})
        sec["items"] = items

    def features(self) -> None:
        if not self.is_on("features"):
            return
        sec = self.data["features"]
        sec["featuresVariant"] = "classic"
        sec["title"] = self.t("Características", "Features")
        sec["description"] = self.t("Por qué elegirnos", "Why choose us")

        def build(i: int, rec: Dict[str, Any], base: Dict[str, Any]) -> Dict[str, Any]:
            return {
                "title": _s(rec.get("title")),
                "description": _s(rec.get("description")),
                "imageUrl": self.image(f"features.items[{i}].imageUrl", base.get("imageUrl") or ""),
            }

        if not self._rebuild("features", "items", build):
            self._images_only("features")

    def testimonials(self) -> None:
        if not self.is_on("testimonials"):
            return
        sec = self.data["testimonials"]
        sec["title"] = self.t("Testimonios", "Testimonials")
        sec["description"] = self.t("Opiniones de clientes", "Customer reviews")
        self._rebuild(
            "testimonials",
            "items",
            lambda i, rec, base: {
                "quote": _s(rec.get("quote")),
                "name": _s(rec.get("name")),
                "title": _s(rec.get("title")),
            },
        )

    def team(self) -> None:
        if not self.is_on("team"):
            return
        sec = self.data["team"]
        sec["title"] = self.t("Equipo", "Team")
        sec["description"] = self.t("Nuestro equipo", "Our team")
        built = self._rebuild(
            "team",
            "items",
            lambda i, rec, base: {
                "name": _s(rec.get("name")),
                "role": _s(rec.get("role")),
                "imageUrl": self.image(f"team.items[{i}].imageUrl", base.get("imageUrl") or ""),
            },
        )
        if not built:
            self._images_only("team")

    def portfolio(self) -> None:
        if not self.is_on("portfolio"):
            return
        sec = self.data["portfolio"]
        sec["title"] = self.t("Portafolio", "Portfolio")
        sec["description"] = self.t("Nuestros trabajos", "Our work")
        built = self._rebuild(
            "portfolio",
            "items",
            lambda i, rec, base: {
                "title": _s(rec.get("title")),
                "description": _s(rec.get("description")),
                "category": _s(rec.get("category")),
                "imageUrl": self.image(f"portfolio.items[{i}].imageUrl", base.get("imageUrl") or ""),
            },
        )
        if not built:
            self._images_only("portfolio")

    def how_it_works(self) -> None:
        if not self.is_on("howItWorks"):
            return
        sec = self.data["howItWorks"]
        sec["title"] = self.t("Cómo Funciona", "How It Works")
        sec["description"] = self.t("Proceso simple", "Simple process")
        self._rebuild(
            "howItWorks",
            "items",
            lambda i, rec, base: {
                "title": _s(rec.get("title")),
                "description": _s(rec.get("description")),
                "icon": base.get("icon") or "process",
            },
        )

    def pricing(self) -> None:
        if not self.is_on("pricing"):
            return
        sec = self.data["pricing"]
        sec["pricingVariant"] = "classic"
        sec["title"] = self.t("Precios", "Pricing")
        sec["description"] = self.t("Planes disponibles", "Available plans")
        self._rebuild(
            "pricing",
            "tiers",
            lambda i, rec, base: {
                "name": _s(rec.get("name")),
                "price": _s(rec.get("price")),
                "frequency": rec.get("frequency") or "/mes",
                "description": _s(rec.get("description")),
                "features": list(rec.get("features") or []),
                "featured": bool(rec.get("featured")),
                "buttonText": self.t("Elegir", "Choose"),
                "buttonLink": "#contact",
            },
        )

    def faq(self) -> None:
        if not self.is_on("faq"):
            return
        sec = self.data["faq"]
        sec["faqVariant"] = "classic"
        sec["title"] = self.t("Preguntas Frecuentes", "FAQ")
        sec["description"] = self.t("Respuestas a tus dudas", "Answers to your questions")
        self._rebuild(
            "faq",
            "items",
            lambda i, rec, base: {"question": _s(rec.get("question")), "answer": _s(rec.get("answer"))},
        )

    def banners(self) -> None:
        if self.is_on("cta"):
            cta = self.data["cta"]
            cta["headline"] = self.t("¿Listo para empezar?", "Ready to start?")
            cta["subheadline"] = self.t("Contáctanos hoy", "Contact us today")
            if "buttonText" in cta:
                cta["buttonText"] = self.t("Comenzar", "Get Started")
            if self.images.get("cta.backgroundImage"):
                cta["backgroundImage"] = self.images["cta.backgroundImage"]
        if self.is_on("banner"):
            banner = self.data["banner"]
            banner["headline"] = self.name
            banner["subheadline"] = self.tag
            if "buttonText" in banner:
                banner["buttonText"] = self.t("Ver Más", "Learn More")
            if self.images.get("banner.backgroundImageUrl"):
                banner["backgroundImageUrl"] = self.images["banner.backgroundImageUrl"]

    def contact_sections(self) -> None:
        contact = self.profile.contact_info
        if self.is_on("leads"):
            leads = self.data["leads"]
            leads["leadsVariant"] = "floating-glass"
            leads["title"] = self.t("Contacto", "Contact")
            leads["description"] = self.t("Escríbenos", "Write to us")
        if self.is_on("newsletter"):
            self.data["newsletter"]["title"] = "Newsletter"
            self.data["newsletter"]["description"] = self.t("Suscríbete", "Subscribe")
        if self.is_on("map") and contact.address:
            m = self.data["map"]
            m["title"] = self.t("Ubicación", "Location")
            m["description"] = self.t("Visítanos", "Visit us")
            m["address"] = ", ".join(p for p in (contact.address, contact.city, contact.state) if p)

    def menu(self) -> None:
        if not self.is_on("menu"):
            return
        sec = self.data["menu"]
        sec["menuVariant"] = "classic"
        sec["title"] = self.t("Menú", "Menu")
        sec["description"] = self.t("Nuestros platos", "Our dishes")
        built = self._rebuild(
            "menu",
            "items",
            lambda i, rec, base: {
                "name": _s(rec.get("name")),
                "description": _s(rec.get("description")),
                "price": _s(rec.get("price")),
                "category": _s(rec.get("category")),
                "imageUrl": self.image(f"menu.items[{i}].imageUrl", base.get("imageUrl") or ""),
            },
        )
        if not built:
            self._images_only("menu")

    def slideshow(self) -> None:
        if not self.is_on("slideshow"):
            return
        sec = self.data["slideshow"]
        existing = sec.get("items") or sec.get("slides") or []
        if not isinstance(existing, list):
            existing = []
        generated = self.bundle.get("slideshow") or []
        if generated:
            count = slot_count("slideshow", len(generated), existing)
            items = []
            for i, slide in enumerate(generated[:count]):
                base = existing[i] if i < len(existing) and isinstance(existing[i], dict) else {}
                title = _s(slide.get("title"))
                subtitle = _s(slide.get("subtitle"))
                items.append(
                    {
                        **base,
                        "title": title,
                        "subtitle": subtitle,
                        "altText": title or f"Gallery image {i + 1}",
                        "caption": subtitle,
                        "ctaText": slide.get("ctaText") or self.t("Ver Más", "Learn More"),
                        "imageUrl": self.image(f"slideshow.items[{i}].imageUrl", base.get("imageUrl") or ""),
                    }
                )
            sec["items"] = items
        elif existing:
            sec["items"] = [
                {**item, "imageUrl": self.image(f"slideshow.items[{i}].imageUrl", item.get("imageUrl") or "")}
                if isinstance(item, dict)
                else item
                for i, item in enumerate(existing)
            ]
        sec.pop("slides", None)

    def footer(self) -> None:
        footer = self.data.get("footer")
        if not isinstance(footer, dict):
            return
        contact = self.profile.contact_info
        footer["title"] = self.name
        footer["description"] = self.desc[:150]
        footer["copyrightText"] = f"© {self.year} {self.name}"
        if footer.get("socialLinks"):
            links = [
                {"platform": platform, "href": getattr(contact, platform)}
                for platform in ("facebook", "instagram", "twitter", "linkedin")
                if getattr(contact, platform)
            ]
            if links:
                footer["socialLinks"] = links
        footer["contactInfo"] = {
            "address": contact.address or "",
            "city": contact.city or "",
            "state": contact.state or "",
            "zipCode": contact.zip_code or "",
            "country": contact.country or "",
            "phone": contact.phone or "",
            "email": contact.email or "",
            "businessHours": contact.business_hours or "",
        }

    def remaining_images(self) -> int:
        applied = 0
        for path, url in self.images.items():
            if not url:
                continue
            section = path.split(".", 1)[0].split("[", 1)[0]
            if not self.is_on(section):
                continue
            if set_path(self.data, path, url):
                applied += 1
            else:
                log.debug("merger.images: no slot for %s; keeping template value", path)
        return applied


def merge(
    template_data: Dict[str, Any],
    profile: GenerationProfile,
    image_urls: Optional[Mapping[str, str]] = None,
    bundle: Optional[GeneratedContentBundle] = None,
    year: Optional[int] = None,
) -> Dict[str, Any]:
    """Apply profile text, generated records and image URLs to a copy of ``template_data``.

    The input tree is never modified. Sections missing from
    ``profile.enabled_components`` keep their template values (an empty or
    absent list enables every section). Generated lists are cut to
    ``min(generated, template slots, hard cap)``.
    """
    data = copy.deepcopy(template_data)
    m = _Merge(
        data,
        profile,
        image_urls or {},
        bundle or {},
        year if year is not None else datetime.date.today().year,
    )
    m.header()
    m.hero()
    m.services()
    m.features()
    m.testimonials()
    m.team()
    m.portfolio()
    m.how_it_works()
    m.pricing()
    m.faq()
    m.banners()
    m.contact_sections()
    m.menu()
    m.slideshow()
    m.footer()
    applied = m.remaining_images()
    log.info(
        "merger.merge: sections=%d generated=%s images=%d",
        len(data),
        ",".join(sorted(m.bundle)) or "none",
        applied,
    )
    return data
