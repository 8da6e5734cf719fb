import asyncio
import json

import pytest

from onboarding.assistant import assistant_config, determine_tone
from onboarding.catalog import TemplateCatalog
from onboarding.models import ContactInfo, ImageDraft, StoreSetup, TemplateNotFoundError
from onboarding.projects import (
    DEFAULT_GLOBAL_COLORS,
    FileProjectRepository,
    build_menus,
    build_pages,
    build_project,
    category_slug,
    ecommerce_documents,
    global_colors,
    section_visibility,
)

from tests.fakes import TEMPLATE_DATA, make_profile, make_template


def _store_profile(**overrides):
    fields = dict(
        has_ecommerce=True,
        user_id="owner-1",
        contact_info=ContactInfo(email="hola@casataco.mx"),
        store_setup=StoreSetup(
            store_name="Casa Taco Shop",
            currency="MXN",
            shipping_type="digital_only",
            selected_categories=["Salsas Picantes", "Merch & Gifts"],
        ),
    )
    fields.update(overrides)
    return make_profile(**fields)


def test_category_slug():
    assert category_slug("Salsas Picantes") == "salsas-picantes"
    assert category_slug("Merch & Gifts") == "merch--gifts"
    assert category_slug("Año Nuevo") == "ao-nuevo"


def test_global_colors_fill_defaults():
    colors = global_colors({"globalColors": {"primary": "#111111", "accent": ""}})
    assert colors["primary"] == "#111111"
    assert colors["accent"] == DEFAULT_GLOBAL_COLORS["accent"]
    assert global_colors(None) == DEFAULT_GLOBAL_COLORS


def test_menus_follow_language():
    assert [i["text"] for i in build_menus(True)[0]["items"]] == ["Inicio", "Servicios", "Nosotros", "Contacto"]
    assert build_menus(False)[1]["items"][1] == {"id": "f-2", "text": "Contact", "href": "/#contact", "type": "section"}


def test_section_visibility_applies_profile_choices():
    profile = make_profile(enabled_components=["cta"], disabled_components=["faq"])
    visibility = section_visibility(make_template(), profile)
    assert visibility["cta"] is True
    assert visibility["faq"] is False
    assert visibility["hero"] is True


def test_build_project_record(template):
    drafts = [ImageDraft(key="hero.imageUrl", prompt="tacos on a grill")]
    project = build_project(template, make_profile(language="es"), {"hero": {}}, {"hero.imageUrl": "https://img.example/h.png"}, drafts)
    assert project["id"].startswith("proj_")
    assert project["name"] == "Casa Taco"
    assert project["status"] == "Draft"
    assert project["thumbnailUrl"] == "https://img.example/h.png"
    assert project["sourceTemplateId"] == "tpl-restaurant"
    assert project["imagePrompts"] == {"hero.imageUrl": "tacos on a grill"}
    assert project["brandIdentity"]["language"] == "Spanish"
    assert project["componentOrder"] == template.component_order
    assert project["menus"][0]["items"][0]["text"] == "Inicio"
    assert project["pages"][0]["title"] == "Inicio"
    assert project["aiAssistantConfig"]["agentName"] == "Asistente de Casa Taco"

    project = build_project(template, make_profile(), {}, {}, [])
    assert project["thumbnailUrl"] == "https://img.example/thumb.jpg"


def test_pages_follow_visible_order_and_store_flag():
    merged = {"header": {"companyName": "Casa Taco"}, "hero": {"headline": "Casa Taco"}, "faq": {"items": []}}
    visibility = {"header": True, "hero": True, "faq": False, "map": True}
    pages = build_pages(["header", "hero", "faq", "map"], visibility, merged, make_profile())
    assert len(pages) == 1
    home = pages[0]
    assert (home["title"], home["slug"], home["navigationOrder"]) == ("Home", "/", 0)
    assert home["sections"] == ["header", "hero", "map"]
    assert home["sectionData"] == {"header": {"companyName": "Casa Taco"}, "hero": {"headline": "Casa Taco"}}
    assert home["sectionData"]["hero"] is not merged["hero"]
    assert home["seo"]["title"] == "Casa Taco"

    pages = build_pages(["header"], {"header": True}, merged, _store_profile(language="es"))
    store = pages[1]
    assert (store["title"], store["slug"], store["isHomePage"]) == ("Tienda", "/tienda", False)
    assert store["sections"][1] == "productHero"
    assert list(store["sectionData"]) == ["header"]


def test_assistant_config_uses_profile_and_colors():
    colors = global_colors({"globalColors": {"primary": "#fafafa"}})
    profile = _store_profile(
        industry="legal",
        services=[{"id": "s1", "name": "Contracts", "description": "Drafting"}],
        contact_info=ContactInfo(phone="555-0100", address="Calle 5", city="Oaxaca"),
    )
    config = assistant_config(profile, colors)
    assert config["agentName"] == "Casa Taco Assistant"
    assert config["tone"] == "Formal"
    assert config["widgetColor"] == "#fafafa"
    assert config["productsServices"] == "- Contracts: Drafting"
    assert config["policiesContact"] == "Phone: 555-0100\nAddress: Calle 5, Oaxaca"
    assert "Online store: Casa Taco Shop (MXN $)" in config["businessProfile"]
    assert "ECOMMERCE INSTRUCTIONS" in config["specialInstructions"]
    assert [f["id"] for f in config["faqs"]] == ["def-1", "def-2", "def-3", "ecom-1", "ecom-2"]
    appearance = config["appearance"]
    assert appearance["colors"]["headerText"] == "#1f2937"
    assert appearance["branding"]["logoEmoji"] == "⚖️"

    spanish = assistant_config(make_profile(language="es", industry="plumbing"), colors)
    assert spanish["agentName"] == "Asistente de Casa Taco"
    assert spanish["languages"] == "Spanish, English"
    assert len(spanish["faqs"]) == 3
    assert spanish["appearance"]["branding"]["logoEmoji"] == "💬"
    assert determine_tone("restaurant") == "Friendly"
    assert determine_tone("plumbing") == "Professional"


def test_ecommerce_documents_layout():
    template = make_template()
    project = {"id": "proj_1", "name": "Casa Taco"}
    docs = ecommerce_documents(project, _store_profile(), template)
    collections = [(c, d) for c, d, _ in docs]
    assert collections[:3] == [("projects/proj_1/ecommerce", "config"), ("stores", "proj_1"), ("stores/proj_1/settings", "store")]
    assert collections[-1] == ("publicStores", "proj_1")

    categories = [doc for c, _, doc in docs if c == "stores/proj_1/categories"]
    assert [(c["name"], c["slug"], c["order"]) for c in categories] == [
        ("Salsas Picantes", "salsas-picantes", 0),
        ("Merch & Gifts", "merch--gifts", 1),
    ]

    settings = docs[2][2]
    assert settings["currency"] == "MXN"
    assert settings["storeEmail"] == "hola@casataco.mx"
    assert settings["requireShippingAddress"] is False
    assert settings["storefrontTheme"]["primaryColor"] == "#111111"
    assert settings["storefrontTheme"]["fontFamily"] == "Lora"
    assert docs[1][2]["ownerId"] == "owner-1"
    assert docs[-1][2]["theme"]["fontFamily"] == "Lora"

    assert ecommerce_documents(project, make_profile(), template) == []


def test_repository_writes_project_and_store(tmp_path):
    repo = FileProjectRepository(tmp_path)
    template = make_template()
    project = build_project(template, _store_profile(), {"hero": {"headline": "Casa Taco"}}, {}, [])

    async def run():
        pid = await repo.create_project(project)
        written = await repo.provision_ecommerce(project, _store_profile(), template)
        return pid, written, await repo.get("projects", pid)

    pid, written, stored = asyncio.run(run())
    assert pid == project["id"]
    assert written == 6
    assert stored["data"] == {"hero": {"headline": "Casa Taco"}}
    assert (tmp_path / "stores" / pid / "settings" / "store.json").exists()
    assert len(list((tmp_path / "stores" / pid / "categories").glob("*.json"))) == 2
    assert not list(tmp_path.rglob("*.tmp"))
    assert asyncio.run(repo.get("projects", "missing")) is None


def test_catalog_reads_directory(tmp_path):
    (tmp_path / "a.json").write_text(
        json.dumps({"id": "tpl-a", "name": "A", "data": TEMPLATE_DATA, "industries": ["restaurant"]}),
        encoding="utf-8",
    )
    (tmp_path / "broken.json").write_text("{", encoding="utf-8")
    (tmp_path / "no-id.json").write_text(json.dumps({"name": "No id"}), encoding="utf-8")

    catalog = TemplateCatalog(tmp_path)
    assert [t.id for t in catalog.list()] == ["tpl-a"]
    assert catalog.require("tpl-a").data["hero"]["headline"] == "Template headline"
    assert catalog.get(None) is None

    with pytest.raises(TemplateNotFoundError, match="No template selected"):
        catalog.require("")
    with pytest.raises(TemplateNotFoundError, match="Template not found: ghost"):
        catalog.require("ghost")


def test_catalog_missing_directory_is_empty(tmp_path):
    assert TemplateCatalog(tmp_path / "nope").list() == []
