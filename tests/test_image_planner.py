import asyncio
import json

from onboarding.content import ContentGenerator
from onboarding.image_planner import (
    ImagePromptPlanner,
    build_fallback_prompts,
    image_slots,
)
from onboarding.llm_prompts import PromptStore
from onboarding.merger import merge, parse_path

from tests.fakes import TEMPLATE_DATA, FakeContentEndpoint, make_profile


def _planner(answer):
    endpoint = FakeContentEndpoint({"onboarding-image-prompts": answer})
    return ImagePromptPlanner(ContentGenerator(endpoint, PromptStore(), call_timeout=0)), endpoint


def test_slots_follow_enabled_sections_and_caps():
    bundle = {"menu": [{"name": f"Dish {i}"} for i in range(5)]}
    slots = image_slots(TEMPLATE_DATA, ["hero", "features", "menu", "cta"], bundle)
    assert [(s.key, s.aspect_ratio) for s in slots] == [
        ("hero.imageUrl", "16:9"),
        ("cta.backgroundImage", "16:9"),
        ("features.items[0].imageUrl", "1:1"),
        ("features.items[1].imageUrl", "1:1"),
        ("features.items[2].imageUrl", "1:1"),
        ("menu.items[0].imageUrl", "1:1"),
        ("menu.items[1].imageUrl", "1:1"),
    ]
    assert slots[-1].description == "Menu dish: Dish 1 - "

    data = {"menu": {"items": [{"name": f"Plate {i}"} for i in range(5)]}}
    assert [s.key for s in image_slots(data, ["menu"], bundle)] == [f"menu.items[{i}].imageUrl" for i in range(3)]


def test_sections_missing_from_template_or_disabled_are_skipped():
    slots = image_slots(TEMPLATE_DATA, ["hero", "slideshow", "banner", "heroSplit"], {})
    assert [s.key for s in slots] == ["hero.imageUrl"]
    assert image_slots(TEMPLATE_DATA, ["faq", "testimonials"], {}) == []


def test_cta_needs_background_field():
    data = {"cta": {"headline": "x"}}
    assert image_slots(data, ["cta"], {}) == []


def test_legacy_slides_map_to_items_and_cap_at_one():
    data = {"slideshow": {"slides": [{"title": "A"}, {"title": "B"}]}}
    slots = image_slots(data, ["slideshow"], {})
    assert [s.key for s in slots] == ["slideshow.items[0].imageUrl"]
    assert slots[0].description == "Gallery/Slideshow: A - "


def test_no_slots_yields_single_generic_hero():
    planner = ImagePromptPlanner()
    drafts = asyncio.run(planner.plan(TEMPLATE_DATA, make_profile(), ["faq"], {}))
    assert len(drafts) == 1
    assert drafts[0].key == "hero.imageUrl"
    assert drafts[0].aspect_ratio == "16:9"
    assert drafts[0].prompt.startswith("restaurant business hero, consistent style, warm lighting")


def test_fallback_prompts_reference_business_and_items():
    profile = make_profile(industry="fitness-gym", description="")
    bundle = {"features": [{"title": "Spin class", "description": "High energy"}]}
    slots = image_slots(TEMPLATE_DATA, ["hero", "features"], bundle)
    drafts = build_fallback_prompts(slots, profile)
    hero, feature = drafts
    assert hero.prompt.startswith('"Casa Taco" fitness gym business hero scene showing their main products or services, for "Casa Taco"')
    assert "dynamic energetic" in hero.prompt
    assert hero.prompt.endswith("no text, no words, no letters, no watermark, no logos")
    assert feature.prompt.startswith("fitness gym Spin class, High energy, consistent style")
    assert "clean minimal illustration" in feature.prompt
    assert all(d.style == "Photorealistic" for d in drafts)


def test_model_prompts_used_and_missing_keys_filled():
    answer = "```json\n" + json.dumps({"hero.imageUrl": "Sizzling tacos on a grill at Casa Taco"}) + "\n```"
    planner, endpoint = _planner(answer)
    profile = make_profile(tagline="")
    drafts = asyncio.run(planner.plan(TEMPLATE_DATA, profile, ["hero", "cta"], {"faq": [{"question": "q", "answer": "a"}]}))
    assert [(d.key, d.prompt) for d in drafts] == [
        ("hero.imageUrl", "Sizzling tacos on a grill at Casa Taco"),
        (
            "cta.backgroundImage",
            "restaurant Call to action background, professional photography, high quality, no text, no watermarks",
        ),
    ]
    call = endpoint.calls[0]
    assert call["feature"] == "onboarding-image-prompts"
    assert call["options"] == {"temperature": 0.7, "maxOutputTokens": 4000}
    assert "- hero.imageUrl (16:9): Main hero banner image" in call["prompt"]
    assert "Professional quality and service" in call["prompt"]
    assert '"question": "q"' in call["prompt"]


def test_unusable_model_answer_falls_back_to_template_prompts():
    planner, _ = _planner("I cannot help with that.")
    drafts = asyncio.run(planner.plan(TEMPLATE_DATA, make_profile(), ["hero"], {}))
    assert drafts[0].prompt.startswith('"Casa Taco" restaurant business hero scene')


def test_failed_model_call_falls_back_to_template_prompts():
    planner, _ = _planner(RuntimeError("proxy down"))
    drafts = asyncio.run(planner.plan(TEMPLATE_DATA, make_profile(), ["hero", "menu"], {}))
    assert [d.key for d in drafts] == ["hero.imageUrl", "menu.items[0].imageUrl", "menu.items[1].imageUrl"]
    assert drafts[1].prompt.startswith("Dish 1, restaurant restaurant style")


def _lookup(tree, key):
    node = tree
    for token in parse_path(key):
        node = node[token]
    return node


def test_every_planned_image_lands_in_the_merged_site():
    bundle = {
        "features": [{"title": f"Perk {i}", "description": "x"} for i in range(6)],
        "menu": [{"name": f"Taco {i}"} for i in range(4)],
    }
    profile = make_profile()
    enabled = ["hero", "features", "menu", "cta"]
    drafts = asyncio.run(ImagePromptPlanner().plan(TEMPLATE_DATA, profile, enabled, bundle))
    assert sum(d.key.startswith("features.") for d in drafts) == 3

    urls = {d.key: f"https://img.example/planned-{i}.png" for i, d in enumerate(drafts)}
    merged = merge(TEMPLATE_DATA, profile.model_copy(update={"enabled_components": enabled}), urls, bundle)
    for key, url in urls.items():
        assert _lookup(merged, key) == url
