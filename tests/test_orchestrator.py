import asyncio
import json

import pytest

from onboarding.catalog import TemplateCatalog
from onboarding.content import ContentGenerator
from onboarding.image_planner import ImagePromptPlanner
from onboarding.llm_client import ContentEndpointError, ImageEndpointError
from onboarding.llm_prompts import PromptStore
from onboarding.models import TemplateNotFoundError
from onboarding.orchestrator import DuplicateRunError, GenerationOrchestrator, ProgressTracker
from onboarding.progress_store import MemoryProgressStore
from onboarding.projects import FileProjectRepository
from onboarding.sequencer import ImageSequencer

from tests.fakes import FakeContentEndpoint, FakeImageEndpoint, RecordingSleep, make_profile, make_template


FAQ_ANSWER = json.dumps({"faq": [{"question": f"Q{i}?", "answer": f"A{i}"} for i in range(8)]})


class RecordingStore(MemoryProgressStore):
    def __init__(self):
        super().__init__()
        self.snapshots = []

    async def save(self, progress):
        self.snapshots.append(progress.model_copy(deep=True))
        await super().save(progress)


class GatedImageEndpoint:
    """Blocks every call until ``release`` is set."""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.calls = 0

    async def generate_image(self, prompt, **kwargs):
        self.calls += 1
        self.started.set()
        await self.release.wait()
        return f"https://img.example/gated-{self.calls}.png"


class FailingRepository(FileProjectRepository):
    async def create_project(self, project):
        raise RuntimeError("database unavailable")


class FakeGeocoder:
    def __init__(self):
        self.queries = []

    async def lookup(self, address):
        self.queries.append(address)
        return {"lat": 17.06, "lng": -96.72}


def _orchestrator(tmp_path, content_responses=None, image_endpoint=None, store=None, projects=None, **kwargs):
    content = ContentGenerator(
        FakeContentEndpoint({"onboarding-content-gen": FAQ_ANSWER, **(content_responses or {})}),
        PromptStore(),
        call_timeout=0,
    )
    sequencer = ImageSequencer(
        image_endpoint or FakeImageEndpoint(),
        sleep=RecordingSleep(),
        delay_ms=0,
        rate_limit_wait_ms=0,
        max_attempts=2,
        call_timeout=0,
    )
    return GenerationOrchestrator(
        content,
        ImagePromptPlanner(content),
        sequencer,
        TemplateCatalog(templates=[make_template()]),
        store if store is not None else RecordingStore(),
        projects or FileProjectRepository(tmp_path),
        call_timeout=0,
        **kwargs,
    )


def _stored_project(tmp_path, project_id):
    return json.loads((tmp_path / "projects" / f"{project_id}.json").read_text(encoding="utf-8"))


def test_full_run_reaches_completed(tmp_path):
    store = RecordingStore()
    orch = _orchestrator(tmp_path, store=store)

    project_id = asyncio.run(orch.start(make_profile()))

    assert project_id
    progress = orch.progress
    assert progress.phase == "completed"
    assert progress.project_id == project_id
    assert progress.images_total == 6
    assert progress.images_completed == 6
    assert progress.completed_at >= progress.started_at
    assert not orch.is_active

    phases = [s.phase for s in store.snapshots]
    assert phases[0] == "content" and phases[-1] == "completed"
    order = ["content", "images", "finalizing", "completed"]
    assert [order.index(p) for p in phases] == sorted(order.index(p) for p in phases)
    content_steps = [s.content_progress for s in store.snapshots if s.phase == "content"]
    assert content_steps == [0, 25, 50, 100]
    image_counts = [s.images_completed for s in store.snapshots if s.phase == "images"]
    assert image_counts == sorted(image_counts)
    assert asyncio.run(store.load()) is None

    project = _stored_project(tmp_path, project_id)
    assert project["data"]["hero"]["imageUrl"] == "https://img.example/generated.png"
    assert [i["question"] for i in project["data"]["faq"]["items"]] == ["Q0?", "Q1?", "Q2?"]
    cta = dict(project["data"]["cta"])
    assert cta.pop("colors")["buttonText"] == "#111111"
    assert cta == make_template().data["cta"]
    assert len(project["imagePrompts"]) == 6

    data = project["data"]
    assert data["header"]["colors"]["background"] == "#111111"
    assert data["footer"]["colors"]["text"] == "#64748b"
    assert data["chatbot"] == {"colors": data["chatbot"]["colors"]}
    assert data["chatbot"]["colors"]["userBubbleColor"] == "#111111"
    assert "featuredProducts" in data and "products" not in data
    home = project["pages"][0]
    assert home["isHomePage"] and home["slug"] == "/"
    assert home["sections"] == ["header", "hero", "features", "menu", "faq", "testimonials", "map", "footer"]
    assert home["sectionData"]["faq"] == data["faq"]
    assert project["aiAssistantConfig"]["widgetColor"] == "#111111"


def test_missing_description_uses_fallback_and_continues(tmp_path):
    orch = _orchestrator(
        tmp_path,
        {"onboarding-description": ContentEndpointError("Proxy error (HTTP 500)", 500)},
    )
    project_id = asyncio.run(orch.start(make_profile(description="")))

    assert orch.progress.phase == "completed"
    project = _stored_project(tmp_path, project_id)
    assert project["brandIdentity"]["coreValues"].startswith("Casa Taco is a restaurant business")
    assert project["data"]["footer"]["description"].startswith("Casa Taco is a restaurant business")


def test_failed_images_do_not_fail_the_run(tmp_path):
    endpoint = FakeImageEndpoint([ImageEndpointError("Failed to generate image")])
    orch = _orchestrator(tmp_path, image_endpoint=endpoint)
    project_id = asyncio.run(orch.start(make_profile()))

    progress = orch.progress
    assert progress.phase == "completed"
    hero = next(t for t in progress.all_images if t.prompt_key == "hero.imageUrl")
    assert hero.status == "failed"
    assert hero.error == "Failed to generate image"
    assert len(endpoint.calls) == 6
    project = _stored_project(tmp_path, project_id)
    assert project["data"]["hero"]["imageUrl"] == "https://img.example/hero-default.jpg"


def test_finalize_failure_keeps_error_progress(tmp_path):
    store = RecordingStore()
    orch = _orchestrator(tmp_path, store=store, projects=FailingRepository(tmp_path))

    assert asyncio.run(orch.start(make_profile())) is None

    assert orch.progress.phase == "error"
    assert orch.progress.error == "database unavailable"
    stored = asyncio.run(store.load())
    assert stored.phase == "error"
    assert stored.error == "database unavailable"
    assert not orch.is_active


def test_missing_template_records_error(tmp_path):
    store = RecordingStore()
    orch = _orchestrator(tmp_path, store=store)

    assert asyncio.run(orch.start(make_profile(selected_template_id="ghost"))) is None
    assert orch.progress.phase == "error"
    assert orch.progress.error == "Template not found: ghost"
    assert asyncio.run(store.load()).phase == "error"

    async def launch():
        orch.launch(make_profile(selected_template_id=None))

    with pytest.raises(TemplateNotFoundError):
        asyncio.run(launch())


def test_duplicate_start_is_ignored_while_running(tmp_path):
    async def run():
        endpoint = GatedImageEndpoint()
        orch = _orchestrator(tmp_path, image_endpoint=endpoint)
        task = orch.launch(make_profile())
        await endpoint.started.wait()

        before = orch.progress.model_copy(deep=True)
        assert orch.is_active
        assert await orch.start(make_profile(business_name="Other")) is None
        with pytest.raises(DuplicateRunError):
            orch.launch(make_profile())
        assert orch.progress == before

        endpoint.release.set()
        return await task, orch

    project_id, orch = asyncio.run(run())
    assert project_id
    assert orch.progress.phase == "completed"
    assert orch.progress.project_id == project_id


def test_back_to_back_launch_is_rejected_before_first_run_starts(tmp_path):
    async def run():
        orch = _orchestrator(tmp_path)
        task = orch.launch(make_profile())
        assert orch.progress.phase == "idle"
        assert orch.is_active
        with pytest.raises(DuplicateRunError):
            orch.launch(make_profile(business_name="Other"))
        assert await orch.start(make_profile(business_name="Other")) is None
        return await task, orch

    project_id, orch = asyncio.run(run())
    assert project_id
    assert orch.progress.phase == "completed"
    assert not orch.is_active
    assert _stored_project(tmp_path, project_id)["name"] == "Casa Taco"


def test_reset_discards_in_flight_run(tmp_path):
    store = RecordingStore()

    async def run():
        endpoint = GatedImageEndpoint()
        orch = _orchestrator(tmp_path, image_endpoint=endpoint, store=store)
        task = orch.launch(make_profile())
        await endpoint.started.wait()

        await orch.reset()
        saved = len(store.snapshots)
        endpoint.release.set()
        result = await task
        return result, orch, saved, endpoint.calls

    result, orch, saved, calls = asyncio.run(run())
    assert result is None
    assert calls == 1
    assert len(store.snapshots) == saved
    assert asyncio.run(store.load()) is None
    assert orch.progress.phase == "idle"
    assert not (tmp_path / "projects").exists()


def test_restart_after_reset(tmp_path):
    orch = _orchestrator(tmp_path)

    async def run():
        first = await orch.start(make_profile(selected_template_id="ghost"))
        await orch.reset()
        second = await orch.start(make_profile())
        return first, second

    first, second = asyncio.run(run())
    assert first is None
    assert second
    assert orch.progress.phase == "completed"


def test_current_progress_falls_back_to_store(tmp_path):
    store = RecordingStore()
    orch = _orchestrator(tmp_path, store=store, projects=FailingRepository(tmp_path))
    asyncio.run(orch.start(make_profile()))

    fresh = _orchestrator(tmp_path, store=store)
    restored = asyncio.run(fresh.current_progress())
    assert restored.phase == "error"
    assert restored.error == "database unavailable"
    assert asyncio.run(_orchestrator(tmp_path).current_progress()).phase == "idle"


def test_geocoder_adds_coordinates(tmp_path):
    geocoder = FakeGeocoder()
    orch = _orchestrator(tmp_path, geocoder=geocoder)
    profile = make_profile(contact_info={"address": "Calle 5", "city": "Oaxaca"})
    project_id = asyncio.run(orch.start(profile))

    project = _stored_project(tmp_path, project_id)
    assert geocoder.queries == ["Calle 5, Oaxaca"]
    assert project["data"]["map"]["lat"] == 17.06
    assert project["data"]["map"]["lng"] == -96.72


def test_tracker_rejects_illegal_moves():
    async def run():
        tracker = ProgressTracker(MemoryProgressStore(), "gen", lambda: True, asyncio.Lock())
        with pytest.raises(Exception, match="illegal phase transition idle -> images"):
            await tracker.transition("images")
        await tracker.transition("content")
        await tracker.set_content_progress(50)
        with pytest.raises(Exception, match="may not go back"):
            await tracker.set_content_progress(25)
        await tracker.fail("boom")
        await tracker.fail("again")
        return tracker.progress

    progress = asyncio.run(run())
    assert progress.phase == "error"
    assert progress.error == "boom"
