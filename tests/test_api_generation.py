import asyncio
import json
import threading
import time
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from onboarding import main
from onboarding.catalog import TemplateCatalog
from onboarding.content import ContentGenerator
from onboarding.image_planner import ImagePromptPlanner
from onboarding.llm_prompts import PromptStore
from onboarding.orchestrator import GenerationOrchestrator
from onboarding.progress_store import MemoryProgressStore
from onboarding.projects import FileProjectRepository
from onboarding.sequencer import ImageSequencer

from tests.fakes import FakeContentEndpoint, FakeImageEndpoint, RecordingSleep, make_template


PROFILE = {
    "businessName": "Casa Taco",
    "industry": "restaurant",
    "description": "Family taqueria serving street tacos since 1998.",
    "selectedTemplateId": "tpl-restaurant",
}


class ThreadGatedImageEndpoint:
    """Holds every call until the test thread opens the gate."""

    def __init__(self):
        self.started = threading.Event()
        self.gate = threading.Event()

    async def generate_image(self, prompt, **kwargs):
        self.started.set()
        while not self.gate.is_set():
            await asyncio.sleep(0.01)
        return "https://img.example/gated.png"


def _services(tmp_path, image_endpoint=None, responses=None):
    content = ContentGenerator(FakeContentEndpoint(responses or {}), PromptStore(), call_timeout=0)
    catalog = TemplateCatalog(templates=[make_template()])
    sequencer = ImageSequencer(
        image_endpoint or FakeImageEndpoint(),
        sleep=RecordingSleep(),
        delay_ms=0,
        rate_limit_wait_ms=0,
        call_timeout=0,
    )
    orchestrator = GenerationOrchestrator(
        content,
        ImagePromptPlanner(content),
        sequencer,
        catalog,
        MemoryProgressStore(),
        FileProjectRepository(tmp_path),
        call_timeout=0,
    )
    return SimpleNamespace(catalog=catalog, content=content, orchestrator=orchestrator, closers=[])


@pytest.fixture()
def make_client(monkeypatch, tmp_path):
    clients = []

    def factory(**kwargs):
        services = _services(tmp_path, **kwargs)
        monkeypatch.setattr(main, "build_services", lambda: services)
        client = TestClient(main.app)
        client.__enter__()
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.__exit__(None, None, None)


def _wait_for_phase(client, phases, timeout=5.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        body = client.get("/generation/progress").json()
        if body["phase"] in phases:
            return body
        time.sleep(0.02)
    raise AssertionError(f"phase never reached {phases}")


def test_health_and_templates(make_client):
    client = make_client()
    assert client.get("/health").json() == {"status": "ok"}
    templates = client.get("/templates").json()
    assert [t["id"] for t in templates] == ["tpl-restaurant"]
    assert templates[0]["thumbnailUrl"] == "https://img.example/thumb.jpg"


def test_assist_endpoints(make_client):
    client = make_client(
        responses={
            "onboarding-description": json.dumps({"description": "Street tacos.", "tagline": "Taco time"}),
            "onboarding-services": json.dumps([{"name": "Catering", "description": "Events"}]),
            "onboarding-categories": '["Salsas"]',
            "onboarding-template-rec": json.dumps({"templateId": "tpl-restaurant", "matchScore": 88}),
        }
    )
    assert client.post("/assist/description", json=PROFILE).json() == {
        "description": "Street tacos.",
        "tagline": "Taco time",
    }
    services = client.post("/assist/services", json=PROFILE).json()
    assert services[0]["name"] == "Catering"
    assert services[0]["isAiGenerated"] is True
    assert client.post("/assist/categories", json=PROFILE).json() == {"categories": ["Salsas"]}
    rec = client.post("/assist/template", json=PROFILE).json()
    assert rec["templateId"] == "tpl-restaurant"
    assert rec["matchScore"] == 88


def test_assist_rejects_incomplete_profile(make_client):
    client = make_client()
    resp = client.post("/assist/description", json={**PROFILE, "businessName": ""})
    assert resp.status_code == 422


def test_start_runs_to_completion(make_client):
    client = make_client()
    resp = client.post("/generation/start", json=PROFILE)
    assert resp.status_code == 202
    body = resp.json()
    assert body["generationId"]
    assert body["progress"]["generationId"] == body["generationId"]

    done = _wait_for_phase(client, ("completed", "error"))
    assert done["phase"] == "completed"
    assert done["projectId"]
    assert done["imagesCompleted"] == done["imagesTotal"] == 6


def test_start_unknown_template_is_404(make_client):
    client = make_client()
    resp = client.post("/generation/start", json={**PROFILE, "selectedTemplateId": "ghost"})
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Template not found: ghost"}


def test_second_start_conflicts_then_reset_releases(make_client):
    endpoint = ThreadGatedImageEndpoint()
    client = make_client(image_endpoint=endpoint)
    try:
        assert client.post("/generation/start", json=PROFILE).status_code == 202
        assert endpoint.started.wait(5)

        resp = client.post("/generation/start", json=PROFILE)
        assert resp.status_code == 409
        assert resp.json()["error"] == "Generation already in progress"
        assert resp.json()["progress"]["phase"] == "images"

        assert client.post("/generation/reset").json() == {"ok": True}
        idle = client.get("/generation/progress").json()
        assert idle["phase"] == "idle"
        assert "generationId" not in idle
    finally:
        endpoint.gate.set()

    assert client.post("/generation/start", json=PROFILE).status_code == 202
    assert _wait_for_phase(client, ("completed", "error"))["phase"] == "completed"
