import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from types import SimpleNamespace
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from onboarding.catalog import TemplateCatalog
from onboarding.content import ContentGenerator
from onboarding.image_planner import ImagePromptPlanner
from onboarding.llm_client import ApiCallLogger, GeminiProxyClient, NominatimGeocoder
from onboarding.llm_prompts import load_prompt_store
from onboarding.models import GenerationProfile, MissingInputError, TemplateNotFoundError
from onboarding.orchestrator import DuplicateRunError, GenerationOrchestrator
from onboarding.progress_store import get_progress_store
from onboarding.projects import FileProjectRepository
from onboarding.sequencer import ImageSequencer


if not logging.getLogger().handlers:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

log = logging.getLogger(__name__)


def build_services() -> SimpleNamespace:
    """Wire the pipeline from environment configuration."""
    endpoint = GeminiProxyClient()
    call_logger = ApiCallLogger()
    geocoder = NominatimGeocoder()
    catalog = TemplateCatalog()
    content = ContentGenerator(endpoint, load_prompt_store(), call_logger)
    orchestrator = GenerationOrchestrator(
        content=content,
        planner=ImagePromptPlanner(content),
        sequencer=ImageSequencer(endpoint),
        catalog=catalog,
        store=get_progress_store(),
        projects=FileProjectRepository(),
        geocoder=geocoder,
    )
    return SimpleNamespace(
        catalog=catalog,
        content=content,
        orchestrator=orchestrator,
        closers=[endpoint, call_logger, geocoder],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.services = build_services()
    try:
        yield
    finally:
        for client in getattr(app.state.services, "closers", []):
            try:
                await client.aclose()
            except Exception:
                log.warning("lifespan: failed to close %s", type(client).__name__, exc_info=True)


app = FastAPI(lifespan=lifespan)

allow_origins = [o.strip() for o in os.getenv("ALLOW_ORIGINS", "*").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = str(uuid.uuid4())
    start = time.time()
    request.state.request_id = rid
    response = None
    try:
        response = await call_next(request)
        return response
    finally:
        dur_ms = int((time.time() - start) * 1000)
        log.info(
            "rid=%s method=%s path=%s status=%s dur_ms=%d",
            rid,
            request.method,
            request.url.path,
            getattr(response, "status_code", "?"),
            dur_ms,
        )


def _services(request: Request) -> SimpleNamespace:
    return request.app.state.services


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/templates")
def list_templates(request: Request) -> List[Dict[str, Any]]:
    return [
        {
            "id": t.id,
            "name": t.name,
            "industries": t.industries,
            "tags": t.tags,
            "thumbnailUrl": t.thumbnail_url,
            "componentOrder": t.component_order,
        }
        for t in _services(request).catalog.list()
    ]


@app.post("/assist/description")
async def assist_description(profile: GenerationProfile, request: Request) -> Dict[str, str]:
    try:
        return await _services(request).content.generate_description(profile)
    except MissingInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@app.post("/assist/services")
async def assist_services(profile: GenerationProfile, request: Request) -> List[Dict[str, Any]]:
    services = await _services(request).content.generate_services(profile)
    return [s.to_record() for s in services]


@app.post("/assist/categories")
async def assist_categories(profile: GenerationProfile, request: Request) -> Dict[str, List[str]]:
    return {"categories": await _services(request).content.generate_categories(profile)}


@app.post("/assist/template")
async def assist_template(profile: GenerationProfile, request: Request) -> Dict[str, Any]:
    services = _services(request)
    try:
        rec = await services.content.recommend_template(profile, services.catalog.list())
    except MissingInputError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return rec.to_record()


@app.post("/generation/start", status_code=202)
async def generation_start(profile: GenerationProfile, request: Request):
    orchestrator: GenerationOrchestrator = _services(request).orchestrator
    try:
        orchestrator.launch(profile)
    except DuplicateRunError as exc:
        return JSONResponse(
            status_code=409,
            content={"error": str(exc), "progress": exc.progress.to_record()},
        )
    except TemplateNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    progress = orchestrator.progress
    log.info("generation.start: run=%s template=%s", progress.generation_id, profile.selected_template_id)
    return {"generationId": progress.generation_id, "progress": progress.to_record()}


@app.get("/generation/progress")
async def generation_progress(request: Request) -> Dict[str, Any]:
    progress = await _services(request).orchestrator.current_progress()
    return progress.to_record()


@app.post("/generation/reset")
async def generation_reset(request: Request) -> Dict[str, bool]:
    await _services(request).orchestrator.reset()
    return {"ok": True}
