from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional

from onboarding.catalog import TemplateCatalog
from onboarding.llm_client import GENERATION_CALL_TIMEOUT_SECS, bounded
from onboarding.merger import merge
from onboarding.models import (
    GenerationError,
    GenerationProfile,
    GenerationProgress,
    ImageTask,
    Phase,
    SiteTemplate,
    now_ms,
)
from onboarding.palette import apply_component_colors
from onboarding.projects import build_project, global_colors
from onboarding.sequencer import build_tasks


log = logging.getLogger(__name__)

TRANSITIONS: Dict[str, tuple] = {
    "idle": ("content", "error"),
    "content": ("images", "error"),
    "images": ("finalizing", "error"),
    "finalizing": ("completed", "error"),
    "completed": (),
    "error": (),
}


class DuplicateRunError(GenerationError):
    def __init__(self, progress: GenerationProgress) -> None:
        super().__init__("Generation already in progress")
        self.progress = progress


class StaleRunError(Exception):
    """Raised inside a run whose generation id was reset or superseded."""


class ProgressTracker:
    """Sole writer of one run's GenerationProgress; persists after every change.

    Writes are refused once ``live()`` turns False so a cancelled run cannot
    overwrite the record of whatever came after it.
    """

    def __init__(self, store, generation_id: str, live: Callable[[], bool], lock: asyncio.Lock) -> None:
        self.store = store
        self.live = live
        self.lock = lock
        self.progress = GenerationProgress(generation_id=generation_id)

    async def _persist(self) -> None:
        async with self.lock:
            if not self.live():
                raise StaleRunError(self.progress.generation_id)
            await self.store.save(self.progress)

    async def transition(self, phase: Phase, **changes: Any) -> None:
        current = self.progress.phase
        if phase not in TRANSITIONS[current]:
            raise GenerationError(f"illegal phase transition {current} -> {phase}")
        if not self.live():
            raise StaleRunError(self.progress.generation_id)
        self.progress.phase = phase
        for field, value in changes.items():
            setattr(self.progress, field, value)
        log.info("orchestrator.phase: %s -> %s (run=%s)", current, phase, self.progress.generation_id)
        await self._persist()

    async def set_content_progress(self, value: int) -> None:
        if self.progress.phase != "content":
            raise GenerationError("content progress outside the content phase")
        if value < self.progress.content_progress:
            raise GenerationError(f"content progress may not go back ({self.progress.content_progress} -> {value})")
        self.progress.content_progress = min(100, value)
        await self._persist()

    async def on_image_progress(self, completed: int, tasks: List[ImageTask], current: Optional[ImageTask]) -> None:
        if not self.live():
            raise StaleRunError(self.progress.generation_id)
        if completed < self.progress.images_completed or completed > self.progress.images_total:
            raise GenerationError(f"images completed out of range: {completed}/{self.progress.images_total}")
        self.progress.images_completed = completed
        self.progress.all_images = tasks
        self.progress.current_image = current
        await self._persist()

    async def fail(self, message: str) -> None:
        if self.progress.phase in ("completed", "error"):
            return
        self.progress.phase = "error"
        self.progress.error = message
        self.progress.current_image = None
        log.error("orchestrator.phase: run=%s failed: %s", self.progress.generation_id, message)
        try:
            await self._persist()
        except StaleRunError:
            log.info("orchestrator.fail: run=%s no longer current; error not persisted", self.progress.generation_id)
        except Exception:
            log.warning("orchestrator.fail: could not persist error state", exc_info=True)


class GenerationOrchestrator:
    """Drives content -> images -> finalizing for one onboarding session at a time."""

    def __init__(
        self,
        content,
        planner,
        sequencer,
        catalog: TemplateCatalog,
        store,
        projects,
        geocoder=None,
        call_timeout: Optional[float] = None,
    ) -> None:
        self.content = content
        self.planner = planner
        self.sequencer = sequencer
        self.catalog = catalog
        self.store = store
        self.projects = projects
        self.geocoder = geocoder
        self.call_timeout = GENERATION_CALL_TIMEOUT_SECS if call_timeout is None else call_timeout
        self._generation_id: Optional[str] = None
        self._tracker: Optional[ProgressTracker] = None
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        # id of the claimed run until it finishes or is reset; guards against concurrent starts
        self._running: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self._running is not None

    @property
    def progress(self) -> GenerationProgress:
        if self._tracker is None:
            return GenerationProgress()
        return self._tracker.progress

    async def current_progress(self) -> GenerationProgress:
        """In-memory state of this process, else whatever the store kept from an earlier one."""
        if self._tracker is not None:
            return self._tracker.progress
        try:
            stored = await self.store.load()
        except Exception:
            log.warning("orchestrator.progress: store load failed", exc_info=True)
            stored = None
        return stored or GenerationProgress()

    def _claim(self, profile: GenerationProfile) -> tuple:
        if self.is_active:
            raise DuplicateRunError(self.progress)
        template = self.catalog.require(profile.selected_template_id)
        generation_id = uuid.uuid4().hex
        tracker = ProgressTracker(self.store, generation_id, lambda: self._generation_id == generation_id, self._lock)
        self._generation_id = generation_id
        self._running = generation_id
        self._tracker = tracker
        return generation_id, tracker, template

    def launch(self, profile: GenerationProfile) -> asyncio.Task:
        """Validate and start a run in the background; raises instead of recording the failure."""
        generation_id, tracker, template = self._claim(profile)
        self._task = asyncio.get_running_loop().create_task(self._run(generation_id, tracker, profile, template))
        return self._task

    async def start(self, profile: GenerationProfile) -> Optional[str]:
        """Run the whole pipeline; returns the project id, or None on failure, cancellation or a duplicate call."""
        if self.is_active:
            log.warning("orchestrator.start: generation already in progress; ignoring duplicate call")
            return None
        try:
            generation_id, tracker, template = self._claim(profile)
        except GenerationError as exc:
            tracker = ProgressTracker(self.store, uuid.uuid4().hex, lambda: True, self._lock)
            self._tracker = tracker
            self._generation_id = tracker.progress.generation_id
            await tracker.fail(str(exc))
            return None
        return await self._run(generation_id, tracker, profile, template)

    async def reset(self) -> None:
        """Release the guard and forget the current run; in-flight calls finish but are discarded."""
        async with self._lock:
            previous = self._generation_id
            self._generation_id = None
            self._running = None
            self._tracker = None
            try:
                await self.store.clear()
            except Exception:
                log.warning("orchestrator.reset: failed to clear stored progress", exc_info=True)
        log.info("orchestrator.reset: released run=%s", previous)

    async def cancel(self) -> None:
        log.info("orchestrator.cancel: cancellation requested")
        await self.reset()

    async def _run(
        self,
        generation_id: str,
        tracker: ProgressTracker,
        profile: GenerationProfile,
        template: SiteTemplate,
    ) -> Optional[str]:
        def live() -> bool:
            return self._generation_id == generation_id

        try:
            await tracker.transition("content", content_progress=0, started_at=now_ms())
            enabled = profile.enabled_components
            if enabled is None:
                enabled = template.visible_sections()
            profile = profile.model_copy(update={"enabled_components": list(enabled)})

            if not (profile.description or "").strip():
                described = await self.content.generate_description(profile)
                profile = profile.model_copy(
                    update={
                        "description": described.get("description") or "",
                        "tagline": profile.tagline or described.get("tagline") or "",
                    }
                )
            await tracker.set_content_progress(25)

            bundle = await self.content.generate_component_content(profile, enabled)
            await tracker.set_content_progress(50)

            drafts = await self.planner.plan(template.data, profile, enabled, bundle)
            await tracker.set_content_progress(100)

            tasks = build_tasks(drafts)
            await tracker.transition("images", images_total=len(tasks), images_completed=0, all_images=tasks)
            image_urls = await self.sequencer.run_tasks(
                tasks,
                tracker.on_image_progress,
                profile.user_id,
                cancelled=lambda: not live(),
            )
            failed = sum(1 for t in tasks if t.status == "failed")
            log.info("orchestrator.images: %d/%d generated, %d failed", len(image_urls), len(tasks), failed)

            await tracker.transition("finalizing", current_image=None)
            merged = merge(template.data, profile, image_urls, bundle)
            apply_component_colors(merged, global_colors(template.theme))
            await self._geocode(merged)
            project = build_project(template, profile, merged, image_urls, drafts)
            if not live():
                raise StaleRunError(generation_id)
            project_id = await bounded(self.projects.create_project(project), self.call_timeout)
            if profile.has_ecommerce and profile.store_setup is not None:
                await self._provision_store(project, profile, template)

            await tracker.transition("completed", completed_at=now_ms(), project_id=project_id)
            async with self._lock:
                if live():
                    await self.store.clear()
            log.info("orchestrator.done: run=%s project=%s", generation_id, project_id)
            return project_id
        except StaleRunError:
            log.info("orchestrator.run: run=%s was reset or superseded; discarding its results", generation_id)
            return None
        except Exception as exc:
            await tracker.fail(str(exc) or type(exc).__name__)
            return None
        finally:
            if self._running == generation_id:
                self._running = None

    async def _geocode(self, merged: Dict[str, Any]) -> None:
        section = merged.get("map")
        if self.geocoder is None or not isinstance(section, dict) or not section.get("address"):
            return
        try:
            coords = await bounded(self.geocoder.lookup(section["address"]), self.call_timeout)
        except Exception as exc:
            log.warning("orchestrator.geocode: ignoring failure: %r", exc)
            return
        if coords:
            section["lat"] = coords["lat"]
            section["lng"] = coords["lng"]

    async def _provision_store(self, project: Dict[str, Any], profile: GenerationProfile, template: SiteTemplate) -> None:
        try:
            await bounded(self.projects.provision_ecommerce(project, profile, template), self.call_timeout)
        except Exception:
            log.warning("orchestrator.ecommerce: store setup failed for %s; continuing", project["id"], exc_info=True)
