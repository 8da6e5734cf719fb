from __future__ import annotations

import asyncio
import inspect
import logging
import os
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from onboarding.llm_client import GENERATION_CALL_TIMEOUT_SECS, ImageEndpointError, bounded
from onboarding.models import ImageDraft, ImageTask, now_ms


log = logging.getLogger(__name__)

try:
    IMAGE_DELAY_BETWEEN_MS = int(os.getenv("IMAGE_DELAY_BETWEEN_MS", "8000") or 8000)
except Exception:
    IMAGE_DELAY_BETWEEN_MS = 8000
try:
    IMAGE_RATE_LIMIT_WAIT_MS = int(os.getenv("IMAGE_RATE_LIMIT_WAIT_MS", "40000") or 40000)
except Exception:
    IMAGE_RATE_LIMIT_WAIT_MS = 40000
try:
    IMAGE_MAX_ATTEMPTS = max(1, int(os.getenv("IMAGE_MAX_ATTEMPTS", "2") or 2))
except Exception:
    IMAGE_MAX_ATTEMPTS = 2

PRIORITY_SECTIONS = ("hero", "heroSplit", "banner", "cta")
RATE_LIMITED_MESSAGE = "Rate limit exceeded - please try again later"
_RATE_LIMIT_RE = re.compile(r"\b429\b|exceeded|\brate\b|rate[_-]?limit|quota", re.IGNORECASE)

# (completed_count, tasks, current_task); may return an awaitable
ProgressCallback = Callable[[int, List[ImageTask], Optional[ImageTask]], Any]


def is_rate_limited(message: str) -> bool:
    return bool(message) and _RATE_LIMIT_RE.search(message) is not None


def _priority(key: str) -> int:
    section = key.split(".", 1)[0]
    try:
        return PRIORITY_SECTIONS.index(section)
    except ValueError:
        return len(PRIORITY_SECTIONS)


def build_tasks(drafts: Sequence[ImageDraft]) -> List[ImageTask]:
    """Pending tasks in execution order; ids keep the planner position."""
    tasks = [
        ImageTask(
            id=f"img-{i}",
            prompt_key=d.key,
            prompt=d.prompt,
            aspect_ratio=d.aspect_ratio,
            style=d.style,
        )
        for i, d in enumerate(drafts)
    ]
    # sorted() is stable so non-priority drafts keep planner order
    return sorted(tasks, key=lambda t: _priority(t.prompt_key))


async def _maybe_await(value: Any) -> None:
    if inspect.isawaitable(value):
        await value


class ImageSequencer:
    """Runs image tasks one after another against a rate-limited endpoint."""

    def __init__(
        self,
        endpoint,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        delay_ms: Optional[int] = None,
        rate_limit_wait_ms: Optional[int] = None,
        max_attempts: Optional[int] = None,
        call_timeout: Optional[float] = None,
    ) -> None:
        self.endpoint = endpoint
        self.sleep = sleep
        self.delay_ms = IMAGE_DELAY_BETWEEN_MS if delay_ms is None else delay_ms
        self.rate_limit_wait_ms = IMAGE_RATE_LIMIT_WAIT_MS if rate_limit_wait_ms is None else rate_limit_wait_ms
        self.max_attempts = IMAGE_MAX_ATTEMPTS if max_attempts is None else max(1, max_attempts)
        self.call_timeout = GENERATION_CALL_TIMEOUT_SECS if call_timeout is None else call_timeout

    async def run(
        self,
        drafts: Sequence[ImageDraft],
        emit_progress: Optional[ProgressCallback] = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, str]:
        return await self.run_tasks(build_tasks(drafts), emit_progress, user_id)

    async def run_tasks(
        self,
        tasks: List[ImageTask],
        emit_progress: Optional[ProgressCallback] = None,
        user_id: Optional[str] = None,
        cancelled: Optional[Callable[[], bool]] = None,
    ) -> Dict[str, str]:
        """Execute ``tasks`` in place and return ``{field_path: url}`` for the successes.

        A failed task never stops the batch. ``cancelled`` is polled before each
        task; once it returns True the remaining tasks are left untouched.
        """

        async def emit(completed: int, current: Optional[ImageTask]) -> None:
            if emit_progress is not None:
                await _maybe_await(emit_progress(completed, tasks, current))

        urls: Dict[str, str] = {}
        total = len(tasks)
        for i, task in enumerate(tasks):
            # spacing precedes the generating mark so startedAt excludes the delay
            if i > 0 and self.delay_ms > 0:
                await self.sleep(self.delay_ms / 1000.0)
            if cancelled is not None and cancelled():
                log.info("sequencer.run: cancelled before %s (%d/%d done)", task.id, i, total)
                break
            task.status = "generating"
            task.started_at = now_ms()
            await emit(i, task)

            url, error = await self._generate(task, user_id)
            task.completed_at = now_ms()
            if url:
                task.status = "completed"
                task.image_url = url
                urls[task.prompt_key] = url
                log.info("sequencer.run: %s %s done (%d/%d)", task.id, task.prompt_key, i + 1, total)
            else:
                task.status = "failed"
                task.error = error
                log.warning("sequencer.run: %s %s failed: %s", task.id, task.prompt_key, error)
            await emit(i + 1, task)
        return urls

    async def _generate(self, task: ImageTask, user_id: Optional[str]):
        error = "Image generation failed"
        for attempt in range(1, self.max_attempts + 1):
            try:
                url = await bounded(
                    self.endpoint.generate_image(
                        task.prompt,
                        aspect_ratio=task.aspect_ratio,
                        style=task.style,
                        user_id=user_id,
                    ),
                    self.call_timeout,
                )
                if not url:
                    raise ImageEndpointError("No image URL returned from generation")
                return url, None
            except Exception as exc:
                message = str(exc) or type(exc).__name__
                if not is_rate_limited(message):
                    return None, message
                if attempt < self.max_attempts:
                    log.warning(
                        "sequencer.retry: %s rate limited (attempt %d/%d); waiting %dms",
                        task.id,
                        attempt,
                        self.max_attempts,
                        self.rate_limit_wait_ms,
                    )
                    await self.sleep(self.rate_limit_wait_ms / 1000.0)
                    continue
                error = RATE_LIMITED_MESSAGE
        return None, error
