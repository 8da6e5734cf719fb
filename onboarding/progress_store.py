from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import redis.asyncio as aioredis

from onboarding.models import GenerationProgress


log = logging.getLogger(__name__)

PROGRESS_DIR = Path(os.getenv("PROGRESS_DIR", "cache/progress"))
REDIS_URL = os.getenv("REDIS_URL", "").strip()
try:
    PROGRESS_TTL_SECONDS = int(os.getenv("PROGRESS_TTL_SECONDS", "0") or 0)  # 0 = never expire
except Exception:
    PROGRESS_TTL_SECONDS = 0
try:
    REDIS_TIMEOUT = float(os.getenv("REDIS_PROGRESS_TIMEOUT", "0.5") or 0.5)
except Exception:
    REDIS_TIMEOUT = 0.5

_SAFE_KEY_RE = re.compile(r"[^A-Za-z0-9_.-]+")


def strip_none(value: Any) -> Any:
    """Drop ``None`` entries from dicts, recursively; lists keep their length."""
    if isinstance(value, dict):
        return {k: strip_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [strip_none(v) for v in value]
    return value


def _encode(progress: GenerationProgress) -> str:
    record = strip_none(progress.model_dump(by_alias=True))
    return json.dumps(record, ensure_ascii=False, separators=(",", ":"))


def _decode(raw: Optional[str]) -> Optional[GenerationProgress]:
    if not raw:
        return None
    try:
        return GenerationProgress.model_validate(json.loads(raw))
    except Exception:
        log.warning("progress_store.load: discarding unreadable progress record", exc_info=True)
        return None


class MemoryProgressStore:
    def __init__(self) -> None:
        self._raw: Optional[str] = None

    async def save(self, progress: GenerationProgress) -> None:
        self._raw = _encode(progress)

    async def load(self) -> Optional[GenerationProgress]:
        return _decode(self._raw)

    async def clear(self) -> None:
        self._raw = None


class FileProgressStore:
    """One JSON file per owner, replaced atomically on every save."""

    def __init__(self, owner: str = "default", directory: Optional[Path] = None) -> None:
        self.directory = Path(directory) if directory is not None else PROGRESS_DIR
        self.path = self.directory / f"{_SAFE_KEY_RE.sub('_', owner) or 'default'}.json"

    async def save(self, progress: GenerationProgress) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(_encode(progress), encoding="utf-8")
        tmp.replace(self.path)

    async def load(self) -> Optional[GenerationProgress]:
        if not self.path.exists():
            return None
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError:
            log.warning("progress_store.load: failed to read %s", self.path, exc_info=True)
            return None
        return _decode(raw)

    async def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class RedisProgressStore:
    def __init__(self, owner: str = "default", url: Optional[str] = None, client=None, ttl_seconds: Optional[int] = None) -> None:
        self.key = f"onboarding:progress:{owner}"
        self.ttl_seconds = PROGRESS_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._redis = client or aioredis.from_url(
            url or REDIS_URL,
            decode_responses=True,
            socket_timeout=REDIS_TIMEOUT,
            socket_connect_timeout=REDIS_TIMEOUT,
        )

    async def save(self, progress: GenerationProgress) -> None:
        raw = _encode(progress)
        if self.ttl_seconds > 0:
            await self._redis.setex(self.key, self.ttl_seconds, raw)
        else:
            await self._redis.set(self.key, raw)

    async def load(self) -> Optional[GenerationProgress]:
        return _decode(await self._redis.get(self.key))

    async def clear(self) -> None:
        await self._redis.delete(self.key)


def get_progress_store(owner: str = "default"):
    """Redis when ``REDIS_URL`` is set, otherwise JSON files under ``PROGRESS_DIR``."""
    if REDIS_URL:
        log.info("progress_store: using redis key onboarding:progress:%s", owner)
        return RedisProgressStore(owner)
    return FileProgressStore(owner)
