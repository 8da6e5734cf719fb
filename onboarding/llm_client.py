from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any, Awaitable, Dict, Optional, Set, TypeVar

import httpx


log = logging.getLogger(__name__)
T = TypeVar("T")
call_log = logging.getLogger("onboarding.api_calls")

GEMINI_PROXY_URL = os.getenv("GEMINI_PROXY_URL", "http://localhost:8787/gemini").strip().rstrip("/")
FALLBACK_CONTENT_MODEL = "gemini-2.5-flash"
try:
    LLM_TIMEOUT_SECS = float(os.getenv("LLM_TIMEOUT_SECS", "90") or 90)
except Exception:
    LLM_TIMEOUT_SECS = 90.0
try:
    IMAGE_TIMEOUT_SECS = float(os.getenv("IMAGE_TIMEOUT_SECS", "180") or 180)
except Exception:
    IMAGE_TIMEOUT_SECS = 180.0

IMAGE_MODEL = os.getenv("IMAGE_MODEL", "gemini-3-pro-image-preview").strip()
IMAGE_RESOLUTION = os.getenv("IMAGE_RESOLUTION", "1K").strip()
IMAGE_PERSON_POLICY = os.getenv("IMAGE_PERSON_POLICY", "allow_adult").strip()

try:
    GENERATION_CALL_TIMEOUT_SECS = float(os.getenv("GENERATION_CALL_TIMEOUT_SECS", "0") or 0)
except Exception:
    GENERATION_CALL_TIMEOUT_SECS = 0.0

API_CALL_LOG_URL = os.getenv("API_CALL_LOG_URL", "").strip()

GEOCODER_URL = os.getenv("GEOCODER_URL", "https://nominatim.openstreetmap.org/search").strip()
GEOCODER_USER_AGENT = os.getenv("GEOCODER_USER_AGENT", "onboarding-generator/1.0").strip()
try:
    GEOCODER_TIMEOUT_SECS = float(os.getenv("GEOCODER_TIMEOUT_SECS", "10") or 10)
except Exception:
    GEOCODER_TIMEOUT_SECS = 10.0


class ContentEndpointError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ImageEndpointError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


async def bounded(awaitable: Awaitable[T], timeout: Optional[float]) -> T:
    """Await with an optional ceiling; ``None`` or ``0`` waits indefinitely."""
    if not timeout or timeout <= 0:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout)


def _fallback_model(model: str) -> Optional[str]:
    if model.startswith("gemini-3"):
        return FALLBACK_CONTENT_MODEL
    return None


def _tuned_options(model: str, options: Dict[str, Any]) -> Dict[str, Any]:
    # gemini-3 models are only served at temperature 1.0
    if model.startswith("gemini-3"):
        return {**options, "temperature": 1.0}
    return dict(options)


def _first_part_text(candidates: Any) -> Optional[str]:
    if not isinstance(candidates, list):
        return None
    for cand in candidates:
        if not isinstance(cand, dict):
            continue
        parts = (cand.get("content") or {}).get("parts") or []
        for part in parts:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                return part["text"]
    return None


def extract_text(payload: Any) -> str:
    """Pull the generated text out of a proxy response; empty string when there is none."""
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload
    if not isinstance(payload, dict):
        return ""
    if payload.get("error"):
        log.warning("llm_client.extract: proxy returned error: %s", str(payload.get("error"))[:200])
        return ""
    inner = payload.get("response") if isinstance(payload.get("response"), dict) else {}
    candidates = inner.get("candidates") or payload.get("candidates")
    if isinstance(candidates, list) and candidates and isinstance(candidates[0], dict):
        reason = candidates[0].get("finishReason")
        if reason == "SAFETY":
            log.warning("llm_client.extract: content blocked by safety filters")
            return ""
        if reason == "MAX_TOKENS":
            log.info("llm_client.extract: response truncated at max tokens; using partial text")
    text = _first_part_text(candidates)
    if text is not None:
        return text
    if isinstance(payload.get("text"), str):
        return payload["text"]
    return ""


def _error_message(resp: httpx.Response, default: str) -> str:
    msg = ""
    try:
        body = resp.json()
        if isinstance(body, dict) and body.get("error"):
            msg = str(body["error"])
    except Exception:
        try:
            msg = resp.text[:400]
        except Exception:
            msg = ""
    msg = msg or default
    return f"{msg} (HTTP {resp.status_code})"


class _HttpCollaborator:
    def __init__(self, client: Optional[httpx.AsyncClient] = None) -> None:
        self._client = client
        self._owns_client = client is None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


class GeminiProxyClient(_HttpCollaborator):
    """Content and image generation through the Gemini proxy.

    Content calls POST ``{base}-generate`` and return raw model text; image calls
    POST ``{base}-image`` and return a URL (``data:`` URL for inline payloads).
    Errors surface as exceptions whose message carries the HTTP status so callers
    can spot rate limiting.
    """

    def __init__(self, base_url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None) -> None:
        super().__init__(client)
        self.base_url = (base_url or GEMINI_PROXY_URL).rstrip("/")

    async def generate_content(
        self,
        feature: str,
        prompt: str,
        model: str,
        options: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> str:
        body = {
            "projectId": feature,
            "prompt": prompt,
            "userId": user_id,
            "model": model,
            "config": _tuned_options(model, options or {}),
        }
        try:
            resp = await self._http().post(f"{self.base_url}-generate", json=body, timeout=LLM_TIMEOUT_SECS)
        except httpx.HTTPError as exc:
            raise ContentEndpointError(f"Content request failed: {exc!r}") from exc
        if resp.status_code == 503:
            fallback = _fallback_model(model)
            if fallback:
                log.warning("llm_client.content: model %s unavailable (503), falling back to %s", model, fallback)
                return await self.generate_content(feature, prompt, fallback, options, user_id)
        if resp.status_code != 200:
            raise ContentEndpointError(_error_message(resp, "Proxy error"), resp.status_code)
        try:
            payload = resp.json()
        except ValueError as exc:
            raise ContentEndpointError("Proxy returned a non-JSON body", resp.status_code) from exc
        return extract_text(payload)

    async def generate_image(
        self,
        prompt: str,
        aspect_ratio: str = "1:1",
        style: Optional[str] = None,
        resolution: Optional[str] = None,
        model: Optional[str] = None,
        person_generation: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Optional[str]:
        body = {
            "userId": user_id,
            "projectId": "onboarding-images",
            "prompt": prompt,
            "model": model or IMAGE_MODEL,
            "aspectRatio": aspect_ratio,
            "style": style,
            "resolution": resolution or IMAGE_RESOLUTION,
            "personGeneration": person_generation or IMAGE_PERSON_POLICY,
        }
        try:
            resp = await self._http().post(f"{self.base_url}-image", json=body, timeout=IMAGE_TIMEOUT_SECS)
        except httpx.HTTPError as exc:
            raise ImageEndpointError(f"Image request failed: {exc!r}") from exc
        if resp.status_code != 200:
            raise ImageEndpointError(_error_message(resp, "Image generation failed"), resp.status_code)
        try:
            data = resp.json()
        except ValueError as exc:
            raise ImageEndpointError("Image proxy returned a non-JSON body", resp.status_code) from exc
        if not isinstance(data, dict):
            return None
        url = data.get("url") or data.get("imageUrl")
        if isinstance(url, str) and url:
            return url
        image = data.get("image")
        if not isinstance(image, str) or not image:
            return None
        if image.startswith(("data:", "http://", "https://")):
            return image
        mime = data.get("mimeType") or "image/png"
        return f"data:{mime};base64,{image}"


class ApiCallLogger(_HttpCollaborator):
    """Fire-and-forget record of every model call; never raises into the caller."""

    def __init__(self, sink_url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None) -> None:
        super().__init__(client)
        self.sink_url = API_CALL_LOG_URL if sink_url is None else sink_url
        self._pending: Set[asyncio.Task] = set()

    def record(
        self,
        user_id: Optional[str],
        model: str,
        feature: str,
        success: bool,
        error_message: Optional[str] = None,
    ) -> None:
        if not user_id:
            return
        entry: Dict[str, Any] = {
            "userId": user_id,
            "model": model,
            "feature": f"onboarding-{feature}",
            "success": bool(success),
        }
        if error_message:
            entry["errorMessage"] = error_message
        try:
            call_log.info("api_call %s", json.dumps(entry, ensure_ascii=False))
            if self.sink_url:
                task = asyncio.get_running_loop().create_task(self._post(entry))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)
        except RuntimeError:
            log.debug("llm_client.call_log: no running loop; skipped sink post")
        except Exception:
            log.warning("llm_client.call_log: failed to record call", exc_info=True)

    async def _post(self, entry: Dict[str, Any]) -> None:
        try:
            await self._http().post(self.sink_url, json=entry, timeout=5.0)
        except Exception as exc:
            log.warning("llm_client.call_log: sink post failed: %r", exc)


class NominatimGeocoder(_HttpCollaborator):
    """Best-effort address lookup; every failure is logged and returns None."""

    def __init__(self, url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None) -> None:
        super().__init__(client)
        self.url = url or GEOCODER_URL

    async def lookup(self, address: str) -> Optional[Dict[str, float]]:
        if not address or not address.strip():
            return None
        try:
            resp = await self._http().get(
                self.url,
                params={"format": "json", "q": address, "limit": 1},
                headers={"User-Agent": GEOCODER_USER_AGENT},
                timeout=GEOCODER_TIMEOUT_SECS,
            )
            results = resp.json()
            if isinstance(results, list) and results:
                first = results[0]
                coords = {"lat": float(first["lat"]), "lng": float(first["lon"])}
                log.info("llm_client.geocode: %s -> %s,%s", address, coords["lat"], coords["lng"])
                return coords
        except Exception as exc:
            log.warning("llm_client.geocode: lookup failed for %r: %r", address, exc)
            return None
        log.info("llm_client.geocode: no match for %r", address)
        return None
