import logging
import os
from pathlib import Path
from typing import Dict, MutableMapping, Optional


log = logging.getLogger(__name__)

ENV_FILE_VAR = "ONBOARDING_ENV_FILE"


def parse_env(text: str) -> Dict[str, str]:
    """``KEY=value`` pairs from dotenv text; ``export`` prefixes, quotes and trailing comments are handled."""
    values: Dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        elif " #" in value:
            value = value.split(" #", 1)[0].rstrip()
        if key:
            values[key] = value
    return values


def load_env(path: Optional[Path] = None, environ: Optional[MutableMapping[str, str]] = None) -> Dict[str, str]:
    """Copy unset keys from the env file into ``environ``; returns what was applied."""
    environ = os.environ if environ is None else environ
    env_path = path or Path(environ.get(ENV_FILE_VAR, ".env"))
    if not env_path.is_file():
        return {}
    try:
        parsed = parse_env(env_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        log.warning("onboarding.env: could not read %s: %r", env_path, exc)
        return {}
    applied = {k: v for k, v in parsed.items() if k not in environ}
    environ.update(applied)
    return applied


# Tests stay hermetic: a developer .env is never picked up under pytest
if not os.getenv("PYTEST_CURRENT_TEST"):
    load_env()
