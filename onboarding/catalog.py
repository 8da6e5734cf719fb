import json
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from pydantic import ValidationError

from onboarding.models import SiteTemplate, TemplateNotFoundError


log = logging.getLogger(__name__)


TEMPLATES_DIR = Path(os.getenv("TEMPLATES_DIR", "data/templates"))


class TemplateCatalog:
    """Read-only site templates, one JSON document per file in ``TEMPLATES_DIR``."""

    def __init__(self, directory: Optional[Path] = None, templates: Optional[Iterable[SiteTemplate]] = None) -> None:
        self.directory = Path(directory) if directory is not None else TEMPLATES_DIR
        self._templates: Optional[Dict[str, SiteTemplate]] = None
        if templates is not None:
            self._templates = {t.id: t for t in templates}

    def _load(self) -> Dict[str, SiteTemplate]:
        loaded: Dict[str, SiteTemplate] = {}
        if not self.directory.exists():
            log.warning("catalog.load: template directory %s does not exist", self.directory)
            return loaded
        for path in sorted(self.directory.glob("*.json")):
            try:
                raw = json.loads(path.read_text(encoding="utf-8"))
                tpl = SiteTemplate.model_validate(raw)
            except (ValueError, ValidationError):
                log.warning("catalog.load: skipping unreadable template %s", path.name, exc_info=True)
                continue
            loaded[tpl.id] = tpl
        log.info("catalog.load: %d templates from %s", len(loaded), self.directory)
        return loaded

    def _all(self) -> Dict[str, SiteTemplate]:
        if self._templates is None:
            self._templates = self._load()
        return self._templates

    def list(self) -> List[SiteTemplate]:
        return list(self._all().values())

    def get(self, template_id: Optional[str]) -> Optional[SiteTemplate]:
        if not template_id:
            return None
        return self._all().get(template_id)

    def require(self, template_id: Optional[str]) -> SiteTemplate:
        if not template_id:
            raise TemplateNotFoundError("No template selected")
        tpl = self.get(template_id)
        if tpl is None:
            raise TemplateNotFoundError(f"Template not found: {template_id}")
        return tpl

    def reload(self) -> None:
        self._templates = None
