"""Persistent template library.

Templates are kept in one JSON document. The .docx bytes are stored base64
encoded next to the preview HTML and the detected placeholders, so a saved
template can be reloaded without re-uploading the file.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
import tempfile
import time
from datetime import date
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from .config import SavedTemplate
from .merge import CertificateTemplate

logger = logging.getLogger(__name__)


class TemplateStoreError(RuntimeError):
    """Raised when the template library cannot be read or written."""


def us_date(value: date) -> str:
    return f"{value.month}/{value.day}/{value.year}"


class TemplateStore:
    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read(self) -> List[SavedTemplate]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8") or "[]")
            if not isinstance(raw, list):
                raise TypeError("template library must be a JSON list")
            return [SavedTemplate.model_validate(item) for item in raw]
        except (OSError, json.JSONDecodeError, TypeError, ValidationError) as e:
            raise TemplateStoreError(f"Could not read template library {self.path}: {e}") from e

    def _write(self, templates: List[SavedTemplate]) -> None:
        payload = json.dumps([t.model_dump() for t in templates], indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".templates-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise TemplateStoreError(f"Could not write template library {self.path}: {e}") from e

    def list(self) -> List[SavedTemplate]:
        return self._read()

    def get(self, template_id: str) -> Optional[SavedTemplate]:
        for t in self._read():
            if t.id == template_id:
                return t
        return None

    def save(self, name: str, binary: Optional[bytes], html: str = "", placeholders: Optional[List[str]] = None) -> SavedTemplate:
        if not name or not name.strip():
            raise ValueError("Please enter a template name")
        if not binary:
            raise ValueError("No template to save")

        templates = self._read()
        used = {t.id for t in templates}
        stamp = int(time.time() * 1000)
        while str(stamp) in used:
            stamp += 1

        saved = SavedTemplate(
            id=str(stamp),
            name=name,
            html=html,
            binary=base64.b64encode(binary).decode("ascii"),
            placeholders=list(placeholders or []),
            uploadDate=us_date(date.today()),
        )
        templates.append(saved)
        self._write(templates)
        logger.info("Saved template %r as %s", saved.name, saved.id)
        return saved

    def delete(self, template_id: str) -> bool:
        templates = self._read()
        remaining = [t for t in templates if t.id != template_id]
        if len(remaining) == len(templates):
            return False
        self._write(remaining)
        logger.info("Deleted template %s", template_id)
        return True

    def load(self, template_id: str) -> CertificateTemplate:
        saved = self.get(template_id)
        if saved is None:
            raise KeyError(template_id)
        try:
            binary = base64.b64decode(saved.binary, validate=True)
        except (binascii.Error, ValueError) as e:
            raise TemplateStoreError(f"Template {saved.name!r} has corrupt data") from e
        return CertificateTemplate(
            name=saved.name,
            binary=binary,
            html=saved.html,
            placeholders=list(saved.placeholders),
        )
