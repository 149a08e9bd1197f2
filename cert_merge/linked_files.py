"""Template and data files linked from disk, reloaded when they change."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

KINDS = ("template", "data")

Stamp = Tuple[int, int]


def _stamp(path: Path) -> Optional[Stamp]:
    try:
        st = path.stat()
    except OSError:
        return None
    return st.st_mtime_ns, st.st_size


@dataclass
class LinkedFile:
    path: Path
    kind: str
    stamp: Optional[Stamp] = field(default=None, compare=False)

    def __post_init__(self):
        if self.kind not in KINDS:
            raise ValueError(f"Unknown link kind: {self.kind}")
        self.path = Path(self.path).expanduser()

    @property
    def exists(self) -> bool:
        return self.path.is_file()

    @property
    def name(self) -> str:
        return self.path.name

    def read(self) -> bytes:
        data = self.path.read_bytes()
        self.stamp = _stamp(self.path)
        return data

    def has_changed(self) -> bool:
        current = _stamp(self.path)
        if current is None:
            return False
        return current != self.stamp


def poll_changes(linked: Iterable[LinkedFile]) -> List[str]:
    """Return the kinds of the linked files that changed since last read."""
    changed = []
    for lf in linked:
        if lf.has_changed():
            logger.info("Linked %s file changed: %s", lf.kind, lf.path)
            changed.append(lf.kind)
    return changed


class LinkRegistry:
    """Remembers linked file paths across restarts in a small JSON file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable link registry %s: %s", self.path, e)
            return {}
        if not isinstance(raw, dict):
            return {}
        return {k: v for k, v in raw.items() if k in KINDS and isinstance(v, str)}

    def _write(self, links: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(links, indent=2), encoding="utf-8")

    def links(self) -> Dict[str, LinkedFile]:
        return {kind: LinkedFile(Path(p), kind) for kind, p in self._read().items()}

    def link(self, kind: str, path: str | Path) -> LinkedFile:
        linked = LinkedFile(Path(path), kind)
        if not linked.exists:
            raise FileNotFoundError(f"File not found: {linked.path}")
        links = self._read()
        links[kind] = str(linked.path.resolve())
        self._write(links)
        logger.info("Linked %s file %s", kind, linked.path)
        return linked

    def unlink(self, kind: str) -> None:
        links = self._read()
        if links.pop(kind, None) is not None:
            self._write(links)
            logger.info("Unlinked %s file", kind)
