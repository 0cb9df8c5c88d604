"""File-backed scan store.

Layout under ``store_dir``::

    <scan_id>.json              scan document (last write wins)
    <scan_id>.events.jsonl      append-only event log
    <scan_id>.report.json       latest generated report
    _index/by_email/<key>.json  JSON array of scan ids
    _index/by_domain/<key>.json JSON array of scan ids

Writes are plain blocking file operations without locking; concurrent
``update`` calls for the same scan id can race and must be serialized by the
caller.
"""
from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)

_SCAN_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")
_UNSAFE_KEY_RE = re.compile(r"[^a-z0-9._@+-]")


class ScanNotFoundError(KeyError):
    def __init__(self, scan_id: str):
        super().__init__(scan_id)
        self.scan_id = scan_id

    def __str__(self) -> str:
        return f"Scan not found: {self.scan_id}"


def safe_key(value: str) -> str:
    return _UNSAFE_KEY_RE.sub("_", str(value or "").strip().lower())


def deep_merge(base: Any, patch: Any) -> Any:
    """Merge ``patch`` into ``base``: dicts merge recursively, anything else is replaced."""
    if not isinstance(base, dict) or not isinstance(patch, dict):
        return patch
    out = dict(base)
    for key, value in patch.items():
        if isinstance(out.get(key), dict) and isinstance(value, dict):
            out[key] = deep_merge(out[key], value)
        else:
            out[key] = value
    return out


def _to_jsonable(doc: Any) -> Any:
    if isinstance(doc, BaseModel):
        return doc.model_dump(mode="json")
    return doc


class ScanStore:
    def __init__(self, store_dir: Path | str):
        self.store_dir = Path(store_dir).resolve()
        self.by_email_dir = self.store_dir / "_index" / "by_email"
        self.by_domain_dir = self.store_dir / "_index" / "by_domain"
        for d in (self.store_dir, self.by_email_dir, self.by_domain_dir):
            d.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _check_id(scan_id: str) -> str:
        if not isinstance(scan_id, str) or not _SCAN_ID_RE.match(scan_id):
            raise ValueError(f"Invalid scan id: {scan_id!r}")
        return scan_id

    def scan_path(self, scan_id: str) -> Path:
        return self.store_dir / f"{self._check_id(scan_id)}.json"

    def events_path(self, scan_id: str) -> Path:
        return self.store_dir / f"{self._check_id(scan_id)}.events.jsonl"

    def report_path(self, scan_id: str) -> Path:
        return self.store_dir / f"{self._check_id(scan_id)}.report.json"

    # --- documents

    def save(self, scan_id: str, doc: Any) -> None:
        payload = json.dumps(_to_jsonable(doc), indent=2)
        self.scan_path(scan_id).write_text(payload, encoding="utf-8")

    def load(self, scan_id: str) -> dict[str, Any] | None:
        return self._read_json(self.scan_path(scan_id))

    def update(self, scan_id: str, patch: Any) -> dict[str, Any]:
        existing = self.load(scan_id)
        if existing is None:
            raise ScanNotFoundError(scan_id)
        merged = deep_merge(existing, _to_jsonable(patch))
        self.save(scan_id, merged)
        return merged

    def save_report(self, scan_id: str, report: Any) -> Path:
        path = self.report_path(scan_id)
        path.write_text(json.dumps(_to_jsonable(report), indent=2), encoding="utf-8")
        return path

    def load_report(self, scan_id: str) -> dict[str, Any] | None:
        return self._read_json(self.report_path(scan_id))

    def _read_json(self, path: Path) -> Any | None:
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Unreadable store file %s: %s", path, e)
            return None

    # --- events

    def append_event(self, scan_id: str, event: dict[str, Any]) -> None:
        record = {"at": datetime.now(timezone.utc).isoformat(), **event}
        with self.events_path(scan_id).open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(record) + "\n")

    def read_events(self, scan_id: str) -> list[dict[str, Any]]:
        path = self.events_path(scan_id)
        if not path.exists():
            return []
        events: list[dict[str, Any]] = []
        for line in path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError:
                logger.warning("Skipping malformed event line in %s", path)
        return events

    # --- indexes

    def _read_index(self, path: Path) -> list[str]:
        data = self._read_json(path)
        # Older index files wrapped the list as {"scan_ids": [...]}.
        if isinstance(data, dict):
            data = data.get("scan_ids")
        if not isinstance(data, list):
            return []
        return [str(x) for x in data]

    def _add_to_index(self, index_dir: Path, raw_key: str, scan_id: str) -> None:
        key = safe_key(raw_key)
        if not key:
            return
        path = index_dir / f"{key}.json"
        scan_ids = self._read_index(path)
        if scan_id not in scan_ids:
            scan_ids.append(scan_id)
        path.write_text(json.dumps(scan_ids, indent=2), encoding="utf-8")

    def _find(self, index_dir: Path, raw_key: str) -> list[str]:
        key = safe_key(raw_key)
        if not key:
            return []
        return self._read_index(index_dir / f"{key}.json")

    def index_by_email(self, email: str, scan_id: str) -> None:
        self._add_to_index(self.by_email_dir, email, scan_id)

    def index_by_domain(self, domain: str, scan_id: str) -> None:
        self._add_to_index(self.by_domain_dir, domain, scan_id)

    def find_by_email(self, email: str) -> list[str]:
        return self._find(self.by_email_dir, email)

    def find_by_domain(self, domain: str) -> list[str]:
        return self._find(self.by_domain_dir, domain)
