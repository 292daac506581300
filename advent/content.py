"""Helpers for loading authored Advent content (edit advent/config/advent_2025.json for prompts/prizes)."""

from __future__ import annotations

import json
import os
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional

from flask import current_app, has_app_context

from advent.errors import ContentConfigError
from advent.records import VoucherOption, coerce_date

DEFAULT_CONFIG_BASENAME = "advent_2025.json"
DEFAULT_END_DATE = date(2025, 12, 25)
_CONFIG_CACHE: Dict[str, object] = {"data": None, "mtime": None, "path": None}


class AdventContent:
    """Parsed content file: day prompts, the voucher catalog and the season end date."""

    def __init__(
        self,
        prompts: Optional[Dict[str, Dict[str, str]]] = None,
        voucher_options: Optional[List[VoucherOption]] = None,
        end_date: date = DEFAULT_END_DATE,
    ):
        self.prompts = dict(prompts or {})
        self.voucher_options = list(voucher_options or [])
        self.end_date = end_date

    def prompt_for(self, day: date) -> Optional[Dict[str, str]]:
        payload = self.prompts.get(day.isoformat())
        return dict(payload) if payload is not None else None

    @classmethod
    def from_payload(cls, payload: dict) -> "AdventContent":
        if not isinstance(payload, dict):
            raise ContentConfigError("Advent content must be a JSON object")

        prompts: Dict[str, Dict[str, str]] = {}
        for raw_day, fields in (payload.get("prompts") or {}).items():
            day = coerce_date(raw_day)
            if day is None or not isinstance(fields, dict):
                continue
            prompts[day.isoformat()] = {
                str(key): "" if value is None else str(value) for key, value in fields.items()
            }

        options = [
            VoucherOption.from_dict(entry)
            for entry in payload.get("voucher_options") or []
            if isinstance(entry, dict)
        ]
        end_date = coerce_date(payload.get("end_date")) or DEFAULT_END_DATE
        return cls(prompts=prompts, voucher_options=options, end_date=end_date)


def load_advent_content(force_refresh: bool = False, path: Optional[Path] = None) -> AdventContent:
    """Load and cache the content file, re-reading it when its mtime changes."""
    config_path = Path(path) if path else _resolve_config_path()

    mtime = config_path.stat().st_mtime
    cached = _CONFIG_CACHE.get("data")
    if (
        not force_refresh
        and cached
        and _CONFIG_CACHE.get("mtime") == mtime
        and _CONFIG_CACHE.get("path") == config_path
    ):
        return cached  # type: ignore[return-value]

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except json.JSONDecodeError as exc:
        raise ContentConfigError(f"Advent content at {config_path} is not valid JSON: {exc}") from exc

    content = AdventContent.from_payload(payload)
    _CONFIG_CACHE["data"] = content
    _CONFIG_CACHE["mtime"] = mtime
    _CONFIG_CACHE["path"] = config_path
    return content


def _resolve_config_path() -> Path:
    """Return the first Advent content path that exists across multiple fallbacks."""
    candidates: List[Path] = []
    if has_app_context():
        configured = current_app.config.get("ADVENT_CONFIG_PATH")
        if configured:
            candidates.append(Path(configured).expanduser())
    env_override = os.environ.get("ADVENT_CONFIG_PATH")
    if env_override:
        candidates.append(Path(env_override).expanduser())

    module_dir = Path(__file__).resolve().parent
    candidates.append(module_dir / "config" / DEFAULT_CONFIG_BASENAME)

    if has_app_context():
        root_path = Path(current_app.root_path)
        candidates.extend(
            [
                root_path / "advent" / "config" / DEFAULT_CONFIG_BASENAME,
                root_path / "config" / DEFAULT_CONFIG_BASENAME,
            ]
        )

    seen: List[Path] = []
    for candidate in candidates:
        if candidate in seen:
            continue
        seen.append(candidate)
        if candidate.exists():
            return candidate

    checked = ", ".join(str(candidate) for candidate in seen)
    raise FileNotFoundError(f"Advent content missing. Checked: {checked}")
