"""
Decoding of raw registry responses into typed results.
"""

import json
from typing import Any, Dict, List

from pydantic import ValidationError

from shared.errors import DecodeError
from registry_client.models import (
    CrateInfo,
    CrateSummary,
    DependencyInfo,
    SearchResult,
    VersionInfo,
)


def _load_object(raw: bytes, what: str) -> Dict[str, Any]:
    try:
        payload = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as exc:
        raise DecodeError(f"Invalid JSON in {what} response: {exc}") from exc
    if not isinstance(payload, dict):
        raise DecodeError(f"Expected a JSON object in {what} response",
                          details={"type": type(payload).__name__})
    return payload


def _require_list(payload: Dict[str, Any], field: str, what: str) -> List[Any]:
    value = payload.get(field)
    if not isinstance(value, list):
        raise DecodeError(f"Missing '{field}' list in {what} response")
    return value


def _optional_list(payload: Dict[str, Any], field: str, what: str) -> List[Any]:
    value = payload.get(field)
    if value is None:
        return []
    if not isinstance(value, list):
        raise DecodeError(f"Expected '{field}' to be a list in {what} response",
                          details={"type": type(value).__name__})
    return value


def _labels(payload: Dict[str, Any], field: str, label: str) -> List[str]:
    """Pull ``label`` out of each ``{"id": ..., label: ...}`` record of ``field``."""
    return [
        record[label] for record in _optional_list(payload, field, "crate")
        if isinstance(record, dict) and isinstance(record.get(label), str)
    ]


def decode_crate(raw: bytes) -> CrateInfo:
    """Decode ``GET /crates/{name}``."""
    payload = _load_object(raw, "crate")
    crate = payload.get("crate")
    if not isinstance(crate, dict):
        raise DecodeError("Missing 'crate' object in crate response")

    data = dict(crate)
    # crate.versions holds version ids; the records live at the top level.
    data["versions"] = _optional_list(payload, "versions", "crate")
    data["keywords"] = _labels(payload, "keywords", "keyword")
    data["categories"] = _labels(payload, "categories", "category")
    try:
        return CrateInfo.model_validate(data)
    except ValidationError as exc:
        raise DecodeError(f"Unexpected crate record: {exc.error_count()} invalid field(s)",
                          details={"errors": exc.errors(include_url=False, include_context=False)}) from exc


def decode_versions(raw: bytes) -> List[VersionInfo]:
    """Decode ``GET /crates/{name}/versions`` preserving registry order."""
    payload = _load_object(raw, "versions")
    records = _require_list(payload, "versions", "versions")
    try:
        return [VersionInfo.model_validate(record) for record in records]
    except ValidationError as exc:
        raise DecodeError(f"Unexpected version record: {exc.error_count()} invalid field(s)") from exc


def decode_dependencies(raw: bytes) -> List[DependencyInfo]:
    """Decode ``GET /crates/{name}/{version}/dependencies``."""
    payload = _load_object(raw, "dependencies")
    records = _require_list(payload, "dependencies", "dependencies")
    try:
        return [DependencyInfo.model_validate(record) for record in records]
    except ValidationError as exc:
        raise DecodeError(f"Unexpected dependency record: {exc.error_count()} invalid field(s)") from exc


def decode_search(raw: bytes) -> SearchResult:
    """Decode ``GET /crates?q=...``."""
    payload = _load_object(raw, "search")
    records = _require_list(payload, "crates", "search")
    meta = payload.get("meta") or {}
    if not isinstance(meta, dict):
        raise DecodeError("Expected 'meta' to be an object in search response")
    try:
        crates = [CrateSummary.model_validate(record) for record in records]
        total = int(meta.get("total", len(crates)))
    except ValidationError as exc:
        raise DecodeError(f"Unexpected search record: {exc.error_count()} invalid field(s)") from exc
    except (TypeError, ValueError) as exc:
        raise DecodeError("Invalid search total") from exc
    return SearchResult(crates=crates, total_count=total)
