"""
Normalisation of batch payloads into ordered batch queries.

Accepted shapes:

- ``{"serde": "1.0.0", "tokio": "latest"}`` crate -> version map
- ``["serde", "tokio"]`` or ``{"crates": [...]}`` existence checks
- ``{"operations": [{"crate": "serde", "version": "1.0.0", "operation": "check_version"}, ...]}``

A directive that cannot be understood still produces a query, carrying the
``InvalidRequestError`` it will report, so item count always matches input.
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from shared.errors import InvalidRequestError
from shared.logging import get_logger


LATEST = "latest"
VERSION_PATTERN = re.compile(r"^[0-9A-Za-z.+\-]+$")

logger = get_logger("registry.batch.inputs")


class BatchOperation(str, Enum):
    """Closed set of batch directive kinds."""
    CHECK_VERSION = "check_version"
    BATCH_CHECK = "batch_check"
    INFO = "info"
    DEPS = "deps"


@dataclass(frozen=True)
class BatchQuery:
    """One logical query of a batch."""
    operation: Optional[BatchOperation]
    crate: Optional[str]
    version: Optional[str] = None
    error: Optional[InvalidRequestError] = None

    @classmethod
    def invalid(cls, message: str, raw: Any = None, crate: Optional[str] = None) -> "BatchQuery":
        return cls(operation=None, crate=crate, error=InvalidRequestError(message, details={"directive": raw}))

    @property
    def requested_version(self) -> Optional[str]:
        """Concrete version asked for, or None for the newest one."""
        if self.version is None or self.version == LATEST:
            return None
        return self.version


def _check_version_string(version: Any) -> Optional[str]:
    if not isinstance(version, str) or not version:
        return "Version must be a non-empty string"
    if version != LATEST and not VERSION_PATTERN.match(version):
        return f"Invalid version string '{version}'"
    return None


def _from_version_map(payload: Dict[str, Any]) -> List[BatchQuery]:
    queries = []
    for crate, version in payload.items():
        problem = _check_version_string(version)
        if not crate:
            queries.append(BatchQuery.invalid("Crate name cannot be empty", {crate: version}))
        elif problem:
            queries.append(BatchQuery.invalid(problem, {crate: version}, crate=crate))
        else:
            queries.append(BatchQuery(BatchOperation.CHECK_VERSION, crate, version))
    return queries


def _from_crate_list(crates: List[Any]) -> List[BatchQuery]:
    queries = []
    for crate in crates:
        if isinstance(crate, str) and crate:
            queries.append(BatchQuery(BatchOperation.BATCH_CHECK, crate))
        else:
            queries.append(BatchQuery.invalid("Crate name must be a non-empty string", crate))
    return queries


def _from_directive(directive: Any) -> List[BatchQuery]:
    if not isinstance(directive, dict):
        return [BatchQuery.invalid("Operation must be an object", directive)]

    raw_operation = directive.get("operation")
    crate = directive.get("crate")
    try:
        operation = BatchOperation(raw_operation)
    except ValueError:
        return [BatchQuery.invalid(f"Unknown batch operation '{raw_operation}'", directive,
                                   crate=crate if isinstance(crate, str) else None)]

    crates = directive.get("crates")
    if crates is not None and crate is None:
        if operation is not BatchOperation.BATCH_CHECK or not isinstance(crates, list) or not crates:
            return [BatchQuery.invalid("'crates' requires a non-empty list with operation 'batch_check'", directive)]
        return _from_crate_list(crates)

    if not isinstance(crate, str) or not crate:
        return [BatchQuery.invalid("Operation is missing 'crate'", directive)]

    version = directive.get("version")
    if version is not None:
        problem = _check_version_string(version)
        if problem:
            return [BatchQuery.invalid(problem, directive, crate=crate)]
    elif operation is BatchOperation.CHECK_VERSION:
        return [BatchQuery.invalid("Operation 'check_version' requires 'version'", directive, crate=crate)]

    return [BatchQuery(operation, crate, version)]


def normalize_batch_input(payload: Any) -> List[BatchQuery]:
    """Turn any accepted payload shape into ordered batch queries."""
    if isinstance(payload, list):
        if not payload:
            raise InvalidRequestError("Crates list cannot be empty")
        return _from_crate_list(payload)

    if not isinstance(payload, dict):
        raise InvalidRequestError(
            "Expected a JSON object or list for batch input",
            details={"type": type(payload).__name__}
        )
    if not payload:
        raise InvalidRequestError("Batch input cannot be empty")

    if "operations" in payload:
        operations = payload["operations"]
        if not isinstance(operations, list) or not operations:
            raise InvalidRequestError("Invalid operations format. Expected a non-empty array of operation objects.")
        queries: List[BatchQuery] = []
        for directive in operations:
            queries.extend(_from_directive(directive))
        return queries

    if "crates" in payload:
        crates = payload["crates"]
        if not isinstance(crates, list) or not crates:
            raise InvalidRequestError("Invalid crates list format. Expected a non-empty array of strings.")
        return _from_crate_list(crates)

    return _from_version_map(payload)


def parse_batch_input(text: str) -> List[BatchQuery]:
    """Parse JSON text and normalise it."""
    try:
        payload = json.loads(text)
    except ValueError as exc:
        logger.error("Failed to parse batch input", error=str(exc))
        raise InvalidRequestError(f"Invalid JSON: {exc}") from exc
    return normalize_batch_input(payload)
