"""
Batch processing package.

Normalises the accepted payload shapes into BatchQuery lists and runs them
with per-item failure isolation, preserving input order.
"""

from .inputs import BatchOperation, BatchQuery, normalize_batch_input, parse_batch_input
from .orchestrator import BatchItem, BatchOptions, BatchOrchestrator, BatchResult

__all__ = [
    "BatchOperation",
    "BatchQuery",
    "normalize_batch_input",
    "parse_batch_input",
    "BatchItem",
    "BatchOptions",
    "BatchOrchestrator",
    "BatchResult",
]
