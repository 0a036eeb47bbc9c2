"""
Batch orchestration over the registry client.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from shared.errors import ErrorKind, InternalError, InvalidRequestError, RegistryClientError
from shared.logging import get_logger, request_id_var
from shared.metrics import MetricsCollector

from registry_client.batch.inputs import BatchOperation, BatchQuery, normalize_batch_input
from registry_client.client import RegistryClient
from registry_client.models import CrateCheck, Endpoint, QueryKey


class BatchOptions(BaseModel):
    """Options for batch processing."""
    parallel: bool = Field(False, description="Process queries concurrently")
    max_concurrent: int = Field(10, gt=0, description="Worker pool size for parallel mode")
    include_details: bool = Field(False, description="Attach full crate info to checks")
    timeout_seconds: Optional[float] = Field(30.0, gt=0, description="Deadline per query")


@dataclass
class BatchItem:
    """Outcome of one batch query: a value or an error, never both."""
    query: BatchQuery
    key: Optional[QueryKey] = None
    value: Any = None
    error: Optional[RegistryClientError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error is not None else None


@dataclass
class BatchResult:
    """Ordered batch outcomes; counts are derived from the items."""
    request_id: str
    items: List[BatchItem] = field(default_factory=list)
    processing_time_ms: int = 0

    @property
    def total_processed(self) -> int:
        return len(self.items)

    @property
    def successful(self) -> int:
        return sum(1 for item in self.items if item.ok)

    @property
    def failed(self) -> int:
        return self.total_processed - self.successful

    def summary(self) -> Dict[str, Any]:
        errors: Dict[str, int] = {}
        for item in self.items:
            if item.error is not None:
                errors[item.error.kind.value] = errors.get(item.error.kind.value, 0) + 1
        return {
            "request_id": self.request_id,
            "total_processed": self.total_processed,
            "successful": self.successful,
            "failed": self.failed,
            "errors": errors,
            "processing_time_ms": self.processing_time_ms,
        }


def query_key(query: BatchQuery) -> Optional[QueryKey]:
    if query.error is not None or query.crate is None:
        return None
    if query.operation is BatchOperation.DEPS:
        return QueryKey.build(Endpoint.DEPENDENCIES, query.crate, query.requested_version)
    return QueryKey.build(Endpoint.CRATE, query.crate)


class BatchOrchestrator:
    """Runs batch queries sequentially or on a bounded worker pool."""

    def __init__(
        self,
        client: RegistryClient,
        *,
        options: Optional[BatchOptions] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.client = client
        self.options = options or BatchOptions(max_concurrent=client.config.batch_max_concurrent)
        self.metrics = metrics
        self.logger = get_logger("registry.batch")

    async def run(self, payload: Any, options: Optional[BatchOptions] = None) -> BatchResult:
        """Normalise a raw payload and run it."""
        options = options or self.options
        queries = normalize_batch_input(payload)
        return await self.run_batch(queries, options.parallel, options=options)

    async def run_batch(
        self,
        queries: Sequence[BatchQuery],
        parallel: bool = False,
        *,
        options: Optional[BatchOptions] = None,
    ) -> BatchResult:
        options = options or self.options
        request_id = str(uuid.uuid4())
        token = request_id_var.set(request_id)
        started = time.perf_counter()
        try:
            self.logger.info(
                "Processing batch",
                total=len(queries),
                parallel=parallel,
                max_concurrent=options.max_concurrent
            )
            if parallel:
                items = await self._run_parallel(queries, options)
            else:
                items = [await self._run_one(query, options) for query in queries]

            result = BatchResult(
                request_id=request_id,
                items=items,
                processing_time_ms=int((time.perf_counter() - started) * 1000),
            )
            self.logger.info(
                "Batch processing completed",
                total=result.total_processed,
                successful=result.successful,
                failed=result.failed,
                processing_time_ms=result.processing_time_ms
            )
            return result
        finally:
            request_id_var.reset(token)

    async def _run_parallel(self, queries: Sequence[BatchQuery], options: BatchOptions) -> List[BatchItem]:
        workers = asyncio.Semaphore(options.max_concurrent)
        slots: List[Any] = [None] * len(queries)

        async def worker(index: int, query: BatchQuery) -> None:
            async with workers:
                slots[index] = await self._run_one(query, options)

        await asyncio.gather(*(worker(i, q) for i, q in enumerate(queries)))
        return slots

    async def _run_one(self, query: BatchQuery, options: BatchOptions) -> BatchItem:
        item = BatchItem(query=query, key=query_key(query))
        try:
            item.value = await self._execute(query, options)
        except RegistryClientError as e:
            item.error = e
            self.logger.warning(
                "Batch item failed",
                crate=query.crate,
                operation=query.operation.value if query.operation else None,
                error_kind=e.kind.value,
                error=e.message
            )
        except Exception as e:
            item.error = InternalError(e, details={"crate": query.crate})
            self.logger.exception(
                "Batch item raised unexpectedly",
                crate=query.crate,
                operation=query.operation.value if query.operation else None
            )
        if self.metrics is not None:
            self.metrics.increment_counter("registry_batch_items_total", outcome="success" if item.ok else "failure")
        return item

    async def _execute(self, query: BatchQuery, options: BatchOptions) -> Any:
        if query.error is not None:
            raise query.error
        timeout = options.timeout_seconds

        if query.operation is BatchOperation.CHECK_VERSION or query.operation is BatchOperation.BATCH_CHECK:
            return await self._check(query, options)
        elif query.operation is BatchOperation.INFO:
            return await self.client.info(query.crate, timeout=timeout)
        elif query.operation is BatchOperation.DEPS:
            return await self.client.deps(query.crate, query.requested_version, timeout=timeout)
        raise InvalidRequestError(f"Unsupported batch operation '{query.operation}'")

    async def _check(self, query: BatchQuery, options: BatchOptions) -> CrateCheck:
        timeout = options.timeout_seconds
        info = await self.client.info(query.crate, timeout=timeout)

        version_exists: Optional[bool] = None
        if query.version is not None:
            if query.requested_version is None:
                version_exists = True
            else:
                version_exists = await self.client.version_exists(query.crate, query.version, timeout=timeout)

        return CrateCheck(
            crate_name=query.crate,
            exists=True,
            latest_version=info.newest_version,
            requested_version=query.version,
            version_exists=version_exists,
            info=info if options.include_details else None,
        )
