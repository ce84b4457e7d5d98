from __future__ import annotations

import asyncio
import logging

from fastapi import FastAPI
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from jobboard.core.config import Settings
from jobboard.core.telemetry import (
    _install_log_correlation,
    _parse_headers,
    _span_ids,
    mark_degraded,
    setup_api_telemetry,
)
from jobboard.services.job_filters import JobFilters
from jobboard.services.jobs import JobCatalog, load_fallback_jobs
from jobboard.services.repository import RepositoryUnavailableError


class UnavailableListingRepository:
    async def list_jobs(self, **_: object) -> tuple[list[dict], int]:
        raise RepositoryUnavailableError("database unavailable")


def _local_tracer() -> tuple[InMemorySpanExporter, object]:
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return exporter, provider.get_tracer("jobboard-tests")


def test_parse_headers() -> None:
    assert _parse_headers("api-key=abc, x-team = jobs ,broken,=nokey") == {"api-key": "abc", "x-team": "jobs"}
    assert _parse_headers(None) == {}


def test_disabled_telemetry_is_a_no_op() -> None:
    telemetry = setup_api_telemetry(FastAPI(), Settings(otel_enabled=False))

    assert telemetry.enabled is False


def test_fallback_listing_tags_the_request_span() -> None:
    exporter, tracer = _local_tracer()
    catalog = JobCatalog(UnavailableListingRepository(), fallback_jobs=load_fallback_jobs(Settings()))

    async def scenario() -> dict:
        with tracer.start_as_current_span("GET /jobs"):
            return await catalog.list(page=1, page_size=10, filters=JobFilters())

    result = asyncio.run(scenario())

    assert result["total"] == 3
    (span,) = exporter.get_finished_spans()
    assert span.attributes["jobboard.degraded"] is True
    assert span.attributes["jobboard.degraded.reason"] == "storage_unavailable"
    assert span.attributes["jobboard.degraded.operation"] == "list_jobs"


def test_mark_degraded_outside_a_span_does_nothing() -> None:
    mark_degraded("storage_unavailable", operation="get_job")


def test_log_records_carry_span_ids() -> None:
    _install_log_correlation()
    _, tracer = _local_tracer()

    assert _span_ids() == ("0" * 32, "0" * 16)
    with tracer.start_as_current_span("work") as span:
        trace_id, span_id = _span_ids()
        record = logging.getLogRecordFactory()("jobboard", logging.INFO, __file__, 1, "msg", None, None)

    assert trace_id == format(span.get_span_context().trace_id, "032x")
    assert span_id == format(span.get_span_context().span_id, "016x")
    assert record.trace_id == trace_id
