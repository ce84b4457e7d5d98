"""Logging and OpenTelemetry tracing for the job board API.

Degraded-mode fallbacks are tagged on the active request span so outages stay
visible in traces even though the public listing keeps answering 200.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from typing import Any

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from jobboard.core.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s trace_id=%(trace_id)s span_id=%(span_id)s %(message)s"
UNTRACED_PATHS = "healthz,readyz"

_ENDPOINT_ENV_VARS = ("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", "OTEL_EXPORTER_OTLP_ENDPOINT")
_EMPTY_TRACE_ID = "0" * 32
_EMPTY_SPAN_ID = "0" * 16

_base_record_factory = logging.getLogRecordFactory()
_correlation_installed = False
_httpx_instrumentor = HTTPXClientInstrumentor()

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ApiTelemetry:
    provider: TracerProvider | None = None

    @property
    def enabled(self) -> bool:
        return self.provider is not None


def configure_api_logging(settings: Settings) -> None:
    _install_log_correlation()
    root = logging.getLogger()
    if root.handlers:
        return
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)


def setup_api_telemetry(app: FastAPI, settings: Settings) -> ApiTelemetry:
    if not settings.otel_enabled:
        return ApiTelemetry()

    if settings.otel_log_correlation:
        _install_log_correlation()

    resource = Resource.create(
        {
            SERVICE_NAME: settings.otel_service_name,
            DEPLOYMENT_ENVIRONMENT: settings.environment,
            "jobboard.storage_backend": settings.storage_backend,
            "jobboard.identity_provider": settings.identity_provider,
        }
    )
    provider = TracerProvider(resource=resource, sampler=TraceIdRatioBased(settings.otel_trace_sample_ratio))
    exporter = _build_exporter(settings)
    if exporter is not None:
        provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider, excluded_urls=UNTRACED_PATHS)
    # Supabase token checks are the only outbound HTTP calls.
    _httpx_instrumentor.instrument(tracer_provider=provider)
    return ApiTelemetry(provider=provider)


def shutdown_api_telemetry(app: FastAPI, telemetry: ApiTelemetry) -> None:
    if telemetry.provider is None:
        return
    FastAPIInstrumentor.uninstrument_app(app)
    _httpx_instrumentor.uninstrument()
    telemetry.provider.force_flush()
    telemetry.provider.shutdown()


def mark_degraded(reason: str, **attributes: Any) -> None:
    """Tag the current span as served from fallback data."""
    span = trace.get_current_span()
    if not span.is_recording():
        return
    span.set_attribute("jobboard.degraded", True)
    span.set_attribute("jobboard.degraded.reason", reason)
    for key, value in attributes.items():
        if value is not None:
            span.set_attribute(f"jobboard.degraded.{key}", value)


def _build_exporter(settings: Settings) -> OTLPSpanExporter | None:
    endpoint = settings.otel_exporter_otlp_endpoint
    for env_var in _ENDPOINT_ENV_VARS:
        endpoint = endpoint or os.getenv(env_var)
    if not endpoint:
        logger.info("no OTLP endpoint configured; spans stay in-process for service=%s", settings.otel_service_name)
        return None

    kwargs: dict[str, Any] = {"endpoint": endpoint}
    headers = _parse_headers(settings.otel_exporter_otlp_headers or os.getenv("OTEL_EXPORTER_OTLP_HEADERS"))
    if headers:
        kwargs["headers"] = headers
    return OTLPSpanExporter(**kwargs)


def _parse_headers(raw: str | None) -> dict[str, str]:
    """Parse the OTLP ``key=value,key2=value2`` header format."""
    pairs = (item.partition("=") for item in (raw or "").split(","))
    return {key.strip(): value.strip() for key, separator, value in pairs if separator and key.strip()}


def _span_ids() -> tuple[str, str]:
    context = trace.get_current_span().get_span_context()
    if not context.is_valid:
        return _EMPTY_TRACE_ID, _EMPTY_SPAN_ID
    return format(context.trace_id, "032x"), format(context.span_id, "016x")


def _install_log_correlation() -> None:
    global _correlation_installed
    if _correlation_installed:
        return

    def record_factory(*args: object, **kwargs: object) -> logging.LogRecord:
        record = _base_record_factory(*args, **kwargs)
        record.trace_id, record.span_id = _span_ids()
        return record

    logging.setLogRecordFactory(record_factory)
    _correlation_installed = True
