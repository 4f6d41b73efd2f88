"""
OpenTelemetry bootstrap for hosts embedding the log alarm engine.

The engine itself only asks for tracers (`get_tracer`); exporting is the
host's decision. Typical host startup:

1. Call `setup_telemetry(service_name="my-service")` once.
2. Call `attach_logging_handler()` after the host configured logging, so
   records (including transport failure warnings) are exported over OTLP.

Everything is a no-op unless `ENABLE_OTEL` is truthy and an OTLP endpoint is
configured, so tests and local runs never try to reach a collector.
"""

import logging
import os

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

DEFAULT_SERVICE_NAME = "log-alarm"

_global_logger_provider = None
_otlp_logging_handler = None

logger = logging.getLogger(__name__)

_initialization_state = {
    "tracing": {"success": False, "error": None},
    "metrics": {"success": False, "error": None},
    "logs": {"success": False, "error": None},
    "http_instrumentation": {"success": False, "error": None},
}


def _env_flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def parse_otlp_headers(headers_env: str, signal_type: str) -> dict[str, str] | None:
    """
    Parse OTLP headers from environment variable.

    Args:
        headers_env: Header string in format "key1=value1,key2=value2"
        signal_type: Signal type for logging (e.g., "tracing", "metrics", "logs")

    Returns:
        Dictionary of headers or None if invalid/empty
    """
    if not headers_env or not headers_env.strip():
        return None

    headers_list = [
        tuple(h.strip().split("=", 1))
        for h in headers_env.split(",")
        if "=" in h.strip()
    ]
    headers = {k.strip(): v.strip() for k, v in headers_list}

    if not headers:
        logger.warning(
            f"OTEL_EXPORTER_OTLP_HEADERS provided but no valid key=value pairs found. "
            f"Expected format: 'key1=value1,key2=value2'. Got: '{headers_env[:50]}...'"
        )
        return None

    logger.debug(f"Parsed {len(headers)} OTLP header(s) for {signal_type}")
    return headers


def setup_telemetry(
    service_name: str = DEFAULT_SERVICE_NAME,
    otlp_endpoint: str | None = None,
    enable_metrics: bool = True,
    enable_traces: bool = True,
    enable_logs: bool = True,
) -> None:
    """
    Configure OTLP export for traces, metrics and logs.

    Args:
        service_name: Name reported in the `service.name` resource attribute
        otlp_endpoint: OTLP endpoint URL (defaults to OTEL_EXPORTER_OTLP_ENDPOINT)
        enable_metrics: Whether to export metrics
        enable_traces: Whether to export traces
        enable_logs: Whether to prepare the log exporter
    """
    global _global_logger_provider

    if not _env_flag("ENABLE_OTEL"):
        return

    otlp_endpoint = otlp_endpoint or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not otlp_endpoint:
        logger.debug("No OTLP endpoint configured, telemetry export disabled")
        return

    fail_fast = _env_flag("OTEL_FAIL_FAST", "false")
    headers = parse_otlp_headers(os.getenv("OTEL_EXPORTER_OTLP_HEADERS", ""), "otlp")
    resource = Resource.create(
        {
            "service.name": service_name,
            "deployment.environment": os.getenv("ENVIRONMENT", "production"),
        }
    )

    if enable_traces and _env_flag("ENABLE_TRACES"):
        try:
            tracer_provider = TracerProvider(resource=resource)
            tracer_provider.add_span_processor(
                BatchSpanProcessor(
                    OTLPSpanExporter(endpoint=otlp_endpoint, headers=headers)
                )
            )
            trace.set_tracer_provider(tracer_provider)
            _initialization_state["tracing"]["success"] = True
            logger.info(f"OpenTelemetry tracing enabled for {service_name}")
        except Exception as e:
            _initialization_state["tracing"]["error"] = str(e)
            logger.error(f"Failed to set up OpenTelemetry tracing: {e}", exc_info=True)
            if fail_fast:
                raise

    if enable_metrics and _env_flag("ENABLE_METRICS"):
        try:
            reader = PeriodicExportingMetricReader(
                OTLPMetricExporter(endpoint=otlp_endpoint, headers=headers),
                export_interval_millis=int(
                    os.getenv("OTEL_METRIC_EXPORT_INTERVAL", "60000")
                ),
            )
            metrics.set_meter_provider(
                MeterProvider(resource=resource, metric_readers=[reader])
            )
            _initialization_state["metrics"]["success"] = True
            logger.info(f"OpenTelemetry metrics enabled for {service_name}")
        except Exception as e:
            _initialization_state["metrics"]["error"] = str(e)
            logger.error(f"Failed to set up OpenTelemetry metrics: {e}", exc_info=True)
            if fail_fast:
                raise

    if enable_logs and _env_flag("ENABLE_LOGS"):
        try:
            logger_provider = LoggerProvider(resource=resource)
            logger_provider.add_log_record_processor(
                BatchLogRecordProcessor(
                    OTLPLogExporter(endpoint=otlp_endpoint, headers=headers)
                )
            )
            _global_logger_provider = logger_provider
            _initialization_state["logs"]["success"] = True
            logger.info(f"OpenTelemetry logging export configured for {service_name}")
        except Exception as e:
            _initialization_state["logs"]["error"] = str(e)
            logger.error(
                f"Failed to set up OpenTelemetry logging export: {e}", exc_info=True
            )
            if fail_fast:
                raise

    # Webhook transports use httpx.
    try:
        HTTPXClientInstrumentor().instrument()
        _initialization_state["http_instrumentation"]["success"] = True
    except Exception as e:
        _initialization_state["http_instrumentation"]["error"] = str(e)
        logger.error(f"Failed to instrument httpx: {e}", exc_info=True)
        if fail_fast:
            raise


def attach_logging_handler() -> bool:
    """
    Attach the OTLP logging handler to the root logger.

    Call after the host has configured logging. Safe to call repeatedly.
    """
    global _otlp_logging_handler

    if _global_logger_provider is None:
        logger.warning("Logger provider not configured - logging export not available")
        return False

    root_logger = logging.getLogger()
    if _otlp_logging_handler is not None and _otlp_logging_handler in root_logger.handlers:
        logger.debug("OTLP logging handler already attached")
        return True

    handler = LoggingHandler(
        level=logging.NOTSET, logger_provider=_global_logger_provider
    )
    root_logger.addHandler(handler)
    _otlp_logging_handler = handler
    logger.info("OTLP logging handler attached to root logger")
    return True


def get_tracer(name: str | None = None) -> trace.Tracer:
    return trace.get_tracer(name or DEFAULT_SERVICE_NAME)


def get_initialization_state() -> dict:
    """Copy of the per-signal setup state, for host health checks."""
    return {k: dict(v) for k, v in _initialization_state.items()}
