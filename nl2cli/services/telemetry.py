"""OpenTelemetry logging and tracing service for translation telemetry"""

import logging
from datetime import UTC, datetime
from typing import Any

from opentelemetry import trace
from opentelemetry._logs import SeverityNumber, set_logger_provider
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from nl2cli.config import config
from nl2cli.models.command import Command

logger = logging.getLogger(__name__)


class TelemetryService:
    """Handle OpenTelemetry logging and tracing for translations"""

    def __init__(self):
        self.logging_enabled = config.otel_logging_enabled
        self.tracing_enabled = config.otel_tracing_enabled
        self.logger_provider = None
        self.tracer_provider = None
        self.otel_logger = None

        if self.logging_enabled:
            try:
                self._initialize_logging()
            except Exception as e:
                logger.warning(f"Failed to initialize OTel logging: {e}. Logging disabled.")
                self.logging_enabled = False

        if self.tracing_enabled:
            try:
                self._initialize_tracing()
            except Exception as e:
                logger.warning(f"Failed to initialize OTel tracing: {e}. Tracing disabled.")
                self.tracing_enabled = False

    def _resource(self) -> Resource:
        return Resource(
            attributes={
                SERVICE_NAME: config.otel_service_name,
                SERVICE_VERSION: config.otel_service_version,
            }
        )

    def _initialize_logging(self) -> None:
        """Initialize OpenTelemetry logging with OTLP log exporter"""
        self.logger_provider = LoggerProvider(resource=self._resource())

        log_endpoint = config.otel_endpoint
        if not log_endpoint.endswith("/v1/logs"):
            log_endpoint = f"{log_endpoint.rstrip('/')}/v1/logs"

        self.logger_provider.add_log_record_processor(
            BatchLogRecordProcessor(OTLPLogExporter(endpoint=log_endpoint))
        )
        set_logger_provider(self.logger_provider)
        self.otel_logger = self.logger_provider.get_logger(__name__)

        logger.info(f"OpenTelemetry logging initialized with endpoint: {log_endpoint}")

    def _initialize_tracing(self) -> None:
        """Initialize OpenTelemetry tracing with OTLP trace exporter"""
        self.tracer_provider = TracerProvider(resource=self._resource())

        trace_endpoint = config.otel_endpoint
        if not trace_endpoint.endswith("/v1/traces"):
            trace_endpoint = f"{trace_endpoint.rstrip('/')}/v1/traces"

        self.tracer_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=trace_endpoint))
        )
        # httpx instrumentation is set up by _ensure_instrumentation_initialized()
        trace.set_tracer_provider(self.tracer_provider)

        logger.info(f"OpenTelemetry tracing initialized with endpoint: {trace_endpoint}")

    def log_translation(
        self,
        source: str,
        query: str,
        provider: str | None = None,
        command: Command | None = None,
        error: Exception | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """
        Log a translation request and its outcome to OpenTelemetry

        Args:
            source: Entry point that handled the request (MCP tool name or "cli")
            query: The natural-language request
            provider: Resolved or requested provider hint
            command: The translated command (if successful)
            error: The error (if failed)
            metadata: Additional low-cardinality attributes (durations, counts)
        """
        if not self.logging_enabled or not self.otel_logger:
            return

        try:
            # Structured attributes hold LOW CARDINALITY values only
            attributes: dict[str, str | int | float | bool] = {
                "translation.source": source,
                "timestamp": datetime.now(UTC).isoformat(),
                "response.success": error is None,
            }
            if provider:
                attributes["translation.provider"] = provider

            if command:
                attributes["command.source"] = command.source.value
                attributes["command.attempts"] = command.attempts
                attributes["command.quality"] = float(command.quality.aggregate)
                attributes["command.token_count"] = len(command.text.split())

            for key, value in (metadata or {}).items():
                if isinstance(value, str | int | float | bool):
                    attributes[f"translation.{key}"] = value

            if error:
                attributes["error.type"] = type(error).__name__
                error_message = str(error)
                if len(error_message) > 500:
                    error_message = error_message[:500] + "..."
                attributes["error.message"] = error_message

            # High-cardinality data goes in the body
            truncated_query = query if len(query) <= 200 else query[:200] + "..."
            log_body_parts = [f"[{source}]", "SUCCESS" if error is None else "FAILED"]
            log_body_parts.append(f'query="{truncated_query}"')
            if command:
                log_body_parts.append(f'command="{command.text}"')
                if config.otel_log_full_results:
                    attributes["command.json"] = command.model_dump_json()
            if error:
                log_body_parts.append(f"error={type(error).__name__}")

            severity = logging.ERROR if error else logging.INFO
            self.otel_logger.emit(
                body=" ".join(log_body_parts),
                severity_number=SeverityNumber(self._severity_to_number(severity)),
                attributes=attributes,
                timestamp=int(datetime.now(UTC).timestamp() * 1e9),
            )

        except Exception as e:
            # Don't let telemetry errors break the application
            logger.warning(f"Failed to log telemetry: {e}")

    def _severity_to_number(self, level: int) -> int:
        """Convert Python logging level to OpenTelemetry severity number"""
        if level >= logging.CRITICAL:
            return 21  # FATAL
        elif level >= logging.ERROR:
            return 17  # ERROR
        elif level >= logging.WARNING:
            return 13  # WARN
        elif level >= logging.INFO:
            return 9  # INFO
        else:
            return 5  # DEBUG

    def shutdown(self) -> None:
        """Flush and stop exporters"""
        for provider in (self.logger_provider, self.tracer_provider):
            if provider is not None:
                try:
                    provider.shutdown()
                except Exception as e:
                    logger.warning(f"Failed to shut down telemetry provider: {e}")


# Global telemetry service instance
_telemetry_service: TelemetryService | None = None
# Track if instrumentation has been initialized
_instrumentation_initialized = False


def _ensure_instrumentation_initialized() -> None:
    """Ensure httpx instrumentation is initialized before HTTP clients are created"""
    global _instrumentation_initialized
    if not _instrumentation_initialized and config.otel_tracing_enabled:
        try:
            HTTPXClientInstrumentor().instrument()
            _instrumentation_initialized = True
            logger.info("HTTP request tracing instrumentation initialized")
        except Exception as e:
            logger.warning(f"Failed to initialize HTTP tracing instrumentation: {e}")


def get_telemetry_service() -> TelemetryService:
    """Get or create the global telemetry service instance"""
    global _telemetry_service
    _ensure_instrumentation_initialized()
    if _telemetry_service is None:
        _telemetry_service = TelemetryService()
    return _telemetry_service
