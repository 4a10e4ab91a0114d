import logging

from opentelemetry import trace

from .config import StorefrontSettings, get_settings

_NO_TRACE = "-"
_LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(app_name)s | %(name)s | trace_id=%(trace_id)s span_id=%(span_id)s | %(message)s"
)


class TraceContextFilter(logging.Filter):
    """Stamp records with the app name and the active OpenTelemetry span ids."""

    def __init__(self, app_name: str) -> None:
        super().__init__()
        self.app_name = app_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.app_name = self.app_name
        record.trace_id, record.span_id = _NO_TRACE, _NO_TRACE
        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            record.trace_id = trace.format_trace_id(span_context.trace_id)
            record.span_id = trace.format_span_id(span_context.span_id)
        return True


def _install(target: logging.Logger | logging.Handler, context_filter: TraceContextFilter) -> None:
    current = next((f for f in target.filters if isinstance(f, TraceContextFilter)), None)
    if current is None:
        target.addFilter(context_filter)
    else:
        current.app_name = context_filter.app_name


def configure_logging(settings: StorefrontSettings | None = None) -> None:
    """Set up root logging with trace-aware records; safe to call repeatedly."""

    resolved = settings or get_settings()
    logging.basicConfig(level=resolved.log_level, format=_LOG_FORMAT)

    root_logger = logging.getLogger()
    context_filter = TraceContextFilter(resolved.app_name)
    _install(root_logger, context_filter)
    for handler in root_logger.handlers:
        _install(handler, context_filter)
