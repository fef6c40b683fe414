"""
Root logging setup that renders the structured ``event`` field.
"""
import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(event)s]: %(message)s"


class EventFieldFilter(logging.Filter):
    """Give records logged without ``extra={"event": ...}`` a placeholder event."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "event"):
            record.event = "-"
        return True


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
    for handler in logging.getLogger().handlers:
        if not any(isinstance(existing, EventFieldFilter) for existing in handler.filters):
            handler.addFilter(EventFieldFilter())
