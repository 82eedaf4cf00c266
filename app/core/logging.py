import logging


class PrivacyFilter(logging.Filter):
    """Keep message bodies out of structured logs."""

    BLOCKED_KEYS = {"text", "message_text"}

    def filter(self, record: logging.LogRecord) -> bool:
        for key in self.BLOCKED_KEYS:
            if hasattr(record, key):
                setattr(record, key, "[REDACTED]")
        return True


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    root = logging.getLogger()
    if not any(isinstance(existing, PrivacyFilter) for existing in root.filters):
        root.addFilter(PrivacyFilter())
