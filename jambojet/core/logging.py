"""
Logging setup for processes that share the JamboJet token cache.

Token store records carry structured ``extra`` fields (``token_event``,
``expires_at``, ``expires_in_seconds``, ``operation``). ``TokenEventFilter``
renders whichever of them are present into a single ``token_fields`` column
so operators can grep installs, clears and shared-tier outages. The token
value itself is never logged.
"""

import logging
import sys

TOKEN_FIELDS = ("token_event", "operation", "expires_at", "expires_in_seconds")

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s%(token_fields)s"


class TokenEventFilter(logging.Filter):
    """Attach ``token_fields`` to every record; empty for unrelated loggers."""

    def filter(self, record: logging.LogRecord) -> bool:
        pairs = [
            f"{name}={getattr(record, name)}"
            for name in TOKEN_FIELDS
            if getattr(record, name, None) is not None
        ]
        record.token_fields = f" | {' '.join(pairs)}" if pairs else ""
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with the token-aware format."""
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(TokenEventFilter())
    logging.basicConfig(
        level=level.upper(),
        format=LOG_FORMAT,
        handlers=[handler],
    )


__all__ = ["LOG_FORMAT", "TokenEventFilter", "configure_logging"]
