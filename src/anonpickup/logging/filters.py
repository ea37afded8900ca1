"""Log filters for anonpickup."""

import logging
from typing import Any, Iterable, Optional

REDACTED = "[REDACTED]"

# Names of witness values that must never reach a log sink.
SENSITIVE_FIELDS = frozenset(
    {"secret", "name_hash", "phone_suffix", "age", "nonce", "store_secret", "witness"}
)


class RedactionFilter(logging.Filter):
    """Masks witness values passed through ``extra`` or a context dict."""

    def __init__(self, extra_fields: Optional[Iterable[str]] = None):
        super().__init__()
        self.fields = SENSITIVE_FIELDS | frozenset(extra_fields or ())

    def filter(self, record: logging.LogRecord) -> bool:
        for name in self.fields:
            if name in record.__dict__:
                setattr(record, name, REDACTED)

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            record.context = self._scrub(context)
        return True

    def _scrub(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {
                key: REDACTED if key in self.fields else self._scrub(item)
                for key, item in value.items()
            }
        return value


class ComponentFilter(logging.Filter):
    """Only pass records carrying a context for one of the given components."""

    def __init__(self, *components: str):
        super().__init__()
        self.components = set(components)

    def filter(self, record: logging.LogRecord) -> bool:
        context = getattr(record, "context", None) or {}
        return context.get("component") in self.components
