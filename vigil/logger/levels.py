"""Log severity levels."""

from enum import IntEnum


class LogLevel(IntEnum):
    """Ordered severities; lower values are more severe.

    An entry is emitted when its value is less than or equal to the
    configured threshold, so ``TRACE`` lets everything through.
    """

    ERROR = 0
    WARN = 1
    INFO = 2
    DEBUG = 3
    TRACE = 4

    @classmethod
    def parse(cls, value: "str | int | LogLevel") -> "LogLevel":
        """Resolve a level from a case-insensitive name or its numeric value.

        Raises:
            ValueError: If the value names no level
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls(value)

        name = str(value).strip().upper()
        name = _ALIASES.get(name, name)
        try:
            return cls[name]
        except KeyError:
            raise ValueError(f"Unknown log level: {value!r}") from None

    @classmethod
    def from_method(cls, method_name: str) -> "LogLevel":
        """Map a logger method name (``warn``, ``warning``, ``info`` ...) to its level."""
        return cls.parse(method_name)


_ALIASES = {"WARNING": "WARN", "ERR": "ERROR", "CRITICAL": "ERROR"}
