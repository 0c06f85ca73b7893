"""
Custom type and format registries.

A custom type extends the `type` keyword with a named predicate; a custom
format extends the `format` keyword for strings. Both registries are
passed to the SchemaEngine at construction and frozen there, so they are
read-only while validating.

Invariants:
    - Registration after freeze() raises PluginRegistryFrozenError
    - Lookups never fall through to another registry
    - Built-in samples are fixed values so generated samples are stable

How to change safely:
    - Add new built-ins to _DEFAULT_TYPES / _DEFAULT_FORMATS with a sample
      that its own validator accepts
    - Never make a sample depend on the clock or randomness
"""

from __future__ import annotations

import ipaddress
import logging
import re
import threading
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..errors import PluginRegistryFrozenError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomType:
    """A named type usable in the `type` keyword.

    Attributes:
        check: Predicate called as check(value, node)
        sample: Optional generator called as sample(node)
    """

    check: Callable[[Any, Any], bool]
    sample: Optional[Callable[[Any], Any]] = None

    def matches(self, value: Any, node: Any) -> bool:
        """Run check(), treating an exception as a mismatch."""
        try:
            return bool(self.check(value, node))
        except Exception as e:
            logger.debug(f"Custom type check raised: {e!r}")
            return False


@dataclass(frozen=True)
class CustomFormat:
    """A named string format usable in the `format` keyword.

    Attributes:
        validate: Predicate called with the string value
        error: Message reported when validate() returns False
        sample: Optional zero-argument sample generator
    """

    validate: Callable[[str], bool]
    error: str
    sample: Optional[Callable[[], Any]] = None

    def accepts(self, value: str) -> bool:
        """Run validate(), treating an exception as a failure."""
        try:
            return bool(self.validate(value))
        except Exception as e:
            logger.debug(f"Custom format validator raised: {e!r}")
            return False


EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
URL_RE = re.compile(r"^https?://[^\s/$.?#].[^\s]*$")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DATE_TIME_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2})T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:\d{2})$"
)
TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d:[0-5]\d(\.\d+)?(Z|[+-]\d{2}:\d{2})?$")
UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
HOSTNAME_RE = re.compile(
    r"^[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)


def is_email(value: Any) -> bool:
    return isinstance(value, str) and EMAIL_RE.match(value) is not None


def is_url(value: Any) -> bool:
    return isinstance(value, str) and URL_RE.match(value) is not None


def is_date(value: str) -> bool:
    if not DATE_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def is_date_time(value: str) -> bool:
    match = DATE_TIME_RE.match(value)
    return match is not None and is_date(match.group(1))


def is_time(value: str) -> bool:
    return TIME_RE.match(value) is not None


def is_uuid(value: str) -> bool:
    return UUID_RE.match(value) is not None


def is_hostname(value: str) -> bool:
    return len(value) <= 253 and HOSTNAME_RE.match(value) is not None


def is_ipv4(value: str) -> bool:
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        return False
    return True


def is_ipv6(value: str) -> bool:
    try:
        ipaddress.IPv6Address(value)
    except ValueError:
        return False
    return True


def is_regex(value: str) -> bool:
    try:
        re.compile(value)
    except re.error:
        return False
    return True


SAMPLE_EMAIL = "user@example.com"
SAMPLE_URL = "https://example.com"

_DEFAULT_TYPES: Dict[str, CustomType] = {
    "email": CustomType(check=lambda value, node: is_email(value), sample=lambda node: SAMPLE_EMAIL),
    "url": CustomType(check=lambda value, node: is_url(value), sample=lambda node: SAMPLE_URL),
}

_DEFAULT_FORMATS: Dict[str, CustomFormat] = {
    "email": CustomFormat(is_email, "String must be a valid email address", lambda: SAMPLE_EMAIL),
    "uri": CustomFormat(is_url, "String must be a valid URI", lambda: SAMPLE_URL),
    "url": CustomFormat(is_url, "String must be a valid URL", lambda: SAMPLE_URL),
    "date": CustomFormat(
        is_date, "String must be a valid date in format YYYY-MM-DD", lambda: "2000-01-01"
    ),
    "date-time": CustomFormat(
        is_date_time,
        "String must be a valid date-time in ISO 8601 format",
        lambda: "2000-01-01T00:00:00Z",
    ),
    "time": CustomFormat(is_time, "String must be a valid time in format HH:MM:SS", lambda: "00:00:00"),
    "uuid": CustomFormat(
        is_uuid, "String must be a valid UUID", lambda: "123e4567-e89b-42d3-a456-426614174000"
    ),
    "hostname": CustomFormat(is_hostname, "String must be a valid hostname", lambda: "example.com"),
    "ipv4": CustomFormat(is_ipv4, "String must be a valid IPv4 address", lambda: "192.0.2.1"),
    "ipv6": CustomFormat(
        is_ipv6,
        "String must be a valid IPv6 address",
        lambda: "2001:0db8:85a3:0000:0000:8a2e:0370:7334",
    ),
    "regex": CustomFormat(is_regex, "String must be a valid regular expression", lambda: ".*"),
}


class _PluginRegistry:
    """Name-keyed plugin map with freeze semantics."""

    kind = "plugin"

    def __init__(self, entries: Optional[Dict[str, Any]] = None) -> None:
        self._entries: Dict[str, Any] = dict(entries or {})
        self._frozen = False
        self._lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, name: str, plugin: Any) -> None:
        """Register or replace a plugin.

        Raises:
            PluginRegistryFrozenError: If the registry is frozen
        """
        with self._lock:
            if self._frozen:
                raise PluginRegistryFrozenError(self.kind, name)
            self._entries[name] = plugin
            logger.debug(f"Registered {self.kind}: {name}")

    def update(self, plugins: Optional[Dict[str, Any]]) -> None:
        for name, plugin in (plugins or {}).items():
            self.register(name, plugin)

    def get(self, name: str) -> Optional[Any]:
        return self._entries.get(name)

    def names(self) -> List[str]:
        return sorted(self._entries)

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._entries)


class TypeRegistry(_PluginRegistry):
    """Registry of custom types."""

    kind = "type"

    @classmethod
    def with_defaults(cls, extra: Optional[Dict[str, CustomType]] = None) -> TypeRegistry:
        registry = cls(_DEFAULT_TYPES)
        registry.update(extra)
        return registry

    def get(self, name: str) -> Optional[CustomType]:
        return super().get(name)


class FormatRegistry(_PluginRegistry):
    """Registry of custom string formats."""

    kind = "format"

    @classmethod
    def with_defaults(cls, extra: Optional[Dict[str, CustomFormat]] = None) -> FormatRegistry:
        registry = cls(_DEFAULT_FORMATS)
        registry.update(extra)
        return registry

    def get(self, name: str) -> Optional[CustomFormat]:
        return super().get(name)
