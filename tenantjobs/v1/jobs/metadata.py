"""
Key/value side-channel persisted with every job.
"""

from collections.abc import Iterator, Mapping
from typing import Any, TypeVar

from tenantjobs.v1.core.exceptions import UnsupportedOperationError, ValidationError

T = TypeVar("T")

Scalar = str | int | float | bool | None
SCALAR_TYPES = (str, int, float, bool, type(None))


class MetadataStore(Mapping[str, Scalar]):
    """
    Metadata written by creation filters and read by execution filters.

    The store is writable until :meth:`freeze` is called. The job client
    freezes it right before persisting, and queues only ever hand out frozen
    stores, so every execution attempt sees exactly what was written at
    creation time.
    """

    def __init__(self, values: Mapping[str, Any] | None = None, *, frozen: bool = False):
        self._values: dict[str, Scalar] = {}
        self._frozen = False
        for key, value in (values or {}).items():
            self.set(key, value)
        self._frozen = frozen

    def set(self, key: str, value: Any) -> None:
        """Add or overwrite ``key``."""
        self._ensure_writable(key)
        if not isinstance(key, str) or not key:
            raise ValidationError(
                "Metadata keys must be non-empty strings", {"key": repr(key)}
            )
        if not isinstance(value, SCALAR_TYPES):
            raise ValidationError(
                f"Metadata value for '{key}' must be a scalar",
                {"key": key, "type": type(value).__name__},
            )
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._ensure_writable(key)
        self._values.pop(key, None)

    def get_as(self, key: str, type_: type[T], default: T | None = None) -> T | None:
        """Read ``key`` converted to ``type_``; ``default`` when absent or null."""
        value = self._values.get(key)
        if value is None:
            return default
        if isinstance(value, type_):
            return value
        try:
            return type_(value)  # type: ignore[call-arg]
        except (TypeError, ValueError):
            raise ValidationError(
                f"Metadata value for '{key}' cannot be read as {type_.__name__}",
                {"key": key, "value": repr(value)},
            )

    def freeze(self) -> "MetadataStore":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def as_dict(self) -> dict[str, Scalar]:
        return dict(self._values)

    def _ensure_writable(self, key: str) -> None:
        if self._frozen:
            raise UnsupportedOperationError(
                "Job metadata is read-only once the job has been persisted",
                {"key": key},
            )

    def __getitem__(self, key: str) -> Scalar:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "writable"
        return f"MetadataStore({self._values!r}, {state})"
