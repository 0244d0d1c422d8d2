"""
Per-attempt dependency scope.

An :class:`ExecutionScope` is opened by the dispatcher for exactly one
execution attempt. Values seeded into it (by execution filters) and instances
resolved from it are never shared with another attempt, which is what keeps
tenant identity from leaking between concurrently running jobs.

Ordering: ``seed`` must happen before any ``resolve`` that depends on the
seeded key. Resolved instances are cached for the lifetime of the scope, so a
later ``seed`` does not change instances that were already built.
"""

import inspect
from collections.abc import Hashable
from typing import Any, TypeVar

from tenantjobs.config.logging import get_logger
from tenantjobs.v1.core.exceptions import ScopeDisposedError, UnresolvedDependencyError
from tenantjobs.v1.core.registries import ProviderRegistry, class_factory
from tenantjobs.v1.jobs.schemas import JobContext

logger = get_logger(__name__)

T = TypeVar("T")

_MISSING = object()


class ExecutionScope:
    """Isolated, disposable container of resolved dependencies."""

    def __init__(self, providers: ProviderRegistry, context: JobContext):
        self._providers = providers
        self._context = context
        self._seeded: dict[Hashable, Any] = {JobContext: context}
        self._instances: dict[Any, Any] = {}
        self._owned: list[Any] = []
        self._resolving: list[Any] = []
        self._disposed = False

    @property
    def context(self) -> JobContext:
        return self._context

    @property
    def disposed(self) -> bool:
        return self._disposed

    def seed(self, key: Hashable, value: Any) -> None:
        """
        Make ``value`` available under ``key``.

        Keys are either plain strings (read back with :meth:`get_seeded`) or
        types, in which case ``resolve(key)`` returns ``value`` directly.
        Seeded values are not owned by the scope and are never released.
        """
        self._ensure_open()
        self._seeded[key] = value

    def get_seeded(self, key: Hashable, default: Any = None) -> Any:
        self._ensure_open()
        return self._seeded.get(key, default)

    def can_resolve(self, dependency_type: Any) -> bool:
        return (
            dependency_type in self._seeded
            or dependency_type in self._instances
            or self._providers.contains(dependency_type)
        )

    def resolve(self, dependency_type: type[T]) -> T:
        """Return the scope's instance of ``dependency_type``, building it on first use."""
        self._ensure_open()

        seeded = self._seeded.get(dependency_type, _MISSING)
        if seeded is not _MISSING:
            return seeded
        instance = self._instances.get(dependency_type, _MISSING)
        if instance is not _MISSING:
            return instance

        if dependency_type in self._resolving:
            logger.error(
                "Circular dependency detected",
                dependency=_name(dependency_type),
                chain=[_name(item) for item in self._resolving],
            )
            raise UnresolvedDependencyError(dependency_type, self._resolving)
        if not self._providers.contains(dependency_type):
            raise UnresolvedDependencyError(dependency_type, self._resolving)

        factory = self._providers.get(dependency_type)
        self._resolving.append(dependency_type)
        try:
            instance = factory(self)
        finally:
            self._resolving.pop()

        self._instances[dependency_type] = instance
        if not any(instance is owned for owned in self._owned):
            self._owned.append(instance)
        return instance

    def activate(self, cls: type[T]) -> T:
        """
        Build a fresh ``cls`` by constructor injection from this scope.

        Used for job classes, which need no registration of their own. The
        instance is not cached but is owned, and released on disposal.
        """
        self._ensure_open()
        self._resolving.append(cls)
        try:
            instance = class_factory(cls)(self)
        finally:
            self._resolving.pop()
        self._owned.append(instance)
        return instance

    async def dispose(self) -> None:
        """Release every resolved instance exactly once. Safe to call repeatedly."""
        if self._disposed:
            return
        self._disposed = True

        owned, self._owned = self._owned, []
        self._instances.clear()
        self._seeded.clear()

        for instance in reversed(owned):
            try:
                await _release(instance)
            except Exception:
                logger.exception(
                    "Failed to release scoped dependency",
                    dependency=type(instance).__qualname__,
                )

    def _ensure_open(self) -> None:
        if self._disposed:
            raise ScopeDisposedError()

    async def __aenter__(self) -> "ExecutionScope":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.dispose()


async def _release(instance: Any) -> None:
    aclose = getattr(instance, "aclose", None)
    if callable(aclose):
        await aclose()
        return
    close = getattr(instance, "close", None)
    if callable(close):
        result = close()
        if inspect.isawaitable(result):
            await result


def _name(value: Any) -> str:
    return value.__qualname__ if isinstance(value, type) else str(value)
