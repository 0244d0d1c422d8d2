import inspect
import typing
from collections.abc import Callable, Hashable
from typing import Any, Generic, Protocol, TypeVar

# Base registry implementation
T = TypeVar("T")


class Registry(Generic[T]):
    """Generic registry for pluggable implementations."""

    def __init__(self, name: str):
        self.name = name
        self._implementations: dict[Hashable, T] = {}
        self._frozen = False

    def register(self, name: Hashable, implementation: T) -> None:
        """Register an implementation with a given name."""
        if self._frozen:
            raise RuntimeError(
                f"Cannot register '{_key_name(name)}' in {self.name.lower()} registry: "
                "registry is frozen in production mode"
            )
        self._implementations[name] = implementation

    def get(self, name: Hashable) -> T:
        """Get an implementation by name."""
        if name not in self._implementations:
            raise KeyError(
                f"No {self.name.lower()} implementation registered with name: "
                f"{_key_name(name)}"
            )
        return self._implementations[name]

    def contains(self, name: Hashable) -> bool:
        """Check whether an implementation is registered under ``name``."""
        return name in self._implementations

    def list(self) -> list[Hashable]:
        """List all registered implementation names."""
        return list(self._implementations.keys())

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if the registry is frozen."""
        return self._frozen


def _key_name(key: Hashable) -> str:
    if isinstance(key, type):
        return key.__qualname__
    return str(key)


# Provider Registry - constructor-style dependency resolution
class DependencyResolver(Protocol):
    """What a provider factory may ask of the scope it is invoked in."""

    def resolve(self, dependency_type: Any) -> Any:
        ...

    def can_resolve(self, dependency_type: Any) -> bool:
        ...


Provider = Callable[[DependencyResolver], Any]


def class_factory(cls: type, implementation: type | None = None) -> Provider:
    """
    Build a provider that instantiates ``implementation`` (default ``cls``).

    Every annotated ``__init__`` parameter is resolved from the scope the
    provider is invoked in. Parameters with a default are only resolved when
    the scope can satisfy them, otherwise the default is kept.
    """
    target = implementation or cls
    signature = inspect.signature(target)
    hints = typing.get_type_hints(target.__init__)

    requirements: list[tuple[str, Any, bool]] = []
    for parameter in signature.parameters.values():
        if parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD):
            continue
        optional = parameter.default is not inspect.Parameter.empty
        annotation = hints.get(parameter.name)
        if annotation is None:
            if optional:
                continue
            raise TypeError(
                f"Parameter '{parameter.name}' of {target.__qualname__} "
                "needs a type annotation to be resolved"
            )
        requirements.append((parameter.name, annotation, optional))

    def factory(scope: DependencyResolver) -> Any:
        kwargs = {}
        for name, annotation, optional in requirements:
            if optional and not scope.can_resolve(annotation):
                continue
            kwargs[name] = scope.resolve(annotation)
        return target(**kwargs)

    factory.__qualname__ = f"class_factory({target.__qualname__})"
    return factory


class ProviderRegistry(Registry[Provider]):
    """Registry of dependency factories keyed by the type they provide."""

    def __init__(self):
        super().__init__("Provider")

    def register_provider(self, dependency_type: type, factory: Provider) -> None:
        """Register ``factory`` as the provider of ``dependency_type``."""
        self.register(dependency_type, factory)

    def register_class(
        self, dependency_type: type, implementation: type | None = None
    ) -> None:
        """Register a constructor-injected class, optionally behind an interface."""
        self.register(dependency_type, class_factory(dependency_type, implementation))


# Job Registry - executable job classes
class JobRegistry(Registry[type]):
    """Registry mapping job type names to job classes."""

    def __init__(self):
        super().__init__("Job")


# Global registry instances (singletons)
provider_registry = ProviderRegistry()
job_registry = JobRegistry()
