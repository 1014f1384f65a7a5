"""Explicit registry of API resources.

Resources are registered by name once at start-up and mounted by
`create_app`; the registry is frozen afterwards so request handling never
mutates it.
"""

from __future__ import annotations

from collections.abc import Iterator

from fastapi import APIRouter


class RegistryFrozenError(RuntimeError):
    """Raised when registering into a registry that has been mounted."""


class RouteRegistry:
    """Ordered mapping of resource name to router."""

    def __init__(self, prefix: str = "/api/v1") -> None:
        self.prefix = prefix
        self._routers: dict[str, APIRouter] = {}
        self._frozen = False

    def register(self, name: str, router: APIRouter) -> None:
        if self._frozen:
            raise RegistryFrozenError(f"Cannot register `{name}`: registry is frozen")
        if name in self._routers:
            raise ValueError(f"Resource `{name}` is already registered")
        self._routers[name] = router

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __contains__(self, name: object) -> bool:
        return name in self._routers

    def __iter__(self) -> Iterator[tuple[str, APIRouter]]:
        return iter(list(self._routers.items()))

    def __len__(self) -> int:
        return len(self._routers)


def build_default_registry() -> RouteRegistry:
    """Return a registry holding every built-in resource."""
    from custom_api_auth.api.v1 import auth_router

    registry = RouteRegistry()
    registry.register("auth", auth_router)
    return registry
