"""
Route Table
Ordered, immutable mapping from path prefix to handler group
"""

import importlib
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from fastapi import FastAPI
from starlette.types import ASGIApp
import structlog

from gateway.errors import ConfigurationError

logger = structlog.get_logger(__name__)

RESERVED_PATHS = ("/health",)


def normalize_prefix(prefix: str) -> str:
    """
    Validate a route group prefix and strip any trailing slash.

    Raises:
        ValueError: if the prefix is empty, relative, the root, or reserved
    """
    if not prefix or not prefix.startswith("/"):
        raise ValueError(f"Route group prefix must start with '/': {prefix!r}")
    normalized = prefix.rstrip("/")
    if not normalized:
        raise ValueError("Route group prefix cannot be the root path")
    if normalized in RESERVED_PATHS:
        raise ValueError(f"Route group prefix {normalized} is reserved")
    return normalized


@dataclass(frozen=True)
class RouteGroup:
    """A handler group mounted at a path prefix; it owns everything beneath it"""

    prefix: str
    app: ASGIApp
    name: Optional[str] = None

    def __post_init__(self):
        try:
            prefix = normalize_prefix(self.prefix)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        object.__setattr__(self, "prefix", prefix)

    def matches(self, path: str) -> bool:
        return path == self.prefix or path.startswith(self.prefix + "/")


class RouteTable:
    """
    Ordered route groups, fixed at construction.

    Matching is first-match-wins in registration order, so a group registered
    earlier keeps its paths even when a later group's prefix also covers them.
    """

    def __init__(self, groups: Iterable[RouteGroup] = ()):
        groups = tuple(groups)
        seen = set()
        for group in groups:
            if group.prefix in seen:
                raise ConfigurationError(f"Duplicate route group prefix: {group.prefix}")
            seen.add(group.prefix)
        self._groups: Tuple[RouteGroup, ...] = groups

    def __iter__(self) -> Iterator[RouteGroup]:
        return iter(self._groups)

    def __len__(self) -> int:
        return len(self._groups)

    @property
    def prefixes(self) -> Tuple[str, ...]:
        return tuple(group.prefix for group in self._groups)

    def match(self, path: str) -> Optional[RouteGroup]:
        """Return the group a path is dispatched to, or None for not-found"""
        for group in self._groups:
            if group.matches(path):
                return group
        return None

    def shadowed(self) -> List[Tuple[RouteGroup, RouteGroup]]:
        """Pairs of (group, earlier group that receives all of its requests)"""
        pairs = []
        for group in self._groups:
            owner = self.match(group.prefix)
            if owner is not group:
                pairs.append((group, owner))
        return pairs

    def install(self, app: FastAPI) -> None:
        """Mount every group on the app, in registration order"""
        for group, owner in self.shadowed():
            logger.warning(
                "Route group unreachable",
                prefix=group.prefix,
                shadowed_by=owner.prefix,
            )
        for group in self._groups:
            app.mount(group.prefix, group.app, name=group.name or group.prefix.strip("/"))
            logger.info("Route group mounted", prefix=group.prefix)


def import_handler_group(target: str) -> ASGIApp:
    """
    Import a handler group from a ``package.module:attribute`` string.

    Raises:
        ConfigurationError: if the module or attribute cannot be found
    """
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise ConfigurationError(f"Invalid route group target: {target!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import route group module {module_name!r}: {e}") from e

    try:
        return getattr(module, attribute)
    except AttributeError as e:
        raise ConfigurationError(
            f"Module {module_name!r} has no route group attribute {attribute!r}"
        ) from e


def load_route_groups(targets: Dict[str, str]) -> RouteTable:
    """Build the route table from configured ``prefix -> target`` pairs"""
    return RouteTable(
        RouteGroup(prefix=prefix, app=import_handler_group(target))
        for prefix, target in targets.items()
    )
