"""Fixed table of known sources, built once at import time."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Iterable, List, Mapping, Optional

from .sources.base import JobSource
from .sources.provider104 import Provider104Source
from .sources.provider1111 import Provider1111Source
from .sources.yourator import YouratorSource


@dataclass(frozen=True)
class SourceDescriptor:
    """A source name and how to build a fresh instance of it."""

    name: str
    factory: Callable[[], JobSource]


def build_registry(descriptors: Iterable[SourceDescriptor]) -> Mapping[str, SourceDescriptor]:
    """Read-only name -> descriptor mapping; duplicate names are rejected."""
    table = {}
    for d in descriptors:
        if d.name in table:
            raise ValueError(f"duplicate source name: {d.name}")
        table[d.name] = d
    return MappingProxyType(table)


REGISTRY: Mapping[str, SourceDescriptor] = build_registry(
    (
        SourceDescriptor("104", Provider104Source),
        SourceDescriptor("yourator", YouratorSource),
        SourceDescriptor("1111", Provider1111Source),
    )
)


def resolve(name: str, registry: Mapping[str, SourceDescriptor] = REGISTRY) -> Optional[SourceDescriptor]:
    return registry.get(name)


def available(registry: Mapping[str, SourceDescriptor] = REGISTRY) -> List[str]:
    return list(registry)
