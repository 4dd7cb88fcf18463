from dataclasses import dataclass, field
from typing import Callable, TypeVar

from offgridsim.core.graph.kinds import ComponentKind

T = TypeVar("T")


@dataclass
class Registry:
    """
    Per-kind lookup tables filled in at import time.

    ``specs`` maps a kind to its specs dataclass and ``layouts`` maps it to
    the function that lays out its ports. Several kinds may share one entry
    (AC and DC breakers share ``BreakerSpecs``), but a kind has one owner.
    """

    specs: dict[ComponentKind, type] = field(default_factory=dict)
    layouts: dict[ComponentKind, Callable] = field(default_factory=dict)


registry = Registry()


def _claim(table: dict, kinds: tuple, target: T) -> T:
    taken = [kind for kind in kinds if table.get(kind, target) is not target]
    if taken:
        names = ", ".join(kind.value for kind in taken)
        raise ValueError(f"Component kind(s) already registered: {names}.")
    for kind in kinds:
        table[kind] = target
    return target


def register_specs(*kinds: ComponentKind) -> Callable[[type], type]:
    return lambda cls: _claim(registry.specs, kinds, cls)


def register_layout(*kinds: ComponentKind) -> Callable[[Callable], Callable]:
    return lambda fn: _claim(registry.layouts, kinds, fn)
