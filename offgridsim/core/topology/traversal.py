"""Worklist traversal over the circuit graph.

All topology queries go through :func:`walk`. A query supplies an ``exits``
predicate that decides, for a component entered through one of its ports,
which of its ports the walk continues from. Returning the entry port itself
means the other wires on that port are followed too (junctions, daisy
chains, parallel strings).
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional

from offgridsim.core.graph.circuit import CircuitGraph
from offgridsim.core.graph.kinds import (
    BREAKER_KINDS,
    COMBINER_KINDS,
    CONSUMER_KINDS,
    DISTRIBUTION_KINDS,
    ComponentKind,
)
from offgridsim.core.graph.model import Component, Connection, Endpoint
from offgridsim.core.live.state import LiveState

logger = logging.getLogger(__name__)

ExitRule = Callable[[Component, str], Iterable[str]]


@dataclass(frozen=True, slots=True)
class Step:
    """One wire crossed by a walk."""

    connection: Connection
    origin: Endpoint  # port the wire was entered from
    entry: Endpoint  # port the wire leads to
    path: tuple  # connection ids from the start, this one included


def walk(
    graph: CircuitGraph,
    starts: Iterable[Endpoint],
    exits: ExitRule,
    visited: Optional[set] = None,
) -> Iterator[Step]:
    """
    Yields every wire reachable from ``starts``, each at most once.

    ``visited`` holds connection ids and may be shared between calls to keep
    several walks disjoint.
    """
    visited = set() if visited is None else visited
    frontier = deque((start, ()) for start in starts)
    while frontier:
        endpoint, path = frontier.popleft()
        for connection, far in graph.wires_at(endpoint):
            if connection.id in visited:
                continue
            visited.add(connection.id)
            step = Step(connection=connection, origin=endpoint, entry=far, path=path + (connection.id,))
            yield step
            component = graph.get(far.component_id)
            if component is None:
                continue
            for key in exits(component, far.port_key):
                if key in component.ports:
                    frontier.append((Endpoint(component.id, key), step.path))


def other_side(key: str) -> str:
    """The opposite terminal of a two-terminal breaker."""
    return "load" if key == "line" else "line"


def _combiner_exits(live: LiveState, component: Component, key: str) -> list[str]:
    if key in ("output", "output_negative"):
        prefix = "input_negative_" if key == "output_negative" else "input_"
        legs = [
            port.key
            for port in component.ports.values()
            if port.index is not None
            and port.key == f"{prefix}{port.index + 1}"
            and live.circuit_closed(component, port.index)
        ]
        return [key] + legs
    index = component.circuit_index(key)
    if not live.circuit_closed(component, index):
        return [key]
    return [key, "output_negative" if key.startswith("input_negative_") else "output"]


def ac_exits(live: LiveState) -> ExitRule:
    """Downstream AC hops: only closed protective devices conduct."""

    def exits(component: Component, key: str) -> list[str]:
        kind = component.kind
        if kind is ComponentKind.AC_OUTLET:
            return ["input", "output"] if key == "input" else [key]
        if kind in BREAKER_KINDS:
            return [key, other_side(key)] if live.breaker_closed(component) else [key]
        if kind in DISTRIBUTION_KINDS:
            if key != "main":
                return [key]
            return ["main"] + [
                port.key
                for port in component.ports.values()
                if port.index is not None and live.circuit_closed(component, port.index)
            ]
        if kind is ComponentKind.DOUBLE_VOLTAGE_HUB:
            return [key, "output"] if key != "output" else [key]
        if kind in COMBINER_KINDS:
            return _combiner_exits(live, component, key)
        if kind in CONSUMER_KINDS:
            return [key]
        return []

    return exits


def dc_exits(live: LiveState) -> ExitRule:
    """
    DC hops toward sources or storage.

    Combiners fan out into closed input legs and closed DC breakers conduct.
    Panels and batteries only continue along the terminal they were entered
    through (parallel wiring). Controllers end the walk.
    """

    def exits(component: Component, key: str) -> list[str]:
        kind = component.kind
        if kind in COMBINER_KINDS:
            return _combiner_exits(live, component, key)
        if kind is ComponentKind.DC_BREAKER:
            return [key, other_side(key)] if live.breaker_closed(component) else [key]
        if kind in (ComponentKind.PANEL, ComponentKind.BATTERY):
            return [key]
        if kind is ComponentKind.SMART_BATTERY:
            return ["smart_1", "smart_2"]
        return []

    return exits


def upstream_exits(component: Component, key: str) -> list[str]:
    """Structural hops from a load back toward whatever feeds it."""
    kind = component.kind
    if kind is ComponentKind.AC_OUTLET:
        return ["input"]
    if kind is ComponentKind.DOUBLE_VOLTAGE_HUB:
        return ["input_a", "input_b"] if key == "output" else [key]
    if kind in COMBINER_KINDS and key in ("output", "output_negative"):
        return [key]
    return []
