from collections import deque
from dataclasses import dataclass
from typing import Iterable, Optional

from offgridsim.core.graph.circuit import CircuitGraph
from offgridsim.core.graph.kinds import PROTECTIVE_KINDS, ComponentKind
from offgridsim.core.graph.model import Component, Connection, Endpoint
from offgridsim.core.live.state import LiveState
from offgridsim.core.topology.traversal import ac_exits, dc_exits, other_side, upstream_exits, walk


TERMINAL_KINDS = frozenset(
    {
        ComponentKind.PANEL,
        ComponentKind.BATTERY,
        ComponentKind.SMART_BATTERY,
        ComponentKind.CONTROLLER,
    }
)


@dataclass(frozen=True, slots=True)
class LoadRef:
    component_id: str
    watts: float
    voltage: float
    path: tuple


@dataclass(frozen=True, slots=True)
class Terminal:
    """A source, storage or controller port reached by a DC trace."""

    component_id: str
    port_key: str
    kind: ComponentKind
    path: tuple


@dataclass(frozen=True, slots=True)
class PanelString:
    """Panels wired in series; ``connections`` are the wires between them."""

    panels: frozenset
    connections: tuple
    rated_watts: float
    vmp: float


def feeds(circuit_voltage: Optional[float], load_voltage: float) -> bool:
    """A 240V circuit also feeds 120V loads, never the reverse."""
    if circuit_voltage is None:
        return True
    if circuit_voltage >= 200:
        return True
    return load_voltage < 200


def find_downstream_loads(
    graph: CircuitGraph,
    live: LiveState,
    start: Endpoint,
    circuit_voltage: Optional[float] = None,
) -> list[LoadRef]:
    """
    Collects the switched-on consumers fed from ``start``.

    The walk crosses outlets, closed breakers, closed distribution circuits,
    double voltage hubs and closed combiner legs. ``circuit_voltage=None``
    accepts loads of any voltage.
    """
    loads: dict[str, LoadRef] = {}
    for step in walk(graph, [start], ac_exits(live)):
        component = graph.get(step.entry.component_id)
        if component is None or not component.is_consumer or component.id in loads:
            continue
        if not live.is_on(component.id) or not feeds(circuit_voltage, component.load_voltage):
            continue
        loads[component.id] = LoadRef(
            component_id=component.id,
            watts=component.rated_watts,
            voltage=component.load_voltage,
            path=step.path,
        )
    return list(loads.values())


def find_protective_ancestor(graph: CircuitGraph, connection: Connection) -> Optional[Component]:
    """
    Nearest breaker, breaker panel or spider box governing ``connection``.

    The flow map records it on AC wires as ``protected_by`` for display;
    trip decisions use per-breaker ratings instead.
    """
    for endpoint in connection.endpoints:
        component = graph.get(endpoint.component_id)
        if component is not None and component.kind in PROTECTIVE_KINDS:
            return component

    visited = {connection.id}
    starts = []
    for endpoint in connection.endpoints:
        component = graph.get(endpoint.component_id)
        if component is None:
            continue
        starts.extend(Endpoint(component.id, key) for key in upstream_exits(component, endpoint.port_key))

    for step in walk(graph, starts, _stop_at_protection, visited=visited):
        component = graph.get(step.entry.component_id)
        if component is not None and component.kind in PROTECTIVE_KINDS:
            return component
    return None


def _stop_at_protection(component: Component, key: str) -> list[str]:
    if component.kind in PROTECTIVE_KINDS:
        return []
    return upstream_exits(component, key)


def feed_side(graph: CircuitGraph, live: LiveState, breaker: Component) -> str:
    """
    Terminal of an AC breaker that faces the inverter.

    Wires are undirected, so a breaker may be installed with its ``load``
    terminal toward the source. ``line`` is assumed when neither side
    reaches a controller.
    """
    for key in ("line", "load"):
        blocked = set(breaker.port(other_side(key)).connections)
        for step in walk(graph, [Endpoint(breaker.id, key)], ac_exits(live), visited=blocked):
            component = graph.get(step.entry.component_id)
            if component is not None and component.kind is ComponentKind.CONTROLLER:
                return key
    return "line"


def trace_electrical_path(
    graph: CircuitGraph,
    live: LiveState,
    start: Endpoint,
    visited: Optional[set] = None,
) -> list[Terminal]:
    """
    Follows DC wiring from ``start`` to the panels, batteries, smart batteries
    and controllers it reaches, with the wire path to each of them.

    Passes through combiners (closed input legs only) and closed DC breakers.
    """
    terminals: dict[tuple, Terminal] = {}
    for step in walk(graph, [start], dc_exits(live), visited=visited):
        component = graph.get(step.entry.component_id)
        if component is None or component.kind not in TERMINAL_KINDS:
            continue
        key = (component.id, step.entry.port_key)
        if key not in terminals:
            terminals[key] = Terminal(
                component_id=component.id,
                port_key=step.entry.port_key,
                kind=component.kind,
                path=step.path,
            )
    return list(terminals.values())


def panel_string(graph: CircuitGraph, live: LiveState, panel_id: str) -> PanelString:
    """
    Expands a panel into its series string.

    A series hop is a wire from one panel's negative terminal to another
    panel's positive terminal, optionally through closed DC breakers.
    """
    panels = {panel_id}
    wires: list[str] = []
    frontier = deque([panel_id])
    while frontier:
        current = frontier.popleft()
        for own, other in (("negative", "positive"), ("positive", "negative")):
            for step in walk(graph, [Endpoint(current, own)], _series_exits(live)):
                far = graph.get(step.entry.component_id)
                if far is None or far.kind is not ComponentKind.PANEL:
                    continue
                if step.entry.port_key != other or far.id in panels:
                    continue
                panels.add(far.id)
                wires.extend(cid for cid in step.path if cid not in wires)
                frontier.append(far.id)

    specs = [graph.component(pid).specs for pid in sorted(panels)]
    return PanelString(
        panels=frozenset(panels),
        connections=tuple(wires),
        rated_watts=sum(s.wattage for s in specs),
        vmp=sum(s.vmp for s in specs),
    )


def _series_exits(live: LiveState):
    def exits(component: Component, key: str) -> list[str]:
        if component.kind is ComponentKind.DC_BREAKER and live.breaker_closed(component):
            return [other_side(key)]
        return []

    return exits


def pv_ports(controller: Component) -> list[tuple[str, str]]:
    """``(positive, negative)`` port key pairs, one per MPPT input."""
    positives = {p.index: p.key for p in controller.ports.values() if p.key.startswith("pv_positive")}
    negatives = {p.index: p.key for p in controller.ports.values() if p.key.startswith("pv_negative")}
    return [(positives[i], negatives[i]) for i in sorted(positives) if i in negatives]


def storage_ports(controller: Component) -> list[str]:
    return [
        port.key
        for port in controller.ports.values()
        if port.key in ("battery_positive", "battery_negative") or port.key.startswith("smart_battery_")
    ]


def controller_strings(graph: CircuitGraph, live: LiveState, controller: Component) -> list[PanelString]:
    """Distinct panel strings reachable from any PV input of ``controller``."""
    strings: dict[frozenset, PanelString] = {}
    for positive, negative in pv_ports(controller):
        for key in (positive, negative):
            for terminal in trace_electrical_path(graph, live, Endpoint(controller.id, key)):
                if terminal.kind is not ComponentKind.PANEL:
                    continue
                if any(terminal.component_id in s for s in strings):
                    continue
                string = panel_string(graph, live, terminal.component_id)
                strings[string.panels] = string
    return list(strings.values())


def controller_storage(graph: CircuitGraph, live: LiveState, controller: Component) -> list[Terminal]:
    """Batteries and smart batteries attached to ``controller``, one terminal each."""
    found: dict[str, Terminal] = {}
    for key in storage_ports(controller):
        for terminal in trace_electrical_path(graph, live, Endpoint(controller.id, key)):
            if terminal.kind in (ComponentKind.BATTERY, ComponentKind.SMART_BATTERY):
                found.setdefault(terminal.component_id, terminal)
    return list(found.values())


def connected_panels(graph: CircuitGraph, live: LiveState) -> set[str]:
    """Panels with a closed DC path to at least one controller PV input."""
    panels: set[str] = set()
    for controller in graph.of_kind(ComponentKind.CONTROLLER):
        for string in controller_strings(graph, live, controller):
            panels |= string.panels
    return panels


def consumers_on(graph: CircuitGraph, live: LiveState) -> Iterable[Component]:
    return [c for c in graph.components.values() if c.is_consumer and live.is_on(c.id)]
