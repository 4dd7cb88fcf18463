import logging
from dataclasses import dataclass
from typing import Optional

from offgridsim.core.graph.circuit import CircuitGraph
from offgridsim.core.graph.kinds import STORAGE_KINDS, ComponentKind
from offgridsim.core.graph.model import Component, Endpoint
from offgridsim.core.live.state import ConnectionFlow, FlowDirection, LiveState
from offgridsim.core.flow.wiring import gauge_for_amps
from offgridsim.core.protection.manager import ProtectionManager, TripEvent
from offgridsim.core.topology.resolver import (
    PanelString,
    controller_storage,
    controller_strings,
    feeds,
    find_protective_ancestor,
    pv_ports,
    storage_ports,
    trace_electrical_path,
)
from offgridsim.core.topology.traversal import Step, ac_exits, walk

logger = logging.getLogger(__name__)

PowerFlow = dict[str, ConnectionFlow]


@dataclass(frozen=True, slots=True)
class FlowInputs:
    """Environment readings a flow computation depends on."""

    solar_watts: float = 0.0
    load_watts: float = 0.0
    battery_flow: float = 0.0  # positive while charging
    active_loads: int = 0


class FlowResolver:
    """
    Computes the per-connection power flow map.

    The map is a pure function of the graph, the live state and the
    environment readings, memoised on (graph version, switch version, active
    flag, readings). Any graph or switch mutation changes the key, so a stale
    map is never served.
    """

    def __init__(self):
        self._cache_key: Optional[tuple] = None
        self._cache: PowerFlow = {}

    def invalidate(self) -> None:
        self._cache_key = None
        self._cache = {}

    def cache_key(self, graph: CircuitGraph, live: LiveState, inputs: FlowInputs) -> tuple:
        return (graph.version, live.switch_version, live.active, inputs)

    def compute_flow(self, graph: CircuitGraph, live: LiveState, inputs: FlowInputs) -> PowerFlow:
        key = self.cache_key(graph, live, inputs)
        if key != self._cache_key:
            self._cache = self._compute(graph, live, inputs)
            self._cache_key = key
        return self._cache

    def resolve(
        self,
        graph: CircuitGraph,
        live: LiveState,
        inputs: FlowInputs,
        protection: ProtectionManager,
    ) -> tuple[PowerFlow, list[TripEvent]]:
        """
        Flow followed by the overload check on the resolved snapshot.

        After a batch of trips the flow is recomputed and checked once more;
        any further cascade waits for the next tick.
        """
        flow = self.compute_flow(graph, live, inputs)
        events = protection.check_tripping(graph, live, flow)
        if events:
            flow = self.compute_flow(graph, live, inputs)
            events.extend(protection.check_tripping(graph, live, flow))
            flow = self.compute_flow(graph, live, inputs)
        live.power_flow = flow
        return flow, events

    # ------------------------------------------------------------------
    # Computation
    # ------------------------------------------------------------------
    def _compute(self, graph: CircuitGraph, live: LiveState, inputs: FlowInputs) -> PowerFlow:
        if not live.active:
            return {}

        flow: PowerFlow = {}
        parents: dict[str, Optional[str]] = {}
        ac_visited: set = set()

        strings: dict[str, list[PanelString]] = {}
        for controller in graph.of_kind(ComponentKind.CONTROLLER):
            try:
                strings[controller.id] = controller_strings(graph, live, controller)
            except Exception:
                logger.exception("Could not trace PV strings of controller %s", controller.id)
        total_rated = sum(
            s.rated_watts for s in {s.panels: s for group in strings.values() for s in group}.values()
        )
        total_capacity = sum(c.capacity_wh for c in graph.components.values())

        for controller in graph.of_kind(ComponentKind.CONTROLLER):
            if controller.id not in strings:
                continue
            try:
                self._controller_flow(
                    graph, live, inputs, controller, strings[controller.id],
                    total_rated, total_capacity, flow, parents, ac_visited,
                )
            except Exception:
                logger.exception("Flow resolution failed for controller %s", controller.id)

        _propagate_active(flow, parents)
        for entry in flow.values():
            entry.amps = entry.watts / entry.voltage if entry.voltage > 0 else 0.0
            entry.recommended_gauge = gauge_for_amps(entry.amps).name
        return flow

    def _controller_flow(
        self,
        graph: CircuitGraph,
        live: LiveState,
        inputs: FlowInputs,
        controller: Component,
        strings: list[PanelString],
        total_rated: float,
        total_capacity: float,
        flow: PowerFlow,
        parents: dict,
        ac_visited: set,
    ) -> None:
        storage = controller_storage(graph, live, controller)
        has_storage = bool(storage) or controller.specs.internal_battery_kwh > 0
        if not strings and not has_storage:
            return

        if strings and total_rated > 0:
            self._pv_flow(graph, live, inputs, controller, strings, total_rated, flow)
        if storage and inputs.battery_flow != 0 and total_capacity > 0:
            self._storage_flow(graph, live, inputs, controller, total_capacity, flow)
        if controller.specs.has_ac_output:
            self._ac_flow(graph, live, controller, flow, parents, ac_visited)

    def _pv_flow(self, graph, live, inputs, controller, strings, total_rated, flow) -> None:
        by_panel = {pid: s for s in strings for pid in s.panels}
        for positive, negative in pv_ports(controller):
            legs = ((positive, FlowDirection.PV_TO_CONTROLLER), (negative, FlowDirection.CONTROLLER_TO_PV))
            for key, direction in legs:
                seen = set()
                for terminal in trace_electrical_path(graph, live, Endpoint(controller.id, key)):
                    string = by_panel.get(terminal.component_id)
                    if string is None or string.panels in seen:
                        continue
                    seen.add(string.panels)
                    watts = inputs.solar_watts * string.rated_watts / total_rated
                    wires = terminal.path
                    if direction is FlowDirection.PV_TO_CONTROLLER:
                        wires = wires + string.connections
                    for connection_id in wires:
                        _tag(flow, connection_id, watts, string.vmp, direction, live=watts > 0, active=watts > 0)

    def _storage_flow(self, graph, live, inputs, controller, total_capacity, flow) -> None:
        direction = FlowDirection.CHARGING if inputs.battery_flow > 0 else FlowDirection.DISCHARGING
        magnitude = abs(inputs.battery_flow)
        for key in storage_ports(controller):
            for terminal in trace_electrical_path(graph, live, Endpoint(controller.id, key)):
                if terminal.kind not in STORAGE_KINDS:
                    continue
                battery = graph.component(terminal.component_id)
                watts = magnitude * battery.capacity_wh / total_capacity
                for connection_id in terminal.path:
                    _tag(flow, connection_id, watts, battery.specs.voltage, direction, live=True, active=True)

    def _ac_flow(self, graph, live, controller, flow, parents, ac_visited) -> None:
        source_volts = controller.specs.ac_voltage.nominal_volts
        fed: set = set()
        start = Endpoint(controller.id, "ac_output")
        for step in walk(graph, [start], ac_exits(live), visited=ac_visited):
            connection_id = step.connection.id
            volts = _step_voltage(graph, flow, step, source_volts)
            _tag(flow, connection_id, 0.0, volts, FlowDirection.SOURCE_TO_LOAD, live=True, active=False)
            protector = find_protective_ancestor(graph, step.connection)
            flow[connection_id].protected_by = protector.id if protector is not None else None
            parents[connection_id] = step.path[-2] if len(step.path) > 1 else None

            load = graph.get(step.entry.component_id)
            if load is None or not load.is_consumer or load.id in fed:
                continue
            if not live.is_on(load.id) or not feeds(volts, load.load_voltage):
                continue
            fed.add(load.id)
            flow[connection_id].voltage = load.load_voltage
            flow[connection_id].has_active_flow = True
            for upstream_id in step.path:
                flow[upstream_id].watts += load.rated_watts


def _tag(
    flow: PowerFlow,
    connection_id: str,
    watts: float,
    voltage: float,
    direction: FlowDirection,
    live: bool,
    active: bool,
) -> None:
    entry = flow.get(connection_id)
    if entry is None:
        entry = flow[connection_id] = ConnectionFlow(direction=direction)
    entry.watts += watts
    entry.voltage = max(entry.voltage, voltage)
    entry.is_live = entry.is_live or live
    entry.has_active_flow = entry.has_active_flow or active


def _step_voltage(graph: CircuitGraph, flow: PowerFlow, step: Step, source_volts: float) -> float:
    """Voltage of a wire: the supply port it leaves from, else the wire feeding it."""
    origin = graph.get(step.origin.component_id)
    if origin is not None:
        service = origin.supply_voltage(step.origin.port_key)
        if service is not None:
            return service.nominal_volts
    if len(step.path) > 1 and step.path[-2] in flow:
        return flow[step.path[-2]].voltage
    return source_volts


def _propagate_active(flow: PowerFlow, parents: dict) -> None:
    """Marks every wire upstream of an active wire active, until nothing changes."""
    changed = True
    while changed:
        changed = False
        for connection_id, parent in parents.items():
            if parent is None or parent not in flow:
                continue
            if flow[connection_id].has_active_flow and not flow[parent].has_active_flow:
                flow[parent].has_active_flow = True
                changed = True
