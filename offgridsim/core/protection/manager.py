import logging
from dataclasses import dataclass
from typing import Callable, Optional

from offgridsim.core.graph.circuit import CircuitGraph
from offgridsim.core.graph.kinds import DISTRIBUTION_KINDS, ComponentKind
from offgridsim.core.graph.model import Component, Endpoint
from offgridsim.core.live.state import (
    BreakerState,
    ConnectionFlow,
    LiveState,
    circuit_breaker_id,
    main_breaker_id,
)
from offgridsim.core.topology.resolver import feed_side, find_downstream_loads
from offgridsim.core.topology.traversal import other_side

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TripEvent:
    breaker_id: str
    component_id: str
    amps: float
    rating: float
    loads_shed: tuple


@dataclass(frozen=True, slots=True)
class ProtectedCircuit:
    """One closed breaker or breakered circuit collected for a check."""

    breaker_id: str
    component_id: str
    rating: float
    voltage: float
    circuit_index: Optional[int] = None
    is_main: bool = False


@dataclass(frozen=True, slots=True)
class Draw:
    amps: float
    loads: tuple


TripCallback = Callable[[TripEvent], None]


class ProtectionManager:
    """
    Breaker state machine and overload detection.

    ``check_tripping`` runs in three phases: collect every closed breaker,
    measure every draw without mutating anything, then trip all overloads in
    one batch. A trip in one batch never influences another measurement of
    the same batch.
    """

    def __init__(self, check_main_breakers: bool = True):
        self.check_main_breakers = check_main_breakers
        self._subscribers: list[TripCallback] = []

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------
    def subscribe(self, callback: TripCallback) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: TripCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _notify(self, event: TripEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Trip subscriber %r failed for %s", callback, event.breaker_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def initialize(self, graph: CircuitGraph, live: LiveState) -> None:
        """Seeds breaker states from the manual switches when live mode starts."""
        live.breaker_states = {}
        for component in graph.components.values():
            for breaker_id, closed in _switches(component):
                live.breaker_states[breaker_id] = BreakerState(is_closed=closed, was_tripped=False)
        live.bump()

    # ------------------------------------------------------------------
    # Overload check
    # ------------------------------------------------------------------
    def collect(self, graph: CircuitGraph, live: LiveState) -> list[ProtectedCircuit]:
        circuits = []
        for component in graph.components.values():
            if component.kind in (ComponentKind.AC_BREAKER, ComponentKind.DC_BREAKER):
                if live.breaker_closed(component):
                    circuits.append(
                        ProtectedCircuit(
                            breaker_id=component.id,
                            component_id=component.id,
                            rating=component.specs.rating,
                            voltage=component.specs.voltage,
                        )
                    )
            elif component.kind in DISTRIBUTION_KINDS:
                if not live.circuit_closed(component, None):
                    continue
                specs = component.specs
                if self.check_main_breakers and specs.main_rating is not None:
                    circuits.append(
                        ProtectedCircuit(
                            breaker_id=main_breaker_id(component.id),
                            component_id=component.id,
                            rating=specs.main_rating,
                            voltage=max(c.voltage for c in specs.circuits),
                            is_main=True,
                        )
                    )
                for index, circuit in enumerate(specs.circuits):
                    if live.circuit_closed(component, index):
                        circuits.append(
                            ProtectedCircuit(
                                breaker_id=circuit_breaker_id(component.id, index),
                                component_id=component.id,
                                rating=circuit.rating,
                                voltage=circuit.voltage,
                                circuit_index=index,
                            )
                        )
        return circuits

    def measure(
        self,
        graph: CircuitGraph,
        live: LiveState,
        power_flow: dict[str, ConnectionFlow],
        circuit: ProtectedCircuit,
    ) -> Draw:
        """Present current through ``circuit``. Never mutates state."""
        component = graph.component(circuit.component_id)
        if component.kind is ComponentKind.DC_BREAKER:
            flows = [power_flow.get(cid) for cid in component.port("load").connections]
            amps = sum(f.amps for f in flows if f is not None and f.is_live)
            return Draw(amps=amps, loads=())

        if component.kind is ComponentKind.AC_BREAKER:
            line_key = feed_side(graph, live, component)
        else:
            line_key = "main"
        if not _port_live(component, line_key, power_flow):
            return Draw(amps=0.0, loads=())

        if component.kind is ComponentKind.AC_BREAKER:
            starts = [(other_side(line_key), circuit.voltage)]
        elif circuit.is_main:
            starts = [
                (f"circuit_{i + 1}", c.voltage)
                for i, c in enumerate(component.specs.circuits)
                if live.circuit_closed(component, i)
            ]
        else:
            starts = [(f"circuit_{circuit.circuit_index + 1}", circuit.voltage)]

        amps = 0.0
        loads: list[str] = []
        for port_key, voltage in starts:
            found = find_downstream_loads(graph, live, Endpoint(component.id, port_key), voltage)
            amps += sum(load.watts for load in found) / voltage
            loads.extend(load.component_id for load in found)
        return Draw(amps=amps, loads=tuple(loads))

    def check_tripping(
        self,
        graph: CircuitGraph,
        live: LiveState,
        power_flow: dict[str, ConnectionFlow],
    ) -> list[TripEvent]:
        """Trips every closed breaker whose draw strictly exceeds its rating."""
        if not live.active:
            return []

        circuits = self.collect(graph, live)
        draws = [(circuit, self.measure(graph, live, power_flow, circuit)) for circuit in circuits]
        overloads = [(circuit, draw) for circuit, draw in draws if draw.amps > circuit.rating]

        events = [self._trip(graph, live, circuit, draw) for circuit, draw in overloads]
        for event in events:
            self._notify(event)
        return events

    def _trip(self, graph: CircuitGraph, live: LiveState, circuit: ProtectedCircuit, draw: Draw) -> TripEvent:
        logger.warning(
            "Breaker %s tripped: %.1fA on a %.0fA rating",
            circuit.breaker_id,
            draw.amps,
            circuit.rating,
        )
        live.breaker_states[circuit.breaker_id] = BreakerState(is_closed=False, was_tripped=True)
        if circuit.circuit_index is not None:
            graph.component(circuit.component_id).breaker_states[circuit.circuit_index] = False
        for load_id in draw.loads:
            live.set_load(load_id, False)
        live.bump()
        return TripEvent(
            breaker_id=circuit.breaker_id,
            component_id=circuit.component_id,
            amps=draw.amps,
            rating=circuit.rating,
            loads_shed=draw.loads,
        )

    # ------------------------------------------------------------------
    # Manual operation
    # ------------------------------------------------------------------
    def reset(self, graph: CircuitGraph, live: LiveState, breaker_id: str) -> None:
        """Clears a trip and closes the breaker again."""
        component, index = _resolve_breaker(graph, breaker_id)
        if index is not None:
            component.breaker_states[index] = True
        elif breaker_id == main_breaker_id(component.id):
            component.main_breaker_on = True
        else:
            component.is_closed = True
        live.breaker_states[breaker_id] = BreakerState(is_closed=True, was_tripped=False)
        live.bump()
        logger.info("Breaker %s reset", breaker_id)

    def reset_all(self, graph: CircuitGraph, live: LiveState) -> None:
        for breaker_id in list(live.breaker_states):
            live.breaker_states[breaker_id] = BreakerState(is_closed=True, was_tripped=False)
        for component in graph.of_kind(*DISTRIBUTION_KINDS):
            component.breaker_states = [True] * len(component.specs.circuits)
            component.main_breaker_on = True
        for component in graph.of_kind(ComponentKind.AC_BREAKER, ComponentKind.DC_BREAKER):
            component.is_closed = True
        live.bump()
        logger.info("All breakers reset")

    def toggle_breaker(self, graph: CircuitGraph, live: LiveState, component_id: str) -> bool:
        """
        Flips a plain breaker's switch. Toggling a tripped breaker resets it.

        Returns the new closed state.
        """
        component = graph.component(component_id)
        if component.kind not in (ComponentKind.AC_BREAKER, ComponentKind.DC_BREAKER):
            raise ValueError(f"Component '{component_id}' is not a breaker.")
        if live.tripped(component_id):
            self.reset(graph, live, component_id)
            return True
        component.is_closed = not component.is_closed
        self._sync(live, component_id, component.is_closed)
        return component.is_closed

    def toggle_main_breaker(self, graph: CircuitGraph, live: LiveState, component_id: str) -> bool:
        component = graph.component(component_id)
        if component.kind not in DISTRIBUTION_KINDS:
            raise ValueError(f"Component '{component_id}' has no main breaker.")
        breaker_id = main_breaker_id(component_id)
        if live.tripped(breaker_id):
            self.reset(graph, live, breaker_id)
            return True
        component.main_breaker_on = not component.main_breaker_on
        self._sync(live, breaker_id, component.main_breaker_on)
        return component.main_breaker_on

    def toggle_circuit(self, graph: CircuitGraph, live: LiveState, component_id: str, index: int) -> bool:
        """Flips circuit ``index`` (0-based) of a breaker panel, spider box or combiner leg."""
        component = graph.component(component_id)
        if not 0 <= index < len(component.breaker_states):
            raise ValueError(f"Component '{component_id}' has no circuit {index + 1}.")
        if component.kind in DISTRIBUTION_KINDS:
            breaker_id = circuit_breaker_id(component_id, index)
            if live.tripped(breaker_id):
                self.reset(graph, live, breaker_id)
                return True
        component.breaker_states[index] = not component.breaker_states[index]
        if component.kind in DISTRIBUTION_KINDS:
            self._sync(live, circuit_breaker_id(component_id, index), component.breaker_states[index])
        else:
            live.bump()
        return component.breaker_states[index]

    def is_closed(self, graph: CircuitGraph, live: LiveState, breaker_id: str) -> bool:
        component, index = _resolve_breaker(graph, breaker_id)
        if index is not None:
            return live.circuit_closed(component, index)
        if breaker_id == main_breaker_id(component.id):
            return live.circuit_closed(component, None)
        return live.breaker_closed(component)

    def _sync(self, live: LiveState, breaker_id: str, closed: bool) -> None:
        state = live.breaker_states.setdefault(breaker_id, BreakerState())
        state.is_closed = closed and not state.was_tripped
        live.bump()

    def __repr__(self) -> str:
        return f"<ProtectionManager(subscribers={len(self._subscribers)}, main_breakers={self.check_main_breakers})>"


def _switches(component: Component) -> list[tuple[str, bool]]:
    """``(breaker id, manual switch)`` pairs for every breaker a component carries."""
    if component.kind in (ComponentKind.AC_BREAKER, ComponentKind.DC_BREAKER):
        return [(component.id, component.is_closed)]
    if component.kind in DISTRIBUTION_KINDS:
        pairs = [(main_breaker_id(component.id), component.main_breaker_on)]
        pairs.extend(
            (circuit_breaker_id(component.id, i), bool(closed)) for i, closed in enumerate(component.breaker_states)
        )
        return pairs
    return []


def _resolve_breaker(graph: CircuitGraph, breaker_id: str) -> tuple[Component, Optional[int]]:
    component_id, _, suffix = breaker_id.partition("#")
    component = graph.component(component_id)
    if not suffix:
        if component.kind not in (ComponentKind.AC_BREAKER, ComponentKind.DC_BREAKER):
            raise KeyError(f"Unknown breaker '{breaker_id}'.")
        return component, None
    if suffix == "main" and component.kind in DISTRIBUTION_KINDS:
        return component, None
    number = suffix[len("circuit_"):]
    if suffix.startswith("circuit_") and number.isdigit() and component.kind in DISTRIBUTION_KINDS:
        index = int(number) - 1
        if 0 <= index < len(component.breaker_states):
            return component, index
    raise KeyError(f"Unknown breaker '{breaker_id}'.")


def _port_live(component: Component, port_key: str, power_flow: dict[str, ConnectionFlow]) -> bool:
    return any(
        power_flow[cid].is_live for cid in component.port(port_key).connections if cid in power_flow
    )
