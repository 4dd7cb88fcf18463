from dataclasses import dataclass, field
from typing import Any, Optional

from offgridsim.core.graph.kinds import (
    CONSUMER_KINDS,
    ComponentKind,
    Polarity,
    ServiceVoltage,
)


@dataclass(frozen=True, slots=True)
class Endpoint:
    """One end of a wire: a component id and one of its port keys."""

    component_id: str
    port_key: str


@dataclass(slots=True, eq=False)
class Port:
    key: str
    id: str
    component_id: str
    polarity: Polarity
    connections: set = field(default_factory=set)
    index: Optional[int] = None

    @property
    def endpoint(self) -> Endpoint:
        return Endpoint(self.component_id, self.key)


@dataclass(frozen=True, slots=True)
class Connection:
    """An undirected wire. ``source``/``target`` only label the drawing direction."""

    id: str
    source: Endpoint
    target: Endpoint

    @property
    def endpoints(self) -> tuple[Endpoint, Endpoint]:
        return (self.source, self.target)

    def other(self, endpoint: Endpoint) -> Endpoint:
        if endpoint == self.source:
            return self.target
        if endpoint == self.target:
            return self.source
        raise ValueError(f"{endpoint} is not an endpoint of connection '{self.id}'.")

    def touches(self, component_id: str) -> bool:
        return self.source.component_id == component_id or self.target.component_id == component_id


@dataclass(slots=True, eq=False)
class Component:
    """A placed device. Owns its ports and its operational switch state."""

    id: str
    kind: ComponentKind
    specs: Any
    ports: dict = field(default_factory=dict)

    # Operational state, meaningful only for some kinds.
    is_closed: bool = True
    main_breaker_on: bool = True
    breaker_states: list = field(default_factory=list)
    internal_storage: float = 0.0

    def port(self, key: str) -> Port:
        if key not in self.ports:
            raise KeyError(f"Component '{self.id}' has no port '{key}'.")
        return self.ports[key]

    def ports_with(self, *polarities: Polarity) -> list[Port]:
        return [p for p in self.ports.values() if p.polarity in polarities]

    @property
    def name(self) -> str:
        return getattr(self.specs, "name", self.kind.value)

    @property
    def is_consumer(self) -> bool:
        return self.kind in CONSUMER_KINDS

    @property
    def rated_watts(self) -> float:
        return float(getattr(self.specs, "watts", 0.0)) if self.is_consumer else 0.0

    @property
    def load_voltage(self) -> Optional[float]:
        return float(self.specs.voltage) if self.is_consumer else None

    @property
    def capacity_wh(self) -> float:
        """Energy storage capacity: battery bank, smart battery or all-in-one internal cells."""
        if self.kind in (ComponentKind.BATTERY, ComponentKind.SMART_BATTERY):
            return self.specs.capacity_wh
        if self.kind is ComponentKind.CONTROLLER:
            return self.specs.internal_battery_kwh * 1000.0
        return 0.0

    def circuit_index(self, port_key: str) -> Optional[int]:
        port = self.ports.get(port_key)
        return port.index if port is not None else None

    def input_closed(self, index: Optional[int]) -> bool:
        """Local breaker state of a combiner input leg or a distribution circuit."""
        if index is None or index >= len(self.breaker_states):
            return True
        return bool(self.breaker_states[index])

    def supply_voltage(self, port_key: str) -> Optional[ServiceVoltage]:
        """The AC service a port offers to whatever is wired to it, if any."""
        if self.kind is ComponentKind.AC_OUTLET:
            return self.specs.voltage
        if self.kind is ComponentKind.AC_BREAKER:
            return ServiceVoltage.from_volts(self.specs.voltage)
        if self.kind in (ComponentKind.BREAKER_PANEL, ComponentKind.SPIDER_BOX):
            index = self.circuit_index(port_key)
            if index is None:
                return None
            return ServiceVoltage.from_volts(self.specs.circuits[index].voltage)
        if self.kind is ComponentKind.CONTROLLER and port_key == "ac_output":
            return self.specs.ac_voltage
        if self.kind is ComponentKind.DOUBLE_VOLTAGE_HUB and port_key == "output":
            return ServiceVoltage.SPLIT
        return None
