from offgridsim.core.graph.circuit import (
    CircuitGraph,
    ConnectionRejected,
)
from offgridsim.core.graph.factory import build_component, build_specs
from offgridsim.core.graph.kinds import (
    ComponentKind,
    Polarity,
    ServiceVoltage,
    compatible,
)
from offgridsim.core.graph.model import Component, Connection, Endpoint, Port

__all__ = [
    "CircuitGraph",
    "Component",
    "ComponentKind",
    "Connection",
    "ConnectionRejected",
    "Endpoint",
    "Polarity",
    "Port",
    "ServiceVoltage",
    "build_component",
    "build_specs",
    "compatible",
]
