import logging
from itertools import count
from typing import Any, Iterator, Optional, Union

from offgridsim.core.graph.factory import build_component
from offgridsim.core.graph.kinds import ComponentKind, Polarity, compatible
from offgridsim.core.graph.model import Component, Connection, Endpoint, Port

logger = logging.getLogger(__name__)


class ConnectionRejected(ValueError):
    """Raised when a wire would violate the polarity or voltage rules."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class CircuitGraph:
    """
    Owned repository of components and the wires between them.

    Every mutation bumps ``version`` so derived caches (power flow) can tell
    that the topology changed. Ports keep back-references to the
    connections they take part in; both ends are always updated together.
    """

    def __init__(self):
        self.components: dict[str, Component] = {}
        self.connections: dict[str, Connection] = {}
        self.version: int = 0
        self._ids = count(1)

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------
    def add_component(self, component: Component) -> Component:
        if component.id in self.components:
            raise ValueError(f"Component id '{component.id}' already exists.")
        self.components[component.id] = component
        self._touch()
        return component

    def create(
        self,
        kind: Union[ComponentKind, str],
        specs: Any = None,
        component_id: Optional[str] = None,
    ) -> Component:
        """Builds a component of ``kind`` and adds it to the graph."""
        kind = ComponentKind(kind)
        if component_id is None:
            component_id = self._next_id(kind.value)
        return self.add_component(build_component(kind, component_id, specs))

    def remove_component(self, component_id: str) -> Component:
        component = self.component(component_id)
        for port in component.ports.values():
            for connection_id in list(port.connections):
                self.remove_connection(connection_id)
        del self.components[component_id]
        self._touch()
        return component

    def component(self, component_id: str) -> Component:
        if component_id not in self.components:
            raise KeyError(f"Unknown component '{component_id}'.")
        return self.components[component_id]

    def get(self, component_id: str) -> Optional[Component]:
        return self.components.get(component_id)

    def of_kind(self, *kinds: ComponentKind) -> list[Component]:
        return [c for c in self.components.values() if c.kind in kinds]

    def port(self, endpoint: Endpoint) -> Optional[Port]:
        component = self.components.get(endpoint.component_id)
        if component is None:
            return None
        return component.ports.get(endpoint.port_key)

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------
    def rejection_reason(self, comp_a: str, port_a: str, comp_b: str, port_b: str) -> Optional[str]:
        """Returns why a wire between the two ports would be refused, or None."""
        a = self.components.get(comp_a)
        b = self.components.get(comp_b)
        if a is None or b is None:
            return f"unknown component '{comp_a if a is None else comp_b}'"
        if port_a not in a.ports:
            return f"component '{comp_a}' has no port '{port_a}'"
        if port_b not in b.ports:
            return f"component '{comp_b}' has no port '{port_b}'"
        if comp_a == comp_b:
            return "cannot wire a component to itself"
        pol_a, pol_b = a.ports[port_a].polarity, b.ports[port_b].polarity
        if not compatible(pol_a, pol_b):
            return f"incompatible polarities {pol_a.value} and {pol_b.value}"
        pair = {Endpoint(comp_a, port_a), Endpoint(comp_b, port_b)}
        for connection_id in a.ports[port_a].connections:
            existing = self.connections.get(connection_id)
            if existing is not None and set(existing.endpoints) == pair:
                return "these ports are already wired together"
        return _voltage_reason(a, port_a, b, port_b) or _voltage_reason(b, port_b, a, port_a)

    def can_connect(self, comp_a: str, port_a: str, comp_b: str, port_b: str) -> bool:
        return self.rejection_reason(comp_a, port_a, comp_b, port_b) is None

    def add_connection(
        self,
        comp_a: str,
        port_a: str,
        comp_b: str,
        port_b: str,
        connection_id: Optional[str] = None,
    ) -> Connection:
        """
        Wires two ports together.

        Raises:
            ConnectionRejected: when the wire breaks a polarity or voltage
                rule. The graph is left unchanged.
        """
        reason = self.rejection_reason(comp_a, port_a, comp_b, port_b)
        if reason is not None:
            logger.warning("Rejected connection %s.%s -> %s.%s: %s", comp_a, port_a, comp_b, port_b, reason)
            raise ConnectionRejected(reason)
        if connection_id is None:
            connection_id = self._next_id("conn")
        elif connection_id in self.connections:
            raise ConnectionRejected(f"connection id '{connection_id}' already exists")

        connection = Connection(
            id=connection_id,
            source=Endpoint(comp_a, port_a),
            target=Endpoint(comp_b, port_b),
        )
        self.connections[connection_id] = connection
        self.components[comp_a].ports[port_a].connections.add(connection_id)
        self.components[comp_b].ports[port_b].connections.add(connection_id)
        self._touch()
        return connection

    def remove_connection(self, connection_id: str) -> Connection:
        if connection_id not in self.connections:
            raise KeyError(f"Unknown connection '{connection_id}'.")
        connection = self.connections.pop(connection_id)
        for endpoint in connection.endpoints:
            port = self.port(endpoint)
            if port is not None:
                port.connections.discard(connection_id)
        self._touch()
        return connection

    def wires_at(self, endpoint: Endpoint) -> Iterator[tuple[Connection, Endpoint]]:
        """
        Yields ``(connection, far_endpoint)`` for every wire on a port.

        Stale ids (a connection or far component that no longer exists) are
        skipped: a dangling reference is simply "no path".
        """
        port = self.port(endpoint)
        if port is None:
            return
        for connection_id in sorted(port.connections):
            connection = self.connections.get(connection_id)
            if connection is None:
                logger.debug("Skipping dangling connection '%s' on %s", connection_id, endpoint)
                continue
            far = connection.other(endpoint)
            if self.port(far) is None:
                logger.debug("Skipping connection '%s' to missing port %s", connection_id, far)
                continue
            yield connection, far

    def check_integrity(self) -> list[str]:
        """Lists every violation of the connection back-reference symmetry."""
        problems = []
        for connection in self.connections.values():
            for endpoint in connection.endpoints:
                port = self.port(endpoint)
                if port is None:
                    problems.append(f"{connection.id}: missing endpoint {endpoint}")
                elif connection.id not in port.connections:
                    problems.append(f"{connection.id}: no back-reference on {endpoint}")
        for component in self.components.values():
            for port in component.ports.values():
                for connection_id in port.connections:
                    if connection_id not in self.connections:
                        problems.append(f"{port.id}: references unknown connection {connection_id}")
        return problems

    def _next_id(self, prefix: str) -> str:
        while True:
            candidate = f"{prefix}-{next(self._ids)}"
            if candidate not in self.components and candidate not in self.connections:
                return candidate

    def _touch(self) -> None:
        self.version += 1

    def __repr__(self) -> str:
        return (
            f"<CircuitGraph(components={len(self.components)}, "
            f"connections={len(self.connections)}, version={self.version})>"
        )


def _voltage_reason(load: Component, load_port: str, supply: Component, supply_port: str) -> Optional[str]:
    """A consumer may only be wired to an AC supply whose voltage it accepts."""
    if not load.is_consumer or load.ports[load_port].polarity is not Polarity.LOAD:
        return None
    service = supply.supply_voltage(supply_port)
    if service is None or service.accepts(load.load_voltage):
        return None
    return (
        f"{load.load_voltage:g}V load '{load.id}' cannot be wired to a "
        f"{service.value}V supply on '{supply.id}'"
    )
