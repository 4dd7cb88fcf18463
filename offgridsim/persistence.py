"""Flat, YAML-friendly snapshots of a simulation session."""

import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml

from offgridsim.config import SimulationConfig
from offgridsim.core.graph.model import Component
from offgridsim.core.utils.converter import to_plain
from offgridsim.session import SimulationSession

logger = logging.getLogger(__name__)

RECORD_VERSION = 1


def component_to_dict(component: Component) -> dict[str, Any]:
    return {
        "id": component.id,
        "kind": component.kind.value,
        "specs": to_plain(component.specs),
        "is_closed": component.is_closed,
        "main_breaker_on": component.main_breaker_on,
        "breaker_states": list(component.breaker_states),
        "internal_storage": component.internal_storage,
    }


def to_record(session: SimulationSession) -> dict[str, Any]:
    """
    Captures what is needed to resume ``session``: the circuit, its switch
    positions, automation rules, clock, battery SOC and container levels.

    Live-mode state (load switches, trips, power flow) is not part of the
    record; it is rebuilt when live mode starts again.
    """
    graph = session.graph
    return {
        "version": RECORD_VERSION,
        "components": [component_to_dict(c) for c in graph.components.values()],
        "connections": [
            {
                "id": connection.id,
                "source": [connection.source.component_id, connection.source.port_key],
                "target": [connection.target.component_id, connection.target.port_key],
            }
            for connection in graph.connections.values()
        ],
        "automation": session.automation.serialize(),
        "clock": {
            "minute": float(session.clock.minute),
            "day": session.clock.day,
            "speed": float(session.clock.speed),
        },
        "battery_soc": to_plain(session.battery_soc),
        "resources": to_plain(session.resources.export_state()),
    }


def from_record(record: Mapping[str, Any], config: Optional[SimulationConfig] = None) -> SimulationSession:
    """
    Rebuilds a session from :func:`to_record` output.

    Raises:
        ValueError: for an unsupported record version or invalid specs.
        ConnectionRejected: when a stored wire breaks the wiring rules.
    """
    version = record.get("version", RECORD_VERSION)
    if version != RECORD_VERSION:
        raise ValueError(f"Unsupported record version {version}.")

    session = SimulationSession(config)
    graph = session.graph
    for item in record.get("components", []):
        component = graph.create(item["kind"], item.get("specs") or {}, item["id"])
        component.is_closed = bool(item.get("is_closed", True))
        component.main_breaker_on = bool(item.get("main_breaker_on", True))
        if item.get("breaker_states"):
            component.breaker_states = [bool(s) for s in item["breaker_states"]]
        component.internal_storage = float(item.get("internal_storage", 0.0))

    for item in record.get("connections", []):
        (comp_a, port_a), (comp_b, port_b) = item["source"], item["target"]
        graph.add_connection(comp_a, port_a, comp_b, port_b, connection_id=item.get("id"))

    session.automation.deserialize(record.get("automation"))

    clock = record.get("clock") or {}
    if "speed" in clock:
        session.clock.set_speed(clock["speed"])
    if "minute" in clock:
        session.clock.seek(clock["minute"])
    session.clock.day = int(clock.get("day", 0))

    session.bank.sync(graph)
    for component_id, soc in (record.get("battery_soc") or {}).items():
        if component_id in graph.components:
            session.bank.set_soc(component_id, soc)

    session.resources.import_state(record.get("resources"))
    session.flow.invalidate()
    logger.info(
        "Restored session with %d components and %d connections",
        len(graph.components),
        len(graph.connections),
    )
    return session


def dump_yaml(session: SimulationSession, path: Union[None, str, Path] = None) -> str:
    """Serializes ``session`` to YAML; also writes it to ``path`` when given."""
    text = yaml.safe_dump(to_record(session), sort_keys=False)
    if path is not None:
        with open(path, "w") as f:
            f.write(text)
    return text


def load_yaml(source: Union[str, Path], config: Optional[SimulationConfig] = None) -> SimulationSession:
    """Loads a session from a YAML file path or a YAML document string."""
    if isinstance(source, Path) or str(source).endswith((".yaml", ".yml")):
        with open(source, "r") as f:
            record = yaml.safe_load(f)
    else:
        record = yaml.safe_load(source)
    if not isinstance(record, Mapping):
        raise ValueError("Session record must be a mapping.")
    return from_record(record, config)
