from offgridsim.config import SimulationConfig, load_config
from offgridsim.core.graph import CircuitGraph, ComponentKind, ConnectionRejected
from offgridsim.persistence import dump_yaml, from_record, load_yaml, to_record
from offgridsim.recorder import TickRecorder
from offgridsim.session import DisplayValues, SimulationSession

__all__ = [
    "CircuitGraph",
    "ComponentKind",
    "ConnectionRejected",
    "DisplayValues",
    "SimulationConfig",
    "SimulationSession",
    "TickRecorder",
    "dump_yaml",
    "from_record",
    "load_config",
    "load_yaml",
    "to_record",
]
