from offgridsim.core.protection.manager import (
    ProtectedCircuit,
    ProtectionManager,
    TripEvent,
)

__all__ = [
    "ProtectedCircuit",
    "ProtectionManager",
    "TripEvent",
]
