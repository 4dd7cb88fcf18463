import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from offgridsim.core.graph.kinds import BREAKER_KINDS, DISTRIBUTION_KINDS
from offgridsim.core.graph.model import Component

logger = logging.getLogger(__name__)


class FlowDirection(str, Enum):
    PV_TO_CONTROLLER = "pv-to-controller"
    CONTROLLER_TO_PV = "controller-to-pv"
    CHARGING = "charging"
    DISCHARGING = "discharging"
    SOURCE_TO_LOAD = "source-to-load"


@dataclass(slots=True)
class ConnectionFlow:
    """Resolved electrical state of one wire."""

    watts: float = 0.0
    amps: float = 0.0
    voltage: float = 0.0
    is_live: bool = False
    direction: Optional[FlowDirection] = None
    has_active_flow: bool = False
    recommended_gauge: Optional[str] = None
    protected_by: Optional[str] = None  # nearest breaker or distribution box


@dataclass(slots=True)
class BreakerState:
    is_closed: bool = True
    was_tripped: bool = False


def circuit_breaker_id(component_id: str, index: int) -> str:
    """Breaker id of circuit ``index`` (0-based) of a breaker panel or spider box."""
    return f"{component_id}#circuit_{index + 1}"


def main_breaker_id(component_id: str) -> str:
    return f"{component_id}#main"


@dataclass
class LiveState:
    """
    Transient state that only exists while live mode is on.

    ``switch_version`` is bumped by every load or breaker mutation so the
    power-flow cache can never serve a map computed before the change.
    """

    active: bool = False
    load_states: dict[str, bool] = field(default_factory=dict)
    breaker_states: dict[str, BreakerState] = field(default_factory=dict)
    power_flow: dict = field(default_factory=dict)
    switch_version: int = 0

    def start(self) -> None:
        self.active = True
        self.load_states = {}
        self.breaker_states = {}
        self.power_flow = {}
        self.bump()
        logger.info("Live mode started")

    def stop(self) -> None:
        self.active = False
        self.load_states = {}
        self.breaker_states = {}
        self.power_flow = {}
        self.bump()
        logger.info("Live mode stopped")

    def bump(self) -> None:
        self.switch_version += 1

    # ------------------------------------------------------------------
    # Loads
    # ------------------------------------------------------------------
    def is_on(self, component_id: str) -> bool:
        return self.load_states.get(component_id, False)

    def set_load(self, component_id: str, on: bool) -> bool:
        """Sets a load's switch; returns whether the state changed."""
        if self.is_on(component_id) == on:
            return False
        self.load_states[component_id] = on
        self.bump()
        return True

    def toggle_load(self, component_id: str) -> bool:
        new_state = not self.is_on(component_id)
        self.set_load(component_id, new_state)
        return new_state

    # ------------------------------------------------------------------
    # Breakers
    # ------------------------------------------------------------------
    def tripped(self, breaker_id: str) -> bool:
        state = self.breaker_states.get(breaker_id)
        return state is not None and state.was_tripped

    def breaker_closed(self, component: Component) -> bool:
        """A plain AC/DC breaker conducts when switched on and not tripped."""
        if component.kind not in BREAKER_KINDS:
            return True
        return component.is_closed and not self.tripped(component.id)

    def circuit_closed(self, component: Component, index: Optional[int]) -> bool:
        """Circuit ``index`` of a distribution box conducts from its main input."""
        if component.kind not in DISTRIBUTION_KINDS:
            return component.input_closed(index)
        if not component.main_breaker_on or self.tripped(main_breaker_id(component.id)):
            return False
        if index is None:
            return True
        return component.input_closed(index) and not self.tripped(circuit_breaker_id(component.id, index))
