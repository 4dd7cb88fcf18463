import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from offgridsim.config import SimulationConfig, load_config
from offgridsim.core.automation.engine import AutomationEngine, RuleCallback
from offgridsim.core.automation.rules import AutomationRule, RuleAction, Trigger
from offgridsim.core.environment.battery import BatteryBank
from offgridsim.core.environment.clock import SimulationClock, format_time
from offgridsim.core.environment.simulator import EnvironmentSimulator, TickResult
from offgridsim.core.environment.solar import SolarModel
from offgridsim.core.flow.resolver import FlowResolver, PowerFlow
from offgridsim.core.graph.circuit import CircuitGraph
from offgridsim.core.graph.kinds import ComponentKind
from offgridsim.core.graph.model import Component, Connection
from offgridsim.core.live.state import BreakerState, LiveState
from offgridsim.core.protection.manager import ProtectionManager, TripCallback, TripEvent
from offgridsim.core.resources.flow import ResourceSystem
from offgridsim.recorder import TickRecorder

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DisplayValues:
    time: str
    irradiance_percent: float
    solar_watts: float
    load_watts: float
    battery_watts: float
    battery_percent: float
    efficiency: float
    playing: bool
    live: bool


class SimulationSession:
    """
    One simulated installation: the circuit graph plus everything that runs it.

    Commands mutate the graph or the switch state and immediately re-resolve
    the power flow (with the overload check) while live mode is on, so
    queries never see a map computed before a mutation.
    """

    def __init__(self, config: Optional[SimulationConfig] = None, graph: Optional[CircuitGraph] = None):
        self.config = config or SimulationConfig()
        self.graph = graph if graph is not None else CircuitGraph()
        self.live = LiveState()
        self.clock = SimulationClock.from_config(self.config.clock)
        self.solar = SolarModel(self.config.solar)
        self.bank = BatteryBank(self.config.battery)
        self.flow = FlowResolver()
        self.protection = ProtectionManager(self.config.protection.check_main_breakers)
        self.automation = AutomationEngine(self.config.automation)
        self.resources = ResourceSystem()
        self.recorder = TickRecorder(self.config.recorder) if self.config.recorder.enabled else None
        self.simulator = EnvironmentSimulator(
            graph=self.graph,
            live=self.live,
            clock=self.clock,
            solar=self.solar,
            bank=self.bank,
            flow=self.flow,
            protection=self.protection,
            automation=self.automation,
            resources=self.resources,
        )

    @classmethod
    def from_config(cls, source: Any = None) -> "SimulationSession":
        return cls(load_config(source))

    # ------------------------------------------------------------------
    # Query surface
    # ------------------------------------------------------------------
    @property
    def power_flow(self) -> PowerFlow:
        return self.live.power_flow

    @property
    def breaker_states(self) -> dict[str, BreakerState]:
        return dict(self.live.breaker_states)

    @property
    def load_states(self) -> dict[str, bool]:
        return dict(self.live.load_states)

    @property
    def battery_soc(self) -> dict[str, float]:
        self.bank.sync(self.graph)
        return dict(self.bank.soc)

    @property
    def last_tick(self) -> Optional[TickResult]:
        return self.simulator.last_result

    def display(self) -> DisplayValues:
        last = self.simulator.last_result
        capacities = self.bank.sync(self.graph)
        return DisplayValues(
            time=format_time(self.clock.minute),
            irradiance_percent=self.solar.irradiance(self.clock.minute) * 100.0,
            solar_watts=last.effective_solar_watts if last else 0.0,
            load_watts=last.load_watts if last else 0.0,
            battery_watts=last.battery_flow if last else 0.0,
            battery_percent=self.bank.weighted_soc(capacities) * 100.0,
            efficiency=self.bank.efficiency,
            playing=self.clock.playing,
            live=self.live.active,
        )

    # ------------------------------------------------------------------
    # Graph commands
    # ------------------------------------------------------------------
    def add_component(
        self,
        kind: Union[ComponentKind, str],
        specs: Any = None,
        component_id: Optional[str] = None,
    ) -> Component:
        component = self.graph.create(kind, specs, component_id)
        self._changed()
        return component

    def remove_component(self, component_id: str) -> Component:
        component = self.graph.remove_component(component_id)
        self.live.load_states.pop(component_id, None)
        self.resources.levels.pop(component_id, None)
        self._changed()
        return component

    def connect(self, comp_a: str, port_a: str, comp_b: str, port_b: str) -> Connection:
        connection = self.graph.add_connection(comp_a, port_a, comp_b, port_b)
        self._changed()
        return connection

    def disconnect(self, connection_id: str) -> Connection:
        connection = self.graph.remove_connection(connection_id)
        self._changed()
        return connection

    # ------------------------------------------------------------------
    # Switch commands
    # ------------------------------------------------------------------
    def set_load(self, component_id: str, on: bool) -> bool:
        self._require_consumer(component_id)
        self.live.set_load(component_id, on)
        self._changed()
        return on

    def toggle_load(self, component_id: str) -> bool:
        self._require_consumer(component_id)
        state = self.live.toggle_load(component_id)
        self._changed()
        return state

    def toggle_breaker(self, component_id: str) -> bool:
        state = self.protection.toggle_breaker(self.graph, self.live, component_id)
        self._changed()
        return state

    def toggle_main_breaker(self, component_id: str) -> bool:
        state = self.protection.toggle_main_breaker(self.graph, self.live, component_id)
        self._changed()
        return state

    def toggle_circuit(self, component_id: str, index: int) -> bool:
        state = self.protection.toggle_circuit(self.graph, self.live, component_id, index)
        self._changed()
        return state

    def reset_breaker(self, breaker_id: str) -> None:
        self.protection.reset(self.graph, self.live, breaker_id)
        self._changed()

    def reset_all_breakers(self) -> None:
        self.protection.reset_all(self.graph, self.live)
        self._changed()

    def is_breaker_closed(self, breaker_id: str) -> bool:
        return self.protection.is_closed(self.graph, self.live, breaker_id)

    # ------------------------------------------------------------------
    # Mode and clock commands
    # ------------------------------------------------------------------
    def start_live(self) -> None:
        self.live.start()
        self.protection.initialize(self.graph, self.live)
        self.bank.sync(self.graph)
        self._changed()

    def stop_live(self) -> None:
        self.live.stop()
        self.flow.invalidate()

    def play(self) -> None:
        self.clock.play()

    def pause(self) -> None:
        self.clock.pause()

    def reset_clock(self) -> None:
        self.clock.reset(self.config.clock.start_minute)
        self.bank.reset_counters()
        self.simulator.last_result = None
        logger.info("Clock reset to %s", self.clock.formatted)

    def seek(self, minute: float) -> None:
        self.clock.seek(minute)

    def set_speed(self, speed: float) -> None:
        self.clock.set_speed(speed)

    def tick(self, real_seconds: float) -> Optional[TickResult]:
        result = self.simulator.tick(real_seconds)
        if self.recorder is not None:
            self.recorder.record(result)
        return result

    # ------------------------------------------------------------------
    # Automation commands
    # ------------------------------------------------------------------
    @property
    def rules(self) -> list[AutomationRule]:
        return self.automation.rules

    def create_rule(self, name: str, trigger: Trigger, action: RuleAction) -> AutomationRule:
        return self.automation.create_rule(name, trigger, action)

    def create_rule_from_preset(self, preset: Union[int, str]) -> AutomationRule:
        return self.automation.create_from_preset(preset)

    def delete_rule(self, rule_id: str) -> AutomationRule:
        return self.automation.delete_rule(rule_id)

    def toggle_rule(self, rule_id: str) -> bool:
        return self.automation.toggle_rule(rule_id)

    def set_rule_enabled(self, rule_id: str, enabled: bool) -> None:
        self.automation.set_enabled(rule_id, enabled)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------
    def on_trip(self, callback: TripCallback) -> None:
        self.protection.subscribe(callback)

    def on_rule_fired(self, callback: RuleCallback) -> None:
        self.automation.subscribe(callback)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def refresh(self) -> list[TripEvent]:
        """Re-resolves power flow for the current state; returns any trips."""
        if not self.live.active:
            self.live.power_flow = {}
            return []
        _, events = self.flow.resolve(self.graph, self.live, self.simulator.last_inputs, self.protection)
        return events

    def _changed(self) -> None:
        self.flow.invalidate()
        self.refresh()

    def _require_consumer(self, component_id: str) -> None:
        if not self.live.active:
            raise RuntimeError("Loads can only be switched while live mode is active.")
        if not self.graph.component(component_id).is_consumer:
            raise ValueError(f"Component '{component_id}' is not a load.")

    def __repr__(self) -> str:
        return (
            f"<SimulationSession(graph={self.graph!r}, live={self.live.active}, "
            f"time={self.clock.formatted}, rules={len(self.automation.rules)})>"
        )
