"""Automation rule model: triggers, actions and presets."""

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Literal, Mapping, Optional, Union

from offgridsim.config import MINUTES_PER_DAY, AutomationConfig
from offgridsim.core.environment.clock import format_time
from offgridsim.core.graph.kinds import ComponentKind


@dataclass(frozen=True, slots=True)
class Readings:
    """Simulator outputs a trigger is evaluated against."""

    minute: float
    battery_percent: float = 0.0
    solar_watts: float = 0.0
    containers: Mapping[str, float] = field(default_factory=dict)
    day: int = 0

    @property
    def elapsed(self) -> float:
        """Simulated minutes since day 0 midnight."""
        return self.day * MINUTES_PER_DAY + self.minute


def minutes_apart(a: float, b: float) -> float:
    """Distance between two times of day, across midnight if shorter."""
    diff = abs(a - b) % MINUTES_PER_DAY
    return MINUTES_PER_DAY - diff if diff > MINUTES_PER_DAY / 2 else diff


# ----------------------------------------------------------------------
# Triggers
# ----------------------------------------------------------------------
@dataclass(frozen=True, slots=True, kw_only=True)
class TimeTrigger:
    minute: float
    type: Literal["time"] = "time"

    moment: ClassVar[bool] = True

    def __post_init__(self):
        if not (0 <= self.minute < MINUTES_PER_DAY):
            raise ValueError("Trigger minute must be within one day.")

    def is_met(self, readings: Readings, config: AutomationConfig) -> bool:
        return minutes_apart(readings.minute, self.minute) < config.time_window

    def describe(self) -> str:
        return f"At {format_time(self.minute)}"


@dataclass(frozen=True, slots=True, kw_only=True)
class TimeRangeTrigger:
    start: float
    end: float
    type: Literal["time_range"] = "time_range"

    moment: ClassVar[bool] = False

    def __post_init__(self):
        if not (0 <= self.start < MINUTES_PER_DAY and 0 <= self.end < MINUTES_PER_DAY):
            raise ValueError("Time range bounds must be within one day.")

    def is_met(self, readings: Readings, config: AutomationConfig) -> bool:
        if self.start < self.end:
            return self.start <= readings.minute < self.end
        # Range wraps past midnight.
        return readings.minute >= self.start or readings.minute < self.end

    def describe(self) -> str:
        return f"{format_time(self.start)} - {format_time(self.end)}"


@dataclass(frozen=True, slots=True, kw_only=True)
class SunriseTrigger:
    type: Literal["sunrise"] = "sunrise"

    moment: ClassVar[bool] = True

    def is_met(self, readings: Readings, config: AutomationConfig) -> bool:
        return minutes_apart(readings.minute, config.sunrise_minute) < config.sun_window

    def describe(self) -> str:
        return "At Sunrise"


@dataclass(frozen=True, slots=True, kw_only=True)
class SunsetTrigger:
    type: Literal["sunset"] = "sunset"

    moment: ClassVar[bool] = True

    def is_met(self, readings: Readings, config: AutomationConfig) -> bool:
        return minutes_apart(readings.minute, config.sunset_minute) < config.sun_window

    def describe(self) -> str:
        return "At Sunset"


@dataclass(frozen=True, slots=True, kw_only=True)
class BatteryBelowTrigger:
    percent: float
    type: Literal["battery_below"] = "battery_below"

    moment: ClassVar[bool] = False

    def is_met(self, readings: Readings, config: AutomationConfig) -> bool:
        return readings.battery_percent < self.percent

    def describe(self) -> str:
        return f"Battery < {self.percent:g}%"


@dataclass(frozen=True, slots=True, kw_only=True)
class BatteryAboveTrigger:
    percent: float
    type: Literal["battery_above"] = "battery_above"

    moment: ClassVar[bool] = False

    def is_met(self, readings: Readings, config: AutomationConfig) -> bool:
        return readings.battery_percent > self.percent

    def describe(self) -> str:
        return f"Battery > {self.percent:g}%"


@dataclass(frozen=True, slots=True, kw_only=True)
class SolarBelowTrigger:
    watts: float
    type: Literal["solar_below"] = "solar_below"

    moment: ClassVar[bool] = False

    def is_met(self, readings: Readings, config: AutomationConfig) -> bool:
        return readings.solar_watts < self.watts

    def describe(self) -> str:
        return f"Solar < {self.watts:g}W"


@dataclass(frozen=True, slots=True, kw_only=True)
class SolarAboveTrigger:
    watts: float
    type: Literal["solar_above"] = "solar_above"

    moment: ClassVar[bool] = False

    def is_met(self, readings: Readings, config: AutomationConfig) -> bool:
        return readings.solar_watts > self.watts

    def describe(self) -> str:
        return f"Solar > {self.watts:g}W"


@dataclass(frozen=True, slots=True, kw_only=True)
class SolarProducingTrigger:
    type: Literal["solar_producing"] = "solar_producing"

    moment: ClassVar[bool] = False

    def is_met(self, readings: Readings, config: AutomationConfig) -> bool:
        return readings.solar_watts > 0

    def describe(self) -> str:
        return "Solar producing"


@dataclass(frozen=True, slots=True, kw_only=True)
class SolarZeroTrigger:
    type: Literal["solar_zero"] = "solar_zero"

    moment: ClassVar[bool] = False

    def is_met(self, readings: Readings, config: AutomationConfig) -> bool:
        return readings.solar_watts == 0

    def describe(self) -> str:
        return "Solar at zero"


@dataclass(frozen=True, slots=True, kw_only=True)
class ContainerAboveTrigger:
    container_id: str
    level: float
    label: Optional[str] = None
    type: Literal["container_above"] = "container_above"

    moment: ClassVar[bool] = False

    def is_met(self, readings: Readings, config: AutomationConfig) -> bool:
        level = readings.containers.get(self.container_id)
        return level is not None and level > self.level

    def describe(self) -> str:
        return f"{self.label or 'Container'} > {self.level:g}"


@dataclass(frozen=True, slots=True, kw_only=True)
class ContainerBelowTrigger:
    container_id: str
    level: float
    label: Optional[str] = None
    type: Literal["container_below"] = "container_below"

    moment: ClassVar[bool] = False

    def is_met(self, readings: Readings, config: AutomationConfig) -> bool:
        level = readings.containers.get(self.container_id)
        return level is not None and level < self.level

    def describe(self) -> str:
        return f"{self.label or 'Container'} < {self.level:g}"


Trigger = Union[
    TimeTrigger,
    TimeRangeTrigger,
    SunriseTrigger,
    SunsetTrigger,
    BatteryBelowTrigger,
    BatteryAboveTrigger,
    SolarBelowTrigger,
    SolarAboveTrigger,
    SolarProducingTrigger,
    SolarZeroTrigger,
    ContainerAboveTrigger,
    ContainerBelowTrigger,
]


# ----------------------------------------------------------------------
# Actions and rules
# ----------------------------------------------------------------------
class ActionType(str, Enum):
    TURN_ON = "turn_on"
    TURN_OFF = "turn_off"
    TOGGLE = "toggle"

    def describe(self) -> str:
        return {
            ActionType.TURN_ON: "turned ON",
            ActionType.TURN_OFF: "turned OFF",
            ActionType.TOGGLE: "toggled",
        }[self]


class RuleSource(str, Enum):
    USER = "user"
    PRESET = "preset"
    IMPORTED = "imported"


@dataclass(frozen=True, slots=True, kw_only=True)
class RuleAction:
    """Explicit ``target_ids`` win; otherwise every component of ``target_kind``."""

    type: ActionType
    target_ids: tuple = ()
    target_kind: Optional[ComponentKind] = None

    def describe(self) -> str:
        return self.type.describe()


@dataclass(slots=True, kw_only=True)
class AutomationRule:
    id: str
    name: str
    trigger: Trigger
    action: RuleAction
    enabled: bool = True
    last_triggered: Optional[float] = None  # simulated minutes since day 0
    source: RuleSource = RuleSource.USER

    def describe(self) -> str:
        return f"{self.trigger.describe()}: {self.action.describe()}"


@dataclass(frozen=True, slots=True)
class RuleFired:
    rule_id: str
    name: str
    minute: float
    affected: tuple
    day: int = 0

    @property
    def message(self) -> str:
        return f"{self.name}: {len(self.affected)} device(s)"


@dataclass(frozen=True, slots=True, kw_only=True)
class Preset:
    name: str
    description: str
    trigger: Trigger
    action: RuleAction


_ALL_LOADS = ComponentKind.AC_LOAD

PRESETS = (
    Preset(
        name="Night Lights",
        description="Turn on lights at sunset",
        trigger=SunsetTrigger(),
        action=RuleAction(type=ActionType.TURN_ON, target_kind=_ALL_LOADS),
    ),
    Preset(
        name="Morning Off",
        description="Turn off lights at sunrise",
        trigger=SunriseTrigger(),
        action=RuleAction(type=ActionType.TURN_OFF, target_kind=_ALL_LOADS),
    ),
    Preset(
        name="Low Battery Saver",
        description="Turn off loads when battery < 20%",
        trigger=BatteryBelowTrigger(percent=20),
        action=RuleAction(type=ActionType.TURN_OFF, target_kind=_ALL_LOADS),
    ),
    Preset(
        name="High Solar Boost",
        description="Turn on loads when solar > 500W",
        trigger=SolarAboveTrigger(watts=500),
        action=RuleAction(type=ActionType.TURN_ON, target_kind=_ALL_LOADS),
    ),
    Preset(
        name="Evening Schedule",
        description="Turn on loads from 6-10 PM",
        trigger=TimeRangeTrigger(start=18 * 60, end=22 * 60),
        action=RuleAction(type=ActionType.TURN_ON, target_kind=_ALL_LOADS),
    ),
    Preset(
        name="Night Mode",
        description="Turn off loads from 11 PM - 6 AM",
        trigger=TimeRangeTrigger(start=23 * 60, end=6 * 60),
        action=RuleAction(type=ActionType.TURN_OFF, target_kind=_ALL_LOADS),
    ),
    Preset(
        name="Battery Full",
        description="Turn on loads when battery > 80%",
        trigger=BatteryAboveTrigger(percent=80),
        action=RuleAction(type=ActionType.TURN_ON, target_kind=_ALL_LOADS),
    ),
)


def describe_trigger(trigger: Trigger) -> str:
    return trigger.describe()


def describe_action(action: RuleAction) -> str:
    return action.describe()
