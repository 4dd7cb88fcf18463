from offgridsim.core.automation.engine import AutomationEngine, rule_from_dict, rule_to_dict
from offgridsim.core.automation.rules import (
    PRESETS,
    ActionType,
    AutomationRule,
    BatteryAboveTrigger,
    BatteryBelowTrigger,
    ContainerAboveTrigger,
    ContainerBelowTrigger,
    Readings,
    RuleAction,
    RuleFired,
    RuleSource,
    SolarAboveTrigger,
    SolarBelowTrigger,
    SolarProducingTrigger,
    SolarZeroTrigger,
    SunriseTrigger,
    SunsetTrigger,
    TimeRangeTrigger,
    TimeTrigger,
    Trigger,
    describe_action,
    describe_trigger,
)

__all__ = [
    "PRESETS",
    "ActionType",
    "AutomationEngine",
    "AutomationRule",
    "BatteryAboveTrigger",
    "BatteryBelowTrigger",
    "ContainerAboveTrigger",
    "ContainerBelowTrigger",
    "Readings",
    "RuleAction",
    "RuleFired",
    "RuleSource",
    "SolarAboveTrigger",
    "SolarBelowTrigger",
    "SolarProducingTrigger",
    "SolarZeroTrigger",
    "SunriseTrigger",
    "SunsetTrigger",
    "TimeRangeTrigger",
    "TimeTrigger",
    "Trigger",
    "describe_action",
    "describe_trigger",
    "rule_from_dict",
    "rule_to_dict",
]
