"""Tests for trigger conditions and rule descriptions."""

import pytest

from offgridsim.config import AutomationConfig
from offgridsim.core.automation import (
    PRESETS,
    ActionType,
    BatteryBelowTrigger,
    ContainerAboveTrigger,
    Readings,
    RuleAction,
    SolarAboveTrigger,
    SolarZeroTrigger,
    SunsetTrigger,
    TimeRangeTrigger,
    TimeTrigger,
    describe_action,
    describe_trigger,
)
from offgridsim.core.automation.rules import minutes_apart

CONFIG = AutomationConfig()


def test_minutes_apart_wraps_midnight():
    # Act & Assert
    assert minutes_apart(1438, 2) == 4
    assert minutes_apart(600, 610) == 10
    assert minutes_apart(0, 720) == 720


def test_time_trigger_window_is_two_minutes_and_wrap_aware():
    # Arrange
    trigger = TimeTrigger(minute=0)

    # Act & Assert
    assert trigger.is_met(Readings(minute=1439), CONFIG)
    assert trigger.is_met(Readings(minute=1.5), CONFIG)
    assert not trigger.is_met(Readings(minute=2), CONFIG)


def test_time_range_includes_start_excludes_end():
    # Arrange
    trigger = TimeRangeTrigger(start=1080, end=1320)

    # Act & Assert
    assert trigger.is_met(Readings(minute=1080), CONFIG)
    assert not trigger.is_met(Readings(minute=1320), CONFIG)


def test_time_range_wraps_past_midnight():
    # Arrange
    trigger = TimeRangeTrigger(start=1380, end=360)

    # Act & Assert
    assert trigger.is_met(Readings(minute=1400), CONFIG)
    assert trigger.is_met(Readings(minute=100), CONFIG)
    assert not trigger.is_met(Readings(minute=720), CONFIG)


def test_sunset_window_is_ten_minutes():
    # Arrange
    trigger = SunsetTrigger()

    # Act & Assert
    assert trigger.is_met(Readings(minute=1075), CONFIG)
    assert not trigger.is_met(Readings(minute=1090), CONFIG)


def test_threshold_triggers():
    # Arrange
    readings = Readings(minute=600, battery_percent=15.0, solar_watts=0.0)

    # Act & Assert
    assert BatteryBelowTrigger(percent=20).is_met(readings, CONFIG)
    assert not SolarAboveTrigger(watts=500).is_met(readings, CONFIG)
    assert SolarZeroTrigger().is_met(readings, CONFIG)


def test_container_trigger_ignores_unknown_containers():
    # Arrange
    trigger = ContainerAboveTrigger(container_id="tank", level=40, label="Water")

    # Act & Assert
    assert trigger.is_met(Readings(minute=0, containers={"tank": 45.0}), CONFIG)
    assert not trigger.is_met(Readings(minute=0), CONFIG)
    assert trigger.describe() == "Water > 40"


def test_trigger_validation():
    # Act & Assert
    with pytest.raises(ValueError, match="within one day"):
        TimeTrigger(minute=1440)


def test_descriptions():
    # Act & Assert
    assert describe_trigger(TimeTrigger(minute=1110)) == "At 6:30 PM"
    assert describe_trigger(TimeRangeTrigger(start=1080, end=1320)) == "6:00 PM - 10:00 PM"
    assert describe_action(RuleAction(type=ActionType.TOGGLE)) == "toggled"


def test_presets_are_complete():
    # Act
    names = [preset.name for preset in PRESETS]

    # Assert
    assert names == [
        "Night Lights",
        "Morning Off",
        "Low Battery Saver",
        "High Solar Boost",
        "Evening Schedule",
        "Night Mode",
        "Battery Full",
    ]
