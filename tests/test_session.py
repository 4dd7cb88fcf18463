"""Tests for the session command surface."""

from unittest.mock import Mock

import pytest

from offgridsim import SimulationSession
from offgridsim.core.automation import BatteryBelowTrigger, RuleAction
from offgridsim.core.automation.rules import ActionType
from offgridsim.core.graph import ComponentKind


def make_session():
    """Battery-backed inverter -> 20A breaker -> 2500W heater, plus a lamp."""
    session = SimulationSession()
    session.add_component(ComponentKind.CONTROLLER, component_id="ctrl")
    session.add_component(ComponentKind.BATTERY, {"voltage": 50, "amp_hours": 100}, "bat")
    session.add_component(ComponentKind.AC_BREAKER, {"rating": 20, "voltage": 120}, "brk")
    session.add_component(ComponentKind.AC_LOAD, {"name": "Heater", "watts": 2500}, "heater")
    session.add_component(ComponentKind.AC_LOAD, {"name": "Lamp", "watts": 60}, "lamp")
    session.connect("bat", "positive", "ctrl", "battery_positive")
    session.connect("ctrl", "ac_output", "brk", "line")
    session.connect("brk", "load", "heater", "input")
    session.connect("ctrl", "ac_output", "lamp", "input")
    return session


def test_loads_cannot_be_switched_outside_live_mode():
    # Arrange
    session = make_session()

    # Act & Assert
    with pytest.raises(RuntimeError):
        session.set_load("lamp", True)


def test_only_consumers_can_be_switched():
    # Arrange
    session = make_session()
    session.start_live()

    # Act & Assert
    with pytest.raises(ValueError, match="not a load"):
        session.toggle_load("bat")


def test_overload_trips_as_soon_as_load_is_switched_on():
    # Arrange
    session = make_session()
    listener = Mock()
    session.on_trip(listener)
    session.start_live()

    # Act
    session.set_load("heater", True)

    # Assert
    assert session.breaker_states["brk"].was_tripped
    assert not session.is_breaker_closed("brk")
    assert session.load_states["heater"] is False
    listener.assert_called_once()


def test_reset_closes_tripped_breaker():
    # Arrange
    session = make_session()
    session.start_live()
    session.set_load("heater", True)

    # Act
    session.reset_breaker("brk")

    # Assert
    assert session.is_breaker_closed("brk")
    assert not session.breaker_states["brk"].was_tripped


def test_switching_a_load_updates_power_flow():
    # Arrange
    session = make_session()
    session.start_live()

    # Act
    session.set_load("lamp", True)

    # Assert
    assert any(flow.has_active_flow for flow in session.power_flow.values())


def test_graph_edits_refresh_power_flow():
    # Arrange
    session = make_session()
    session.start_live()
    session.set_load("lamp", True)
    wired = set(session.power_flow)

    # Act
    session.remove_component("lamp")

    # Assert
    assert set(session.power_flow) < wired
    assert "lamp" not in session.load_states


def test_stopping_live_mode_clears_live_state():
    # Arrange
    session = make_session()
    session.start_live()
    session.set_load("lamp", True)

    # Act
    session.stop_live()

    # Assert
    assert session.load_states == {}
    assert session.power_flow == {}
    assert session.refresh() == []


def test_display_values_before_first_tick():
    # Arrange
    session = make_session()

    # Act
    display = session.display()

    # Assert
    assert display.time == "12:00 PM"
    assert display.irradiance_percent == pytest.approx(95.0)
    assert display.solar_watts == 0.0
    assert display.battery_percent == pytest.approx(50.0)
    assert not display.playing
    assert not display.live


def test_tick_drives_clock_only_while_playing():
    # Arrange
    session = make_session()
    session.start_live()

    # Act
    paused = session.tick(1)
    session.play()
    result = session.tick(1)

    # Assert
    assert paused is None
    assert result.minute == 780
    assert session.last_tick is result
    assert session.display().playing


def test_reset_clock_returns_to_start_minute():
    # Arrange
    session = make_session()
    session.play()
    session.tick(2)

    # Act
    session.reset_clock()

    # Assert
    assert session.clock.minute == 720
    assert not session.clock.playing
    assert session.last_tick is None


def test_rule_commands_delegate_to_engine():
    # Arrange
    session = make_session()
    fired = Mock()
    session.on_rule_fired(fired)

    # Act
    rule = session.create_rule(
        "Saver",
        BatteryBelowTrigger(percent=20),
        RuleAction(type=ActionType.TURN_OFF, target_ids=("lamp",)),
    )
    preset = session.create_rule_from_preset("Night Lights")
    session.set_rule_enabled(rule.id, False)
    session.delete_rule(preset.id)

    # Assert
    assert [r.id for r in session.rules] == [rule.id]
    assert session.toggle_rule(rule.id) is True
    fired.assert_not_called()


def test_battery_soc_tracks_new_batteries():
    # Arrange
    session = make_session()

    # Act
    session.add_component(ComponentKind.SMART_BATTERY, {"kwh": 2}, "smart")

    # Assert
    assert session.battery_soc == {"bat": 0.5, "smart": 0.5}


def test_night_lights_fire_on_consecutive_days():
    # Arrange
    session = SimulationSession.from_config({"clock": {"speed": 1}})
    session.add_component(ComponentKind.AC_LOAD, {"name": "Porch Light", "watts": 10}, "porch")
    session.create_rule_from_preset("Night Lights")
    session.start_live()
    session.play()

    # Act
    fired = []
    for _ in range(2 * 1440):
        fired.extend(session.tick(1).rules_fired)

    # Assert
    assert [(event.day, event.minute) for event in fired] == [(0, 1071.0), (1, 1071.0)]
