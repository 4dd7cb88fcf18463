"""Tests for breaker state handling and overload tripping."""

from unittest.mock import Mock

import pytest

from offgridsim.core.flow import FlowInputs, FlowResolver
from offgridsim.core.graph import CircuitGraph, ComponentKind
from offgridsim.core.live import LiveState
from offgridsim.core.protection import ProtectionManager


def make_breaker_graph(heater_watts=2500):
    """Battery-backed inverter -> 20A AC breaker -> heater."""
    graph = CircuitGraph()
    graph.create(ComponentKind.CONTROLLER, component_id="ctrl")
    graph.create(ComponentKind.BATTERY, component_id="bat")
    graph.create(ComponentKind.AC_BREAKER, {"rating": 20, "voltage": 120}, "brk")
    graph.create(ComponentKind.AC_LOAD, {"name": "Heater", "watts": heater_watts}, "heater")
    graph.add_connection("bat", "positive", "ctrl", "battery_positive")
    graph.add_connection("ctrl", "ac_output", "brk", "line", connection_id="in")
    graph.add_connection("brk", "load", "heater", "input", connection_id="out")
    return graph


def make_panel_graph(main_rating=None):
    """Battery-backed inverter -> breaker panel with two 20A circuits."""
    graph = CircuitGraph()
    graph.create(ComponentKind.CONTROLLER, component_id="ctrl")
    graph.create(ComponentKind.BATTERY, component_id="bat")
    circuits = [{"rating": 20, "voltage": 120}, {"rating": 20, "voltage": 120}]
    graph.create(ComponentKind.BREAKER_PANEL, {"circuits": circuits, "main_rating": main_rating}, "bp")
    graph.create(ComponentKind.AC_LOAD, {"watts": 1000}, "kettle")
    graph.create(ComponentKind.AC_LOAD, {"watts": 1000}, "toaster")
    graph.add_connection("bat", "positive", "ctrl", "battery_positive")
    graph.add_connection("ctrl", "ac_output", "bp", "main")
    graph.add_connection("bp", "circuit_1", "kettle", "input")
    graph.add_connection("bp", "circuit_2", "toaster", "input")
    return graph


def start(graph, manager, *loads):
    live = LiveState()
    live.start()
    manager.initialize(graph, live)
    for load_id in loads:
        live.set_load(load_id, True)
    return live


def flow_for(graph, live):
    return FlowResolver().compute_flow(graph, live, FlowInputs())


def test_initialize_seeds_breaker_states_from_switches():
    # Arrange
    graph = make_panel_graph()
    graph.components["bp"].breaker_states[1] = False
    manager = ProtectionManager()

    # Act
    live = start(graph, manager)

    # Assert
    assert live.breaker_states["bp#main"].is_closed
    assert live.breaker_states["bp#circuit_1"].is_closed
    assert not live.breaker_states["bp#circuit_2"].is_closed


def test_overloaded_ac_breaker_trips_and_sheds_loads():
    # Arrange
    graph = make_breaker_graph()
    manager = ProtectionManager()
    live = start(graph, manager, "heater")

    # Act
    flow, events = FlowResolver().resolve(graph, live, FlowInputs(), manager)

    # Assert
    assert len(events) == 1
    event = events[0]
    assert event.breaker_id == "brk"
    assert event.amps == pytest.approx(2500 / 120)
    assert event.rating == 20.0
    assert event.loads_shed == ("heater",)
    assert not live.is_on("heater")
    assert live.breaker_states["brk"].was_tripped
    assert not live.breaker_states["brk"].is_closed
    assert "out" not in flow
    assert flow["in"].is_live


def make_reversed_breaker_graph():
    """Battery-backed inverter -> 20A AC breaker installed load-side first -> heater."""
    graph = CircuitGraph()
    graph.create(ComponentKind.CONTROLLER, component_id="ctrl")
    graph.create(ComponentKind.BATTERY, component_id="bat")
    graph.create(ComponentKind.AC_BREAKER, {"rating": 20, "voltage": 120}, "brk")
    graph.create(ComponentKind.AC_LOAD, {"name": "Heater", "watts": 2500}, "heater")
    graph.add_connection("bat", "positive", "ctrl", "battery_positive")
    graph.add_connection("ctrl", "ac_output", "brk", "load", connection_id="in")
    graph.add_connection("brk", "line", "heater", "input", connection_id="out")
    return graph


def test_breaker_installed_backwards_still_trips():
    # Arrange
    graph = make_reversed_breaker_graph()
    manager = ProtectionManager()
    live = start(graph, manager, "heater")

    # Act
    flow, events = FlowResolver().resolve(graph, live, FlowInputs(), manager)

    # Assert
    assert [event.breaker_id for event in events] == ["brk"]
    assert events[0].amps == pytest.approx(2500 / 120)
    assert events[0].loads_shed == ("heater",)
    assert not live.is_on("heater")
    assert "out" not in flow


def test_draw_equal_to_rating_does_not_trip():
    # Arrange
    graph = make_breaker_graph(heater_watts=2400)
    manager = ProtectionManager()
    live = start(graph, manager, "heater")

    # Act
    events = manager.check_tripping(graph, live, flow_for(graph, live))

    # Assert
    assert events == []
    assert live.is_on("heater")


def test_overload_check_is_idempotent_on_same_state():
    # Arrange
    graph = make_breaker_graph()
    manager = ProtectionManager()
    live = start(graph, manager, "heater")
    flow = flow_for(graph, live)

    # Act
    first = manager.check_tripping(graph, live, flow)
    second = manager.check_tripping(graph, live, flow)

    # Assert
    assert len(first) == 1
    assert second == []


def test_overload_check_is_deterministic():
    # Arrange
    results = []
    for _ in range(2):
        graph = make_panel_graph(main_rating=15)
        manager = ProtectionManager()
        live = start(graph, manager, "kettle", "toaster")

        # Act
        results.append(manager.check_tripping(graph, live, flow_for(graph, live)))

    # Assert
    assert results[0] == results[1]


def test_dead_line_side_never_trips():
    # Arrange
    graph = make_breaker_graph()
    graph.remove_component("bat")
    manager = ProtectionManager()
    live = start(graph, manager, "heater")

    # Act
    events = manager.check_tripping(graph, live, flow_for(graph, live))

    # Assert
    assert events == []


def test_dc_breaker_trips_on_live_pv_current():
    # Arrange
    graph = CircuitGraph()
    graph.create(ComponentKind.PANEL, {"wattage": 400, "vmp": 40, "voc": 48}, "pv1")
    graph.create(ComponentKind.DC_BREAKER, {"rating": 5, "voltage": 48}, "dcb")
    graph.create(ComponentKind.CONTROLLER, component_id="ctrl")
    graph.add_connection("pv1", "positive", "dcb", "line")
    graph.add_connection("dcb", "load", "ctrl", "pv_positive")
    manager = ProtectionManager()
    live = start(graph, manager)
    flow = FlowResolver().compute_flow(graph, live, FlowInputs(solar_watts=400))

    # Act
    events = manager.check_tripping(graph, live, flow)

    # Assert
    assert [e.breaker_id for e in events] == ["dcb"]
    assert events[0].amps == pytest.approx(10.0)


def test_overloaded_panel_circuit_trips_only_that_circuit():
    # Arrange
    graph = make_panel_graph()
    graph.remove_component("kettle")
    graph.create(ComponentKind.AC_LOAD, {"watts": 2500}, "heater")
    graph.add_connection("bp", "circuit_1", "heater", "input")
    manager = ProtectionManager()
    live = start(graph, manager, "heater", "toaster")

    # Act
    events = manager.check_tripping(graph, live, flow_for(graph, live))

    # Assert
    assert [e.breaker_id for e in events] == ["bp#circuit_1"]
    assert graph.components["bp"].breaker_states == [False, True]
    assert live.is_on("toaster")
    assert not live.is_on("heater")


def test_main_breaker_trips_on_total_draw():
    # Arrange
    graph = make_panel_graph(main_rating=15)
    manager = ProtectionManager()
    live = start(graph, manager, "kettle", "toaster")

    # Act
    events = manager.check_tripping(graph, live, flow_for(graph, live))

    # Assert
    assert [e.breaker_id for e in events] == ["bp#main"]
    assert events[0].amps == pytest.approx(2000 / 120)
    assert not manager.is_closed(graph, live, "bp#main")
    assert not manager.is_closed(graph, live, "bp#circuit_1")


def test_main_breakers_can_be_ignored():
    # Arrange
    graph = make_panel_graph(main_rating=15)
    manager = ProtectionManager(check_main_breakers=False)
    live = start(graph, manager, "kettle", "toaster")

    # Act
    events = manager.check_tripping(graph, live, flow_for(graph, live))

    # Assert
    assert events == []


def test_no_trips_when_live_mode_is_off():
    # Arrange
    graph = make_breaker_graph()
    manager = ProtectionManager()

    # Act
    events = manager.check_tripping(graph, LiveState(), {})

    # Assert
    assert events == []


def test_subscribers_receive_trip_events_even_if_one_fails():
    # Arrange
    graph = make_breaker_graph()
    manager = ProtectionManager()
    failing = Mock(side_effect=RuntimeError("display gone"))
    listener = Mock()
    manager.subscribe(failing)
    manager.subscribe(listener)
    live = start(graph, manager, "heater")

    # Act
    events = manager.check_tripping(graph, live, flow_for(graph, live))

    # Assert
    failing.assert_called_once_with(events[0])
    listener.assert_called_once_with(events[0])


def test_unsubscribed_listener_is_not_called():
    # Arrange
    graph = make_breaker_graph()
    manager = ProtectionManager()
    listener = Mock()
    manager.subscribe(listener)
    manager.unsubscribe(listener)
    live = start(graph, manager, "heater")

    # Act
    manager.check_tripping(graph, live, flow_for(graph, live))

    # Assert
    listener.assert_not_called()


def test_reset_clears_trip():
    # Arrange
    graph = make_breaker_graph()
    manager = ProtectionManager()
    live = start(graph, manager, "heater")
    manager.check_tripping(graph, live, flow_for(graph, live))

    # Act
    manager.reset(graph, live, "brk")

    # Assert
    assert not live.breaker_states["brk"].was_tripped
    assert manager.is_closed(graph, live, "brk")


def test_toggling_a_tripped_breaker_resets_it():
    # Arrange
    graph = make_breaker_graph()
    manager = ProtectionManager()
    live = start(graph, manager, "heater")
    manager.check_tripping(graph, live, flow_for(graph, live))

    # Act
    state = manager.toggle_breaker(graph, live, "brk")

    # Assert
    assert state is True
    assert not live.tripped("brk")


def test_toggle_breaker_flips_manual_switch():
    # Arrange
    graph = make_breaker_graph()
    manager = ProtectionManager()
    live = start(graph, manager)
    version = live.switch_version

    # Act
    state = manager.toggle_breaker(graph, live, "brk")

    # Assert
    assert state is False
    assert not graph.components["brk"].is_closed
    assert not live.breaker_states["brk"].is_closed
    assert live.switch_version > version


def test_toggle_breaker_rejects_non_breakers():
    # Arrange
    graph = make_breaker_graph()
    manager = ProtectionManager()
    live = start(graph, manager)

    # Act & Assert
    with pytest.raises(ValueError, match="not a breaker"):
        manager.toggle_breaker(graph, live, "heater")


def test_toggle_circuit_rejects_bad_index():
    # Arrange
    graph = make_panel_graph()
    manager = ProtectionManager()
    live = start(graph, manager)

    # Act & Assert
    with pytest.raises(ValueError, match="no circuit 3"):
        manager.toggle_circuit(graph, live, "bp", 2)


def test_toggle_circuit_and_main_breaker():
    # Arrange
    graph = make_panel_graph()
    manager = ProtectionManager()
    live = start(graph, manager)

    # Act
    circuit_state = manager.toggle_circuit(graph, live, "bp", 0)
    main_state = manager.toggle_main_breaker(graph, live, "bp")

    # Assert
    assert circuit_state is False
    assert main_state is False
    assert not manager.is_closed(graph, live, "bp#circuit_1")
    assert not manager.is_closed(graph, live, "bp#circuit_2")


def test_reset_unknown_breaker_raises_key_error():
    # Arrange
    graph = make_panel_graph()
    manager = ProtectionManager()
    live = start(graph, manager)

    # Act & Assert
    with pytest.raises(KeyError):
        manager.reset(graph, live, "bp#circuit_9")
    with pytest.raises(KeyError):
        manager.reset(graph, live, "kettle")


def test_reset_all_restores_every_breaker():
    # Arrange
    graph = make_panel_graph(main_rating=15)
    manager = ProtectionManager()
    live = start(graph, manager, "kettle", "toaster")
    manager.toggle_circuit(graph, live, "bp", 1)
    manager.check_tripping(graph, live, flow_for(graph, live))

    # Act
    manager.reset_all(graph, live)

    # Assert
    assert graph.components["bp"].breaker_states == [True, True]
    assert graph.components["bp"].main_breaker_on
    assert all(s.is_closed and not s.was_tripped for s in live.breaker_states.values())
