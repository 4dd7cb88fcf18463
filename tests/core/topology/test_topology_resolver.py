"""Tests for the stateless topology queries."""

from offgridsim.core.graph import CircuitGraph, ComponentKind
from offgridsim.core.graph.model import Endpoint
from offgridsim.core.live import LiveState
from offgridsim.core.topology import (
    connected_panels,
    controller_strings,
    feed_side,
    feeds,
    find_downstream_loads,
    find_protective_ancestor,
    panel_string,
    trace_electrical_path,
)


def make_live():
    live = LiveState()
    live.start()
    return live


def make_ac_graph():
    """Controller -> AC breaker -> outlet -> lamp and fridge."""
    graph = CircuitGraph()
    graph.create(ComponentKind.CONTROLLER, component_id="ctrl")
    graph.create(ComponentKind.AC_BREAKER, {"rating": 20, "voltage": 120}, "brk")
    graph.create(ComponentKind.AC_OUTLET, component_id="outlet")
    graph.create(ComponentKind.AC_LOAD, {"name": "Lamp", "watts": 60}, "lamp")
    graph.create(ComponentKind.AC_LOAD, {"name": "Fridge", "watts": 150}, "fridge")
    graph.add_connection("ctrl", "ac_output", "brk", "line", connection_id="w-line")
    graph.add_connection("brk", "load", "outlet", "input", connection_id="w-load")
    graph.add_connection("outlet", "output", "lamp", "input", connection_id="w-lamp")
    graph.add_connection("outlet", "output", "fridge", "input", connection_id="w-fridge")
    return graph


def test_feeds_voltage_rule():
    # Act & Assert
    assert feeds(None, 240)
    assert feeds(240, 120)
    assert feeds(120, 120)
    assert not feeds(120, 240)


def test_find_downstream_loads_collects_loads_that_are_on():
    # Arrange
    graph = make_ac_graph()
    live = make_live()
    live.set_load("lamp", True)

    # Act
    loads = find_downstream_loads(graph, live, Endpoint("ctrl", "ac_output"), 120)

    # Assert
    assert [load.component_id for load in loads] == ["lamp"]
    assert loads[0].watts == 60.0
    assert loads[0].path == ("w-line", "w-load", "w-lamp")


def test_open_breaker_blocks_downstream_loads():
    # Arrange
    graph = make_ac_graph()
    live = make_live()
    live.set_load("lamp", True)
    graph.components["brk"].is_closed = False

    # Act
    loads = find_downstream_loads(graph, live, Endpoint("ctrl", "ac_output"), 120)

    # Assert
    assert loads == []


def test_distribution_circuit_needs_main_breaker():
    # Arrange
    graph = CircuitGraph()
    graph.create(ComponentKind.CONTROLLER, component_id="ctrl")
    graph.create(ComponentKind.BREAKER_PANEL, component_id="bp")
    graph.create(ComponentKind.AC_LOAD, component_id="lamp")
    graph.add_connection("ctrl", "ac_output", "bp", "main")
    graph.add_connection("bp", "circuit_1", "lamp", "input")
    live = make_live()
    live.set_load("lamp", True)

    # Act
    with_main = find_downstream_loads(graph, live, Endpoint("ctrl", "ac_output"))
    graph.components["bp"].main_breaker_on = False
    without_main = find_downstream_loads(graph, live, Endpoint("ctrl", "ac_output"))

    # Assert
    assert [load.component_id for load in with_main] == ["lamp"]
    assert without_main == []


def test_120v_circuit_never_feeds_240v_load():
    # Arrange
    graph = CircuitGraph()
    graph.create(ComponentKind.AC_BREAKER, {"rating": 30, "voltage": 240}, "brk")
    graph.create(ComponentKind.AC_OUTLET, {"voltage": "120/240"}, "outlet")
    graph.create(ComponentKind.AC_LOAD, {"watts": 3000, "voltage": 240}, "dryer")
    graph.add_connection("brk", "load", "outlet", "input")
    graph.add_connection("outlet", "output", "dryer", "input")
    live = make_live()
    live.set_load("dryer", True)

    # Act
    on_120 = find_downstream_loads(graph, live, Endpoint("brk", "load"), 120)
    on_240 = find_downstream_loads(graph, live, Endpoint("brk", "load"), 240)

    # Assert
    assert on_120 == []
    assert [load.component_id for load in on_240] == ["dryer"]


def test_outlets_chain_input_to_input():
    # Arrange
    graph = make_ac_graph()
    graph.create(ComponentKind.AC_OUTLET, component_id="outlet2")
    graph.create(ComponentKind.AC_LOAD, component_id="fan")
    graph.add_connection("outlet", "input", "outlet2", "input")
    graph.add_connection("outlet2", "output", "fan", "input")
    live = make_live()
    live.set_load("fan", True)

    # Act
    loads = find_downstream_loads(graph, live, Endpoint("ctrl", "ac_output"), 120)

    # Assert
    assert [load.component_id for load in loads] == ["fan"]


def test_find_protective_ancestor_returns_nearest_breaker():
    # Arrange
    graph = make_ac_graph()

    # Act
    ancestor = find_protective_ancestor(graph, graph.connections["w-lamp"])
    direct = find_protective_ancestor(graph, graph.connections["w-line"])

    # Assert
    assert ancestor.id == "brk"
    assert direct.id == "brk"


def test_find_protective_ancestor_without_protection():
    # Arrange
    graph = CircuitGraph()
    graph.create(ComponentKind.CONTROLLER, component_id="ctrl")
    graph.create(ComponentKind.AC_LOAD, component_id="lamp")
    connection = graph.add_connection("ctrl", "ac_output", "lamp", "input")

    # Act & Assert
    assert find_protective_ancestor(graph, connection) is None


def test_feed_side_follows_the_inverter():
    # Arrange
    graph = make_ac_graph()
    reversed_graph = CircuitGraph()
    reversed_graph.create(ComponentKind.CONTROLLER, component_id="ctrl")
    reversed_graph.create(ComponentKind.AC_BREAKER, component_id="brk")
    reversed_graph.create(ComponentKind.AC_LOAD, component_id="lamp")
    reversed_graph.add_connection("ctrl", "ac_output", "brk", "load")
    reversed_graph.add_connection("brk", "line", "lamp", "input")
    live = make_live()

    # Act
    normal = feed_side(graph, live, graph.component("brk"))
    backwards = feed_side(reversed_graph, live, reversed_graph.component("brk"))

    # Assert
    assert normal == "line"
    assert backwards == "load"


def test_unfed_breaker_defaults_to_line_side():
    # Arrange
    graph = CircuitGraph()
    breaker = graph.create(ComponentKind.AC_BREAKER, component_id="brk")

    # Act & Assert
    assert feed_side(graph, make_live(), breaker) == "line"


def test_trace_through_combiner_skips_open_legs():
    # Arrange
    graph = CircuitGraph()
    graph.create(ComponentKind.CONTROLLER, component_id="ctrl")
    graph.create(ComponentKind.SOLAR_COMBINER, {"inputs": 2}, "comb")
    graph.create(ComponentKind.PANEL, component_id="pv1")
    graph.create(ComponentKind.PANEL, component_id="pv2")
    graph.add_connection("pv1", "positive", "comb", "input_1")
    graph.add_connection("pv2", "positive", "comb", "input_2")
    graph.add_connection("comb", "output", "ctrl", "pv_positive")
    live = make_live()

    # Act
    both = trace_electrical_path(graph, live, Endpoint("ctrl", "pv_positive"))
    graph.components["comb"].breaker_states[0] = False
    one = trace_electrical_path(graph, live, Endpoint("ctrl", "pv_positive"))

    # Assert
    assert {t.component_id for t in both} == {"pv1", "pv2"}
    assert [t.component_id for t in one] == ["pv2"]


def test_trace_stops_at_open_dc_breaker():
    # Arrange
    graph = CircuitGraph()
    graph.create(ComponentKind.CONTROLLER, component_id="ctrl")
    graph.create(ComponentKind.DC_BREAKER, {"rating": 15, "voltage": 48}, "dcb")
    graph.create(ComponentKind.PANEL, component_id="pv1")
    graph.add_connection("pv1", "positive", "dcb", "line")
    graph.add_connection("dcb", "load", "ctrl", "pv_positive")
    live = make_live()

    # Act
    closed = trace_electrical_path(graph, live, Endpoint("ctrl", "pv_positive"))
    graph.components["dcb"].is_closed = False
    opened = trace_electrical_path(graph, live, Endpoint("ctrl", "pv_positive"))

    # Assert
    assert [t.component_id for t in closed] == ["pv1"]
    assert len(closed[0].path) == 2
    assert opened == []


def test_trace_terminates_on_cycles():
    # Arrange
    graph = CircuitGraph()
    graph.create(ComponentKind.CONTROLLER, component_id="ctrl")
    graph.create(ComponentKind.PANEL, component_id="pv1")
    graph.create(ComponentKind.PANEL, component_id="pv2")
    graph.add_connection("pv1", "positive", "pv2", "positive")
    graph.add_connection("pv2", "positive", "ctrl", "pv_positive")
    graph.add_connection("pv1", "positive", "ctrl", "pv_positive")
    live = make_live()

    # Act
    terminals = trace_electrical_path(graph, live, Endpoint("ctrl", "pv_positive"))

    # Assert
    assert {t.component_id for t in terminals} == {"pv1", "pv2"}


def test_series_string_sums_vmp_and_watts():
    # Arrange
    graph = CircuitGraph()
    graph.create(ComponentKind.CONTROLLER, component_id="ctrl")
    graph.create(ComponentKind.PANEL, component_id="pv1")
    graph.create(ComponentKind.PANEL, component_id="pv2")
    graph.add_connection("pv1", "positive", "ctrl", "pv_positive")
    graph.add_connection("pv1", "negative", "pv2", "positive", connection_id="series")
    graph.add_connection("pv2", "negative", "ctrl", "pv_negative")
    live = make_live()

    # Act
    string = panel_string(graph, live, "pv1")
    strings = controller_strings(graph, live, graph.components["ctrl"])

    # Assert
    assert string.panels == frozenset({"pv1", "pv2"})
    assert string.connections == ("series",)
    assert string.rated_watts == 800.0
    assert string.vmp == 80.0
    assert strings == [string]
    assert connected_panels(graph, live) == {"pv1", "pv2"}


def test_unwired_panel_is_not_connected():
    # Arrange
    graph = CircuitGraph()
    graph.create(ComponentKind.CONTROLLER, component_id="ctrl")
    graph.create(ComponentKind.PANEL, component_id="pv1")
    live = make_live()

    # Act & Assert
    assert connected_panels(graph, live) == set()
