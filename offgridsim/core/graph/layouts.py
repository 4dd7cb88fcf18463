"""Port layouts per component kind.

Each builder returns ``(key, polarity, index)`` triples. ``index`` ties a port
to a local breaker slot (combiner input legs, distribution circuits) or an
MPPT input, and is ``None`` otherwise.
"""

from offgridsim.core.graph.kinds import ComponentKind, Polarity
from offgridsim.core.graph.registry import register_layout


@register_layout(ComponentKind.PANEL, ComponentKind.BATTERY)
def two_terminal_layout(specs):
    return [
        ("positive", Polarity.POSITIVE, None),
        ("negative", Polarity.NEGATIVE, None),
    ]


@register_layout(ComponentKind.SMART_BATTERY)
def smart_battery_layout(specs):
    return [
        ("smart_1", Polarity.SMART_BATTERY, None),
        ("smart_2", Polarity.SMART_BATTERY, None),
    ]


@register_layout(ComponentKind.CONTROLLER)
def controller_layout(specs):
    ports = []
    if specs.mppt_count == 1:
        ports.append(("pv_positive", Polarity.PV_POSITIVE, 0))
        ports.append(("pv_negative", Polarity.PV_NEGATIVE, 0))
    else:
        for i in range(specs.mppt_count):
            ports.append((f"pv_positive_{i + 1}", Polarity.PV_POSITIVE, i))
            ports.append((f"pv_negative_{i + 1}", Polarity.PV_NEGATIVE, i))
    if specs.has_battery_terminals:
        ports.append(("battery_positive", Polarity.POSITIVE, None))
        ports.append(("battery_negative", Polarity.NEGATIVE, None))
    if specs.has_ac_output:
        ports.append(("ac_output", Polarity.AC, None))
    for i in range(specs.smart_battery_ports):
        ports.append((f"smart_battery_{i + 1}", Polarity.SMART_BATTERY, i))
    if specs.parallel_capable:
        ports.append(("parallel", Polarity.PARALLEL, None))
    return ports


@register_layout(ComponentKind.AC_BREAKER)
def ac_breaker_layout(specs):
    return [("line", Polarity.AC, None), ("load", Polarity.AC, None)]


@register_layout(ComponentKind.DC_BREAKER)
def dc_breaker_layout(specs):
    return [("line", Polarity.POSITIVE, None), ("load", Polarity.POSITIVE, None)]


@register_layout(ComponentKind.AC_OUTLET)
def outlet_layout(specs):
    return [("input", Polarity.AC, None), ("output", Polarity.LOAD, None)]


@register_layout(ComponentKind.AC_LOAD)
def load_layout(specs):
    return [("input", Polarity.LOAD, None)]


@register_layout(ComponentKind.COMBINER)
def combiner_layout(specs):
    return _combiner_ports(specs, Polarity.POSITIVE, Polarity.NEGATIVE)


@register_layout(ComponentKind.SOLAR_COMBINER)
def solar_combiner_layout(specs):
    return _combiner_ports(specs, Polarity.PV_POSITIVE, Polarity.PV_NEGATIVE)


def _combiner_ports(specs, out_positive, out_negative):
    ports = []
    for i in range(specs.inputs):
        ports.append((f"input_{i + 1}", Polarity.POSITIVE, i))
        ports.append((f"input_negative_{i + 1}", Polarity.NEGATIVE, i))
    ports.append(("output", out_positive, None))
    ports.append(("output_negative", out_negative, None))
    return ports


@register_layout(ComponentKind.BREAKER_PANEL, ComponentKind.SPIDER_BOX)
def distribution_layout(specs):
    ports = [("main", Polarity.AC, None)]
    for i in range(len(specs.circuits)):
        ports.append((f"circuit_{i + 1}", Polarity.AC, i))
    return ports


@register_layout(ComponentKind.DOUBLE_VOLTAGE_HUB)
def hub_layout(specs):
    return [
        ("input_a", Polarity.AC, None),
        ("input_b", Polarity.AC, None),
        ("output", Polarity.AC, None),
    ]


@register_layout(ComponentKind.PRODUCER)
def producer_layout(specs):
    ports = [("input", Polarity.LOAD, None), ("pipe_out", Polarity.PIPE, None)]
    if specs.recipe.input:
        ports.append(("pipe_in", Polarity.PIPE, None))
    return ports


@register_layout(ComponentKind.CONTAINER)
def container_layout(specs):
    return [("pipe_in", Polarity.PIPE, None), ("pipe_out", Polarity.PIPE, None)]
