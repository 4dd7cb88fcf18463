from offgridsim.core.topology.resolver import (
    LoadRef,
    PanelString,
    Terminal,
    connected_panels,
    consumers_on,
    controller_storage,
    controller_strings,
    feed_side,
    feeds,
    find_downstream_loads,
    find_protective_ancestor,
    panel_string,
    trace_electrical_path,
)
from offgridsim.core.topology.traversal import Step, walk

__all__ = [
    "LoadRef",
    "PanelString",
    "Step",
    "Terminal",
    "connected_panels",
    "consumers_on",
    "controller_storage",
    "controller_strings",
    "feed_side",
    "feeds",
    "find_downstream_loads",
    "find_protective_ancestor",
    "panel_string",
    "trace_electrical_path",
    "walk",
]
