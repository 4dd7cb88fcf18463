from enum import Enum
from typing import Any, Mapping, Optional, Union

from dacite import Config, from_dict

from offgridsim.core.graph.kinds import COMBINER_KINDS, DISTRIBUTION_KINDS, ComponentKind
from offgridsim.core.graph.model import Component, Port
from offgridsim.core.graph.registry import registry
import offgridsim.core.graph.layouts  # noqa: F401 # register all layouts
import offgridsim.core.graph.specs  # noqa: F401 # register all specs

DACITE_CONFIG = Config(cast=[Enum, tuple, float], strict=True)


def build_specs(kind: ComponentKind, data: Optional[Mapping[str, Any]] = None) -> Any:
    """Builds the specs dataclass for ``kind`` from a plain mapping."""
    if kind not in registry.specs:
        raise ValueError(f"No specs registered for component kind '{kind}'.")
    return from_dict(registry.specs[kind], dict(data or {}), config=DACITE_CONFIG)


def build_component(
    kind: Union[ComponentKind, str],
    component_id: str,
    specs: Any = None,
) -> Component:
    """
    Builds a component with its ports laid out for its kind.

    ``specs`` may be a specs dataclass, a mapping (parsed with dacite) or None
    for the kind's defaults.
    """
    kind = ComponentKind(kind)
    if kind not in registry.layouts:
        raise ValueError(f"No port layout registered for component kind '{kind}'.")
    if specs is None or isinstance(specs, Mapping):
        specs = build_specs(kind, specs)
    elif not isinstance(specs, registry.specs[kind]):
        raise ValueError(
            f"Specs of type '{type(specs).__name__}' do not fit component kind '{kind.value}'."
        )

    ports = {
        key: Port(key=key, id=f"{component_id}-{key}", component_id=component_id, polarity=polarity, index=index)
        for key, polarity, index in registry.layouts[kind](specs)
    }
    component = Component(id=component_id, kind=kind, specs=specs, ports=ports)
    if kind in DISTRIBUTION_KINDS:
        component.breaker_states = [True] * len(specs.circuits)
    elif kind in COMBINER_KINDS:
        component.breaker_states = [True] * specs.inputs
    return component
