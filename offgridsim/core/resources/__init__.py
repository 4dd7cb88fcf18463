from offgridsim.core.resources.flow import Production, ResourceSystem

__all__ = [
    "Production",
    "ResourceSystem",
]
