from .diagram import (
    create_diagram,
    create_diagram_from_sets,
    get_region_weight,
    list_regions,
    lookup_region,
    region_areas,
    render,
    save_svg,
    set_region_weight,
    set_style,
    simulate,
)
from .errors import DimensionMismatch, UnknownRegion, VennForceError
from .region_index import RegionIndex
from .state import DiagramState, SimulationConfig, SimulationState, StyleConfig

__all__ = [
    "create_diagram",
    "create_diagram_from_sets",
    "simulate",
    "set_region_weight",
    "get_region_weight",
    "set_style",
    "render",
    "lookup_region",
    "list_regions",
    "region_areas",
    "save_svg",
    "DiagramState",
    "SimulationConfig",
    "SimulationState",
    "StyleConfig",
    "RegionIndex",
    "DimensionMismatch",
    "UnknownRegion",
    "VennForceError",
]
