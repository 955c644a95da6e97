"""Priority-flood depression filling and D8 flow directions for elevation grids."""

from .config import DEFAULT_NODATA, ElevationGrid, FillConfig, InvalidGridError
from .flood import FillResult, PriorityFloodEngine, fill_depressions
from .topology import D8_CODES, FLOW_DRAIN, FLOW_UNRESOLVED, GridTopology

__all__ = [
    "DEFAULT_NODATA",
    "D8_CODES",
    "FLOW_DRAIN",
    "FLOW_UNRESOLVED",
    "ElevationGrid",
    "FillConfig",
    "FillResult",
    "GridTopology",
    "InvalidGridError",
    "PriorityFloodEngine",
    "fill_depressions",
]
