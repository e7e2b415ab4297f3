"""Building blocks for feature-based visual SLAM: dataset loaders, frames,
two-view geometry, map initialization, pose conversions and status text."""

__version__ = "0.1.0"

__all__ = [
    "converter",
    "datasets",
    "frame",
    "geometry",
    "initializer",
    "multiview",
    "status",
]