"""Cartogram building blocks: geometry, densification, density fill and ellipse kernels."""

__version__ = "0.1.0"

__all__ = [
    "clipping",
    "constants",
    "densify",
    "density_clip",
    "density_rays",
    "ellipse",
    "geometry",
]