"""I/O utilities for building kinematic trees from robot description files."""

from .urdf_loader import URDFError, load_urdf, load_urdf_string

__all__ = ["URDFError", "load_urdf", "load_urdf_string"]
