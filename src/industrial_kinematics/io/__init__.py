"""I/O utilities for loading robot models from file formats.

This module parses standard robotics description files into KinematicChain
structures.
"""

from .urdf_parser import load_urdf

__all__ = ["load_urdf"]
