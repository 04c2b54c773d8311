"""Depth-bounded, robots-aware image crawler."""

__version__ = "0.1.0"
