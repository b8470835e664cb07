"""Flowgraph - compiles workflow step graphs into positioned diagrams."""

__version__ = "0.1.0"
