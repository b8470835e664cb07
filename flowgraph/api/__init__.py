"""API route modules."""
from flowgraph.api import graph

__all__ = ["graph"]
