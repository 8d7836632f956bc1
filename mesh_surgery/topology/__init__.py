"""Mesh connectivity: surface graph, boundary loops."""
