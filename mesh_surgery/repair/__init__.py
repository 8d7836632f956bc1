"""Hole filling, welding and offsetting."""
