"""Mesh buffers and integrity checks."""
