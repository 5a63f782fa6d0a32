"""Immutable topology, plan and error models."""
