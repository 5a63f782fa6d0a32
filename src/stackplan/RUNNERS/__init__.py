"""Dependency resolution and plan rendering."""
