"""Readers and writers for topology documents."""
