"""Ports and in-memory adapters for the OS-level collaborators."""
