# src/moveobject/testing/__init__.py
"""Test doubles shipped with the package."""

from moveobject.testing.memory_store import InMemoryObjectStore, InMemoryObjectStream

__all__ = ["InMemoryObjectStore", "InMemoryObjectStream"]
