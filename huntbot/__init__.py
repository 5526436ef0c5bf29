"""Autonomous hunting agent: world-state store, targeting, combat and navigation."""

__version__ = "1.0.0"
