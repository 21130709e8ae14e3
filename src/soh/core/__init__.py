"""Core base classes."""
