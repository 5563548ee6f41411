"""Dependency-ordered lifecycle operations for multi-container application projects."""

__version__ = "0.1.0"