"""Stepwise — declarative HTTP workflow templates."""

__version__ = "0.1.0"
