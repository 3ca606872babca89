"""Affect router — adaptive evidence classification of self-reported state."""

__version__ = "0.1.0"
