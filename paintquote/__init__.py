"""Pricing engine for painting quotes."""

__version__ = "1.4.0"
