"""Detect pull requests made redundant by later work via bounded reference graphs."""

__version__ = "0.1.0"
