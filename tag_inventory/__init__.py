"""Enumerate tagged AWS resources across regions and normalize their ARNs."""

__version__ = "0.1.0"
