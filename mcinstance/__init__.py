"""Provisions Minecraft instances and launches them."""

__version__ = '1.0.0'
