"""Launcher, supervisor and execution model for the OpenCode gateway."""

__version__ = "0.1.0"