"""Crowd-sourced documentation translation backed by GitHub forks and branches."""

__version__ = "0.1.0"
