"""Gitivity: GitHub activity scoring service."""

__version__ = "2.0.0"
