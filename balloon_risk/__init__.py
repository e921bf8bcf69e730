"""Balloon trail vs. hurricane forecast proximity and intersection analysis."""

__version__ = "0.1.0"
