"""Detect and record AI crawler and AI-referred traffic."""

__version__ = "1.0.0"
