"""Sandboxed browser file manager: path resolution, listings and zip transfers."""

__version__ = "1.0.0"
