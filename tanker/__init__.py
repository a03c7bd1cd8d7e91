"""tanker - terminal workbench for HTTP requests."""

__version__ = "1.0.0"
