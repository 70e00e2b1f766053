"""Turbo stack dev pages: health check, dashboard, diagnostics and 404 logger."""

__version__ = "0.1.0"
