"""cloudsvc: minimal HTTP service template with graceful shutdown."""

__version__ = "0.1.0"
