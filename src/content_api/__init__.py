"""Read-only public API gateway for a content publishing application."""

__version__ = "1.0.0"
