"""Deployed-state loading and YAML template tooling for a PostgreSQL cluster operator."""

__version__ = "0.1.0"
__all__ = ["states", "statefulsets", "templates"]