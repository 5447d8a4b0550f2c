"""
Core utilities shared by the database and repository layers.

This package provides:
- Logging configuration with operation/entity context enrichment
"""
from .logging import configure_logging, operation_context

__all__ = ["configure_logging", "operation_context"]
