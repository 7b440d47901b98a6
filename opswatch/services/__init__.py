"""Monitoring services and the registry that wires them."""
from .registry import ServiceRegistry

__all__ = ["ServiceRegistry"]
