"""
Adapters layer - Persistence for salon data.
"""

from .json_store import JsonSalonStore

__all__ = ["JsonSalonStore"]
