"""Validation exports."""

from .validator import ConfigValidator

__all__ = ["ConfigValidator"]
