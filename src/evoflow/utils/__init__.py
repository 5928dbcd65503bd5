"""Utility helpers for logging, configuration, and common routines."""

from .config import CompilerConfig
from .logger import get_logger, set_level

__all__ = ["get_logger", "set_level", "CompilerConfig"]
