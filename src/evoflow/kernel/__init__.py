"""Numeric backends the compiled program runs on."""

from .backends import (
    Backend,
    BackendCapabilities,
    TorchBackend,
    get_activation,
    is_known_activation,
    register_activation,
)

__all__ = [
    "Backend",
    "BackendCapabilities",
    "TorchBackend",
    "get_activation",
    "is_known_activation",
    "register_activation",
]
