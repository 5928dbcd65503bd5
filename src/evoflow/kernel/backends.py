from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

import torch
import torch.nn.functional as F
from torch import nn

ActivationFn = Callable[[torch.Tensor], torch.Tensor]

_ACTIVATIONS: dict[str, ActivationFn] = {}

LEAKY_RELU_SLOPE = 0.01


def register_activation(*names: str) -> Callable[[ActivationFn], ActivationFn]:
    def wrapper(fn: ActivationFn) -> ActivationFn:
        for name in names:
            _ACTIVATIONS[name] = fn
        return fn

    return wrapper


@register_activation("identity", "linear", "none", "")
def _identity(x: torch.Tensor) -> torch.Tensor:
    return x


@register_activation("relu")
def _relu(x: torch.Tensor) -> torch.Tensor:
    return F.relu(x)


@register_activation("leaky_relu")
def _leaky_relu(x: torch.Tensor) -> torch.Tensor:
    return F.leaky_relu(x, negative_slope=LEAKY_RELU_SLOPE)


@register_activation("sigmoid")
def _sigmoid(x: torch.Tensor) -> torch.Tensor:
    return torch.sigmoid(x)


@register_activation("softmax")
def _softmax(x: torch.Tensor) -> torch.Tensor:
    # feature axis of a (batch, features) value
    return F.softmax(x, dim=1)


def is_known_activation(name: str) -> bool:
    return name in _ACTIVATIONS


def get_activation(name: str) -> ActivationFn:
    """Look up an activation; unknown names pass values through unchanged."""
    return _ACTIVATIONS.get(name, _identity)


@dataclass
class BackendCapabilities:
    name: str
    device: str
    metadata: dict[str, str] | None = None


class Backend(Protocol):
    """What the compiler and executor need from a numeric runtime."""

    dtype: torch.dtype

    def capabilities(self) -> BackendCapabilities: ...

    def linear(self, in_features: int, out_features: int, bias: bool) -> nn.Module: ...

    def conv2d(
        self,
        in_channels: int,
        out_channels: int,
        kernel_size: tuple[int, int],
        stride: int,
        padding: int,
        dilation: int,
        bias: bool,
    ) -> nn.Module: ...

    def max_pool2d(self, kernel_size: tuple[int, int], stride: int, padding: int) -> nn.Module: ...

    def avg_pool2d(self, kernel_size: tuple[int, int], stride: int, padding: int) -> nn.Module: ...

    def activation(self, name: str, x: torch.Tensor) -> torch.Tensor: ...

    def cat(self, tensors: Sequence[torch.Tensor], dim: int) -> torch.Tensor: ...


class TorchBackend:
    """PyTorch implementation of the backend contract."""

    def __init__(self, device: str | torch.device = "cpu", dtype: torch.dtype = torch.float32) -> None:
        self.device = torch.device(device)
        self.dtype = dtype

    def capabilities(self) -> BackendCapabilities:
        return BackendCapabilities(
            name="torch",
            device=str(self.device),
            metadata={"torch": torch.__version__, "dtype": str(self.dtype)},
        )

    def linear(self, in_features: int, out_features: int, bias: bool) -> nn.Linear:
        return nn.Linear(in_features, out_features, bias=bias, device=self.device, dtype=self.dtype)

    def conv2d(
        self,
        in_channels: int,
        out_channels: int,
        kernel_size: tuple[int, int],
        stride: int,
        padding: int,
        dilation: int,
        bias: bool,
    ) -> nn.Conv2d:
        return nn.Conv2d(
            in_channels,
            out_channels,
            kernel_size=kernel_size,
            stride=stride,
            padding=padding,
            dilation=dilation,
            bias=bias,
            device=self.device,
            dtype=self.dtype,
        )

    def max_pool2d(self, kernel_size: tuple[int, int], stride: int, padding: int) -> nn.MaxPool2d:
        return nn.MaxPool2d(kernel_size=kernel_size, stride=stride, padding=padding)

    def avg_pool2d(self, kernel_size: tuple[int, int], stride: int, padding: int) -> nn.AvgPool2d:
        return nn.AvgPool2d(kernel_size=kernel_size, stride=stride, padding=padding)

    def activation(self, name: str, x: torch.Tensor) -> torch.Tensor:
        return get_activation(name)(x)

    def cat(self, tensors: Sequence[torch.Tensor], dim: int) -> torch.Tensor:
        return torch.cat(list(tensors), dim=dim)
