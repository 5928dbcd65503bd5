from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Union

import numpy as np
import torch

from evoflow.ir.graph import Shape


@dataclass(frozen=True)
class Rank2:
    """A flat batch: (batch, features)."""

    data: torch.Tensor

    def __post_init__(self) -> None:
        if self.data.ndim != 2:
            raise ValueError(f"Rank2 expects a 2-d tensor, got shape {tuple(self.data.shape)}")

    @property
    def rank(self) -> int:
        return 2

    @property
    def batch(self) -> int:
        return int(self.data.shape[0])

    @property
    def features(self) -> int:
        return int(self.data.shape[1])

    @property
    def sample_shape(self) -> Shape:
        return (self.features,)


@dataclass(frozen=True)
class Rank4:
    """A batched feature map: (batch, channels, height, width)."""

    data: torch.Tensor

    def __post_init__(self) -> None:
        if self.data.ndim != 4:
            raise ValueError(f"Rank4 expects a 4-d tensor, got shape {tuple(self.data.shape)}")

    @property
    def rank(self) -> int:
        return 4

    @property
    def batch(self) -> int:
        return int(self.data.shape[0])

    @property
    def channels(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[2])

    @property
    def width(self) -> int:
        return int(self.data.shape[3])

    @property
    def sample_shape(self) -> Shape:
        return (self.channels, self.height, self.width)


TensorValue = Union[Rank2, Rank4]


def tensor_value(tensor: torch.Tensor) -> TensorValue:
    if tensor.ndim == 2:
        return Rank2(tensor)
    if tensor.ndim == 4:
        return Rank4(tensor)
    raise ValueError(f"Only 2-d and 4-d tensors are representable, got {tensor.ndim}-d")


def from_numpy(array: np.ndarray, device: str | torch.device | None = None) -> TensorValue:
    data = torch.from_numpy(np.ascontiguousarray(array, dtype=np.float32))
    if device is not None:
        data = data.to(device)
    return tensor_value(data)


def from_buffer(
    values: Sequence[float] | np.ndarray,
    shape: Sequence[int],
    device: str | torch.device | None = None,
) -> TensorValue:
    """Build a value from a flat float buffer and a full batched shape."""
    arr = np.asarray(values, dtype=np.float32)
    expected = int(np.prod(shape)) if len(shape) else 0
    if arr.size != expected:
        raise ValueError(f"Buffer holds {arr.size} values, shape {tuple(shape)} needs {expected}")
    return from_numpy(arr.reshape(tuple(shape)), device)


def batched_shape(sample_shape: Shape, batch: int) -> tuple[int, ...]:
    return (batch, *sample_shape)


def to_numpy(value: TensorValue) -> np.ndarray:
    return value.data.detach().cpu().numpy()
