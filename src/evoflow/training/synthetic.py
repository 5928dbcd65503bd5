from __future__ import annotations

import torch

from evoflow.compiler.program import CompiledModel
from evoflow.ir.graph import Shape
from evoflow.runtime.tensor import TensorValue, batched_shape, tensor_value

from .step import Batch


def _normal(shape: Shape, batch_size: int, gen: torch.Generator) -> torch.Tensor:
    return torch.randn(batched_shape(shape, batch_size), generator=gen)


def _target(shape: Shape, batch_size: int, gen: torch.Generator) -> torch.Tensor:
    if len(shape) == 1:
        # class index column for classifiers, {0, 1} for single-unit heads
        classes = shape[0] if shape[0] > 1 else 2
        return torch.randint(0, classes, (batch_size, 1), generator=gen).float()
    return _normal(shape, batch_size, gen)


def random_batch(model: CompiledModel, batch_size: int = 1, seed: int | None = None) -> Batch:
    """Random inputs and loss-compatible targets matching the model's boundary shapes."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    gen = torch.Generator()
    if seed is not None:
        gen.manual_seed(seed)
    else:
        gen.seed()
    device = model.device
    inputs: list[TensorValue] = [
        tensor_value(_normal(shape, batch_size, gen).to(device)) for shape in model.input_shapes
    ]
    targets: list[TensorValue] = [
        tensor_value(_target(shape, batch_size, gen).to(device)) for shape in model.output_shapes
    ]
    return Batch(inputs=inputs, targets=targets)
