from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Union

import torch
from torch import nn

from evoflow.ir.graph import Shape
from evoflow.kernel.backends import Backend


@dataclass(frozen=True)
class InputOp:
    slot: int


@dataclass(frozen=True)
class OutputOp:
    slot: int


@dataclass(frozen=True)
class DenseOp:
    layer_index: int
    activation: str


@dataclass(frozen=True)
class Conv2DOp:
    layer_index: int


@dataclass(frozen=True)
class MaxPoolOp:
    layer_index: int


@dataclass(frozen=True)
class AvgPoolOp:
    layer_index: int


@dataclass(frozen=True)
class FlattenOp:
    pass


@dataclass(frozen=True)
class AddOp:
    pass


@dataclass(frozen=True)
class ConcatOp:
    pass


Operation = Union[
    InputOp, OutputOp, DenseOp, Conv2DOp, MaxPoolOp, AvgPoolOp, FlattenOp, AddOp, ConcatOp
]


def op_kind(op: Operation) -> str:
    return op.__class__.__name__


@dataclass(frozen=True)
class Instruction:
    """One scheduled step: run `op` for `node_id` over the values of `input_ids`."""

    node_id: int
    op: Operation
    input_ids: tuple[int, ...] = ()

    @property
    def kind(self) -> str:
        return op_kind(self.op)


@dataclass(frozen=True)
class CompiledModel:
    """The compiled program: layer arena, instruction list and slot metadata.

    Design choices:
    - `layers` is the only mutable part; an optimizer updates its parameters
      in place, the executor never does.
    - Shapes are per-sample: (F,) for flat features, (C, H, W) for maps.
    - `use_counts[i]` is the number of instruction operands that read node i.
    """

    layers: nn.ModuleList
    instructions: tuple[Instruction, ...]
    use_counts: tuple[int, ...]
    node_shapes: tuple[Shape, ...]
    input_shapes: tuple[Shape, ...]
    output_shapes: tuple[Shape, ...]
    backend: Backend = field(repr=False, compare=False)

    @property
    def num_inputs(self) -> int:
        return len(self.input_shapes)

    @property
    def num_outputs(self) -> int:
        return len(self.output_shapes)

    @property
    def num_nodes(self) -> int:
        return len(self.use_counts)

    @property
    def device(self) -> torch.device:
        return torch.device(self.backend.capabilities().device)

    @property
    def dtype(self) -> torch.dtype:
        return self.backend.dtype

    def parameters(self) -> Iterator[nn.Parameter]:
        return self.layers.parameters()

    def named_parameters(self) -> Iterator[tuple[str, nn.Parameter]]:
        return self.layers.named_parameters(prefix="layers")

    def train(self, mode: bool = True) -> CompiledModel:
        self.layers.train(mode)
        return self

    def eval(self) -> CompiledModel:
        return self.train(False)

    def summary(self) -> str:
        lines: list[str] = [
            f"CompiledModel(inputs={self.num_inputs}, outputs={self.num_outputs}, "
            f"layers={len(self.layers)}, instructions={len(self.instructions)})"
        ]
        for instr in self.instructions:
            ins = ", ".join(str(i) for i in instr.input_ids)
            lines.append(
                f"- {instr.node_id}: {instr.op}({ins}) -> {self.node_shapes[instr.node_id]}"
                f" uses={self.use_counts[instr.node_id]}"
            )
        return "\n".join(lines)
