"""Interpreter for compiled instruction programs.

Values live in a per-call BufferTable. Each node's slot is written at most
once and released on its last declared read, so peak memory follows the live
set of the graph rather than the length of the program.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from torch import nn

from evoflow.compiler.program import (
    AddOp,
    AvgPoolOp,
    CompiledModel,
    ConcatOp,
    Conv2DOp,
    DenseOp,
    FlattenOp,
    InputOp,
    Instruction,
    MaxPoolOp,
    OutputOp,
)
from evoflow.errors import ExecutorInvariantViolation, InputArityMismatch, InputShapeMismatch

from .tensor import Rank2, Rank4, TensorValue

logger = logging.getLogger(__name__)

_Op = TypeVar("_Op")


class SlotState(enum.Enum):
    EMPTY = "empty"
    HELD = "held"
    CONSUMED = "consumed"


class BufferTable:
    """Node-id indexed value slots with remaining-read counters."""

    def __init__(self, use_counts: Sequence[int]) -> None:
        self.remaining: list[int] = list(use_counts)
        self.states: list[SlotState] = [SlotState.EMPTY] * len(use_counts)
        self._values: list[TensorValue | None] = [None] * len(use_counts)
        self.live = 0
        self.peak_live = 0

    def __len__(self) -> int:
        return len(self.states)

    def store(self, instr: Instruction, value: TensorValue) -> None:
        node_id = instr.node_id
        if self.states[node_id] is not SlotState.EMPTY:
            raise ExecutorInvariantViolation(
                node_id, instr.kind, "an unwritten slot", f"slot already {self.states[node_id].value}"
            )
        if self.remaining[node_id] == 0:
            return  # nobody reads it
        self._values[node_id] = value
        self.states[node_id] = SlotState.HELD
        self.live += 1
        self.peak_live = max(self.peak_live, self.live)

    def take_or_clone(self, node_id: int, reader: Instruction) -> TensorValue:
        """
        Read one use of `node_id`. The last read moves the value out and frees
        the slot; earlier reads share the (immutable) value.
        """
        value = self._values[node_id]
        if self.states[node_id] is not SlotState.HELD or value is None:
            raise ExecutorInvariantViolation(
                reader.node_id,
                reader.kind,
                f"a live value for operand {node_id}",
                f"slot {self.states[node_id].value}",
            )
        self.remaining[node_id] -= 1
        if self.remaining[node_id] == 0:
            self._values[node_id] = None
            self.states[node_id] = SlotState.CONSUMED
            self.live -= 1
        return value

    def holds(self, node_id: int) -> bool:
        return self._values[node_id] is not None


@dataclass
class ExecutionTrace:
    outputs: list[TensorValue]
    buffers: BufferTable = field(repr=False)


def _rank_name(value: object) -> str:
    return type(value).__name__


class GraphExecutor:
    """Run a CompiledModel forward over caller-supplied TensorValues."""

    def __init__(self, model: CompiledModel) -> None:
        self.model = model

    def execute(self, inputs: Sequence[TensorValue]) -> list[TensorValue]:
        return self.run(inputs).outputs

    def run(self, inputs: Sequence[TensorValue]) -> ExecutionTrace:
        self._check_inputs(inputs)
        model = self.model
        buffers = BufferTable(model.use_counts)
        outputs: list[TensorValue | None] = [None] * model.num_outputs

        for instr in model.instructions:
            op = instr.op
            if isinstance(op, OutputOp):
                self._expect_operands(instr, 1)
                outputs[op.slot] = buffers.take_or_clone(instr.input_ids[0], instr)
                continue
            if isinstance(op, InputOp):
                value: TensorValue = inputs[op.slot]
            else:
                handler = self._HANDLERS.get(type(op))
                if handler is None:
                    raise ExecutorInvariantViolation(instr.node_id, instr.kind, "a known operation", repr(op))
                operands = [buffers.take_or_clone(i, instr) for i in instr.input_ids]
                value = handler(self, instr, operands)
            buffers.store(instr, value)

        missing = [slot for slot, out in enumerate(outputs) if out is None]
        if missing:
            raise ExecutorInvariantViolation(None, "Output", "every output slot filled", f"empty slots {missing}")
        logger.debug("Forward pass done, peak live buffers: %d", buffers.peak_live)
        return ExecutionTrace(outputs=[out for out in outputs if out is not None], buffers=buffers)

    def _check_inputs(self, inputs: Sequence[TensorValue]) -> None:
        model = self.model
        if len(inputs) != model.num_inputs:
            raise InputArityMismatch(model.num_inputs, len(inputs))
        batch: int | None = None
        for slot, (value, expected) in enumerate(zip(inputs, model.input_shapes)):
            if not isinstance(value, (Rank2, Rank4)):
                raise InputShapeMismatch(slot, expected, _rank_name(value))
            if value.sample_shape != expected:
                raise InputShapeMismatch(slot, expected, value.sample_shape)
            if value.data.dtype != model.dtype:
                raise InputShapeMismatch(slot, model.dtype, value.data.dtype, field="dtype")
            # every input must describe the same samples
            if batch is None:
                batch = value.batch
            elif value.batch != batch:
                raise InputShapeMismatch(slot, batch, value.batch, field="batch size")

    # -- operations ---------------------------------------------------------

    def _expect_operands(self, instr: Instruction, count: int) -> None:
        if len(instr.input_ids) != count:
            raise ExecutorInvariantViolation(
                instr.node_id, instr.kind, f"{count} operand(s)", f"{len(instr.input_ids)}"
            )

    @staticmethod
    def _op(instr: Instruction, expected: type[_Op]) -> _Op:
        op = instr.op
        if not isinstance(op, expected):
            raise ExecutorInvariantViolation(
                instr.node_id, instr.kind, f"{expected.__name__} operation", _rank_name(op)
            )
        return op

    def _layer(self, instr: Instruction, layer_index: int, expected: type[nn.Module]) -> nn.Module:
        layers = self.model.layers
        layer = layers[layer_index] if 0 <= layer_index < len(layers) else None
        if not isinstance(layer, expected):
            raise ExecutorInvariantViolation(
                instr.node_id, instr.kind, f"{expected.__name__} layer", _rank_name(layer)
            )
        return layer

    @staticmethod
    def _single(instr: Instruction, operands: list[TensorValue], rank: type) -> TensorValue:
        if len(operands) != 1 or not isinstance(operands[0], rank):
            actual = ", ".join(_rank_name(o) for o in operands) or "no operands"
            raise ExecutorInvariantViolation(instr.node_id, instr.kind, f"one {rank.__name__}", actual)
        return operands[0]

    def _dense(self, instr: Instruction, operands: list[TensorValue]) -> TensorValue:
        op = self._op(instr, DenseOp)
        x = self._single(instr, operands, Rank2)
        layer = self._layer(instr, op.layer_index, nn.Linear)
        out = layer(x.data)
        return Rank2(self.model.backend.activation(op.activation, out))

    def _conv2d(self, instr: Instruction, operands: list[TensorValue]) -> TensorValue:
        op = self._op(instr, Conv2DOp)
        x = self._single(instr, operands, Rank4)
        return Rank4(self._layer(instr, op.layer_index, nn.Conv2d)(x.data))

    def _max_pool(self, instr: Instruction, operands: list[TensorValue]) -> TensorValue:
        op = self._op(instr, MaxPoolOp)
        x = self._single(instr, operands, Rank4)
        return Rank4(self._layer(instr, op.layer_index, nn.MaxPool2d)(x.data))

    def _avg_pool(self, instr: Instruction, operands: list[TensorValue]) -> TensorValue:
        op = self._op(instr, AvgPoolOp)
        x = self._single(instr, operands, Rank4)
        return Rank4(self._layer(instr, op.layer_index, nn.AvgPool2d)(x.data))

    def _flatten(self, instr: Instruction, operands: list[TensorValue]) -> TensorValue:
        x = self._single(instr, operands, Rank4)
        return Rank2(x.data.flatten(start_dim=1))

    @staticmethod
    def _same_rank(instr: Instruction, operands: list[TensorValue]) -> type:
        if not operands:
            raise ExecutorInvariantViolation(instr.node_id, instr.kind, "at least one operand", "none")
        rank = type(operands[0])
        for other in operands[1:]:
            if type(other) is not rank:
                raise ExecutorInvariantViolation(
                    instr.node_id, instr.kind, f"all {rank.__name__}", _rank_name(other)
                )
        return rank

    def _add(self, instr: Instruction, operands: list[TensorValue]) -> TensorValue:
        rank = self._same_rank(instr, operands)
        total = operands[0].data
        for other in operands[1:]:
            total = total + other.data
        return rank(total)

    def _concat(self, instr: Instruction, operands: list[TensorValue]) -> TensorValue:
        rank = self._same_rank(instr, operands)
        # dim 1 is features for Rank2 and channels for Rank4
        return rank(self.model.backend.cat([o.data for o in operands], dim=1))

    _HANDLERS: dict[type, Callable[[GraphExecutor, Instruction, list[TensorValue]], TensorValue]] = {
        DenseOp: _dense,
        Conv2DOp: _conv2d,
        MaxPoolOp: _max_pool,
        AvgPoolOp: _avg_pool,
        FlattenOp: _flatten,
        AddOp: _add,
        ConcatOp: _concat,
    }


def execute(model: CompiledModel, inputs: Sequence[TensorValue]) -> list[TensorValue]:
    return GraphExecutor(model).execute(inputs)
