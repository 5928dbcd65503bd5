"""Tensor values and the instruction interpreter."""

from .executor import BufferTable, ExecutionTrace, GraphExecutor, SlotState, execute
from .tensor import (
    Rank2,
    Rank4,
    TensorValue,
    batched_shape,
    from_buffer,
    from_numpy,
    tensor_value,
    to_numpy,
)

__all__ = [
    "Rank2",
    "Rank4",
    "TensorValue",
    "tensor_value",
    "from_buffer",
    "from_numpy",
    "to_numpy",
    "batched_shape",
    "BufferTable",
    "SlotState",
    "ExecutionTrace",
    "GraphExecutor",
    "execute",
]
