from __future__ import annotations

from typing import Any


class EvoflowError(Exception):
    """Base error with a stable code and optional node context."""

    def __init__(
        self, message: str, code: str = "EVOFLOW", node_id: int | None = None
    ) -> None:
        super().__init__(message)
        self.code = code
        self.node_id = node_id


class MalformedGenome(EvoflowError):
    def __init__(self, message: str, line: int | None = None) -> None:
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message, code="EGENOME")
        self.line = line


class GraphCompileError(EvoflowError):
    """Raised when a structurally parsed genome cannot be compiled."""


class CyclicGraph(GraphCompileError):
    def __init__(self, unvisited: list[int]) -> None:
        super().__init__(
            f"Cycle detected in graph; unscheduled nodes: {unvisited}", code="ECYCLE"
        )
        self.unvisited = unvisited


class ShapeMismatch(GraphCompileError):
    def __init__(self, node_id: int, detail: str) -> None:
        super().__init__(f"Node {node_id}: {detail}", code="ESHAPE", node_id=node_id)
        self.detail = detail


class InputArityMismatch(EvoflowError):
    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Model expects {expected} inputs, got {actual}", code="EINPUT_ARITY"
        )
        self.expected = expected
        self.actual = actual


class InputShapeMismatch(EvoflowError):
    def __init__(
        self, slot: int, expected: Any, actual: Any, field: str = "per-sample shape"
    ) -> None:
        super().__init__(
            f"Input {slot}: expected {field} {expected}, got {actual}",
            code="EINPUT_SHAPE",
        )
        self.slot = slot
        self.field = field
        self.expected = expected
        self.actual = actual


class ExecutorInvariantViolation(EvoflowError):
    """The instruction stream disagrees with the values flowing through it.

    This is a compiler bug, not a user error: shape inference should have made
    the situation impossible.
    """

    def __init__(
        self,
        node_id: int | None,
        operation: str,
        expected: str,
        actual: str,
    ) -> None:
        super().__init__(
            f"Node {node_id} ({operation}): expected {expected}, got {actual}",
            code="EINVARIANT",
            node_id=node_id,
        )
        self.operation = operation
        self.expected = expected
        self.actual = actual


class UnsupportedLossShape(EvoflowError):
    def __init__(self, index: int, detail: str) -> None:
        super().__init__(f"Output {index}: {detail}", code="ELOSS_SHAPE")
        self.index = index
        self.detail = detail


class NoOutputs(EvoflowError):
    def __init__(self) -> None:
        super().__init__("No predictions to compute a loss from", code="ENO_OUTPUTS")


__all__ = [
    "EvoflowError",
    "MalformedGenome",
    "GraphCompileError",
    "CyclicGraph",
    "ShapeMismatch",
    "InputArityMismatch",
    "InputShapeMismatch",
    "ExecutorInvariantViolation",
    "UnsupportedLossShape",
    "NoOutputs",
]
