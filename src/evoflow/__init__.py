"""evoflow: compile genome text into shape-checked dataflow programs and run them.

genome text -> GenomeParser -> GraphCompiler -> GraphExecutor -> compute_loss
"""

from .compiler import CompiledModel, GraphCompiler, compile_genome, compile_text
from .errors import (
    CyclicGraph,
    EvoflowError,
    ExecutorInvariantViolation,
    GraphCompileError,
    InputArityMismatch,
    InputShapeMismatch,
    MalformedGenome,
    NoOutputs,
    ShapeMismatch,
    UnsupportedLossShape,
)
from .parsers import GenomeParser, parse_genome, serialize_genome
from .runtime import GraphExecutor, Rank2, Rank4, TensorValue, execute
from .training import compute_loss

__all__ = [
    "GenomeParser",
    "parse_genome",
    "serialize_genome",
    "GraphCompiler",
    "CompiledModel",
    "compile_genome",
    "compile_text",
    "GraphExecutor",
    "execute",
    "Rank2",
    "Rank4",
    "TensorValue",
    "compute_loss",
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
