"""Genome -> instruction program compiler."""

from .compiler import GraphCompiler, compile_genome, compile_text
from .program import (
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
    Operation,
    OutputOp,
    op_kind,
)

__all__ = [
    "GraphCompiler",
    "compile_genome",
    "compile_text",
    "CompiledModel",
    "Instruction",
    "Operation",
    "op_kind",
    "InputOp",
    "OutputOp",
    "DenseOp",
    "Conv2DOp",
    "MaxPoolOp",
    "AvgPoolOp",
    "FlattenOp",
    "AddOp",
    "ConcatOp",
]
