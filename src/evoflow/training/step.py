from __future__ import annotations

import logging
from dataclasses import dataclass, field

import torch

from evoflow.compiler.program import CompiledModel
from evoflow.runtime.executor import GraphExecutor
from evoflow.runtime.tensor import TensorValue

from .loss import compute_accuracy, compute_loss

logger = logging.getLogger(__name__)


@dataclass
class Batch:
    inputs: list[TensorValue]
    targets: list[TensorValue]


@dataclass
class StepOutput:
    loss: torch.Tensor
    accuracy: float | None
    gradients: dict[str, torch.Tensor] = field(default_factory=dict)


@dataclass
class EvaluationResult:
    loss: float
    accuracy: float | None


def train_step(model: CompiledModel, batch: Batch) -> StepOutput:
    """
    Forward, loss and backward for one batch. Gradients are returned keyed by
    parameter name; applying them is left to the caller's optimizer. A graph
    without parameters yields an empty gradient dict.
    """
    model.train()
    for param in model.parameters():
        param.grad = None
    predictions = GraphExecutor(model).execute(batch.inputs)
    loss = compute_loss(predictions, batch.targets)
    if loss.requires_grad:
        loss.backward()
    gradients = {
        name: param.grad.detach().clone()
        for name, param in model.named_parameters()
        if param.grad is not None
    }
    accuracy = compute_accuracy(predictions, batch.targets)
    logger.debug("train step loss=%.6f accuracy=%s grads=%d", loss.item(), accuracy, len(gradients))
    return StepOutput(loss=loss.detach(), accuracy=accuracy, gradients=gradients)


def evaluate(model: CompiledModel, batch: Batch) -> EvaluationResult:
    model.eval()
    with torch.no_grad():
        predictions = GraphExecutor(model).execute(batch.inputs)
        loss = compute_loss(predictions, batch.targets)
    return EvaluationResult(loss=float(loss.item()), accuracy=compute_accuracy(predictions, batch.targets))
