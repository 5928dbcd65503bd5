from __future__ import annotations

from collections.abc import Sequence

import torch
import torch.nn.functional as F

from evoflow.errors import NoOutputs, UnsupportedLossShape
from evoflow.runtime.tensor import Rank2, Rank4, TensorValue


def _class_indices(index: int, pred: Rank2, target: Rank2) -> torch.Tensor:
    if target.data.shape != (pred.batch, 1):
        raise UnsupportedLossShape(
            index,
            f"classification target must be (batch, 1) class indices, got {tuple(target.data.shape)}",
        )
    classes = target.data[:, 0].long()
    if classes.numel() and (classes.min() < 0 or classes.max() >= pred.features):
        raise UnsupportedLossShape(
            index, f"class index out of range for {pred.features} classes"
        )
    return classes


def output_loss(index: int, pred: TensorValue, target: TensorValue) -> torch.Tensor:
    """
    Loss for one output pair:
    - Rank2 of width 1: mean squared error (regression / binary)
    - Rank2 wider than 1: cross-entropy against the target's class-index column
    - Rank4 vs Rank4: elementwise mean squared error
    """
    if isinstance(pred, Rank2) and isinstance(target, Rank2):
        if pred.features == 1:
            if target.data.shape != pred.data.shape:
                raise UnsupportedLossShape(
                    index,
                    f"regression target shape {tuple(target.data.shape)} != "
                    f"prediction shape {tuple(pred.data.shape)}",
                )
            return F.mse_loss(pred.data, target.data)
        return F.cross_entropy(pred.data, _class_indices(index, pred, target))
    if isinstance(pred, Rank4) and isinstance(target, Rank4):
        if target.data.shape != pred.data.shape:
            raise UnsupportedLossShape(
                index,
                f"target shape {tuple(target.data.shape)} != prediction shape {tuple(pred.data.shape)}",
            )
        return F.mse_loss(pred.data, target.data)
    raise UnsupportedLossShape(
        index, f"cannot pair {type(pred).__name__} prediction with {type(target).__name__} target"
    )


def compute_loss(predictions: Sequence[TensorValue], targets: Sequence[TensorValue]) -> torch.Tensor:
    """Sum of per-output losses as a 0-d tensor."""
    if not predictions:
        raise NoOutputs()
    if len(predictions) != len(targets):
        raise UnsupportedLossShape(
            min(len(predictions), len(targets)),
            f"unpaired, {len(predictions)} predictions but {len(targets)} targets",
        )
    total = output_loss(0, predictions[0], targets[0])
    for index in range(1, len(predictions)):
        total = total + output_loss(index, predictions[index], targets[index])
    return total


def compute_accuracy(predictions: Sequence[TensorValue], targets: Sequence[TensorValue]) -> float | None:
    """
    Mean accuracy over the classifiable outputs, or None if there are none.
    Width > 1: argmax vs class index. Width 1: prediction > 0.5 vs target.
    """
    scores: list[float] = []
    with torch.no_grad():
        for pred, target in zip(predictions, targets):
            if not (isinstance(pred, Rank2) and isinstance(target, Rank2)):
                continue
            if pred.features > 1:
                hits = pred.data.argmax(dim=1) == target.data[:, 0].long()
            else:
                hits = (pred.data > 0.5).to(target.data.dtype) == target.data
            scores.append(hits.float().mean().item())
    if not scores:
        return None
    return sum(scores) / len(scores)
