"""Loss, accuracy and single-step training helpers around the executor."""

from .evaluate import FAILED_LOSS, GenomeScore, evaluate_genome, evaluate_population
from .loss import compute_accuracy, compute_loss, output_loss
from .step import Batch, EvaluationResult, StepOutput, evaluate, train_step
from .synthetic import random_batch

__all__ = [
    "compute_loss",
    "compute_accuracy",
    "output_loss",
    "Batch",
    "StepOutput",
    "EvaluationResult",
    "train_step",
    "evaluate",
    "random_batch",
    "GenomeScore",
    "evaluate_genome",
    "evaluate_population",
    "FAILED_LOSS",
]
