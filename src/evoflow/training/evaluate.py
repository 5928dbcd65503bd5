from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

from evoflow.compiler.compiler import compile_text
from evoflow.errors import EvoflowError
from evoflow.utils.config import CompilerConfig

from .step import evaluate
from .synthetic import random_batch

logger = logging.getLogger(__name__)

FAILED_LOSS = 999.0


@dataclass
class GenomeScore:
    genome_id: str
    loss: float
    accuracy: float | None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def evaluate_genome(
    genome_id: str,
    text: str,
    *,
    batch_size: int = 4,
    seed: int | None = 0,
    config: CompilerConfig | None = None,
) -> GenomeScore:
    """
    Compile a genome and score it on one synthetic batch. A genome that fails to
    parse, compile or run scores FAILED_LOSS with zero accuracy.
    """
    try:
        model = compile_text(text, config=config)
        result = evaluate(model, random_batch(model, batch_size=batch_size, seed=seed))
    except EvoflowError as e:
        logger.warning("Genome %s failed: [%s] %s", genome_id, e.code, e)
        return GenomeScore(genome_id=genome_id, loss=FAILED_LOSS, accuracy=0.0, error=f"{e.code}: {e}")
    return GenomeScore(genome_id=genome_id, loss=result.loss, accuracy=result.accuracy)


def evaluate_population(
    genomes: Mapping[str, str],
    *,
    batch_size: int = 4,
    seed: int | None = 0,
    config: CompilerConfig | None = None,
) -> list[GenomeScore]:
    logger.info("Evaluating population of %d genomes", len(genomes))
    return [
        evaluate_genome(genome_id, text, batch_size=batch_size, seed=seed, config=config)
        for genome_id, text in genomes.items()
    ]
