from __future__ import annotations

import json
from pathlib import Path
from typing import Any, cast

from prefect import flow, get_run_logger, task

from evoflow.training.evaluate import GenomeScore, evaluate_genome
from evoflow.utils.config import CompilerConfig


@task
def read_genome(path: str) -> tuple[str, str]:
    """
    Read a genome file; the file stem becomes the genome id.
    """
    logger = get_run_logger()
    genome_path = Path(path)
    text = genome_path.read_text(encoding="utf-8")
    logger.info(f"Read genome {genome_path.name} ({len(text)} bytes)")
    return genome_path.stem, text


@task
def score_genome(genome: tuple[str, str], batch_size: int, seed: int | None, config: CompilerConfig) -> GenomeScore:
    logger = get_run_logger()
    genome_id, text = genome
    score = evaluate_genome(genome_id, text, batch_size=batch_size, seed=seed, config=config)
    if score.error:
        logger.warning(f"Genome {genome_id} failed: {score.error}")
    else:
        logger.info(f"Genome {genome_id}: loss={score.loss:.4f} accuracy={score.accuracy}")
    return score


@task
def export_results(output_dir: str, scores: list[GenomeScore]) -> str:
    out_path = Path(output_dir)
    out_path.mkdir(parents=True, exist_ok=True)
    result_file = out_path / "results.json"
    payload: list[dict[str, Any]] = [s.to_dict() for s in scores]
    result_file.write_text(json.dumps(payload, indent=2))
    return str(result_file)


@flow(name="evoflow-genome-evaluation")
def genome_evaluation_flow(
    genome_paths: list[str],
    output_dir: str,
    batch_size: int = 4,
    seed: int | None = 0,
) -> str:
    """
    Orchestrates a population evaluation:
    read genomes → compile + score on a synthetic batch → export results
    """
    config = CompilerConfig.from_env()
    scores = [score_genome(read_genome(p), batch_size, seed, config) for p in genome_paths]
    out = export_results(output_dir, scores)
    return cast(str, out)
