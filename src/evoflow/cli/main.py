from __future__ import annotations

from pathlib import Path

import typer

from evoflow.compiler.compiler import compile_genome
from evoflow.errors import EvoflowError
from evoflow.flows.pipeline import genome_evaluation_flow
from evoflow.ir.utils import genome_metadata
from evoflow.parsers.genome import parse_genome
from evoflow.training.step import train_step
from evoflow.training.synthetic import random_batch
from evoflow.utils.config import CompilerConfig
from evoflow.utils.logger import get_logger, set_level

app = typer.Typer(help="evoflow CLI: compile and run genome graphs")


def _config(device: str | None, strict: bool, seed: int | None) -> CompilerConfig:
    env = CompilerConfig.from_env()
    return CompilerConfig(
        device=device or env.device,
        strict_activations=strict or env.strict_activations,
        seed=seed if seed is not None else env.seed,
    )


def _fail(e: EvoflowError) -> typer.Exit:
    typer.echo(f"error [{e.code}]: {e}", err=True)
    return typer.Exit(code=1)


@app.callback()
def main_options(
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level for evoflow"),
) -> None:
    get_logger()
    if log_level:
        set_level(log_level)


@app.command()
def inspect(
    genome_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Genome text file"),
    device: str | None = typer.Option(None, help="torch device for layer allocation"),
    strict: bool = typer.Option(False, "--strict", help="Reject unknown activation names"),
) -> None:
    """
    Compile a genome and print its instruction program.
    """
    try:
        genome = parse_genome(genome_file.read_text(encoding="utf-8"))
        model = compile_genome(genome, config=_config(device, strict, None))
    except EvoflowError as e:
        raise _fail(e) from e
    meta = genome_metadata(genome)
    typer.echo(model.summary())
    typer.echo(f"input shapes: {list(model.input_shapes)}")
    typer.echo(f"output shapes: {list(model.output_shapes)}")
    typer.echo(f"layer types: {', '.join(meta.layer_types)}")
    typer.echo(f"parameters: {sum(p.numel() for p in model.parameters())}")


@app.command()
def smoke(
    genome_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Genome text file"),
    batch_size: int = typer.Option(2, min=1, help="Synthetic batch size"),
    seed: int = typer.Option(0, help="Seed for parameters and synthetic data"),
    device: str | None = typer.Option(None, help="torch device"),
) -> None:
    """
    Run one forward/backward pass on random data to validate a genome end to end.
    """
    try:
        model = compile_genome(
            parse_genome(genome_file.read_text(encoding="utf-8")),
            config=_config(device, False, seed),
        )
        out = train_step(model, random_batch(model, batch_size=batch_size, seed=seed))
    except EvoflowError as e:
        raise _fail(e) from e
    accuracy = "n/a" if out.accuracy is None else f"{out.accuracy:.4f}"
    typer.echo(f"loss: {out.loss.item():.6f}")
    typer.echo(f"accuracy: {accuracy}")
    typer.echo(f"gradients: {len(out.gradients)} tensors")


@app.command()
def evaluate(
    genome_files: list[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Genome text files"),
    output_dir: str = typer.Option("./outputs", help="Directory to write results"),
    batch_size: int = typer.Option(4, min=1, help="Synthetic batch size"),
    seed: int = typer.Option(0, help="Seed for synthetic data"),
) -> None:
    """
    Run the Prefect flow that scores a population of genomes.
    """
    result_path = genome_evaluation_flow(
        genome_paths=[str(p) for p in genome_files],
        output_dir=output_dir,
        batch_size=batch_size,
        seed=seed,
    )
    typer.echo(f"Results written to: {result_path}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
