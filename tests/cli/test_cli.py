from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from evoflow.cli.main import app

runner = CliRunner()

MLP = """
{"node": "Input", "params": {"output_shape": [4]}}
{"node": "Dense", "params": {"units": 3, "activation": "softmax", "use_bias": true}}
{"node": "Output", "params": {"input_shape": [3]}}
CONNECTIONS
0 1
1 2
"""


def write(tmp_path: Path, name: str, text: str) -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_inspect_prints_program(tmp_path: Path) -> None:
    result = runner.invoke(app, ["inspect", str(write(tmp_path, "mlp.genome", MLP))])
    assert result.exit_code == 0, result.output
    assert "CompiledModel(inputs=1, outputs=1, layers=1" in result.output
    assert "input shapes: [(4,)]" in result.output
    assert "parameters: 15" in result.output


def test_smoke_runs_a_training_step(tmp_path: Path) -> None:
    path = write(tmp_path, "mlp.genome", MLP)
    result = runner.invoke(app, ["smoke", str(path), "--batch-size", "3"])
    assert result.exit_code == 0, result.output
    assert "loss: " in result.output
    assert "gradients: 2 tensors" in result.output


def test_errors_exit_with_code(tmp_path: Path) -> None:
    path = write(tmp_path, "cycle.genome", MLP.replace("1 2\n", "1 2\n1 1\n"))
    result = runner.invoke(app, ["inspect", str(path)])
    assert result.exit_code == 1
    assert "error [ECYCLE]" in result.output


def test_strict_flag_rejects_unknown_activation(tmp_path: Path) -> None:
    path = write(tmp_path, "odd.genome", MLP.replace('"softmax"', '"gelu-ish"'))
    assert runner.invoke(app, ["inspect", str(path)]).exit_code == 0
    result = runner.invoke(app, ["inspect", str(path), "--strict"])
    assert result.exit_code == 1
    assert "error [ESHAPE]" in result.output


def test_smoke_on_genome_without_parameters(tmp_path: Path) -> None:
    genome = (
        '{"node": "Input", "params": {"output_shape": [4, 4, 1]}}\n'
        '{"node": "Flatten", "params": {}}\n'
        '{"node": "Output", "params": {}}\n'
        "CONNECTIONS\n0 1\n1 2\n"
    )
    result = runner.invoke(app, ["smoke", str(write(tmp_path, "flat.genome", genome))])
    assert result.exit_code == 0, result.output
    assert "gradients: 0 tensors" in result.output
