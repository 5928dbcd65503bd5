from __future__ import annotations

import json

import pytest
import torch

from evoflow.compiler import compile_text
from evoflow.runtime import Rank2, Rank4
from evoflow.training import (
    FAILED_LOSS,
    Batch,
    evaluate,
    evaluate_genome,
    evaluate_population,
    random_batch,
    train_step,
)
from evoflow.utils import CompilerConfig

CLASSIFIER = """
{"node": "Input", "params": {"output_shape": [6, 6, 1]}}
{"node": "Conv2D", "params": {"filters": 2, "kernel_size": {"h": 3, "w": 3}, "stride": 1, "padding": 1, "dilation": 1, "use_bias": true}}
{"node": "Pooling", "params": {"pool_type": "max", "kernel_size": [2], "stride": 2, "padding": 0}}
{"node": "Flatten", "params": {}}
{"node": "Dense", "params": {"units": 4, "activation": "linear", "use_bias": true}}
{"node": "Output", "params": {"input_shape": [4]}}
CONNECTIONS
0 1
1 2
2 3
3 4
4 5
"""

AUTOENCODER = """
{"node": "Input", "params": {"output_shape": [4, 4, 2]}}
{"node": "Conv2D", "params": {"filters": 2, "kernel_size": [3, 3], "stride": 1, "padding": 1, "dilation": 1, "use_bias": false}}
{"node": "Output", "params": {"input_shape": [4, 4, 2]}}
CONNECTIONS
0 1
1 2
"""

POOL_ONLY = """
{"node": "Input", "params": {"output_shape": [4, 4, 1]}}
{"node": "Pooling", "params": {"pool_type": "avg", "kernel_size": [2], "stride": 2, "padding": 0}}
{"node": "Output", "params": {}}
CONNECTIONS
0 1
1 2
"""

BROKEN = """
{"node": "Input", "params": {"output_shape": [4, 4, 2]}}
{"node": "Dense", "params": {"units": 3, "activation": "relu", "use_bias": true}}
{"node": "Output", "params": {}}
CONNECTIONS
0 1
1 2
"""


def test_random_batch_matches_boundary_shapes() -> None:
    model = compile_text(CLASSIFIER)
    batch = random_batch(model, batch_size=3, seed=1)
    (x,) = batch.inputs
    (y,) = batch.targets
    assert isinstance(x, Rank4) and x.data.shape == (3, 1, 6, 6)
    assert isinstance(y, Rank2) and y.data.shape == (3, 1)
    assert ((y.data >= 0) & (y.data < 4)).all()
    again = random_batch(model, batch_size=3, seed=1)
    assert torch.equal(x.data, again.inputs[0].data)
    with pytest.raises(ValueError):
        random_batch(model, batch_size=0)


def test_train_step_returns_named_gradients() -> None:
    model = compile_text(CLASSIFIER, config=CompilerConfig(seed=0))
    out = train_step(model, random_batch(model, batch_size=2, seed=0))
    assert out.loss.ndim == 0
    assert out.loss.item() >= 0
    assert out.accuracy is not None and 0.0 <= out.accuracy <= 1.0
    assert set(out.gradients) == {name for name, _ in model.named_parameters()}
    for name, param in model.named_parameters():
        assert out.gradients[name].shape == param.shape


def test_train_step_on_feature_maps() -> None:
    model = compile_text(AUTOENCODER)
    x = Rank4(torch.randn(2, 2, 4, 4))
    out = train_step(model, Batch(inputs=[x], targets=[x]))
    assert out.accuracy is None
    assert list(out.gradients) == ["layers.0.weight"]


def test_train_step_without_parameters() -> None:
    model = compile_text(POOL_ONLY)
    assert len(list(model.parameters())) == 0
    out = train_step(model, random_batch(model, batch_size=2, seed=0))
    assert out.gradients == {}
    assert out.loss.item() >= 0
    assert out.accuracy is None


def test_evaluate_does_not_track_gradients() -> None:
    model = compile_text(CLASSIFIER)
    result = evaluate(model, random_batch(model, batch_size=2, seed=3))
    assert isinstance(result.loss, float)
    assert all(p.grad is None for p in model.parameters())


def test_failed_genome_scores_sentinel() -> None:
    score = evaluate_genome("broken", BROKEN)
    assert score.loss == FAILED_LOSS
    assert score.accuracy == 0.0
    assert score.error is not None and score.error.startswith("ESHAPE")


def test_evaluate_population_keeps_order() -> None:
    scores = evaluate_population({"ok": CLASSIFIER, "bad": BROKEN, "junk": "{"}, batch_size=2)
    assert [s.genome_id for s in scores] == ["ok", "bad", "junk"]
    assert scores[0].error is None and scores[0].loss < FAILED_LOSS
    assert scores[2].error is not None and scores[2].error.startswith("EGENOME")
    json.dumps([s.to_dict() for s in scores])
