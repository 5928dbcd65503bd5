from __future__ import annotations

import json

from evoflow.ir import AddConfig, Conv2DConfig, Genome, InputConfig, OutputConfig, PoolingConfig
from evoflow.parsers import parse_genome, serialize_genome


def residual_cnn() -> Genome:
    g = Genome()
    x = g.add_node(InputConfig((8, 8, 3)))
    c = g.add_node(Conv2DConfig(filters=3, kernel_size=(3, 3), padding=1))
    a = g.add_node(AddConfig())
    p = g.add_node(PoolingConfig(pool_type="avg", kernel_size=(2, 2), stride=2))
    o = g.add_node(OutputConfig())
    g.connect(x, c)
    g.connect(c, a)
    g.connect(x, a)
    g.connect(a, p)
    g.connect(p, o)
    return g


def test_serialized_text_uses_connections_layout() -> None:
    text = serialize_genome(residual_cnn())
    lines = text.splitlines()
    assert text.endswith("\n")
    assert lines[5] == "CONNECTIONS"
    assert lines[6:] == ["0 1", "1 2", "0 2", "2 3", "3 4"]
    conv = json.loads(lines[1])
    assert conv["node"] == "Conv2D"
    assert conv["params"]["kernel_size"] == [3, 3]


def test_serialized_genome_parses_back() -> None:
    g = residual_cnn()
    parsed = parse_genome(serialize_genome(g))
    assert parsed.nodes == g.nodes
    assert parsed.edges == g.edges
