from __future__ import annotations

import pytest

from evoflow.errors import MalformedGenome
from evoflow.ir import Conv2DConfig, DenseConfig, Edge, InputConfig, OutputConfig, PoolingConfig
from evoflow.parsers import GenomeParser, parse_genome

MLP = """
{"node": "Input", "params": {"output_shape": [4]}}
{"node": "Dense", "params": {"units": 8, "activation": "relu", "use_bias": true}}
{"node": "Dense", "params": {"units": 3, "activation": "softmax", "use_bias": false}}
{"node": "Output", "params": {"input_shape": [3]}}
CONNECTIONS
0 1
1 2
2 3
"""


def test_parse_mlp() -> None:
    genome = GenomeParser().parse(MLP)
    assert genome.nodes == [
        InputConfig((4,)),
        DenseConfig(units=8, activation="relu", use_bias=True),
        DenseConfig(units=3, activation="softmax", use_bias=False),
        OutputConfig((3,)),
    ]
    assert genome.edges == [Edge(0, 1), Edge(1, 2), Edge(2, 3)]


def test_blank_lines_and_whitespace_are_ignored() -> None:
    text = '\n\n  {"node": "Input", "params": {"output_shape": [2]}}  \n\n' "CONNECTIONS\n\n"
    genome = parse_genome(text)
    assert len(genome.nodes) == 1
    assert genome.edges == []


def test_kernel_size_forms() -> None:
    text = "\n".join(
        [
            '{"node": "Conv2D", "params": {"filters": 2, "kernel_size": [3], "stride": 1,'
            ' "padding": 0, "dilation": 1, "use_bias": true}}',
            '{"node": "Conv2D", "params": {"filters": 2, "kernel_size": [3, 5], "stride": 1,'
            ' "padding": 0, "dilation": 1, "use_bias": true}}',
            '{"node": "Pooling", "params": {"pool_type": "max", "kernel_size": {"h": 2, "w": 4},'
            ' "stride": 2, "padding": 0}}',
        ]
    )
    a, b, c = parse_genome(text).nodes
    assert isinstance(a, Conv2DConfig) and a.kernel_size == (3, 3)
    assert isinstance(b, Conv2DConfig) and b.kernel_size == (3, 5)
    assert isinstance(c, PoolingConfig) and c.kernel_size == (2, 4)


def test_parameterless_nodes_and_extra_params() -> None:
    text = '{"node": "Flatten"}\n{"node": "Add", "params": {}}\n{"node": "Concat", "params": {"axis": 1}}\n'
    kinds = [n.kind for n in parse_genome(text).nodes]
    assert kinds == ["Flatten", "Add", "Concat"]


def test_output_shape_may_be_omitted() -> None:
    (node,) = parse_genome('{"node": "Output", "params": {}}').nodes
    assert node == OutputConfig(())


@pytest.mark.parametrize(
    "line",
    [
        "not json",
        '["Input"]',
        '{"node": "Dropout", "params": {}}',
        '{"params": {"units": 3}}',
        '{"node": "Dense", "params": {"units": 3, "use_bias": true}}',
        '{"node": "Dense", "params": {"units": -1, "activation": "relu", "use_bias": true}}',
        '{"node": "Dense", "params": {"units": true, "activation": "relu", "use_bias": true}}',
        '{"node": "Dense", "params": {"units": 3, "activation": "relu", "use_bias": 1}}',
        '{"node": "Input", "params": {"output_shape": 4}}',
        '{"node": "Pooling", "params": {"pool_type": "max", "kernel_size": [1, 2, 3],'
        ' "stride": 1, "padding": 0}}',
        '{"node": "Input", "params": []}',
        '{"node": "Input"}',
        '{"node": "Pooling", "params": {"pool_type": "min", "kernel_size": [2],'
        ' "stride": 1, "padding": 0}}',
        '{"node": "Conv2D", "params": {"filters": 2, "kernel_size": {"h": 3}, "stride": 1,'
        ' "padding": 0, "dilation": 1, "use_bias": true}}',
        '{"node": "Conv2D", "params": {"filters": 2, "kernel_size": [3, "3"], "stride": 1,'
        ' "padding": 0, "dilation": 1, "use_bias": true}}',
        '{"node": "Dense", "params": {"units": 2.0, "activation": "relu", "use_bias": true}}',
    ],
)
def test_malformed_node_lines(line: str) -> None:
    with pytest.raises(MalformedGenome) as exc:
        parse_genome(line + "\nCONNECTIONS\n")
    assert exc.value.code == "EGENOME"
    assert exc.value.line == 1


@pytest.mark.parametrize(
    "edge", ["0", "0 1 2", "a b", "0 -1", "1.5 2", "+0 1", "0 1_0", "0 ١"]
)
def test_malformed_edges(edge: str) -> None:
    text = '{"node": "Input", "params": {"output_shape": [2]}}\n' * 2 + f"CONNECTIONS\n{edge}\n"
    with pytest.raises(MalformedGenome) as exc:
        parse_genome(text)
    assert exc.value.line == 4


def test_edge_to_undeclared_node() -> None:
    text = '{"node": "Input", "params": {"output_shape": [2]}}\nCONNECTIONS\n0 5\n'
    with pytest.raises(MalformedGenome, match="line 3"):
        parse_genome(text)


def test_duplicate_connections_marker() -> None:
    with pytest.raises(MalformedGenome, match="duplicate"):
        parse_genome("CONNECTIONS\nCONNECTIONS\n")


def test_missing_marker_means_no_edges() -> None:
    genome = parse_genome('{"node": "Input", "params": {"output_shape": [2]}}')
    assert genome.edges == []


def test_invalid_param_error_names_the_field() -> None:
    line = '{"node": "Dense", "params": {"units": -3, "activation": "relu", "use_bias": true}}'
    with pytest.raises(MalformedGenome, match=r"line 1: .*units"):
        parse_genome(line)
