"""Genome IR data structures and shape analysis."""

from .graph import (
    AddConfig,
    ConcatConfig,
    Conv2DConfig,
    DenseConfig,
    Edge,
    FlattenConfig,
    Genome,
    GraphValidator,
    InputConfig,
    NodeConfig,
    OutputConfig,
    PoolingConfig,
    Shape,
)
from .infer import infer_genome, infer_node_shape
from .utils import GenomeMetadata, build_consumer_map, dangling_nodes, genome_metadata

__all__ = [
    "Genome",
    "Edge",
    "NodeConfig",
    "Shape",
    "InputConfig",
    "OutputConfig",
    "DenseConfig",
    "Conv2DConfig",
    "PoolingConfig",
    "FlattenConfig",
    "AddConfig",
    "ConcatConfig",
    "GraphValidator",
    "infer_genome",
    "infer_node_shape",
    "GenomeMetadata",
    "genome_metadata",
    "build_consumer_map",
    "dangling_nodes",
]
