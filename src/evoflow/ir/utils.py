from __future__ import annotations

from dataclasses import dataclass, field

from evoflow.ir.graph import Genome, InputConfig, OutputConfig


@dataclass
class GenomeMetadata:
    input_dims: list[int] = field(default_factory=list)
    output_dims: list[int] = field(default_factory=list)
    total_nodes: int = 0
    layer_types: list[str] = field(default_factory=list)


def genome_metadata(genome: Genome) -> GenomeMetadata:
    """
    Summarise a genome structurally.
    - input_dims / output_dims: rank of each declared Input / Output shape,
      in declaration order (e.g. [3] for one H, W, C image input).
    - layer_types: sorted distinct node kinds.
    """
    meta = GenomeMetadata(total_nodes=len(genome.nodes))
    kinds: set[str] = set()
    for node in genome.nodes:
        kinds.add(node.kind)
        if isinstance(node, InputConfig):
            meta.input_dims.append(len(node.output_shape))
        elif isinstance(node, OutputConfig):
            meta.output_dims.append(len(node.input_shape))
    meta.layer_types = sorted(kinds)
    return meta


def build_consumer_map(genome: Genome) -> dict[int, list[int]]:
    """
    Map node id -> consuming node ids, only for nodes that have consumers.
    """
    consumers: dict[int, list[int]] = {}
    for src, dst in genome.edges:
        consumers.setdefault(src, []).append(dst)
    return consumers


def dangling_nodes(genome: Genome) -> list[int]:
    """
    Node ids whose value is never read: no consumers and not an Output.
    The executor computes and immediately drops them.
    """
    consumers = build_consumer_map(genome)
    return [
        idx
        for idx, node in enumerate(genome.nodes)
        if idx not in consumers and not isinstance(node, OutputConfig)
    ]
