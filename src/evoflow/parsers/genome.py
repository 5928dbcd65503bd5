from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from evoflow.errors import MalformedGenome
from evoflow.ir.graph import (
    Conv2DConfig,
    DenseConfig,
    Edge,
    Genome,
    InputConfig,
    NodeConfig,
    OutputConfig,
    PoolingConfig,
)
from evoflow.parsers.base import Parser
from evoflow.parsers.schema import NODE_ADAPTER

logger = logging.getLogger(__name__)

CONNECTIONS_MARKER = "CONNECTIONS"


def _describe(err: ValidationError) -> str:
    first = err.errors()[0]
    loc = ".".join(str(part) for part in first["loc"])
    return f"{loc}: {first['msg']}" if loc else first["msg"]


class GenomeParser(Parser):
    """Parse genome text: JSON node lines, a CONNECTIONS line, then edge pairs."""

    def parse(self, text: str) -> Genome:
        genome = Genome()
        pending_edges: list[tuple[Edge, int]] = []
        parsing_connections = False

        for lineno, raw in enumerate(text.splitlines(), start=1):
            line = raw.strip()
            if not line:
                continue
            if line == CONNECTIONS_MARKER:
                if parsing_connections:
                    raise MalformedGenome("duplicate CONNECTIONS separator", lineno)
                parsing_connections = True
                continue
            if parsing_connections:
                pending_edges.append((self._parse_edge(line, lineno), lineno))
            else:
                genome.add_node(self._parse_node(line, lineno))

        num_nodes = len(genome.nodes)
        for edge, lineno in pending_edges:
            for node_id in edge:
                if node_id >= num_nodes:
                    raise MalformedGenome(
                        f"edge {edge.src} -> {edge.dst} references node {node_id}, "
                        f"but only {num_nodes} nodes are declared",
                        lineno,
                    )
            genome.edges.append(edge)

        logger.debug("Parsed genome with %d nodes and %d edges", num_nodes, len(genome.edges))
        return genome

    def _parse_node(self, line: str, lineno: int) -> NodeConfig:
        try:
            obj = json.loads(line)
        except json.JSONDecodeError as e:
            raise MalformedGenome(f"invalid JSON node declaration: {e.msg}", lineno) from e
        try:
            node = NODE_ADAPTER.validate_python(obj)
        except ValidationError as e:
            raise MalformedGenome(f"invalid node declaration: {_describe(e)}", lineno) from e
        return node.to_config()

    def _parse_edge(self, line: str, lineno: int) -> Edge:
        parts = line.split()
        # ASCII digits only
        if len(parts) != 2 or not all(p.isascii() and p.isdigit() for p in parts):
            raise MalformedGenome(f"edge must be two non-negative integers, got {line!r}", lineno)
        src, dst = (int(p) for p in parts)
        return Edge(src, dst)


def parse_genome(text: str) -> Genome:
    return GenomeParser().parse(text)


def _node_params(node: NodeConfig) -> dict[str, Any]:
    if isinstance(node, InputConfig):
        return {"output_shape": list(node.output_shape)}
    if isinstance(node, OutputConfig):
        return {"input_shape": list(node.input_shape)}
    if isinstance(node, DenseConfig):
        return {"units": node.units, "activation": node.activation, "use_bias": node.use_bias}
    if isinstance(node, Conv2DConfig):
        return {
            "filters": node.filters,
            "kernel_size": list(node.kernel_size),
            "stride": node.stride,
            "padding": node.padding,
            "dilation": node.dilation,
            "use_bias": node.use_bias,
        }
    if isinstance(node, PoolingConfig):
        return {
            "pool_type": node.pool_type,
            "kernel_size": list(node.kernel_size),
            "stride": node.stride,
            "padding": node.padding,
        }
    return {}


def serialize_genome(genome: Genome) -> str:
    """Write a genome back into the text format read by GenomeParser."""
    lines = [json.dumps({"node": node.kind, "params": _node_params(node)}) for node in genome.nodes]
    lines.append(CONNECTIONS_MARKER)
    lines.extend(f"{src} {dst}" for src, dst in genome.edges)
    return "\n".join(lines) + "\n"
