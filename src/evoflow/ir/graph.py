from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, NamedTuple, Union

from evoflow.errors import CyclicGraph

Shape = tuple[int, ...]


@dataclass(frozen=True)
class InputConfig:
    # [H, W, C] for images, [F] for vectors
    output_shape: tuple[int, ...]

    kind: ClassVar[str] = "Input"


@dataclass(frozen=True)
class OutputConfig:
    input_shape: tuple[int, ...] = ()

    kind: ClassVar[str] = "Output"


@dataclass(frozen=True)
class DenseConfig:
    units: int
    activation: str = "relu"
    use_bias: bool = True

    kind: ClassVar[str] = "Dense"


@dataclass(frozen=True)
class Conv2DConfig:
    filters: int
    kernel_size: tuple[int, int]
    stride: int = 1
    padding: int = 0
    dilation: int = 1
    use_bias: bool = True

    kind: ClassVar[str] = "Conv2D"


@dataclass(frozen=True)
class PoolingConfig:
    pool_type: str
    kernel_size: tuple[int, int]
    stride: int = 1
    padding: int = 0

    kind: ClassVar[str] = "Pooling"


@dataclass(frozen=True)
class FlattenConfig:
    kind: ClassVar[str] = "Flatten"


@dataclass(frozen=True)
class AddConfig:
    kind: ClassVar[str] = "Add"


@dataclass(frozen=True)
class ConcatConfig:
    kind: ClassVar[str] = "Concat"


NodeConfig = Union[
    InputConfig,
    OutputConfig,
    DenseConfig,
    Conv2DConfig,
    PoolingConfig,
    FlattenConfig,
    AddConfig,
    ConcatConfig,
]


class Edge(NamedTuple):
    src: int
    dst: int


@dataclass
class Genome:
    """Node declarations plus the edges between them, addressed by node id."""

    nodes: list[NodeConfig] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)

    def add_node(self, node: NodeConfig) -> int:
        self.nodes.append(node)
        return len(self.nodes) - 1

    def connect(self, src: int, dst: int) -> None:
        self.edges.append(Edge(src, dst))

    def predecessors(self) -> list[list[int]]:
        """Per node, the producing node ids in edge declaration order."""
        preds: list[list[int]] = [[] for _ in self.nodes]
        for src, dst in self.edges:
            preds[dst].append(src)
        return preds

    def successors(self) -> list[list[int]]:
        succ: list[list[int]] = [[] for _ in self.nodes]
        for src, dst in self.edges:
            succ[src].append(dst)
        return succ

    def use_counts(self) -> list[int]:
        counts = [0] * len(self.nodes)
        for src, _ in self.edges:
            counts[src] += 1
        return counts


class GraphValidator:
    """Structural checks over a genome, including topological ordering."""

    def __init__(self, genome: Genome) -> None:
        self.genome = genome

    def topological_order(self) -> list[int]:
        """
        Return node ids in Kahn order, seeded with in-degree-0 nodes by id.
        Raise CyclicGraph if some node can never be scheduled.
        """
        num_nodes = len(self.genome.nodes)
        indegree: list[int] = [0] * num_nodes
        for _, dst in self.genome.edges:
            indegree[dst] += 1
        adj = self.genome.successors()

        queue: list[int] = [i for i, d in enumerate(indegree) if d == 0]
        order: list[int] = []
        while queue:
            u = queue.pop(0)
            order.append(u)
            for v in adj[u]:
                indegree[v] -= 1
                if indegree[v] == 0:
                    queue.append(v)

        if len(order) != num_nodes:
            visited = set(order)
            raise CyclicGraph([i for i in range(num_nodes) if i not in visited])
        return order
