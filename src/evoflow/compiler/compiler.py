from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator, Sequence

import torch
from torch import nn

from evoflow.errors import ShapeMismatch
from evoflow.ir.graph import (
    Conv2DConfig,
    DenseConfig,
    Genome,
    GraphValidator,
    InputConfig,
    NodeConfig,
    OutputConfig,
    PoolingConfig,
    Shape,
)
from evoflow.ir.infer import infer_node_shape
from evoflow.kernel.backends import Backend, TorchBackend, is_known_activation
from evoflow.parsers.genome import parse_genome
from evoflow.utils.config import CompilerConfig

from .program import (
    AddOp,
    AvgPoolOp,
    CompiledModel,
    ConcatOp,
    Conv2DOp,
    DenseOp,
    FlattenOp,
    InputOp,
    Instruction,
    MaxPoolOp,
    Operation,
    OutputOp,
)

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def _seeded(seed: int | None) -> Iterator[None]:
    if seed is None:
        yield
        return
    # keep the caller's global RNG state untouched
    with torch.random.fork_rng(devices=[]):
        torch.manual_seed(seed)
        yield


class GraphCompiler:
    """
    Compile a Genome into a CompiledModel:
    topological order -> shape inference -> layer allocation -> instructions.
    """

    def __init__(self, backend: Backend | None = None, config: CompilerConfig | None = None) -> None:
        self.config = config or CompilerConfig()
        self.backend = backend or TorchBackend(self.config.device)

    def compile(self, genome: Genome) -> CompiledModel:
        order = GraphValidator(genome).topological_order()  # raises CyclicGraph
        preds = genome.predecessors()
        use_counts = genome.use_counts()

        layers = nn.ModuleList()
        instructions: list[Instruction] = []
        shape_cache: list[Shape] = [() for _ in genome.nodes]
        input_shapes: list[Shape] = []
        output_shapes: list[Shape] = []

        with _seeded(self.config.seed):
            for node_id in order:
                node = genome.nodes[node_id]
                inputs = preds[node_id]
                in_shapes = [shape_cache[p] for p in inputs]
                out_shape = infer_node_shape(node_id, node, in_shapes)

                if isinstance(node, InputConfig):
                    op: Operation = InputOp(slot=len(input_shapes))
                    input_shapes.append(out_shape)
                elif isinstance(node, OutputConfig):
                    if use_counts[node_id]:
                        raise ShapeMismatch(node_id, "Output node cannot feed other nodes")
                    op = OutputOp(slot=len(output_shapes))
                    output_shapes.append(out_shape)
                else:
                    op = self._allocate(node_id, node, in_shapes, layers)

                logger.debug("node %d %s %s -> %s", node_id, node.kind, in_shapes, out_shape)
                shape_cache[node_id] = out_shape
                instructions.append(Instruction(node_id=node_id, op=op, input_ids=tuple(inputs)))

        logger.info(
            "Compiled genome: %d nodes, %d layers, %d inputs, %d outputs",
            len(genome.nodes),
            len(layers),
            len(input_shapes),
            len(output_shapes),
        )
        return CompiledModel(
            layers=layers,
            instructions=tuple(instructions),
            use_counts=tuple(use_counts),
            node_shapes=tuple(shape_cache),
            input_shapes=tuple(input_shapes),
            output_shapes=tuple(output_shapes),
            backend=self.backend,
        )

    def _allocate(
        self,
        node_id: int,
        node: NodeConfig,
        in_shapes: Sequence[Shape],
        layers: nn.ModuleList,
    ) -> Operation:
        """Create the layer for a parameterised node and return its operation."""
        layer_index = len(layers)
        if isinstance(node, DenseConfig):
            self._check_activation(node_id, node.activation)
            (in_features,) = in_shapes[0]
            layers.append(self.backend.linear(in_features, node.units, node.use_bias))
            return DenseOp(layer_index=layer_index, activation=node.activation)
        if isinstance(node, Conv2DConfig):
            in_channels = in_shapes[0][0]
            layers.append(
                self.backend.conv2d(
                    in_channels,
                    node.filters,
                    node.kernel_size,
                    node.stride,
                    node.padding,
                    node.dilation,
                    node.use_bias,
                )
            )
            return Conv2DOp(layer_index=layer_index)
        if isinstance(node, PoolingConfig):
            if node.pool_type == "max":
                layers.append(self.backend.max_pool2d(node.kernel_size, node.stride, node.padding))
                return MaxPoolOp(layer_index=layer_index)
            layers.append(self.backend.avg_pool2d(node.kernel_size, node.stride, node.padding))
            return AvgPoolOp(layer_index=layer_index)
        if node.kind == "Flatten":
            return FlattenOp()
        if node.kind == "Add":
            return AddOp()
        if node.kind == "Concat":
            return ConcatOp()
        raise ShapeMismatch(node_id, f"cannot compile node kind {node.kind!r}")

    def _check_activation(self, node_id: int, name: str) -> None:
        if is_known_activation(name):
            return
        if self.config.strict_activations:
            raise ShapeMismatch(node_id, f"unknown activation {name!r}")
        logger.warning("Node %d: unknown activation %r, passing values through", node_id, name)


def compile_genome(
    genome: Genome,
    device: str | None = None,
    *,
    config: CompilerConfig | None = None,
    backend: Backend | None = None,
) -> CompiledModel:
    config = config or CompilerConfig()
    if device is not None:
        config = CompilerConfig(
            device=device, strict_activations=config.strict_activations, seed=config.seed
        )
    return GraphCompiler(backend=backend, config=config).compile(genome)


def compile_text(
    text: str,
    device: str | None = None,
    *,
    config: CompilerConfig | None = None,
) -> CompiledModel:
    return compile_genome(parse_genome(text), device, config=config)
