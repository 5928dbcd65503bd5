from __future__ import annotations

from collections.abc import Callable, Sequence
from math import prod
from typing import Any

from evoflow.errors import ShapeMismatch
from evoflow.ir.graph import Genome, GraphValidator, NodeConfig, Shape

ShapeInferFn = Callable[[int, Any, Sequence[Shape]], Shape]

_REGISTRY: dict[str, ShapeInferFn] = {}


def register_shape_inference(kind: str) -> Callable[[ShapeInferFn], ShapeInferFn]:
    def wrapper(fn: ShapeInferFn) -> ShapeInferFn:
        _REGISTRY[kind] = fn
        return fn

    return wrapper


def external_to_internal(node_id: int, dims: Sequence[int]) -> Shape:
    """Convert a declared [H, W, C] / [F] shape into (C, H, W) / (F,)."""
    if any(d <= 0 for d in dims):
        raise ShapeMismatch(node_id, f"shape dims must be positive, got {list(dims)}")
    if len(dims) == 3:
        h, w, c = dims
        return (c, h, w)
    if len(dims) == 1:
        return (dims[0],)
    raise ShapeMismatch(
        node_id, f"only 1-d or 3-d (H, W, C) shapes are supported, got {list(dims)}"
    )


def _single_input(node_id: int, kind: str, inputs: Sequence[Shape], rank: int) -> Shape:
    if len(inputs) != 1:
        raise ShapeMismatch(node_id, f"{kind} expects exactly 1 input, got {len(inputs)}")
    shape = inputs[0]
    if len(shape) != rank:
        raise ShapeMismatch(
            node_id, f"{kind} expects a rank-{rank} input, got shape {shape}"
        )
    return shape


def _require_at_least(node_id: int, name: str, value: int, minimum: int) -> None:
    if value < minimum:
        raise ShapeMismatch(node_id, f"{name} must be >= {minimum}, got {value}")


def _conv2d_out_dim(node_id: int, axis: str, input_dim: int, k: int, s: int, d: int, p: int) -> int:
    # floor((in + 2*pad - dilation*(k - 1) - 1)/stride) + 1
    span = input_dim + 2 * p - d * (k - 1) - 1
    if span < 0:
        raise ShapeMismatch(
            node_id,
            f"kernel {k} (dilation {d}) does not fit {axis}={input_dim} with padding {p}",
        )
    return span // s + 1


def _pool2d_out_dim(node_id: int, axis: str, input_dim: int, k: int, s: int, p: int) -> int:
    # floor((in + 2*pad - kernel)/stride) + 1
    span = input_dim + 2 * p - k
    if span < 0:
        raise ShapeMismatch(
            node_id, f"pool kernel {k} does not fit {axis}={input_dim} with padding {p}"
        )
    return span // s + 1


@register_shape_inference("Input")
def infer_input(node_id: int, node: Any, inputs: Sequence[Shape]) -> Shape:
    if inputs:
        raise ShapeMismatch(node_id, "Input node cannot have predecessors")
    return external_to_internal(node_id, node.output_shape)


@register_shape_inference("Output")
def infer_output(node_id: int, node: Any, inputs: Sequence[Shape]) -> Shape:
    if len(inputs) != 1:
        raise ShapeMismatch(node_id, f"Output expects exactly 1 input, got {len(inputs)}")
    actual = inputs[0]
    if not node.input_shape:
        return actual
    declared = external_to_internal(node_id, node.input_shape)
    if declared != actual:
        raise ShapeMismatch(
            node_id, f"Output declares shape {declared} but receives {actual}"
        )
    return declared


@register_shape_inference("Dense")
def infer_dense(node_id: int, node: Any, inputs: Sequence[Shape]) -> Shape:
    _single_input(node_id, "Dense", inputs, rank=1)
    _require_at_least(node_id, "units", node.units, 1)
    return (node.units,)


@register_shape_inference("Conv2D")
def infer_conv2d(node_id: int, node: Any, inputs: Sequence[Shape]) -> Shape:
    _, h_in, w_in = _single_input(node_id, "Conv2D", inputs, rank=3)
    k_h, k_w = node.kernel_size
    _require_at_least(node_id, "filters", node.filters, 1)
    _require_at_least(node_id, "kernel height", k_h, 1)
    _require_at_least(node_id, "kernel width", k_w, 1)
    _require_at_least(node_id, "stride", node.stride, 1)
    _require_at_least(node_id, "dilation", node.dilation, 1)
    _require_at_least(node_id, "padding", node.padding, 0)

    h_out = _conv2d_out_dim(node_id, "height", h_in, k_h, node.stride, node.dilation, node.padding)
    w_out = _conv2d_out_dim(node_id, "width", w_in, k_w, node.stride, node.dilation, node.padding)
    return (node.filters, h_out, w_out)


@register_shape_inference("Pooling")
def infer_pooling(node_id: int, node: Any, inputs: Sequence[Shape]) -> Shape:
    c_in, h_in, w_in = _single_input(node_id, "Pooling", inputs, rank=3)
    if node.pool_type not in ("max", "avg"):
        raise ShapeMismatch(node_id, f"unknown pool_type {node.pool_type!r}")
    k_h, k_w = node.kernel_size
    _require_at_least(node_id, "kernel height", k_h, 1)
    _require_at_least(node_id, "kernel width", k_w, 1)
    _require_at_least(node_id, "stride", node.stride, 1)
    _require_at_least(node_id, "padding", node.padding, 0)
    if 2 * node.padding > min(k_h, k_w):
        raise ShapeMismatch(
            node_id,
            f"pool padding {node.padding} exceeds half of kernel {node.kernel_size}",
        )

    h_out = _pool2d_out_dim(node_id, "height", h_in, k_h, node.stride, node.padding)
    w_out = _pool2d_out_dim(node_id, "width", w_in, k_w, node.stride, node.padding)
    return (c_in, h_out, w_out)


@register_shape_inference("Flatten")
def infer_flatten(node_id: int, node: Any, inputs: Sequence[Shape]) -> Shape:
    shape = _single_input(node_id, "Flatten", inputs, rank=3)
    return (prod(shape),)


@register_shape_inference("Add")
def infer_add(node_id: int, node: Any, inputs: Sequence[Shape]) -> Shape:
    if not inputs:
        raise ShapeMismatch(node_id, "Add expects at least 1 input")
    first = inputs[0]
    for shape in inputs[1:]:
        if shape != first:
            raise ShapeMismatch(
                node_id, f"Add requires identical shapes, got {list(inputs)}"
            )
    return first


@register_shape_inference("Concat")
def infer_concat(node_id: int, node: Any, inputs: Sequence[Shape]) -> Shape:
    if not inputs:
        raise ShapeMismatch(node_id, "Concat expects at least 1 input")
    rank = len(inputs[0])
    if any(len(s) != rank for s in inputs):
        raise ShapeMismatch(node_id, f"Concat inputs must share rank, got {list(inputs)}")
    # axis 0 of a per-sample shape is the channel / feature axis
    rest = inputs[0][1:]
    for shape in inputs[1:]:
        if shape[1:] != rest:
            raise ShapeMismatch(
                node_id,
                f"Concat inputs must agree on non-channel dims, got {list(inputs)}",
            )
    channels = sum(s[0] for s in inputs)
    return (channels, *rest)


def infer_node_shape(node_id: int, node: NodeConfig, inputs: Sequence[Shape]) -> Shape:
    fn = _REGISTRY.get(node.kind)
    if fn is None:
        raise ShapeMismatch(node_id, f"no shape inference for node kind {node.kind!r}")
    return fn(node_id, node, inputs)


def infer_genome(genome: Genome) -> list[Shape]:
    """
    Run shape inference over the genome in topological order and return the
    per-sample output shape of every node, indexed by node id.
    """
    order = GraphValidator(genome).topological_order()
    preds = genome.predecessors()
    shapes: list[Shape] = [() for _ in genome.nodes]
    for node_id in order:
        inputs = [shapes[p] for p in preds[node_id]]
        shapes[node_id] = infer_node_shape(node_id, genome.nodes[node_id], inputs)
    return shapes
