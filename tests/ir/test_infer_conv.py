from __future__ import annotations

import pytest

from evoflow.errors import ShapeMismatch
from evoflow.ir import Conv2DConfig, PoolingConfig, infer_node_shape


def conv(filters: int, k: int, stride: int = 1, padding: int = 0, dilation: int = 1) -> Conv2DConfig:
    return Conv2DConfig(
        filters=filters, kernel_size=(k, k), stride=stride, padding=padding, dilation=dilation
    )


def test_conv2d_same_padding() -> None:
    assert infer_node_shape(1, conv(6, 3, padding=1), [(4, 32, 32)]) == (6, 32, 32)


def test_conv2d_stride_and_dilation() -> None:
    # h_out = floor((32 + 2*2 - 2*(5-1) - 1)/2) + 1 = floor(27/2) + 1 = 14
    assert infer_node_shape(1, conv(8, 5, stride=2, padding=2, dilation=2), [(3, 32, 32)]) == (8, 14, 14)


def test_conv2d_rectangular_kernel() -> None:
    node = Conv2DConfig(filters=2, kernel_size=(3, 1), stride=1, padding=0, dilation=1)
    assert infer_node_shape(1, node, [(1, 10, 10)]) == (2, 8, 10)


def test_conv2d_kernel_larger_than_input_raises() -> None:
    with pytest.raises(ShapeMismatch) as exc:
        infer_node_shape(1, conv(4, 5), [(3, 3, 3)])
    assert exc.value.code == "ESHAPE"


def test_conv2d_rejects_zero_stride_and_flat_input() -> None:
    with pytest.raises(ShapeMismatch):
        infer_node_shape(1, conv(4, 3, stride=0), [(3, 8, 8)])
    with pytest.raises(ShapeMismatch):
        infer_node_shape(1, conv(4, 3), [(64,)])


def test_pooling_halves_spatial_dims() -> None:
    node = PoolingConfig(pool_type="max", kernel_size=(2, 2), stride=2, padding=0)
    assert infer_node_shape(2, node, [(16, 32, 32)]) == (16, 16, 16)


def test_pooling_with_padding_and_odd_size() -> None:
    # floor((7 + 2 - 3)/2) + 1 = 4
    node = PoolingConfig(pool_type="avg", kernel_size=(3, 3), stride=2, padding=1)
    assert infer_node_shape(2, node, [(2, 7, 7)]) == (2, 4, 4)


def test_pooling_invalid_configs_raise() -> None:
    too_big = PoolingConfig(pool_type="max", kernel_size=(4, 4), stride=1, padding=0)
    with pytest.raises(ShapeMismatch):
        infer_node_shape(2, too_big, [(1, 3, 3)])
    over_padded = PoolingConfig(pool_type="max", kernel_size=(2, 2), stride=1, padding=2)
    with pytest.raises(ShapeMismatch):
        infer_node_shape(2, over_padded, [(1, 8, 8)])
    unknown = PoolingConfig(pool_type="min", kernel_size=(2, 2), stride=2, padding=0)
    with pytest.raises(ShapeMismatch):
        infer_node_shape(2, unknown, [(1, 8, 8)])
