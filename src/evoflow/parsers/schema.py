"""Typed schema for one genome node line.

Each node kind is a pydantic model tagged by its `node` literal; a line is
validated through the discriminated `GenomeNode` union and then lowered to
the frozen IR config the compiler consumes.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    TypeAdapter,
    field_validator,
)

from evoflow.ir.graph import (
    AddConfig,
    ConcatConfig,
    Conv2DConfig,
    DenseConfig,
    FlattenConfig,
    InputConfig,
    NodeConfig,
    OutputConfig,
    PoolingConfig,
)

NonNegInt = Annotated[StrictInt, Field(ge=0)]


class Params(BaseModel):
    # the editor writes informational keys (e.g. input_shape on Add)
    model_config = ConfigDict(extra="ignore", frozen=True)


class EmptyParams(Params):
    pass


class InputParams(Params):
    output_shape: list[NonNegInt]


class OutputParams(Params):
    input_shape: list[NonNegInt] = Field(default_factory=list)


class DenseParams(Params):
    units: NonNegInt
    activation: StrictStr
    use_bias: StrictBool


class KernelParams(Params):
    kernel_size: tuple[NonNegInt, NonNegInt]

    @field_validator("kernel_size", mode="before")
    @classmethod
    def expand_kernel_forms(cls, value: Any) -> Any:
        """Accept [k], [kh, kw] or the editor's {"h": kh, "w": kw}."""
        if isinstance(value, dict):
            return [value.get("h"), value.get("w")]
        if isinstance(value, list) and len(value) == 1:
            return [value[0], value[0]]
        return value


class Conv2DParams(KernelParams):
    filters: NonNegInt
    stride: NonNegInt
    padding: NonNegInt
    dilation: NonNegInt
    use_bias: StrictBool


class PoolingParams(KernelParams):
    pool_type: Literal["max", "avg"]
    stride: NonNegInt
    padding: NonNegInt


class InputNode(BaseModel):
    node: Literal["Input"]
    params: InputParams

    def to_config(self) -> NodeConfig:
        return InputConfig(output_shape=tuple(self.params.output_shape))


class OutputNode(BaseModel):
    node: Literal["Output"]
    params: OutputParams = Field(default_factory=OutputParams)

    def to_config(self) -> NodeConfig:
        return OutputConfig(input_shape=tuple(self.params.input_shape))


class DenseNode(BaseModel):
    node: Literal["Dense"]
    params: DenseParams

    def to_config(self) -> NodeConfig:
        p = self.params
        return DenseConfig(units=p.units, activation=p.activation, use_bias=p.use_bias)


class Conv2DNode(BaseModel):
    node: Literal["Conv2D"]
    params: Conv2DParams

    def to_config(self) -> NodeConfig:
        p = self.params
        return Conv2DConfig(
            filters=p.filters,
            kernel_size=p.kernel_size,
            stride=p.stride,
            padding=p.padding,
            dilation=p.dilation,
            use_bias=p.use_bias,
        )


class PoolingNode(BaseModel):
    node: Literal["Pooling"]
    params: PoolingParams

    def to_config(self) -> NodeConfig:
        p = self.params
        return PoolingConfig(
            pool_type=p.pool_type, kernel_size=p.kernel_size, stride=p.stride, padding=p.padding
        )


class FlattenNode(BaseModel):
    node: Literal["Flatten"]
    params: EmptyParams = Field(default_factory=EmptyParams)

    def to_config(self) -> NodeConfig:
        return FlattenConfig()


class AddNode(BaseModel):
    node: Literal["Add"]
    params: EmptyParams = Field(default_factory=EmptyParams)

    def to_config(self) -> NodeConfig:
        return AddConfig()


class ConcatNode(BaseModel):
    node: Literal["Concat"]
    params: EmptyParams = Field(default_factory=EmptyParams)

    def to_config(self) -> NodeConfig:
        return ConcatConfig()


GenomeNode = Annotated[
    Union[
        InputNode,
        OutputNode,
        DenseNode,
        Conv2DNode,
        PoolingNode,
        FlattenNode,
        AddNode,
        ConcatNode,
    ],
    Field(discriminator="node"),
]

NODE_ADAPTER: TypeAdapter[GenomeNode] = TypeAdapter(GenomeNode)
