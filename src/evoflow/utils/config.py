from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

_TRUE = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class CompilerConfig:
    """Options for compiling a genome into a CompiledModel.

    Attributes:
        device: torch device string the layers are allocated on.
        strict_activations: reject unknown Dense activation names at compile
            time instead of passing values through unchanged.
        seed: when set, parameter initialisation is deterministic.
    """

    device: str = "cpu"
    strict_activations: bool = False
    seed: int | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> CompilerConfig:
        env = os.environ if environ is None else environ
        seed = env.get("EVOFLOW_SEED")
        return cls(
            device=env.get("EVOFLOW_DEVICE", cls.device),
            strict_activations=env.get("EVOFLOW_STRICT_ACTIVATIONS", "").lower() in _TRUE,
            seed=int(seed) if seed else None,
        )
