from __future__ import annotations

from abc import ABC, abstractmethod

from evoflow.ir.graph import Genome


class Parser(ABC):
    """Parser interface for turning a serialized genome into the Genome IR."""

    @abstractmethod
    def parse(self, text: str) -> Genome:
        """Convert the given genome text into a Genome."""
        raise NotImplementedError
