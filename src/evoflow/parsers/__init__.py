"""Readers and writers for the genome text format."""

from .base import Parser
from .genome import GenomeParser, parse_genome, serialize_genome

__all__ = ["Parser", "GenomeParser", "parse_genome", "serialize_genome"]
