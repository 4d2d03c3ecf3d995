"""Standard backends and backend compositions."""

from docmd.backends.chain import ChainBackend
from docmd.backends.multiplex import CommandMultiplexBackend, MultiplexBackend
from docmd.backends.standard import StandardBackend

__all__ = [
    "ChainBackend",
    "CommandMultiplexBackend",
    "MultiplexBackend",
    "StandardBackend",
]
