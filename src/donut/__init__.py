"""Character-art torus renderer for the terminal."""

from .engine import DEFAULT_PALETTE, FrameMatrix, FrameRenderer, TorusConfig, compose_matrix
from .terminal import TerminalController

__all__ = [
    "DEFAULT_PALETTE",
    "FrameMatrix",
    "FrameRenderer",
    "TorusConfig",
    "compose_matrix",
    "TerminalController",
]
