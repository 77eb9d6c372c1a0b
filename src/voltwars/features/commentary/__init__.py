"""Commentary feature: static instruction table and optional remote generator."""

from .generator import CommentaryConfig, CommentaryGenerator, build_prompt
from .instructions import DEFAULT_INSTRUCTION, phase_instruction

__all__ = [
    "DEFAULT_INSTRUCTION",
    "CommentaryConfig",
    "CommentaryGenerator",
    "build_prompt",
    "phase_instruction",
]
