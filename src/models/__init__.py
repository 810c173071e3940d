"""
Models package for yamdr

Contains data structures and type definitions for the render pipeline.
"""

from .state import ProgramState, pipeline
from .blocks import BlockSpec, BlockCategory, BlockType, RESERVED_HEADER_KEYS
from .document import BlockHeader, Document, FencedBlock, InterpolationSpan, ProseSegment
from .artifacts import (
    DocumentBlocks,
    ExternalMetadata,
    MarkdownBlock,
    OutputFormat,
    RenderMode,
    RenderOptions,
    RenderResult,
)

__all__ = [
    "ProgramState",
    "pipeline",
    "BlockSpec",
    "BlockCategory",
    "BlockType",
    "RESERVED_HEADER_KEYS",
    "BlockHeader",
    "Document",
    "FencedBlock",
    "InterpolationSpan",
    "ProseSegment",
    "DocumentBlocks",
    "ExternalMetadata",
    "MarkdownBlock",
    "OutputFormat",
    "RenderMode",
    "RenderOptions",
    "RenderResult",
]
