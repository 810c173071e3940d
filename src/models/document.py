"""
Document data models

Type-safe structures produced by the classifier and consumed by the render
pass and the renderer.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from .blocks import BlockType


@dataclass
class BlockHeader:
    """
    Decoded metadata from a fence info string

    Attributes:
        type: Block type discriminator (header key ``t`` or ``type``)
        options: Every other header key, unrecognized ones included

    Example:
        For the info string '{"t": "Script", "hidden_title": "setup"}':
        BlockHeader(type="Script", options={"hidden_title": "setup"})
    """
    type: str
    options: Dict[str, Any] = field(default_factory=dict)

    @property
    def hidden(self) -> bool:
        return bool(self.options.get('hidden', False))

    @property
    def hidden_title(self) -> Optional[str]:
        title = self.options.get('hidden_title')
        return None if title is None else str(title)

    @property
    def meta(self) -> bool:
        return bool(self.options.get('meta', False))

    @property
    def name(self) -> Optional[str]:
        name = self.options.get('name')
        return None if name is None else str(name)

    @property
    def title(self) -> Optional[str]:
        title = self.options.get('title')
        return None if title is None else str(title)

    @property
    def suppressed(self) -> bool:
        """True when the block runs for its side effects only"""
        return self.hidden or self.hidden_title is not None


@dataclass
class InterpolationSpan:
    """
    One inline `` `_expression_` `` span inside a prose segment

    Attributes:
        start: Offset of the opening backtick within the segment source
        end: Offset just past the closing backtick
        expression: Script expression to evaluate
        directive: Optional format spec following the directive token
        previous: Value annotated by an earlier round-trip render, if any

    Example:
        For the prose "Total: `_total |> .1f # > 27.5_`":
        InterpolationSpan(start=7, end=33, expression="total",
                          directive=".1f", previous="27.5")
    """
    start: int
    end: int
    expression: str
    directive: Optional[str] = None
    previous: Optional[str] = None


@dataclass
class ProseSegment:
    """
    A run of markdown outside any top-level fenced block

    Attributes:
        kind: Markdown element kind ("paragraph", "heading", "bullet_list",
              "code_block", ...) or "blank" for gaps between elements
        source: Exact source text of the segment
        lines: Half-open line range [start, end) in the document
        offset: Half-open character range [start, end) in the document
        spans: Interpolation spans found in the source
    """
    kind: str
    source: str
    lines: Tuple[int, int]
    offset: Tuple[int, int]
    spans: List[InterpolationSpan] = field(default_factory=list)


@dataclass
class FencedBlock:
    """
    A top-level fenced code block

    Attributes:
        info: Raw info string after the opening fence
        header: Decoded header, None for plain or undecodable fences
        body: Block content with the fence indentation removed
        opening: Opening fence line, verbatim
        closing: Closing fence line, verbatim ("" if the fence runs to EOF)
        indent: Indentation of the opening fence
        source: Exact source text of the block
        lines: Half-open line range [start, end) in the document
        offset: Half-open character range [start, end) in the document
        header_error: Decode failure message when the header was malformed
    """
    info: str
    header: Optional[BlockHeader]
    body: str
    opening: str
    closing: str
    indent: int
    source: str
    lines: Tuple[int, int]
    offset: Tuple[int, int]
    header_error: Optional[str] = None

    @property
    def content(self) -> str:
        """Source between the fence lines, indentation and line endings kept"""
        return self.source[len(self.opening):len(self.source) - len(self.closing)]

    @property
    def type_name(self) -> Optional[str]:
        return self.header.type if self.header else None

    def type_is(self, block_type: BlockType) -> bool:
        return self.type_name == block_type.value


Segment = Union[ProseSegment, FencedBlock]


@dataclass
class Document:
    """
    Ordered, lossless sequence of segments

    Attributes:
        segments: Prose segments and fenced blocks in source order
        env: Tokenizer environment (link reference definitions), shared by
             every markdown render of this document's prose
    """
    segments: List[Segment]
    env: Dict[str, Any] = field(default_factory=dict)

    @property
    def source(self) -> str:
        """Concatenation of all segment sources (the input, byte for byte)"""
        return ''.join(segment.source for segment in self.segments)

    def blocks(self) -> List[FencedBlock]:
        return [segment for segment in self.segments if isinstance(segment, FencedBlock)]
