"""
Result artifacts and render results

An artifact is what executing a fenced block leaves behind for the renderer.
Artifacts live only as long as the render pass that produced them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from .document import InterpolationSpan, Segment
from ..lib.errors import BlockError, YamdrError


class RenderMode(str, Enum):
    """Rich output replaces blocks with results; round trip keeps the source"""
    RICH = "rich"
    ROUND_TRIP = "roundtrip"


class OutputFormat(str, Enum):
    """Sub-format of rich mode (round trip is always markdown)"""
    HTML = "html"
    MARKDOWN = "markdown"


@dataclass
class ScriptArtifact:
    """
    Output of a Script block

    Attributes:
        outputs: (line, text) pairs recorded by debug(); line is 1-based
                 within the block, None when it could not be determined
        value: Display string of the trailing expression, None if the
               block ended with a statement or the expression was None
    """
    outputs: List[Tuple[Optional[int], str]] = field(default_factory=list)
    value: Optional[str] = None


@dataclass
class TableArtifact:
    """Rows collected by a DynamicTable block; the first row is the header"""
    header: List[str]
    rows: List[List[str]]


@dataclass
class DataArtifact:
    """Records bound by a Data block, kept for the round-trip annotation"""
    name: str
    records: List[Dict[str, str]]

    def table(self) -> Tuple[List[str], List[List[str]]]:
        """
        Lay the records out as a table indexed from 1

        Columns are the sorted union of all record fields; missing fields
        render as empty cells.
        """
        fields = sorted({key for record in self.records for key in record})
        header = ['#'] + fields
        rows = [
            [str(index)] + [str(record.get(name, '')) for name in fields]
            for index, record in enumerate(self.records, start=1)
        ]
        return header, rows


@dataclass
class DiagramArtifact:
    """Image produced for a Graph, DynamicChart or Plotters block"""
    source: str
    image: bytes
    media_type: str = "image/svg+xml"


@dataclass
class ErrorArtifact:
    """A block-scoped failure shown in place of the block's result"""
    error: BlockError


Artifact = Union[ScriptArtifact, TableArtifact, DataArtifact, DiagramArtifact, ErrorArtifact]


@dataclass
class ExternalMetadata:
    """
    Header fields and raw body of an External block with ``meta`` set

    Returned to the caller next to the rendered text, never embedded in it.
    """
    head: Dict[str, object]
    body: str


@dataclass
class ResolvedSpan:
    """
    An interpolation span after evaluation

    Attributes:
        span: The span as found by the classifier
        value: Display string, None when evaluation failed
        error: The failure, None on success
    """
    span: InterpolationSpan
    value: Optional[str] = None
    error: Optional[YamdrError] = None

    @property
    def changed(self) -> bool:
        """True when an earlier annotation disagrees with the new value"""
        if self.span.previous is None or self.value is None:
            return False
        return self.span.previous != self.value


@dataclass
class ExecutedSegment:
    """A segment together with what executing it produced"""
    segment: Segment
    artifact: Optional[Artifact] = None
    spans: List[ResolvedSpan] = field(default_factory=list)


@dataclass
class RenderOptions:
    """
    Caller-facing options of a render invocation

    Attributes:
        standalone: Wrap HTML output in a complete <html> document
        additional_head: Extra markup for <head> (standalone HTML only)
        additional_body: Extra markup placed before the content (HTML only)
    """
    standalone: bool = False
    additional_head: Optional[str] = None
    additional_body: Optional[str] = None


@dataclass
class SpanChange:
    """A span whose freshly computed value differs from its annotation"""
    expression: str
    previous: str
    current: str


@dataclass
class RenderResult:
    """
    Output of one render invocation

    Attributes:
        text: Rendered document
        external: ExternalMetadata keyed by declared name or segment position
        errors: Block-scoped errors captured during the pass, in order
        span_changes: Interpolations whose value moved since the last round trip
    """
    text: str
    external: Dict[Union[str, int], ExternalMetadata] = field(default_factory=dict)
    errors: List[BlockError] = field(default_factory=list)
    span_changes: List[SpanChange] = field(default_factory=list)


@dataclass
class MarkdownBlock:
    """One top-level element of a document, rendered both ways"""
    id: int
    html: str
    markdown: str
    external: Optional[ExternalMetadata] = None


@dataclass
class DocumentBlocks:
    """
    A document split into top-level elements

    Joining every ``markdown`` field yields the round-trip rendering of the
    whole document; joining every ``html`` field yields the rich HTML body.
    """
    css: str
    blocks: List[MarkdownBlock]

    def rerender(self) -> None:
        """
        Render the concatenated markdown of all blocks again

        Useful after editing individual blocks: the edited markdown is
        re-split, so a block may turn into several.
        """
        from ..lib.engine import render_blocks

        document = ''.join(block.markdown for block in self.blocks)
        rerendered = render_blocks(document)
        self.css = rerendered.css
        self.blocks = rerendered.blocks
