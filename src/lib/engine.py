"""
Render pass and the caller-facing rendering API

A RenderPass owns the evaluation context for exactly one walk over a
document. It visits segments in source order: prose spans are resolved
against the context as it stands at that point, typed blocks go to their
executor. A failing block becomes an error artifact and the walk goes on.

Usage:
    from yamdr.lib.engine import render_markdown
    from yamdr.models.artifacts import RenderMode

    result = render_markdown(text, mode=RenderMode.ROUND_TRIP)
    print(result.text)
"""

from typing import Dict, List, Optional, Union

from ..config import appsettings
from ..models.artifacts import (
    DocumentBlocks,
    ErrorArtifact,
    ExecutedSegment,
    ExternalMetadata,
    MarkdownBlock,
    OutputFormat,
    RenderMode,
    RenderOptions,
    RenderResult,
    SpanChange,
)
from ..models.blocks import BlockType
from ..models.document import Document, FencedBlock, ProseSegment
from .classifier import Classifier, markdown_parser
from .chart import ChartRenderer, matplotlib_render
from .context import EvaluationContext
from .diagram import DiagramRenderer, graphviz_render
from .errors import BlockError
from .executors import ExecutorRegistry
from .interpolation import InterpolationResolver
from .log import LOG
from .renderer import STYLE, Renderer


class RenderPass:
    """
    One linear execution of a document

    Attributes:
        document: Classified document being executed
        mode: Rich or round-trip; diagrams and charts are only drawn in rich mode
        context: Evaluation context created for this pass
        registry: Executors by block type
        diagram_renderer: Callable turning DOT source into image bytes
        chart_renderer: Callable turning a LineChart into SVG bytes
        external_metadata: External blocks collected so far
        errors: Block errors captured so far, in document order
        segment_index: Index of the segment being executed
        strict: Re-raise the first block error instead of capturing it
    """

    def __init__(
        self,
        document: Document,
        mode: RenderMode = RenderMode.RICH,
        registry: Optional[ExecutorRegistry] = None,
        diagram_renderer: Optional[DiagramRenderer] = None,
        strict: Optional[bool] = None,
        chart_renderer: Optional[ChartRenderer] = None,
    ) -> None:
        self.document = document
        self.mode = mode
        self.context = EvaluationContext()
        self.resolver = InterpolationResolver(self.context)
        self.registry = registry or ExecutorRegistry()
        self.diagram_renderer = diagram_renderer or graphviz_render
        self.chart_renderer = chart_renderer or matplotlib_render
        self.external_metadata: Dict[Union[str, int], ExternalMetadata] = {}
        self.errors: List[BlockError] = []
        self.segment_index = 0
        self.strict = appsettings.strict_mode if strict is None else strict

    def run(self) -> List[ExecutedSegment]:
        """
        Execute every segment in document order

        Returns:
            One ExecutedSegment per document segment

        Raises:
            BlockError: Only in strict mode, for the first failing block
        """
        LOG(f"Starting {self.mode.value} pass over {len(self.document.segments)} segments", level=2)
        executed = []
        for index, segment in enumerate(self.document.segments):
            self.segment_index = index
            if isinstance(segment, ProseSegment):
                executed.append(ExecutedSegment(segment, spans=self.resolver.segment_resolve(segment)))
            else:
                executed.append(ExecutedSegment(segment, artifact=self.block_execute(segment)))
        LOG(f"Pass finished with {len(self.errors)} block error(s)", level=2)
        return executed

    def block_execute(self, block: FencedBlock):
        """Run one fenced block, capturing block-scoped failures"""
        executor = self.registry.get(block.type_name)
        if executor is None:
            if block.header is not None:
                LOG(f"Line {block.lines[0] + 1}: unknown block type '{block.type_name}', passing through", level=2)
            return None

        LOG(f"Line {block.lines[0] + 1}: executing {block.type_name} block", level=3)
        try:
            return executor(block, self)
        except BlockError as e:
            e.segment_index = self.segment_index
            LOG(f"Line {block.lines[0] + 1}: {block.type_name} block failed: {e.marker()}",
                level=1, severity="WARNING")
            self.errors.append(e)
            if self.strict:
                raise
            return ErrorArtifact(error=e)


def span_changes_collect(executed: List[ExecutedSegment]) -> List[SpanChange]:
    return [
        SpanChange(expression=item.span.expression, previous=item.span.previous, current=item.value)
        for segment in executed
        for item in segment.spans
        if item.changed
    ]


def render_markdown(
    source: Union[str, bytes],
    mode: RenderMode = RenderMode.RICH,
    output_format: OutputFormat = OutputFormat.HTML,
    options: Optional[RenderOptions] = None,
    diagram_renderer: Optional[DiagramRenderer] = None,
    chart_renderer: Optional[ChartRenderer] = None,
) -> RenderResult:
    """
    Execute a document and render it

    Args:
        source: Document text (or UTF-8 bytes)
        mode: RICH to show results in place of blocks, ROUND_TRIP to keep
              the source and append results as annotations
        output_format: HTML or MARKDOWN for rich mode; round trip always
                       produces markdown
        options: Standalone HTML document and extra head/body markup
        diagram_renderer: Replaces Graphviz for Graph blocks
        chart_renderer: Replaces matplotlib for DynamicChart and Plotters blocks

    Returns:
        RenderResult with the text, External metadata, captured block
        errors and changed spans

    Raises:
        DocumentSyntaxError: If the document cannot be decoded or tokenized
    """
    mode = RenderMode(mode)
    output_format = OutputFormat.MARKDOWN if mode is RenderMode.ROUND_TRIP else OutputFormat(output_format)
    options = options or RenderOptions()

    md = markdown_parser()
    document = Classifier(source, md=md).classify()
    run = RenderPass(document, mode=mode, diagram_renderer=diagram_renderer, chart_renderer=chart_renderer)
    executed = run.run()

    renderer = Renderer(document, md=md)
    if mode is RenderMode.ROUND_TRIP:
        text = renderer.roundTrip_render(executed)
    elif output_format is OutputFormat.MARKDOWN:
        text = renderer.markdown_render(executed)
    else:
        text = renderer.html_render(executed, options)

    return RenderResult(
        text=text,
        external=run.external_metadata,
        errors=run.errors,
        span_changes=span_changes_collect(executed),
    )


def render_blocks(
    source: Union[str, bytes],
    diagram_renderer: Optional[DiagramRenderer] = None,
    chart_renderer: Optional[ChartRenderer] = None,
) -> DocumentBlocks:
    """
    Split a document into top-level elements rendered both ways

    Runs one rich HTML pass and one round-trip pass. Blank gaps are folded
    into the element before them (a leading gap into the first element),
    so joining the ``markdown`` fields gives the round-trip document.

    Returns:
        DocumentBlocks with the stylesheet and one MarkdownBlock per element
    """
    md = markdown_parser()
    document = Classifier(source, md=md).classify()
    renderer = Renderer(document, md=md)

    renderers = {'diagram_renderer': diagram_renderer, 'chart_renderer': chart_renderer}
    rich_pass = RenderPass(document, mode=RenderMode.RICH, **renderers)
    rich = rich_pass.run()
    trip = RenderPass(document, mode=RenderMode.ROUND_TRIP, **renderers).run()

    blocks: List[MarkdownBlock] = []
    pending = ''
    for index, (rich_segment, trip_segment) in enumerate(zip(rich, trip)):
        markdown = renderer.roundTrip_segment(trip_segment)
        segment = rich_segment.segment
        if isinstance(segment, ProseSegment) and segment.kind == 'blank':
            if blocks:
                blocks[-1].markdown += markdown
            else:
                pending += markdown
            continue

        external = None
        if isinstance(segment, FencedBlock) and segment.type_is(BlockType.EXTERNAL):
            key = segment.header.name if segment.header and segment.header.name is not None else index
            external = rich_pass.external_metadata.get(key)
        blocks.append(MarkdownBlock(
            id=len(blocks),
            html=renderer.htmlSegment_render(rich_segment),
            markdown=pending + markdown,
            external=external,
        ))
        pending = ''

    if pending:
        blocks.append(MarkdownBlock(id=len(blocks), html='', markdown=pending))

    LOG(f"Split document into {len(blocks)} blocks", level=2)
    return DocumentBlocks(css=STYLE, blocks=blocks)
