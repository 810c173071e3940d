"""
Renderer for executed yamdr documents

Serializes the (segment, artifact) sequence produced by a render pass into
one of three outputs:

- rich HTML: prose through markdown-it, blocks replaced by their results
- rich markdown: plain markdown with results in place of blocks
- round-trip markdown: the source kept, results appended as annotations
"""

import base64
import html
import re
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from markdown_it import MarkdownIt
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexer import Lexer
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.util import ClassNotFound

from ..config import appsettings
from ..models.artifacts import (
    DataArtifact,
    DiagramArtifact,
    ErrorArtifact,
    ExecutedSegment,
    RenderOptions,
    ScriptArtifact,
    TableArtifact,
)
from ..models.blocks import BlockCategory, BlockType
from ..models.document import Document, FencedBlock, ProseSegment
from .annotations import annotation_is, annotation_lines, annotations_strip, table_lines
from .classifier import lines_split, markdown_parser
from .executors import ExecutorRegistry
from .interpolation import prose_substitute, span_annotate, span_text
from .log import LOG

STYLE = """
.content { max-width: 50em; margin: 0 auto; font-family: sans-serif; line-height: 1.5; }
.content table { border-collapse: collapse; margin: 1em 0; }
.content th, .content td { border: 1px solid #ccc; padding: 0.25em 0.75em; text-align: left; }
.script pre, .code pre { background: #f6f8fa; padding: 0.75em; overflow-x: auto; }
.script-output { color: #6a737d; }
.inline-script { font-family: monospace; background: #f6f8fa; padding: 0 0.2em; }
.block-title { font-weight: bold; margin-top: 1em; }
.graph svg { max-width: 100%; height: auto; }
.error { color: #b31d28; background: #ffeef0; padding: 0.5em; white-space: pre-wrap; }
details > summary { cursor: pointer; font-weight: bold; }
"""

Lines = List[Tuple[str, str]]


def script_lines(code: str, outputs: List[Tuple[Optional[int], str]]) -> Lines:
    """
    Interleave a script's code lines with its debug output

    Output recorded against line N follows line N; output without a known
    line follows the last code line.

    Returns:
        ("code", text) and ("output", text) pairs in display order
    """
    code_lines = code.split('\n')
    if code_lines and code_lines[-1] == '':
        code_lines.pop()

    by_line: Dict[Optional[int], List[str]] = defaultdict(list)
    for lineno, text in outputs:
        key = lineno if lineno is not None and 1 <= lineno <= len(code_lines) else None
        by_line[key].extend(text.split('\n'))

    lines: Lines = []
    for lineno, line in enumerate(code_lines, start=1):
        lines.append(('code', line))
        lines.extend(('output', text) for text in by_line.pop(lineno, []))
    lines.extend(('output', text) for text in by_line.pop(None, []))
    return lines


class Renderer:
    """
    Serializes an executed document

    Responsibilities:
    - Render prose with resolved interpolation spans
    - Render block artifacts (values, tables, diagrams, errors)
    - Preserve block sources and rewrite annotations for round trips
    - Assemble the styled HTML fragment or standalone document
    """

    def __init__(
        self,
        document: Document,
        md: Optional[MarkdownIt] = None,
        registry: Optional[ExecutorRegistry] = None,
    ) -> None:
        """
        Initialize renderer

        Args:
            document: The classified document (its tokenizer env resolves
                      link references in prose)
            md: Tokenizer used for prose HTML
            registry: Block specs, consulted for which blocks get annotated
        """
        self.document = document
        self.md = md or markdown_parser()
        self.registry = registry or ExecutorRegistry()
        self.placeholder_pattern = re.compile(
            re.escape(appsettings.placeholder_prefix) + r'\d+' + re.escape(appsettings.placeholder_suffix)
        )

    # ------------------------------------------------------------------ HTML

    def html_render(self, executed: List[ExecutedSegment], options: Optional[RenderOptions] = None) -> str:
        """Render the executed document as styled HTML"""
        content = ''.join(self.htmlSegment_render(segment) for segment in executed)
        LOG("HTML document assembled", level=2)
        return self.htmlDocument_build(content, options or RenderOptions())

    def htmlSegment_render(self, executed: ExecutedSegment) -> str:
        segment = executed.segment
        if isinstance(segment, ProseSegment):
            return self.proseHtml_render(executed)
        return self.blockHtml_render(segment, executed.artifact)

    def proseHtml_render(self, executed: ExecutedSegment) -> str:
        """
        Render prose through markdown-it with spans substituted

        Spans are swapped for placeholders before markdown rendering so the
        values are not interpreted as markdown, then placeholders are
        replaced with the escaped values.
        """
        segment = executed.segment
        if segment.kind == 'blank':
            return ''
        text = prose_substitute(
            segment.source, executed.spans,
            lambda index, item: appsettings.placeHolder_make(index),
        )
        rendered = self.md.render(text, self.document.env)

        def placeholder_expand(match: re.Match[str]) -> str:
            index = appsettings.spanIndex_extract(match.group(0))
            if index is None or index >= len(executed.spans):
                return match.group(0)
            item = executed.spans[index]
            if item.error is not None:
                return f'<span class="error">{html.escape(span_text(item))}</span>'
            return f'<span class="inline-script">{html.escape(item.value or "")}</span>'

        return self.placeholder_pattern.sub(placeholder_expand, rendered)

    def blockHtml_render(self, block: FencedBlock, artifact) -> str:
        """Render one fenced block as HTML"""
        spec = self.registry.spec_get(block.type_name)
        if spec is None:
            return self.md.render(block.source, self.document.env)

        header = block.header
        if header.hidden:
            return ''

        code = annotations_strip(block.body)
        if isinstance(artifact, ErrorArtifact):
            listing = self.scriptHtml_build(script_lines(code, [])) if spec.category == BlockCategory.SCRIPT else ''
            body = listing + f'<div class="error">{html.escape(artifact.error.marker())}</div>\n'
        elif isinstance(artifact, ScriptArtifact):
            lines = script_lines(code, artifact.outputs)
            if artifact.value is not None:
                lines.extend(('output', text) for text in artifact.value.split('\n'))
            body = self.scriptHtml_build(lines)
        elif isinstance(artifact, TableArtifact):
            body = self.tableHtml_build(artifact.header, artifact.rows)
        elif isinstance(artifact, DataArtifact):
            if header.hidden_title is None:
                return ''
            body = self.tableHtml_build(*artifact.table())
        elif isinstance(artifact, DiagramArtifact):
            body = self.diagramHtml_build(artifact)
        elif block.type_is(BlockType.CODE):
            body = self.codeHtml_build(block)
        elif spec.category == BlockCategory.SCRIPT and header.hidden_title is not None \
                and not block.type_is(BlockType.SCRIPT_GLOBALS):
            body = self.scriptHtml_build(script_lines(code, []))
        else:
            return ''

        if header.hidden_title is not None:
            return (f'<details><summary>{html.escape(header.hidden_title)}</summary>\n'
                    f'{body}</details>\n')
        if header.title is not None:
            body = f'<div class="block-title">{html.escape(header.title)}</div>\n' + body
        return body

    def scriptHtml_build(self, lines: Lines) -> str:
        marker = html.escape(appsettings.annotation_marker)
        parts = []
        for kind, text in lines:
            if kind == 'code':
                parts.append(f'<span class="script-code">{html.escape(text)}</span>')
            else:
                parts.append(f'<span class="script-output">{marker} {html.escape(text)}</span>')
        return '<div class="script"><pre>' + '\n'.join(parts) + '</pre></div>\n'

    def tableHtml_build(self, header: List[str], rows: List[List[str]]) -> str:
        if not header:
            return ''
        head = ''.join(f'<th>{html.escape(str(cell))}</th>' for cell in header)
        body = ''.join(
            '<tr>' + ''.join(f'<td>{html.escape(str(cell))}</td>' for cell in row) + '</tr>'
            for row in rows
        )
        return f'<table><thead><tr>{head}</tr></thead><tbody>{body}</tbody></table>\n'

    def diagramHtml_build(self, artifact: DiagramArtifact) -> str:
        if artifact.media_type == 'image/svg+xml':
            svg = artifact.image.decode('utf-8', 'replace')
            start = svg.find('<svg')
            return f'<div class="graph">{svg[start:] if start >= 0 else svg}</div>\n'
        encoded = base64.b64encode(artifact.image).decode('ascii')
        return f'<div class="graph"><img src="data:{artifact.media_type};base64,{encoded}"></div>\n'

    def codeHtml_build(self, block: FencedBlock) -> str:
        """Syntax highlighted listing for a Code block"""
        options = block.header.options
        language = options.get('language')
        filename = options.get('filename')
        numbered = bool(options.get('numbers', filename is not None))
        try:
            start = int(options.get('numbers_start_at', 1))
        except (TypeError, ValueError):
            start = 1

        # Get appropriate lexer
        lexer: Lexer
        try:
            lexer = get_lexer_by_name(str(language)) if language else TextLexer()
        except ClassNotFound:
            lexer = TextLexer()

        formatter = HtmlFormatter(
            style=appsettings.pygments_style,
            noclasses=True,
            linenos='inline' if numbered else False,
            linenostart=start,
            filename=str(filename) if filename else '',
        )
        return f'<div class="code">{highlight(block.body, lexer, formatter)}</div>\n'

    def htmlDocument_build(self, content: str, options: RenderOptions) -> str:
        """
        Wrap rendered content with the stylesheet, optionally as a full page

        Args:
            content: Rendered segments
            options: Standalone flag and extra head/body markup

        Returns:
            HTML fragment, or a complete document when options.standalone
        """
        fragment = (
            f'<style>{STYLE}</style>\n'
            f'{options.additional_body or ""}'
            f'<div class="content">\n{content}</div>\n'
        )
        if not options.standalone:
            return fragment

        return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
{options.additional_head or ""}
</head>
<body>
{fragment}</body>
</html>
"""

    # -------------------------------------------------------------- markdown

    def markdown_render(self, executed: List[ExecutedSegment]) -> str:
        """Render the executed document as plain markdown with results in place"""
        return ''.join(self.markdownSegment_render(segment) for segment in executed)

    def markdownSegment_render(self, executed: ExecutedSegment) -> str:
        segment = executed.segment
        if isinstance(segment, ProseSegment):
            return prose_substitute(segment.source, executed.spans, lambda index, item: span_text(item))
        return self.blockMarkdown_render(segment, executed.artifact)

    def blockMarkdown_render(self, block: FencedBlock, artifact) -> str:
        spec = self.registry.spec_get(block.type_name)
        if spec is None:
            return block.source

        header = block.header
        if header.hidden:
            return ''

        code = annotations_strip(block.body)
        if isinstance(artifact, ErrorArtifact):
            listing = self.fence_build('python', script_lines(code, [])) if spec.category == BlockCategory.SCRIPT else ''
            body = listing + f'**error: {artifact.error.marker()}**\n'
        elif isinstance(artifact, ScriptArtifact):
            lines = script_lines(code, artifact.outputs)
            if artifact.value is not None:
                lines.extend(('output', text) for text in artifact.value.split('\n'))
            body = self.fence_build('python', lines)
        elif isinstance(artifact, TableArtifact):
            body = '\n'.join(table_lines(artifact.header, artifact.rows)) + '\n' if artifact.header else ''
        elif isinstance(artifact, DataArtifact):
            if header.hidden_title is None:
                return ''
            body = '\n'.join(table_lines(*artifact.table())) + '\n'
        elif isinstance(artifact, DiagramArtifact):
            encoded = base64.b64encode(artifact.image).decode('ascii')
            body = f'![graph](data:{artifact.media_type};base64,{encoded})\n'
        elif block.type_is(BlockType.CODE):
            language = block.header.options.get('language') or ''
            body = self.fence_build(str(language), script_lines(block.body, []))
        elif spec.category == BlockCategory.SCRIPT and header.hidden_title is not None \
                and not block.type_is(BlockType.SCRIPT_GLOBALS):
            body = self.fence_build('python', script_lines(code, []))
        else:
            return ''

        if header.hidden_title is not None:
            return f'<details><summary>{html.escape(header.hidden_title)}</summary>\n\n{body}\n</details>\n'
        if header.title is not None:
            body = f'**{header.title}**\n\n' + body
        return body

    def fence_build(self, language: str, lines: Lines) -> str:
        marker = appsettings.annotation_marker
        content = ''.join(
            f'{text}\n' if kind == 'code' else f'{marker} {text}\n'
            for kind, text in lines
        )
        return f'```{language}\n{content}```\n'

    # ------------------------------------------------------------ round trip

    def roundTrip_render(self, executed: List[ExecutedSegment]) -> str:
        """Render the document source with fresh result annotations"""
        return ''.join(self.roundTrip_segment(segment) for segment in executed)

    def roundTrip_segment(self, executed: ExecutedSegment) -> str:
        segment = executed.segment
        if isinstance(segment, ProseSegment):
            return prose_substitute(segment.source, executed.spans, lambda index, item: span_annotate(item))

        spec = self.registry.spec_get(segment.type_name)
        if spec is None or not spec.annotated:
            return segment.source

        kept = [
            line for line in lines_split(segment.content)
            if not self.annotation_isIndented(line, segment.indent)
        ]
        lines = self.annotations_build(segment, annotations_strip(segment.body), executed.artifact)
        if lines is None:
            return segment.opening + ''.join(kept) + segment.closing

        ending = segment.opening[len(segment.opening.rstrip('\r\n')):] or '\n'
        prefix = ' ' * segment.indent
        source = iter(kept)
        result: List[str] = []
        for kind, text in lines:
            original = next(source, None) if kind == 'code' else None
            if original is not None:
                result.append(original)
                continue
            if result and not result[-1].endswith(('\n', '\r')):
                result[-1] += ending
            if kind == 'code':
                result.append(prefix + text + ending)
            else:
                result.extend(prefix + line + ending for line in annotation_lines(text))
        return segment.opening + ''.join(result) + segment.closing

    @staticmethod
    def annotation_isIndented(line: str, indent: int) -> bool:
        """Check a verbatim body line, allowing for the fence indentation"""
        spaces = len(line) - len(line.lstrip(' '))
        return annotation_is(line[min(spaces, indent):])

    def annotations_build(self, block: FencedBlock, code: str, artifact) -> Optional[Lines]:
        """
        Code lines of the stripped body interleaved with result annotations

        Returns:
            Display lines, or None when the block gets no annotations
        """
        lines: Lines
        if isinstance(artifact, ErrorArtifact):
            lines = script_lines(code, [])
            lines.append(('output', f"error: {artifact.error.marker()}"))
        elif isinstance(artifact, ScriptArtifact):
            lines = script_lines(code, artifact.outputs)
            if artifact.value is not None:
                lines.extend(('output', text) for text in artifact.value.split('\n'))
        elif isinstance(artifact, TableArtifact) and artifact.header:
            lines = script_lines(code, [])
            lines.extend(('output', text) for text in table_lines(artifact.header, artifact.rows))
        elif isinstance(artifact, DataArtifact) and not block.header.suppressed:
            lines = script_lines(code, [])
            lines.extend(('output', text) for text in table_lines(*artifact.table()))
        else:
            return None
        if all(kind == 'code' for kind, _ in lines):
            return None
        return lines
