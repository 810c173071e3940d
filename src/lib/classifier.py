"""
Block classifier

Splits a markdown document into an ordered, lossless sequence of segments.

The classifier operates in two phases:
1. Tokenizing: markdown-it locates the top-level block elements and their
   line ranges; the gaps between them become "blank" prose segments
2. Classifying: every top-level fence has its info string decoded as a
   header, every prose segment is scanned for interpolation spans

Key features:
- Concatenating the segment sources reproduces the input exactly
- Headers may be JSON objects or YAML flow mappings
- Malformed headers degrade the block to a plain fence
- Fences nested inside lists or quotes stay part of the prose

Example:
    >>> document = Classifier('Hi\\n\\n```{t: Script}\\n1 + 1\\n```\\n').classify()
    >>> [type(segment).__name__ for segment in document.segments]
    ['ProseSegment', 'ProseSegment', 'FencedBlock']
    >>> document.segments[2].header.type
    'Script'
"""

import ast
import re
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml
from markdown_it import MarkdownIt

from ..config import appsettings
from ..models.blocks import reserved_is
from ..models.document import (
    BlockHeader,
    Document,
    FencedBlock,
    InterpolationSpan,
    ProseSegment,
    Segment,
)
from .errors import DocumentSyntaxError, HeaderDecodeError
from .log import LOG

# Single-backtick code spans; spans are those whose content is `_..._`
SPAN_PATTERN = re.compile(r'(?<!`)`([^`\r\n]+)`(?!`)')

# One source line with its own ending (LF, CRLF or lone CR)
LINE_PATTERN = re.compile(r'[^\r\n]*(?:\r\n?|\n)|[^\r\n]+\Z')

# Prose kinds whose text is never scanned for spans
_LITERAL_KINDS = {'code_block', 'html_block', 'fence'}


def markdown_parser() -> MarkdownIt:
    """CommonMark tokenizer with the GFM extensions documents rely on"""
    return MarkdownIt('commonmark').enable('table').enable('strikethrough')


def text_decode(source: Union[str, bytes]) -> str:
    """
    Decode the input, line endings untouched

    Raises:
        DocumentSyntaxError: If the input is neither text nor UTF-8 bytes
    """
    if isinstance(source, (bytes, bytearray)):
        try:
            source = bytes(source).decode('utf-8')
        except UnicodeDecodeError as e:
            raise DocumentSyntaxError(f"document is not valid UTF-8: {e}") from e
    if not isinstance(source, str):
        raise DocumentSyntaxError(f"cannot read a document from {type(source).__name__}")
    return source


def lines_split(text: str) -> List[str]:
    """
    Split into lines, keeping each line's own ending

    Only LF, CRLF and lone CR end a line, matching the tokenizer's line
    numbering (str.splitlines would also break on form feeds and the like).

    Example:
        >>> lines_split("a\\r\\nb\\rc")
        ['a\\r\\n', 'b\\r', 'c']
    """
    return LINE_PATTERN.findall(text)


def directive_split(text: str) -> Tuple[str, Optional[str]]:
    """
    Separate a span expression from its trailing format directive

    The directive token may also appear inside the expression (in a string
    literal, say), so the split taken is the rightmost one whose left side
    is a complete expression.

    Example:
        >>> directive_split("total |> .2f")
        ('total ', '.2f')
        >>> directive_split("s.count('|>')")
        ("s.count('|>')", None)
    """
    token = appsettings.span_directive
    position = text.rfind(token)
    while position >= 0:
        left = text[:position]
        if left.strip():
            try:
                ast.parse(left.strip(), mode='eval')
            except (SyntaxError, ValueError):
                position = text.rfind(token, 0, position)
                continue
        return left, text[position + len(token):].strip() or None
    return text, None


def span_parse(content: str) -> Optional[Tuple[str, Optional[str], Optional[str]]]:
    """
    Decode the content of an inline code span

    Args:
        content: Text between the backticks

    Returns:
        (expression, directive, previous) for an interpolation span, None
        for ordinary inline code

    Example:
        >>> span_parse("_total |> .1f # > 27.5_")
        ('total', '.1f', '27.5')
        >>> span_parse("__init__") is None
        True
    """
    if len(content) <= 3 or not (content.startswith('_') and content.endswith('_')):
        return None
    inner = content[1:-1]
    if inner.startswith('_') or inner.endswith('_') or not inner.strip():
        return None

    expression, marker, previous = inner.partition(' ' + appsettings.annotation_marker)
    expression, directive = directive_split(expression)
    expression = expression.strip()
    if not expression:
        return None
    return (
        expression,
        directive,
        previous.strip() if marker else None,
    )


def spans_find(text: str) -> List[InterpolationSpan]:
    """Locate every interpolation span in a piece of prose"""
    spans = []
    for match in SPAN_PATTERN.finditer(text):
        parsed = span_parse(match.group(1))
        if parsed is None:
            continue
        expression, directive, previous = parsed
        spans.append(InterpolationSpan(
            start=match.start(),
            end=match.end(),
            expression=expression,
            directive=directive,
            previous=previous,
        ))
    return spans


class Classifier:
    """
    Classifier for yamdr documents

    Handles:
    - Decoding, with the original line endings kept
    - Top-level segmentation with exact source ranges
    - Fence header decoding (JSON or YAML)
    - Interpolation span discovery in prose
    """

    def __init__(self, source: Union[str, bytes], md: Optional[MarkdownIt] = None):
        """
        Initialize classifier with source text

        Args:
            source: Raw document text, or UTF-8 encoded bytes
            md: Tokenizer to use; a fresh markdown_parser() by default

        Attributes:
            text: Decoded source text
            lines: Source lines with their line endings
            offsets: Character offset of the start of every line, plus the end
            env: Tokenizer environment shared with later prose rendering
        """
        self.text = text_decode(source)
        self.md = md or markdown_parser()
        self.lines = lines_split(self.text)
        self.offsets = [0]
        for line in self.lines:
            self.offsets.append(self.offsets[-1] + len(line))
        self.env: Dict[str, Any] = {}

    def classify(self) -> Document:
        """
        Classify the whole document

        Returns:
            Document whose segment sources concatenate to the input text

        Raises:
            DocumentSyntaxError: If the tokenizer fails on the input
        """
        try:
            tokens = self.md.parse(self.text, self.env)
        except Exception as e:
            raise DocumentSyntaxError(f"cannot tokenize document: {e}") from e

        segments: List[Segment] = []
        cursor = 0
        for token in tokens:
            if token.level != 0 or token.map is None or token.nesting < 0:
                continue
            start, end = token.map
            if start < cursor:
                continue
            if start > cursor:
                segments.append(self.prose_make('blank', cursor, start))
            if token.type == 'fence':
                segments.append(self.fence_make(token, start, end))
            else:
                segments.append(self.prose_make(token.type.removesuffix('_open'), start, end))
            cursor = end

        if cursor < len(self.lines):
            segments.append(self.prose_make('blank', cursor, len(self.lines)))

        LOG(f"Classified {len(segments)} segments, "
            f"{sum(isinstance(s, FencedBlock) for s in segments)} fenced", level=2)
        return Document(segments=segments, env=self.env)

    def source_slice(self, start: int, end: int) -> str:
        return ''.join(self.lines[start:end])

    def prose_make(self, kind: str, start: int, end: int) -> ProseSegment:
        source = self.source_slice(start, end)
        spans = [] if kind in _LITERAL_KINDS else spans_find(source)
        return ProseSegment(
            kind=kind,
            source=source,
            lines=(start, end),
            offset=(self.offsets[start], self.offsets[end]),
            spans=spans,
        )

    def fence_make(self, token: Any, start: int, end: int) -> FencedBlock:
        """Build a FencedBlock from a top-level fence token"""
        opening = self.lines[start]
        closing = ''
        if end - 1 > start:
            fence_char = re.escape(token.markup[0])
            closing_pattern = rf'^ {{0,3}}{fence_char}{{{len(token.markup)},}}[ \t]*$'
            if re.match(closing_pattern, self.lines[end - 1].rstrip('\r\n')):
                closing = self.lines[end - 1]

        header: Optional[BlockHeader] = None
        header_error: Optional[str] = None
        try:
            header = self.header_decode(token.info)
        except HeaderDecodeError as e:
            header_error = str(e)
            LOG(f"Line {start + 1}: {header_error}; treating block as plain", level=2, severity="WARNING")

        return FencedBlock(
            info=token.info,
            header=header,
            body=token.content,
            opening=opening,
            closing=closing,
            indent=len(opening) - len(opening.lstrip(' ')),
            source=self.source_slice(start, end),
            lines=(start, end),
            offset=(self.offsets[start], self.offsets[end]),
            header_error=header_error,
        )

    def header_decode(self, info: str) -> Optional[BlockHeader]:
        """
        Decode a fence info string into a BlockHeader

        Args:
            info: Info string following the opening fence

        Returns:
            BlockHeader when the info string is a mapping with a ``t`` or
            ``type`` key, None for ordinary fences such as ```` ```python ````

        Raises:
            HeaderDecodeError: If the info string fails to parse
        """
        info = info.strip()
        if not info:
            return None
        try:
            decoded = yaml.safe_load(info)
        except yaml.YAMLError as e:
            reason = str(e).splitlines()[0] if str(e) else type(e).__name__
            raise HeaderDecodeError(info, reason) from e

        if not isinstance(decoded, dict):
            return None
        options = {str(key): value for key, value in decoded.items()}
        block_type = options.pop('t', None)
        long_type = options.pop('type', None)
        if block_type is None:
            block_type = long_type
        if block_type is None:
            return None

        for key in options:
            if not reserved_is(key):
                LOG(f"Header key '{key}' passed through to the {block_type} executor", level=3)
        return BlockHeader(type=str(block_type), options=options)
