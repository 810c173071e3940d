"""
Interpolation resolver

Evaluates the inline `` `_expression_` `` spans of a prose segment against
the evaluation context as it stands when the render pass reaches that
segment, and rewrites the prose with the results.
"""

from typing import Callable, List

from ..config import appsettings
from ..models.artifacts import ResolvedSpan
from ..models.document import InterpolationSpan, ProseSegment
from .context import EvaluationContext
from .errors import ScriptError, YamdrError
from .log import LOG
from .values import value_display


class InterpolationResolver:
    """Resolve the spans of prose segments against one evaluation context"""

    def __init__(self, context: EvaluationContext) -> None:
        self.context = context

    def segment_resolve(self, segment: ProseSegment) -> List[ResolvedSpan]:
        return [self.span_resolve(span) for span in segment.spans]

    def span_resolve(self, span: InterpolationSpan) -> ResolvedSpan:
        """
        Evaluate one span

        Failures are kept on the result rather than raised, so a broken
        span only affects its own text.
        """
        try:
            value = self.context.eval(span.expression, filename="<span>")
            text = value_format(value, span.directive)
        except YamdrError as e:
            LOG(f"Span `_{span.expression}_` failed: {e}", level=2, severity="WARNING")
            return ResolvedSpan(span=span, error=e)

        resolved = ResolvedSpan(span=span, value=text)
        if resolved.changed:
            LOG(f"Span `_{span.expression}_` changed: {span.previous} -> {text}", level=1, severity="INFO")
        else:
            LOG(f"Span `_{span.expression}_` resolved to {text}", level=3)
        return resolved


def value_format(value: object, directive: str | None) -> str:
    """
    Display text of a span value, applying the optional format spec

    Raises:
        ScriptError: If the value does not support the format spec
    """
    if directive is None:
        return value_display(value)
    try:
        return format(value, directive)
    except (TypeError, ValueError) as e:
        raise ScriptError(f"cannot format {value!r} with '{directive}': {e}") from e


def span_text(resolved: ResolvedSpan) -> str:
    """Plain text shown in place of a span"""
    if resolved.error is not None:
        return f"error: {type(resolved.error).__name__}: {resolved.error}"
    return resolved.value or ''


def annotation_sanitize(text: str) -> str:
    """Keep an annotated value inside a single-backtick code span"""
    text = text.replace('`', "'").replace('\n', ' ')
    # A trailing underscore would stop the span from being recognized again
    return text + ' ' if text.endswith('_') else text


def span_annotate(resolved: ResolvedSpan) -> str:
    """
    Round-trip form of a span: the expression with its latest value

    Example:
        `_total_hours_` resolving to 27.5 becomes `_total_hours # > 27.5_`
    """
    span = resolved.span
    text = span.expression
    if span.directive is not None:
        text += f" {appsettings.span_directive} {span.directive}"
    text += f" {appsettings.annotation_marker} {annotation_sanitize(span_text(resolved))}"
    return f"`_{text}_`"


def prose_substitute(
    source: str,
    resolved: List[ResolvedSpan],
    replacement: Callable[[int, ResolvedSpan], str],
) -> str:
    """
    Rebuild prose with every span replaced

    Args:
        source: Prose segment source the spans were found in
        resolved: Resolved spans, in source order
        replacement: Called with (index, resolved span), returns the new text

    Returns:
        Source text with spans substituted and everything else unchanged
    """
    parts = []
    cursor = 0
    for index, item in enumerate(resolved):
        parts.append(source[cursor:item.span.start])
        parts.append(replacement(index, item))
        cursor = item.span.end
    parts.append(source[cursor:])
    return ''.join(parts)
