"""
Exceptions raised while classifying, executing and rendering documents.

Only DocumentSyntaxError aborts a render pass. Every BlockError is caught
by the render pass at the boundary of the block that raised it and shown
in place of that block's result.
"""

from typing import Optional


class YamdrError(Exception):
    """Base exception for yamdr errors."""
    pass


class DocumentSyntaxError(YamdrError):
    """The input could not be decoded or tokenized at all."""
    pass


class HeaderDecodeError(YamdrError):
    """A fence info string looked like a header but failed to decode."""

    def __init__(self, info: str, reason: str):
        self.info = info
        self.reason = reason
        super().__init__(f"cannot decode block header {info!r}: {reason}")


class BlockError(YamdrError):
    """
    Base class for failures scoped to a single fenced block.

    Attributes:
        segment_index: Position of the failing block in the document,
                       filled in by the render pass when it captures the error
    """

    segment_index: Optional[int] = None

    def marker(self) -> str:
        """Single-line text used for inline error markers"""
        return f"{type(self).__name__}: {self}"


class ScriptError(BlockError):
    """A script failed to parse or raised while running."""
    pass


class NameNotFoundError(ScriptError):
    """A script referenced a name that nothing has bound yet."""
    pass


class TableArityError(BlockError):
    """DynamicTable rows disagree on the number of cells."""
    pass


class DataBlockError(BlockError):
    """A Data block body is not a mapping with a name and a list of records."""
    pass


class ExternalToolError(BlockError):
    """The diagram or chart rendering tool failed or is not installed."""
    pass


class ChartError(BlockError):
    """A chart block body or the points handed to plot() are malformed."""
    pass
