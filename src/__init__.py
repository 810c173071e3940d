"""
yamdr - Executable markdown notebooks

Markdown documents whose fenced blocks run, with results rendered in place
or written back into the source.
"""

__version__ = "1.0.0"

from .lib import render_markdown, render_blocks, RenderPass, LOG, state_connectToLogger
from .models import RenderMode, OutputFormat, RenderOptions, RenderResult, DocumentBlocks

__all__ = [
    "render_markdown",
    "render_blocks",
    "RenderPass",
    "RenderMode",
    "OutputFormat",
    "RenderOptions",
    "RenderResult",
    "DocumentBlocks",
    "LOG",
    "state_connectToLogger",
    "__version__",
]
