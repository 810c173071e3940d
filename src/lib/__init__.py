"""
yamdr - Executable markdown notebooks

Typed fenced blocks declare data, define functions, run scripts and build
tables and charts; inline spans show the live results in the prose.
"""

__version__ = "1.0.0"

from .chart import LineChart
from .classifier import Classifier
from .context import EvaluationContext
from .executors import ExecutorRegistry
from .renderer import Renderer
from .engine import RenderPass, render_markdown, render_blocks
from .log import LOG, state_connectToLogger

__all__ = [
    "Classifier",
    "LineChart",
    "EvaluationContext",
    "ExecutorRegistry",
    "Renderer",
    "RenderPass",
    "render_markdown",
    "render_blocks",
    "LOG",
    "state_connectToLogger",
    "__version__",
]
