"""
Block type specification and metadata models

Defines the typed fenced blocks yamdr understands, the categories they fall
into, and the header keys the classifier interprets itself.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Callable, List, Set


class BlockCategory(Enum):
    """
    Categories of typed fenced blocks

    Used for organization and for deciding how the renderer treats a block.
    """
    DATA = "data"              # Data
    SCRIPT = "script"          # ScriptGlobals, Script, DynamicTable, DynamicChart
    DIAGRAM = "diagram"        # Graph, Plotters
    METADATA = "metadata"      # External
    PRESENTATION = "presentation"  # Code


class BlockType(str, Enum):
    """Values of the ``t``/``type`` header key that the executors recognize"""
    DATA = "Data"
    SCRIPT_GLOBALS = "ScriptGlobals"
    SCRIPT = "Script"
    DYNAMIC_TABLE = "DynamicTable"
    DYNAMIC_CHART = "DynamicChart"
    GRAPH = "Graph"
    PLOTTERS = "Plotters"
    EXTERNAL = "External"
    CODE = "Code"


@dataclass
class BlockSpec:
    """
    Specification for a typed fenced block

    Attributes:
        name: Value of the header ``t`` key (e.g., "Script")
        category: Category for organization
        description: Human-readable description
        executor: Execution function (block, render_pass) -> artifact or None
        annotated: Whether round-trip output rewrites the body with result comments
        examples: Example fence headers
    """
    name: str
    category: BlockCategory
    description: str
    executor: Callable
    annotated: bool = False
    examples: List[str] = field(default_factory=list)


# Header keys interpreted by the classifier rather than by a single executor
RESERVED_HEADER_KEYS: Set[str] = {
    't',             # type discriminator
    'type',          # long form of the discriminator
    'hidden',        # run the block, show nothing
    'hidden_title',  # run the block, collapse its output under this title
    'meta',          # External only: expose head/body to the caller
    'name',          # key for External metadata
    'title',         # display title override
}


def reserved_is(key: str) -> bool:
    """Check if a header key is reserved"""
    return key in RESERVED_HEADER_KEYS
