"""
Program state model and pipeline helper

Defines ProgramState dataclass for the functional pipeline pattern and
the pipeline() helper for composing transformation stages.
"""

import dataclasses
from argparse import Namespace
from dataclasses import dataclass, field
from functools import reduce
from pathlib import Path
from typing import Callable, Optional, Type, TypeVar

from .artifacts import RenderResult

PS = TypeVar("PS", bound="ProgramState")


@dataclass
class ProgramState:
    """
    Central state container for the render pipeline (state bus pattern).

    Pipeline stages and their state additions:
        - Initial: inputdir, outputdir, verbosity and the CLI options
        - env_check: inputSourceFile, outputTarget, envOK
        - source_read: sourceText
        - document_render: renderResult
        - output_write: outputWritten
        - results_report: (no additions, terminal stage)

    Attributes:
        inputdir: Directory containing the source document
        outputdir: Directory the rendered document is written to
        verbosity: Logging verbosity level (0-3)
        inputFile: Input markdown filename (relative to inputdir)
        outputFile: Output filename; derived from inputFile when empty
        mode: "rich" or "roundtrip"
        format: "html" or "markdown" (rich mode only)
        standalone: Emit a complete HTML document
        metaFile: Optional JSON file (in outputdir) for External metadata
        envOK: Environment validation passed
        inputSourceFile: Resolved path to the input document
        outputTarget: Resolved path of the rendered document
        sourceText: Document text as read from disk
        renderResult: Result of the render invocation
        outputWritten: Paths written by output_write
    """

    # CLI arguments
    inputdir: Optional[Path] = field(default=None)
    outputdir: Optional[Path] = field(default=None)
    verbosity: int = field(default=1)
    inputFile: str = field(default="")
    outputFile: str = field(default="")
    mode: str = field(default="rich")
    format: str = field(default="html")
    standalone: bool = field(default=False)
    metaFile: Optional[str] = field(default=None)

    # Pipeline state
    envOK: bool = field(default=False)
    inputSourceFile: Path = field(default=Path("/"))
    outputTarget: Path = field(default=Path("/"))
    sourceText: Optional[str] = field(default=None)
    renderResult: Optional[RenderResult] = field(default=None)
    outputWritten: list = field(default_factory=list)

    @classmethod
    def state_createFromNamespace(
        cls: Type["ProgramState"], options: Namespace, inputdir: Path, outputdir: Path
    ) -> "ProgramState":
        """
        Create ProgramState from argparse Namespace and directory paths.

        Args:
            options: Parsed CLI arguments (inputFile, mode, format, etc.)
            inputdir: Directory containing source files
            outputdir: Directory for rendered output

        Returns:
            ProgramState instance with all known CLI options as attributes
        """
        valid_fields = {f.name for f in dataclasses.fields(cls)}
        filtered_options = {k: v for k, v in vars(options).items() if k in valid_fields}
        return cls(**{**filtered_options, "inputdir": Path(inputdir), "outputdir": Path(outputdir)})

    def copy(self: PS) -> PS:
        """
        Creates a shallow copy of the ProgramState instance.

        Returns:
            A new ProgramState instance.
        """
        return type(self)(**self.__dict__)


def pipeline(
    initial_state: ProgramState, *stages: Callable[[ProgramState], ProgramState]
) -> ProgramState:
    """
    Execute a functional pipeline of state transformations.

    Each stage is a function (ProgramState) -> ProgramState that receives
    the output of the previous stage and returns a new state.

    Example:
        final_state = pipeline(
            initial_state,
            env_check,
            source_read,
            document_render,
            output_write,
            results_report
        )

    This is equivalent to nesting the calls inside-out, but reads in the
    order the stages run.
    """
    return reduce(lambda state, stage: stage(state), stages, initial_state)
