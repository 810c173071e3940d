#!/usr/bin/env python3
"""
yamdr - Executable markdown notebooks

Renders a markdown document whose typed fenced blocks declare data, define
functions, run Python scripts, build tables and draw graphs. Inline spans
such as `_total_hours_` show live results in the prose.

As an aside, this codebase leverages the ChRIS "plugin" concept/pattern as
general purpose python app development framework.

Usage:
    yamdr inputdir/ outputdir/ --inputFile notebook.md

Examples:
    # Rich HTML page
    yamdr . output/ --inputFile timesheet.md --standalone

    # Refresh the annotated results in the source itself
    yamdr . . --inputFile timesheet.md --outputFile timesheet.md --mode roundtrip

    # Plain markdown with results, External metadata as JSON
    yamdr . output/ --inputFile timesheet.md --format markdown --metaFile meta.json -vv
"""

import json
import sys
import dataclasses
from argparse import ArgumentDefaultsHelpFormatter, ArgumentParser, Namespace
from pathlib import Path

from chris_plugin import chris_plugin

from . import __version__
from .lib import LOG, render_markdown, state_connectToLogger
from .lib.errors import YamdrError
from .models import OutputFormat, ProgramState, RenderMode, RenderOptions, pipeline

# Define CLI arguments
parser = ArgumentParser(
    description="yamdr - Executable markdown notebooks",
    formatter_class=ArgumentDefaultsHelpFormatter,
)

parser.add_argument(
    "--inputFile", required=True, type=str, help="Input markdown file (relative to inputdir)"
)

parser.add_argument(
    "--outputFile",
    default="",
    type=str,
    help="Output filename in outputdir. Defaults to the input name with .html or .md",
)

parser.add_argument(
    "--mode",
    default=RenderMode.RICH.value,
    choices=[mode.value for mode in RenderMode],
    help="rich: results in place of blocks; roundtrip: source kept, results annotated",
)

parser.add_argument(
    "--format",
    default=OutputFormat.HTML.value,
    choices=[fmt.value for fmt in OutputFormat],
    help="Output format in rich mode (roundtrip always writes markdown)",
)

parser.add_argument(
    "--standalone",
    action="store_true",
    help="Write a complete HTML document instead of a fragment",
)

parser.add_argument(
    "--metaFile",
    default=None,
    type=str,
    help="Write External block metadata to this JSON file in outputdir",
)

parser.add_argument(
    "-v",
    "--verbosity",
    action="count",
    default=1,
    help="Increase output verbosity (can be repeated: -v, -vv, -vvv)",
)

parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")


def env_check(inputstate: ProgramState) -> ProgramState:
    """
    Validate environment and resolve all file paths.

    Returns:
        ProgramState with added fields:
            - inputSourceFile: Resolved path to the input document
            - outputTarget: Path the rendered document is written to
            - envOK: True if environment is valid

    Exits:
        1 if the input file does not exist
    """
    state = inputstate.copy()
    LOG("Checking environment...", level=2)

    input_file = state.inputdir / state.inputFile
    if not input_file.is_file():
        print(f"Error: Input file not found: {input_file}", file=sys.stderr)
        state.envOK = False
        sys.exit(1)
    state.inputSourceFile = input_file
    LOG(f"Input file: {input_file}", level=2)

    output_name = state.outputFile
    if not output_name:
        rich_html = state.mode == RenderMode.RICH.value and state.format == OutputFormat.HTML.value
        suffix = ".html" if rich_html else ".md"
        if not rich_html and state.outputdir.resolve() == input_file.parent.resolve():
            suffix = f".{state.mode}.md"
        output_name = input_file.stem + suffix

    state.outputdir.mkdir(parents=True, exist_ok=True)
    state.outputTarget = state.outputdir / output_name
    LOG(f"Output file: {state.outputTarget}", level=2)

    state.envOK = True
    return state


def source_read(inputstate: ProgramState) -> ProgramState:
    """
    Read the source document.

    Returns:
        ProgramState with added field:
            - sourceText: Document text

    Exits:
        1 if the file cannot be read
    """
    state = inputstate.copy()
    LOG("Reading source file...", level=1)

    try:
        state.sourceText = state.inputSourceFile.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error reading input file: {e}", file=sys.stderr)
        sys.exit(1)

    LOG(f"Read {len(state.sourceText)} characters from {state.inputSourceFile.name}", level=2)
    return state


def document_render(inputstate: ProgramState) -> ProgramState:
    """
    Execute and render the document.

    Returns:
        ProgramState with added field:
            - renderResult: RenderResult with text, metadata and block errors

    Exits:
        1 if the document cannot be tokenized (or a block fails in strict mode)
    """
    state = inputstate.copy()
    LOG(f"Rendering document ({state.mode})...", level=1)

    try:
        state.renderResult = render_markdown(
            state.sourceText,
            mode=RenderMode(state.mode),
            output_format=OutputFormat(state.format),
            options=RenderOptions(standalone=state.standalone),
        )
    except YamdrError as e:
        print(f"Render error: {type(e).__name__}: {e}", file=sys.stderr)
        if state.verbosity >= 3:
            import traceback

            traceback.print_exc()
        sys.exit(1)

    return state


def output_write(inputstate: ProgramState) -> ProgramState:
    """
    Write the rendered document and, if requested, the External metadata.

    Returns:
        ProgramState with added field:
            - outputWritten: Paths of the files written
    """
    state = inputstate.copy()
    result = state.renderResult

    state.outputTarget.write_text(result.text, encoding="utf-8", newline="")
    state.outputWritten = [state.outputTarget]
    LOG(f"Wrote {state.outputTarget}", level=2)

    if state.metaFile:
        meta_path = state.outputdir / state.metaFile
        meta = {str(key): dataclasses.asdict(value) for key, value in result.external.items()}
        meta_path.write_text(json.dumps(meta, indent=2, default=str), encoding="utf-8")
        state.outputWritten.append(meta_path)
        LOG(f"Wrote {meta_path} ({len(meta)} entries)", level=2)

    return state


def results_report(inputstate: ProgramState) -> ProgramState:
    """
    Display render results to the user.

    Returns:
        ProgramState unchanged (terminal pipeline stage)
    """
    state: ProgramState = inputstate.copy()
    result = state.renderResult

    LOG("\n✓ Render complete", level=1, severity="SUCCESS")
    for path in state.outputWritten:
        LOG(f"  Output: {path}", level=1)
    if result.errors:
        LOG(f"  {len(result.errors)} block(s) failed:", level=1, severity="WARNING")
        for error in result.errors:
            LOG(f"    segment {error.segment_index}: {error.marker()}", level=1, severity="WARNING")
    for change in result.span_changes:
        LOG(f"  `_{change.expression}_`: {change.previous} -> {change.current}", level=1)
    return state


@chris_plugin(
    parser=parser,
    title="yamdr - Executable markdown notebooks",
    category="Utility",
    min_memory_limit="100Mi",
    min_cpu_limit="500m",
)
def main(options: Namespace, inputdir: Path, outputdir: Path):
    """
    Main entry point - render a yamdr notebook.

    Orchestrates the full pipeline:
        1. env_check: Validate paths and environment
        2. source_read: Read the source document
        3. document_render: Execute blocks and render
        4. output_write: Write the document and metadata
        5. results_report: Summarize the run

    Note:
        This function is wrapped by @chris_plugin which handles CLI
        argument parsing and invokes this function with parsed values.
    """
    state: ProgramState = ProgramState.state_createFromNamespace(
        options=options, inputdir=inputdir, outputdir=outputdir
    )

    # Connect state to logger for entire pipeline
    state_connectToLogger(state)

    pipeline(state, env_check, source_read, document_render, output_write, results_report)


if __name__ == "__main__":
    main()  # type: ignore  # @chris_plugin decorator transforms signature
