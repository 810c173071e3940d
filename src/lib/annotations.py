"""
Round-trip result annotations

Computed results are written back into block bodies as comment lines that
start with the annotation marker, so the body stays runnable:

    total = sum(hours)
    total
    # > 27.5

Before a block runs again every annotation line is stripped, which is what
makes round-trip rendering idempotent.
"""

from typing import Iterable, List, Sequence

from ..config import appsettings


def annotation_is(line: str) -> bool:
    """Check if a body line is a result annotation"""
    marker = appsettings.annotation_marker
    content = line.rstrip('\r\n')
    return content.startswith(marker + ' ') or content.rstrip() == marker


def annotations_strip(body: str) -> str:
    """
    Remove previously appended annotation lines from a block body

    Args:
        body: Block body, line endings kept

    Returns:
        The body without annotation lines

    Example:
        >>> annotations_strip("x = 1\\nx\\n# > 1\\n")
        'x = 1\\nx\\n'
    """
    lines = body.splitlines(keepends=True)
    return ''.join(line for line in lines if not annotation_is(line))


def annotation_lines(text: str) -> List[str]:
    """
    Turn result text into annotation lines (without line endings)

    Multi-line text yields one annotation per line; empty lines become the
    bare marker so that no trailing whitespace is produced.
    """
    marker = appsettings.annotation_marker
    lines = text.split('\n') if text else ['']
    return [f"{marker} {line}" if line else marker for line in lines]


def cell_escape(cell: str) -> str:
    """Escape a value for use inside a pipe table cell"""
    return str(cell).replace('\\', '\\\\').replace('|', '\\|').replace('\n', ' ')


def table_lines(header: Sequence[str], rows: Iterable[Sequence[str]]) -> List[str]:
    """
    Lay out a pipe table

    Example:
        >>> table_lines(["Month", "Hours"], [["2022-10", "1"]])
        ['| Month | Hours |', '|---|---|', '| 2022-10 | 1 |']
    """
    def line(cells: Sequence[str]) -> str:
        return ''.join(f"| {cell_escape(cell)} " for cell in cells) + '|'

    lines = [line(header), '|' + '---|' * len(header)]
    lines.extend(line(row) for row in rows)
    return lines
