"""
Diagram rendering for Graph blocks

A diagram renderer is any callable taking DOT source and returning image
bytes. The default one drives Graphviz through the ``graphviz`` package.
"""

from typing import Callable

import graphviz

from ..config import appsettings
from .errors import ExternalToolError
from .log import LOG

DiagramRenderer = Callable[[str], bytes]

MEDIA_TYPES = {
    'svg': 'image/svg+xml',
    'png': 'image/png',
    'jpg': 'image/jpeg',
    'gif': 'image/gif',
}


def graphviz_render(source: str) -> bytes:
    """
    Render DOT source with Graphviz

    Engine and output format come from appsettings (graph_engine,
    graph_format).

    Raises:
        ExternalToolError: If Graphviz is not installed or rejects the source
    """
    LOG(f"Rendering graph with {appsettings.graph_engine} ({len(source)} chars)", level=3)
    try:
        return graphviz.Source(source, engine=appsettings.graph_engine).pipe(
            format=appsettings.graph_format
        )
    except graphviz.ExecutableNotFound as e:
        raise ExternalToolError(f"Graphviz executable not found: {e}") from e
    except graphviz.CalledProcessError as e:
        stderr = e.stderr.decode('utf-8', 'replace').strip() if isinstance(e.stderr, bytes) else str(e.stderr or '')
        raise ExternalToolError(f"Graphviz failed: {stderr or e}") from e


def mediaType_get() -> str:
    """Media type of the images graphviz_render() produces"""
    return MEDIA_TYPES.get(appsettings.graph_format, 'application/octet-stream')
