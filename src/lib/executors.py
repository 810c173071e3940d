"""
Block executor implementations for yamdr

Each executor runs one typed fenced block against the render pass that
reached it and returns the artifact the renderer shows, or None.
Executors raise BlockError subclasses; the render pass turns those into
error artifacts.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple

from ..models.artifacts import (
    Artifact,
    DataArtifact,
    DiagramArtifact,
    ExternalMetadata,
    RenderMode,
    ScriptArtifact,
    TableArtifact,
)
from ..models.blocks import BlockCategory, BlockSpec, BlockType
from ..models.document import FencedBlock
from .annotations import annotations_strip
from .chart import LineChart, chart_build, chart_decode, points_coerce
from .diagram import mediaType_get
from .errors import ExternalToolError, TableArityError, YamdrError
from .log import LOG
from .values import records_decode, value_display


def chart_artifact(chart: LineChart, source: str, run: Any) -> DiagramArtifact:
    """Draw a chart with the pass's chart renderer"""
    try:
        image = run.chart_renderer(chart)
    except YamdrError:
        raise
    except Exception as e:
        raise ExternalToolError(f"chart renderer failed: {type(e).__name__}: {e}") from e
    return DiagramArtifact(source=source, image=image, media_type='image/svg+xml')


class ExecutorRegistry:
    """
    Registry of block specifications and executors

    Maps header type names to BlockSpec objects containing metadata and
    the executor function.
    """

    def __init__(self) -> None:
        """Initialize the registry and register all built-in block types"""
        self.specs: Dict[str, BlockSpec] = {}
        self.dataExecutors_register()
        self.scriptExecutors_register()
        self.diagramExecutors_register()
        self.metadataExecutors_register()
        self.presentationExecutors_register()

    def register(self, spec: BlockSpec) -> None:
        """Register a block specification"""
        self.specs[spec.name] = spec

    def get(self, type_name: Optional[str]) -> Optional[Callable[[FencedBlock, Any], Optional[Artifact]]]:
        """
        Get the executor for a header type

        Args:
            type_name: Value of the header ``t`` key

        Returns:
            Executor function or None for plain and unknown blocks
        """
        spec = self.spec_get(type_name)
        return spec.executor if spec else None

    def spec_get(self, type_name: Optional[str]) -> Optional[BlockSpec]:
        """Get full block specification by type name"""
        if type_name is None:
            return None
        return self.specs.get(type_name)

    def specs_listByCategory(self, category: BlockCategory) -> List[BlockSpec]:
        """Get all block specs in a category"""
        return [spec for spec in self.specs.values() if spec.category == category]

    def dataExecutors_register(self) -> None:
        """Register blocks that bind data"""

        def data_executor(block: FencedBlock, run: Any) -> Optional[Artifact]:
            """Handle Data - bind the records list under its name"""
            name, records = records_decode(annotations_strip(block.body))
            run.context.bind(name, records)
            LOG(f"Bound '{name}' to {len(records)} records", level=2)
            return DataArtifact(name=name, records=records)

        self.register(BlockSpec(
            name=BlockType.DATA.value,
            category=BlockCategory.DATA,
            description='Bind a list of string-valued records to a name',
            executor=data_executor,
            annotated=True,
            examples=['```{t: Data}\nname: hours\ndata:\n  - month: 2022-10\n    hours: 1\n```'],
        ))

    def scriptExecutors_register(self) -> None:
        """Register blocks that run scripts"""

        def scriptGlobals_executor(block: FencedBlock, run: Any) -> Optional[Artifact]:
            """Handle ScriptGlobals - define functions for later blocks"""
            run.context.functions_define(annotations_strip(block.body), filename="<globals>")
            return None

        def script_executor(block: FencedBlock, run: Any) -> Optional[Artifact]:
            """Handle Script - run statements, keep the final value and debug output"""
            with run.context.debug_capture() as outputs:
                value = run.context.eval(annotations_strip(block.body), filename="<script>")
            if block.header.suppressed:
                return None
            return ScriptArtifact(
                outputs=list(outputs),
                value=None if value is None else value_display(value),
            )

        def dynamicTable_executor(block: FencedBlock, run: Any) -> Optional[Artifact]:
            """Handle DynamicTable - collect rows from the block-scoped row() builtin"""
            collected: List[List[str]] = []

            def row(cells: Any) -> None:
                if isinstance(cells, (str, bytes)) or not hasattr(cells, '__iter__'):
                    raise TypeError(f"row() expects a list of cells, got {type(cells).__name__}")
                cells = [value_display(cell) for cell in cells]
                if collected and len(cells) != len(collected[0]):
                    raise TableArityError(
                        f"line {run.context.script_lineno()}: row has {len(cells)} cells, "
                        f"expected {len(collected[0])}"
                    )
                collected.append(cells)

            run.context.eval(annotations_strip(block.body), filename="<table>", natives={'row': row})
            if block.header.suppressed:
                return None
            if not collected:
                return TableArtifact(header=[], rows=[])
            return TableArtifact(header=collected[0], rows=collected[1:])

        def dynamicChart_executor(block: FencedBlock, run: Any) -> Optional[Artifact]:
            """Handle DynamicChart - collect series from the block-scoped plot() builtin"""
            series: List[List[Tuple[float, float]]] = []

            def plot(points: Any) -> None:
                series.append(points_coerce(points))

            code = annotations_strip(block.body)
            run.context.eval(code, filename="<chart>", natives={'plot': plot})
            LOG(f"Collected {len(series)} chart series", level=3)
            if run.mode is RenderMode.ROUND_TRIP or block.header.suppressed:
                return None
            return chart_artifact(chart_build(series, block.header.options), code, run)

        self.register(BlockSpec(
            name=BlockType.SCRIPT_GLOBALS.value,
            category=BlockCategory.SCRIPT,
            description='Function definitions shared by all later blocks',
            executor=scriptGlobals_executor,
            annotated=True,
            examples=['```{t: ScriptGlobals}\ndef double(x):\n    return 2 * x\n```'],
        ))

        self.register(BlockSpec(
            name=BlockType.SCRIPT.value,
            category=BlockCategory.SCRIPT,
            description='Run statements and show the final value',
            executor=script_executor,
            annotated=True,
            examples=[
                '```{t: Script}\ntotal_hours = sum(float(r["hours"]) for r in hours)\ntotal_hours\n```',
                '```{t: Script, hidden_title: Setup}\nrate = 80\n```',
            ],
        ))

        self.register(BlockSpec(
            name=BlockType.DYNAMIC_TABLE.value,
            category=BlockCategory.SCRIPT,
            description='Build a table with row([...]); the first row is the header',
            executor=dynamicTable_executor,
            annotated=True,
            examples=['```{t: DynamicTable}\nrow(["Month", "Hours"])\nrow(["2022-10", 1])\n```'],
        ))

        self.register(BlockSpec(
            name=BlockType.DYNAMIC_CHART.value,
            category=BlockCategory.SCRIPT,
            description='Build a line chart with plot([[x, y], ...]), one call per series',
            executor=dynamicChart_executor,
            annotated=True,
            examples=['```{t: DynamicChart, chart_title: Hours}\nplot([[0, 0], [1, 2.5], [2, 5]])\n```'],
        ))

    def diagramExecutors_register(self) -> None:
        """Register blocks rendered by external tools"""

        def graph_executor(block: FencedBlock, run: Any) -> Optional[Artifact]:
            """Handle Graph - hand DOT source to the diagram renderer (rich mode only)"""
            if run.mode is RenderMode.ROUND_TRIP or block.header.hidden:
                return None
            try:
                image = run.diagram_renderer(block.body)
            except YamdrError:
                raise
            except Exception as e:
                raise ExternalToolError(f"diagram renderer failed: {type(e).__name__}: {e}") from e
            return DiagramArtifact(source=block.body, image=image, media_type=mediaType_get())

        self.register(BlockSpec(
            name=BlockType.GRAPH.value,
            category=BlockCategory.DIAGRAM,
            description='Graphviz DOT diagram',
            executor=graph_executor,
            examples=['```{t: Graph}\ndigraph { a -> b }\n```'],
        ))

        def plotters_executor(block: FencedBlock, run: Any) -> Optional[Artifact]:
            """Handle Plotters - draw a declared LineChart (rich mode only)"""
            if run.mode is RenderMode.ROUND_TRIP or block.header.hidden:
                return None
            return chart_artifact(chart_decode(block.body), block.body, run)

        self.register(BlockSpec(
            name=BlockType.PLOTTERS.value,
            category=BlockCategory.DIAGRAM,
            description='Line chart declared in YAML (type, title, range_x, range_y, data)',
            executor=plotters_executor,
            examples=['```{t: Plotters}\ntype: LineChart\ntitle: test\ndata:\n  - [[0, 0], [1, 1]]\n```'],
        ))

    def metadataExecutors_register(self) -> None:
        """Register blocks that carry data for the caller"""

        def external_executor(block: FencedBlock, run: Any) -> Optional[Artifact]:
            """Handle External - collect head and body when meta is set"""
            if not block.header.meta:
                return None
            key = block.header.name if block.header.name is not None else run.segment_index
            run.external_metadata[key] = ExternalMetadata(
                head=dict(block.header.options),
                body=block.body,
            )
            LOG(f"Collected external metadata under {key!r}", level=2)
            return None

        self.register(BlockSpec(
            name=BlockType.EXTERNAL.value,
            category=BlockCategory.METADATA,
            description='Header and body handed to the caller, never rendered',
            executor=external_executor,
            examples=['```{t: External, meta: true, name: front}\ntitle: Timesheet\n```'],
        ))

    def presentationExecutors_register(self) -> None:
        """Register blocks that only affect presentation"""

        def code_executor(block: FencedBlock, run: Any) -> Optional[Artifact]:
            """Handle Code - nothing to run, the renderer highlights it"""
            return None

        self.register(BlockSpec(
            name=BlockType.CODE.value,
            category=BlockCategory.PRESENTATION,
            description='Syntax highlighted listing (language, filename, numbers, numbers_start_at)',
            executor=code_executor,
            examples=['```{t: Code, language: python, numbers: true}\nprint("hi")\n```'],
        ))
