"""
Block executor tests

Runs single blocks through a RenderPass and checks artifacts, context
effects and block-scoped errors.
"""

import pytest

from yamdr.lib.chart import chart_decode
from yamdr.lib.classifier import Classifier
from yamdr.lib.engine import RenderPass
from yamdr.lib.errors import (
    ChartError,
    DataBlockError,
    ExternalToolError,
    NameNotFoundError,
    ScriptError,
    TableArityError,
)
from yamdr.lib.executors import ExecutorRegistry
from yamdr.models.artifacts import (
    DataArtifact,
    DiagramArtifact,
    ErrorArtifact,
    RenderMode,
    ScriptArtifact,
    TableArtifact,
)
from yamdr.models.blocks import BlockCategory
from yamdr.models.document import FencedBlock


def execute(source, mode=RenderMode.RICH, **kwargs):
    run = RenderPass(Classifier(source).classify(), mode=mode, **kwargs)
    executed = run.run()
    return run, [item.artifact for item in executed if isinstance(item.segment, FencedBlock)]


class TestRegistry:
    """Test the executor registry"""

    def test_all_types_registered(self):
        registry = ExecutorRegistry()
        for name in ["Data", "ScriptGlobals", "Script", "DynamicTable", "DynamicChart",
                     "Graph", "Plotters", "External", "Code"]:
            assert registry.get(name) is not None

    def test_unknown_type(self):
        registry = ExecutorRegistry()
        assert registry.get("Mystery") is None
        assert registry.get(None) is None

    def test_list_by_category(self):
        registry = ExecutorRegistry()
        names = {spec.name for spec in registry.specs_listByCategory(BlockCategory.SCRIPT)}
        assert names == {"ScriptGlobals", "Script", "DynamicTable", "DynamicChart"}


class TestData:
    """Test Data blocks"""

    def test_records_bound_as_strings(self):
        """Scalars stay strings, no numeric inference"""
        run, artifacts = execute(
            "```{t: Data}\nname: hours\ndata:\n  - month: 2022-10\n    hours: 1\n    billed: true\n```\n"
        )
        records = run.context.lookup("hours")
        assert records == [{"month": "2022-10", "hours": "1", "billed": "true"}]
        assert isinstance(artifacts[0], DataArtifact)

    def test_json_body(self):
        run, _ = execute('```{t: Data}\n{"name": "rates", "data": [{"rate": 80}]}\n```\n')
        assert run.context.lookup("rates") == [{"rate": "80"}]

    def test_records_table(self):
        """The round-trip table lists sorted fields, rows indexed from 1"""
        _, artifacts = execute("```{t: Data}\nname: d\ndata:\n  - b: 2\n    a: 1\n  - a: 3\n```\n")
        header, rows = artifacts[0].table()
        assert header == ["#", "a", "b"]
        assert rows == [["1", "1", "2"], ["2", "3", ""]]

    def test_invalid_name(self):
        run, artifacts = execute("```{t: Data}\nname: not valid\ndata: []\n```\n")
        assert isinstance(artifacts[0], ErrorArtifact)
        assert isinstance(artifacts[0].error, DataBlockError)

    def test_data_not_a_list(self):
        _, artifacts = execute("```{t: Data}\nname: d\ndata: 5\n```\n")
        assert isinstance(artifacts[0].error, DataBlockError)


class TestScript:
    """Test Script and ScriptGlobals blocks"""

    def test_value_displayed(self):
        _, artifacts = execute("```{t: Script}\nx = 20\nx + 22\n```\n")
        assert artifacts[0] == ScriptArtifact(outputs=[], value="42")

    def test_integral_float_display(self):
        _, artifacts = execute("```{t: Script}\n2.5 * 2\n```\n")
        assert artifacts[0].value == "5"

    def test_hidden_title_suppresses_but_binds(self):
        """Hidden blocks still mutate the context"""
        run, artifacts = execute("```{t: Script, hidden_title: Setup}\nrate = 80\nrate\n```\n")
        assert artifacts == [None]
        assert run.context.lookup("rate") == 80

    def test_debug_output(self):
        _, artifacts = execute("```{t: Script}\ndebug('start')\n1\n```\n")
        assert artifacts[0].outputs == [(1, "start")]

    def test_globals_registered(self):
        run, artifacts = execute(
            "```{t: ScriptGlobals}\ndef double(x):\n    return 2 * x\n```\n\n"
            "```{t: Script}\ndouble(21)\n```\n"
        )
        assert artifacts[0] is None
        assert artifacts[1].value == "42"
        assert "double" in run.context.functions

    def test_globals_reject_statements(self):
        _, artifacts = execute("```{t: ScriptGlobals}\nx = 1\n```\n")
        assert isinstance(artifacts[0].error, ScriptError)

    def test_error_artifact_records_segment(self):
        run, artifacts = execute("Intro\n\n```{t: Script}\nmissing\n```\n")
        error = artifacts[0].error
        assert isinstance(error, NameNotFoundError)
        assert error.segment_index == 2
        assert run.errors == [error]

    def test_strict_mode_reraises(self):
        with pytest.raises(ScriptError):
            execute("```{t: Script}\n1 / 0\n```\n", strict=True)


class TestDynamicTable:
    """Test DynamicTable blocks"""

    def test_rows_collected(self):
        _, artifacts = execute('```{t: DynamicTable}\nrow(["a", "b"])\nrow([1, 2.0])\n```\n')
        assert artifacts[0] == TableArtifact(header=["a", "b"], rows=[["1", "2"]])

    def test_arity_mismatch(self):
        _, artifacts = execute('```{t: DynamicTable}\nrow(["a", "b"])\nrow([1])\n```\n')
        error = artifacts[0].error
        assert isinstance(error, TableArityError)
        assert "line 2" in str(error)

    def test_row_requires_list(self):
        _, artifacts = execute('```{t: DynamicTable}\nrow("ab")\n```\n')
        assert isinstance(artifacts[0].error, ScriptError)

    def test_row_does_not_leak(self):
        """row() is scoped to its block"""
        _, artifacts = execute(
            '```{t: DynamicTable}\nrow(["a"])\n```\n\n```{t: Script}\nrow(["b"])\n```\n'
        )
        assert isinstance(artifacts[0], TableArtifact)
        assert isinstance(artifacts[1].error, NameNotFoundError)

    def test_empty_table(self):
        _, artifacts = execute('```{t: DynamicTable}\nx = 1\n```\n')
        assert artifacts[0] == TableArtifact(header=[], rows=[])


class TestDynamicChart:
    """Test DynamicChart blocks with a stub chart renderer"""

    @pytest.fixture
    def charts(self):
        return []

    @pytest.fixture
    def renderer(self, charts):
        def render(chart):
            charts.append(chart)
            return b"<svg>chart</svg>"
        return render

    def test_series_collected(self, charts, renderer):
        _, artifacts = execute(
            "```{t: DynamicChart, chart_title: Hours, range_y: [0, 10]}\n"
            "plot([[0, 0], [2, 1], [4, 2]])\nplot([(4, 2.5), (0, 4)])\n```\n",
            chart_renderer=renderer,
        )
        assert isinstance(artifacts[0], DiagramArtifact)
        assert artifacts[0].image == b"<svg>chart</svg>"
        chart = charts[0]
        assert chart.title == "Hours"
        assert chart.range_y == (0.0, 10.0)
        assert chart.data == [[(0.0, 0.0), (2.0, 1.0), (4.0, 2.0)], [(4.0, 2.5), (0.0, 4.0)]]
        assert chart.range_get(0) == (0.0, 4.0)

    def test_context_bindings(self, renderer):
        """Chart scripts see and extend the shared context"""
        run, _ = execute(
            "```{t: Script}\nscale = 2\n```\n\n"
            "```{t: DynamicChart}\npoints = [[x, scale * x] for x in range(3)]\nplot(points)\n```\n",
            chart_renderer=renderer,
        )
        assert run.context.lookup("points") == [[0, 0], [1, 2], [2, 4]]

    def test_plot_does_not_leak(self, renderer):
        """plot() is scoped to its block"""
        _, artifacts = execute(
            "```{t: DynamicChart}\nplot([[0, 1]])\n```\n\n```{t: Script}\nplot([[0, 1]])\n```\n",
            chart_renderer=renderer,
        )
        assert isinstance(artifacts[0], DiagramArtifact)
        assert isinstance(artifacts[1].error, NameNotFoundError)

    def test_bad_points(self, renderer):
        _, artifacts = execute("```{t: DynamicChart}\nplot([[0, 'a']])\n```\n", chart_renderer=renderer)
        error = artifacts[0].error
        assert isinstance(error, ScriptError)
        assert "non-numeric" in str(error)

    def test_round_trip_runs_without_drawing(self):
        def renderer(chart):
            raise AssertionError("must not be called")

        run, artifacts = execute(
            "```{t: DynamicChart}\nlast = 3\nplot([[0, last]])\n```\n",
            mode=RenderMode.ROUND_TRIP, chart_renderer=renderer,
        )
        assert artifacts == [None]
        assert run.context.lookup("last") == 3

    def test_matplotlib_svg(self):
        """The default renderer draws SVG"""
        _, artifacts = execute("```{t: DynamicChart}\nplot([[0, 0], [1, 1]])\n```\n")
        assert artifacts[0].media_type == "image/svg+xml"
        assert b"<svg" in artifacts[0].image


class TestPlotters:
    """Test Plotters blocks"""

    CHART = (
        "```{t: Plotters}\ntype: LineChart\ntitle: test\nrange_x: [0, 4]\nrange_y: [0, 4]\n"
        "data:\n- [[0, 0], [1, 1], [2, 2], [3, 3], [4, 4]]\n```\n"
    )

    def test_declared_chart(self):
        charts = []

        def renderer(chart):
            charts.append(chart)
            return b"<svg/>"

        _, artifacts = execute(self.CHART, chart_renderer=renderer)
        assert isinstance(artifacts[0], DiagramArtifact)
        assert charts[0].title == "test"
        assert charts[0].range_x == (0.0, 4.0)
        assert charts[0].data[0][-1] == (4.0, 4.0)

    def test_default_ranges(self):
        """Missing ranges run from 0 to the largest coordinate"""
        chart = chart_decode("type: LineChart\ndata:\n- [[1, 5], [3, 2]]\n")
        assert chart.range_get(0) == (0.0, 3.0)
        assert chart.range_get(1) == (0.0, 5.0)

    def test_invalid_chart(self):
        _, artifacts = execute("```{t: Plotters}\ntype: PieChart\ndata: []\n```\n")
        assert isinstance(artifacts[0].error, ChartError)

    def test_not_a_mapping(self):
        with pytest.raises(ChartError):
            chart_decode("- 1\n- 2\n")

    def test_source_kept_in_round_trip(self):
        run, artifacts = execute(self.CHART, mode=RenderMode.ROUND_TRIP)
        assert artifacts == [None]
        assert run.errors == []

    def test_matplotlib_svg(self):
        _, artifacts = execute(self.CHART)
        assert artifacts[0].image.lstrip().startswith((b"<?xml", b"<svg"))


class TestGraph:
    """Test Graph blocks with a stub diagram renderer"""

    def test_rendered_in_rich_mode(self):
        sources = []

        def renderer(source):
            sources.append(source)
            return b"<svg>stub</svg>"

        _, artifacts = execute("```{t: Graph}\ndigraph { a -> b }\n```\n", diagram_renderer=renderer)
        assert sources == ["digraph { a -> b }\n"]
        assert isinstance(artifacts[0], DiagramArtifact)
        assert artifacts[0].image == b"<svg>stub</svg>"

    def test_not_rendered_in_round_trip(self):
        def renderer(source):
            raise AssertionError("must not be called")

        run, artifacts = execute(
            "```{t: Graph}\ndigraph {}\n```\n", mode=RenderMode.ROUND_TRIP, diagram_renderer=renderer
        )
        assert artifacts == [None]
        assert run.errors == []

    def test_renderer_failure(self):
        def renderer(source):
            raise RuntimeError("boom")

        _, artifacts = execute("```{t: Graph}\ndigraph {}\n```\n", diagram_renderer=renderer)
        assert isinstance(artifacts[0].error, ExternalToolError)
        assert "boom" in str(artifacts[0].error)


class TestExternal:
    """Test External blocks"""

    def test_meta_keyed_by_name(self):
        run, artifacts = execute("```{t: External, meta: true, name: front}\ntitle: Timesheet\n```\n")
        assert artifacts == [None]
        metadata = run.external_metadata["front"]
        assert metadata.head == {"meta": True, "name": "front"}
        assert metadata.body == "title: Timesheet\n"

    def test_meta_keyed_by_position(self):
        run, _ = execute("Intro\n\n```{t: External, meta: true}\nbody\n```\n")
        assert list(run.external_metadata) == [2]

    def test_without_meta(self):
        run, _ = execute("```{t: External}\nbody\n```\n")
        assert run.external_metadata == {}

    def test_never_touches_context(self):
        run, _ = execute("```{t: External, meta: true, name: x}\nbody\n```\n")
        with pytest.raises(NameNotFoundError):
            run.context.lookup("x")
