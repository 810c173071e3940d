"""
Command line pipeline tests

Runs the pipeline stages behind the yamdr entry point on temporary
directories, plus settings and logging behaviour.
"""

import json
from argparse import Namespace
from types import SimpleNamespace

import pytest
from loguru import logger

from yamdr.__main__ import (
    document_render,
    env_check,
    output_write,
    results_report,
    source_read,
)
from yamdr.config import AppSettings, appsettings
from yamdr.lib.log import LOG, state_connectToLogger
from yamdr.models import ProgramState, pipeline

NOTEBOOK = """# Notes

```{t: External, meta: true, name: front}
author: someone
```

```{t: Script}
6 * 7
```
"""

DEFAULTS = {
    "inputFile": "notes.md",
    "outputFile": "",
    "mode": "rich",
    "format": "html",
    "standalone": False,
    "metaFile": None,
    "verbosity": 1,
}


def state_build(tmp_path, **overrides):
    (tmp_path / "in").mkdir(exist_ok=True)
    (tmp_path / "in" / "notes.md").write_text(NOTEBOOK, encoding="utf-8")
    options = Namespace(**{**DEFAULTS, **overrides})
    return ProgramState.state_createFromNamespace(options, tmp_path / "in", tmp_path / "out")


def run(state):
    return pipeline(state, env_check, source_read, document_render, output_write, results_report)


class TestPipeline:
    """Test the CLI stages end to end"""

    def test_rich_html(self, tmp_path):
        final = run(state_build(tmp_path, standalone=True))
        output = tmp_path / "out" / "notes.html"
        assert final.outputTarget == output
        text = output.read_text(encoding="utf-8")
        assert text.startswith("<!DOCTYPE html>")
        assert "# &gt; 42" in text

    def test_round_trip(self, tmp_path):
        run(state_build(tmp_path, mode="roundtrip"))
        text = (tmp_path / "out" / "notes.md").read_text(encoding="utf-8")
        assert "```{t: Script}\n6 * 7\n# > 42\n```\n" in text

    def test_output_file_and_meta(self, tmp_path):
        final = run(state_build(tmp_path, format="markdown", outputFile="r.md", metaFile="meta.json"))
        assert (tmp_path / "out" / "r.md").exists()
        meta = json.loads((tmp_path / "out" / "meta.json").read_text(encoding="utf-8"))
        assert meta == {"front": {"head": {"meta": True, "name": "front"}, "body": "author: someone\n"}}
        assert len(final.outputWritten) == 2

    def test_same_directory_keeps_input(self, tmp_path):
        """Round trip into the input directory does not overwrite the source"""
        state = state_build(tmp_path, mode="roundtrip")
        state.outputdir = tmp_path / "in"
        final = run(state)
        assert final.outputTarget.name == "notes.roundtrip.md"
        assert (tmp_path / "in" / "notes.md").read_text(encoding="utf-8") == NOTEBOOK

    def test_crlf_file_kept(self, tmp_path):
        """Line endings of the input file reach the output untranslated"""
        state = state_build(tmp_path, mode="roundtrip")
        (tmp_path / "in" / "notes.md").write_bytes(b"Intro\r\n\r\n```{t: Script}\r\n6 * 7\r\n```\r\n")
        run(state)
        written = (tmp_path / "out" / "notes.md").read_bytes()
        assert written == b"Intro\r\n\r\n```{t: Script}\r\n6 * 7\r\n# > 42\r\n```\r\n"

    def test_missing_input(self, tmp_path):
        state = state_build(tmp_path)
        state.inputFile = "absent.md"
        with pytest.raises(SystemExit):
            env_check(state)

    def test_state_copy_is_independent(self, tmp_path):
        state = state_build(tmp_path)
        copy = state.copy()
        copy.mode = "roundtrip"
        assert state.mode == "rich"


class TestSettings:
    """Test application settings"""

    def test_placeholder_round_trip(self):
        placeholder = appsettings.placeHolder_make(7)
        assert appsettings.spanIndex_extract(placeholder) == 7

    def test_placeholder_rejects_other_text(self):
        assert appsettings.spanIndex_extract("SPAN7") is None
        assert appsettings.spanIndex_extract(appsettings.placeHolder_make(1) + "x") is None

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("YAMDR_STRICT_MODE", "true")
        monkeypatch.setenv("YAMDR_PYGMENTS_STYLE", "monokai")
        settings = AppSettings()
        assert settings.strict_mode is True
        assert settings.pygments_style == "monokai"


class TestLogging:
    """Test verbosity-gated logging"""

    @pytest.fixture
    def messages(self):
        captured = []
        handler = logger.add(lambda message: captured.append(message.record["message"]), format="{message}")
        yield captured
        logger.remove(handler)
        state_connectToLogger(None)

    def test_silent_without_state(self, messages):
        state_connectToLogger(None)
        LOG("hello", level=1)
        assert messages == []

    def test_verbosity_gate(self, messages):
        state_connectToLogger(SimpleNamespace(verbosity=2))
        LOG("shown", level=2)
        LOG("hidden", level=3)
        assert messages == ["shown"]
