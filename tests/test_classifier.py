"""
Classifier tests

Tests segmentation, losslessness, header decoding and span discovery.
"""

import pytest

from yamdr.lib.classifier import Classifier, span_parse, spans_find
from yamdr.lib.errors import DocumentSyntaxError
from yamdr.models.document import FencedBlock, ProseSegment


def classify(source):
    return Classifier(source).classify()


MESSY = """# Title

Some *prose* with `code` and a [link][ref].

[ref]: https://example.com

- item one
- item two

  ```{t: Script}
  nested = 1
  ```

> quoted

| a | b |
|---|---|
| 1 | 2 |

    indented code `_not_a_span_`

<div>raw html</div>

```python
print("plain")
```
```{t: Script}
unclosed = 1"""


class TestSegmentation:
    """Test the split into prose and fenced blocks"""

    def test_empty_source(self):
        """Empty source has no segments"""
        document = classify("")
        assert document.segments == []
        assert document.source == ""

    def test_paragraph_and_block(self):
        """Prose, blank gap and fenced block in order"""
        document = classify("Hello\n\n```{t: Script}\n1 + 1\n```\n")
        kinds = [type(segment).__name__ for segment in document.segments]
        assert kinds == ['ProseSegment', 'ProseSegment', 'FencedBlock']
        assert document.segments[0].kind == 'paragraph'
        assert document.segments[1].kind == 'blank'

    def test_lossless(self):
        """Concatenated segment sources reproduce the input exactly"""
        document = classify(MESSY)
        assert document.source == MESSY

    def test_line_endings_kept(self):
        """CRLF and lone CR line endings survive in the segment sources"""
        source = "a\r\nb\rc\r\n\r\n```{t: Script}\r\nx = 1\r\n```\r\n"
        document = classify(source)
        assert document.source == source
        block = document.segments[-1]
        assert block.opening == "```{t: Script}\r\n"
        assert block.closing == "```\r\n"
        assert block.body == "x = 1\n"
        assert block.header.type == "Script"

    def test_line_ranges_match_tokenizer(self):
        """Mixed line endings do not shift block boundaries"""
        document = classify("one\r\n\r\n```{t: Script}\rx\r```\ntail\n")
        kinds = [getattr(segment, 'kind', 'fence') for segment in document.segments]
        assert kinds == ['paragraph', 'blank', 'fence', 'paragraph']
        assert document.segments[2].content == "x\r"

    def test_bytes_input(self):
        """UTF-8 bytes are decoded"""
        document = classify("Grüße\n".encode('utf-8'))
        assert document.source == "Grüße\n"

    def test_invalid_utf8(self):
        """Undecodable bytes are a document-level error"""
        with pytest.raises(DocumentSyntaxError):
            classify(b"\xff\xfe\xfa")

    def test_non_text_input(self):
        """Non-text input is a document-level error"""
        with pytest.raises(DocumentSyntaxError):
            classify(42)

    def test_nested_fence_stays_prose(self):
        """Fences inside list items are not executable blocks"""
        document = classify("- item\n\n  ```{t: Script}\n  1\n  ```\n")
        assert document.blocks() == []
        assert document.segments[0].kind == 'bullet_list'

    def test_offsets_and_lines(self):
        """Segments record their line and character ranges"""
        source = "Hi\n\n```{t: Script}\nx = 1\n```\n"
        document = classify(source)
        block = document.segments[2]
        assert block.lines == (2, 5)
        assert source[block.offset[0]:block.offset[1]] == block.source

    def test_fence_parts(self):
        """Opening and closing lines are kept verbatim, body is the content"""
        document = classify("````{t: Script}\nx = 1\n````  \n")
        block = document.segments[0]
        assert block.opening == "````{t: Script}\n"
        assert block.closing == "````  \n"
        assert block.body == "x = 1\n"
        assert block.indent == 0

    def test_unclosed_fence(self):
        """A fence running to the end of the document has no closing line"""
        document = classify("```{t: Script}\nx = 1\n")
        block = document.segments[0]
        assert block.closing == ""
        assert block.source == "```{t: Script}\nx = 1\n"


class TestHeaderDecoding:
    """Test fence info string decoding"""

    def test_json_header(self):
        """JSON object headers decode"""
        block = classify('```{"t": "Script", "hidden_title": "Setup"}\nx = 1\n```\n').segments[0]
        assert block.header.type == "Script"
        assert block.header.hidden_title == "Setup"
        assert block.header.suppressed

    def test_yaml_header(self):
        """YAML flow mapping headers decode"""
        block = classify('```{t: Script, hidden: true}\nx = 1\n```\n').segments[0]
        assert block.header.type == "Script"
        assert block.header.hidden is True

    def test_type_key(self):
        """The long 'type' key works like 't'"""
        block = classify('```{type: DynamicTable}\nrow([1])\n```\n').segments[0]
        assert block.header.type == "DynamicTable"
        assert 'type' not in block.header.options

    def test_language_fence_is_plain(self):
        """Ordinary language fences have no header"""
        block = classify('```python\nprint(1)\n```\n').segments[0]
        assert isinstance(block, FencedBlock)
        assert block.header is None
        assert block.header_error is None

    def test_mapping_without_type_is_plain(self):
        """A mapping with no type key is an ordinary fence"""
        block = classify('```{hidden: true}\nx\n```\n').segments[0]
        assert block.header is None

    def test_malformed_header_degrades(self):
        """Malformed headers become plain blocks with the error recorded"""
        block = classify('```{t: Script\nx = 1\n```\n').segments[0]
        assert block.header is None
        assert "cannot decode block header" in block.header_error

    def test_unrecognized_keys_preserved(self):
        """Unknown keys are kept for the executor"""
        block = classify('```{t: Code, language: python, numbers: true}\nx\n```\n').segments[0]
        assert block.header.options == {'language': 'python', 'numbers': True}


class TestSpans:
    """Test interpolation span discovery"""

    def test_simple_span(self):
        """`_expr_` is a span"""
        spans = spans_find("Total: `_total_hours_` hours")
        assert len(spans) == 1
        assert spans[0].expression == "total_hours"
        assert spans[0].start == 7
        assert spans[0].end == 22

    def test_dunder_is_ordinary_code(self):
        """`__init__` stays inline code"""
        assert spans_find("Call `__init__` first") == []

    def test_short_span_ignored(self):
        """Spans need more than three characters"""
        assert spans_find("`_x_`") == []
        assert len(spans_find("`_xy_`")) == 1

    def test_plain_code_ignored(self):
        """Ordinary inline code is not a span"""
        assert spans_find("Use `x + 1` here") == []

    def test_directive_and_previous(self):
        """Format directive and previous annotation are separated"""
        assert span_parse("_total |> .1f # > 27.5_") == ("total", ".1f", "27.5")

    def test_previous_only(self):
        assert span_parse("_a + b # > 3_") == ("a + b", None, "3")

    def test_directive_token_inside_string(self):
        """A directive token inside a string literal belongs to the expression"""
        assert span_parse("_s.count('|>')_") == ("s.count('|>')", None, None)
        assert span_parse("_f('|>') |> .1f_") == ("f('|>')", ".1f", None)

    def test_indented_code_skipped(self):
        """Spans inside indented code blocks are left alone"""
        document = classify(MESSY)
        code = [s for s in document.segments if isinstance(s, ProseSegment) and s.kind == 'code_block']
        assert len(code) == 1
        assert code[0].spans == []
