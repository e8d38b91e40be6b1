"""Tests for the output aggregator."""

import asyncio
import io

import pytest

from convoy.infrastructure.output import OutputAggregator


class TestNodeOutput:
    def test_complete_lines_are_prefixed(self, outputs, stream):
        out = outputs.scope("web")
        out.write("step one\nstep ")
        out.write("two\r\n")
        assert stream.getvalue().splitlines() == ["web | step one", "web | step two"]

    def test_partial_line_held_until_flush(self, outputs, stream):
        out = outputs.scope("web")
        out.write("no newline")
        assert stream.getvalue() == ""
        out.flush()
        assert stream.getvalue() == "web | no newline\n"

    def test_scopes_never_interleave_mid_line(self, outputs, stream):
        web = outputs.scope("web")
        db = outputs.scope("db")
        web.write("web-part-")
        db.write("db line\n")
        web.write("rest\n")
        assert stream.getvalue().splitlines() == ["db | db line", "web | web-part-rest"]

    def test_status_helpers(self, outputs, stream):
        out = outputs.scope("web")
        out.info("hello")
        out.warning("careful\nreally")
        out.success("done")
        assert stream.getvalue().splitlines() == [
            "web: hello",
            "web: WARNING: careful",
            "web: really",
            "web: done",
        ]

    def test_step_success(self, outputs, stream):
        with outputs.scope("web").step("building"):
            pass
        assert stream.getvalue().splitlines() == ["web: building", "web: building done"]

    def test_step_failure_reraises(self, outputs, stream):
        with pytest.raises(RuntimeError):
            with outputs.scope("web").step("building"):
                raise RuntimeError("bad thing\nmore")
        assert stream.getvalue().splitlines()[-1] == "web: building failed: bad thing"

    def test_step_cancelled(self, outputs, stream):
        with pytest.raises(asyncio.CancelledError):
            with outputs.scope("web").step("deploying"):
                raise asyncio.CancelledError()
        assert stream.getvalue().splitlines()[-1] == "web: deploying cancelled"

    def test_scope_is_cached(self, outputs):
        assert outputs.scope("web") is outputs.scope("web")


class TestOutputAggregator:
    def test_header(self, outputs, stream):
        outputs.header("Deploying apps...")
        assert stream.getvalue() == "==> Deploying apps...\n"

    def test_color_applied_to_label_only(self):
        stream = io.StringIO()
        aggregator = OutputAggregator(stream=stream, plain_text=False)
        aggregator.scope("web").write("line\n")
        value = stream.getvalue()
        assert value.startswith("\033[")
        assert value.endswith(" line\n")
