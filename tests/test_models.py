"""Tests for twigc.models."""

import io
import sys

from twigc.models import STDIN, InputSources, Package, ProcessContext, RenderRequest


class TestRenderRequest:
    def test_defaults(self):
        req = RenderRequest()
        assert req.template == STDIN
        assert req.from_stdin
        assert req.dirs == []
        assert req.cache is None
        assert req.strict is False
        assert req.escape is False

    def test_file_template(self):
        assert not RenderRequest(template="page.twig").from_stdin


class TestInputSources:
    def test_defaults_not_shared(self):
        a, b = InputSources(), InputSources()
        a.pairs.append("x=1")
        assert b.pairs == []


class TestProcessContext:
    def test_from_process(self, monkeypatch):
        monkeypatch.setenv("TWIGC_TEST_VAR", "1")
        ctx = ProcessContext.from_process()
        assert ctx.environ["TWIGC_TEST_VAR"] == "1"
        assert ctx.stdin is sys.stdin

    def test_read_stdin(self):
        ctx = ProcessContext(stdin=io.StringIO("abc"))
        assert ctx.read_stdin() == "abc"


class TestPackage:
    def test_license_label(self):
        assert Package("a", "1", ("MIT", "Apache-2.0")).license_label == "MIT, Apache-2.0"
        assert Package("a", "1").license_label == "?"
