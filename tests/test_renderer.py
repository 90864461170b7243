"""
Tests for the Zupfnoter renderer adapter.
"""

import json
import sys

import pytest

from conftest import abc_source
from zupfbuild.renderer import (
    NODE_ENV,
    RENDERER_PATH_ENV,
    ZupfnoterRenderer,
    resolve_renderer_script,
)
from zupfbuild.subprocess_utils import CommandError


class TestResolveRendererScript:
    """Tests for locating the renderer script."""

    def test_explicit_path(self, fake_zupfnoter_script):
        assert resolve_renderer_script(fake_zupfnoter_script) == fake_zupfnoter_script

    def test_from_environment(self, fake_zupfnoter_script, monkeypatch):
        monkeypatch.setenv(RENDERER_PATH_ENV, str(fake_zupfnoter_script))
        assert resolve_renderer_script() == fake_zupfnoter_script

    def test_not_configured(self, monkeypatch):
        monkeypatch.delenv(RENDERER_PATH_ENV, raising=False)
        with pytest.raises(FileNotFoundError, match=RENDERER_PATH_ENV):
            resolve_renderer_script()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="not found"):
            resolve_renderer_script(tmp_path / "missing.js")


class TestZupfnoterRenderer:
    """Tests for command construction and invocation."""

    def test_command_without_config(self, fake_zupfnoter_script, tmp_path):
        renderer = ZupfnoterRenderer(fake_zupfnoter_script, node="node")
        cmd = renderer.command(tmp_path / "song.abc", tmp_path / "pdf")
        assert cmd == [
            "node",
            str(fake_zupfnoter_script),
            str(tmp_path / "song.abc"),
            str(tmp_path / "pdf"),
        ]

    def test_command_with_config(self, fake_zupfnoter_script, tmp_path):
        renderer = ZupfnoterRenderer(fake_zupfnoter_script, node="node")
        cmd = renderer.command(tmp_path / "song.abc", tmp_path / "pdf", tmp_path / "c.json")
        assert cmd[-1] == str(tmp_path / "c.json")

    def test_node_from_environment(self, fake_zupfnoter_script, monkeypatch):
        monkeypatch.setenv(NODE_ENV, "/opt/node/bin/node")
        assert ZupfnoterRenderer(fake_zupfnoter_script).node == "/opt/node/bin/node"

    def test_render_writes_outputs(self, fake_zupfnoter_script, tmp_path):
        """The CLI contract: PDFs named after the input plus an error log."""
        source = tmp_path / "song.abc"
        source.write_text(abc_source("Song"))
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"a": 1}))
        out_dir = tmp_path / "pdf"
        out_dir.mkdir()

        renderer = ZupfnoterRenderer(fake_zupfnoter_script, node=sys.executable)
        result = renderer.render(source, out_dir, config)

        assert result.returncode == 0
        assert (out_dir / "song_-A_a3.pdf").exists()
        assert (out_dir / "song_-B_a3.pdf").exists()
        log = (out_dir / "song.abc.err.log").read_text()
        assert '"a": 1' in log

    def test_render_failure(self, fake_zupfnoter_script, tmp_path):
        source = tmp_path / "broken.abc"
        source.write_text("X:1\n%%fail\n")
        renderer = ZupfnoterRenderer(fake_zupfnoter_script, node=sys.executable)

        with pytest.raises(CommandError) as exc_info:
            renderer.render(source, tmp_path)

        assert exc_info.value.returncode == 3
        assert "cannot render broken.abc" in exc_info.value.stderr
