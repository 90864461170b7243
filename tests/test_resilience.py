"""
Tests for resilience utilities (health checks, resource cleanup).
"""

import sys
import tempfile
from pathlib import Path

import pytest

from zupfbuild.renderer import RENDERER_PATH_ENV
from zupfbuild.resilience import (
    HealthCheck,
    check_node_health,
    check_renderer_health,
    print_health_report,
    resource_cleanup,
    run_all_health_checks,
)


class TestHealthChecks:
    """Test health check functions."""

    def test_node_with_python_interpreter(self):
        """Any executable answering --version counts as available."""
        result = check_node_health(sys.executable)
        assert isinstance(result, HealthCheck)
        assert result.name == "node"
        assert result.available
        assert "Python" in (result.version or "")

    def test_node_missing(self):
        result = check_node_health("definitely-not-a-node-binary")
        assert not result.available
        assert "not found" in result.details

    def test_renderer_script(self, fake_zupfnoter_script):
        result = check_renderer_health(fake_zupfnoter_script)
        assert result.available
        assert str(fake_zupfnoter_script) in result.details

    def test_renderer_not_configured(self, monkeypatch):
        monkeypatch.delenv(RENDERER_PATH_ENV, raising=False)
        result = check_renderer_health()
        assert not result.available
        assert RENDERER_PATH_ENV in result.details

    def test_run_all_health_checks(self, fake_zupfnoter_script):
        results = run_all_health_checks(fake_zupfnoter_script)
        assert set(results) == {"node", "zupfnoter"}
        assert results["zupfnoter"].available

    def test_run_all_health_checks_with_node(self, fake_zupfnoter_script):
        results = run_all_health_checks(fake_zupfnoter_script, node=sys.executable)
        assert results["node"].available
        assert all(check.available for check in results.values())

    def test_print_health_report(self, fake_zupfnoter_script, capsys):
        print_health_report(fake_zupfnoter_script)
        out = capsys.readouterr().out
        assert "Dependency Health Check" in out
        assert "ZUPFNOTER" in out


class TestResourceCleanup:
    """Test resource cleanup context manager."""

    def test_cleanup_on_error(self):
        """Test that resources are cleaned up on error."""
        with tempfile.TemporaryDirectory() as tmpdir:
            test_file = Path(tmpdir) / "test.json"
            test_file.write_text("{}")

            with pytest.raises(ValueError):
                with resource_cleanup([test_file], cleanup_on_error=True):
                    raise ValueError("Test error")

            assert not test_file.exists()

    def test_no_cleanup_on_success_by_default(self):
        """Test that resources are not cleaned up on success by default."""
        with tempfile.TemporaryDirectory() as tmpdir:
            test_file = Path(tmpdir) / "test.json"
            test_file.write_text("{}")

            with resource_cleanup([test_file], cleanup_on_error=True):
                pass

            assert test_file.exists()

    def test_cleanup_on_success(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            test_dir = Path(tmpdir) / "scratch"
            test_dir.mkdir()
            (test_dir / "a.pdf").write_bytes(b"")

            with resource_cleanup([test_dir], cleanup_on_success=True):
                pass

            assert not test_dir.exists()

    def test_missing_path_ignored(self, tmp_path):
        with resource_cleanup([tmp_path / "never-created"], cleanup_on_success=True):
            pass
