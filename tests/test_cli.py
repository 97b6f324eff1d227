"""Tests for the `diff-proxy` CLI."""

from __future__ import annotations

import subprocess
import sys
from unittest.mock import patch

import pytest
import yaml

from diff_proxy.cli.main import _apply_overrides, build_parser, main
from diff_proxy.config import load_config


@pytest.fixture()
def tmp_cwd(tmp_path, monkeypatch):
    """Run test in a clean temporary directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _run_cli(*args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "diff_proxy.cli.main", *args],
        capture_output=True,
        text=True,
    )


def _write_config(path, proxies):
    path.write_text(yaml.dump({"proxies": proxies}))
    return path


def test_config_validate_ok(tmp_cwd):
    path = _write_config(tmp_cwd / "diff-proxy.yaml", [
        {"target": "https://api.anthropic.com", "port": 8082, "name": "claude"},
    ])
    result = _run_cli("-c", str(path), "config", "validate")
    assert result.returncode == 0
    assert "Config OK (1 proxies)" in result.stdout
    assert "[claude] 127.0.0.1:8082 -> https://api.anthropic.com" in result.stdout


def test_config_validate_reports_errors(tmp_cwd):
    path = _write_config(tmp_cwd / "diff-proxy.yaml", [
        {"target": "api.anthropic.com", "port": 8082},
        {"target": "https://api.openai.com", "port": 8082},
    ])
    result = _run_cli("-c", str(path), "config", "validate")
    assert result.returncode == 1
    assert "http(s) URL" in result.stdout
    assert "already used" in result.stdout


def test_config_validate_missing_file(tmp_cwd):
    result = _run_cli("-c", str(tmp_cwd / "missing.yaml"), "config", "validate")
    assert result.returncode == 1
    assert "not found" in result.stderr


def test_proxy_without_target_fails(tmp_cwd):
    path = _write_config(tmp_cwd / "diff-proxy.yaml", [])
    result = _run_cli("-c", str(path), "proxy")
    assert result.returncode == 1
    assert "At least one proxy" in result.stderr


def test_no_command_prints_help():
    with pytest.raises(SystemExit) as exc:
        main([])
    assert exc.value.code == 1


class TestApplyOverrides:
    def test_target_replaces_configured_proxies(self):
        config = load_config(config_dict={"proxies": [
            {"target": "http://a.test", "port": 9000},
            {"target": "http://b.test", "port": 9001},
        ]})
        args = build_parser().parse_args([
            "proxy", "--target", "https://api.anthropic.com/", "--port", "8090",
            "--session-key-field", "user",
        ])
        config = _apply_overrides(config, args)
        [inst] = config.proxies
        assert inst.target == "https://api.anthropic.com"
        assert inst.port == 8090
        assert inst.session_key_field == "user"

    def test_without_target_keeps_config(self):
        config = load_config(config_dict={"proxies": [{"target": "http://a.test", "port": 9000}]})
        args = build_parser().parse_args(["proxy", "--compact", "--log-dir", "logs"])
        config = _apply_overrides(config, args)
        assert config.proxies[0].port == 9000
        assert config.logging.compact is True
        assert config.request_log.dir == "logs"

    def test_proxy_command_runs_listeners(self, tmp_cwd):
        path = _write_config(tmp_cwd / "diff-proxy.yaml", [])
        with patch("diff_proxy.proxy.multi.run_multi_instance") as run:
            async def fake_run(config):
                fake_run.config = config

            run.side_effect = fake_run
            main(["-c", str(path), "proxy", "--target", "http://localhost:11434", "-p", "8123"])

        assert fake_run.config.proxies[0].port == 8123
        assert fake_run.config.proxies[0].target == "http://localhost:11434"


def test_config_validate_non_mapping_file(tmp_cwd):
    path = tmp_cwd / "diff-proxy.yaml"
    path.write_text("- just\n- a list\n")
    result = _run_cli("-c", str(path), "config", "validate")
    assert result.returncode == 1
    assert "config must be a mapping" in result.stderr
    assert "Traceback" not in result.stderr


class TestTargetOnlyFlags:
    @pytest.mark.parametrize("flags,expected", [
        (["--port", "9000"], "--port"),
        (["--host", "0.0.0.0"], "--host"),
        (["--session-key-field", "user"], "--session-key-field"),
    ])
    def test_rejected_without_target(self, tmp_cwd, flags, expected):
        path = _write_config(tmp_cwd / "diff-proxy.yaml", [
            {"target": "https://api.anthropic.com", "port": 8082},
        ])
        result = _run_cli("-c", str(path), "proxy", *flags)
        assert result.returncode == 1
        assert expected in result.stderr
        assert "only apply together with --target" in result.stderr

    def test_defaults_used_with_target(self):
        args = build_parser().parse_args(["proxy", "--target", "http://localhost:11434"])
        config = _apply_overrides(load_config(config_dict={}), args)
        [inst] = config.proxies
        assert (inst.port, inst.host, inst.session_key_field) == (8080, "127.0.0.1", "model")
