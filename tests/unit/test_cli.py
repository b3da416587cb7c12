"""Unit tests for the curator CLI."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import yaml

from curator.cli import EXIT_FAILED, EXIT_OK, EXIT_USAGE, create_parser, main
from curator.curation.plan import CurationStep
from curator.errors import CurationError
from curator.version import __version__


class TestCLIParser:
    """Tests for CLI argument parsing."""

    def test_parser_creation(self) -> None:
        """Test that parser is created successfully."""
        parser = create_parser()
        assert parser.prog == "curator"

    def test_version_flag(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test --version flag output."""
        with pytest.raises(SystemExit) as exc_info:
            create_parser().parse_args(["--version"])

        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_step_command_parsing(self) -> None:
        """Test 'step' command parsing."""
        args = create_parser().parse_args(
            ["step", "monitor-import", "--cluster", "sno-1", "-n", "clusters"]
        )

        assert args.command == "step"
        assert args.step == "monitor-import"
        assert args.cluster == "sno-1"
        assert args.namespace == "clusters"

    def test_unknown_step_rejected(self) -> None:
        """Test only known steps are accepted."""
        with pytest.raises(SystemExit):
            create_parser().parse_args(["step", "reinstall"])

    def test_status_defaults(self) -> None:
        """Test 'status' defaults to YAML output."""
        args = create_parser().parse_args(["status", "sno-1"])

        assert args.output == "yaml"
        assert args.namespace is None


class TestStepCommand:
    """Tests for `curator step`."""

    def test_uses_job_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test cluster, namespace, Job name and curation come from the Job env."""
        monkeypatch.setenv("CLUSTER_NAME", "sno-1")
        monkeypatch.setenv("CURATOR_NAMESPACE", "clusters")
        monkeypatch.setenv("JOB_NAME", "curator-job-abcde")
        monkeypatch.setenv("CURATION", "upgrade")
        clients = MagicMock()

        with (
            patch("curator.cli.get_kube_clients", return_value=clients),
            patch("curator.cli.run_step") as mock_run_step,
        ):
            mock_run_step.return_value = _done()
            assert main(["step", "prehook-ansiblejob"]) == EXIT_OK

        mock_run_step.assert_called_once_with(
            CurationStep.PREHOOK,
            "sno-1",
            "clusters",
            clients,
            job_name="curator-job-abcde",
            curation="upgrade",
        )

    def test_namespace_defaults_to_cluster(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the curator namespace falls back to the cluster name."""
        monkeypatch.delenv("CURATOR_NAMESPACE", raising=False)
        monkeypatch.delenv("JOB_NAME", raising=False)

        with (
            patch("curator.cli.get_kube_clients"),
            patch("curator.cli.run_step") as mock_run_step,
        ):
            mock_run_step.return_value = _done()
            main(["step", "done", "--cluster", "sno-1"])

        assert mock_run_step.call_args.args[2] == "sno-1"

    def test_missing_cluster(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test a usage error without a cluster."""
        monkeypatch.delenv("CLUSTER_NAME", raising=False)

        assert main(["step", "done"]) == EXIT_USAGE
        assert "CLUSTER_NAME" in capsys.readouterr().err

    def test_step_failure(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test a failed step exits non-zero."""

        async def fail(*_args: Any, **_kwargs: Any) -> None:
            raise CurationError(code="hook_failed", step="prehook-ansiblejob", message="boom")

        with (
            patch("curator.cli.get_kube_clients"),
            patch("curator.cli.run_step", side_effect=fail),
        ):
            assert main(["step", "prehook-ansiblejob", "--cluster", "sno-1"]) == EXIT_FAILED

        assert "prehook-ansiblejob: boom" in capsys.readouterr().err


class TestStatusCommand:
    """Tests for `curator status`."""

    def _clients(self, curator: dict[str, Any], not_found: Any) -> MagicMock:
        def get(**kwargs: Any) -> dict[str, Any]:
            if kwargs["plural"] == "clustercurators":
                return curator
            raise not_found()

        clients = MagicMock()
        clients.custom.get_namespaced_custom_object.side_effect = get
        return clients

    def test_yaml(
        self,
        sample_curator: dict[str, Any],
        api_not_found,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Test YAML status output."""
        sample_curator["status"] = {
            "curatingJob": "curator-job-abcde",
            "conditions": [
                {"type": "clustercurator-job", "status": "False", "reason": "Job_has_started"}
            ],
        }
        with patch(
            "curator.cli.get_kube_clients", return_value=self._clients(sample_curator, api_not_found)
        ):
            assert main(["status", "sno-1"]) == EXIT_OK

        output = yaml.safe_load(capsys.readouterr().out)
        assert output["desiredCuration"] == "install"
        assert output["curatingJob"] == "curator-job-abcde"
        assert output["conditions"][0]["reason"] == "Job_has_started"
        assert output["target"] == {"name": "sno-1", "namespace": "sno-1", "type": "imported"}

    def test_json(
        self,
        sample_curator: dict[str, Any],
        api_not_found,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Test JSON status output."""
        with patch(
            "curator.cli.get_kube_clients", return_value=self._clients(sample_curator, api_not_found)
        ):
            assert main(["status", "sno-1", "-o", "json"]) == EXIT_OK

        assert json.loads(capsys.readouterr().out)["cluster"] == "sno-1"

    def test_not_found(self, api_not_found, capsys: pytest.CaptureFixture[str]) -> None:
        """Test a missing curator."""
        clients = MagicMock()
        clients.custom.get_namespaced_custom_object.side_effect = api_not_found()

        with patch("curator.cli.get_kube_clients", return_value=clients):
            assert main(["status", "sno-1"]) == EXIT_FAILED

        assert "not found" in capsys.readouterr().err


class TestMain:
    """Tests for the main entry point."""

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test help is printed without a command."""
        assert main([]) == EXIT_OK
        assert "usage" in capsys.readouterr().out


def _done() -> Any:
    """Awaitable that resolves immediately, standing in for run_step's coroutine."""

    async def noop() -> None:
        return None

    return noop()
