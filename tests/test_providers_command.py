"""Tests for the subprocess-backed adapters (command runner, terraform, docker, npm)."""

import json
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from tenantctl.core.errors import DestroyError, ProviderError
from tenantctl.providers.base import RegistryAuthorization
from tenantctl.providers.command import run_command
from tenantctl.providers.docker import DockerBuilder
from tenantctl.providers.npm import NpmSiteBuilder
from tenantctl.providers.terraform import TerraformProvider

RUN = "tenantctl.providers.command.subprocess.run"


def completed(returncode=0, stdout="", stderr=""):
    proc = MagicMock()
    proc.returncode = returncode
    proc.stdout = stdout
    proc.stderr = stderr
    return proc


def argv_list(mock_run):
    return [c.args[0] for c in mock_run.call_args_list]


class TestRunCommand:
    """Tests for run_command."""

    def test_success(self):
        with patch(RUN, return_value=completed(stdout="ok\n")) as mock_run:
            result = run_command(["terraform", "version"], env={"PATH": "/bin"})

        assert result.ok
        assert result.stdout == "ok\n"
        kwargs = mock_run.call_args.kwargs
        assert kwargs["env"] == {"PATH": "/bin"}
        assert kwargs["capture_output"] is True

    def test_failure_keeps_stderr_tail(self):
        with patch(RUN, return_value=completed(1, stderr="Error: bucket already exists")):
            with pytest.raises(ProviderError) as exc_info:
                run_command(["terraform", "apply"])

        assert exc_info.value.details["returncode"] == 1
        assert "bucket already exists" in exc_info.value.raw

    def test_no_check(self):
        with patch(RUN, return_value=completed(3)):
            result = run_command(["false"], check=False)
        assert result.returncode == 3

    def test_missing_binary(self):
        with patch(RUN, side_effect=FileNotFoundError("terraform")):
            with pytest.raises(ProviderError) as exc_info:
                run_command(["terraform", "init"])
        assert "not found" in exc_info.value.message

    def test_timeout(self):
        with patch(RUN, side_effect=subprocess.TimeoutExpired(["docker", "push"], 5)):
            with pytest.raises(ProviderError) as exc_info:
                run_command(["docker", "push"], timeout=5)
        assert "timed out" in exc_info.value.message


class TestTerraformProvider:
    """Tests for TerraformProvider."""

    def make(self, tmp_path):
        return TerraformProvider(tmp_path, workspace="acme", env=lambda: {"AWS_REGION": "us-east-1"})

    def test_apply_initializes_once_and_targets(self, tmp_path):
        provider = self.make(tmp_path)
        var_file = tmp_path / "acme.tfvars"

        with patch(RUN, return_value=completed()) as mock_run:
            provider.apply(var_file, targets=["module.registry"])
            provider.apply(var_file)

        calls = argv_list(mock_run)
        assert calls[0][:2] == ["terraform", "init"]
        assert calls[1] == ["terraform", "workspace", "select", "-or-create=true", "acme"]
        assert f"-var-file={var_file.resolve()}" in calls[2]
        assert "-target=module.registry" in calls[2]
        assert not any(a.startswith("-target") for a in calls[3])
        assert len(calls) == 4
        assert mock_run.call_args.kwargs["cwd"] == tmp_path

    def test_outputs_parsed(self, tmp_path):
        provider = self.make(tmp_path)
        provider._initialized = True
        payload = {
            "cdn_domain": {"value": "d1.cloudfront.net", "type": "string"},
            "ecr_repository_urls": {"value": {"backend": "host/acme-backend"}},
        }

        with patch(RUN, return_value=completed(stdout=json.dumps(payload))):
            outputs = provider.outputs()

        assert outputs == {
            "cdn_domain": "d1.cloudfront.net",
            "ecr_repository_urls": {"backend": "host/acme-backend"},
        }

    def test_missing_output(self, tmp_path):
        provider = self.make(tmp_path)
        provider._initialized = True

        with patch(RUN, return_value=completed(stdout="{}")):
            with pytest.raises(ProviderError):
                provider.output("cdn_domain")

    def test_invalid_output_json(self, tmp_path):
        provider = self.make(tmp_path)
        provider._initialized = True

        with patch(RUN, return_value=completed(stdout="not json")):
            with pytest.raises(ProviderError):
                provider.outputs()

    def test_destroy_failure_is_destroy_error(self, tmp_path):
        provider = self.make(tmp_path)
        provider._initialized = True

        with patch(RUN, return_value=completed(1, stderr="Error: resource in use")):
            with pytest.raises(DestroyError) as exc_info:
                provider.destroy(tmp_path / "acme.tfvars")

        assert "resource in use" in exc_info.value.raw


class TestDockerBuilder:
    """Tests for DockerBuilder."""

    def test_login_uses_stdin_once_per_host(self):
        builder = DockerBuilder(env=lambda: {})
        auth = RegistryAuthorization(host="reg.example.com", username="AWS", password="tok")

        with patch(RUN, return_value=completed()) as mock_run:
            builder.login(auth)
            builder.login(auth)

        assert mock_run.call_count == 1
        argv = mock_run.call_args.args[0]
        assert "--password-stdin" in argv
        assert "tok" not in argv
        assert mock_run.call_args.kwargs["input"] == "tok"

    def test_build_and_push(self, tmp_path):
        builder = DockerBuilder(env=lambda: {})

        with patch(RUN, return_value=completed()) as mock_run:
            local = builder.build(
                tmp_path, "acme-backend:v1", build_file=tmp_path / "Dockerfile", platform="linux/amd64"
            )
            builder.push(local, "host/acme-backend:v1")

        calls = argv_list(mock_run)
        assert calls[0] == [
            "docker", "build", "--tag", "acme-backend:v1", "--platform", "linux/amd64",
            "--file", str(tmp_path / "Dockerfile"), str(tmp_path),
        ]
        assert calls[1] == ["docker", "tag", "acme-backend:v1", "host/acme-backend:v1"]
        assert calls[2] == ["docker", "push", "host/acme-backend:v1"]

    def test_push_failure(self):
        builder = DockerBuilder(env=lambda: {})

        with patch(RUN, side_effect=[completed(), completed(1, stderr="denied: not authorized")]):
            with pytest.raises(ProviderError) as exc_info:
                builder.push("a:v1", "host/a:v1")

        assert "denied" in exc_info.value.raw


class TestNpmSiteBuilder:
    """Tests for NpmSiteBuilder."""

    def test_build(self, tmp_path):
        (tmp_path / "dist").mkdir()

        with patch(RUN, return_value=completed()) as mock_run:
            output = NpmSiteBuilder().build(tmp_path, "production", {"VITE_TENANT": "acme"})

        assert output == tmp_path / "dist"
        calls = argv_list(mock_run)
        assert calls[0] == ["npm", "ci"]
        assert calls[1] == ["npm", "run", "build", "--", "--mode", "production"]
        assert mock_run.call_args.kwargs["env"]["VITE_TENANT"] == "acme"

    def test_missing_output_dir(self, tmp_path):
        with patch(RUN, return_value=completed()):
            with pytest.raises(ProviderError):
                NpmSiteBuilder().build(Path(tmp_path), "staging", {})
