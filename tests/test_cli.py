"""Tests for the command line interface."""

from unittest.mock import AsyncMock, patch

import aiohttp
import pytest
from click.testing import CliRunner

from acr_purge.cli import cli
from acr_purge.core.types import PurgeOptions, PurgeResult
from acr_purge.exceptions import ParseError, RegistryError


@pytest.fixture
def runner():
    return CliRunner()


def test_purge_passes_options(runner):
    """Test every purge flag ends up in PurgeOptions."""
    with patch("acr_purge.cli.run_purge", new=AsyncMock(return_value=PurgeResult())) as run:
        result = runner.invoke(
            cli,
            [
                "-r",
                "myreg",
                "-u",
                "user",
                "-p",
                "secret",
                "purge",
                "--repository",
                "app",
                "--ago",
                "3d12h",
                "--filter",
                "^hello.*",
                "--archive-repository",
                "archive",
                "--continue-on-error",
                "--dry-run",
            ],
        )

    assert result.exit_code == 0, result.output
    config, options = run.call_args.args
    assert config.login_url == "myreg.azurecr.io"
    assert config.auth == aiohttp.BasicAuth("user", "secret")
    assert options == PurgeOptions(
        repository="app",
        ago="3d12h",
        filter="^hello.*",
        archive_repository="archive",
        dangling_only=False,
        continue_on_error=True,
        dry_run=True,
    )


def test_purge_defaults(runner):
    """Test the default age and an anonymous registry."""
    with patch("acr_purge.cli.run_purge", new=AsyncMock(return_value=PurgeResult())) as run:
        result = runner.invoke(
            cli, ["-r", "registry.example.com", "purge", "--repository", "app", "--dangling"]
        )

    assert result.exit_code == 0, result.output
    config, options = run.call_args.args
    assert config.login_url == "registry.example.com"
    assert config.auth == ""
    assert options.ago == "1d"
    assert options.dangling_only


def test_token_replaces_password(runner):
    """Test an access token is sent as a Bearer header."""
    with patch("acr_purge.cli.run_purge", new=AsyncMock(return_value=PurgeResult())) as run:
        result = runner.invoke(
            cli,
            ["-r", "myreg", "-u", "user", "purge", "--repository", "app"],
            env={"ACR_TOKEN": "opaque-token"},
        )

    assert result.exit_code == 0, result.output
    assert run.call_args.args[0].auth == "Bearer opaque-token"


def test_registry_from_environment(runner):
    """Test the registry name can come from ACR_REGISTRY."""
    with patch("acr_purge.cli.run_purge", new=AsyncMock(return_value=PurgeResult())) as run:
        result = runner.invoke(
            cli, ["purge", "--repository", "app"], env={"ACR_REGISTRY": "fromenv"}
        )

    assert result.exit_code == 0, result.output
    assert run.call_args.args[0].login_url == "fromenv.azurecr.io"


def test_purge_requires_repository(runner):
    """Test a missing --repository is a usage error."""
    result = runner.invoke(cli, ["-r", "myreg", "purge"])

    assert result.exit_code == 2


def test_purge_errors_exit_nonzero(runner):
    """Test a purge error is printed and fails the command."""
    error = AsyncMock(side_effect=ParseError("Invalid duration 'abc'"))
    with patch("acr_purge.cli.run_purge", new=error):
        result = runner.invoke(cli, ["-r", "myreg", "purge", "--repository", "app"])

    assert result.exit_code == 1
    assert "Invalid duration 'abc'" in result.output


def test_collected_failures_exit_nonzero(runner):
    """Test continue-on-error failures still fail the command."""
    failed = PurgeResult(failed=[("myreg.azurecr.io/app:v1", RegistryError("DENIED", "no", 403))])
    with patch("acr_purge.cli.run_purge", new=AsyncMock(return_value=failed)):
        result = runner.invoke(
            cli, ["-r", "myreg", "purge", "--repository", "app", "--continue-on-error"]
        )

    assert result.exit_code == 1
    assert "1 item(s) could not be purged" in result.output


def test_unarchive_passes_options(runner):
    """Test unarchive forwards reference, tag name and repository."""
    digest = "sha256:" + "0" * 64
    with patch("acr_purge.cli.run_unarchive", new=AsyncMock(return_value=["other:v2"])) as run:
        result = runner.invoke(
            cli,
            [
                "-r",
                "myreg",
                "unarchive",
                "--archive-repository",
                "archive",
                "--reference",
                digest,
                "--tag-name",
                "v2",
                "--repository",
                "other",
            ],
        )

    assert result.exit_code == 0, result.output
    assert run.call_args.args[1:] == ("archive", digest)
    assert run.call_args.kwargs["new_tag_name"] == "v2"
    assert run.call_args.kwargs["repository"] == "other"


def test_purge_help_shows_examples(runner):
    """Test the purge help lists usage examples."""
    result = runner.invoke(cli, ["-r", "myreg", "purge", "--help"])

    assert result.exit_code == 0
    assert "--dangling" in result.output
    assert "acr-purge -r MyRegistry purge" in result.output
