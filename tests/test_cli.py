#!/usr/bin/env python3
"""
Unit tests for cli.py

Test Coverage:
    - build_parser / source_choice_from_args: command line parsing
    - ask_source_choice: interactive source selection
    - run: token check, repository resolution and action dispatch
    - main: top-level error boundary
"""

from unittest.mock import Mock

import pytest

from ghenvsync import cli
from ghenvsync.envsync_lib import Config
from ghenvsync.github_api import GitHubApiError
from ghenvsync.models import EnvSource, FileSource, SkipSource, Variable


@pytest.fixture
def config():
    return Config(token="test_token")


@pytest.fixture
def gateway(fake_gateway_factory):
    return fake_gateway_factory(
        variables={
            "staging": [Variable("A", "1"), Variable("B", "2")],
            "production": [Variable("A", "1"), Variable("B", "3"), Variable("C", "4")],
        },
        secrets={"staging": ["S1"], "production": ["S2"]},
    )


@pytest.fixture
def factory(gateway):
    return Mock(return_value=gateway)


def parse(*argv):
    return cli.build_parser().parse_args(list(argv))


class TestParser:
    """Test cases for command line parsing."""

    def test_sync_options(self):
        """Test that sync options become file and skip source choices."""
        args = parse("sync", "--repo", "o/r", "--env", "qa", "--vars-from-file", "v.env", "--skip-secrets")

        assert args.command == "sync"
        assert cli.source_choice_from_args(args.vars_from_env, args.vars_from_file, args.skip_vars) == (
            FileSource("v.env")
        )
        assert cli.source_choice_from_args(
            args.secrets_from_env, args.secrets_from_file, args.skip_secrets
        ) == SkipSource()

    def test_sync_sources_are_mutually_exclusive(self):
        """Test that two variable sources on one command line are rejected."""
        with pytest.raises(SystemExit):
            parse("sync", "--vars-from-env", "prod", "--vars-from-file", "v.env")

    def test_no_source_options(self):
        """Test that no source option yields no choice."""
        assert cli.source_choice_from_args(None, None, False) is None

    def test_no_command(self):
        """Test that the command is optional."""
        assert parse().command is None


class TestAskSourceChoice:
    """Test cases for ask_source_choice function."""

    def test_env(self, mocker):
        """Test choosing another environment as the source."""
        mocker.patch("ghenvsync.cli.prompts.choose", return_value="env")
        mocker.patch("ghenvsync.cli.prompts.ask", return_value="production")

        assert cli.ask_source_choice("variables") == EnvSource("production")

    def test_file(self, mocker):
        """Test choosing a local file as the source."""
        mocker.patch("ghenvsync.cli.prompts.choose", return_value="file")
        mocker.patch("ghenvsync.cli.prompts.ask", return_value="secrets.env")

        assert cli.ask_source_choice("secrets") == FileSource("secrets.env")

    def test_missing_answer_skips(self, mocker):
        """Test that an empty environment name skips processing."""
        mocker.patch("ghenvsync.cli.prompts.choose", return_value="env")
        mocker.patch("ghenvsync.cli.prompts.ask", return_value=None)

        assert cli.ask_source_choice("variables") == SkipSource()

    def test_skip(self, mocker):
        """Test choosing to skip processing."""
        mocker.patch("ghenvsync.cli.prompts.choose", return_value="skip")

        assert cli.ask_source_choice("variables") == SkipSource()


class TestRun:
    """Test cases for the run function."""

    def test_missing_token(self, factory):
        """Test that a missing token exits with status 1 before any API call."""
        logger = Mock()

        assert cli.run(parse("diff"), Config(), logger, factory) == 1
        logger.error.assert_called_once()
        factory.assert_not_called()

    def test_missing_repository_is_a_no_op(self, config, factory, mocker):
        """Test that an empty repository answer exits with status 0."""
        mocker.patch("ghenvsync.cli.prompts.ask", return_value=None)
        logger = Mock()

        assert cli.run(parse("diff"), config, logger, factory) == 0
        logger.info.assert_called_with("Operation cancelled or missing repository input.")
        factory.assert_not_called()

    def test_invalid_repository_is_a_no_op(self, config, factory):
        """Test that a repository without owner/repo form is rejected."""
        logger = Mock()

        assert cli.run(parse("export", "--repo", "not-a-repo"), config, logger, factory) == 0
        logger.error.assert_called_once()
        factory.assert_not_called()

    def test_repository_from_config(self, factory, gateway):
        """Test that the configured repository and API URL reach the gateway."""
        config = Config(token="test_token", repo_full_name="testowner/testrepo")

        cli.run(parse("diff", "--source", "staging", "--compare", "production"), config, Mock(), factory)

        assert factory.call_args.args == ("testowner", "testrepo", "test_token")
        assert factory.call_args.kwargs["api_url"] == "https://api.github.com"

    def test_diff_prints_report(self, config, factory, capsys):
        """Test that diff prints the report without .env content by default."""
        args = parse("diff", "--repo", "o/r", "--source", "staging", "--compare", "production")

        assert cli.run(args, config, Mock(), factory) == 0

        out = capsys.readouterr().out
        assert "--- Diff Report: 'staging' vs 'production' ---" in out
        assert "B: ('staging': \"2\", 'production': \"3\")" in out
        assert "Recommended .env content" not in out

    def test_diff_env_file(self, config, factory, capsys):
        """Test that --env-file also prints the remediation content."""
        args = parse(
            "diff", "--repo", "o/r", "--source", "staging", "--compare", "production", "--env-file"
        )

        assert cli.run(args, config, Mock(), factory) == 0

        out = capsys.readouterr().out
        assert "--- Recommended .env content (copy and paste below) ---" in out
        assert "B=2 # Previous value in 'production': 3" in out
        assert "S1=\n" in out

    def test_diff_interactive_offers_env_file(self, config, factory, mocker, capsys):
        """Test that interactive diff offers the remediation content."""
        mocker.patch("ghenvsync.cli.prompts.ask", side_effect=["staging", "production"])
        confirm = mocker.patch("ghenvsync.cli.prompts.confirm", return_value=True)

        assert cli.run(parse("diff", "--repo", "o/r"), config, Mock(), factory) == 0

        confirm.assert_called_once()
        assert "Recommended .env content" in capsys.readouterr().out

    def test_diff_missing_compare_is_a_no_op(self, config, factory, gateway, mocker):
        """Test that diff without a compare environment makes no API call."""
        mocker.patch("ghenvsync.cli.prompts.ask", return_value=None)

        assert cli.run(parse("diff", "--repo", "o/r", "--source", "staging"), config, Mock(), factory) == 0
        assert gateway.calls == []

    def test_diff_failure(self, config, factory, capsys):
        """Test that a failed diff exits with status 1 and prints no report."""
        args = parse("diff", "--repo", "o/r", "--source", "staging", "--compare", "missing")

        assert cli.run(args, config, Mock(), factory) == 1
        assert "Diff Report" not in capsys.readouterr().out

    def test_export(self, config, factory, tmp_path):
        """Test that export writes the requested file."""
        output = tmp_path / "staging.env"
        args = parse("export", "--repo", "o/r", "--env", "staging", "--output", str(output))

        assert cli.run(args, config, Mock(), factory) == 0
        assert "A=1\n" in output.read_text()

    def test_export_failure(self, config, factory, tmp_path):
        """Test that a failed export exits with status 1."""
        args = parse("export", "--repo", "o/r", "--env", "missing", "--output", str(tmp_path / "x.env"))

        assert cli.run(args, config, Mock(), factory) == 1

    def test_sync(self, config, factory, gateway):
        """Test a sync driven entirely by command line options."""
        args = parse(
            "sync", "--repo", "o/r", "--env", "qa", "--vars-from-env", "staging", "--skip-secrets"
        )

        assert cli.run(args, config, Mock(), factory) == 0
        assert gateway.variables["qa"] == [Variable("A", "1"), Variable("B", "2")]

    def test_sync_asks_for_missing_choices(self, config, factory, gateway, mocker):
        """Test that sync asks for sources not given on the command line."""
        ask_source = mocker.patch(
            "ghenvsync.cli.ask_source_choice", return_value=SkipSource()
        )

        assert cli.run(parse("sync", "--repo", "o/r", "--env", "qa"), config, Mock(), factory) == 0
        assert [call.args[0] for call in ask_source.call_args_list] == ["variables", "secrets"]
        assert "qa" in gateway.environments

    def test_sync_missing_target_is_a_no_op(self, config, factory, gateway, mocker):
        """Test that sync without a target environment makes no API call."""
        mocker.patch("ghenvsync.cli.prompts.ask", return_value=None)

        assert cli.run(parse("sync", "--repo", "o/r"), config, Mock(), factory) == 0
        assert gateway.calls == []

    def test_interactive_action(self, config, factory, mocker, tmp_path):
        """Test choosing the action interactively."""
        mocker.patch("ghenvsync.cli.prompts.choose", return_value="export")
        mocker.patch(
            "ghenvsync.cli.prompts.ask",
            side_effect=["o/r", "staging", str(tmp_path / "out.env")],
        )

        assert cli.run(parse(), config, Mock(), factory) == 0
        assert (tmp_path / "out.env").exists()

    def test_cancelled_action(self, config, factory, mocker):
        """Test that a cancelled action choice exits with status 0."""
        mocker.patch("ghenvsync.cli.prompts.choose", return_value=None)

        assert cli.run(parse(), config, Mock(), factory) == 0
        factory.assert_not_called()


class TestMain:
    """Test cases for the main entry point."""

    @pytest.fixture(autouse=True)
    def quiet(self, mocker):
        mocker.patch("ghenvsync.cli.load_config", return_value=Config(token="test_token"))
        self.logger = Mock()
        mocker.patch("ghenvsync.cli.setup_logging", return_value=self.logger)

    def test_returns_run_result(self, mocker):
        """Test that main returns the exit code of the action."""
        run = mocker.patch("ghenvsync.cli.run", return_value=0)

        assert cli.main(["diff"]) == 0
        run.assert_called_once()

    def test_unexpected_error_prints_payload(self, mocker):
        """Test that an unexpected API error is logged with its payload."""
        payload = {"message": "Bad credentials", "documentation_url": "https://docs.github.com"}
        mocker.patch(
            "ghenvsync.cli.run",
            side_effect=GitHubApiError("Get environment", 401, "Bad credentials", payload),
        )

        assert cli.main(["diff"]) == 1

        messages = [call.args[0] for call in self.logger.error.call_args_list]
        assert "Bad credentials" in messages[0]
        assert messages[1].startswith("GitHub API Error:")
        assert '"documentation_url": "https://docs.github.com"' in messages[1]

    def test_keyboard_interrupt(self, mocker, capsys):
        """Test that Ctrl-C exits with status 130."""
        mocker.patch("ghenvsync.cli.run", side_effect=KeyboardInterrupt)

        assert cli.main(["sync"]) == 130
        assert "Operation cancelled by user." in capsys.readouterr().out

    def test_unwritable_log_file(self, mocker, capsys):
        """Test that a log file that cannot be opened exits with status 1."""
        mocker.patch(
            "ghenvsync.cli.setup_logging",
            side_effect=PermissionError(13, "Permission denied", "/readonly/ghenvsync.log"),
        )
        run = mocker.patch("ghenvsync.cli.run")

        assert cli.main(["diff"]) == 1
        assert "Permission denied" in capsys.readouterr().err
        run.assert_not_called()
