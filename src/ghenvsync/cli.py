#!/usr/bin/env python3
"""
GitHub Environment Sync command line

Copies, compares and exports the variables and secrets of GitHub Actions
environments.

Commands:
    sync    Create the target environment if needed, then copy variables
            and secrets into it from another environment or a local file
    diff    Compare two environments and print a report (and, optionally,
            .env content that brings the second in line with the first)
    export  Write an environment's variables and secret names to a file

Any value not given on the command line is asked for interactively. Run
without a command to choose the action interactively too.

Usage:
    ghenvsync sync --repo myorg/myrepo --env staging --vars-from-env production
    ghenvsync diff --repo myorg/myrepo --source production --compare staging --env-file
    ghenvsync export --repo myorg/myrepo --env production --output production.env

Environment variables:
    GITHUB_TOKEN: GitHub token with 'repo' scope (required; GH_API_SECRET also accepted)
    REPO_FULL_NAME: Default repository as owner/repo (optional)
    GITHUB_API_URL: API base URL for GitHub Enterprise Server (optional)
    LOG_LEVEL: Logging level (optional, defaults to INFO)
    GHENVSYNC_LOG_FILE: Log file path (optional, defaults to ghenvsync.log)

A .env file in the working directory is read for these values as well.
"""

import argparse
import json
import sys

from ghenvsync import prompts
from ghenvsync.diff import perform_env_diff, render_diff_report, render_remediation_file
from ghenvsync.envsync_lib import load_config, parse_repo_full_name, setup_logging
from ghenvsync.export import export_environment_to_file
from ghenvsync.github_api import GitHubGateway
from ghenvsync.models import EnvSource, FileSource, SkipSource
from ghenvsync.sync import sync_environment

ACTIONS = [
    ("sync", "Copy/Sync environments"),
    ("diff", "Diff two environments"),
    ("export", "Export environment to file"),
]

TOKEN_GUIDE = """GITHUB_TOKEN is required to interact with the GitHub API.

Create a personal access token at https://github.com/settings/tokens
  - classic token: select the 'repo' scope
  - fine-grained token: grant read and write on Actions, Environments,
    Secrets and Variables, plus Administration if environments should be
    created
Then set it in your shell or in a .env file in this directory:
    GITHUB_TOKEN=ghp_xxxxx
Make sure .env is listed in your .gitignore."""


def build_parser():
    parser = argparse.ArgumentParser(
        prog="ghenvsync",
        description="Copy, diff and export GitHub Actions environment variables and secrets.",
    )
    subparsers = parser.add_subparsers(dest="command")

    sync_parser = subparsers.add_parser(
        "sync", help="Copy variables and secrets into a target environment"
    )
    sync_parser.add_argument("--repo", help="Repository as owner/repo")
    sync_parser.add_argument("--env", help="Target environment name")
    vars_group = sync_parser.add_mutually_exclusive_group()
    vars_group.add_argument("--vars-from-env", metavar="NAME", help="Copy variables from this environment")
    vars_group.add_argument("--vars-from-file", metavar="PATH", help="Import variables from this dotenv file")
    vars_group.add_argument("--skip-vars", action="store_true", help="Do not process variables")
    secrets_group = sync_parser.add_mutually_exclusive_group()
    secrets_group.add_argument(
        "--secrets-from-env",
        metavar="NAME",
        help="Copy secret names from this environment (values are prompted)",
    )
    secrets_group.add_argument("--secrets-from-file", metavar="PATH", help="Import secrets from this dotenv file")
    secrets_group.add_argument("--skip-secrets", action="store_true", help="Do not process secrets")

    diff_parser = subparsers.add_parser("diff", help="Compare two environments")
    diff_parser.add_argument("--repo", help="Repository as owner/repo")
    diff_parser.add_argument("--source", help="Source (reference) environment name")
    diff_parser.add_argument("--compare", help="Environment to compare against the source")
    diff_parser.add_argument(
        "--env-file",
        action="store_true",
        help="Also print .env content that aligns the compare environment with the source",
    )

    export_parser = subparsers.add_parser("export", help="Export an environment to a file")
    export_parser.add_argument("--repo", help="Repository as owner/repo")
    export_parser.add_argument("--env", help="Environment name")
    export_parser.add_argument("--output", help="Output file path (generated if omitted)")

    return parser


def source_choice_from_args(env_name, file_path, skip):
    """Turn one group of source options into a choice, or None if none was given."""
    if skip:
        return SkipSource()
    if env_name:
        return EnvSource(env_name)
    if file_path:
        return FileSource(file_path)
    return None


def ask_source_choice(kind):
    """Interactively choose where variables or secrets come from."""
    if kind == "secrets":
        env_title = "Copy names from a source GitHub Environment (values will be prompted)"
        file_title = "Import names and values from a local file (e.g., secrets.env)"
    else:
        env_title = "Copy from a source GitHub Environment"
        file_title = "Import from a local .env file"

    source = prompts.choose(
        f"How do you want to source {kind.upper()}?",
        [("env", env_title), ("file", file_title), ("skip", f"Skip {kind} processing")],
        default=2,
    )

    if source == "env":
        env_name = prompts.ask(
            f"Enter the name of the SOURCE GitHub Actions environment to copy {kind} FROM:"
        )
        return EnvSource(env_name) if env_name else SkipSource()
    if source == "file":
        path = prompts.ask(f"Enter the path to the {kind} file (e.g., {kind}.env):")
        return FileSource(path) if path else SkipSource()
    return SkipSource()


def run_sync(args, gateway, logger):
    target_env_name = getattr(args, "env", None) or prompts.ask(
        "Enter the name of the TARGET GitHub Actions environment:"
    )
    if not target_env_name:
        logger.info("Target environment name is required for copy/sync.")
        return 0

    variable_choice = source_choice_from_args(
        getattr(args, "vars_from_env", None),
        getattr(args, "vars_from_file", None),
        getattr(args, "skip_vars", False),
    ) or ask_source_choice("variables")
    secret_choice = source_choice_from_args(
        getattr(args, "secrets_from_env", None),
        getattr(args, "secrets_from_file", None),
        getattr(args, "skip_secrets", False),
    ) or ask_source_choice("secrets")

    ok = sync_environment(
        gateway,
        target_env_name,
        variable_choice,
        secret_choice,
        prompt_secret=prompts.ask_secret,
        logger=logger,
    )
    return 0 if ok else 1


def run_diff(args, gateway, logger):
    interactive = not getattr(args, "source", None) or not getattr(args, "compare", None)
    source_env_name = getattr(args, "source", None) or prompts.ask(
        "Enter the name of the SOURCE environment for diff:"
    )
    compare_env_name = getattr(args, "compare", None) or prompts.ask(
        "Enter the name of the COMPARE environment for diff:"
    )
    if not source_env_name or not compare_env_name:
        logger.info("Both source and compare environment names are required for diff.")
        return 0

    logger.info(
        f"Comparing environments '{source_env_name}' and '{compare_env_name}' "
        f"in repo '{gateway.full_name}'..."
    )
    results = perform_env_diff(gateway, source_env_name, compare_env_name, logger)
    if results is None:
        logger.error("Diff not available.")
        return 1

    print(render_diff_report(results))

    show_env_file = getattr(args, "env_file", False)
    if not show_env_file and interactive and not results.is_identical:
        show_env_file = prompts.confirm("Generate .env content to align the environments?")
    if show_env_file:
        print("--- Recommended .env content (copy and paste below) ---")
        print(render_remediation_file(results))
        print("--- End of .env content ---")

    logger.info("Diff completed successfully!")
    return 0


def run_export(args, gateway, logger):
    env_name = getattr(args, "env", None)
    output_path = getattr(args, "output", None)
    if not env_name:
        env_name = prompts.ask("Enter the name of the environment to export:")
        if env_name and not output_path:
            output_path = prompts.ask(
                "Enter the output file path (optional, will auto-generate if empty):"
            )
    if not env_name:
        logger.info("Environment name is required for export.")
        return 0

    logger.info(f"Exporting environment '{env_name}' from repo '{gateway.full_name}'...")
    export_path = export_environment_to_file(gateway, env_name, output_path, logger)
    if not export_path:
        return 1

    logger.info(f"Export completed successfully! File saved to: {export_path}")
    return 0


RUNNERS = {"sync": run_sync, "diff": run_diff, "export": run_export}


def run(args, config, logger, gateway_factory=GitHubGateway):
    """
    Resolve the action and repository, then dispatch to the action.

    Returns:
        int: Process exit code
    """
    if not config.token:
        logger.error(TOKEN_GUIDE)
        return 1

    action = args.command or prompts.choose("What action do you want to perform?", ACTIONS)
    if action not in RUNNERS:
        logger.info("Operation cancelled.")
        return 0

    repo_full_name = (
        getattr(args, "repo", None)
        or config.repo_full_name
        or prompts.ask("Enter the target repository name (e.g., owner/repo):")
    )
    if not repo_full_name:
        logger.info("Operation cancelled or missing repository input.")
        return 0

    owner_repo = parse_repo_full_name(repo_full_name)
    if owner_repo is None:
        logger.error(f"Invalid repository '{repo_full_name}'. Please use owner/repo format.")
        return 0

    owner, repo = owner_repo
    gateway = gateway_factory(owner, repo, config.token, api_url=config.api_url, logger=logger)
    return RUNNERS[action](args, gateway, logger)


def main(argv=None):
    """
    Entry point for the ghenvsync command.

    Exit codes:
        0: Success, or nothing to do because a required input was missing
        1: Configuration error, or the requested operation failed
        130: Cancelled by the user
    """
    args = build_parser().parse_args(argv)
    try:
        config = load_config()
        logger = setup_logging(config.log_file, "ghenvsync", config.log_level)
    except OSError as e:
        print(f"Could not initialise ghenvsync: {e}", file=sys.stderr)
        return 1

    try:
        return run(args, config, logger)
    except KeyboardInterrupt:
        print("\nOperation cancelled by user.")
        return 130
    except Exception as e:
        logger.error(f"An unexpected error occurred: {e}")
        payload = getattr(e, "payload", None)
        if payload:
            logger.error(f"GitHub API Error: {json.dumps(payload, indent=2)}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
