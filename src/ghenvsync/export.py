#!/usr/bin/env python3
"""
GitHub Environment Exporter

Writes an environment's variables and secret names to a dotenv file.
Secret values cannot be read back from GitHub, so each secret is written
as an empty ``NAME=`` placeholder to be filled in by hand.
"""

import logging
import os
import time
from datetime import datetime, timezone

import requests

from ghenvsync.envsync_lib import format_env_line, run_concurrently
from ghenvsync.github_api import GitHubApiError


def default_export_path(env_name, directory=None, now=None):
    """
    Build the default output path, e.g. ``production-export-1718000000000.env``.

    Args:
        env_name (str): Environment being exported
        directory (str, optional): Output directory; defaults to the cwd
        now (float, optional): Epoch seconds to embed; defaults to now
    """
    millis = int((time.time() if now is None else now) * 1000)
    return os.path.join(directory or os.getcwd(), f"{env_name}-export-{millis}.env")


def render_export(full_name, env_name, variables, secret_names, generated_at=None):
    """
    Render the export file content.

    Args:
        full_name (str): Repository as owner/repo
        env_name (str): Environment name
        variables (list): Variable objects
        secret_names (list): Secret names
        generated_at (datetime or str, optional): Timestamp for the header

    Returns:
        str: The file content
    """
    if generated_at is None:
        generated_at = datetime.now(timezone.utc)
    if isinstance(generated_at, datetime):
        generated_at = generated_at.isoformat(timespec="milliseconds")

    lines = [
        f"# GitHub Environment Export: {env_name}",
        f"# Repository: {full_name}",
        f"# Generated on: {generated_at}",
        "",
        f"# Environment Variables ({len(variables)} total)",
    ]
    if variables:
        lines.extend(["# Format: VARIABLE_NAME=value", ""])
        lines.extend(format_env_line(v.name, v.value) for v in variables)
    else:
        lines.append("# No variables found in this environment")
    lines.append("")

    lines.extend(
        [
            f"# Secret Names ({len(secret_names)} total)",
            "# Note: Secret values are not exported for security reasons",
            "# Format: SECRET_NAME= (you need to set values manually)",
            "",
        ]
    )
    if secret_names:
        lines.extend(f"{name}=" for name in secret_names)
    else:
        lines.append("# No secrets found in this environment")

    return "\n".join(lines) + "\n"


def export_environment_to_file(gateway, env_name, output_path=None, logger=None):
    """
    Export one environment to a dotenv file.

    Variables and secret names are fetched concurrently; if either fetch
    fails nothing is written.

    Args:
        gateway (GitHubGateway): Gateway for the repository
        env_name (str): Environment to export
        output_path (str, optional): Where to write; generated if omitted
        logger (logging.Logger, optional): Logger instance for output

    Returns:
        str: The path written, or None on failure
    """
    logger = logger or logging.getLogger(__name__)
    logger.info(f"Exporting environment '{env_name}' to file...")

    try:
        variables, secret_names = run_concurrently(
            lambda: gateway.list_variables(env_name),
            lambda: gateway.list_secret_names(env_name),
        )
    except (GitHubApiError, requests.RequestException) as e:
        logger.error(f"Error exporting environment '{env_name}': {e}")
        return None

    content = render_export(gateway.full_name, env_name, variables, secret_names)
    final_path = output_path or default_export_path(env_name)

    try:
        with open(final_path, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        logger.error(f"Error writing export file '{final_path}': {e}")
        return None

    logger.info(f"Environment exported successfully to: {final_path}")
    logger.info(f"   Variables exported: {len(variables)}")
    logger.info(f"   Secret names exported: {len(secret_names)}")
    return final_path
