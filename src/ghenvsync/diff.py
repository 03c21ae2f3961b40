#!/usr/bin/env python3
"""
GitHub Environment Differ

Compares the variables and secret names of two GitHub environments in the
same repository and renders the result two ways:

- a sectioned report for the console
- dotenv content that, applied to the compare environment, brings it in line
  with the source environment

Secrets are compared by name only. GitHub never returns secret values, so
two secrets with the same name are never reported, whatever their values.
"""

import logging
from datetime import datetime, timezone

import requests

from ghenvsync.envsync_lib import format_env_line, quote_env_value, run_concurrently
from ghenvsync.github_api import GitHubApiError
from ghenvsync.models import (
    DiffResults,
    SecretDiff,
    ValueChange,
    Variable,
    VariableDiff,
)


def _to_mapping(variables):
    """Name -> value; when a name repeats, the last value wins."""
    mapping = {}
    for variable in variables:
        mapping[variable.name] = variable.value
    return mapping


def _secret_name(item):
    # Only the name is ever read, even from objects that carry a value.
    return item if isinstance(item, str) else item.name


def diff_variables(source_variables, compare_variables):
    """
    Classify variables of two environments.

    Args:
        source_variables (list): Variable objects of the source environment
        compare_variables (list): Variable objects of the compare environment

    Returns:
        VariableDiff: ``source_only`` and ``value_changed`` in source order,
        ``compare_only`` in compare order. Names with equal values on both
        sides appear nowhere.
    """
    source = _to_mapping(source_variables)
    compare = _to_mapping(compare_variables)
    result = VariableDiff()

    for name, source_value in source.items():
        if name not in compare:
            result.source_only.append(Variable(name, source_value))
        elif compare[name] != source_value:
            result.value_changed.append(ValueChange(name, source_value, compare[name]))

    for name, compare_value in compare.items():
        if name not in source:
            result.compare_only.append(Variable(name, compare_value))

    return result


def diff_secret_names(source_secrets, compare_secrets):
    """
    Classify secrets of two environments by name.

    Accepts names or objects with a ``name`` attribute. Duplicate names are
    reported once, at their first position.

    Returns:
        SecretDiff: Names present on one side only
    """
    source_names = list(dict.fromkeys(_secret_name(s) for s in source_secrets))
    compare_names = list(dict.fromkeys(_secret_name(s) for s in compare_secrets))
    source_set = set(source_names)
    compare_set = set(compare_names)

    return SecretDiff(
        source_only_names=[name for name in source_names if name not in compare_set],
        compare_only_names=[name for name in compare_names if name not in source_set],
    )


def perform_env_diff(gateway, source_env_name, compare_env_name, logger=None):
    """
    Fetch two environments and compute their difference.

    The four reads (variables and secret names for each side) run
    concurrently. If any of them fails, no partial result is produced.

    Args:
        gateway (GitHubGateway): Gateway for the repository
        source_env_name (str): Environment treated as the reference
        compare_env_name (str): Environment compared against it
        logger (logging.Logger, optional): Logger instance for output

    Returns:
        DiffResults: The difference, or None if any fetch failed

    Example:
        >>> results = perform_env_diff(gateway, "staging", "production")
        >>> if results:
        ...     print(render_diff_report(results))
    """
    logger = logger or logging.getLogger(__name__)
    logger.info(
        f"Starting diff between '{source_env_name}' and '{compare_env_name}' "
        f"for repo '{gateway.full_name}'..."
    )

    try:
        source_vars, compare_vars, source_secrets, compare_secrets = run_concurrently(
            lambda: gateway.list_variables(source_env_name),
            lambda: gateway.list_variables(compare_env_name),
            lambda: gateway.list_secret_names(source_env_name),
            lambda: gateway.list_secret_names(compare_env_name),
        )
    except (GitHubApiError, requests.RequestException) as e:
        logger.error(f"Error during environment diff: {e}")
        return None

    return DiffResults(
        variables=diff_variables(source_vars, compare_vars),
        secrets=diff_secret_names(source_secrets, compare_secrets),
        source_env_name=source_env_name,
        compare_env_name=compare_env_name,
    )


def render_diff_report(results):
    """Render a human-readable report of ``results``."""
    variables = results.variables
    secrets = results.secrets
    source = results.source_env_name
    compare = results.compare_env_name

    lines = [f"--- Diff Report: '{source}' vs '{compare}' ---", "", "Variables:"]

    if variables.is_empty:
        lines.append("  Variables are identical in both environments.")
    else:
        if variables.source_only:
            lines.append(f"  Only in '{source}':")
            lines.extend(f"    - {v.name}={v.value}" for v in variables.source_only)
        if variables.compare_only:
            lines.append(f"  Only in '{compare}' (missing from '{source}'):")
            lines.extend(f"    - {v.name}={v.value}" for v in variables.compare_only)
        if variables.value_changed:
            lines.append("  Different values:")
            lines.extend(
                f"    - {c.name}: ('{source}': \"{c.source_value}\", "
                f"'{compare}': \"{c.compare_value}\")"
                for c in variables.value_changed
            )

    lines.extend(["", "Secrets (names only):"])

    if secrets.is_empty:
        lines.append("  Secret names are identical in both environments.")
    else:
        if secrets.source_only_names:
            lines.append(f"  Only in '{source}':")
            lines.extend(f"    - {name}" for name in secrets.source_only_names)
        if secrets.compare_only_names:
            lines.append(f"  Only in '{compare}' (missing from '{source}'):")
            lines.extend(f"    - {name}" for name in secrets.compare_only_names)

    lines.extend(["", "--- End of Diff Report ---"])
    return "\n".join(lines) + "\n"


def render_remediation_file(results, generated_at=None):
    """
    Render dotenv content that aligns the compare environment with the source.

    Items that exist only in the compare environment are listed commented
    out, since there is nothing in the source to apply.

    Args:
        results (DiffResults): Output of perform_env_diff
        generated_at (datetime or str, optional): Timestamp for the header;
            defaults to the current UTC time

    Returns:
        str: The file content
    """
    if generated_at is None:
        generated_at = datetime.now(timezone.utc)
    if isinstance(generated_at, datetime):
        generated_at = generated_at.isoformat(timespec="milliseconds")

    variables = results.variables
    secrets = results.secrets
    source = results.source_env_name
    compare = results.compare_env_name

    lines = [
        f"# .env content to help align '{compare}' with '{source}'",
        f"# Generated on {generated_at}",
        "",
    ]

    if variables.source_only or variables.value_changed:
        lines.append(f"## Variables to Add or Update in '{compare}' (from '{source}') ##")
        lines.extend(format_env_line(v.name, v.value) for v in variables.source_only)
        lines.extend(
            f"{format_env_line(c.name, c.source_value)} "
            f"# Previous value in '{compare}': {quote_env_value(c.compare_value)}"
            for c in variables.value_changed
        )
        lines.append("")

    if secrets.source_only_names:
        lines.append(
            f"## Secrets to Add in '{compare}' "
            f"(names from '{source}', values must be set manually) ##"
        )
        lines.extend(f"{name}=" for name in secrets.source_only_names)
        lines.append("")

    if variables.compare_only:
        lines.append(f"## Variables present ONLY in '{compare}' (not in '{source}') ##")
        lines.extend(
            f"# {format_env_line(v.name, v.value)} # Only in '{compare}'"
            for v in variables.compare_only
        )
        lines.append("")

    if secrets.compare_only_names:
        lines.append(
            f"## Secret names present ONLY in '{compare}' (not in '{source}') ##"
        )
        lines.extend(
            f"# {name}= # Only in '{compare}'" for name in secrets.compare_only_names
        )
        lines.append("")

    actionable = (
        variables.source_only or variables.value_changed or secrets.source_only_names
    )
    if not actionable:
        lines.append(
            f"# No differences found that require updating '{compare}' "
            f"based on '{source}'."
        )
    lines.append("# End of generated .env content.")

    return "\n".join(lines) + "\n"
