#!/usr/bin/env python3
"""
GitHub Environment Sync Library

This module provides shared utilities used by the sync, diff and export
commands for GitHub Actions environments.

Functions:
    setup_logging: Configure logging with timestamps and dual output
    load_config: Build the runtime configuration from the environment
    parse_repo_full_name: Split and validate an owner/repo string
    parse_env_file: Read name/value pairs from a dotenv file
    quote_env_value: Quote a value so it survives a dotenv re-read
    format_env_line: Render one name/value pair as a dotenv line
    encrypt_secret: Encrypt secrets using public key
    run_concurrently: Run independent read calls in parallel
"""

import base64
import logging
import os
import re
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass

from dotenv import dotenv_values, find_dotenv, load_dotenv
from nacl import public

from ghenvsync.models import Variable

# GitHub API base URL
GITHUB_API = "https://api.github.com"

DEFAULT_LOG_FILE = "ghenvsync.log"

# Characters that force a value to be written double-quoted
_NEEDS_QUOTING = re.compile(r"[\s#'\"\\]")


@dataclass
class Config:
    """Runtime settings for one invocation of the tool."""

    token: str = None
    repo_full_name: str = None
    api_url: str = GITHUB_API
    log_level: str = "INFO"
    log_file: str = DEFAULT_LOG_FILE


def setup_logging(log_file, logger_name, level=None):
    """
    Setup logging with timestamp format and both file and console handlers.

    Args:
        log_file (str): Path to the log file
        logger_name (str): Name for the logger instance
        level (str, optional): Log level; falls back to LOG_LEVEL, then INFO

    Returns:
        logging.Logger: Configured logger instance

    Example:
        >>> logger = setup_logging("ghenvsync.log", "ghenvsync")
        >>> logger.info("Application started")
    """
    log_level = level or os.environ.get("LOG_LEVEL", "INFO")

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stdout),
        ],
    )
    return logging.getLogger(logger_name)


def load_config(env=None, load_env_file=True):
    """
    Build the runtime configuration.

    A ``.env`` file in the working directory is loaded into the process
    environment first (values already set are kept). The token is read from
    GITHUB_TOKEN, with GH_API_SECRET accepted as a fallback.

    Args:
        env (dict, optional): Mapping to read from instead of os.environ
        load_env_file (bool): Whether to load a local .env file first

    Returns:
        Config: The resolved configuration
    """
    if env is None:
        if load_env_file:
            load_dotenv(find_dotenv(usecwd=True), override=False)
        env = os.environ

    return Config(
        token=env.get("GITHUB_TOKEN") or env.get("GH_API_SECRET") or None,
        repo_full_name=env.get("REPO_FULL_NAME") or None,
        api_url=(env.get("GITHUB_API_URL") or GITHUB_API).rstrip("/"),
        log_level=env.get("LOG_LEVEL") or "INFO",
        log_file=env.get("GHENVSYNC_LOG_FILE") or DEFAULT_LOG_FILE,
    )


def parse_repo_full_name(repo_full_name):
    """
    Split an ``owner/repo`` string.

    Returns:
        tuple: (owner, repo), or None when the value is not owner/repo
    """
    if not repo_full_name:
        return None
    parts = repo_full_name.strip().split("/")
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


def parse_env_file(file_path, logger=None):
    """
    Read name/value pairs from a dotenv-style file.

    Pairs are returned in file order. Variable expansion is disabled so that
    values are taken literally, and lines without an ``=`` are ignored.

    Args:
        file_path (str or Path): Path to the file
        logger (logging.Logger, optional): Logger instance for output

    Returns:
        list: List of Variable objects, or None if the file could not be read

    Example:
        >>> pairs = parse_env_file("variables.env")
        >>> print([(v.name, v.value) for v in pairs])
        [('DB_HOST', 'localhost'), ('DB_PORT', '5432')]
    """
    logger = logger or logging.getLogger(__name__)

    if not os.path.isfile(file_path):
        logger.warning(f"File not found at '{file_path}'.")
        return None

    try:
        parsed = dotenv_values(file_path, interpolate=False, encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Error reading or parsing file at '{file_path}': {e}")
        return None

    variables = []
    for name, value in parsed.items():
        if value is None:
            logger.debug(f"Ignoring '{name}' in '{file_path}': no value assigned")
            continue
        variables.append(Variable(name, value))
    return variables


def quote_env_value(value):
    """
    Quote a value for a dotenv file when it needs it.

    Plain values are returned as-is. Values that would not survive a
    re-read unchanged are double-quoted with backslash escapes.
    """
    if not _NEEDS_QUOTING.search(value):
        return value
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )
    return f'"{escaped}"'


def format_env_line(name, value):
    """
    Render a name/value pair as a dotenv line.

    Example:
        >>> format_env_line("GREETING", "hello world")
        'GREETING="hello world"'
    """
    return f"{name}={quote_env_value(value)}"


def encrypt_secret(public_key_base64, secret_value):
    """
    Encrypt a secret value using the public key.

    Uses libsodium (via PyNaCl) to encrypt the secret value with the
    provided public key. This is required by GitHub's API for storing secrets.

    Args:
        public_key_base64 (str): Base64-encoded public key from GitHub
        secret_value (str): The secret value to encrypt

    Returns:
        str: Base64-encoded encrypted secret value

    Example:
        >>> encrypted = encrypt_secret(public_key, "my_secret_value")
    """
    public_key = public.PublicKey(base64.b64decode(public_key_base64))

    # Anonymous encryption: only the holder of the private key can open it
    sealed_box = public.SealedBox(public_key)
    encrypted = sealed_box.encrypt(secret_value.encode())

    return base64.b64encode(encrypted).decode()


def run_concurrently(*tasks):
    """
    Run zero-argument callables in parallel and collect their results.

    Results are returned in the order the tasks were given. The first
    failure is re-raised once it is seen and any tasks that have not
    started yet are cancelled, so callers get either every result or an
    exception, never a partial list.

    Example:
        >>> a, b = run_concurrently(lambda: 1, lambda: 2)
    """
    results = [None] * len(tasks)
    if not tasks:
        return results

    with ThreadPoolExecutor(max_workers=len(tasks)) as executor:
        future_to_index = {
            executor.submit(task): index for index, task in enumerate(tasks)
        }
        try:
            for future in as_completed(future_to_index):
                results[future_to_index[future]] = future.result()
        except Exception:
            for future in future_to_index:
                future.cancel()
            raise

    return results
