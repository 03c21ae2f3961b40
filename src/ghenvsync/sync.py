#!/usr/bin/env python3
"""
GitHub Environment Sync

Populates a target GitHub environment with variables and secrets taken from
another environment of the same repository or from a local dotenv file.

The target environment is created if it does not exist. Items are written
one at a time, in source order. A failure on one item is logged and the
remaining items are still written.

Secrets copied from another environment only bring their names across,
since GitHub never returns secret values. The value of each one is asked
for interactively before it is encrypted and written.
"""

import logging

import requests
from nacl.exceptions import CryptoError

from ghenvsync.envsync_lib import encrypt_secret, parse_env_file
from ghenvsync.github_api import GitHubApiError
from ghenvsync.models import EnvSource, FileSource, SkipSource

# Errors that are reported per item without stopping a batch
_ITEM_ERRORS = (GitHubApiError, requests.RequestException)

# Errors raised while sealing a value with a malformed key
_SEAL_ERRORS = (CryptoError, ValueError, TypeError)


def ensure_target_env_exists(gateway, env_name, logger=None):
    """
    Make sure the target environment exists, creating it if necessary.

    Args:
        gateway (GitHubGateway): Gateway for the repository
        env_name (str): Name of the target environment
        logger (logging.Logger, optional): Logger instance for output

    Returns:
        Environment: The existing or newly created environment, or None if
        it could not be fetched or created
    """
    logger = logger or logging.getLogger(__name__)

    try:
        environment = gateway.get_environment(env_name)
        if environment:
            logger.info(
                f"Target environment '{env_name}' already exists (ID: {environment.id})."
            )
            return environment

        logger.info(f"Target environment '{env_name}' not found. Creating...")
        gateway.create_environment(env_name)

        # Re-fetch to confirm the environment is really there
        environment = gateway.get_environment(env_name)
    except _ITEM_ERRORS as e:
        logger.error(f"Error during target environment setup: {e}")
        return None

    if not environment:
        logger.error(
            "Failed to create or find target environment after creation attempt."
        )
        return None

    logger.info(f"Target environment '{env_name}' created (ID: {environment.id}).")
    return environment


def fetch_environment_public_key(gateway, env_name, logger=None):
    """
    Fetch the target environment's public key for secret encryption.

    Returns:
        PublicKeyInfo: The key and key id, or None if it could not be fetched
    """
    logger = logger or logging.getLogger(__name__)
    logger.info("Fetching public key for target environment...")

    try:
        key_info = gateway.get_environment_public_key(env_name)
    except _ITEM_ERRORS as e:
        logger.error(f"Error fetching public key for target environment: {e}")
        return None

    if not key_info.key or not key_info.key_id:
        logger.error(
            "Failed to fetch public key for the target environment. "
            "Cannot proceed with secrets."
        )
        return None

    logger.info("Public key fetched successfully.")
    return key_info


def load_variables(gateway, choice, logger=None):
    """
    Load the (name, value) pairs selected by ``choice``.

    Args:
        gateway (GitHubGateway): Gateway for the repository
        choice (EnvSource, FileSource or SkipSource): Where to read from
        logger (logging.Logger, optional): Logger instance for output

    Returns:
        list: Variable objects in source order; empty if nothing was loaded

    Raises:
        TypeError: If ``choice`` is not one of the known source kinds
    """
    logger = logger or logging.getLogger(__name__)

    if isinstance(choice, SkipSource):
        return []

    if isinstance(choice, FileSource):
        variables = parse_env_file(choice.path, logger)
        if variables is None:
            logger.warning("No variables loaded from file or file not found.")
            return []
        logger.info(f"Loaded {len(variables)} entries from '{choice.path}'.")
        return variables

    if isinstance(choice, EnvSource):
        logger.info(f"Fetching variables from source environment '{choice.env_name}'...")
        try:
            variables = gateway.list_variables(choice.env_name)
        except _ITEM_ERRORS as e:
            logger.error(
                f"Error fetching variables from source environment "
                f"'{choice.env_name}': {e}"
            )
            return []
        if not variables:
            logger.info(f"No variables found in source environment '{choice.env_name}'.")
        else:
            logger.info(f"Found {len(variables)} variables in '{choice.env_name}'.")
        return variables

    raise TypeError(f"Unknown source choice: {choice!r}")


def load_secrets(gateway, choice, logger=None):
    """
    Load the secrets selected by ``choice``.

    Secrets from a file carry their values. Secrets from another environment
    carry only a name, with ``None`` as their value.

    Returns:
        list: (name, value) tuples in source order

    Raises:
        TypeError: If ``choice`` is not one of the known source kinds
    """
    logger = logger or logging.getLogger(__name__)

    if isinstance(choice, SkipSource):
        return []

    if isinstance(choice, FileSource):
        secrets = parse_env_file(choice.path, logger)
        if secrets is None:
            logger.warning("No secrets loaded from file or file not found.")
            return []
        return [(secret.name, secret.value) for secret in secrets]

    if isinstance(choice, EnvSource):
        logger.info(
            f"Fetching secret names from source environment '{choice.env_name}'..."
        )
        try:
            names = gateway.list_secret_names(choice.env_name)
        except _ITEM_ERRORS as e:
            logger.error(
                f"Error fetching secrets from source environment "
                f"'{choice.env_name}': {e}"
            )
            return []
        if not names:
            logger.info(f"No secrets found in source environment '{choice.env_name}'.")
        else:
            logger.info(
                f"Found {len(names)} secret names in '{choice.env_name}'. "
                "You will be prompted for their values."
            )
        return [(name, None) for name in names]

    raise TypeError(f"Unknown source choice: {choice!r}")


def process_variables(gateway, target_env_name, choice, logger=None):
    """
    Copy variables into the target environment.

    Each variable is created, or updated if it already exists. Failures are
    logged per variable and do not stop the rest.

    Returns:
        int: Number of variables written successfully
    """
    logger = logger or logging.getLogger(__name__)

    if isinstance(choice, SkipSource):
        logger.info("Skipping variable processing.")
        return 0

    variables = load_variables(gateway, choice, logger)
    if not variables:
        logger.info("No variables to process.")
        return 0

    logger.info(f"Processing {len(variables)} variable(s) for '{target_env_name}'...")
    processed = 0
    for variable in variables:
        try:
            gateway.create_or_update_variable(target_env_name, variable.name, variable.value)
        except _ITEM_ERRORS as e:
            logger.error(
                f"  Error setting variable '{variable.name}' in '{target_env_name}': {e}"
            )
            continue
        processed += 1

    failed = len(variables) - processed
    summary = f"{processed} variable(s) processed into '{target_env_name}'."
    if failed:
        summary += f" {failed} failed."
    logger.info(summary)
    return processed


def process_secrets(
    gateway, target_env_name, choice, key_info, prompt_secret=None, logger=None
):
    """
    Encrypt and write secrets into the target environment.

    Args:
        gateway (GitHubGateway): Gateway for the repository
        target_env_name (str): Name of the target environment
        choice (EnvSource, FileSource or SkipSource): Where to read from
        key_info (PublicKeyInfo): Target environment's public key
        prompt_secret (callable, optional): Called with a secret name to ask
            for its value; required when copying names from an environment.
            An empty or None answer skips that secret.
        logger (logging.Logger, optional): Logger instance for output

    Returns:
        int: Number of secrets written successfully
    """
    logger = logger or logging.getLogger(__name__)

    if isinstance(choice, SkipSource):
        logger.info("Skipping secret processing.")
        return 0

    secrets = load_secrets(gateway, choice, logger)
    if not secrets:
        logger.info("No secrets to process.")
        return 0

    logger.info(f"Processing {len(secrets)} secret(s) for '{target_env_name}'...")
    processed = 0
    for name, value in secrets:
        if value is None:
            value = prompt_secret(name) if prompt_secret else None
            if not value:
                logger.warning(f"Skipping secret '{name}' as no value was provided.")
                continue

        try:
            encrypted_value = encrypt_secret(key_info.key, value)
            gateway.create_or_update_secret(
                target_env_name, name, encrypted_value, key_info.key_id
            )
        except _ITEM_ERRORS + _SEAL_ERRORS as e:
            logger.error(
                f"  Error setting/updating secret '{name}' in '{target_env_name}': {e}"
            )
            if isinstance(e, GitHubApiError) and e.status_code in (401, 403):
                logger.error(
                    "  Ensure your token has 'repo' scope and you have admin rights "
                    "to the repository."
                )
            continue

        if value == "":
            logger.info(f"  Secret '{name}' (empty value) set/updated in '{target_env_name}'.")
        else:
            logger.info(f"  Secret '{name}' set/updated in '{target_env_name}'.")
        processed += 1

    logger.info(f"{processed} secret(s) processed into '{target_env_name}'.")
    return processed


def sync_environment(
    gateway,
    target_env_name,
    variable_choice,
    secret_choice,
    prompt_secret=None,
    logger=None,
):
    """
    Run a full sync into one target environment.

    Steps:
    1. Ensure the target environment exists
    2. Write variables from ``variable_choice``
    3. Fetch the target's public key, unless secrets are skipped
    4. Write secrets from ``secret_choice``

    A public key failure skips secrets only; variables are unaffected.

    Returns:
        bool: False if the target environment could not be set up
    """
    logger = logger or logging.getLogger(__name__)

    logger.info(
        f"Setting up TARGET environment '{target_env_name}' "
        f"for repo '{gateway.full_name}'..."
    )
    if not ensure_target_env_exists(gateway, target_env_name, logger):
        return False

    logger.info(f"Processing Variables for target environment '{target_env_name}'...")
    process_variables(gateway, target_env_name, variable_choice, logger)

    logger.info(f"Processing Secrets for target environment '{target_env_name}'...")
    if isinstance(secret_choice, SkipSource):
        logger.info("Skipping secret processing.")
    else:
        key_info = fetch_environment_public_key(gateway, target_env_name, logger)
        if key_info is None:
            logger.warning("Skipping secret processing due to public key error.")
        else:
            process_secrets(
                gateway, target_env_name, secret_choice, key_info, prompt_secret, logger
            )

    logger.info(
        f"Process finished for target environment '{target_env_name}' "
        f"in '{gateway.full_name}'."
    )
    return True
