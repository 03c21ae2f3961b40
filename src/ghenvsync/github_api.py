#!/usr/bin/env python3
"""
GitHub Environment API Gateway

This module is the only part of ghenvsync that talks to GitHub. It wraps the
REST endpoints for environments, environment variables and environment
secrets of a single repository.

Classes:
    GitHubApiError: A non-success response from the GitHub API
    GitHubGateway: Environment, variable and secret operations for one repo

"Not found" is reported as a benign result only where the caller can act on
it (``get_environment`` returns None). Every other failure raises.
"""

import logging
from urllib.parse import quote

import requests

from ghenvsync.envsync_lib import GITHUB_API
from ghenvsync.models import Environment, PublicKeyInfo, Variable

API_VERSION = "2022-11-28"

# Maximum items per page for GitHub API
PER_PAGE = 100

_SUCCESS_CODES = (200, 201, 204)


class GitHubApiError(Exception):
    """
    A failed GitHub API call.

    Attributes:
        operation (str): What was being attempted, for log context
        status_code (int): HTTP status of the response
        message (str): GitHub's error message, or the raw response body
        payload (dict): Decoded JSON error body, or None
    """

    def __init__(self, operation, status_code, message, payload=None):
        super().__init__(f"{operation} failed ({status_code}): {message}")
        self.operation = operation
        self.status_code = status_code
        self.message = message
        self.payload = payload

    @classmethod
    def from_response(cls, operation, response):
        try:
            payload = response.json()
        except ValueError:
            payload = None

        if isinstance(payload, dict) and payload.get("message"):
            message = payload["message"]
        else:
            message = response.text
        return cls(operation, response.status_code, message, payload)

    @property
    def is_not_found(self):
        return self.status_code == 404

    @property
    def is_already_exists(self):
        if self.status_code == 409:
            return True
        if self.status_code == 422 and isinstance(self.payload, dict):
            return any(
                isinstance(error, dict) and error.get("code") == "already_exists"
                for error in self.payload.get("errors") or []
            )
        return False


class GitHubGateway:
    """
    Client for the environment endpoints of one repository.

    The token is passed in explicitly; nothing here reads the process
    environment.

    Args:
        owner (str): GitHub repository owner (username or organization)
        repo (str): GitHub repository name
        token (str): GitHub API token
        api_url (str): API base URL, for GitHub Enterprise Server
        logger (logging.Logger, optional): Logger instance for output

    Example:
        >>> gateway = GitHubGateway("myorg", "myrepo", token)
        >>> [v.name for v in gateway.list_variables("production")]
        ['DB_HOST', 'DB_PORT']
    """

    def __init__(self, owner, repo, token, api_url=GITHUB_API, logger=None):
        self.owner = owner
        self.repo = repo
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.logger = logger or logging.getLogger(__name__)

    @property
    def full_name(self):
        return f"{self.owner}/{self.repo}"

    def _headers(self):
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.token}",
            "X-GitHub-Api-Version": API_VERSION,
        }

    def _env_url(self, env_name, suffix=""):
        # Path segments are percent-encoded; GitHub expects "/" in names as %2F
        return (
            f"{self.api_url}/repos/{self.owner}/{self.repo}"
            f"/environments/{quote(env_name, safe='')}{suffix}"
        )

    def _request(self, operation, method, url, payload=None):
        response = requests.request(method, url, headers=self._headers(), json=payload)
        if response.status_code not in _SUCCESS_CODES:
            raise GitHubApiError.from_response(operation, response)
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    def _paginate(self, operation, url, key):
        items = []
        page = 1

        # Loop through all pages until an empty or short page
        while True:
            data = self._request(
                operation, "GET", f"{url}?per_page={PER_PAGE}&page={page}"
            )
            batch = data.get(key, [])
            items.extend(batch)
            if len(batch) < PER_PAGE:
                break
            page += 1

        return items

    def get_environment(self, env_name):
        """
        Fetch an environment.

        Returns:
            Environment: The environment, or None if it does not exist

        Raises:
            GitHubApiError: For any failure other than 404
        """
        try:
            data = self._request(
                f"Get environment '{env_name}'", "GET", self._env_url(env_name)
            )
        except GitHubApiError as e:
            if e.is_not_found:
                return None
            raise
        return Environment.from_api(data, self.owner, self.repo)

    def create_environment(self, env_name):
        """Create (or leave unchanged) an environment with default settings."""
        self.logger.info(f"Creating environment '{env_name}'...")
        data = self._request(
            f"Create environment '{env_name}'", "PUT", self._env_url(env_name), {}
        )
        self.logger.info(f"Environment '{env_name}' created successfully.")
        return Environment.from_api(data, self.owner, self.repo)

    def get_environment_public_key(self, env_name):
        """
        Fetch the public key for encrypting secrets.

        Returns:
            PublicKeyInfo: The base64 key and its key id
        """
        data = self._request(
            f"Get public key for environment '{env_name}'",
            "GET",
            self._env_url(env_name, "/secrets/public-key"),
        )
        return PublicKeyInfo(key=data["key"], key_id=data["key_id"])

    def list_variables(self, env_name):
        """
        Get all variables of an environment, following pagination.

        Returns:
            list: Variable objects in the order GitHub returns them
        """
        items = self._paginate(
            f"List variables for environment '{env_name}'",
            self._env_url(env_name, "/variables"),
            "variables",
        )
        return [Variable(item["name"], item.get("value", "")) for item in items]

    def list_secret_names(self, env_name):
        """
        Get the names of all secrets of an environment.

        Secret values are write-only in GitHub, so only names are returned.
        """
        items = self._paginate(
            f"List secrets for environment '{env_name}'",
            self._env_url(env_name, "/secrets"),
            "secrets",
        )
        return [item["name"] for item in items]

    def create_or_update_variable(self, env_name, name, value):
        """
        Create a variable, updating it instead if it already exists.

        Returns:
            str: "created" or "updated"

        Raises:
            GitHubApiError: If the create fails for any reason other than
                the variable already existing, or if the update fails
        """
        try:
            self._request(
                f"Create variable '{name}' in '{env_name}'",
                "POST",
                self._env_url(env_name, "/variables"),
                {"name": name, "value": value},
            )
        except GitHubApiError as e:
            if not e.is_already_exists:
                raise
        else:
            self.logger.info(f"  Variable '{name}' set in '{env_name}'.")
            return "created"

        self._request(
            f"Update variable '{name}' in '{env_name}'",
            "PATCH",
            self._env_url(env_name, f"/variables/{quote(name, safe='')}"),
            {"name": name, "value": value},
        )
        self.logger.info(f"  Variable '{name}' updated in '{env_name}'.")
        return "updated"

    def create_or_update_secret(self, env_name, name, encrypted_value, key_id):
        """
        Create or update a secret from an already encrypted value.

        Args:
            env_name (str): GitHub environment name
            name (str): Name of the secret
            encrypted_value (str): Base64 sealed-box ciphertext
            key_id (str): Id of the public key used for encryption
        """
        self._request(
            f"Set secret '{name}' in '{env_name}'",
            "PUT",
            self._env_url(env_name, f"/secrets/{quote(name, safe='')}"),
            {"encrypted_value": encrypted_value, "key_id": key_id},
        )
