"""Shared fixtures for the ghenvsync test suite."""

import base64
import os
import sys

import pytest
from nacl import public

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from ghenvsync.github_api import GitHubApiError  # noqa: E402
from ghenvsync.models import Environment, PublicKeyInfo, Variable  # noqa: E402


class FakeGateway:
    """
    In-memory stand-in for GitHubGateway.

    ``failures`` maps (method name, environment name) to an exception raised
    when that method is called for that environment. A third tuple element
    narrows it to one item name, e.g. ("create_or_update_variable", "prod", "B").
    """

    def __init__(self, variables=None, secrets=None, environments=None,
                 public_key=None, failures=None, owner="testowner", repo="testrepo"):
        self.owner = owner
        self.repo = repo
        self.variables = {env: list(items) for env, items in (variables or {}).items()}
        self.secrets = {env: dict.fromkeys(names) for env, names in (secrets or {}).items()}
        self.environments = set(environments or [])
        self.environments.update(self.variables)
        self.environments.update(self.secrets)
        self.public_key = public_key
        self.failures = failures or {}
        self.calls = []

    @property
    def full_name(self):
        return f"{self.owner}/{self.repo}"

    def _check(self, *key):
        self.calls.append(key)
        for length in (len(key), 2):
            failure = self.failures.get(key[:length])
            if failure is not None:
                raise failure

    def get_environment(self, env_name):
        self._check("get_environment", env_name)
        if env_name not in self.environments:
            return None
        return Environment(id=len(self.calls), name=env_name, owner=self.owner, repo=self.repo)

    def create_environment(self, env_name):
        self._check("create_environment", env_name)
        self.environments.add(env_name)
        return Environment(id=len(self.calls), name=env_name, owner=self.owner, repo=self.repo)

    def get_environment_public_key(self, env_name):
        self._check("get_environment_public_key", env_name)
        return self.public_key

    def list_variables(self, env_name):
        self._check("list_variables", env_name)
        if env_name not in self.environments:
            raise GitHubApiError(f"List variables for environment '{env_name}'", 404, "Not Found")
        return list(self.variables.get(env_name, []))

    def list_secret_names(self, env_name):
        self._check("list_secret_names", env_name)
        if env_name not in self.environments:
            raise GitHubApiError(f"List secrets for environment '{env_name}'", 404, "Not Found")
        return list(self.secrets.get(env_name, {}))

    def create_or_update_variable(self, env_name, name, value):
        self._check("create_or_update_variable", env_name, name)
        items = self.variables.setdefault(env_name, [])
        for index, item in enumerate(items):
            if item.name == name:
                items[index] = Variable(name, value)
                return "updated"
        items.append(Variable(name, value))
        return "created"

    def create_or_update_secret(self, env_name, name, encrypted_value, key_id):
        self._check("create_or_update_secret", env_name, name)
        self.secrets.setdefault(env_name, {})[name] = (encrypted_value, key_id)


@pytest.fixture
def key_pair():
    """A fresh sealed-box key pair, public half as GitHub would return it."""
    private_key = public.PrivateKey.generate()
    key_info = PublicKeyInfo(
        key=base64.b64encode(bytes(private_key.public_key)).decode(),
        key_id="test_key_id",
    )
    return private_key, key_info


@pytest.fixture
def decrypt(key_pair):
    """Open a base64 sealed-box ciphertext made with ``key_pair``."""
    private_key, _ = key_pair

    def _decrypt(encrypted_value):
        return public.SealedBox(private_key).decrypt(base64.b64decode(encrypted_value)).decode()

    return _decrypt


@pytest.fixture
def fake_gateway_factory():
    return FakeGateway
