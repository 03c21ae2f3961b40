"""
Data types shared by the sync, diff and export commands.

All of these are process-local values built for one run; nothing here is
persisted.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Variable:
    """A named plaintext value. Also used for name/value rows read from files."""

    name: str
    value: str


@dataclass(frozen=True)
class Environment:
    """A deployment environment of a repository."""

    id: int
    name: str
    owner: str = None
    repo: str = None
    html_url: str = None
    created_at: str = None
    updated_at: str = None

    @property
    def full_name(self):
        return f"{self.owner}/{self.repo}"

    @classmethod
    def from_api(cls, data, owner=None, repo=None):
        return cls(
            id=data.get("id"),
            name=data.get("name"),
            owner=owner,
            repo=repo,
            html_url=data.get("html_url"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


@dataclass(frozen=True)
class PublicKeyInfo:
    """An environment's secret-encryption public key (base64) and its id."""

    key: str
    key_id: str


# Where the values for a write operation come from. Exactly one of these
# three classes describes each choice; see ``sync.load_variables``.


@dataclass(frozen=True)
class EnvSource:
    """Copy from another environment of the same repository."""

    env_name: str


@dataclass(frozen=True)
class FileSource:
    """Import from a local dotenv file."""

    path: str


@dataclass(frozen=True)
class SkipSource:
    """Do not process this kind of item."""


@dataclass(frozen=True)
class ValueChange:
    name: str
    source_value: str
    compare_value: str


@dataclass
class VariableDiff:
    source_only: list = field(default_factory=list)
    compare_only: list = field(default_factory=list)
    value_changed: list = field(default_factory=list)

    @property
    def is_empty(self):
        return not (self.source_only or self.compare_only or self.value_changed)


@dataclass
class SecretDiff:
    source_only_names: list = field(default_factory=list)
    compare_only_names: list = field(default_factory=list)

    @property
    def is_empty(self):
        return not (self.source_only_names or self.compare_only_names)


@dataclass
class DiffResults:
    """Structured difference between two environments."""

    variables: VariableDiff
    secrets: SecretDiff
    source_env_name: str
    compare_env_name: str

    @property
    def is_identical(self):
        return self.variables.is_empty and self.secrets.is_empty
