"""Configuration model.

A credential entry is one shape for every credential kind: identity,
patterns and priority are shared, and the kind-specific fields live in
``payload``. Matching and resolution only ever look at the shared fields.
"""

from dataclasses import dataclass, field

GITHUB_APP = "github_app"
PAT = "pat"


@dataclass(frozen=True)
class GitHubApp:
    app_id: int
    installation_id: int = 0
    private_key_path: str = ""
    private_key_source: str = ""

    @property
    def auto_detect_installation(self) -> bool:
        return self.installation_id == 0


@dataclass(frozen=True)
class PersonalAccessToken:
    token: str = ""
    token_env: str = ""


@dataclass(frozen=True)
class CredentialEntry:
    name: str
    patterns: tuple[str, ...]
    payload: GitHubApp | PersonalAccessToken
    priority: int = 0

    @property
    def kind(self) -> str:
        if isinstance(self.payload, GitHubApp):
            return GITHUB_APP
        return PAT


@dataclass(frozen=True)
class Configuration:
    version: str
    entries: tuple[CredentialEntry, ...] = field(default_factory=tuple)


def github_app_entry(
    name: str,
    app_id: int,
    patterns,
    *,
    installation_id: int = 0,
    private_key_path: str = "",
    private_key_source: str = "",
    priority: int = 0,
) -> CredentialEntry:
    """Build a GitHub App entry."""
    return CredentialEntry(
        name=name,
        patterns=tuple(patterns),
        payload=GitHubApp(
            app_id=app_id,
            installation_id=installation_id,
            private_key_path=private_key_path,
            private_key_source=private_key_source,
        ),
        priority=priority,
    )


def pat_entry(
    name: str,
    patterns,
    *,
    token: str = "",
    token_env: str = "",
    priority: int = 0,
) -> CredentialEntry:
    """Build a personal-access-token entry."""
    return CredentialEntry(
        name=name,
        patterns=tuple(patterns),
        payload=PersonalAccessToken(token=token, token_env=token_env),
        priority=priority,
    )
