import logging
import os

import json5
import pytest

from ghappauth.core.models import Configuration, github_app_entry, pat_entry


def make_app(name="test-app", **overrides):
    fields = {
        "app_id": 12345,
        "patterns": ["github.com/org/*"],
        "installation_id": 67890,
        "private_key_path": "/tmp/key.pem",
        "priority": 100,
    }
    fields.update(overrides)
    return github_app_entry(name, fields.pop("app_id"), fields.pop("patterns"), **fields)


def make_pat(name="test-pat", **overrides):
    fields = {
        "patterns": ["github.com/*"],
        "token": "ghp_inline_token_123",
    }
    fields.update(overrides)
    return pat_entry(name, fields.pop("patterns"), **fields)


@pytest.fixture
def sample_config():
    return Configuration(
        version="1",
        entries=(
            make_app("org-app", patterns=["github.com/org/*"], priority=100),
            make_app("repo-app", patterns=["github.com/org/special"], priority=200,
                     installation_id=0),
            make_pat("fallback", patterns=["github.com/*"], priority=0),
        ),
    )


@pytest.fixture
def write_config(tmp_path):
    """Write a dict as a mode-600 JSON5 config file and return its path."""
    def _write(data, mode=0o600):
        f = tmp_path / "config.json5"
        f.write_text(json5.dumps(data))
        os.chmod(f, mode)
        return str(f)
    return _write


class FakeIssuer:
    """Returns a fixed token per entry and records what it was asked for."""

    def __init__(self, prefix="ghs_fake_token_for_"):
        self.prefix = prefix
        self.calls = []

    async def issue(self, entry, target):
        self.calls.append((entry.name, target))
        return self.prefix + entry.name


@pytest.fixture
def fake_issuers():
    return {"github_app": FakeIssuer(), "pat": FakeIssuer("ghp_fake_token_for_")}


@pytest.fixture(autouse=True)
def reset_cli_logging():
    """Drop the handler the CLI installs so it never outlives a captured stream."""
    yield
    from ghappauth import cli

    if cli._handler is not None:
        logging.root.removeHandler(cli._handler)
        cli._handler = None
