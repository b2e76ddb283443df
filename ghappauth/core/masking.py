"""Credential masking for log output.

Collects secret values from the configuration and replaces them with '***'
in log messages. Tokens minted at runtime are added with ``add_secret``.
"""

import logging

from ghappauth.core.models import Configuration, PersonalAccessToken


def collect_secrets(config: Configuration) -> set[str]:
    """Collect inline secret values from config.

    Key material referenced by path or environment variable is never
    loaded here; only inline PAT tokens are collected.
    """
    secrets = set()
    for entry in config.entries:
        if isinstance(entry.payload, PersonalAccessToken) and entry.payload.token:
            secrets.add(entry.payload.token)
    return secrets


def mask_value(value: str, visible_prefix: int = 8) -> str:
    """Mask a credential value, keeping the first few characters visible.

    Example: mask_value("ghs_abc123xyz") -> "ghs_abc1***"
    """
    if len(value) <= visible_prefix:
        return "***"
    return value[:visible_prefix] + "***"


def mask_secrets(text: str, secrets: set[str]) -> str:
    """Replace all secret values in text with '***'."""
    for secret in secrets:
        text = text.replace(secret, "***")
    return text


class MaskingFormatter(logging.Formatter):
    """Formatter that masks secrets in log output."""

    def __init__(self, fmt: str, secrets: set[str], **kwargs):
        super().__init__(fmt, **kwargs)
        self.secrets = secrets

    def add_secret(self, secret: str) -> None:
        if secret:
            self.secrets.add(secret)

    def format(self, record: logging.LogRecord) -> str:
        result = super().format(record)
        if self.secrets:
            return mask_secrets(result, self.secrets)
        return result
