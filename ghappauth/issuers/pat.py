import os

from ghappauth.core.errors import TokenIssuanceError
from ghappauth.core.models import PAT, CredentialEntry
from ghappauth.issuers.base import TokenIssuer


class PersonalAccessTokenIssuer(TokenIssuer):
    """Hands out a configured personal access token as-is."""

    def __init__(self, environ=None):
        self._environ = os.environ if environ is None else environ

    @property
    def kind(self) -> str:
        return PAT

    async def issue(self, entry: CredentialEntry, target: str) -> str:
        pat = entry.payload
        if pat.token:
            return pat.token
        token = self._environ.get(pat.token_env, "")
        if not token:
            raise TokenIssuanceError(
                f"Credential '{entry.name}': environment variable "
                f"{pat.token_env} is not set"
            )
        return token
