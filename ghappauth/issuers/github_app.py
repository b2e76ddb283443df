import logging
import os
import time

import aiohttp
import jwt

from ghappauth.core.errors import PathResolutionError, TokenIssuanceError
from ghappauth.core.models import GITHUB_APP, CredentialEntry, GitHubApp
from ghappauth.core.paths import expand_path
from ghappauth.issuers.base import TokenIssuer

logger = logging.getLogger(__name__)

_GITHUB_HOST = "github.com"
_GITHUB_API_URL = "https://api.github.com"
_ENV_SOURCE_PREFIX = "env:"

# GitHub rejects app JWTs that live longer than 10 minutes.
JWT_BACKDATE_SECONDS = 60
JWT_LIFETIME_SECONDS = 540


def api_url_for(host: str) -> str:
    """REST API base URL for github.com or a GitHub Enterprise Server host."""
    if host == _GITHUB_HOST:
        return _GITHUB_API_URL
    return f"https://{host}/api/v3"


def split_target(target: str) -> tuple[str, str, str]:
    """Split 'host/owner/repo' into its parts; missing parts are ''."""
    parts = target.strip("/").split("/")
    parts += [""] * (3 - len(parts))
    return parts[0], parts[1], parts[2]


def build_jwt(app: GitHubApp, private_key: str, *, now: float | None = None) -> str:
    """Sign the short-lived app JWT used to talk to the GitHub App API."""
    issued = int(now if now is not None else time.time())
    payload = {
        "iat": issued - JWT_BACKDATE_SECONDS,
        "exp": issued + JWT_LIFETIME_SECONDS,
        "iss": str(app.app_id),
    }
    try:
        return jwt.encode(payload, private_key, algorithm="RS256")
    except (ValueError, TypeError, jwt.PyJWTError) as e:
        raise TokenIssuanceError(f"Cannot sign app JWT: {e}") from e


class GitHubAppIssuer(TokenIssuer):
    """Mints installation access tokens for GitHub App entries."""

    def __init__(self, environ=None, *, api_url: str | None = None, timeout: int = 30):
        self._environ = os.environ if environ is None else environ
        self._api_url = api_url
        self._timeout = timeout

    @property
    def kind(self) -> str:
        return GITHUB_APP

    def load_private_key(self, entry: CredentialEntry) -> str:
        """Read the PEM text from the entry's path or alternative source."""
        app = entry.payload
        if app.private_key_path:
            try:
                path = expand_path(app.private_key_path)
            except PathResolutionError as e:
                raise TokenIssuanceError(str(e)) from e
            try:
                with open(path) as f:
                    return f.read()
            except OSError as e:
                raise TokenIssuanceError(
                    f"Cannot read private key for '{entry.name}' at {path}: {e}"
                ) from e

        source = app.private_key_source
        if not source.startswith(_ENV_SOURCE_PREFIX):
            raise TokenIssuanceError(
                f"Unsupported private_key_source for '{entry.name}': {source}"
            )
        var = source[len(_ENV_SOURCE_PREFIX):]
        key = self._environ.get(var, "")
        if not key:
            raise TokenIssuanceError(
                f"Credential '{entry.name}': environment variable {var} is not set"
            )
        return key

    async def issue(self, entry: CredentialEntry, target: str) -> str:
        app = entry.payload
        host, owner, repo = split_target(target)
        api_url = self._api_url or api_url_for(host)

        app_jwt = build_jwt(app, self.load_private_key(entry))
        headers = {
            "Authorization": f"Bearer {app_jwt}",
            "Accept": "application/vnd.github+json",
            "User-Agent": "gh-app-auth",
        }
        timeout = aiohttp.ClientTimeout(total=self._timeout)
        async with aiohttp.ClientSession(headers=headers, timeout=timeout) as session:
            installation_id = app.installation_id
            if app.auto_detect_installation:
                installation_id = await _detect_installation(
                    session, api_url, owner, repo,
                )
                logger.debug(
                    "detected installation %d for app %d on %s",
                    installation_id, app.app_id, target,
                )
            return await _create_access_token(session, api_url, installation_id)


async def _detect_installation(
    session: aiohttp.ClientSession, api_url: str, owner: str, repo: str,
) -> int:
    if owner and repo:
        url = f"{api_url}/repos/{owner}/{repo}/installation"
    elif owner:
        url = f"{api_url}/orgs/{owner}/installation"
    else:
        raise TokenIssuanceError(
            "installation_id is 0 and the target names no owner to detect it from"
        )

    try:
        async with session.get(url) as resp:
            if resp.status == 200:
                data = await resp.json()
                return int(data["id"])
            text = await resp.text()
    except aiohttp.ClientError as e:
        raise TokenIssuanceError(f"Installation lookup failed: {e}") from e
    raise TokenIssuanceError(f"Installation lookup failed: HTTP {resp.status}: {text}")


async def _create_access_token(
    session: aiohttp.ClientSession, api_url: str, installation_id: int,
) -> str:
    url = f"{api_url}/app/installations/{installation_id}/access_tokens"
    try:
        async with session.post(url) as resp:
            if resp.status == 201:
                data = await resp.json()
                return data["token"]
            text = await resp.text()
    except aiohttp.ClientError as e:
        raise TokenIssuanceError(f"Token exchange failed: {e}") from e
    raise TokenIssuanceError(f"Token exchange failed: HTTP {resp.status}: {text}")
