"""git credential helper protocol.

git writes ``key=value`` lines (terminated by a blank line or EOF) to the
helper's stdin and reads the same format back from stdout. Only ``get``
produces output; ``store`` and ``erase`` are accepted and ignored since
minted tokens are never persisted.

`gh-app-auth gitconfig` installs the helper and enables per-repository
paths so patterns can see owner/repo; by hand that is::

    git config --global credential.https://github.com.useHttpPath true
"""

import logging

from ghappauth.core.errors import NoMatchingCredential
from ghappauth.core.models import Configuration
from ghappauth.core.resolver import best
from ghappauth.issuers import default_issuers, issuer_for
from ghappauth.issuers.base import TokenIssuer

logger = logging.getLogger(__name__)

USERNAME = "x-access-token"


def parse_request(text: str) -> dict[str, str]:
    """Parse a credential request into a dict, stopping at the first blank line."""
    request = {}
    for line in text.splitlines():
        if not line.strip():
            break
        key, sep, value = line.partition("=")
        if sep:
            request[key] = value
    return request


def target_identifier(request: dict[str, str]) -> str:
    """Build 'host/owner/repo' from a request (just 'host' without a path)."""
    host = request.get("host", "")
    path = request.get("path", "").strip("/")
    if path.endswith(".git"):
        path = path[:-4]
    if not path:
        return host
    return f"{host}/{path}"


def format_response(fields: dict[str, str]) -> str:
    return "".join(f"{key}={value}\n" for key, value in fields.items())


async def get_credential(
    request: dict[str, str],
    config: Configuration,
    *,
    issuers: dict[str, TokenIssuer] | None = None,
) -> dict[str, str]:
    """Answer a ``get`` request.

    Returns:
        {"username": ..., "password": <token>} ready for format_response.

    Raises:
        NoMatchingCredential: No entry's patterns match the request target.
        TokenIssuanceError: The matched entry could not produce a token.
    """
    target = target_identifier(request)
    entry = best(config.entries, target)
    if entry is None:
        raise NoMatchingCredential(target)

    if issuers is None:
        issuers = default_issuers()
    logger.debug("credential '%s' (%s) selected for %s", entry.name, entry.kind, target)
    token = await issuer_for(issuers, entry.kind).issue(entry, target)
    return {"username": USERNAME, "password": token}
