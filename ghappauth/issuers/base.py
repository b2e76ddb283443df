from abc import ABC, abstractmethod

from ghappauth.core.models import CredentialEntry


class TokenIssuer(ABC):
    """Base class for turning a resolved credential entry into a token."""

    @property
    @abstractmethod
    def kind(self) -> str:
        """Entry kind this issuer handles. e.g. 'github_app', 'pat'."""
        ...

    @abstractmethod
    async def issue(self, entry: CredentialEntry, target: str) -> str:
        """Return a token usable for target.

        Args:
            entry: The entry selected for target by the resolver.
            target: Repository identifier, e.g. 'github.com/owner/repo'.

        Raises:
            TokenIssuanceError: Key material or the GitHub API refused.
        """
        ...
