from ghappauth.core.errors import TokenIssuanceError
from ghappauth.issuers.base import TokenIssuer

_registry: dict[str, type[TokenIssuer]] = {}


def register_issuer(issuer_cls: type[TokenIssuer]) -> type[TokenIssuer]:
    """Register an issuer class. Can be used as a decorator."""
    kind = issuer_cls().kind
    existing = _registry.get(kind)
    if existing is not None and existing is not issuer_cls:
        raise ValueError(f"Issuer for '{kind}' already registered")
    _registry[kind] = issuer_cls
    return issuer_cls


def get_issuer(kind: str) -> TokenIssuer:
    """Instantiate the issuer registered for an entry kind."""
    try:
        return _registry[kind]()
    except KeyError:
        raise ValueError(f"No issuer registered for '{kind}'") from None


def issuer_for(issuers: dict[str, TokenIssuer], kind: str) -> TokenIssuer:
    """Pick the issuer for an entry kind from an issuer mapping."""
    try:
        return issuers[kind]
    except KeyError:
        raise TokenIssuanceError(f"No issuer available for '{kind}' credentials") from None


def default_issuers() -> dict[str, TokenIssuer]:
    """Register the built-in issuers and return one instance per kind."""
    from ghappauth.issuers.github_app import GitHubAppIssuer
    from ghappauth.issuers.pat import PersonalAccessTokenIssuer

    register_issuer(GitHubAppIssuer)
    register_issuer(PersonalAccessTokenIssuer)
    return {kind: get_issuer(kind) for kind in _registry}


def clear_registry() -> None:
    """Clear all registered issuers. For testing."""
    _registry.clear()
