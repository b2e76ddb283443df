class ConfigError(Exception):
    """Raised when config file is invalid."""


class ConfigNotFoundError(ConfigError):
    """Raised when there is no config file at the requested path."""


class ValidationError(ConfigError):
    """Raised when a loaded configuration breaks a structural rule."""


class PathResolutionError(Exception):
    """Raised when a home-relative path cannot be expanded."""


class NoMatchingCredential(Exception):
    """Raised when a configuration exists but no entry matches the target."""

    def __init__(self, target: str):
        super().__init__(
            f"No credential configured for {target}. "
            "Add a pattern matching it to a github_apps or pats entry."
        )
        self.target = target


class TokenIssuanceError(Exception):
    """Raised when a token cannot be minted for a resolved entry."""
