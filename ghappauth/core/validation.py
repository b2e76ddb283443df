from ghappauth.core.errors import ValidationError
from ghappauth.core.models import Configuration, CredentialEntry, GitHubApp


def validate(config: Configuration) -> None:
    """Check a configuration before anything is allowed to use it.

    Checks run in a fixed order (version, entry list, then each entry in
    list order) and stop at the first violation, so the same broken
    configuration always produces the same error.

    Raises:
        ValidationError: with the violated rule, prefixed by the entry
            index for entry-level rules.
    """
    if not config.version:
        raise ValidationError("version is required")

    if not config.entries:
        raise ValidationError("at least one github_app or pat is required")

    seen: dict[str, int] = {}
    for i, entry in enumerate(config.entries):
        try:
            validate_entry(entry)
        except ValidationError as e:
            raise ValidationError(f"entry at index {i}: {e}") from None

        if entry.name in seen:
            raise ValidationError(
                f"entry at index {i}: name '{entry.name}' "
                f"duplicates entry at index {seen[entry.name]}"
            )
        seen[entry.name] = i


def validate_entry(entry: CredentialEntry) -> None:
    """Check a single entry. Each rule short-circuits the ones after it."""
    if not entry.name:
        raise ValidationError("name is required")

    payload = entry.payload
    if isinstance(payload, GitHubApp):
        if payload.app_id <= 0:
            raise ValidationError("app_id must be positive")
        # 0 means "detect at runtime"
        if payload.installation_id < 0:
            raise ValidationError("installation_id cannot be negative")
        _exactly_one(payload.private_key_path, payload.private_key_source,
                     "private_key_path", "private_key_source")
    else:
        _exactly_one(payload.token, payload.token_env, "token", "token_env")

    if not entry.patterns:
        raise ValidationError("at least one pattern is required")

    for j, pattern in enumerate(entry.patterns):
        if not pattern:
            raise ValidationError(f"pattern at index {j} cannot be empty")


def _exactly_one(first: str, second: str, first_name: str, second_name: str) -> None:
    if not first and not second:
        raise ValidationError(f"{first_name} or {second_name} is required")
    if first and second:
        raise ValidationError(
            f"only one of {first_name} or {second_name} may be set"
        )
