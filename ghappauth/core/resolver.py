from collections.abc import Iterable

from ghappauth.core.matching import entry_matches
from ghappauth.core.models import CredentialEntry


def _order_key(entry: CredentialEntry) -> tuple[int, str]:
    # Highest priority first, then name ascending.
    return (-entry.priority, entry.name)


def by_priority(entries: Iterable[CredentialEntry]) -> list[CredentialEntry]:
    """Return all entries in resolution order, without filtering."""
    return sorted(entries, key=_order_key)


def resolve(entries: Iterable[CredentialEntry], target: str) -> list[CredentialEntry]:
    """Return the entries matching target, best first.

    The caller's collection is never reordered; a new list is returned.
    """
    return sorted(
        (entry for entry in entries if entry_matches(entry, target)),
        key=_order_key,
    )


def best(entries: Iterable[CredentialEntry], target: str) -> CredentialEntry | None:
    """Select the single entry to use for target.

    Returns:
        The highest-ranked matching entry, or None if nothing matches.
    """
    matches = resolve(entries, target)
    return matches[0] if matches else None
