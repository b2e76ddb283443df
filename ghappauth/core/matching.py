import functools
import re

from ghappauth.core.models import CredentialEntry


def match_pattern(pattern: str, target: str) -> bool:
    """Check if a credential pattern matches a target (case-sensitive).

    Patterns are matched against the whole target, e.g.
    "github.com/org/repo":
    - "*" matches any run of characters, including "/"
      ("github.com/org/*" matches every repo under org)
    - "?" matches exactly one character other than "/"
    - anything else matches itself
    """
    return _compile(pattern).fullmatch(target) is not None


def entry_matches(entry: CredentialEntry, target: str) -> bool:
    """True if any of the entry's patterns matches target."""
    return any(match_pattern(p, target) for p in entry.patterns)


@functools.lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern:
    parts = []
    for ch in pattern:
        if ch == "*":
            # collapse runs of "*" so "**" behaves like "*"
            if not parts or parts[-1] != ".*":
                parts.append(".*")
        elif ch == "?":
            parts.append("[^/]")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts), re.DOTALL)
