import os

from ghappauth.core.errors import PathResolutionError


def expand_path(path: str) -> str:
    """Expand a user-supplied path into an absolute path.

    - "~" is the current user's home directory
    - "~/rest" is joined onto the home directory
    - other relative paths are resolved against the working directory
    - absolute paths are returned unchanged

    Raises:
        PathResolutionError: "~" was used and the home directory is unknown.
    """
    if path == "~" or path.startswith("~/"):
        home = _home_dir()
        if path == "~":
            return home
        return os.path.join(home, path[2:])

    if os.path.isabs(path):
        return path
    return os.path.abspath(path)


def _home_dir() -> str:
    if "HOME" in os.environ:
        home = os.environ["HOME"]
        if home:
            home = home.rstrip("/") or "/"
    else:
        # no $HOME: fall back to the passwd entry; expanduser leaves "~"
        # alone when there is none
        home = os.path.expanduser("~")
    if not home or home == "~" or not os.path.isabs(home):
        raise PathResolutionError("Cannot determine home directory to expand '~'")
    return home
