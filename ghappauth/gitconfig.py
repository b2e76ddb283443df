"""Register gh-app-auth as git's credential helper for a host.

git only sends the repository path to a helper when ``useHttpPath`` is
enabled for the URL; without it every request looks like a bare host and
patterns such as ``github.com/org/*`` can never match.
"""

import asyncio
import os
import shlex

# `git config --unset` exits with 5 when the key is not set.
_GIT_UNSET_MISSING = 5


async def run_git(
    args: list[str],
    env_overrides: dict | None = None,
    timeout: int = 30,
) -> dict:
    """Run git as an async subprocess.

    Returns:
        {"exit_code": int, "stdout": str, "stderr": str}
    """
    env = {**os.environ, **(env_overrides or {})}

    try:
        proc = await asyncio.create_subprocess_exec(
            "git", *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
        )
    except FileNotFoundError:
        return {"exit_code": -1, "stdout": "", "stderr": "Command not found: git"}

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        return {
            "exit_code": -1,
            "stdout": "",
            "stderr": f"Command timed out after {timeout}s",
        }

    return {
        "exit_code": proc.returncode,
        "stdout": stdout.decode("utf-8", errors="replace"),
        "stderr": stderr.decode("utf-8", errors="replace"),
    }


class GitConfigError(Exception):
    """Raised when git refuses a config change."""


def helper_command(config_path: str | None = None) -> str:
    """Value for credential.<url>.helper; git appends get/store/erase."""
    command = "!gh-app-auth"
    if config_path:
        command += f" --config {shlex.quote(config_path)}"
    return command + " git-credential"


def helper_keys(host: str) -> tuple[str, str]:
    url = f"https://{host}"
    return f"credential.{url}.helper", f"credential.{url}.useHttpPath"


async def configure_helper(
    host: str,
    *,
    config_path: str | None = None,
    scope: str = "--global",
    remove: bool = False,
    _run=run_git,
) -> list[str]:
    """Install (or remove) the helper and useHttpPath for host.

    Returns the git config keys that were changed.

    Raises:
        GitConfigError: git exited non-zero.
    """
    helper_key, path_key = helper_keys(host)

    if remove:
        changes = [
            ["config", scope, "--unset-all", helper_key],
            ["config", scope, "--unset", path_key],
        ]
        allowed = (0, _GIT_UNSET_MISSING)
    else:
        changes = [
            ["config", scope, "--replace-all", helper_key, helper_command(config_path)],
            ["config", scope, path_key, "true"],
        ]
        allowed = (0,)

    for args in changes:
        result = await _run(args)
        if result["exit_code"] not in allowed:
            raise GitConfigError(
                f"git {' '.join(args[:3])} failed: {result['stderr'].strip()}"
            )
    return [helper_key, path_key]
