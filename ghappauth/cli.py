import argparse
import asyncio
import logging
import os
import sys

from ghappauth.core.config import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_PATH,
    load_config,
    read_config_data,
    write_config_data,
)
from ghappauth.core.errors import (
    ConfigError,
    ConfigNotFoundError,
    NoMatchingCredential,
    PathResolutionError,
    TokenIssuanceError,
)
from ghappauth.core.masking import MaskingFormatter, collect_secrets, mask_value
from ghappauth.core.models import GitHubApp
from ghappauth.core.paths import expand_path
from ghappauth.core.resolver import best, by_priority, resolve
from ghappauth.gitconfig import GitConfigError, configure_helper, run_git
from ghappauth.helper import format_response, get_credential, parse_request
from ghappauth.issuers import default_issuers, issuer_for

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NO_MATCH = 2

CONFIG_VERSION = "1"
_ENTRY_SECTIONS = ("github_apps", "pats")

_handler: logging.Handler | None = None


def setup_logging(secrets: set[str], *, debug: bool = False) -> MaskingFormatter:
    """Configure stderr logging with secret masking.

    stdout is reserved for command output and the git helper protocol.
    """
    global _handler
    formatter = MaskingFormatter(LOG_FORMAT, secrets)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    if _handler is not None:
        logging.root.removeHandler(_handler)
    logging.root.addHandler(handler)
    logging.root.setLevel(logging.DEBUG if debug else logging.INFO)
    _handler = handler
    return formatter


def config_path(flag: str | None, environ) -> str:
    """Pick the config file: --config, then $GH_APP_AUTH_CONFIG, then the default."""
    return expand_path(flag or environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gh-app-auth",
        description="GitHub App authentication for git and the GitHub CLI",
    )
    parser.add_argument(
        "--config",
        help=f"Path to config file (JSON5, default: ${CONFIG_ENV_VAR} or {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("setup", help="Add or update a GitHub App credential")
    p.add_argument("--name", help="Credential name (default: app-<app-id>)")
    p.add_argument("--app-id", type=int, required=True, help="GitHub App ID")
    p.add_argument("--installation-id", type=int, default=0,
                   help="Installation ID (default: 0, detect at runtime)")
    key = p.add_mutually_exclusive_group(required=True)
    key.add_argument("--key-file", help="Path to the app's private key (PEM)")
    key.add_argument("--key-env", help="Environment variable holding the private key")
    p.add_argument("--patterns", nargs="+", required=True,
                   help='Repository patterns, e.g. "github.com/myorg/*"')
    p.add_argument("--priority", type=int, default=0, help="Higher wins (default: 0)")

    p = sub.add_parser("remove", help="Remove a credential by name")
    p.add_argument("--name", required=True)

    sub.add_parser("list", help="List configured credentials by priority")

    p = sub.add_parser("config", help="Show configuration file location and content")
    group = p.add_mutually_exclusive_group()
    group.add_argument("-p", "--path", action="store_true", help="Show only the config file path")
    group.add_argument("-s", "--show", action="store_true", help="Show the config file content")

    p = sub.add_parser("gitconfig", help="Register as git's credential helper for a host")
    p.add_argument("--host", default="github.com", help="Git host (default: github.com)")
    p.add_argument("--local", action="store_true",
                   help="Write to the repository's config instead of the global one")
    p.add_argument("--remove", action="store_true", help="Remove the helper configuration")

    p = sub.add_parser("resolve", help="Show which credentials match a repository")
    p.add_argument("--repo", required=True, help="e.g. github.com/org/repo")

    p = sub.add_parser("test", help="Mint a token for a repository")
    p.add_argument("--repo", required=True, help="e.g. github.com/org/repo")

    p = sub.add_parser("git-credential", help="git credential helper")
    p.add_argument("operation", choices=["get", "store", "erase"])
    return parser


def run(
    argv: list[str],
    *,
    stdin=None,
    stdout=None,
    environ=None,
    issuers=None,
    _run_git=None,
) -> int:
    """CLI logic. Returns exit code.

    Args:
        argv: CLI arguments (sys.argv[1:]).
        stdin, stdout, environ, issuers: Overrides for testing.
        _run_git: Override for the git subprocess runner (testing).
    """
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    environ = os.environ if environ is None else environ
    args = build_parser().parse_args(argv)
    formatter = setup_logging(set(), debug=args.debug)

    try:
        path = config_path(args.config, environ)
    except PathResolutionError as e:
        logger.error("%s", e)
        return EXIT_ERROR

    if args.command == "config":
        return _config_command(args, path, environ, stdout)
    if args.command == "gitconfig":
        return _gitconfig_command(args, path, stdout, _run_git or run_git)
    if args.command == "setup":
        return _setup_command(args, path, stdout)
    if args.command == "remove":
        return _remove_command(args, path, stdout)

    if args.command == "git-credential":
        # Drain the request even for store/erase so git never sees EPIPE.
        request = parse_request(stdin.read())
        if args.operation != "get":
            return EXIT_OK

    try:
        config = load_config(path)
    except ConfigNotFoundError as e:
        if args.command == "git-credential":
            logger.warning("%s; leaving the request to other credential helpers", e)
            return EXIT_OK
        logger.error("%s", e)
        return EXIT_ERROR
    except ConfigError as e:
        logger.error("Invalid configuration %s: %s", path, e)
        return EXIT_ERROR

    for secret in collect_secrets(config):
        formatter.add_secret(secret)

    if args.command == "list":
        _list_command(config, stdout)
        return EXIT_OK

    if args.command == "resolve":
        matches = resolve(config.entries, args.repo)
        if not matches:
            logger.warning("%s", NoMatchingCredential(args.repo))
            return EXIT_NO_MATCH
        for entry in matches:
            print(f"{entry.priority:>6}  {entry.name} ({entry.kind})", file=stdout)
        return EXIT_OK

    if issuers is None:
        issuers = default_issuers()

    try:
        if args.command == "test":
            entry = best(config.entries, args.repo)
            if entry is None:
                raise NoMatchingCredential(args.repo)
            issuer = issuer_for(issuers, entry.kind)
            token = asyncio.run(issuer.issue(entry, args.repo))
            formatter.add_secret(token)
            print(f"Credential: {entry.name} ({entry.kind})", file=stdout)
            print(f"Token: {mask_value(token)}", file=stdout)
            return EXIT_OK

        response = asyncio.run(get_credential(request, config, issuers=issuers))
        formatter.add_secret(response["password"])
        stdout.write(format_response(response))
        return EXIT_OK
    except NoMatchingCredential as e:
        if args.command == "git-credential":
            logger.info("%s", e)
            return EXIT_OK
        logger.warning("%s", e)
        return EXIT_NO_MATCH
    except TokenIssuanceError as e:
        logger.error("%s", e)
        return EXIT_ERROR


def _list_command(config, stdout) -> None:
    for entry in by_priority(config.entries):
        print(f"{entry.name} ({entry.kind}, priority {entry.priority})", file=stdout)
        payload = entry.payload
        if isinstance(payload, GitHubApp):
            installation = payload.installation_id or "auto-detect"
            key = payload.private_key_path or payload.private_key_source
            print(f"  App ID: {payload.app_id}", file=stdout)
            print(f"  Installation ID: {installation}", file=stdout)
            print(f"  Private key: {key}", file=stdout)
        elif payload.token:
            print(f"  Token: {mask_value(payload.token)}", file=stdout)
        else:
            print(f"  Token: ${payload.token_env}", file=stdout)
        print(f"  Patterns: {', '.join(entry.patterns)}", file=stdout)


def _config_command(args, path: str, environ, stdout) -> int:
    if args.path:
        print(path, file=stdout)
        return EXIT_OK

    exists = os.path.isfile(path)
    if not args.show:
        print(f"Configuration file: {path}", file=stdout)
        if not args.config and environ.get(CONFIG_ENV_VAR):
            print(f"  (set via {CONFIG_ENV_VAR} environment variable)", file=stdout)
        print(f"  Status: {'exists' if exists else 'not found'}", file=stdout)
        return EXIT_OK

    if not exists:
        logger.error("Config file not found: %s", path)
        return EXIT_ERROR
    try:
        with open(path) as f:
            content = f.read()
    except OSError as e:
        logger.error("Cannot read config file %s: %s", path, e)
        return EXIT_ERROR
    print(f"# Configuration file: {path}", file=stdout)
    stdout.write(content)
    return EXIT_OK


def _setup_command(args, path: str, stdout) -> int:
    name = args.name or f"app-{args.app_id}"
    app = {
        "name": name,
        "app_id": args.app_id,
        "installation_id": args.installation_id,
        "patterns": args.patterns,
        "priority": args.priority,
    }
    if args.key_file:
        try:
            key_path = expand_path(args.key_file)
        except PathResolutionError as e:
            logger.error("%s", e)
            return EXIT_ERROR
        if not os.path.isfile(key_path):
            logger.error("Private key file not found: %s", key_path)
            return EXIT_ERROR
        app["private_key_path"] = key_path
    else:
        app["private_key_source"] = f"env:{args.key_env}"

    try:
        data = read_config_data(path)
    except ConfigNotFoundError:
        data = {"version": CONFIG_VERSION}
    except ConfigError as e:
        logger.error("%s", e)
        return EXIT_ERROR

    apps = data.get("github_apps") or []
    if not isinstance(apps, list):
        logger.error("Invalid configuration %s: 'github_apps' must be an array", path)
        return EXIT_ERROR
    updated = any(isinstance(a, dict) and a.get("name") == name for a in apps)
    apps = [a for a in apps if not (isinstance(a, dict) and a.get("name") == name)]
    apps.append(app)

    try:
        write_config_data(path, {**data, "github_apps": apps})
    except ConfigError as e:
        logger.error("Not saved, configuration would be invalid: %s", e)
        return EXIT_ERROR
    except OSError as e:
        logger.error("Cannot write config file %s: %s", path, e)
        return EXIT_ERROR

    print(f"{'Updated' if updated else 'Added'} '{name}' in {path}", file=stdout)
    return EXIT_OK


def _remove_command(args, path: str, stdout) -> int:
    try:
        data = read_config_data(path)
    except ConfigError as e:
        logger.error("%s", e)
        return EXIT_ERROR

    new_data = dict(data)
    removed = False
    for section in _ENTRY_SECTIONS:
        entries = data.get(section) or []
        if not isinstance(entries, list):
            continue
        kept = [e for e in entries if not (isinstance(e, dict) and e.get("name") == args.name)]
        removed = removed or len(kept) != len(entries)
        new_data[section] = kept
    if not removed:
        logger.error("No credential named '%s' in %s", args.name, path)
        return EXIT_ERROR

    try:
        if not any(new_data.get(s) for s in _ENTRY_SECTIONS):
            # a configuration without entries is invalid; drop the file
            os.remove(path)
            print(f"Removed '{args.name}'; no credentials left, deleted {path}", file=stdout)
            return EXIT_OK
        write_config_data(path, new_data)
    except ConfigError as e:
        logger.error("Not saved, configuration would be invalid: %s", e)
        return EXIT_ERROR
    except OSError as e:
        logger.error("Cannot write config file %s: %s", path, e)
        return EXIT_ERROR

    print(f"Removed '{args.name}' from {path}", file=stdout)
    return EXIT_OK


def _gitconfig_command(args, path: str, stdout, git_runner) -> int:
    scope = "--local" if args.local else "--global"
    # Pin an explicit --config so git finds the same file without the flag.
    pinned = path if args.config else None
    try:
        keys = asyncio.run(configure_helper(
            args.host,
            config_path=pinned,
            scope=scope,
            remove=args.remove,
            _run=git_runner,
        ))
    except GitConfigError as e:
        logger.error("%s", e)
        return EXIT_ERROR

    action = "Removed" if args.remove else "Configured"
    for key in keys:
        print(f"{action} {key} ({scope[2:]})", file=stdout)
    return EXIT_OK


def main():
    """CLI entry point."""
    sys.exit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
