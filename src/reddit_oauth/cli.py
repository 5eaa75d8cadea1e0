# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/reddit_oauth/cli.py

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel

from .config import OAuthSettings
from .errors import ConfigError, OAuthError, is_user_facing_error
from .failure_logger import setup_failure_logger
from .models import BearerToken
from .oauth import RedditOAuth
from .scopes import DURATION_WIRE_VALUES, RedditApiScope, parse_duration

console = Console()

DEFAULT_TOKEN_FILE = "reddit_token.json"


def write_token_file(path: Path, token: BearerToken) -> None:
    """Writes the token as JSON, readable by the owner only."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        json.dump(token.to_dict(), f, indent=2)


def read_token_file(path: Path) -> BearerToken:
    try:
        with open(path, "r") as f:
            payload = json.load(f)
    except FileNotFoundError:
        raise ConfigError(f"Token file not found at '{path}'")
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to read token file '{path}': {e}")
    return BearerToken.from_response(payload)


def _token_panel(token: BearerToken, title: str) -> Panel:
    return Panel(
        f"[bold]Scope:[/bold] {token.scope}\n"
        f"[bold]Expires in:[/bold] {token.expires_in}s\n"
        f"[bold]Refreshable:[/bold] {'yes' if token.is_refreshable else 'no'}",
        title=title,
        style="bold green",
    )


async def _authorize(settings: OAuthSettings, args: argparse.Namespace) -> None:
    session = RedditOAuth(settings)
    scopes = args.scope or [RedditApiScope.IDENTITY.value]
    token = await session.authorize(scopes, parse_duration(args.duration))
    write_token_file(args.token_file, token)
    console.print(_token_panel(token, "Authenticated!"))
    console.print(f"Token saved to [bold]{args.token_file}[/bold]")


async def _refresh(settings: OAuthSettings, args: argparse.Namespace) -> None:
    session = RedditOAuth(settings)
    token = await session.refresh_token(read_token_file(args.token_file))
    write_token_file(args.token_file, token)
    console.print(_token_panel(token, "Token refreshed"))


async def _revoke(settings: OAuthSettings, args: argparse.Namespace) -> None:
    session = RedditOAuth(settings)
    await session.revoke_token(read_token_file(args.token_file))
    console.print("[bold green]Token revoked![/bold green]")


COMMANDS = {
    "authorize": _authorize,
    "refresh": _refresh,
    "revoke": _revoke,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reddit-oauth",
        description="Obtain, refresh and revoke Reddit OAuth2 bearer tokens",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Configuration is read from the environment or a .env file:
  CLIENT_ID, CLIENT_SECRET, REDIRECT_URI (e.g. http://localhost:8080)

Examples:
  reddit-oauth authorize --scope identity --scope read
  reddit-oauth authorize --duration temporary
  reddit-oauth refresh --token-file reddit_token.json
  reddit-oauth revoke
""",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--log-dir", default=None, help="Write failed attempts as JSON to this directory"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    authorize = subparsers.add_parser("authorize", help="Run the browser consent flow")
    authorize.add_argument(
        "--scope",
        action="append",
        choices=[scope.value for scope in RedditApiScope],
        help="Scope to request (repeatable, default: identity)",
    )
    authorize.add_argument(
        "--duration",
        choices=list(DURATION_WIRE_VALUES.values()),
        default="permanent",
        help="permanent tokens can be refreshed, temporary ones expire after an hour",
    )

    subparsers.add_parser("refresh", help="Refresh a saved token")
    subparsers.add_parser("revoke", help="Revoke a saved token")

    for subparser in subparsers.choices.values():
        subparser.add_argument(
            "--token-file",
            type=Path,
            default=Path(DEFAULT_TOKEN_FILE),
            help=f"Token JSON file (default: {DEFAULT_TOKEN_FILE})",
        )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    if args.log_dir:
        setup_failure_logger(args.log_dir)

    try:
        settings = OAuthSettings.from_env()
        asyncio.run(COMMANDS[args.command](settings, args))
    except OAuthError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        if is_user_facing_error(e):
            console.print("Run [bold]reddit-oauth authorize[/bold] again to retry.")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
