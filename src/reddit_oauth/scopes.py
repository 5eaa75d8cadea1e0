# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/reddit_oauth/scopes.py
"""
Reddit OAuth scope and duration values.

The wire strings are spelled out in explicit tables instead of being derived
from the enum names, so renaming a member can never change what is sent to
the provider. See https://www.reddit.com/api/v1/scopes for the scope list.
"""

import logging
from enum import Enum
from typing import Dict, Iterable, Union

from .errors import ConfigError

lib_logger = logging.getLogger("reddit_oauth")


class Duration(Enum):
    """Whether the issued token can be refreshed after it expires."""

    PERMANENT = "permanent"
    TEMPORARY = "temporary"


DURATION_WIRE_VALUES: Dict[Duration, str] = {
    Duration.PERMANENT: "permanent",
    Duration.TEMPORARY: "temporary",
}


class RedditApiScope(Enum):
    IDENTITY = "identity"
    EDIT = "edit"
    FLAIR = "flair"
    HISTORY = "history"
    MODCONFIG = "modconfig"
    MODFLAIR = "modflair"
    MODLOG = "modlog"
    MODPOSTS = "modposts"
    MODWIKI = "modwiki"
    MYSUBREDDITS = "mysubreddits"
    PRIVATEMESSAGES = "privatemessages"
    READ = "read"
    REPORT = "report"
    SAVE = "save"
    SUBMIT = "submit"
    SUBSCRIBE = "subscribe"
    VOTE = "vote"
    WIKIEDIT = "wikiedit"
    WIKIREAD = "wikiread"


SCOPE_WIRE_VALUES: Dict[RedditApiScope, str] = {
    RedditApiScope.IDENTITY: "identity",
    RedditApiScope.EDIT: "edit",
    RedditApiScope.FLAIR: "flair",
    RedditApiScope.HISTORY: "history",
    RedditApiScope.MODCONFIG: "modconfig",
    RedditApiScope.MODFLAIR: "modflair",
    RedditApiScope.MODLOG: "modlog",
    RedditApiScope.MODPOSTS: "modposts",
    RedditApiScope.MODWIKI: "modwiki",
    RedditApiScope.MYSUBREDDITS: "mysubreddits",
    RedditApiScope.PRIVATEMESSAGES: "privatemessages",
    RedditApiScope.READ: "read",
    RedditApiScope.REPORT: "report",
    RedditApiScope.SAVE: "save",
    RedditApiScope.SUBMIT: "submit",
    RedditApiScope.SUBSCRIBE: "subscribe",
    RedditApiScope.VOTE: "vote",
    RedditApiScope.WIKIEDIT: "wikiedit",
    RedditApiScope.WIKIREAD: "wikiread",
}

ScopeLike = Union[RedditApiScope, str]


def scope_to_wire(scope: ScopeLike) -> str:
    if isinstance(scope, RedditApiScope):
        return SCOPE_WIRE_VALUES[scope]
    return str(scope).strip()


def duration_to_wire(duration: Duration) -> str:
    return DURATION_WIRE_VALUES[duration]


def parse_duration(value: Union[Duration, str]) -> Duration:
    """Accepts a Duration member or its wire string ("permanent"/"temporary")."""
    if isinstance(value, Duration):
        return value
    normalized = str(value).strip().lower()
    for duration, wire in DURATION_WIRE_VALUES.items():
        if wire == normalized:
            return duration
    raise ConfigError(
        f"Unknown duration '{value}'. Expected one of: "
        + ", ".join(DURATION_WIRE_VALUES.values())
    )


def join_scopes(scopes: Iterable[ScopeLike]) -> str:
    """
    Join scopes into the space separated string the authorize endpoint expects.

    Order is preserved exactly as given. Duplicates are passed through but
    logged, since the provider treats them as a single grant anyway.

    Examples:
        >>> join_scopes([RedditApiScope.IDENTITY, "read"])
        'identity read'
    """
    wire_scopes = [scope_to_wire(scope) for scope in scopes]
    wire_scopes = [scope for scope in wire_scopes if scope]

    if len(set(wire_scopes)) != len(wire_scopes):
        lib_logger.warning(f"Duplicate scopes requested: {' '.join(wire_scopes)}")

    return " ".join(wire_scopes)
