# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/reddit_oauth/utils/state_token.py

import secrets
import string

STATE_ALPHABET = string.ascii_letters + string.digits
DEFAULT_STATE_LENGTH = 10


def generate_state_string(length: int = DEFAULT_STATE_LENGTH) -> str:
    """
    Generate the anti-forgery ``state`` value for one authorization attempt.

    Characters are drawn from [A-Za-z0-9] with the ``secrets`` CSPRNG, so ten
    characters give roughly 59 bits of entropy.

    Args:
        length: Number of characters, at least 1

    Returns:
        Random alphanumeric string of exactly ``length`` characters
    """
    if length < 1:
        raise ValueError(f"State string length must be at least 1, got {length}")
    return "".join(secrets.choice(STATE_ALPHABET) for _ in range(length))
