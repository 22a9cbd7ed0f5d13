# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Query tokenization for keyword scoring.

Lowercases text, turns everything except ASCII letters, digits,
whitespace, ``-``, ``_`` and ``.`` into spaces, splits on whitespace
and drops single-character tokens. Dots, dashes and underscores are
kept so file names like ``auth_flow.py`` survive as one token.
"""

import re
from typing import Iterator

from milestone_search.constants import MIN_TOKEN_LENGTH

NON_TOKEN_CHARS = re.compile(r"[^a-z0-9\s\-_.]")


def iter_tokens(text: str) -> Iterator[str]:
    """Yield lowercase tokens of ``text`` lazily.

    Args:
        text: Text to tokenize. None or empty yields nothing.

    Yields:
        Tokens of at least MIN_TOKEN_LENGTH characters, in order.
    """
    if not text:
        return
    cleaned = NON_TOKEN_CHARS.sub(" ", text.lower())
    for token in cleaned.split():
        if len(token) >= MIN_TOKEN_LENGTH:
            yield token


def tokenize(text: str) -> list[str]:
    """Tokenize text into a list."""
    return list(iter_tokens(text))


class QueryTokens:
    """Lazy, restartable token sequence for a query.

    Iterating twice re-tokenizes the query, so the same object can be
    handed to several consumers.

    Example:
        >>> tokens = QueryTokens("Fix login-bug!")
        >>> list(tokens)
        ['fix', 'login-bug']
        >>> list(tokens)
        ['fix', 'login-bug']
    """

    def __init__(self, text: str):
        self.text = text or ""

    def __iter__(self) -> Iterator[str]:
        return iter_tokens(self.text)

    def __repr__(self) -> str:
        return f"QueryTokens({self.text!r})"
