"""Keyword tokenizing helpers shared by the registry builder and query engine."""

from __future__ import annotations

import re
from typing import Iterable, List

_TOKEN_RE = re.compile(r"[0-9a-z]+")


def tokenize(text: str) -> List[str]:
    """Split text on whitespace/punctuation into lower-cased tokens, in order."""
    if not text:
        return []
    return _TOKEN_RE.findall(text.lower())


def unique_tokens(texts: Iterable[str]) -> List[str]:
    """Tokenize several strings, keeping the first occurrence of each token."""
    seen = set()
    tokens: List[str] = []
    for text in texts:
        for token in tokenize(text):
            if token not in seen:
                seen.add(token)
                tokens.append(token)
    return tokens


def normalize_phrase(text: str) -> str:
    """Collapse a phrase to its tokens joined by single spaces."""
    return " ".join(tokenize(text))
