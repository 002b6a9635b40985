from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field


@dataclass
class Document:
    """Dataclass for a labeled document in the collection."""
    id: str
    text: str
    author: str | None = None


@dataclass
class TokenizedDocument(Document):
    """Dataclass for a document that has been tokenized."""
    id: str
    text: list[str]  # List of words
    author: str | None = None


@dataclass
class Classification:
    """Dataclass for the outcome of classifying one query."""
    label: str | None  # None when no label wins outright
    tallies: Counter[str, int]
    tied: list[str] = field(default_factory=list)
