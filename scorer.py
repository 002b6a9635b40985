from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from typing import Literal

from nltk.util import ngrams

from process_docs import validate_orders

TIE_BREAKS = ('none', 'lexicographic')


def validate_tie_break(tie_break: str) -> str:
    if tie_break not in TIE_BREAKS:
        raise ValueError(f"Invalid tie break '{tie_break}'. "
                         f"Must be one of {', '.join(TIE_BREAKS)}.")
    return tie_break


def calculate_overlap_tally(
    query: list[str],
    reference: dict[str, dict[int, frozenset[tuple[str, ...]]]],
    orders: Iterable[int] = range(1, 5),
) -> Counter[str, int]:
    """Count the query n-gram occurrences found in each author's reference sets.

    Every occurrence is checked on its own, so an n-gram repeated in the
    query counts once per repeat. An order missing from an author's
    reference contributes nothing to that author.

    Arguments:
        query: tokenized query
        reference: mapping of author to order to reference n-gram set
        orders: n-gram orders to compare
    Returns:
        dict of every author to its overlap count (zero included)
    """
    tally = Counter(dict.fromkeys(reference, 0))
    for n in validate_orders(orders):
        for ngram in ngrams(query, n):
            for author, ngram_sets in reference.items():
                if ngram in ngram_sets.get(n, ()):
                    tally[author] += 1
    return tally


def select_label(
    tally: Counter[str, int],
    tie_break: Literal['none', 'lexicographic'] = 'none',
) -> tuple[str | None, list[str]]:
    """Pick the author with the strictly greatest overlap count.

    Arguments:
        tally: dict of authors to overlap counts
        tie_break: 'none' gives no decision when the top count is shared,
            'lexicographic' picks the first of the tied authors in sorted order
    Returns:
        the chosen author (None when undecided) and the sorted list of
        authors sharing the top count when there is a tie
    """
    validate_tie_break(tie_break)
    if not tally:
        return None, []
    best = max(tally.values())
    leaders = sorted(author for author, count in tally.items() if count == best)
    if len(leaders) == 1:
        return leaders[0], []
    if tie_break == 'lexicographic':
        return leaders[0], leaders
    return None, leaders


def calculate_accuracy(expected: list, predicted: list) -> float:
    """Calculate the share of predictions that match the expected labels.

    Arguments:
        expected: true labels
        predicted: predicted labels (None counts as wrong)
    Returns:
        accuracy of the predictions, 0.0 when there are none
    """
    if not expected:
        return 0.0
    hits = sum(e == p for e, p in zip(expected, predicted))
    return hits / len(expected)


def calculate_confusion_matrix(
    expected: list,
    predicted: list,
) -> dict[str, Counter]:
    confusion = {}
    for e, p in zip(expected, predicted):
        confusion.setdefault(e, Counter())[p] += 1
    return confusion
