from __future__ import annotations

import time
from collections.abc import Iterable, Sequence

from nltk.util import ngrams

from doctypes import Document, TokenizedDocument
from util import (clean_words, fmt_secs, get_docs_size, read_docs,
                  save_processed_data)


def preprocess_docs(
    docs: list[Document],
    remove_stopwords: bool = False,
) -> list[TokenizedDocument]:
    docs_ = []
    for doc in docs:
        words = clean_words(doc.text, remove_stopwords=remove_stopwords)
        doc_ = TokenizedDocument(id=doc.id, text=words, author=doc.author)
        docs_.append(doc_)
    return docs_


def validate_orders(orders: Iterable[int]) -> tuple[int, ...]:
    orders = tuple(orders)
    if not orders:
        raise ValueError('At least one n-gram order is required.')
    for n in orders:
        if n < 1:
            raise ValueError(f'Invalid n-gram order {n}. Must be at least 1.')
    return orders


def extract_ngrams(tokens: Sequence[str], n: int) -> list[tuple[str, ...]]:
    """Return every contiguous n-gram of a token sequence, repeats included.

    Arguments:
        tokens: tokenized document
        n: n-gram order
    Returns:
        list of max(0, len(tokens) - n + 1) n-grams in positional order
    """
    if n < 1:
        raise ValueError(f'Invalid n-gram order {n}. Must be at least 1.')
    return list(ngrams(tokens, n))


def create_labeled_corpus(
    docs: list[TokenizedDocument],
) -> dict[str, tuple[TokenizedDocument, ...]]:  # Mapping of authors to documents
    corpus = {}
    for doc in docs:
        corpus.setdefault(doc.author, []).append(doc)
    return {author: tuple(docs_) for author, docs_ in corpus.items()}


def create_reference_ngrams(
    corpus: dict[str, Sequence[TokenizedDocument]],
    orders: Iterable[int] = range(1, 5),
) -> dict[str, dict[int, frozenset[tuple[str, ...]]]]:
    """Build the reference n-gram sets of every author.

    Arguments:
        corpus: mapping of authors to their tokenized documents
        orders: n-gram orders to build sets for
    Returns:
        mapping of author to order to the distinct n-grams that occur in
        any of that author's documents
    """
    orders = validate_orders(orders)
    reference = {}
    for author, docs in corpus.items():
        reference[author] = {}
        for n in orders:
            ngram_set = set()
            for doc in docs:
                ngram_set.update(ngrams(doc.text, n))
            reference[author][n] = frozenset(ngram_set)
    return reference


def count_words(corpus: dict[str, Sequence[TokenizedDocument]]) -> dict[str, int]:
    return {author: sum(len(doc.text) for doc in docs)
            for author, docs in corpus.items()}


def main(
    input_path: str = 'files/train.csv',
    output_path: str = 'files/train_processed.pickle',
    min_n: int = 1,
    max_n: int = 4,
    remove_stopwords: bool = False,
):
    """Build the reference n-gram sets of a labeled collection.

    Arguments:
        input_path: path to load input file (must be .csv or .json format)
        output_path: path to save output
        min_n: smallest n-gram order
        max_n: largest n-gram order
        remove_stopwords: if set to true, drop english stopwords before extracting n-grams
    """
    orders = validate_orders(range(min_n, max_n + 1))
    docs = read_docs(input_path)
    docs_size = get_docs_size(input_path)
    print(f'read {input_path} with {len(docs)} rows @ {docs_size/1e6:.1f}MB')

    print('start building reference corpora...')
    start = time.time()

    docs = preprocess_docs(docs, remove_stopwords)
    corpus = create_labeled_corpus(docs)
    word_counts = count_words(corpus)
    reference = create_reference_ngrams(corpus, orders)
    result = {'reference': reference,
              'orders': orders,
              'authors': sorted(corpus),
              'word_counts': word_counts,
              'remove_stopwords': remove_stopwords}

    end = time.time()
    time_taken = end - start
    speed = docs_size / 1e3 / (time_taken or 1e-9)
    print(f'reference corpora built in {fmt_secs(time_taken)} ({speed:.1f}KB/s)')
    for author in sorted(reference):
        sizes = ', '.join(f'{n}-grams={len(reference[author][n])}'
                          for n in orders)
        print(f'{author}: {word_counts[author]} words, {sizes}')

    save_processed_data(result, output_path)
    print(f'result saved at {output_path}')


if __name__ == '__main__':
    import argparse

    parser = argparse.ArgumentParser(
        description='Build reference n-gram sets from a labeled collection.',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        '-i', '--in', default='files/train.csv',
        help='path to load input file (must be .csv or .json format)',
        metavar='PATH', dest='input_path')
    parser.add_argument(
        '-o', '--out', default='files/train_processed.pickle',
        help='path to save output',
        metavar='PATH', dest='output_path')
    parser.add_argument(
        '--min-n', default=1, type=int,
        help='smallest n-gram order',
        metavar='N', dest='min_n')
    parser.add_argument(
        '--max-n', default=4, type=int,
        help='largest n-gram order',
        metavar='N', dest='max_n')
    parser.add_argument(
        '--stopwords', action='store_true',
        help='if set to true, drop english stopwords before extracting n-grams',
        dest='remove_stopwords')

    args = parser.parse_args()
    main(**vars(args))
