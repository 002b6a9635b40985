from __future__ import annotations

import json
import os
from collections.abc import Iterable
from typing import Literal

from doctypes import Classification, Document
from process_docs import (count_words, create_labeled_corpus,
                          create_reference_ngrams, preprocess_docs,
                          validate_orders)
from scorer import (calculate_accuracy, calculate_confusion_matrix,
                    calculate_overlap_tally, select_label,
                    validate_tie_break)
from util import (DataclassJSONEncoder, clean_words, fmt_secs,
                  load_processed_data, print_classification, read_docs,
                  read_text_file, timed)


def classify(
    query: str,
    reference: dict[str, dict[int, frozenset[tuple[str, ...]]]],
    orders: Iterable[int] = range(1, 5),
    tie_break: Literal['none', 'lexicographic'] = 'none',
    remove_stopwords: bool = False,
) -> Classification:
    """Attribute a text to the author whose reference sets overlap it most.

    Arguments:
        query: query string
        reference: mapping of author to order to reference n-gram set
        orders: n-gram orders to compare
        tie_break: policy when no author has the strictly greatest overlap
        remove_stopwords: if set to true, drop english stopwords from the query
    Returns:
        the chosen author with the per-author overlap counts
    """
    query = clean_words(query, remove_stopwords=remove_stopwords)
    tallies = calculate_overlap_tally(query, reference, orders)
    label, tied = select_label(tallies, tie_break)
    return Classification(label=label, tallies=tallies, tied=tied)


class NGramEngine():
    def __init__(
        self,
        data_path: str | None = None,
        docs: list[Document] | None = None,
        orders: Iterable[int] = range(1, 5),
        tie_break: Literal['none', 'lexicographic'] = 'none',
        remove_stopwords: bool = False,
    ):
        if (data_path is None) == (docs is None):
            raise ValueError('Provide exactly one of data_path or docs.')
        self.tie_break = validate_tie_break(tie_break)
        if data_path is not None:
            self._load_data(data_path)
        else:
            self.orders = validate_orders(orders)
            self.remove_stopwords = remove_stopwords
            self._build_data(docs)

    def _load_data(self, data_path: str):
        # Load the processed data
        data = load_processed_data(data_path)
        self.reference = data['reference']
        self.orders = tuple(data['orders'])
        self.word_counts = data.get('word_counts', {})
        self.remove_stopwords = data.get('remove_stopwords', False)

    def _build_data(self, docs: list[Document]):
        corpus = create_labeled_corpus(
            preprocess_docs(docs, self.remove_stopwords))
        self.reference = create_reference_ngrams(corpus, self.orders)
        self.word_counts = count_words(corpus)

    @property
    def authors(self) -> list[str]:
        return sorted(self.reference)

    def classify(self, query: str) -> Classification:
        return classify(query, self.reference, self.orders, self.tie_break,
                        self.remove_stopwords)

    def classify_many(self, queries: list[str]) -> list[Classification]:
        return [self.classify(query) for query in queries]


def evaluate(
    engine: NGramEngine,
    test_data_path: str,
    verbose: bool = False,
) -> dict:
    """Classify every row of a labeled file and report how well it went.

    Arguments:
        engine: classifier holding the reference sets
        test_data_path: path to a .csv or .json file with 'text' and 'author' columns
        verbose: if set to true, print every classification
    Returns:
        dict with accuracy, undecided count, confusion matrix and latency
    """
    docs = read_docs(test_data_path)
    expected, predicted, total_time = [], [], []
    for i, doc in enumerate(docs):
        result, time_taken = timed(engine.classify, (doc.text, ))
        total_time.append(time_taken)
        expected.append(doc.author)
        predicted.append(result.label)
        if verbose:
            header = {'no.': i + 1,
                      'id': doc.id,
                      'expected': doc.author,
                      'latency': fmt_secs(time_taken)}
            print_classification(result, 2, header)
    time_taken = sum(total_time)
    accuracy = calculate_accuracy(expected, predicted)
    undecided = predicted.count(None)
    print(f'evaluation complete ({fmt_secs(time_taken)}): '
          f'{len(docs)} documents, {accuracy=:.2f}, {undecided=}')
    return {'accuracy': accuracy,
            'undecided': undecided,
            'confusion': calculate_confusion_matrix(expected, predicted),
            'time_taken': time_taken}


def main(
    queries: list[str] | None = None,
    raw_data_path: str | None = None,
    processed_data_path: str | None = 'files/train_processed.pickle',
    min_n: int = 1,
    max_n: int = 4,
    tie_break: Literal['none', 'lexicographic'] = 'none',
    verbose: int = 0,
    interactive: bool = False,
    test_data_path: str | None = None,
    to_json: bool = False,
):
    """Attribute texts to authors by n-gram overlap.

    Arguments:
        queries: query strings or paths to plain-text files
        raw_data_path: path to load labeled training data (overrides processed data)
        processed_data_path: path to load processed data
        min_n: smallest n-gram order (only used with raw data)
        max_n: largest n-gram order (only used with raw data)
        tie_break: policy when no author has the strictly greatest overlap
        verbose: the higher the count, the more info is printed from results
        interactive: if set to true, start interactive classification mode
        test_data_path: path to a labeled file to evaluate against
        to_json: if set to true, print results as json
    """
    if raw_data_path is not None:
        engine, time_taken = timed(NGramEngine, (), {
            'docs': read_docs(raw_data_path),
            'orders': range(min_n, max_n + 1),
            'tie_break': tie_break})
        if verbose:
            print(f'built reference corpora for {len(engine.authors)} '
                  f'authors from {raw_data_path} ({fmt_secs(time_taken)})')
    elif processed_data_path is not None:
        engine = NGramEngine(processed_data_path, tie_break=tie_break)
    else:
        raise ValueError('Provide raw_data_path or processed_data_path.')

    if test_data_path is not None:
        report = evaluate(engine, test_data_path, verbose > 1)
        if to_json:
            print(json.dumps(report))
        return

    queries = list(queries or [])
    while True:
        for query in queries:
            if os.path.isfile(query):
                doc = read_text_file(query)
            else:
                doc = Document(id='query', text=query)
            result, time_taken = timed(engine.classify, (doc.text, ))
            if to_json:
                print(json.dumps({'id': doc.id, 'result': result},
                                 cls=DataclassJSONEncoder))
            else:
                header = {'query': doc.id if doc.id != 'query' else repr(query),
                          'latency': fmt_secs(time_taken)}
                print_classification(result, verbose, header)
        if interactive:
            queries = [input('Next text? (Press Ctrl+C to exit)>')]
        else:
            break


if __name__ == '__main__':
    import argparse

    parser = argparse.ArgumentParser(
        description='Attribute texts to authors by n-gram overlap.',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        'queries', nargs='*',
        help='query strings or paths to plain-text files',
        metavar='QUERY')
    parser.add_argument(
        '-r', '--raw', default=None,
        help='path to load labeled training data (must be .csv or .json format)',
        metavar='PATH', dest='raw_data_path')
    parser.add_argument(
        '-d', '--data', default='files/train_processed.pickle',
        help='path to load processed data',
        metavar='PATH', dest='processed_data_path')
    parser.add_argument(
        '--min-n', default=1, type=int,
        help='smallest n-gram order (only used with --raw)',
        metavar='N', dest='min_n')
    parser.add_argument(
        '--max-n', default=4, type=int,
        help='largest n-gram order (only used with --raw)',
        metavar='N', dest='max_n')
    parser.add_argument(
        '-t', '--tie-break', default='none',
        choices=('none', 'lexicographic'),
        help='policy when no author has the strictly greatest overlap',
        metavar='T', dest='tie_break')
    parser.add_argument(
        '-v', '--verbose', action='count', default=0,
        help='the higher the count, the more info is printed from results',
        dest='verbose')
    parser.add_argument(
        '-i', '--interactive', action='store_true',
        help='if set to true, start interactive classification mode',
        dest='interactive')
    parser.add_argument(
        '-e', '--eval', default=None,
        help='path to a labeled file to evaluate against',
        metavar='PATH', dest='test_data_path')
    parser.add_argument(
        '--json', action='store_true',
        help='if set to true, print results as json',
        dest='to_json')
    args = parser.parse_args()
    main(**vars(args))
