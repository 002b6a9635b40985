from __future__ import annotations

import dataclasses
import functools
import json
import os
import pickle
import string
from timeit import default_timer as timer

import nltk
import pandas as pd

from doctypes import Classification, Document


def fmt_secs(s: float):
    if s == 0:
        return '0s'
    ut = []
    for u, t in [('d', 86400), ('h', 3600), ('m', 60), ('s', 1)]:
        q, s = divmod(s, t)
        if q:
            ut.append(f'{int(q)}{u}')
    if any(u[-1] in 'dhm' for u in ut):
        return ''.join(ut[:2])
    s += q
    for u in ('s', 'ms', 'µs', 'ns', 'ps'):
        if s < 0.01:
            s *= 1000
        else:
            break
    return f'{round(s, 2)}{u}'


def timed(fn, args, kwargs=None):
    start_time = timer()
    output = fn(*args, **(kwargs or {}))
    end_time = timer()
    time_taken = end_time - start_time
    return output, time_taken


def test(fn, expected, *args, **kwargs):
    output, time_taken = timed(fn, args, kwargs)
    if callable(expected):
        output, expected = expected(output)
    assert output == expected, f'expected {expected} from {fn.__name__} but got {output}'
    print(f'{fn.__name__} test passed ({fmt_secs(time_taken)})')


def print_classification(
    result: Classification,
    verbose: int = 0,
    header: dict | None = None,
):
    label = result.label if result.label is not None else '<undecided>'
    if verbose > 1:
        if header is not None:
            header = ' | '.join(f'{k.title()}: {v}' for k, v in header.items())
            print('-' * len(header))
            print(header)
            print('-' * len(header))
        a = max((len(author) for author in result.tallies), default=6)
        a = max(a, 6)
        print(f"author{' '*(a-6)}  overlap")
        print(f"======{'='*(a-6)}  =======")
        for author, count in result.tallies.most_common():
            marker = ' *' if author == result.label else ''
            print(f'{author:<{a}}  {count:>7}{marker}')
        if result.tied:
            print(f"tied: {', '.join(result.tied)}")
        print(f'label: {label}')
    elif verbose == 1:
        counts = ', '.join(f'{k}={v}' for k, v in sorted(result.tallies.items()))
        print(f'{label} ({counts})')
    else:
        print(label)


@functools.lru_cache(maxsize=1)
def load_stopwords(language: str = 'english') -> frozenset[str]:
    try:
        return frozenset(nltk.corpus.stopwords.words(language))
    except LookupError:
        nltk.download('stopwords', quiet=True)
        return frozenset(nltk.corpus.stopwords.words(language))


def clean_words(words: str, remove_stopwords: bool = False) -> list[str]:
    if not isinstance(words, str):
        return []  # NaN cells and None
    stopwords = load_stopwords() if remove_stopwords else frozenset()
    punctuation = set(string.punctuation)
    cleaned = []
    for word in nltk.tokenize.wordpunct_tokenize(words):
        # removes non-ascii characters
        word = word.encode('ascii', 'ignore').decode()
        if (word and not all(letter in punctuation for letter in word)):
            word = word.lower()
            if word not in stopwords:
                cleaned.append(word)
    return cleaned


def save_processed_data(data: dict, path: str):
    with open(path, 'wb') as fp:
        pickle.dump(data, fp)


@functools.lru_cache
def load_processed_data(path: str) -> dict:
    with open(path, 'rb') as fp:
        data = pickle.load(fp)
    missing = {'reference', 'orders'} - set(data)
    if missing:
        err_msg = f"Processed data at '{path}' is missing {sorted(missing)}."
        raise ValueError(err_msg)
    return data


@functools.lru_cache
def read_df(path: str) -> pd.DataFrame:
    _, ext = os.path.splitext(path)
    if ext == '.csv':
        # labels and ids stay strings even when they look numeric
        return pd.read_csv(path, dtype=str)
    elif ext == '.json':
        return pd.read_json(path)
    else:
        err_msg = f"Invalid file extension '{ext}'. Must be '.csv' or '.json'."
        raise ValueError(err_msg)


def row_to_doc_adapter(row: pd.Series) -> Document:
    doc_id = row['id'] if 'id' in row else row.name
    author = row['author'] if 'author' in row else None
    return Document(id=str(doc_id),
                    text=row['text'],
                    author=None if pd.isna(author) else str(author))


def read_docs(docs_path: str, labeled: bool = True) -> list[Document]:
    """Read documents from a .csv or .json file.

    Arguments:
        docs_path: path to a file with a 'text' column (and 'id', 'author')
        labeled: if set to true, require an 'author' column and skip
            rows without one
    Returns:
        list of documents in file order
    """
    df = read_df(docs_path)
    required = {'text', 'author'} if labeled else {'text'}
    missing = required - set(df.columns)
    if missing:
        err_msg = f"'{docs_path}' is missing column(s) {sorted(missing)}."
        raise ValueError(err_msg)
    if df.empty:
        return []
    docs = df.apply(row_to_doc_adapter, axis=1).tolist()
    if labeled:
        docs = [doc for doc in docs if doc.author]
    return docs


def read_text_file(path: str, author: str | None = None) -> Document:
    with open(path, encoding='utf-8') as fp:
        text = fp.read()
    return Document(id=os.path.basename(path), text=text, author=author)


def get_docs_size(docs_path: str) -> int:
    df = read_df(docs_path)
    return df.memory_usage(deep=True).sum()


class DataclassJSONEncoder(json.JSONEncoder):
    def default(self, o):
        if dataclasses.is_dataclass(o):
            # asdict would rebuild Counters from their item pairs
            return {f.name: getattr(o, f.name) for f in dataclasses.fields(o)}
        return super().default(o)
