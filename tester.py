import contextlib
import io
import json
import os
import tempfile
from collections import Counter

from doctypes import Classification, Document, TokenizedDocument

FILES = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'files')


def cat_dog_reference(orders=(1, 2, 3, 4)):
    from process_docs import create_reference_ngrams
    corpus = {'A': (TokenizedDocument('0', ['the', 'cat', 'sat'], 'A'),),
              'B': (TokenizedDocument('1', ['the', 'dog', 'ran'], 'B'),)}
    return create_reference_ngrams(corpus, orders)


def expect_error(fn, *args, **kwargs):
    try:
        fn(*args, **kwargs)
    except ValueError:
        print(f'{fn.__name__} error test passed')
    else:
        raise AssertionError(f'expected ValueError from {fn.__name__}')


def test_util():
    import util
    from util import test

    def test_fmt_secs():
        test(util.fmt_secs, '0s', 0)
        test(util.fmt_secs, '1m30s', 90)
        test(util.fmt_secs, '1d1h', 90000)
    test_fmt_secs()

    def test_clean_words():
        test(util.clean_words, ['the', 'cat', 'sat'], 'The cat sat.')
        test(util.clean_words, ['don', 't', 'stop'], "Don't stop!")
        test(util.clean_words, ['caf', 'au', 'lait'], 'Café au lait')
        test(util.clean_words, [], '')
        test(util.clean_words, [], '  ... !? ')
        test(util.clean_words, [], float('nan'))
        test(util.clean_words, [], None)
    test_clean_words()

    def test_clean_words_is_deterministic():
        text = 'The moon rose pale above the silent marsh, and I felt a dread.'
        test(util.clean_words, util.clean_words(text), text)
    test_clean_words_is_deterministic()

    def test_read_df():
        expect_error(util.read_df, os.path.join(FILES, 'HPL.txt'))
        test(util.read_df, lambda df: (list(df.columns), ['id', 'text', 'author']),
             os.path.join(FILES, 'train.csv'))
    test_read_df()

    def test_read_docs():
        test(util.read_docs, lambda docs: (len(docs), 9),
             os.path.join(FILES, 'train.csv'))
        test(util.read_docs,
             lambda docs: ((docs[0].id, docs[0].author), ('id001', 'HPL')),
             os.path.join(FILES, 'train.csv'))
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = os.path.join(tmp_dir, 'unlabeled.csv')
            with open(path, 'w') as fp:
                fp.write('text\nfirst line\nsecond line\n')
            expect_error(util.read_docs, path)
            test(util.read_docs,
                 [Document('0', 'first line'), Document('1', 'second line')],
                 path, labeled=False)

            path = os.path.join(tmp_dir, 'partial.csv')
            with open(path, 'w') as fp:
                fp.write('id,text,author\na,first line,X\nb,second line,\n')
            test(util.read_docs, [Document('a', 'first line', 'X')], path)

            # numeric labels with a blank row must not turn into floats
            path = os.path.join(tmp_dir, 'numeric.csv')
            with open(path, 'w') as fp:
                fp.write('id,text,author\n1,cat sat,1\n2,dog ran,\n3,dog ran,2\n')
            test(util.read_docs,
                 lambda docs: ([(doc.id, doc.author) for doc in docs],
                               [('1', '1'), ('3', '2')]),
                 path)
    test_read_docs()

    def test_clean_words_removes_stopwords():
        test(util.clean_words, ['cat', 'sat', 'mat'],
             'The cat sat on the mat', remove_stopwords=True)
        test(util.clean_words, [], 'The and of', remove_stopwords=True)
        test(util.load_stopwords, lambda words: ('the' in words, True))
    test_clean_words_removes_stopwords()

    def test_read_text_file():
        test(util.read_text_file,
             lambda doc: ((doc.id, doc.author, 'silent marsh' in doc.text),
                          ('HPL.txt', 'HPL', True)),
             os.path.join(FILES, 'HPL.txt'), 'HPL')
    test_read_text_file()

    def test_dataclass_json_encoder():
        result = Classification('A', Counter({'A': 3, 'B': 1}))
        test(json.dumps,
             lambda s: (json.loads(s),
                        {'label': 'A', 'tallies': {'A': 3, 'B': 1}, 'tied': []}),
             result, cls=util.DataclassJSONEncoder)
    test_dataclass_json_encoder()


def test_process_docs():
    import process_docs
    from util import test

    def test_preprocess_docs():
        test(process_docs.preprocess_docs,
             [TokenizedDocument('0', ['the', 'raven', 'tapped'], 'EAP')],
             [Document('0', 'The raven, tapped!', 'EAP')])
    test_preprocess_docs()

    def test_extract_ngrams():
        test(process_docs.extract_ngrams,
             [('a', 'b'), ('b', 'c'), ('c', 'd')], list('abcd'), 2)
        test(process_docs.extract_ngrams,
             [('a', 'b'), ('b', 'a'), ('a', 'b')], list('abab'), 2)
        test(process_docs.extract_ngrams, [], list('abc'), 4)
        test(process_docs.extract_ngrams, [], [], 1)
        expect_error(process_docs.extract_ngrams, list('abc'), 0)
    test_extract_ngrams()

    def test_extract_ngrams_length():
        for length in range(7):
            tokens = [f'w{i}' for i in range(length)]
            for n in range(1, 5):
                ngrams = process_docs.extract_ngrams(tokens, n)
                assert len(ngrams) == max(0, length - n + 1)
                assert ngrams == [tuple(tokens[i:i + n])
                                  for i in range(len(ngrams))]
        print('extract_ngrams length test passed')
    test_extract_ngrams_length()

    def test_validate_orders():
        test(process_docs.validate_orders, (1, 2, 3), range(1, 4))
        expect_error(process_docs.validate_orders, [])
        expect_error(process_docs.validate_orders, [0, 1])
    test_validate_orders()

    def test_create_labeled_corpus():
        docs = [TokenizedDocument('0', list('ab'), 'A'),
                TokenizedDocument('1', list('cd'), 'B'),
                TokenizedDocument('2', list('ef'), 'A')]
        test(process_docs.create_labeled_corpus,
             {'A': (docs[0], docs[2]), 'B': (docs[1], )}, docs)
        test(process_docs.create_labeled_corpus, {}, [])
    test_create_labeled_corpus()

    def test_create_reference_ngrams():
        test(process_docs.create_reference_ngrams,
             {'A': {1: frozenset({('the', ), ('cat', ), ('sat', )}),
                    2: frozenset({('the', 'cat'), ('cat', 'sat')})},
              'B': {1: frozenset({('the', ), ('dog', ), ('ran', )}),
                    2: frozenset({('the', 'dog'), ('dog', 'ran')})}},
             {'A': (TokenizedDocument('0', ['the', 'cat', 'sat'], 'A'), ),
              'B': (TokenizedDocument('1', ['the', 'dog', 'ran'], 'B'), )},
             [1, 2])
        # n-grams never span two documents
        test(process_docs.create_reference_ngrams,
             {'A': {2: frozenset({('a', 'b'), ('c', 'd')})}},
             {'A': (TokenizedDocument('0', list('ab'), 'A'),
                    TokenizedDocument('1', list('cd'), 'A'))},
             [2])
        test(process_docs.create_reference_ngrams,
             {'A': {3: frozenset()}},
             {'A': (TokenizedDocument('0', list('ab'), 'A'), )},
             [3])
        expect_error(process_docs.create_reference_ngrams, {}, [])
    test_create_reference_ngrams()

    def test_count_words():
        test(process_docs.count_words, {'A': 5, 'B': 0},
             {'A': (TokenizedDocument('0', list('abc'), 'A'),
                    TokenizedDocument('1', list('de'), 'A')),
              'B': (TokenizedDocument('2', [], 'B'), )})
    test_count_words()

    def test_main():
        with tempfile.TemporaryDirectory() as tmp_dir:
            output_path = os.path.join(tmp_dir, 'train_processed.pickle')
            with contextlib.redirect_stdout(io.StringIO()):
                process_docs.main(os.path.join(FILES, 'train.csv'),
                                  output_path, 1, 2)
            import util
            data = util.load_processed_data(output_path)
            assert data['orders'] == (1, 2)
            assert data['authors'] == ['EAP', 'HPL', 'MWS']
            assert set(data['reference']['HPL']) == {1, 2}
            assert ('silent', 'marsh') in data['reference']['HPL'][2]
            assert ('silent', 'marsh') not in data['reference']['MWS'][2]
            assert data['word_counts']['HPL'] > 0
        print('main test passed')
    test_main()


def test_scorer():
    import scorer
    from util import test

    def test_calculate_overlap_tally():
        # 'the cat sat' shares three unigrams with A and one with B
        test(scorer.calculate_overlap_tally,
             lambda c: (dict(c), {'A': 3, 'B': 1}),
             ['the', 'cat', 'sat'], cat_dog_reference(), [1])
        test(scorer.calculate_overlap_tally,
             lambda c: (dict(c), {'A': 6, 'B': 1}),
             ['the', 'cat', 'sat'], cat_dog_reference(), range(1, 5))
    test_calculate_overlap_tally()

    def test_calculate_overlap_tally_counts_repeats():
        test(scorer.calculate_overlap_tally,
             lambda c: (dict(c), {'A': 4, 'B': 3}),
             ['the', 'cat', 'the', 'the'], cat_dog_reference(), [1])
    test_calculate_overlap_tally_counts_repeats()

    def test_calculate_overlap_tally_degenerate():
        test(scorer.calculate_overlap_tally,
             lambda c: (dict(c), {'A': 0, 'B': 0}),
             [], cat_dog_reference(), [1, 2])
        test(scorer.calculate_overlap_tally,
             lambda c: (dict(c), {'A': 0, 'B': 0}),
             ['zebra', 'crossing'], cat_dog_reference(), [1, 2])
        test(scorer.calculate_overlap_tally,
             lambda c: (dict(c), {}),
             ['the', 'cat'], {}, [1])
        # orders missing from the reference add nothing
        test(scorer.calculate_overlap_tally,
             lambda c: (dict(c), {'A': 3, 'B': 1}),
             ['the', 'cat', 'sat'], cat_dog_reference([1]), [1, 2, 3])
        expect_error(scorer.calculate_overlap_tally,
                     ['the'], cat_dog_reference(), [0])
    test_calculate_overlap_tally_degenerate()

    def test_calculate_overlap_tally_is_monotonic():
        reference = cat_dog_reference()
        query = ['the', 'cat', 'sat', 'the', 'dog', 'ran', 'the', 'cat']
        previous = scorer.calculate_overlap_tally(query, reference, [1])
        for max_n in range(2, 5):
            tally = scorer.calculate_overlap_tally(
                query, reference, range(1, max_n + 1))
            for author in reference:
                assert tally[author] >= previous[author]
            previous = tally
        print('calculate_overlap_tally monotonic test passed')
    test_calculate_overlap_tally_is_monotonic()

    def test_select_label():
        test(scorer.select_label, ('A', []), Counter({'A': 3, 'B': 1}))
        test(scorer.select_label, ('B', []), Counter({'A': 0, 'B': 1, 'C': 0}))
        test(scorer.select_label, (None, ['A', 'B']),
             Counter({'B': 2, 'A': 2, 'C': 1}))
        test(scorer.select_label, ('A', ['A', 'B']),
             Counter({'B': 2, 'A': 2, 'C': 1}), 'lexicographic')
        test(scorer.select_label, (None, []), Counter())
        test(scorer.select_label, (None, []), Counter(), 'lexicographic')
        expect_error(scorer.select_label, Counter({'A': 1}), 'first')
        test(scorer.validate_tie_break, 'lexicographic', 'lexicographic')
        expect_error(scorer.validate_tie_break, 'bogus')
    test_select_label()

    def test_select_label_does_not_favor_last_author():
        # three-way tie stays undecided instead of falling to one author
        test(scorer.select_label, (None, ['EAP', 'HPL', 'MWS']),
             Counter({'MWS': 0, 'HPL': 0, 'EAP': 0}))
    test_select_label_does_not_favor_last_author()

    def test_calculate_accuracy():
        test(scorer.calculate_accuracy, 0.5,
             ['A', 'B', 'C', 'A'], ['A', 'B', None, 'B'])
        test(scorer.calculate_accuracy, 0.0, [], [])
    test_calculate_accuracy()

    def test_calculate_confusion_matrix():
        test(scorer.calculate_confusion_matrix,
             {'A': Counter({'A': 1, 'B': 1}),
              'B': Counter({'B': 1}),
              'C': Counter({None: 1})},
             ['A', 'B', 'C', 'A'], ['A', 'B', None, 'B'])
    test_calculate_confusion_matrix()


def test_classifier():
    import classifier
    import util
    from util import test

    def test_classify():
        test(classifier.classify,
             lambda r: ((r.label, dict(r.tallies), r.tied),
                        ('A', {'A': 3, 'B': 1}, [])),
             'The cat sat.', cat_dog_reference(), [1])
        test(classifier.classify,
             lambda r: ((r.label, dict(r.tallies), r.tied),
                        ('B', {'A': 0, 'B': 1}, [])),
             'Dog!', cat_dog_reference(), [1])
        test(classifier.classify,
             lambda r: ((r.label, r.tied), (None, ['A', 'B'])),
             'Zebras graze.', cat_dog_reference())
        test(classifier.classify,
             lambda r: ((r.label, r.tied), ('A', ['A', 'B'])),
             '', cat_dog_reference(), range(1, 5), 'lexicographic')
    test_classify()

    def test_classify_exclusive_ngram():
        docs = [Document('0', 'alpha beta', 'A'),
                Document('1', 'beta gamma', 'B'),
                Document('2', 'gamma delta', 'C')]
        engine = classifier.NGramEngine(docs=docs)
        test(engine.classify, lambda r: (r.label, 'A'), 'alpha')
        test(engine.classify, lambda r: (r.label, 'C'), 'delta')
    test_classify_exclusive_ngram()

    def test_engine():
        engine = classifier.NGramEngine(
            docs=util.read_docs(os.path.join(FILES, 'train.csv')))
        assert engine.authors == ['EAP', 'HPL', 'MWS']
        assert engine.orders == (1, 2, 3, 4)
        for author in engine.authors:
            text = util.read_text_file(os.path.join(FILES, f'{author}.txt')).text
            test(engine.classify, lambda r, a=author: (r.label, a), text)
        test(engine.classify_many, lambda rs: ([r.label for r in rs], ['EAP', None]),
             ['the raven at midnight', ''])
        expect_error(classifier.NGramEngine)
        expect_error(classifier.NGramEngine, 'processed.pickle', docs=[])
    test_engine()

    def test_engine_rejects_unknown_tie_break():
        expect_error(classifier.NGramEngine,
                     docs=[Document('0', 'a b', 'A')], tie_break='bogus')
    test_engine_rejects_unknown_tie_break()

    def test_engine_removes_stopwords_from_query():
        docs = [Document('0', 'The cat sat on the mat', 'A'),
                Document('1', 'The dog ran to the park', 'B')]
        engine = classifier.NGramEngine(docs=docs, remove_stopwords=True)
        assert ('the', ) not in engine.reference['A'][1]
        assert ('cat', 'sat', 'mat') in engine.reference['A'][3]
        # only stopwords left, so nothing overlaps
        test(engine.classify,
             lambda r: ((r.label, dict(r.tallies)), (None, {'A': 0, 'B': 0})),
             'the the on')
        test(engine.classify, lambda r: (r.label, 'A'), 'The cat on the mat')

        plain = classifier.NGramEngine(docs=docs)
        test(plain.classify, lambda r: (r.label, 'A'), 'the the on')

        with tempfile.TemporaryDirectory() as tmp_dir:
            input_path = os.path.join(tmp_dir, 'train.csv')
            with open(input_path, 'w') as fp:
                fp.write('id,text,author\n0,The cat sat on the mat,A\n'
                         '1,The dog ran to the park,B\n')
            output_path = os.path.join(tmp_dir, 'train_processed.pickle')
            import process_docs
            with contextlib.redirect_stdout(io.StringIO()):
                process_docs.main(input_path, output_path,
                                  remove_stopwords=True)
            loaded = classifier.NGramEngine(output_path)
        assert loaded.remove_stopwords
        assert loaded.reference == engine.reference
        test(loaded.classify, lambda r: (r.label, None), 'the the on')
    test_engine_removes_stopwords_from_query()

    def test_engine_from_processed_data():
        import process_docs
        train_path = os.path.join(FILES, 'train.csv')
        with tempfile.TemporaryDirectory() as tmp_dir:
            output_path = os.path.join(tmp_dir, 'train_processed.pickle')
            with contextlib.redirect_stdout(io.StringIO()):
                process_docs.main(train_path, output_path)
            loaded = classifier.NGramEngine(output_path)
        built = classifier.NGramEngine(docs=util.read_docs(train_path))
        assert loaded.reference == built.reference
        assert loaded.orders == built.orders
        assert loaded.word_counts == built.word_counts
        print('engine from processed data test passed')
    test_engine_from_processed_data()

    def test_evaluate():
        engine = classifier.NGramEngine(
            docs=util.read_docs(os.path.join(FILES, 'train.csv')))
        with contextlib.redirect_stdout(io.StringIO()):
            report = classifier.evaluate(engine, os.path.join(FILES, 'test.csv'))
        assert report['accuracy'] == 1.0
        assert report['undecided'] == 0
        assert report['confusion'] == {'HPL': Counter({'HPL': 1}),
                                       'MWS': Counter({'MWS': 1}),
                                       'EAP': Counter({'EAP': 1})}
        print('evaluate test passed')
    test_evaluate()

    def test_main():
        train_path = os.path.join(FILES, 'train.csv')
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            classifier.main([os.path.join(FILES, 'MWS.txt'), 'the raven'],
                            raw_data_path=train_path)
        assert out.getvalue().splitlines() == ['MWS', 'EAP']

        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            classifier.main(['zebra'], raw_data_path=train_path, to_json=True)
        output = json.loads(out.getvalue())
        assert output['id'] == 'query'
        assert output['result']['label'] is None
        assert output['result']['tied'] == ['EAP', 'HPL', 'MWS']

        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            classifier.main(raw_data_path=train_path,
                            test_data_path=os.path.join(FILES, 'test.csv'),
                            to_json=True)
        report = json.loads(out.getvalue().splitlines()[-1])
        assert report['accuracy'] == 1.0
        print('main test passed')
    test_main()


if __name__ == '__main__':
    test_util()
    test_process_docs()
    test_scorer()
    test_classifier()
