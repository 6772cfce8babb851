import pickle

import numpy as np
import pytest

from textmethods.config import TokenizerMode
from textmethods.dtm import build_dtm
from textmethods.errors import EmptyVocabularyError
from textmethods.tokenizer import TokenizedCorpus, TokenStream
from textmethods.vocab import Vocabulary, build_vocabulary


def toy_tokens():
    docs = {
        'd1': ['fire', 'flood', 'fire'],
        'd2': ['fire', 'storm'],
        'd3': ['calm'],
    }
    return TokenizedCorpus({d: TokenStream.from_tokens(t) for d, t in docs.items()}, TokenizerMode.NORMALIZE)


def test_min_df_prunes_and_reports_dropped_documents():
    vocab = build_vocabulary(toy_tokens(), min_df=2)
    assert vocab.terms == ('fire',)
    assert vocab.doc_freq == (2,)
    assert vocab.dropped_ids == frozenset({'d3'})


def test_max_df_is_inclusive():
    vocab = build_vocabulary(toy_tokens(), min_df=1, max_df=1)
    assert vocab.terms == ('calm', 'flood', 'storm')
    assert vocab.dropped_ids == frozenset()


def test_pruning_is_idempotent():
    tok = toy_tokens()
    first = build_vocabulary(tok, min_df=2)
    second = build_vocabulary(tok.restrict(first), min_df=2)
    assert second.terms == first.terms
    assert second.dropped_ids == first.dropped_ids


def test_empty_vocabulary_is_fatal():
    with pytest.raises(EmptyVocabularyError):
        build_vocabulary(toy_tokens(), min_df=5)
    with pytest.raises(ValueError):
        build_vocabulary(toy_tokens(), min_df=3, max_df=2)


def test_vocabulary_indices_are_sorted_and_picklable():
    vocab = build_vocabulary(toy_tokens())
    assert list(vocab) == ['calm', 'fire', 'flood', 'storm']
    assert vocab.index['flood'] == 2
    clone = pickle.loads(pickle.dumps(vocab))
    assert clone == vocab
    assert clone.index['storm'] == 3
    with pytest.raises(TypeError):
        vocab.index['new'] = 4


def test_dtm_counts_and_dropped_rows():
    tok = toy_tokens()
    vocab = build_vocabulary(tok, min_df=2)
    dtm = build_dtm(tok, vocab)
    assert dtm.doc_ids == ('d1', 'd2')
    assert 'd3' not in dtm
    assert dtm.shape == (2, 1)
    assert dtm.row('d1') == {0: 2}
    assert dtm.matrix.dtype == np.int64


def test_dtm_row_sums_never_exceed_token_counts():
    tok = toy_tokens()
    dtm = build_dtm(tok, Vocabulary.from_terms(['fire', 'storm', 'unused']))
    counts = tok.token_counts()
    sums = dtm.row_sums()
    for d in dtm.doc_ids:
        assert sums[d] <= counts[d]
    # out-of-vocabulary tokens add nothing
    assert dtm.row('d1') == {0: 2}
    assert dtm.row('d3') == {}
    assert dtm.term_counts()['unused'] == 0


def test_dtm_subset_and_exclusion():
    tok = toy_tokens()
    vocab = build_vocabulary(tok)
    dtm = build_dtm(tok, vocab, exclude_ids={'d2'})
    assert dtm.doc_ids == ('d1', 'd3')
    sub = dtm.subset(['d3'])
    assert sub.to_frame().loc['d3', 'calm'] == 1
    with pytest.raises(KeyError):
        dtm.subset(['d2'])
