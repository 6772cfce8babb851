import numpy as np
import pandas as pd
import pytest

from textmethods.config import TopicConfig, TokenizerMode
from textmethods.dtm import build_dtm
from textmethods.errors import EstimationError
from textmethods.tokenizer import TokenizedCorpus, TokenStream
from textmethods.topics import TopicModel, TopicModelAdapter, select_k
from textmethods.vocab import Vocabulary, build_vocabulary

FIRE = ['fire', 'smoke', 'burn', 'flame', 'wildfire']
FLOOD = ['flood', 'water', 'rain', 'river', 'storm']


def two_theme_dtm(n_per_theme=6):
    rng = np.random.RandomState(0)
    docs = {}
    for i in range(n_per_theme):
        docs[f'fire{i}'] = [str(w) for w in rng.choice(FIRE, 8)]
        docs[f'flood{i}'] = [str(w) for w in rng.choice(FLOOD, 8)]
    tok = TokenizedCorpus({d: TokenStream.from_tokens(t) for d, t in docs.items()}, TokenizerMode.NORMALIZE)
    return build_dtm(tok, build_vocabulary(tok))


def fit(dtm, k=2, seed=0):
    return TopicModelAdapter().fit(dtm, TopicConfig(k=k, seed=seed, max_iter=30))


def test_theta_rows_are_proportions():
    dtm = two_theme_dtm()
    model = fit(dtm)
    assert model.theta.shape == (len(dtm), 2)
    assert np.allclose(model.theta.sum(axis=1), 1.0)
    assert np.allclose(model.beta.sum(axis=1), 1.0)
    assert model.doc_ids == list(dtm.doc_ids)


def test_seeded_fit_is_reproducible():
    dtm = two_theme_dtm()
    a = fit(dtm, seed=7)
    b = fit(dtm, seed=7)
    assert np.allclose(a.theta.to_numpy(), b.theta.to_numpy())
    assert a.top_words(5).equals(b.top_words(5))


def test_top_words_methods_and_labels():
    model = fit(two_theme_dtm())
    for method in ('prob', 'frex', 'lift', 'score'):
        tw = model.top_words(3, method)
        assert len(tw) == 6
        assert set(tw['topic']) == {0, 1}
    labels = model.label_topics(n=3)
    assert list(labels.columns) == ['prob', 'frex', 'lift', 'score']
    assert len(labels) == 2
    with pytest.raises(ValueError):
        model.word_weights('tfidf')


def test_top_documents_is_read_only_query():
    model = fit(two_theme_dtm())
    before = model.theta.copy()
    top = model.top_documents(0, n=3)
    assert len(top) == 3
    col = model.theta[0]
    assert col[top[0]] == col.max()
    assert model.theta.equals(before)
    with pytest.raises(ValueError):
        model.top_documents(5)


def test_topic_correlation_threshold():
    model = fit(two_theme_dtm())
    corr = model.topic_correlation()
    # with two topics the proportions are complementary
    assert corr.cor.iloc[0, 1] == pytest.approx(-1.0)
    assert bool(corr.adjacency.iloc[0, 1])
    assert not bool(corr.adjacency.iloc[0, 0])
    assert corr.edges()[0][:2] == (0, 1)
    assert model.topic_correlation(threshold=1.5).edges() == []


def test_estimate_effect_on_covariates():
    dtm = two_theme_dtm()
    model = fit(dtm)
    cov = pd.DataFrame({
        'theme': ['fire' if d.startswith('fire') else 'flood' for d in dtm.doc_ids],
        'x': np.arange(len(dtm), dtype=float),
    }, index=list(dtm.doc_ids))
    effects = model.estimate_effect(cov)
    assert set(effects['term']) == {'const', 'theme_flood', 'x'}
    assert len(effects) == 2 * 3
    assert np.isfinite(effects['coef']).all()
    with pytest.raises(ValueError):
        model.estimate_effect()


def test_save_and_load_answer_queries_identically(tmp_path):
    dtm = two_theme_dtm()
    model = fit(dtm, seed=3)
    path = model.save(str(tmp_path / 'lda.joblib'))
    loaded = TopicModel.load(path)
    assert loaded.seed == 3 and loaded.k == 2
    assert loaded.vocabulary == model.vocabulary
    assert np.allclose(loaded.transform(dtm).to_numpy(), model.transform(dtm).to_numpy())
    assert loaded.top_words(4, 'frex').equals(model.top_words(4, 'frex'))
    assert loaded.top_documents(1, 2) == model.top_documents(1, 2)


def test_transform_rejects_other_vocabulary():
    dtm = two_theme_dtm()
    model = fit(dtm)
    tok = TokenizedCorpus({'x': TokenStream.from_tokens(['fire'])}, TokenizerMode.NORMALIZE)
    other = build_dtm(tok, Vocabulary.from_terms(['fire']))
    with pytest.raises(ValueError):
        model.transform(other)


class FailingEstimator:
    def fit(self, X):
        raise ValueError('did not converge')


def test_estimator_failure_is_surfaced():
    adapter = TopicModelAdapter(estimator_factory=lambda k, seed, config: FailingEstimator())
    with pytest.raises(EstimationError):
        adapter.fit(two_theme_dtm(), TopicConfig(k=2, seed=0))


def test_k_must_be_explicit_and_positive():
    with pytest.raises(TypeError):
        TopicConfig(seed=0)
    with pytest.raises(ValueError):
        TopicConfig(k=0, seed=0)


def test_select_k_and_coherence():
    dtm = two_theme_dtm(8)
    table = select_k(dtm, [2, 3], seed=0, base_config=TopicConfig(k=2, seed=0, max_iter=20))
    assert list(table['K']) == [2, 3]
    assert np.isfinite(table['heldout_perplexity']).all()
    model = fit(dtm)
    assert len(model.coherence_umass(dtm, n=5)) == 2
