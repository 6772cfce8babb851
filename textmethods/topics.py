import dataclasses
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import joblib
import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy.special import logsumexp
from scipy.stats import rankdata
from sklearn.decomposition import LatentDirichletAllocation
from sklearn.model_selection import train_test_split

from .config import TopicConfig
from .dtm import DocumentTermMatrix
from .errors import EstimationError
from .vocab import Vocabulary

logger = logging.getLogger(__name__)

ESTIMATOR_ERRORS = (ValueError, np.linalg.LinAlgError, FloatingPointError)
WORD_METHODS = ('prob', 'frex', 'lift', 'score')
ARTIFACT_VERSION = 1


def lda_estimator(k: int, seed: int, config: TopicConfig) -> LatentDirichletAllocation:
    return LatentDirichletAllocation(n_components=k, max_iter=config.max_iter, random_state=seed,
                                     learning_method=config.learning_method,
                                     doc_topic_prior=config.doc_topic_prior,
                                     topic_word_prior=config.topic_word_prior)


def _normalize_rows(a: np.ndarray) -> np.ndarray:
    a = np.asarray(a, dtype=float)
    sums = a.sum(axis=1, keepdims=True)
    out = np.full_like(a, 1.0 / a.shape[1])
    np.divide(a, sums, out=out, where=sums > 0)
    return out


def _check_vocabulary(expected: Vocabulary, dtm: DocumentTermMatrix) -> None:
    if dtm.vocabulary.terms != expected.terms:
        raise ValueError('document-term matrix was built on a different vocabulary than the topic model')


@dataclass(frozen=True, eq=False)
class TopicCorrelation:
    cor: pd.DataFrame
    adjacency: pd.DataFrame
    threshold: float

    def edges(self) -> List[tuple]:
        k = self.cor.shape[0]
        return [(i, j, float(self.cor.iat[i, j]))
                for i in range(k) for j in range(i + 1, k) if self.adjacency.iat[i, j]]


class TopicModel:
    """Fitted topic model: per-document proportions and per-topic word weights.

    Topics are numbered 0..K-1. All queries are read-only.
    """

    def __init__(self, k: int, vocabulary: Vocabulary, estimator, theta: pd.DataFrame, seed: int,
                 word_counts: np.ndarray, covariates: Optional[pd.DataFrame] = None,
                 config: Optional[TopicConfig] = None):
        self.k = k
        self.vocabulary = vocabulary
        self.estimator = estimator
        self.theta = theta
        self.seed = seed
        self.word_counts = np.asarray(word_counts, dtype=float)
        self.covariates = covariates
        self.config = config

    @property
    def doc_ids(self) -> List:
        return list(self.theta.index)

    @property
    def beta(self) -> np.ndarray:
        return _normalize_rows(self.estimator.components_)

    def beta_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.beta, index=range(self.k), columns=list(self.vocabulary.terms))

    def transform(self, dtm: DocumentTermMatrix) -> pd.DataFrame:
        """Topic proportions for new documents built on the same vocabulary."""
        _check_vocabulary(self.vocabulary, dtm)
        try:
            theta = self.estimator.transform(dtm.matrix)
        except ESTIMATOR_ERRORS as e:
            raise EstimationError(f'topic inference failed: {e}') from e
        return pd.DataFrame(_normalize_rows(theta), index=list(dtm.doc_ids), columns=range(self.k))

    def word_weights(self, method: str = 'prob', frex_weight: float = 0.5) -> np.ndarray:
        """K x V weights used to rank words within each topic."""
        if method not in WORD_METHODS:
            raise ValueError(f'unknown method {method!r}, expected one of {WORD_METHODS}')
        beta = np.clip(self.beta, 1e-300, None)
        if method == 'prob':
            return beta
        logbeta = np.log(beta)
        if method == 'frex':
            V = logbeta.shape[1]
            excl = logbeta - logsumexp(logbeta, axis=0, keepdims=True)
            freq_score = rankdata(logbeta, axis=1) / V
            excl_score = rankdata(excl, axis=1) / V
            return 1.0 / (frex_weight / excl_score + (1 - frex_weight) / freq_score)
        if method == 'lift':
            freq = np.clip(self.word_counts / self.word_counts.sum(), 1e-300, None)
            return logbeta - np.log(freq)[None, :]
        # score
        return beta * (logbeta - logbeta.mean(axis=0, keepdims=True))

    def top_words(self, n: int = 10, method: str = 'prob') -> pd.DataFrame:
        w = self.word_weights(method)
        terms = self.vocabulary.terms
        rows = []
        for k in range(self.k):
            idx = np.argsort(-w[k], kind='stable')[:n]
            for rank, i in enumerate(idx):
                rows.append({'topic': k, 'rank': rank, 'term': terms[i], 'weight': float(w[k, i])})
        return pd.DataFrame(rows, columns=['topic', 'rank', 'term', 'weight'])

    def label_topics(self, n: int = 7) -> pd.DataFrame:
        """One row per topic, one column per ranking method, words comma-joined."""
        out = pd.DataFrame(index=pd.Index(range(self.k), name='topic'))
        for method in WORD_METHODS:
            tw = self.top_words(n, method)
            out[method] = tw.groupby('topic')['term'].apply(', '.join)
        return out

    def top_documents(self, topic: int, n: int = 3) -> List:
        """Ids of the ``n`` documents with the highest proportion of ``topic``."""
        if not 0 <= topic < self.k:
            raise ValueError(f'topic must be in [0, {self.k}), got {topic}')
        col = self.theta[topic]
        order = np.argsort(-col.to_numpy(), kind='stable')[:n]
        return [self.theta.index[i] for i in order]

    def topic_correlation(self, threshold: Optional[float] = None) -> TopicCorrelation:
        """Pearson correlation of topic proportions across documents.

        Off-diagonal pairs with |r| above ``threshold`` count as connected.
        """
        if threshold is None:
            threshold = self.config.corr_threshold if self.config is not None else 0.01
        cor = self.theta.corr()
        adj = np.abs(cor.to_numpy()) > threshold
        np.fill_diagonal(adj, False)
        return TopicCorrelation(cor, pd.DataFrame(adj, index=cor.index, columns=cor.columns), threshold)

    def estimate_effect(self, covariates: Optional[pd.DataFrame] = None) -> pd.DataFrame:
        """OLS of each topic's proportion on document covariates.

        Categorical columns are dummy-coded against their first level.
        """
        cov = covariates if covariates is not None else self.covariates
        if cov is None:
            raise ValueError('no covariates given and none stored with the model')
        cov = cov.reindex(self.theta.index)
        cov = cov.apply(lambda c: c if pd.api.types.is_numeric_dtype(c) else c.fillna('(missing)'))
        X = pd.get_dummies(cov, drop_first=True, dtype=float).astype(float)
        keep = X.notna().all(axis=1)
        X = sm.add_constant(X[keep], has_constant='add')
        rows = []
        for k in range(self.k):
            res = sm.OLS(self.theta.loc[keep, k].to_numpy(), X).fit()
            for var, coef, se, pval in zip(X.columns, res.params, res.bse, res.pvalues):
                rows.append({'topic': k, 'term': var, 'coef': float(coef), 'se': float(se), 'p_value': float(pval)})
        return pd.DataFrame(rows, columns=['topic', 'term', 'coef', 'se', 'p_value'])

    def coherence_umass(self, dtm: DocumentTermMatrix, n: int = 10) -> pd.Series:
        """UMass coherence of each topic's top ``n`` words over ``dtm``."""
        _check_vocabulary(self.vocabulary, dtm)
        B = (dtm.matrix > 0).astype(np.int64).tocsc()
        beta = self.beta
        out = []
        for k in range(self.k):
            idxs = np.argsort(-beta[k], kind='stable')[:n]
            sub = B[:, idxs].toarray()
            co = sub.T @ sub
            score = 0.0
            count = 0
            for i in range(len(idxs)):
                for j in range(i + 1, len(idxs)):
                    score += np.log((co[i, j] + 1.0) / (co[j, j] + 1e-9))
                    count += 1
            out.append(score / max(1, count))
        return pd.Series(out, index=range(self.k), name='coherence_umass')

    def save(self, path: str) -> str:
        joblib.dump({
            'version': ARTIFACT_VERSION,
            'k': self.k,
            'seed': self.seed,
            'vocabulary': self.vocabulary,
            'estimator': self.estimator,
            'theta': self.theta,
            'word_counts': self.word_counts,
            'covariates': self.covariates,
            'config': self.config,
        }, path)
        logger.info('Saved topic model (K=%d, seed=%d) to %s', self.k, self.seed, path)
        return path

    @classmethod
    def load(cls, path: str) -> 'TopicModel':
        state = joblib.load(path)
        if state.get('version') != ARTIFACT_VERSION:
            raise ValueError(f'{path}: unsupported topic model artifact version {state.get("version")!r}')
        return cls(state['k'], state['vocabulary'], state['estimator'], state['theta'], state['seed'],
                   state['word_counts'], state['covariates'], state['config'])


class TopicModelAdapter:
    """Fits a topic model on a document-term matrix.

    ``estimator_factory(k, seed, config)`` must return an object with
    ``fit``/``transform`` and a K x V ``components_`` array; the default is
    scikit-learn's LatentDirichletAllocation.
    """

    def __init__(self, estimator_factory: Optional[Callable] = None):
        self.estimator_factory = estimator_factory or lda_estimator

    def fit(self, dtm: DocumentTermMatrix, config: TopicConfig,
            covariates: Optional[pd.DataFrame] = None) -> TopicModel:
        if len(dtm) == 0:
            raise ValueError('cannot fit a topic model on an empty document-term matrix')
        est = self.estimator_factory(config.k, config.seed, config)
        logger.info('Fitting %s with K=%d on %d x %d matrix (seed=%d)',
                    type(est).__name__, config.k, dtm.shape[0], dtm.shape[1], config.seed)
        try:
            est.fit(dtm.matrix)
            theta = est.transform(dtm.matrix)
        except ESTIMATOR_ERRORS as e:
            raise EstimationError(f'topic model fit failed (K={config.k}, seed={config.seed}): {e}') from e
        theta = np.asarray(theta, dtype=float)
        if theta.shape != (len(dtm), config.k) or not np.all(np.isfinite(theta)):
            raise EstimationError(f'topic model returned invalid proportions of shape {theta.shape}')
        theta_df = pd.DataFrame(_normalize_rows(theta), index=list(dtm.doc_ids), columns=range(config.k))
        if covariates is not None:
            covariates = covariates.reindex(theta_df.index)
        return TopicModel(config.k, dtm.vocabulary, est, theta_df, config.seed,
                          dtm.term_counts().to_numpy(), covariates, config)


def select_k(dtm: DocumentTermMatrix, grid: Sequence[int], seed: int, holdout: float = 0.2,
             base_config: Optional[TopicConfig] = None, adapter: Optional[TopicModelAdapter] = None) -> pd.DataFrame:
    """Fit one model per K on a seeded document split.

    Reports held-out perplexity (lower is better) and mean UMass coherence on
    the training documents.
    """
    adapter = adapter or TopicModelAdapter()
    train_ids, test_ids = train_test_split(list(dtm.doc_ids), test_size=holdout, random_state=seed)
    train, test = dtm.subset(train_ids), dtm.subset(test_ids)
    results = []
    for k in grid:
        cfg = dataclasses.replace(base_config, k=k, seed=seed) if base_config else TopicConfig(k=k, seed=seed)
        model = adapter.fit(train, cfg)
        try:
            perplexity = float(model.estimator.perplexity(test.matrix))
        except AttributeError:
            perplexity = float('nan')
        coherence = float(model.coherence_umass(train).mean())
        logger.info('K=%d: held-out perplexity %.2f, coherence %.3f', k, perplexity, coherence)
        results.append({'K': k, 'heldout_perplexity': perplexity, 'coherence_umass': coherence})
    return pd.DataFrame(results, columns=['K', 'heldout_perplexity', 'coherence_umass'])
