import logging
import warnings
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.optimize import brentq
from scipy.special import expit
from sklearn.linear_model import LogisticRegression
from sklearn.model_selection import StratifiedKFold, train_test_split

from .config import ClassifierConfig
from .dtm import DocumentTermMatrix
from .errors import DegenerateClassifierWarning, EstimationError
from .vocab import Vocabulary

logger = logging.getLogger(__name__)

ESTIMATOR_ERRORS = (ValueError, np.linalg.LinAlgError, FloatingPointError)
INTERCEPT = '(Intercept)'


def l1_logistic_estimator(C: float, seed: int, config: ClassifierConfig) -> LogisticRegression:
    # saga leaves the intercept unpenalized
    return LogisticRegression(penalty='l1', solver='saga', C=C, max_iter=config.max_iter,
                              tol=config.tol, random_state=seed)


def lambda_to_C(lam: float, n_samples: int) -> float:
    """glmnet minimizes -loglik/n + lambda*|w|_1; scikit-learn minimizes C*(-loglik) + |w|_1."""
    return 1.0 / (n_samples * lam)


def _aligned_labels(labels: pd.Series, doc_ids: Sequence) -> np.ndarray:
    y = labels.reindex(list(doc_ids))
    if y.isna().any():
        missing = list(y.index[y.isna()])
        raise ValueError(f'{len(missing)} documents have no label, e.g. {missing[0]!r}')
    return y.to_numpy()


def _binary_target(labels: pd.Series, doc_ids: Sequence, positive_label: int) -> np.ndarray:
    return (_aligned_labels(labels, doc_ids) == positive_label).astype(int)


def refit_intercept(X, y: np.ndarray, coef: np.ndarray, fallback: float) -> float:
    """Unpenalized maximum-likelihood intercept for fixed coefficients.

    Solves sum(y - expit(X @ coef + b)) = 0. With all-zero coefficients this
    is logit of the base rate. A one-class target has no root and keeps
    ``fallback``.
    """
    if not 0 < np.mean(y) < 1:
        return fallback
    eta = np.asarray(X @ coef, dtype=float).ravel()
    lo = -50.0 - eta.max()
    hi = 50.0 - eta.min()
    return float(brentq(lambda b: float(np.sum(y - expit(eta + b))), lo, hi))


def split_ids(ids: Sequence, labels: pd.Series, test_size: float, seed: int) -> Tuple[List, List]:
    """Seeded train/test split of document ids, stratified when every class has two members."""
    ids = list(ids)
    y = labels.reindex(ids).to_numpy()
    counts = pd.Series(y).value_counts()
    stratify = y if len(counts) > 1 and counts.min() >= 2 else None
    train, test = train_test_split(ids, test_size=test_size, random_state=seed, stratify=stratify)
    return list(train), list(test)


class ClassifierPath:
    """Coefficients and intercepts of a logistic model along a path of lambdas."""

    def __init__(self, lambdas: Sequence[float], coefs: np.ndarray, intercepts: np.ndarray,
                 vocabulary: Vocabulary, positive_label: int, seed: int, n_train: int):
        self.lambdas = tuple(float(lam) for lam in lambdas)
        self.coefs = np.asarray(coefs, dtype=float)
        self.intercepts = np.asarray(intercepts, dtype=float)
        self.vocabulary = vocabulary
        self.positive_label = positive_label
        self.negative_label = 1 - positive_label
        self.seed = seed
        self.n_train = n_train
        self.degenerate_lambdas = tuple(lam for lam, c in zip(self.lambdas, self.coefs) if not np.any(c))

    def _pos(self, lam: float) -> int:
        for i, x in enumerate(self.lambdas):
            if np.isclose(x, lam, rtol=1e-9, atol=0.0):
                return i
        raise KeyError(f'lambda {lam} is not on the path {self.lambdas}')

    def _check(self, dtm: DocumentTermMatrix) -> None:
        if dtm.vocabulary.terms != self.vocabulary.terms:
            raise ValueError('document-term matrix was built on a different vocabulary than the classifier')

    def is_degenerate(self, lam: float) -> bool:
        return not np.any(self.coefs[self._pos(lam)])

    def coef_frame(self) -> pd.DataFrame:
        df = pd.DataFrame(self.coefs, index=pd.Index(self.lambdas, name='lambda'),
                          columns=list(self.vocabulary.terms))
        df.insert(0, INTERCEPT, self.intercepts)
        return df

    def decision_function(self, dtm: DocumentTermMatrix, lam: float) -> np.ndarray:
        self._check(dtm)
        i = self._pos(lam)
        return np.asarray(dtm.matrix @ self.coefs[i]).ravel() + self.intercepts[i]

    def predict_proba(self, dtm: DocumentTermMatrix, lam: float) -> pd.Series:
        """Probability of the positive label for each document."""
        return pd.Series(expit(self.decision_function(dtm, lam)), index=list(dtm.doc_ids), name='probability')

    def predict(self, dtm: DocumentTermMatrix, lam: float) -> pd.Series:
        p = self.predict_proba(dtm, lam)
        return pd.Series(np.where(p.to_numpy() > 0.5, self.positive_label, self.negative_label),
                         index=p.index, name='predicted')

    def evaluate(self, dtm: DocumentTermMatrix, labels: pd.Series) -> pd.DataFrame:
        """Accuracy and fraction predicted positive for each lambda.

        The majority baseline and the degenerate flag tell constant predictors
        apart from real skill.
        """
        y = _aligned_labels(labels, dtm.doc_ids)
        share_pos = float(np.mean(y == self.positive_label)) if len(y) else float('nan')
        baseline = max(share_pos, 1 - share_pos)
        rows = []
        for lam in self.lambdas:
            pred = self.predict(dtm, lam).to_numpy()
            i = self._pos(lam)
            rows.append({
                'lambda': lam,
                'accuracy': float(np.mean(pred == y)) if len(y) else float('nan'),
                'fraction_positive': float(np.mean(pred == self.positive_label)) if len(y) else float('nan'),
                'majority_baseline': baseline,
                'n_nonzero': int(np.count_nonzero(self.coefs[i])),
                'degenerate': lam in self.degenerate_lambdas,
                'n': len(y),
            })
        return pd.DataFrame(rows)

    def top_terms(self, lam: float, n: int = 10) -> pd.DataFrame:
        """Largest |coefficient| terms at ``lam``; the intercept is listed first."""
        i = self._pos(lam)
        coef = self.coefs[i]
        order = np.argsort(-np.abs(coef), kind='stable')[:n]
        rows = [{'term': INTERCEPT, 'coefficient': float(self.intercepts[i]), 'is_intercept': True}]
        rows += [{'term': self.vocabulary.terms[j], 'coefficient': float(coef[j]), 'is_intercept': False}
                 for j in order if coef[j] != 0]
        return pd.DataFrame(rows, columns=['term', 'coefficient', 'is_intercept'])


class ClassifierAdapter:
    """Fits an L1-regularized logistic model at every lambda of a path.

    ``estimator_factory(C, seed, config)`` must return a scikit-learn style
    binary classifier exposing ``coef_`` and ``intercept_`` after ``fit``.
    """

    def __init__(self, estimator_factory: Optional[Callable] = None):
        self.estimator_factory = estimator_factory or l1_logistic_estimator

    def fit_path(self, dtm: DocumentTermMatrix, labels: pd.Series, config: ClassifierConfig) -> ClassifierPath:
        y = _binary_target(labels, dtm.doc_ids, config.positive_label)
        n = len(y)
        if n == 0:
            raise ValueError('cannot fit a classifier on an empty document-term matrix')
        X = dtm.matrix.astype(float)
        coefs = []
        intercepts = []
        for lam in config.lambdas:
            est = self.estimator_factory(lambda_to_C(lam, n), config.seed, config)
            try:
                est.fit(X, y)
            except ESTIMATOR_ERRORS as e:
                raise EstimationError(f'classifier fit failed at lambda={lam}: {e}') from e
            coef = np.asarray(est.coef_, dtype=float).ravel()
            if not np.all(np.isfinite(coef)):
                raise EstimationError(f'classifier produced non-finite coefficients at lambda={lam}')
            coefs.append(coef)
            # the solver scales the intercept with the penalty; solve it exactly
            intercepts.append(refit_intercept(X, y, coef, float(np.ravel(est.intercept_)[0])))
            logger.info('lambda=%g: %d non-zero coefficients', lam, np.count_nonzero(coef))
        path = ClassifierPath(config.lambdas, np.vstack(coefs), np.asarray(intercepts), dtm.vocabulary,
                              config.positive_label, config.seed, n)
        if path.degenerate_lambdas:
            warnings.warn(f'all coefficients are zero at lambda in {list(path.degenerate_lambdas)}; '
                          f'predictions there are constant', DegenerateClassifierWarning, stacklevel=2)
        return path


@dataclass(frozen=True, eq=False)
class CrossValidation:
    table: pd.DataFrame
    best_lambda: float
    folds: int
    seed: int


def cross_validate_path(dtm: DocumentTermMatrix, labels: pd.Series, config: ClassifierConfig,
                        folds: int = 5, adapter: Optional[ClassifierAdapter] = None) -> CrossValidation:
    """Seeded stratified K-fold accuracy for each lambda on the path."""
    adapter = adapter or ClassifierAdapter()
    ids = np.asarray(dtm.doc_ids, dtype=object)
    y = _binary_target(labels, dtm.doc_ids, config.positive_label)
    skf = StratifiedKFold(n_splits=folds, shuffle=True, random_state=config.seed)
    scores = {lam: [] for lam in config.lambdas}
    with warnings.catch_warnings():
        warnings.simplefilter('ignore', DegenerateClassifierWarning)
        for train_idx, test_idx in skf.split(np.zeros(len(y)), y):
            path = adapter.fit_path(dtm.subset(ids[train_idx]), labels, config)
            res = path.evaluate(dtm.subset(ids[test_idx]), labels)
            for lam, acc in zip(res['lambda'], res['accuracy']):
                scores[lam].append(acc)
    table = pd.DataFrame({
        'lambda': list(scores),
        'mean_accuracy': [float(np.mean(v)) for v in scores.values()],
        'std_accuracy': [float(np.std(v)) for v in scores.values()],
    })
    # ties go to the larger lambda (sparser model)
    best = table.sort_values(['mean_accuracy', 'lambda'], ascending=[False, False]).iloc[0]
    return CrossValidation(table, float(best['lambda']), folds, config.seed)
