import itertools
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd
from scipy import stats

logger = logging.getLogger(__name__)

# Every statistic reports the documents it was computed over:
#   full          all documents in the series
#   scored        documents with a non-missing value
#   intersection  documents non-missing in every compared series
FULL = 'full'
SCORED = 'scored'
INTERSECTION = 'intersection'


def _as_float(values: pd.Series) -> pd.Series:
    arr = pd.array(values, dtype='Float64').to_numpy(dtype=float, na_value=np.nan)
    return pd.Series(arr, index=values.index, name=values.name)


def _subset_name(values: pd.Series) -> str:
    return FULL if values.notna().all() else SCORED


@dataclass(frozen=True)
class Coverage:
    n_scored: int
    n_total: int
    fraction: float
    scored_ids: Tuple[Any, ...]
    subset: str = FULL

    def __str__(self) -> str:
        return f'{self.n_scored} of {self.n_total} documents scored ({self.fraction:.0%})'


def coverage(values: pd.Series) -> Coverage:
    mask = values.notna()
    n_total = len(values)
    n_scored = int(mask.sum())
    frac = n_scored / n_total if n_total else float('nan')
    return Coverage(n_scored, n_total, frac, tuple(values.index[mask]))


def intersect(*series: pd.Series) -> pd.Index:
    """Ids with a non-missing value in every series, in the order of the first one."""
    if not series:
        return pd.Index([])
    common = series[0].index[series[0].notna()]
    for s in series[1:]:
        common = common[common.isin(s.index[s.notna()])]
    return common


@dataclass(frozen=True)
class CorrelationResult:
    r: float
    p_value: float
    n: int
    doc_ids: Tuple[Any, ...]
    subset: str = INTERSECTION


def correlate(a: pd.Series, b: pd.Series) -> CorrelationResult:
    """Pearson correlation over the ids scored in both series."""
    ids = intersect(a, b)
    x = _as_float(a.loc[ids]).to_numpy()
    y = _as_float(b.loc[ids]).to_numpy()
    n = len(ids)
    if n < 2 or np.ptp(x) == 0 or np.ptp(y) == 0:
        logger.warning('Correlation undefined over %d shared documents', n)
        return CorrelationResult(float('nan'), float('nan'), n, tuple(ids))
    r, p = stats.pearsonr(x, y)
    r = float(r)
    if np.array_equal(x, y):
        # identical series; avoid round-off below 1
        r = 1.0
    return CorrelationResult(r, float(p), n, tuple(ids))


@dataclass(frozen=True)
class GroupSummary:
    table: pd.DataFrame
    n: int
    doc_ids: Tuple[Any, ...]
    subset: str


def _align(values: pd.Series, labels: pd.Series) -> Tuple[pd.Series, pd.Series, str]:
    values = values.reindex(labels.index.intersection(values.index, sort=False))
    subset = _subset_name(values)
    values = _as_float(values.dropna())
    return values, labels.loc[values.index], subset


def group_summary(values: pd.Series, labels: pd.Series) -> GroupSummary:
    """Count, mean and median of ``values`` split by outcome label."""
    vals, labs, subset = _align(values, labels)
    table = vals.groupby(labs.rename('label')).agg(['count', 'mean', 'median'])
    return GroupSummary(table, len(vals), tuple(vals.index), subset)


@dataclass(frozen=True)
class MeanDifference:
    mean_positive: float
    mean_negative: float
    difference: float
    t_stat: float
    p_value: float
    n: int
    doc_ids: Tuple[Any, ...]
    subset: str


def difference_in_means(values: pd.Series, labels: pd.Series, positive_label: int = 1) -> MeanDifference:
    """Welch two-sample t-test of mean(label == positive) - mean(label != positive)."""
    vals, labs, subset = _align(values, labels)
    pos = vals[labs == positive_label].to_numpy()
    neg = vals[labs != positive_label].to_numpy()
    m_pos = float(pos.mean()) if len(pos) else float('nan')
    m_neg = float(neg.mean()) if len(neg) else float('nan')
    if len(pos) < 2 or len(neg) < 2:
        t, p = float('nan'), float('nan')
    else:
        res = stats.ttest_ind(pos, neg, equal_var=False)
        t, p = float(res.statistic), float(res.pvalue)
    return MeanDifference(m_pos, m_neg, m_pos - m_neg, t, p, len(vals), tuple(vals.index), subset)


def compare_scores(series_by_name: Dict[str, pd.Series], labels: Optional[pd.Series] = None,
                   positive_label: int = 1) -> pd.DataFrame:
    """Pairwise correlations between score series, one row per pair.

    With ``labels`` the coverage and label split of each series are added as
    rows with an empty ``other`` column.
    """
    rows = []
    for name, s in series_by_name.items():
        cov = coverage(s)
        row = {'series': name, 'other': None, 'statistic': 'coverage', 'value': cov.fraction,
               'n': cov.n_scored, 'p_value': np.nan, 'subset': cov.subset}
        rows.append(row)
        if labels is not None:
            diff = difference_in_means(s, labels, positive_label)
            rows.append({'series': name, 'other': None, 'statistic': 'mean_difference', 'value': diff.difference,
                         'n': diff.n, 'p_value': diff.p_value, 'subset': diff.subset})
    for (na, a), (nb, b) in itertools.combinations(series_by_name.items(), 2):
        res = correlate(a, b)
        rows.append({'series': na, 'other': nb, 'statistic': 'pearson_r', 'value': res.r,
                     'n': res.n, 'p_value': res.p_value, 'subset': res.subset})
    return pd.DataFrame(rows, columns=['series', 'other', 'statistic', 'value', 'n', 'p_value', 'subset'])
