import math

import numpy as np
import pandas as pd

from textmethods.evaluate import (FULL, INTERSECTION, SCORED, compare_scores, correlate, coverage,
                                  difference_in_means, group_summary, intersect)


def toy_scores():
    return pd.Series([1, -2, pd.NA], index=['A', 'B', 'C'], dtype='Int64', name='toy')


def toy_labels():
    return pd.Series([0, 1, 0], index=['A', 'B', 'C'], name='label')


def test_identical_series_correlate_exactly_one():
    s = pd.Series([1, -2, 3, pd.NA, 0], index=list('abcde'), dtype='Int64')
    res = correlate(s, s.copy())
    assert res.r == 1.0
    assert res.n == 4
    assert res.subset == INTERSECTION


def test_correlation_is_restricted_to_intersection():
    a = pd.Series([1.0, 2.0, np.nan, 4.0, 5.0], index=list('abcde'))
    b = pd.Series([2.0, np.nan, 6.0, 8.0, 11.0], index=list('abcde'))
    res = correlate(a, b)
    assert res.n == 3
    assert res.doc_ids == ('a', 'd', 'e')
    assert 0.9 < res.r <= 1.0
    assert list(intersect(a, b)) == ['a', 'd', 'e']


def test_correlation_undefined_for_constant_or_tiny_input():
    a = pd.Series([1.0, 1.0, 1.0], index=list('abc'))
    b = pd.Series([1.0, 2.0, 3.0], index=list('abc'))
    assert math.isnan(correlate(a, b).r)
    assert math.isnan(correlate(a.iloc[:1], b.iloc[:1]).r)


def test_coverage_counts_missing():
    cov = coverage(toy_scores())
    assert (cov.n_scored, cov.n_total) == (2, 3)
    assert cov.scored_ids == ('A', 'B')


def test_group_summary_uses_scored_documents():
    summary = group_summary(toy_scores(), toy_labels())
    assert summary.subset == SCORED
    assert summary.n == 2
    assert summary.table.loc[0, 'mean'] == 1.0
    assert summary.table.loc[1, 'median'] == -2.0
    assert summary.table.loc[0, 'count'] == 1


def test_difference_in_means():
    values = pd.Series([1.0, 2.0, 3.0, 4.0, 5.0, 6.0], index=range(6))
    labels = pd.Series([0, 0, 0, 1, 1, 1], index=range(6))
    res = difference_in_means(values, labels)
    assert res.subset == FULL
    assert res.mean_positive == 5.0
    assert res.mean_negative == 2.0
    assert res.difference == 3.0
    assert res.t_stat > 0
    assert res.p_value < 0.05
    flipped = difference_in_means(values, labels, positive_label=0)
    assert flipped.difference == -3.0


def test_difference_in_means_needs_two_per_group():
    res = difference_in_means(toy_scores(), toy_labels())
    assert res.n == 2
    assert math.isnan(res.p_value)
    assert res.difference == -3.0


def test_compare_scores_table():
    other = pd.Series([0.5, -0.9, 0.1], index=['A', 'B', 'C'], name='vader')
    table = compare_scores({'toy': toy_scores(), 'vader': other}, toy_labels())
    assert set(table['statistic']) == {'coverage', 'mean_difference', 'pearson_r'}
    pair = table[table['statistic'] == 'pearson_r'].iloc[0]
    assert (pair['series'], pair['other'], pair['n'], pair['subset']) == ('toy', 'vader', 2, INTERSECTION)
    cov = table[(table['statistic'] == 'coverage') & (table['series'] == 'vader')].iloc[0]
    assert cov['value'] == 1.0
