import logging
from collections import Counter
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, FrozenSet, Iterable, Mapping, Optional, Tuple

import pandas as pd

from .errors import EmptyVocabularyError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Vocabulary:
    """Frozen term -> column index mapping for one corpus snapshot.

    Indices are 0..|V|-1 in sorted term order, so they do not depend on the
    order in which documents were seen.
    """
    terms: Tuple[str, ...]
    doc_freq: Tuple[int, ...] = ()
    dropped_ids: FrozenSet[Any] = frozenset()
    min_df: int = 1
    max_df: Optional[int] = None
    index: Mapping[str, int] = field(default=None, init=False, compare=False, repr=False)

    def __post_init__(self):
        terms = tuple(self.terms)
        if len(set(terms)) != len(terms):
            raise ValueError('vocabulary terms must be unique')
        if self.doc_freq and len(self.doc_freq) != len(terms):
            raise ValueError('doc_freq must align with terms')
        object.__setattr__(self, 'terms', terms)
        object.__setattr__(self, 'doc_freq', tuple(self.doc_freq))
        object.__setattr__(self, 'dropped_ids', frozenset(self.dropped_ids))
        object.__setattr__(self, 'index', MappingProxyType({t: i for i, t in enumerate(terms)}))

    def __reduce__(self):
        # the read-only index is rebuilt on load
        return (Vocabulary, (self.terms, self.doc_freq, self.dropped_ids, self.min_df, self.max_df))

    @classmethod
    def from_terms(cls, terms: Iterable[str]) -> 'Vocabulary':
        return cls(tuple(sorted(set(terms))))

    def __len__(self) -> int:
        return len(self.terms)

    def __contains__(self, term) -> bool:
        return term in self.index

    def __iter__(self):
        return iter(self.terms)

    def doc_freq_series(self) -> pd.Series:
        return pd.Series(self.doc_freq, index=list(self.terms), name='doc_freq', dtype='int64')


def document_frequencies(tokenized: Mapping[Any, Iterable[str]]) -> Counter:
    df = Counter()
    for stream in tokenized.values():
        df.update(set(stream))
    return df


def build_vocabulary(tokenized: Mapping[Any, Iterable[str]], min_df: int = 1,
                     max_df: Optional[int] = None) -> Vocabulary:
    """Collect distinct tokens and prune by document frequency.

    Terms are kept when ``min_df <= df <= max_df`` (absolute document counts).
    Documents left without any kept token are reported in ``dropped_ids``.
    Raises EmptyVocabularyError if nothing survives.
    """
    if min_df < 1:
        raise ValueError(f'min_df must be >= 1, got {min_df}')
    if max_df is not None and max_df < min_df:
        raise ValueError(f'max_df ({max_df}) must be >= min_df ({min_df})')
    df = document_frequencies(tokenized)
    kept = sorted(t for t, c in df.items() if c >= min_df and (max_df is None or c <= max_df))
    if not kept:
        raise EmptyVocabularyError(
            f'no terms left after pruning {len(df)} candidates with min_df={min_df}, max_df={max_df}')
    kept_set = set(kept)
    dropped = frozenset(d for d, stream in tokenized.items() if not any(t in kept_set for t in stream))
    logger.info('Vocabulary: %d of %d terms kept, %d documents dropped', len(kept), len(df), len(dropped))
    return Vocabulary(
        terms=tuple(kept),
        doc_freq=tuple(df[t] for t in kept),
        dropped_ids=dropped,
        min_df=min_df,
        max_df=max_df,
    )
