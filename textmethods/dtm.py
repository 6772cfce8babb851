import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Tuple

import numpy as np
import pandas as pd
import scipy.sparse as sp

from .vocab import Vocabulary

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class DocumentTermMatrix:
    """Sparse document x term counts; rows follow ``doc_ids``, columns follow the vocabulary."""
    doc_ids: Tuple[Any, ...]
    vocabulary: Vocabulary
    matrix: sp.csr_matrix
    _row_pos: Dict[Any, int] = field(default=None, init=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'doc_ids', tuple(self.doc_ids))
        matrix = sp.csr_matrix(self.matrix)
        if matrix.shape != (len(self.doc_ids), len(self.vocabulary)):
            raise ValueError(f'matrix shape {matrix.shape} does not match '
                             f'{len(self.doc_ids)} documents x {len(self.vocabulary)} terms')
        object.__setattr__(self, 'matrix', matrix)
        object.__setattr__(self, '_row_pos', {d: i for i, d in enumerate(self.doc_ids)})

    @property
    def shape(self) -> Tuple[int, int]:
        return self.matrix.shape

    def __len__(self) -> int:
        return len(self.doc_ids)

    def __contains__(self, doc_id) -> bool:
        return doc_id in self._row_pos

    def row(self, doc_id) -> Dict[int, int]:
        i = self._row_pos[doc_id]
        r = self.matrix[i:i + 1, :]
        return {int(j): int(c) for j, c in zip(r.indices, r.data)}

    def subset(self, ids: Iterable) -> 'DocumentTermMatrix':
        ids = list(ids)
        missing = [d for d in ids if d not in self._row_pos]
        if missing:
            raise KeyError(f'{len(missing)} document ids not in matrix, e.g. {missing[0]!r}')
        pos = [self._row_pos[d] for d in ids]
        return DocumentTermMatrix(tuple(ids), self.vocabulary, self.matrix[pos, :])

    def row_sums(self) -> pd.Series:
        return pd.Series(np.asarray(self.matrix.sum(axis=1)).ravel(), index=list(self.doc_ids), name='n_terms')

    def term_counts(self) -> pd.Series:
        return pd.Series(np.asarray(self.matrix.sum(axis=0)).ravel(), index=list(self.vocabulary.terms), name='count')

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.matrix.toarray(), index=list(self.doc_ids), columns=list(self.vocabulary.terms))


def build_dtm(tokenized: Mapping[Any, Iterable[str]], vocabulary: Vocabulary,
              exclude_ids: Iterable = ()) -> DocumentTermMatrix:
    """Count in-vocabulary tokens per document.

    Documents the vocabulary dropped (and any in ``exclude_ids``) get no row;
    out-of-vocabulary tokens are ignored.
    """
    index = vocabulary.index
    skip = set(vocabulary.dropped_ids) | set(exclude_ids)
    rows, cols, vals = [], [], []
    doc_ids = []
    for doc_id, stream in tokenized.items():
        if doc_id in skip:
            continue
        counts = Counter(index[t] for t in stream if t in index)
        r = len(doc_ids)
        doc_ids.append(doc_id)
        for j, c in counts.items():
            rows.append(r)
            cols.append(j)
            vals.append(c)
    matrix = sp.csr_matrix((np.asarray(vals, dtype=np.int64),
                            (np.asarray(rows, dtype=np.int64), np.asarray(cols, dtype=np.int64))),
                           shape=(len(doc_ids), len(vocabulary)), dtype=np.int64)
    logger.info('DTM: %d documents x %d terms, %d non-zero cells', matrix.shape[0], matrix.shape[1], matrix.nnz)
    return DocumentTermMatrix(tuple(doc_ids), vocabulary, matrix)
