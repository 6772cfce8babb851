import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from .errors import EncodingError
from .tokenizer import ensure_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Document:
    doc_id: Any
    text: str
    label: int
    keyword: Optional[str] = None
    location: Optional[str] = None


@dataclass(frozen=True)
class Corpus:
    documents: Tuple[Document, ...]
    # (doc_id, reason) for rows rejected while loading
    skipped: Tuple[Tuple[Any, str], ...] = ()
    _by_id: Dict[Any, Document] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'documents', tuple(self.documents))
        object.__setattr__(self, 'skipped', tuple(self.skipped))
        by_id = {}
        for doc in self.documents:
            if doc.doc_id in by_id:
                raise ValueError(f'duplicate document id {doc.doc_id!r}')
            by_id[doc.doc_id] = doc
        object.__setattr__(self, '_by_id', by_id)

    def __iter__(self):
        return iter(self.documents)

    def __len__(self) -> int:
        return len(self.documents)

    def __contains__(self, doc_id) -> bool:
        return doc_id in self._by_id

    @property
    def ids(self) -> List[Any]:
        return [d.doc_id for d in self.documents]

    @property
    def labels(self) -> pd.Series:
        return pd.Series([d.label for d in self.documents], index=self.ids, name='label', dtype='int64')

    @property
    def texts(self) -> pd.Series:
        return pd.Series([d.text for d in self.documents], index=self.ids, name='text', dtype=object)

    def get(self, doc_id) -> Document:
        return self._by_id[doc_id]

    def subset(self, ids: Iterable) -> 'Corpus':
        wanted = set(ids)
        return Corpus(tuple(d for d in self.documents if d.doc_id in wanted), self.skipped)

    def covariates(self, columns: Sequence[str] = ('keyword',)) -> pd.DataFrame:
        return self.to_frame().set_index('doc_id')[list(columns)]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([
            {'doc_id': d.doc_id, 'text': d.text, 'label': d.label, 'keyword': d.keyword, 'location': d.location}
            for d in self.documents
        ])

    @classmethod
    def from_frame(cls, df: pd.DataFrame, id_col: str = 'id', text_col: str = 'text',
                   label_col: str = 'target', keyword_col: str = 'keyword',
                   location_col: str = 'location') -> 'Corpus':
        for col in (id_col, text_col, label_col):
            if col not in df.columns:
                raise ValueError(f'missing required column {col!r}')
        docs = []
        skipped = []
        for _, row in df.iterrows():
            doc_id = row[id_col]
            try:
                text = ensure_text(row[text_col], doc_id)
            except EncodingError as e:
                logger.warning('Skipping document %r: %s', doc_id, e)
                skipped.append((doc_id, str(e)))
                continue
            label = row[label_col]
            if pd.isna(label) or int(label) not in (0, 1) or float(label) != int(label):
                raise ValueError(f'document {doc_id!r}: label must be 0 or 1, got {label!r}')
            docs.append(Document(
                doc_id=doc_id,
                text=text,
                label=int(label),
                keyword=_optional_str(row.get(keyword_col)),
                location=_optional_str(row.get(location_col)),
            ))
        logger.info('Loaded %d documents, skipped %d', len(docs), len(skipped))
        return cls(tuple(docs), tuple(skipped))


def _optional_str(val) -> Optional[str]:
    if val is None or (isinstance(val, float) and pd.isna(val)):
        return None
    return str(val)


def load_corpus(path: str, **columns) -> Corpus:
    """Read the labeled-message CSV (id, keyword, location, text, target).

    Undecodable bytes are kept as surrogates so the row can be reported in the
    skip list instead of aborting the whole read.
    """
    text_col = columns.get('text_col', 'text')
    df = pd.read_csv(path, dtype={text_col: object}, encoding='utf-8', encoding_errors='surrogateescape')
    return Corpus.from_frame(df, **columns)
