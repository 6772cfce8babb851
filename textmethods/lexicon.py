import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Set, Tuple, Union

import pandas as pd

from .tokenizer import ensure_nltk_resource

logger = logging.getLogger(__name__)

POSITIVE = 'positive'
NEGATIVE = 'negative'


class Lexicon(Mapping):
    """Read-only token -> categories table.

    A token may carry several categories (NRC-style emotion lexicons list a
    word under e.g. ``negative`` and ``fear``); only ``positive`` and
    ``negative`` take part in scoring.
    """

    def __init__(self, entries: Mapping, name: str = 'lexicon'):
        self.name = name
        self._entries = MappingProxyType({w: frozenset(cats) for w, cats in entries.items()})

    def __getitem__(self, token) -> FrozenSet[str]:
        return self._entries[token]

    def __iter__(self):
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f'Lexicon({self.name!r}, {len(self)} entries)'

    def __reduce__(self):
        return (Lexicon, ({w: set(c) for w, c in self._entries.items()}, self.name))

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, str]], name: str = 'lexicon') -> 'Lexicon':
        entries: Dict[str, Set[str]] = {}
        for word, category in pairs:
            if not isinstance(word, str) or not isinstance(category, str):
                continue
            word = word.strip()
            category = category.strip().lower()
            if not word or not category:
                continue
            entries.setdefault(word, set()).add(category)
        return cls(entries, name=name)

    @classmethod
    def from_frame(cls, df: pd.DataFrame, word_col: str = 'word', sentiment_col: str = 'sentiment',
                   name: str = 'lexicon') -> 'Lexicon':
        for col in (word_col, sentiment_col):
            if col not in df.columns:
                raise ValueError(f'lexicon table is missing column {col!r}')
        return cls.from_pairs(zip(df[word_col], df[sentiment_col]), name=name)

    @property
    def categories(self) -> Set[str]:
        out = set()
        for cats in self._entries.values():
            out |= cats
        return out

    def words(self, category: str) -> FrozenSet[str]:
        return frozenset(w for w, cats in self._entries.items() if category in cats)

    def lowercased(self) -> 'Lexicon':
        merged: Dict[str, Set[str]] = {}
        for w, cats in self._entries.items():
            merged.setdefault(w.lower(), set()).update(cats)
        return Lexicon(merged, name=self.name)

    def to_frame(self) -> pd.DataFrame:
        rows = [(w, c) for w, cats in self._entries.items() for c in sorted(cats)]
        return pd.DataFrame(rows, columns=['word', 'sentiment'])


def load_lexicon(source: Union[str, pd.DataFrame], word_col: str = 'word', sentiment_col: str = 'sentiment',
                 name: str = None) -> Lexicon:
    """Load a word/category table from a CSV path or a DataFrame."""
    if isinstance(source, pd.DataFrame):
        df = source
        name = name or 'lexicon'
    else:
        df = pd.read_csv(source, dtype=str, keep_default_na=False)
        name = name or str(source)
    lex = Lexicon.from_frame(df, word_col=word_col, sentiment_col=sentiment_col, name=name)
    extra = lex.categories - {POSITIVE, NEGATIVE}
    if extra:
        logger.info('Lexicon %s: ignoring %d non-polarity categories for scoring (%s)',
                    name, len(extra), ', '.join(sorted(extra)))
    if not (lex.words(POSITIVE) or lex.words(NEGATIVE)):
        logger.warning('Lexicon %s has no positive/negative entries', name)
    return lex


def bing_lexicon() -> Lexicon:
    """Bing Liu's opinion lexicon as distributed with NLTK."""
    ensure_nltk_resource('corpora/opinion_lexicon', 'opinion_lexicon')
    from nltk.corpus import opinion_lexicon
    pairs = [(w, POSITIVE) for w in opinion_lexicon.positive()]
    pairs += [(w, NEGATIVE) for w in opinion_lexicon.negative()]
    return Lexicon.from_pairs(pairs, name='bing')
