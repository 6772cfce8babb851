import logging
import warnings
from collections import Counter
from dataclasses import dataclass
from typing import Any, List, Mapping, Tuple

import pandas as pd

from .errors import UnscoredDocumentWarning
from .evaluate import Coverage, coverage
from .lexicon import NEGATIVE, POSITIVE, Lexicon
from .tokenizer import TokenizedCorpus, ensure_nltk_resource

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class SentimentScores:
    """Per-document dictionary scores.

    ``table`` is indexed by doc_id with columns n_positive, n_negative,
    n_matched and score; score is <NA> for documents without any match.
    ``matches`` lists every matched token occurrence.
    """
    lexicon_name: str
    table: pd.DataFrame
    matches: pd.DataFrame

    @property
    def score(self) -> pd.Series:
        return self.table['score'].rename(self.lexicon_name)

    @property
    def scored_ids(self) -> List[Any]:
        return list(self.table.index[self.table['score'].notna()])

    @property
    def unscored_ids(self) -> List[Any]:
        return list(self.table.index[self.table['score'].isna()])

    def coverage(self) -> Coverage:
        return coverage(self.table['score'])


class DictionaryScorer:
    def __init__(self, lexicon: Lexicon, case_sensitive: bool = False):
        self.name = lexicon.name
        self.case_sensitive = case_sensitive
        self.lexicon = lexicon if case_sensitive else lexicon.lowercased()

    def _polarities(self, token: str) -> Tuple[str, ...]:
        key = token if self.case_sensitive else token.lower()
        cats = self.lexicon.get(key)
        if not cats:
            return ()
        return tuple(c for c in (POSITIVE, NEGATIVE) if c in cats)

    def score(self, tokenized: TokenizedCorpus) -> SentimentScores:
        """Positive minus negative matches per document; no matches means no score."""
        n_pos: Counter = Counter()
        n_neg: Counter = Counter()
        rows = []
        for tok in tokenized.occurrences():
            for polarity in self._polarities(tok.text):
                rows.append((tok.doc_id, tok.position, tok.text, polarity))
                if polarity == POSITIVE:
                    n_pos[tok.doc_id] += 1
                else:
                    n_neg[tok.doc_id] += 1
        ids = tokenized.ids
        table = pd.DataFrame({
            'n_positive': [n_pos[d] for d in ids],
            'n_negative': [n_neg[d] for d in ids],
        }, index=pd.Index(ids, name='doc_id'), dtype='int64')
        table['n_matched'] = table['n_positive'] + table['n_negative']
        score = (table['n_positive'] - table['n_negative']).astype('Int64')
        table['score'] = score.mask(table['n_matched'] == 0)
        matches = pd.DataFrame(rows, columns=['doc_id', 'position', 'token', 'sentiment'])

        n_unscored = int(table['score'].isna().sum())
        if n_unscored:
            warnings.warn(f'{self.name}: {n_unscored} of {len(table)} documents have no lexicon match '
                          f'and carry no score', UnscoredDocumentWarning, stacklevel=2)
        logger.info('%s: scored %d of %d documents', self.name, len(table) - n_unscored, len(table))
        return SentimentScores(self.name, table, matches)


def score_all(tokenized: TokenizedCorpus, lexicons: Mapping[str, Lexicon],
              case_sensitive: bool = False) -> dict:
    """Apply several lexicons independently to one tokenization."""
    out = {}
    for name, lex in lexicons.items():
        out[name] = DictionaryScorer(Lexicon(lex, name=name), case_sensitive=case_sensitive).score(tokenized)
    return out


def vader_scores(documents) -> pd.Series:
    """NLTK VADER compound polarity in [-1, 1] for each document."""
    ensure_nltk_resource('sentiment/vader_lexicon.zip', 'vader_lexicon')
    from nltk.sentiment.vader import SentimentIntensityAnalyzer
    sid = SentimentIntensityAnalyzer()
    ids = []
    vals = []
    for doc in documents:
        ids.append(doc.doc_id)
        vals.append(sid.polarity_scores(doc.text)['compound'])
    return pd.Series(vals, index=pd.Index(ids, name='doc_id'), name='vader', dtype=float)
