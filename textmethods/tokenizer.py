import logging
import re
from collections.abc import Mapping
from functools import lru_cache
from typing import Callable, Container, Dict, FrozenSet, Iterable, Iterator, List, NamedTuple, Optional, Tuple

import pandas as pd
from nltk.stem import SnowballStemmer

from .config import TokenizerConfig, TokenizerMode
from .errors import EncodingError

logger = logging.getLogger(__name__)

# NLTK resources are fetched on first use, never at import

def ensure_nltk_resource(resource: str, package: str) -> None:
    import nltk
    try:
        nltk.data.find(resource)
    except LookupError:
        logger.info('Downloading NLTK resource %s', package)
        nltk.download(package, quiet=True)


@lru_cache(maxsize=1)
def default_stopwords() -> FrozenSet[str]:
    ensure_nltk_resource('corpora/stopwords', 'stopwords')
    from nltk.corpus import stopwords
    return frozenset(stopwords.words('english'))


URL_RE = re.compile(r'https?://\S+|www\.\S+')
APOSTROPHE_RE = re.compile(r"['’]")
PUNCT_RE = re.compile(r'[^\w\s]|_')
DIGIT_RE = re.compile(r'\d+')

SOCIAL_RE = re.compile(
    r"(?:(?:https?://|www\.)\S+?(?=[.,!?;:)]*(?:\s|$)))"   # urls, trailing punctuation left out
    r"|(?:@\w+)"                    # mentions
    r"|(?:#\w+)"                    # hashtags
    r"|(?:\w+(?:['’]\w+)*)"    # words, inner apostrophes kept
)


def ensure_text(value, doc_id=None) -> str:
    """Return ``value`` as a str, or raise EncodingError.

    Missing values (None, NaN, pd.NA) are treated as empty text.
    """
    if value is None:
        return ''
    if not isinstance(value, (str, bytes, bytearray)) and pd.api.types.is_scalar(value) and pd.isna(value):
        return ''
    if isinstance(value, (bytes, bytearray)):
        try:
            return bytes(value).decode('utf-8')
        except UnicodeDecodeError as e:
            raise EncodingError(f'document {doc_id!r}: undecodable bytes ({e.reason})', doc_id=doc_id) from e
    if not isinstance(value, str):
        raise EncodingError(f'document {doc_id!r}: expected text, got {type(value).__name__}', doc_id=doc_id)
    try:
        value.encode('utf-8')
    except UnicodeEncodeError as e:
        raise EncodingError(f'document {doc_id!r}: malformed text ({e.reason})', doc_id=doc_id) from e
    return value


class Token(NamedTuple):
    doc_id: object
    position: int
    text: str


class TokenStream:
    """Lazy, restartable token sequence for one document.

    Every iteration re-runs the underlying splitter, so the stream can be
    consumed any number of times.
    """

    def __init__(self, source: Callable[[], Iterator[str]]):
        self._source = source

    @classmethod
    def from_tokens(cls, tokens: Iterable[str]) -> 'TokenStream':
        frozen = tuple(tokens)
        return cls(lambda: iter(frozen))

    def __iter__(self) -> Iterator[str]:
        return iter(self._source())

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __repr__(self) -> str:
        return f'TokenStream({list(self)!r})'


class TokenizedCorpus(Mapping):
    """Ordered mapping doc_id -> TokenStream, plus documents skipped for bad text."""

    def __init__(self, streams: Dict[object, TokenStream], mode: TokenizerMode,
                 skipped: Iterable[Tuple[object, str]] = ()):
        self._streams = dict(streams)
        self.mode = mode
        self.skipped: List[Tuple[object, str]] = list(skipped)

    def __getitem__(self, doc_id) -> TokenStream:
        return self._streams[doc_id]

    def __iter__(self):
        return iter(self._streams)

    def __len__(self) -> int:
        return len(self._streams)

    @property
    def ids(self) -> List[object]:
        return list(self._streams)

    def occurrences(self) -> Iterator[Token]:
        for doc_id, stream in self._streams.items():
            for pos, tok in enumerate(stream):
                yield Token(doc_id, pos, tok)

    def token_counts(self) -> pd.Series:
        return pd.Series({d: len(s) for d, s in self._streams.items()}, name='n_tokens', dtype='int64')

    def restrict(self, terms: Container[str]) -> 'TokenizedCorpus':
        """Keep only tokens found in ``terms``; every document stays, possibly empty."""
        restricted = {}
        for doc_id, stream in self._streams.items():
            restricted[doc_id] = TokenStream(lambda s=stream: (t for t in s if t in terms))
        return TokenizedCorpus(restricted, self.mode, self.skipped)


class Tokenizer:
    def __init__(self, config: Optional[TokenizerConfig] = None):
        self.config = config or TokenizerConfig()
        self.mode = TokenizerMode(self.config.mode)
        self._stopwords: FrozenSet[str] = frozenset()
        self._stemmer = None
        if self.mode is TokenizerMode.NORMALIZE:
            stops = self.config.stopwords if self.config.stopwords is not None else default_stopwords()
            # apostrophes are deleted before the lookup, so match "dont" as well as "don't"
            self._stopwords = frozenset(stops) | frozenset(APOSTROPHE_RE.sub('', w) for w in stops)
            if self.config.stem:
                self._stemmer = self.config.stemmer or SnowballStemmer('english')

    def _split_social(self, text: str) -> Iterator[str]:
        for m in SOCIAL_RE.finditer(text):
            yield m.group(0)

    def _split_normalized(self, text: str) -> Iterator[str]:
        s = text.lower()
        s = URL_RE.sub(' ', s)
        s = APOSTROPHE_RE.sub('', s)
        s = PUNCT_RE.sub(' ', s)
        s = DIGIT_RE.sub(' ', s)
        for tok in s.split():
            if tok in self._stopwords:
                continue
            if len(tok) < self.config.min_word_length:
                continue
            yield self._stemmer.stem(tok) if self._stemmer is not None else tok

    def tokenize(self, text, doc_id=None) -> TokenStream:
        text = ensure_text(text, doc_id)
        if self.mode is TokenizerMode.SOCIAL:
            return TokenStream(lambda: self._split_social(text))
        return TokenStream(lambda: self._split_normalized(text))

    def tokenize_corpus(self, documents) -> TokenizedCorpus:
        """Tokenize every document; documents with malformed text go to the skip list."""
        streams = {}
        skipped = list(getattr(documents, 'skipped', ()))
        for doc in documents:
            try:
                streams[doc.doc_id] = self.tokenize(doc.text, doc.doc_id)
            except EncodingError as e:
                logger.warning('Skipping document %r: %s', doc.doc_id, e)
                skipped.append((doc.doc_id, str(e)))
        logger.info('Tokenized %d documents (%s mode), %d skipped', len(streams), self.mode.value, len(skipped))
        return TokenizedCorpus(streams, self.mode, skipped)
