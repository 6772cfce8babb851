from dataclasses import dataclass, field
from enum import Enum
from typing import Any, FrozenSet, Optional, Tuple


class TokenizerMode(str, Enum):
    SOCIAL = 'preserve-social-atoms'
    NORMALIZE = 'normalize'


@dataclass(frozen=True)
class TokenizerConfig:
    """Tokenizer settings.

    stopwords: None means the NLTK English list (fetched lazily).
    stemmer: any object with a ``stem(word)`` method; None means Snowball English.
    """
    mode: TokenizerMode = TokenizerMode.NORMALIZE
    stopwords: Optional[FrozenSet[str]] = None
    stemmer: Any = None
    stem: bool = True
    min_word_length: int = 3


@dataclass(frozen=True)
class PruneConfig:
    # inclusive absolute document-frequency bounds
    min_df: int = 1
    max_df: Optional[int] = None


@dataclass(frozen=True)
class TopicConfig:
    k: int
    seed: int
    max_iter: int = 50
    learning_method: str = 'batch'
    doc_topic_prior: Optional[float] = None
    topic_word_prior: Optional[float] = None
    corr_threshold: float = 0.01

    def __post_init__(self):
        if not isinstance(self.k, int) or self.k < 1:
            raise ValueError(f'k must be a positive integer, got {self.k!r}')


@dataclass(frozen=True)
class ClassifierConfig:
    seed: int
    lambdas: Tuple[float, ...] = (1.0, 0.1, 0.05, 0.01, 0.005, 0.001)
    positive_label: int = 1
    test_size: float = 0.2
    max_iter: int = 5000
    tol: float = 1e-4

    def __post_init__(self):
        if not self.lambdas:
            raise ValueError('lambdas must contain at least one value')
        if any(lam <= 0 for lam in self.lambdas):
            raise ValueError('lambdas must be strictly positive')
        if self.positive_label not in (0, 1):
            raise ValueError(f'positive_label must be 0 or 1, got {self.positive_label!r}')


@dataclass(frozen=True)
class PipelineConfig:
    topics: TopicConfig
    classifier: ClassifierConfig
    normalize: TokenizerConfig = field(default_factory=TokenizerConfig)
    social: TokenizerConfig = field(default_factory=lambda: TokenizerConfig(mode=TokenizerMode.SOCIAL))
    prune: PruneConfig = field(default_factory=PruneConfig)
    case_sensitive_lexicon: bool = False
