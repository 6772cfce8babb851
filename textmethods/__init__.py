# Text methods walkthrough on labeled disaster messages:
# dictionary sentiment, LDA topics and an L1 logistic regression path,
# all built on one shared vocabulary and document-term matrix.

from .errors import (TextMethodsError, EncodingError, EmptyVocabularyError, EstimationError,
                     UnscoredDocumentWarning, DegenerateClassifierWarning)
from .config import (TokenizerMode, TokenizerConfig, PruneConfig, TopicConfig, ClassifierConfig,
                     PipelineConfig)
from .data import Document, Corpus, load_corpus
from .tokenizer import Token, TokenStream, TokenizedCorpus, Tokenizer
from .vocab import Vocabulary, build_vocabulary
from .dtm import DocumentTermMatrix, build_dtm
from .lexicon import Lexicon, load_lexicon, bing_lexicon
from .sentiment import DictionaryScorer, SentimentScores, score_all, vader_scores
from .topics import TopicModel, TopicModelAdapter, TopicCorrelation, select_k
from .classify import ClassifierAdapter, ClassifierPath, split_ids, cross_validate_path
from .evaluate import (coverage, intersect, correlate, group_summary, difference_in_means,
                       compare_scores)
from .pipeline import PipelineResult, run_pipeline
