import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .classify import ClassifierAdapter, ClassifierPath, split_ids
from .config import PipelineConfig, TokenizerMode
from .data import Corpus
from .dtm import DocumentTermMatrix, build_dtm
from .evaluate import GroupSummary, MeanDifference, compare_scores, difference_in_means, group_summary
from .lexicon import Lexicon
from .sentiment import SentimentScores, score_all
from .tokenizer import TokenizedCorpus, Tokenizer
from .topics import TopicCorrelation, TopicModel, TopicModelAdapter
from .vocab import Vocabulary, build_vocabulary

logger = logging.getLogger(__name__)

STAGES = ('sentiment', 'topics', 'classify')


def resolve_stages(stages: Sequence[str]) -> Tuple[str, ...]:
    out = []
    for s in stages:
        if s == 'all':
            return STAGES
        if s not in STAGES:
            raise ValueError(f'unknown stage {s!r}, expected one of {STAGES + ("all",)}')
        if s not in out:
            out.append(s)
    return tuple(out)


@dataclass
class PipelineResult:
    config: PipelineConfig
    stages: Tuple[str, ...]
    tokenized: Dict[TokenizerMode, TokenizedCorpus] = field(default_factory=dict)
    skipped: List[Tuple[Any, str]] = field(default_factory=list)
    vocabulary: Optional[Vocabulary] = None
    dtm: Optional[DocumentTermMatrix] = None
    # sentiment
    sentiment: Dict[str, SentimentScores] = field(default_factory=dict)
    score_summaries: Dict[str, GroupSummary] = field(default_factory=dict)
    score_differences: Dict[str, MeanDifference] = field(default_factory=dict)
    score_comparison: Optional[pd.DataFrame] = None
    # topics
    topic_model: Optional[TopicModel] = None
    topic_labels: Optional[pd.DataFrame] = None
    topic_correlation: Optional[TopicCorrelation] = None
    topic_effects: Optional[pd.DataFrame] = None
    # classify
    classifier: Optional[ClassifierPath] = None
    train_ids: List[Any] = field(default_factory=list)
    test_ids: List[Any] = field(default_factory=list)
    classifier_evaluation: Optional[pd.DataFrame] = None


def _tokenized(result: PipelineResult, corpus: Corpus, mode: TokenizerMode) -> TokenizedCorpus:
    if mode not in result.tokenized:
        cfg = result.config.social if mode is TokenizerMode.SOCIAL else result.config.normalize
        tok = Tokenizer(cfg).tokenize_corpus(corpus)
        result.tokenized[mode] = tok
        for item in tok.skipped:
            if item not in result.skipped:
                result.skipped.append(item)
    return result.tokenized[mode]


def run_sentiment(result: PipelineResult, corpus: Corpus, lexicons: Mapping[str, Lexicon],
                  extra_scores: Optional[Mapping[str, pd.Series]] = None) -> None:
    tokenized = _tokenized(result, corpus, TokenizerMode.SOCIAL)
    labels = corpus.labels
    positive = result.config.classifier.positive_label
    result.sentiment = score_all(tokenized, lexicons, case_sensitive=result.config.case_sensitive_lexicon)
    series = {name: s.score for name, s in result.sentiment.items()}
    for name, s in (extra_scores or {}).items():
        series[name] = s
    for name, s in series.items():
        result.score_summaries[name] = group_summary(s, labels)
        diff = difference_in_means(s, labels, positive_label=positive)
        result.score_differences[name] = diff
        logger.info('%s: mean difference %.3f (p=%.3g) over %d %s documents',
                    name, diff.difference, diff.p_value, diff.n, diff.subset)
    result.score_comparison = compare_scores(series, labels, positive)


def _shared_matrix(result: PipelineResult, corpus: Corpus) -> DocumentTermMatrix:
    if result.dtm is None:
        tokenized = _tokenized(result, corpus, TokenizerMode.NORMALIZE)
        prune = result.config.prune
        result.vocabulary = build_vocabulary(tokenized, prune.min_df, prune.max_df)
        result.dtm = build_dtm(tokenized, result.vocabulary)
    return result.dtm


def run_topics(result: PipelineResult, corpus: Corpus, topic_model: Optional[TopicModel] = None,
               adapter: Optional[TopicModelAdapter] = None) -> None:
    dtm = _shared_matrix(result, corpus)
    covariates = corpus.covariates(('keyword',)).reindex(list(dtm.doc_ids))
    if topic_model is not None:
        if topic_model.vocabulary.terms != dtm.vocabulary.terms:
            raise ValueError('loaded topic model was fitted on a different vocabulary')
        model = topic_model
    else:
        model = (adapter or TopicModelAdapter()).fit(dtm, result.config.topics, covariates=covariates)
    result.topic_model = model
    result.topic_labels = model.label_topics()
    result.topic_correlation = model.topic_correlation()
    if covariates['keyword'].notna().any() and model.covariates is not None:
        result.topic_effects = model.estimate_effect()


def run_classify(result: PipelineResult, corpus: Corpus, adapter: Optional[ClassifierAdapter] = None) -> None:
    dtm = _shared_matrix(result, corpus)
    cfg = result.config.classifier
    labels = corpus.labels
    train_ids, test_ids = split_ids(dtm.doc_ids, labels, cfg.test_size, cfg.seed)
    path = (adapter or ClassifierAdapter()).fit_path(dtm.subset(train_ids), labels, cfg)
    result.classifier = path
    result.train_ids = train_ids
    result.test_ids = test_ids
    result.classifier_evaluation = path.evaluate(dtm.subset(test_ids), labels)


def run_pipeline(corpus: Corpus, lexicons: Mapping[str, Lexicon], config: PipelineConfig,
                 stages: Sequence[str] = ('all',), extra_scores: Optional[Mapping[str, pd.Series]] = None,
                 topic_model: Optional[TopicModel] = None) -> PipelineResult:
    """Run the selected stages over one corpus.

    Topics and classification share a single vocabulary and document-term
    matrix built from the normalized tokens.
    """
    result = PipelineResult(config=config, stages=resolve_stages(stages))
    result.skipped.extend(corpus.skipped)
    if 'sentiment' in result.stages:
        run_sentiment(result, corpus, lexicons, extra_scores)
    if 'topics' in result.stages:
        run_topics(result, corpus, topic_model)
    if 'classify' in result.stages:
        run_classify(result, corpus)
    return result
