import argparse
import json
import logging
import os

import pandas as pd

from textmethods import (ClassifierConfig, PipelineConfig, PruneConfig, TopicConfig, TopicModel,
                         bing_lexicon, load_corpus, load_lexicon, run_pipeline, vader_scores)
from textmethods.plotting import (plot_coefficient_path, plot_score_by_label, plot_top_words,
                                  plot_topic_correlation)

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Paths
DATA_PATH = 'data/train.csv'
# optional word,sentiment CSV (e.g. an NRC export); Bing from NLTK is always used
LEXICON_PATH = None
OUT_DIR = 'outputs'
MODEL_PATH = os.path.join(OUT_DIR, 'topic_model.joblib')

SEED = 2024
K = 8
MIN_DF = 5
LAMBDAS = (0.05, 0.01, 0.005, 0.001, 0.0005, 0.0001)


def _json_default(o):
    if hasattr(o, 'item'):
        return o.item()
    return str(o)


def write_json(obj, name: str) -> str:
    path = os.path.join(OUT_DIR, name)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(obj, f, ensure_ascii=False, indent=2, default=_json_default)
    return path


def report_sentiment(result, corpus):
    for name, scores in result.sentiment.items():
        logger.info('%s coverage: %s', name, scores.coverage())
        scores.table.to_csv(os.path.join(OUT_DIR, f'sentiment_{name}.csv'))
        plot_score_by_label(OUT_DIR, scores.score, corpus.labels, f'sentiment_{name}')
    result.score_comparison.to_csv(os.path.join(OUT_DIR, 'score_comparison.csv'), index=False)
    summaries = {name: s.table.reset_index().to_dict(orient='records') for name, s in result.score_summaries.items()}
    write_json(summaries, 'score_by_label.json')


def report_topics(result, reuse_model: bool):
    model = result.topic_model
    result.topic_labels.to_csv(os.path.join(OUT_DIR, 'topic_labels.csv'))
    thoughts = {f'Topic_{k}': [str(d) for d in model.top_documents(k, 3)] for k in range(model.k)}
    write_json(thoughts, 'topic_top_documents.json')
    write_json([list(e) for e in result.topic_correlation.edges()], 'topic_correlation_edges.json')
    if result.topic_effects is not None:
        result.topic_effects.to_csv(os.path.join(OUT_DIR, 'topic_effects.csv'), index=False)
    plot_top_words(OUT_DIR, model, 'lda', topn=10, method='frex')
    plot_topic_correlation(OUT_DIR, result.topic_correlation, 'lda')
    if not reuse_model:
        model.save(MODEL_PATH)


def report_classifier(result):
    path = result.classifier
    result.classifier_evaluation.to_csv(os.path.join(OUT_DIR, 'classifier_evaluation.csv'), index=False)
    top = {str(lam): path.top_terms(lam, 10).to_dict(orient='records') for lam in path.lambdas}
    write_json(top, 'classifier_top_terms.json')
    plot_coefficient_path(OUT_DIR, path, 'l1_logit')
    for row in result.classifier_evaluation.to_dict(orient='records'):
        logger.info('lambda=%g accuracy=%.3f predicted positive=%.3f baseline=%.3f%s', row['lambda'],
                    row['accuracy'], row['fraction_positive'], row['majority_baseline'],
                    ' (degenerate)' if row['degenerate'] else '')


def main():
    parser = argparse.ArgumentParser(description='Text methods walkthrough on labeled disaster messages')
    parser.add_argument('--stage', choices=['sentiment', 'topics', 'classify', 'all'], default='all')
    args = parser.parse_args()

    os.makedirs(OUT_DIR, exist_ok=True)
    corpus = load_corpus(DATA_PATH)

    lexicons = {'bing': bing_lexicon()}
    if LEXICON_PATH:
        lex = load_lexicon(LEXICON_PATH, name='custom')
        lexicons[lex.name] = lex

    config = PipelineConfig(
        topics=TopicConfig(k=K, seed=SEED),
        classifier=ClassifierConfig(seed=SEED, lambdas=LAMBDAS),
        prune=PruneConfig(min_df=MIN_DF),
    )

    extra = None
    if args.stage in ('sentiment', 'all'):
        extra = {'vader': vader_scores(corpus)}

    topic_model = None
    if args.stage in ('topics', 'all') and os.path.exists(MODEL_PATH):
        logger.info('Reusing topic model from %s', MODEL_PATH)
        topic_model = TopicModel.load(MODEL_PATH)

    result = run_pipeline(corpus, lexicons, config, stages=[args.stage], extra_scores=extra,
                          topic_model=topic_model)

    if result.skipped:
        pd.DataFrame(result.skipped, columns=['doc_id', 'reason']).to_csv(
            os.path.join(OUT_DIR, 'skipped_documents.csv'), index=False)
    if result.dtm is not None:
        logger.info('Shared document-term matrix: %d x %d', *result.dtm.shape)
    if 'sentiment' in result.stages:
        report_sentiment(result, corpus)
    if 'topics' in result.stages:
        report_topics(result, reuse_model=topic_model is not None)
    if 'classify' in result.stages:
        report_classifier(result)


if __name__ == '__main__':
    main()
