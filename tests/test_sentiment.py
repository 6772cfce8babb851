import pandas as pd
import pytest

from textmethods.config import TokenizerConfig, TokenizerMode
from textmethods.data import Corpus, Document
from textmethods.errors import UnscoredDocumentWarning
from textmethods.lexicon import NEGATIVE, POSITIVE, Lexicon, load_lexicon
from textmethods.sentiment import DictionaryScorer, score_all
from textmethods.tokenizer import Tokenizer


def toy_corpus():
    return Corpus((
        Document('A', 'great rescue effort today', 0),
        Document('B', 'explosion kills dozens', 1),
        Document('C', 'my phone battery died', 0),
    ))


def toy_lexicon():
    return Lexicon.from_pairs([('great', 'positive'), ('explosion', 'negative'), ('kills', 'negative')], name='toy')


def social_tokens(corpus):
    return Tokenizer(TokenizerConfig(mode=TokenizerMode.SOCIAL)).tokenize_corpus(corpus)


def test_scores_and_coverage_on_toy_corpus():
    with pytest.warns(UnscoredDocumentWarning):
        scores = DictionaryScorer(toy_lexicon()).score(social_tokens(toy_corpus()))
    s = scores.score
    assert s['A'] == 1
    assert s['B'] == -2
    # no match means no score, not zero
    assert pd.isna(s['C'])
    assert scores.unscored_ids == ['C']
    cov = scores.coverage()
    assert cov.n_scored == 2 and cov.n_total == 3
    assert str(cov) == '2 of 3 documents scored (67%)'
    assert scores.table.loc['B', 'n_negative'] == 2
    assert set(scores.matches['token']) == {'great', 'explosion', 'kills'}


def test_balanced_matches_score_zero_and_count_as_scored():
    corpus = Corpus((Document('x', 'great explosion', 1),))
    scores = DictionaryScorer(toy_lexicon()).score(social_tokens(corpus))
    assert scores.score['x'] == 0
    assert scores.table.loc['x', 'n_matched'] == 2
    assert scores.scored_ids == ['x']
    assert scores.unscored_ids == []
    assert scores.coverage().n_scored == 1


def test_case_insensitive_by_default():
    corpus = Corpus((Document('x', 'GREAT news', 0),))
    scores = DictionaryScorer(toy_lexicon()).score(social_tokens(corpus))
    assert scores.score['x'] == 1
    with pytest.warns(UnscoredDocumentWarning):
        strict = DictionaryScorer(toy_lexicon(), case_sensitive=True).score(social_tokens(corpus))
    assert pd.isna(strict.score['x'])


def test_extra_categories_do_not_score():
    lex = Lexicon.from_pairs([('fire', 'fear'), ('fire', 'negative'), ('hope', 'anticipation')], name='nrc')
    assert lex['fire'] == frozenset({'fear', NEGATIVE})
    corpus = Corpus((Document('a', 'fire and hope', 1),))
    scores = DictionaryScorer(lex).score(social_tokens(corpus))
    assert scores.score['a'] == -1
    assert scores.table.loc['a', 'n_matched'] == 1


def test_several_lexicons_on_one_tokenization():
    other = Lexicon.from_pairs([('rescue', 'positive'), ('died', 'negative')], name='other')
    with pytest.warns(UnscoredDocumentWarning):
        results = score_all(social_tokens(toy_corpus()), {'toy': toy_lexicon(), 'other': other})
    assert set(results) == {'toy', 'other'}
    assert results['other'].score['C'] == -1
    assert results['other'].score.name == 'other'


def test_load_lexicon_from_csv(tmp_path):
    path = tmp_path / 'lexicon.csv'
    path.write_text('word,sentiment\nabandon,fear\nabandon,negative\nbliss,positive\n', encoding='utf-8')
    lex = load_lexicon(str(path), name='nrc')
    assert lex.words(POSITIVE) == frozenset({'bliss'})
    assert lex.categories == {'fear', 'negative', 'positive'}
    assert len(lex.to_frame()) == 3

    frame = pd.DataFrame({'term': ['calm'], 'polarity': ['Positive']})
    lex2 = load_lexicon(frame, word_col='term', sentiment_col='polarity')
    assert lex2['calm'] == frozenset({POSITIVE})
    with pytest.raises(ValueError):
        load_lexicon(frame)
