import os
from typing import Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from .classify import ClassifierPath
from .topics import TopicCorrelation, TopicModel

sns.set_style('whitegrid')


def plot_score_by_label(output_dir: str, scores: pd.Series, labels: pd.Series, picname: str,
                        title: Optional[str] = None) -> str:
    """Box plot of a per-document score split by outcome label; unscored documents are left out."""
    os.makedirs(output_dir, exist_ok=True)
    vals = scores.dropna()
    tab = pd.DataFrame({'score': vals.astype(float).to_numpy(),
                        'label': labels.reindex(vals.index).to_numpy()})
    fig, ax = plt.subplots(figsize=(6, 5), dpi=200)
    sns.boxplot(data=tab, x='label', y='score', ax=ax, color='#5178c6')
    ax.set_xlabel('Label')
    ax.set_ylabel(scores.name or 'score')
    ax.set_title(title or f'{scores.name or "score"} by label (n={len(tab)} scored)')
    out_path = os.path.join(output_dir, f'{picname}_by_label.png')
    plt.savefig(out_path, bbox_inches='tight')
    plt.close(fig)
    return out_path


def plot_top_words(output_dir: str, model: TopicModel, picname: str, topn: int = 10,
                   method: str = 'prob') -> str:
    os.makedirs(output_dir, exist_ok=True)
    tw = model.top_words(topn, method)
    K = model.k
    fig, axes = plt.subplots(K, 1, figsize=(10, 2.5 * K), dpi=200, constrained_layout=True)
    axes = np.atleast_1d(axes)
    for k in range(K):
        sub = tw[tw['topic'] == k]
        ax = axes[k]
        ax.bar(sub['term'], sub['weight'], color='#5178c6')
        ax.set_title(f'Topic {k}: top {topn} words ({method})')
        plt.setp(ax.get_xticklabels(), rotation=45, ha='right')
    out_path = os.path.join(output_dir, f'{picname}_top_words.png')
    plt.savefig(out_path, bbox_inches='tight')
    plt.close(fig)
    return out_path


def plot_coefficient_path(output_dir: str, path: ClassifierPath, picname: str, max_terms: int = 15) -> str:
    """Coefficient of each selected term against log(lambda)."""
    os.makedirs(output_dir, exist_ok=True)
    coefs = path.coef_frame().drop(columns='(Intercept)')
    # largest |coef| at the weakest penalty
    weakest = coefs.loc[min(path.lambdas)].abs()
    terms = list(weakest[weakest > 0].sort_values(ascending=False).index[:max_terms])
    x = np.log(np.asarray(path.lambdas))
    fig, ax = plt.subplots(figsize=(10, 6), dpi=200)
    for term in terms:
        ax.plot(x, coefs[term].to_numpy(), lw=1.5, label=term)
    ax.axhline(0.0, color='#9ca3af', lw=1)
    ax.set_xlabel('log(lambda)', labelpad=10)
    ax.set_ylabel('Coefficient', labelpad=10)
    ax.set_title('L1 logistic regression coefficient path')
    if terms:
        ax.legend(loc='center left', bbox_to_anchor=(1.0, 0.5), frameon=False, fontsize=8)
    out_path = os.path.join(output_dir, f'{picname}_coef_path.png')
    plt.savefig(out_path, bbox_inches='tight')
    plt.close(fig)
    return out_path


def plot_topic_correlation(output_dir: str, corr: TopicCorrelation, picname: str) -> str:
    os.makedirs(output_dir, exist_ok=True)
    k = corr.cor.shape[0]
    fig, ax = plt.subplots(figsize=(1.0 * k + 3, 1.0 * k + 2), dpi=200)
    sns.heatmap(corr.cor, annot=True, fmt='.2f', cmap='vlag', center=0.0, vmin=-1, vmax=1,
                mask=~corr.adjacency.to_numpy() & ~np.eye(k, dtype=bool), ax=ax)
    ax.set_title(f'Topic correlation (|r| > {corr.threshold:g})')
    out_path = os.path.join(output_dir, f'{picname}_topic_corr.png')
    plt.savefig(out_path, bbox_inches='tight')
    plt.close(fig)
    return out_path
