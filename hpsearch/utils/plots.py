from __future__ import annotations

import matplotlib.pyplot as plt

from ..search.result import SearchResult


def plot_search_results(result: SearchResult):
    """Score of every scored candidate, best one highlighted."""
    indices = [r.index for r in result.results]
    scores = [r.score for r in result.results]

    fig = plt.figure(figsize=(7, 4))
    plt.scatter(indices, scores, alpha=0.7, label="candidate")

    best = result.best
    if best is not None:
        plt.scatter([best.index], [best.score], color="red", marker="*", s=150,
                    label=f"best #{best.index}: {best.score:.4f}")
    if result.failures:
        plt.title(f"Search results ({len(result.failures)} failed)")
    else:
        plt.title("Search results")

    plt.xlabel("candidate")
    plt.ylabel(result.metric)
    plt.legend()
    plt.grid(True)
    plt.tight_layout()
    return fig


def plot_checkpoints(result: SearchResult, top: int | None = None):
    """Monitored metric per checkpoint for each candidate.

    ``top`` limits the plot to the best ranked candidates.
    """
    ranked = result.ranked()
    if top is not None:
        ranked = ranked[:top]

    if not ranked:
        print("No results to plot.")
        return None

    fig = plt.figure(figsize=(7, 4))
    for r in ranked:
        style = "--" if r.status.value == "stopped_early" else "-"
        plt.plot(range(len(r.history)), r.history, style, label=f"#{r.index}")

    plt.xlabel("checkpoint")
    plt.ylabel(result.metric)
    plt.title("Scoring history (dashed: stopped early)")
    plt.legend()
    plt.grid(True)
    plt.tight_layout()
    return fig
