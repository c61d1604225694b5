import matplotlib

matplotlib.use("Agg")  # headless backend for CI

import matplotlib.pyplot as plt

from hpsearch import (
    Candidate,
    EvaluationStatus,
    SearchResult,
    TrainingFailure,
    TrainingResult,
)
from hpsearch.utils import plot_checkpoints, plot_search_results


def make_result():
    def record(index, history, status=EvaluationStatus.CONVERGED):
        return TrainingResult(
            candidate=Candidate(values=(("lr", 10.0 ** -index),), index=index),
            score=history[-1],
            status=status,
            checkpoints=len(history),
            history=history,
        )

    failed = TrainingFailure(Candidate(values=(("lr", 1.0),), index=3), "diverged")
    return SearchResult(
        results=(
            record(0, [0.5, 0.6, 0.7]),
            record(1, [0.5, 0.5, 0.5], EvaluationStatus.STOPPED_EARLY),
            record(2, [0.6, 0.75, 0.8, 0.82]),
        ),
        metric="accuracy",
        failures=(failed,),
    )


def test_plot_functions_smoke():
    result = make_result()

    # Smoke test: ensure plotting functions run without error
    assert plot_search_results(result) is not None
    fig = plot_checkpoints(result, top=2)
    assert len(fig.axes[0].lines) == 2
    plt.close("all")


def test_plot_checkpoints_without_results(capsys):
    empty = SearchResult(results=(), metric="accuracy")

    assert plot_checkpoints(empty) is None
    assert "No results" in capsys.readouterr().out
