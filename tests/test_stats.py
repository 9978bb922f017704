from __future__ import annotations

import pytest

from rtheter_sim.metrics import linear_quantile, summarize


def test_quantiles_interpolate_linearly() -> None:
    stats = summarize(0, [(0.0, 1.0), (10.0, 2.0), (20.0, 3.0), (30.0, 4.0)])
    assert stats.q1 == pytest.approx(1.75)
    assert stats.median == pytest.approx(2.5)
    assert stats.q3 == pytest.approx(3.25)
    assert stats.min == 1.0
    assert stats.max == 4.0
    assert stats.range == 3.0
    assert stats.mean == pytest.approx(2.5)


def test_std_dev_is_population_deviation() -> None:
    stats = summarize(1, [(0.0, 2.0), (1.0, 4.0), (2.0, 4.0), (3.0, 4.0), (4.0, 5.0), (5.0, 5.0), (6.0, 7.0), (7.0, 9.0)])
    assert stats.std_dev == pytest.approx(2.0)


def test_single_sample_collapses_every_statistic() -> None:
    stats = summarize(2, [(0.0, 6.0)])
    assert stats.count == 1
    assert stats.valid
    assert stats.min == stats.q1 == stats.median == stats.q3 == stats.max == 6.0
    assert stats.std_dev == 0.0
    assert stats.range == 0.0


def test_unsorted_input_is_ordered_before_indexing() -> None:
    stats = summarize(3, [(30.0, 9.0), (0.0, 1.0), (10.0, 5.0)])
    assert stats.median == 5.0
    assert stats.min == 1.0
    assert stats.max == 9.0


def test_empty_sample_is_flagged_invalid() -> None:
    stats = summarize(4, [])
    assert stats.count == 0
    assert stats.valid is False
    assert stats.mean == 0.0


def test_linear_quantile_rejects_bad_input() -> None:
    with pytest.raises(ValueError):
        linear_quantile([], 0.5)
    with pytest.raises(ValueError):
        linear_quantile([1.0], 1.5)
