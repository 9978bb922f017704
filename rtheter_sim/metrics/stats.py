"""Response-time statistics.

Quantiles use linear interpolation between order statistics: for ``n``
sorted samples the q-quantile sits at position ``(n - 1) * q``. This is the
same rule as NumPy's default ``linear`` method and is applied to q1, median
and q3 of every task.
"""

from __future__ import annotations

from collections.abc import Sequence
import math
import statistics

from rtheter_sim.model import TaskResponseStats


def linear_quantile(sorted_values: Sequence[float], q: float) -> float:
    if not sorted_values:
        raise ValueError("quantile of empty sample")
    if not 0.0 <= q <= 1.0:
        raise ValueError(f"quantile must lie in [0, 1], got {q}")
    position = (len(sorted_values) - 1) * q
    lower = math.floor(position)
    upper = math.ceil(position)
    if lower == upper:
        return float(sorted_values[lower])
    fraction = position - lower
    return float(sorted_values[lower] + (sorted_values[upper] - sorted_values[lower]) * fraction)


def summarize(task_id: int, samples: Sequence[tuple[float, float]]) -> TaskResponseStats:
    """Build stats from ``(release_time, response_time)`` pairs.

    Equal response times are ordered by release time before indexing.
    """
    if not samples:
        return TaskResponseStats(task_id=task_id, count=0, valid=False)

    ordered = [response for _, response in sorted(samples, key=lambda item: (item[1], item[0]))]
    low = ordered[0]
    high = ordered[-1]
    return TaskResponseStats(
        task_id=task_id,
        count=len(ordered),
        mean=statistics.fmean(ordered),
        std_dev=statistics.pstdev(ordered),
        q1=linear_quantile(ordered, 0.25),
        median=linear_quantile(ordered, 0.5),
        q3=linear_quantile(ordered, 0.75),
        min=low,
        max=high,
        range=high - low,
        valid=True,
    )
