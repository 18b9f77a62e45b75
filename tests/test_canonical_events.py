import numpy as np
import pytest

from ensemble_postprocessing.core.canonical_events import aggregate


def test_single_day_span_reproduces_series():
    series = np.array([3.0, 1.5, 4.25, 7.0, 2.0])
    agg = aggregate(series, [(1, 1), (2, 2), (5, 5)])

    assert agg.shape == (3, series.size)
    for row in agg:
        np.testing.assert_array_equal(row, series)
    assert agg[0, -1] == series[-1]


def test_multi_day_span_clips_at_record_end():
    series = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
    agg = aggregate(series, [(1, 3)])

    np.testing.assert_allclose(agg[0], [2.0, 3.0, 4.0, 4.5, 5.0])


def test_span_longer_than_record():
    series = np.array([2.0, 4.0, 6.0])
    agg = aggregate(series, [(1, 10)])

    np.testing.assert_allclose(agg[0], [4.0, 5.0, 6.0])


def test_input_is_not_modified():
    series = np.arange(10, dtype=float)
    copy = series.copy()
    aggregate(series, [(1, 4), (2, 2)])
    np.testing.assert_array_equal(series, copy)


def test_rejects_multidimensional_input():
    with pytest.raises(ValueError):
        aggregate(np.ones((3, 3)), [(1, 1)])
