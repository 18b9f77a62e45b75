import numpy as np
import pytest

from ensemble_postprocessing.core.canonical_events import aggregate
from ensemble_postprocessing.core.calendar_windows import (
    CalendarWindowBuilder, build_windows, find_occurrences, lookahead_bound, window_start
)

NOLEAP_MONTH_DAYS = [31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31]


def noleap_calendar(first_year, n_years):
    years, months, days = [], [], []
    for year in range(first_year, first_year + n_years):
        for month, n_days in enumerate(NOLEAP_MONTH_DAYS, 1):
            for day in range(1, n_days + 1):
                years.append(year)
                months.append(month)
                days.append(day)
    return np.array(years), np.array(months), np.array(days)


def make_builder(years, months, days, lead_spans, na=3, nf=7, buffer=15,
                 eligible=(1900, 2100), inclusive=False):
    n = years.size
    obs = np.arange(n, dtype=float)
    sim = 2.0 * obs + 1.0
    return CalendarWindowBuilder(
        years, months, days, obs, sim, aggregate(obs, lead_spans), aggregate(sim, lead_spans),
        lead_spans, na, nf, buffer, eligible, inclusive,
    )


@pytest.fixture
def twenty_year_builder():
    years, months, days = noleap_calendar(1981, 20)
    return make_builder(years, months, days, [(lead, lead) for lead in range(1, 8)])


def test_window_start_interior_edges():
    # ndays = 3 + 7 + 15 = 25, buffer // 2 = 7
    assert window_start(100, 25, 3, 15, upper=999) == 90
    assert window_start(4, 25, 3, 15, upper=999) == 0
    # slide back so the window still ends at the upper bound
    assert window_start(995, 25, 3, 15, upper=999) == 975


def test_window_start_record_too_short():
    with pytest.raises(ValueError):
        window_start(5, 25, 3, 15, upper=10)


def test_feb_29_absent_without_leap_years(twenty_year_builder):
    assert twenty_year_builder.build(2, 29) is None
    qobs, qsim, n = build_windows((2, 29), twenty_year_builder)
    assert n == 0
    assert qobs.shape == (8, 0, 25)
    assert qsim.shape == (8, 0, 25)


def test_every_window_has_full_length(twenty_year_builder):
    builder = twenty_year_builder
    for month, day in [(1, 1), (1, 3), (6, 15), (12, 31), (12, 25)]:
        windows = builder.build(month, day)
        assert windows.n_occurrences == 20
        assert windows.qobs_calb.shape == (8, 20, builder.ndays)
        assert np.all(windows.window_starts >= 0)
        assert np.all(windows.window_starts + builder.ndays - 1 <= builder.n_records - 1)


def test_raw_row_is_contiguous_slice(twenty_year_builder):
    builder = twenty_year_builder
    windows = builder.build(7, 4)
    for i, k1 in enumerate(windows.window_starts):
        np.testing.assert_array_equal(windows.qobs_calb[0, i], np.arange(k1, k1 + builder.ndays))
        np.testing.assert_array_equal(windows.qsim_calb[0, i],
                                      2.0 * np.arange(k1, k1 + builder.ndays) + 1.0)


def test_interior_window_is_anchored_on_occurrence(twenty_year_builder):
    builder = twenty_year_builder
    windows = builder.build(7, 4)
    offsets = windows.occurrence_indices - windows.window_starts
    assert np.all(offsets == builder.target_offset)


def test_record_end_window_slides_back(twenty_year_builder):
    builder = twenty_year_builder
    windows = builder.build(12, 31)
    last_start = windows.window_starts[-1]
    assert last_start == builder.n_records - builder.ndays
    assert windows.occurrence_indices[-1] - last_start != builder.target_offset


def test_eligible_range_upper_bound_semantics():
    years, months, days = noleap_calendar(1990, 5)
    strict = find_occurrences(years, months, days, 3, 1, (1991, 1993), end_inclusive=False)
    inclusive = find_occurrences(years, months, days, 3, 1, (1991, 1993), end_inclusive=True)

    assert sorted(set(years[strict])) == [1991, 1992]
    assert sorted(set(years[inclusive])) == [1991, 1992, 1993]


def test_lead_rows_use_shifted_aggregate():
    years, months, days = noleap_calendar(1990, 3)
    lead_spans = [(2, 3)]        # lead 1 aggregates days 2..3, shift begin - lead = 1
    builder = make_builder(years, months, days, lead_spans, na=1, nf=1, buffer=2)
    n = years.size
    assert builder.upper == lookahead_bound(n, lead_spans) == n - 2

    windows = builder.build(5, 10)
    obs_agg = aggregate(np.arange(n, dtype=float), lead_spans)
    for i, k1 in enumerate(windows.window_starts):
        expected = obs_agg[0, np.arange(k1, k1 + builder.ndays) + 1]
        np.testing.assert_allclose(windows.qobs_calb[1, i], expected)


def test_builder_rejects_short_record():
    years, months, days = noleap_calendar(1990, 1)
    with pytest.raises(ValueError):
        make_builder(years[:20], months[:20], days[:20], [(1, 1)], na=3, nf=7, buffer=15)
