import math

import numpy as np
import pytest

from ensemble_postprocessing.core.verification import (
    VerificationEngine, bias_ratio, compute_skill, nash_sutcliffe_efficiency,
    pearson_correlation, records_to_frame, root_mean_square_error, skill_score_table
)


def test_perfect_forecast_scores():
    obs = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
    pred = np.array([1.0, 2.0, 3.0, 4.0, 5.0])

    assert root_mean_square_error(obs, pred) == 0.0
    assert pearson_correlation(obs, pred) == pytest.approx(1.0)
    assert nash_sutcliffe_efficiency(obs, pred) == 1.0
    for predictor in ("ensemble_mean", "raw", "calibrated"):
        assert compute_skill(obs, pred, 1, predictor).bias == 1.0


def test_constant_observations_make_efficiency_undefined():
    obs = np.full(6, 3.0)
    for pred in (np.full(6, 3.0), np.arange(6.0), np.full(6, 10.0)):
        assert math.isnan(nash_sutcliffe_efficiency(obs, pred))
        for predictor in ("ensemble_mean", "raw", "calibrated"):
            assert math.isnan(compute_skill(obs, pred, 1, predictor).efficiency)


def test_constant_series_make_correlation_undefined():
    assert math.isnan(pearson_correlation(np.full(4, 2.0), np.arange(4.0)))
    assert math.isnan(pearson_correlation(np.arange(4.0), np.full(4, 2.0)))


def test_bias_ratio_is_inverted_for_ensemble_mean():
    # Documented quirk: ensemble mean uses sum(obs)/sum(pred),
    # raw and calibrated simulations use sum(pred)/sum(obs).
    obs = np.array([1.0, 2.0, 3.0, 4.0])     # sum 10
    pred = np.array([2.0, 4.0, 6.0, 8.0])    # sum 20

    assert compute_skill(obs, pred, 1, "ensemble_mean").bias == pytest.approx(0.5)
    assert compute_skill(obs, pred, 1, "raw").bias == pytest.approx(2.0)
    assert compute_skill(obs, pred, 1, "calibrated").bias == pytest.approx(2.0)


def test_bias_ratio_zero_denominator_undefined():
    assert math.isnan(bias_ratio(np.ones(3), np.zeros(3)))


def test_known_efficiency_value():
    obs = np.array([1.0, 2.0, 3.0, 4.0])
    pred = np.array([1.0, 2.0, 3.0, 5.0])
    # mse = 0.25, var(obs) = 1.25
    assert nash_sutcliffe_efficiency(obs, pred) == pytest.approx(0.8)


def make_case(n_years=3, n_leads=2, n_members=3):
    years = np.repeat(np.arange(2000, 2000 + n_years), 10)
    n = years.size
    obs = np.sin(np.arange(n) / 3.0) + 2.0
    obs_agg = np.vstack([obs] * n_leads)
    sim_agg = obs_agg + 0.5
    cal_agg = obs_agg.copy()
    # ensemble mean at t for lead j equals obs_agg[j, t + j - 1]
    ensemble = np.empty((n, n_leads, n_members))
    for j in range(1, n_leads + 1):
        shifted = obs_agg[j - 1, np.minimum(np.arange(n) + j - 1, n - 1)]
        ensemble[:, j - 1, :] = shifted[:, None] + np.array([-0.1, 0.0, 0.1])
    return years, obs, obs_agg, sim_agg, cal_agg, ensemble


def test_verify_record_layout_and_alignment():
    years, obs, obs_agg, sim_agg, cal_agg, ensemble = make_case()
    engine = VerificationEngine(years, (2001, 2002), end_inclusive=True)
    records = engine.verify(obs_agg, sim_agg, cal_agg, ensemble, obs, obs + 0.5)

    assert len(records) == 3 * 2 + 2
    assert engine.verification_indices().tolist() == list(range(10, 30))

    ensemble_rows = [r for r in records if r.predictor == "ensemble_mean"]
    for record in ensemble_rows:
        assert record.efficiency == pytest.approx(1.0)
        assert record.rmse == pytest.approx(0.0, abs=1e-12)
        assert record.n_samples == 20

    calibrated_only = records[-2]
    raw_only = records[-1]
    assert (calibrated_only.lead, calibrated_only.predictor) == (3, "calibrated")
    assert (raw_only.lead, raw_only.predictor) == (4, "raw")
    assert calibrated_only.efficiency == pytest.approx(1.0)
    assert raw_only.rmse == pytest.approx(0.5)
    assert raw_only.bias > 1.0


def test_verification_end_exclusive():
    years, *_ = make_case()
    engine = VerificationEngine(years, (2001, 2002), end_inclusive=False)
    assert engine.verification_indices().tolist() == list(range(10, 20))


def test_empty_verification_range_raises():
    years, obs, obs_agg, sim_agg, cal_agg, ensemble = make_case()
    engine = VerificationEngine(years, (1950, 1960))
    with pytest.raises(ValueError):
        engine.verify(obs_agg, sim_agg, cal_agg, ensemble, obs, obs)


def test_skill_score_table_rows():
    years, obs, obs_agg, sim_agg, cal_agg, ensemble = make_case()
    records = VerificationEngine(years, (2000, 2002)).verify(
        obs_agg, sim_agg, cal_agg, ensemble, obs, obs + 0.5)
    frame = records_to_frame(records)
    table = skill_score_table(frame)

    assert list(table.columns) == ["LeadTime", "R", "EfficiencyScore", "Bias", "RMSE"]
    assert table["LeadTime"].tolist() == [1, 2, 3, 4]
    assert len(frame) == 8
