import pytest

from ensemble_postprocessing.config.settings import (
    build_run_config, get_calibration_config, get_lead_spans, validate_config, window_length
)


def test_default_run_config():
    config = build_run_config()
    assert config["lead_spans"] == get_lead_spans()
    assert len(config["lead_spans"]) == config["forecast_len"] == 7
    assert window_length(config) == 3 + 7 + 15
    assert config["eligible_end_inclusive"] is False
    assert config["verification_end_inclusive"] is True


def test_forecast_len_override_generates_single_day_spans():
    config = build_run_config(forecast_len=4)
    assert config["lead_spans"] == [(1, 1), (2, 2), (3, 3), (4, 4)]


def test_explicit_lead_spans():
    config = build_run_config(lead_spans=[(1, 2), (2, 4)], forecast_len=2)
    assert config["lead_spans"] == [(1, 2), (2, 4)]


def test_getters_return_copies():
    config = get_calibration_config()
    config["seed"] = -1
    assert get_calibration_config()["seed"] != -1


@pytest.mark.parametrize("overrides", [
    {"unknown_key": 1},
    {"ensemble_size": 0},
    {"buffer_len": -1},
    {"verification_years": (2010, 2001)},
    {"eligible_years": (1990,)},
    {"backend": "cluster"},
])
def test_invalid_overrides(overrides):
    with pytest.raises(ValueError):
        build_run_config(**overrides)


def test_lead_span_count_must_match_forecast_len():
    with pytest.raises(ValueError):
        build_run_config(lead_spans=[(1, 1)], forecast_len=2)


def test_invalid_lead_span():
    with pytest.raises(ValueError):
        build_run_config(lead_spans=[(3, 2)], forecast_len=1)
    config = build_run_config()
    config["lead_spans"][0] = (0, 1)
    with pytest.raises(ValueError):
        validate_config(config)
