"""Shared fixtures: synthetic, gap-free daily records."""

import numpy as np
import pandas as pd
import pytest

from ensemble_postprocessing.config.settings import build_run_config
from ensemble_postprocessing.utils.data_loader import from_arrays


def synthetic_record(start="1990-01-01", end="1996-12-31", n_models=1, seed=7):
    """Seasonal streamflow-like observations with biased, noisy simulations."""
    dates = pd.date_range(start, end, freq="D")
    rng = np.random.default_rng(seed)
    doy = dates.dayofyear.to_numpy()
    obs = 10.0 + 5.0 * np.sin(2 * np.pi * doy / 365.25) + rng.gamma(2.0, 1.0, len(dates))
    sims = np.column_stack([
        0.8 * obs + 1.5 + rng.normal(0.0, 1.0 + i, len(dates)) for i in range(n_models)
    ])
    precip = rng.gamma(0.5, 2.0, len(dates))
    return dates, obs, sims, precip


def write_record(path, dates, obs, sims, precip):
    sims = np.asarray(sims).reshape(len(dates), -1)
    with open(path, "w", encoding="utf-8") as f:
        f.write("# year month day precip obs sims\n")
        for i, d in enumerate(dates):
            values = " ".join(f"{v:.3f}" for v in sims[i])
            f.write(f"{d.year} {d.month} {d.day} {precip[i]:.3f} {obs[i]:.3f} {values}\n")
    return path


@pytest.fixture
def record():
    return synthetic_record()


@pytest.fixture
def dataset(record):
    dates, obs, sims, precip = record
    return from_arrays(dates, obs, sims, precip, model_names=["hbv"])


@pytest.fixture
def two_model_dataset():
    dates, obs, sims, precip = synthetic_record(n_models=2)
    return from_arrays(dates, obs, sims, precip, model_names=["hbv", "gr4j"])


@pytest.fixture
def small_config():
    return build_run_config(
        forecast_len=3,
        analysis_len=2,
        buffer_len=4,
        ensemble_size=5,
        calibration_years=3,
        eligible_years=(1990, 1997),
        verification_years=(1994, 1996),
        seed=2024,
        n_jobs=1,
    )


@pytest.fixture
def input_file(tmp_path, record):
    dates, obs, sims, precip = record
    return write_record(tmp_path / "station.txt", dates, obs, sims, precip)
