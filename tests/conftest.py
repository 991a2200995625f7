import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from charges_model.ChargesModel import fit
from charges_model.data_loader import FALLBACK_SAMPLE, clean_dataset

TRUE_COEFFICIENTS = {
    "intercept": -2000.0,
    "age": 260.0,
    "bmi": 320.0,
    "children": 475.0,
    "is_male": -130.0,
    "is_smoker": 23800.0,
    "region_northeast": 950.0,
    "region_northwest": 600.0,
    "region_southwest": -300.0,
}


def make_dataset(n=300, noise=500.0, seed=0):
    rng = np.random.default_rng(seed)
    df = pd.DataFrame({
        "age": rng.integers(18, 65, n),
        "sex": rng.choice(["male", "female"], n),
        "bmi": np.round(rng.uniform(16, 45, n), 1),
        "children": rng.integers(0, 5, n),
        "smoker": rng.choice(["yes", "no"], n, p=[0.2, 0.8]),
        "region": rng.choice(["northeast", "northwest", "southeast", "southwest"], n),
    })
    c = TRUE_COEFFICIENTS
    charges = (
        c["intercept"]
        + c["age"] * df["age"]
        + c["bmi"] * df["bmi"]
        + c["children"] * df["children"]
        + c["is_male"] * (df["sex"] == "male")
        + c["is_smoker"] * (df["smoker"] == "yes")
        + c["region_northeast"] * (df["region"] == "northeast")
        + c["region_northwest"] * (df["region"] == "northwest")
        + c["region_southwest"] * (df["region"] == "southwest")
    )
    df["charges"] = np.round(charges + rng.normal(0, noise, n), 2)
    return df


@pytest.fixture
def synthetic_dataset():
    return make_dataset()


@pytest.fixture
def synthetic_model(synthetic_dataset):
    return fit(synthetic_dataset)


@pytest.fixture
def fallback_dataset():
    return clean_dataset(FALLBACK_SAMPLE)


@pytest.fixture
def smoker_record():
    return {"age": 19, "sex": "female", "bmi": 27.9, "children": 0, "smoker": "yes", "region": "southwest"}
