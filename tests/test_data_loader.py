import pandas as pd
import pytest

from charges_model.data_loader import (FALLBACK_SAMPLE, DataLoader, clean_dataset,
                                       load_dataset, parse_currency)
from charges_model.records import COLUMNS


def test_missing_file_uses_fallback_sample(tmp_path):
    loader = DataLoader(tmp_path / "does_not_exist.csv")
    df = loader.load()

    assert len(df) == 6
    assert list(df.columns) == COLUMNS
    assert set(df["smoker"]) == {"yes", "no"}
    assert set(df["region"]) == {"northeast", "northwest", "southeast", "southwest"}
    assert df["charges"].tolist() == FALLBACK_SAMPLE["charges"].tolist()
    assert loader.last_report.used_fallback
    assert loader.last_report.source == "fallback sample"


def test_load_is_repeatable(tmp_path):
    path = tmp_path / "missing.csv"
    pd.testing.assert_frame_equal(load_dataset(path), load_dataset(path))


def test_missing_columns_fall_back(tmp_path):
    path = tmp_path / "insurance.csv"
    pd.DataFrame({"age": [30], "bmi": [22.0]}).to_csv(path, index=False)

    loader = DataLoader(path)
    df = loader.load()

    assert len(df) == 6
    assert loader.last_report.used_fallback


def test_empty_file_falls_back(tmp_path):
    path = tmp_path / "insurance.csv"
    path.write_text("")

    assert len(DataLoader(path).load()) == 6


def test_parse_currency():
    assert parse_currency("$1,234.56") == pytest.approx(1234.56)
    assert parse_currency(" 99 ") == pytest.approx(99.0)
    assert parse_currency(12) == 12.0
    assert pd.isna(parse_currency("n/a"))


def test_reads_and_cleans_csv(tmp_path):
    path = tmp_path / "insurance.csv"
    path.write_text(
        " Age,Sex,BMI,Children,Smoker,Region,Charges\n"
        '19,FEMALE,27.9,0,Yes,SouthWest,"$16,884.92"\n'
        '33,male,22.7,2,no,northwest,"$1,234.56"\n'
        "60,female,,1,no,southeast,$11380.64\n"
        "45,male,30.1,1,no,atlantis,$5000.00\n"
    )

    loader = DataLoader(path)
    df = loader.load()

    assert not loader.last_report.used_fallback
    assert loader.last_report.rows_read == 4
    assert loader.last_report.rows_kept == 2
    assert loader.last_report.rows_dropped == 2
    assert df["sex"].tolist() == ["female", "male"]
    assert df["smoker"].tolist() == ["yes", "no"]
    assert df["region"].tolist() == ["southwest", "northwest"]
    assert df["charges"].tolist() == pytest.approx([16884.92, 1234.56])
    assert df.index.tolist() == [0, 1]


def test_clean_dataset_drops_unparseable_charges():
    raw = FALLBACK_SAMPLE.copy()
    raw["charges"] = raw["charges"].astype(str)
    raw.loc[0, "charges"] = "unknown"

    df = clean_dataset(raw)

    assert len(df) == 5
    assert df["charges"].dtype == float


def test_clean_dataset_drops_out_of_range_rows():
    raw = pd.concat([FALLBACK_SAMPLE] * 2, ignore_index=True)
    raw["children"] = raw["children"].astype(float)
    raw.loc[0, "children"] = 1.5
    raw.loc[1, "charges"] = -10.0
    raw.loc[2, "bmi"] = 0.0
    raw.loc[3, "age"] = 130

    df = clean_dataset(raw)

    assert len(df) == 8
    assert (df["children"] >= 0).all()
    assert (df["bmi"] > 0).all()
    assert (df["charges"] >= 0).all()
    assert df["age"].max() <= 120
    assert df["children"].dtype.kind == "i"
