"""
Insurance Dataset Loading
=========================

Reads the insurance CSV (age, sex, bmi, children, smoker, region, charges) and
cleans it into the dataset the model is trained on. When the file cannot be
read, a fixed six-row sample is used instead so callers always get data back.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

import numpy as np
import pandas as pd

from charges_model.errors import SourceUnavailableError
from charges_model.records import (COLUMNS, MAX_AGE, MIN_AGE, NUMERIC_COLUMNS,
                                   REGIONS, SEXES, SMOKER_VALUES, TEXT_COLUMNS)

logger = logging.getLogger(__name__)

FALLBACK_SAMPLE = pd.DataFrame(
    {
        "age": [19, 33, 60, 36, 52, 38],
        "sex": ["female", "male", "female", "male", "female", "male"],
        "bmi": [27.9, 22.7, 25.8, 30.3, 32.4, 26.3],
        "children": [0, 2, 1, 3, 0, 1],
        "smoker": ["yes", "no", "no", "yes", "no", "yes"],
        "region": ["southwest", "northwest", "southeast", "northeast", "northwest", "northeast"],
        "charges": [16884.92, 3866.86, 11380.64, 21976.28, 10600.55, 29523.17],
    }
)

_NON_NUMERIC = re.compile(r"[^0-9.\-]")


def parse_currency(value: Any) -> float:
    """
    Parse a charges value that may carry currency formatting.

    Example:
        >>> parse_currency("$1,234.56")
        1234.56
    """
    if isinstance(value, (int, float, np.integer, np.floating)):
        return float(value)
    cleaned = _NON_NUMERIC.sub("", str(value))
    try:
        return float(cleaned)
    except ValueError:
        return np.nan


@dataclass
class LoadReport:
    """What the last load read and kept."""
    source: str
    rows_read: int
    rows_kept: int
    used_fallback: bool

    @property
    def rows_dropped(self) -> int:
        return self.rows_read - self.rows_kept


class DataLoader:
    """Loads and cleans the insurance dataset, falling back to a built-in sample."""

    def __init__(self, path: Union[str, Path] = "insurance.csv"):
        self.path = Path(path)
        self.last_report = None

    def _read_source(self) -> pd.DataFrame:
        """Read the CSV, raising SourceUnavailableError on any failure."""
        try:
            df = pd.read_csv(self.path)
        except (OSError, ValueError, pd.errors.ParserError) as e:
            raise SourceUnavailableError(f"Could not read {self.path}: {e}") from e

        df.columns = df.columns.str.strip().str.lower()
        missing = [col for col in COLUMNS if col not in df.columns]
        if missing:
            raise SourceUnavailableError(f"{self.path} is missing columns: {missing}")
        return df[COLUMNS].copy()

    def load(self) -> pd.DataFrame:
        """
        Load the dataset.

        Returns:
        - pd.DataFrame: cleaned rows with columns age, sex, bmi, children,
          smoker, region, charges.
        """
        try:
            raw = self._read_source()
            source = str(self.path)
            used_fallback = False
        except SourceUnavailableError as e:
            logger.warning(f"{e}; using the built-in sample data")
            raw = FALLBACK_SAMPLE.copy()
            source = "fallback sample"
            used_fallback = True

        df = clean_dataset(raw)

        self.last_report = LoadReport(
            source=source,
            rows_read=len(raw),
            rows_kept=len(df),
            used_fallback=used_fallback,
        )
        if self.last_report.rows_dropped:
            logger.info(
                f"Dropped {self.last_report.rows_dropped} of {len(raw)} rows "
                f"from {source} with missing or invalid fields"
            )
        logger.debug(f"Loaded {len(df)} rows from {source}")
        return df


def clean_dataset(df: pd.DataFrame) -> pd.DataFrame:
    """
    Drop incomplete or out-of-range rows, normalize text fields and coerce
    numeric columns.
    """
    df = df.dropna().copy()

    for col in TEXT_COLUMNS:
        df[col] = df[col].astype(str).str.strip().str.lower()

    if not pd.api.types.is_numeric_dtype(df["charges"]):
        df["charges"] = df["charges"].map(parse_currency)
    df["charges"] = df["charges"].astype(float)

    for col in NUMERIC_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce")

    df = df.dropna()
    valid = (
        df["sex"].isin(SEXES)
        & df["smoker"].isin(SMOKER_VALUES)
        & df["region"].isin(REGIONS)
        & df["age"].between(MIN_AGE, MAX_AGE)
        & (df["bmi"] > 0)
        & (df["children"] >= 0)
        & (df["children"] % 1 == 0)
        & (df["charges"] >= 0)
    )
    df = df.loc[valid].copy()
    df["children"] = df["children"].astype(int)

    return df[COLUMNS].reset_index(drop=True)


def load_dataset(path: Union[str, Path] = "insurance.csv") -> pd.DataFrame:
    return DataLoader(path).load()
