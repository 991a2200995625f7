import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, RegressorMixin, TransformerMixin
from sklearn.linear_model import LinearRegression
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score
from sklearn.pipeline import Pipeline
from sklearn.utils.validation import check_is_fitted

from charges_model.errors import InvalidQueryInputError, UnderdeterminedFitError
from charges_model.records import REGIONS, SEXES, SMOKER_VALUES, Record

logger = logging.getLogger(__name__)

# southeast is the reference region and has no indicator column
FEATURE_NAMES = (
    "age",
    "bmi",
    "children",
    "is_male",
    "is_smoker",
    "region_northeast",
    "region_northwest",
    "region_southwest",
)
INDICATOR_REGIONS = ("northeast", "northwest", "southwest")
N_PARAMETERS = len(FEATURE_NAMES) + 1

RecordLike = Union[Record, Mapping[str, Any]]


def as_record(record: RecordLike) -> Record:
    if isinstance(record, Record):
        return record
    return Record.from_mapping(record)


def encode(record: RecordLike) -> List[float]:
    """
    Turn one record into the model's feature vector.

    The vector follows FEATURE_NAMES: age, bmi, children, is_male, is_smoker and
    one indicator per non-reference region.

    Example:
        >>> encode({"age": 19, "sex": "female", "bmi": 27.9, "children": 0,
        ...         "smoker": "yes", "region": "southwest"})
        [19.0, 27.9, 0.0, 0.0, 1.0, 0.0, 0.0, 1.0]
    """
    record = as_record(record)
    if record.sex not in SEXES:
        raise InvalidQueryInputError(f"Unknown sex: {record.sex!r}")
    if record.smoker not in SMOKER_VALUES:
        raise InvalidQueryInputError(f"Unknown smoker value: {record.smoker!r}")
    if record.region not in REGIONS:
        raise InvalidQueryInputError(f"Unknown region: {record.region!r}")

    return [
        float(record.age),
        float(record.bmi),
        float(record.children),
        1.0 if record.sex == "male" else 0.0,
        1.0 if record.smoker == "yes" else 0.0,
    ] + [1.0 if record.region == region else 0.0 for region in INDICATOR_REGIONS]


class FeatureEncoder(BaseEstimator, TransformerMixin):
    """Encodes the sex, smoker and region columns of a dataset as indicators."""

    def fit(self, X, y=None):
        # Nothing to learn, the categories are fixed
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        unknown = (
            ~X["sex"].isin(SEXES) | ~X["smoker"].isin(SMOKER_VALUES) | ~X["region"].isin(REGIONS)
        )
        if unknown.any():
            raise InvalidQueryInputError(
                f"{int(unknown.sum())} rows have unknown sex, smoker or region values"
            )

        encoded = pd.DataFrame(index=X.index)
        encoded["age"] = X["age"].astype(float)
        encoded["bmi"] = X["bmi"].astype(float)
        encoded["children"] = X["children"].astype(float)
        encoded["is_male"] = (X["sex"] == "male").astype(float)
        encoded["is_smoker"] = (X["smoker"] == "yes").astype(float)
        for region in INDICATOR_REGIONS:
            encoded[f"region_{region}"] = (X["region"] == region).astype(float)
        return encoded[list(FEATURE_NAMES)]

    def get_feature_names_out(self, input_features=None):
        return np.array(FEATURE_NAMES, dtype=object)


@dataclass(frozen=True, eq=False)
class FittedModel:
    """Intercept and per-feature coefficients of a trained charges model."""
    intercept: float
    coefficients: Tuple[float, ...]
    n_records: int
    background: np.ndarray = field(repr=False)

    def coefficient(self, name: str) -> float:
        return self.coefficients[FEATURE_NAMES.index(name)]

    def as_dict(self) -> Dict[str, float]:
        return {"intercept": self.intercept, **dict(zip(FEATURE_NAMES, self.coefficients))}

    def raw_predict(self, features: List[float]) -> float:
        """Linear model output before the zero floor is applied."""
        return float(self.intercept + np.dot(self.coefficients, features))


class ChargesRegressor(RegressorMixin, BaseEstimator):

    def __init__(self, allow_underdetermined: bool = False) -> None:
        """
        Ordinary least squares regressor for insurance charges.

        Parameters:
        - allow_underdetermined (bool): fit even when there are fewer rows than
          coefficients, returning the minimum-norm least-squares solution.
        """
        self.allow_underdetermined = allow_underdetermined

    def _create_pipeline(self) -> Pipeline:
        pipeline = Pipeline(
            steps=[
                ("encoder", FeatureEncoder()),
                ("regressor", LinearRegression()),
            ]
        )
        return pipeline

    def fit(self, X: pd.DataFrame, y: Any) -> "ChargesRegressor":
        """
        Fit the pipeline to the data.

        Parameters:
        - X (pd.DataFrame): rows with age, sex, bmi, children, smoker, region.
        - y (Any): observed charges.

        Returns:
        - ChargesRegressor: Fitted instance of itself.

        Raises:
        - UnderdeterminedFitError: if X has fewer rows than coefficients and
          allow_underdetermined is False.
        """
        n_records = len(X)
        if n_records < N_PARAMETERS:
            if not self.allow_underdetermined or n_records == 0:
                raise UnderdeterminedFitError(n_records, N_PARAMETERS)
            logger.warning(
                f"Fitting {N_PARAMETERS} coefficients from only {n_records} records; "
                "the coefficients are not uniquely determined"
            )

        self.pipeline_ = self._create_pipeline()
        self.pipeline_.fit(X, np.asarray(y, dtype=float))
        self.n_records_ = n_records
        self.background_ = self.pipeline_.named_steps["encoder"].transform(X).to_numpy()

        logger.info(f"Fitted charges model on {n_records} records")
        return self

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """Predicted charges, floored at zero."""
        check_is_fitted(self, "pipeline_")
        return np.maximum(self.pipeline_.predict(X), 0.0)

    def fitted_model(self) -> FittedModel:
        """Snapshot the fitted coefficients as an immutable FittedModel."""
        check_is_fitted(self, "pipeline_")
        regressor = self.pipeline_.named_steps["regressor"]
        background = self.background_.copy()
        background.setflags(write=False)
        return FittedModel(
            intercept=float(regressor.intercept_),
            coefficients=tuple(float(c) for c in regressor.coef_),
            n_records=self.n_records_,
            background=background,
        )


def fit(dataset: pd.DataFrame, allow_underdetermined: bool = False) -> FittedModel:
    """
    Fit charges as a linear function of the encoded features.

    Parameters:
    - dataset (pd.DataFrame): cleaned dataset including the charges column.
    - allow_underdetermined (bool): see ChargesRegressor.

    Returns:
    - FittedModel: intercept plus one coefficient per FEATURE_NAMES entry.
    """
    X = dataset.drop(columns=["charges"])
    regressor = ChargesRegressor(allow_underdetermined=allow_underdetermined)
    regressor.fit(X, dataset["charges"])
    return regressor.fitted_model()


def predict(model: FittedModel, record: RecordLike) -> float:
    """
    Estimate charges for one record.

    Raises:
    - InvalidQueryInputError: if the record has out-of-range fields.
    """
    record = as_record(record).validate()
    return max(0.0, model.raw_predict(encode(record)))


def format_charges(value: float) -> str:
    """Format an amount as dollars, e.g. "$12,345.67"."""
    return f"${value:,.2f}"


@dataclass(frozen=True)
class ModelSummary:
    """In-sample fit statistics."""
    n_records: int
    r2: Optional[float]
    mae: float
    rmse: float


def evaluate(model: FittedModel, dataset: pd.DataFrame) -> ModelSummary:
    """Score the model's clamped predictions against the dataset's charges."""
    y_true = dataset["charges"].to_numpy(dtype=float)
    X = FeatureEncoder().transform(dataset).to_numpy()
    y_pred = np.maximum(model.intercept + X @ np.asarray(model.coefficients), 0.0)

    # r2 is undefined for fewer than two rows
    r2 = float(r2_score(y_true, y_pred)) if len(y_true) > 1 else None
    return ModelSummary(
        n_records=len(y_true),
        r2=r2,
        mae=float(mean_absolute_error(y_true, y_pred)),
        rmse=float(np.sqrt(mean_squared_error(y_true, y_pred))),
    )
