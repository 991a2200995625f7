"""
Per-session caching of the dataset and fitted model, and the state of the
prediction panel.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd

from charges_model.ChargesModel import (FittedModel, ModelSummary, RecordLike,
                                        evaluate, fit, format_charges, predict)
from charges_model.charges_explainer import explain
from charges_model.data_loader import DataLoader, LoadReport

logger = logging.getLogger(__name__)

PREDICTION_PLACEHOLDER = "Click the 'Predict Charges' button to see your estimated insurance cost"
FACTORS_PLACEHOLDER = "Click the 'Predict Charges' button to see model information"


class ModelSession:
    """
    Loads the dataset and fits the model at most once per version of the
    source file.

    The cache key is the source file's modification time, so editing the CSV
    (or creating it) triggers a reload on next access. refresh() forces one.
    """

    def __init__(self, path: Union[str, Path], allow_underdetermined: bool = False):
        self.loader = DataLoader(path)
        self.allow_underdetermined = allow_underdetermined
        self._dataset = None
        self._model = None
        self._summary = None
        self._key = None

    def _source_key(self) -> Optional[float]:
        try:
            return self.loader.path.stat().st_mtime
        except OSError:
            return None

    def _check_source(self):
        key = self._source_key()
        if key != self._key:
            if self._dataset is not None:
                logger.info(f"{self.loader.path} changed, reloading")
            self.refresh()
            self._key = key

    def refresh(self):
        """Drop the cached dataset, model and fit summary."""
        self._dataset = None
        self._model = None
        self._summary = None

    @property
    def dataset(self) -> pd.DataFrame:
        self._check_source()
        if self._dataset is None:
            self._dataset = self.loader.load()
        return self._dataset

    @property
    def load_report(self) -> Optional[LoadReport]:
        return self.loader.last_report

    @property
    def model(self) -> FittedModel:
        """
        The fitted model for the current dataset.

        Raises:
        - UnderdeterminedFitError: if the dataset is too small to fit.
        """
        dataset = self.dataset
        if self._model is None:
            self._model = fit(dataset, allow_underdetermined=self.allow_underdetermined)
        return self._model

    @property
    def summary(self) -> ModelSummary:
        """In-sample fit statistics of the current model."""
        model = self.model
        if self._summary is None:
            self._summary = evaluate(model, self.dataset)
        return self._summary


class PredictionState(Enum):
    IDLE = "idle"
    PREDICTED = "predicted"


class PredictionPanel:
    """Holds the last prediction; only an explicit trigger computes one."""

    def __init__(self):
        self.state = PredictionState.IDLE
        self.prediction = None
        self.record = None
        self.trigger_count = 0

    def trigger(self, model: FittedModel, record: RecordLike) -> float:
        self.prediction = predict(model, record)
        self.record = record
        self.trigger_count += 1
        self.state = PredictionState.PREDICTED
        return self.prediction

    def reset(self):
        self.state = PredictionState.IDLE
        self.prediction = None
        self.record = None

    def result_text(self) -> str:
        if self.state is PredictionState.IDLE:
            return PREDICTION_PLACEHOLDER
        return format_charges(self.prediction)

    def factor_lines(self, model: FittedModel) -> List[str]:
        if self.state is PredictionState.IDLE:
            return [FACTORS_PLACEHOLDER]
        return explain(model)
