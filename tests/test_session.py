import os

import pytest

from charges_model.ChargesModel import format_charges, predict
from charges_model.charges_explainer import explain
from charges_model.errors import InvalidQueryInputError, UnderdeterminedFitError
from charges_model.session import (FACTORS_PLACEHOLDER, PREDICTION_PLACEHOLDER,
                                   ModelSession, PredictionPanel, PredictionState)

from conftest import make_dataset


@pytest.fixture
def csv_path(tmp_path):
    path = tmp_path / "insurance.csv"
    make_dataset(n=50, seed=3).to_csv(path, index=False)
    return path


def test_dataset_and_model_are_cached(csv_path):
    session = ModelSession(csv_path)

    assert session.dataset is session.dataset
    assert session.model is session.model
    assert len(session.dataset) == 50
    assert session.load_report.rows_kept == 50


def test_file_change_invalidates_cache(csv_path):
    session = ModelSession(csv_path)
    first_dataset = session.dataset
    first_model = session.model

    make_dataset(n=80, seed=4).to_csv(csv_path, index=False)
    stat = csv_path.stat()
    os.utime(csv_path, (stat.st_atime, stat.st_mtime + 10))

    assert session.dataset is not first_dataset
    assert len(session.dataset) == 80
    assert session.model is not first_model
    assert session.model.n_records == 80


def test_refresh_reloads(csv_path):
    session = ModelSession(csv_path)
    first_dataset = session.dataset
    first_model = session.model

    session.refresh()

    assert session.dataset is not first_dataset
    assert session.model is not first_model
    assert session.model.coefficients == pytest.approx(first_model.coefficients)


def test_missing_source_is_underdetermined_by_default(tmp_path):
    session = ModelSession(tmp_path / "missing.csv")

    assert len(session.dataset) == 6
    with pytest.raises(UnderdeterminedFitError):
        session.model


def test_missing_source_with_underdetermined_fit_allowed(tmp_path, smoker_record):
    session = ModelSession(tmp_path / "missing.csv", allow_underdetermined=True)

    assert session.model.n_records == 6
    assert predict(session.model, smoker_record) > 10000


def test_panel_shows_placeholders_until_triggered(synthetic_model):
    panel = PredictionPanel()

    assert panel.state is PredictionState.IDLE
    assert panel.result_text() == PREDICTION_PLACEHOLDER
    assert panel.factor_lines(synthetic_model) == [FACTORS_PLACEHOLDER]
    assert panel.trigger_count == 0


def test_panel_trigger(synthetic_model, smoker_record):
    panel = PredictionPanel()

    value = panel.trigger(synthetic_model, smoker_record)

    assert panel.state is PredictionState.PREDICTED
    assert value == predict(synthetic_model, smoker_record)
    assert panel.result_text() == format_charges(value)
    assert panel.factor_lines(synthetic_model) == explain(synthetic_model)
    assert panel.record == smoker_record
    assert panel.trigger_count == 1

    panel.reset()
    assert panel.state is PredictionState.IDLE
    assert panel.result_text() == PREDICTION_PLACEHOLDER


def test_panel_invalid_trigger_keeps_state(synthetic_model, smoker_record):
    panel = PredictionPanel()

    with pytest.raises(InvalidQueryInputError):
        panel.trigger(synthetic_model, {**smoker_record, "region": "nowhere"})

    assert panel.state is PredictionState.IDLE
    assert panel.trigger_count == 0


def test_summary_is_cached_until_refresh(csv_path):
    session = ModelSession(csv_path)
    summary = session.summary

    assert session.summary is summary
    assert summary.n_records == len(session.dataset)

    session.refresh()

    assert session.summary is not summary
    assert session.summary.rmse == pytest.approx(summary.rmse)
