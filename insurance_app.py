#!/usr/bin/env python3
"""
Insurance Charges Prediction App
================================

A Streamlit application that fits a linear model to insurance charges and
estimates the cost for one person, alongside two exploratory charts.

Usage:
    streamlit run insurance_app.py
"""

import logging

import matplotlib.pyplot as plt
import streamlit as st

from charges_model import config
from charges_model.charges_explainer import ChargesExplainer
from charges_model.charts import age_charges_figure, smoker_boxplot_figure
from charges_model.errors import InvalidQueryInputError, UnderdeterminedFitError
from charges_model.session import PredictionPanel, PredictionState, ModelSession

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


def get_session() -> ModelSession:
    """Dataset and model cache for this browser session."""
    if "model_session" not in st.session_state:
        st.session_state.model_session = ModelSession(
            config.DATA_PATH, allow_underdetermined=config.ALLOW_UNDERDETERMINED_FIT
        )
    return st.session_state.model_session


def get_panel() -> PredictionPanel:
    if "prediction_panel" not in st.session_state:
        st.session_state.prediction_panel = PredictionPanel()
    return st.session_state.prediction_panel


def sidebar_inputs() -> dict:
    """Render the input widgets and return the query record."""
    st.sidebar.header("Your Details")
    return {
        "age": st.sidebar.number_input("Age:", min_value=18, max_value=100, value=30),
        "sex": st.sidebar.selectbox("Sex:", ["male", "female"]),
        "bmi": st.sidebar.number_input("BMI:", min_value=10.0, max_value=50.0, value=25.0, step=0.1),
        "children": st.sidebar.number_input("Number of Children:", min_value=0, max_value=10, value=0),
        "smoker": st.sidebar.radio("Smoker:", ["yes", "no"]),
        "region": st.sidebar.selectbox(
            "Region:", ["northeast", "northwest", "southeast", "southwest"]
        ),
    }


def main():
    """Main Streamlit application."""

    st.set_page_config(
        page_title="Insurance Charges Prediction",
        page_icon="💵",
        layout="wide"
    )
    st.title("Insurance Charges Prediction")

    session = get_session()
    panel = get_panel()

    record = sidebar_inputs()
    predict_clicked = st.sidebar.button("Predict Charges", type="primary")

    st.sidebar.markdown("---")
    if st.sidebar.button("Reload data"):
        session.refresh()
        panel.reset()

    dataset = session.dataset
    report = session.load_report
    if report is not None:
        st.sidebar.caption(f"Data: {report.source} ({report.rows_kept} rows)")

    try:
        model = session.model
    except UnderdeterminedFitError as e:
        logger.error(f"Model unavailable: {e}")
        model = None

    if predict_clicked and model is not None:
        try:
            panel.trigger(model, record)
        except InvalidQueryInputError as e:
            st.sidebar.error(f"Invalid input: {e}")

    prediction_tab, exploration_tab = st.tabs(["Prediction", "Data Exploration"])

    with prediction_tab:
        st.subheader("Your Estimated Insurance Charges:")
        if model is None:
            st.warning("The prediction model is currently unavailable. Please contact the administrator.")
        else:
            st.write(panel.result_text())

            st.markdown("#### Key Factors Affecting Insurance Charges:")
            lines = panel.factor_lines(model)
            if panel.state is PredictionState.PREDICTED:
                st.text("Most important factors affecting insurance cost:\n\n" + "\n".join(
                    f"{i}. {line}" for i, line in enumerate(lines, start=1)
                ))

                with st.expander("Breakdown of your estimate", expanded=False):
                    try:
                        explanation = ChargesExplainer(model).explain_full(panel.record)
                        st.text(explanation.text_explanation)
                        if explanation.waterfall_plot is not None:
                            st.pyplot(explanation.waterfall_plot, clear_figure=True)
                            plt.close(explanation.waterfall_plot)
                    except InvalidQueryInputError as e:
                        st.warning(f"Could not explain this estimate: {e}")

                with st.expander("Model fit", expanded=False):
                    summary = session.summary
                    col1, col2, col3 = st.columns(3)
                    col1.metric("R²", f"{summary.r2:.3f}" if summary.r2 is not None else "N/A")
                    col2.metric("MAE", f"${summary.mae:,.2f}")
                    col3.metric("RMSE", f"${summary.rmse:,.2f}")
                    st.caption(f"Fitted on {model.n_records} records")
            else:
                st.text(lines[0])

    with exploration_tab:
        st.plotly_chart(age_charges_figure(dataset), use_container_width=True)
        st.plotly_chart(smoker_boxplot_figure(dataset), use_container_width=True)


if __name__ == "__main__":
    main()
