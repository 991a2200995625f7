#!/usr/bin/env python3
"""
Charges Model Explanations
==========================

Turns a fitted charges model into readable statements about what raises the
cost of insurance, and breaks a single prediction down into per-feature SHAP
contributions.

Usage:
    python -m charges_model.charges_explainer --help
    python -m charges_model.charges_explainer --age 19 --sex female --bmi 27.9 \
        --children 0 --smoker yes --region southwest
"""

import argparse
import logging
import pickle
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import shap

from charges_model import config
from charges_model.ChargesModel import (FEATURE_NAMES, FittedModel, RecordLike,
                                        as_record, encode, fit, format_charges)
from charges_model.data_loader import DataLoader
from charges_model.errors import ChargesModelError

logger = logging.getLogger(__name__)

# (coefficient, label, unit description), in reporting order
KEY_FACTORS = [
    ("is_smoker", "Smoking status", "Being a smoker"),
    ("age", "Age", "Each additional year"),
    ("bmi", "BMI", "Each additional BMI point"),
    ("children", "Children", "Each additional child"),
]

DISPLAY_NAMES = {
    "age": "Age",
    "bmi": "BMI",
    "children": "Children",
    "is_male": "Sex = male",
    "is_smoker": "Smoker = yes",
    "region_northeast": "Region = northeast",
    "region_northwest": "Region = northwest",
    "region_southwest": "Region = southwest",
}


def explain(model: FittedModel) -> List[str]:
    """
    List the key factors that raise insurance cost.

    Smoking, age, BMI and children are reported in that order, each only when
    its coefficient is positive.
    """
    statements = []
    for name, label, unit in KEY_FACTORS:
        coef = model.coefficient(name)
        if coef > 0:
            statements.append(
                f"{label}: {unit} increases cost by about ${round(coef):,}"
            )
    return statements


@dataclass
class ChargesExplanation:
    """Container for a single prediction and its feature contributions."""
    prediction: float
    raw_prediction: float
    base_value: float
    contributions_df: pd.DataFrame
    text_explanation: str
    waterfall_plot: Optional[plt.Figure] = None

    @property
    def clamped(self) -> bool:
        """True when the linear output was negative and floored at zero."""
        return self.raw_prediction < 0


class ChargesExplainer:
    """SHAP explainer for a fitted linear charges model."""

    def __init__(self, model: FittedModel):
        self.model = model
        masker = shap.maskers.Independent(
            model.background, max_samples=max(100, len(model.background))
        )
        self.explainer = shap.LinearExplainer(
            (np.asarray(model.coefficients), model.intercept), masker
        )

    @property
    def base_value(self) -> float:
        return float(np.ravel(self.explainer.expected_value)[0])

    def _contributions(self, features: List[float]) -> np.ndarray:
        values = self.explainer.shap_values(np.array([features]))
        return np.asarray(values).reshape(-1)

    def explain_full(
        self,
        record: RecordLike,
        max_features: int = len(FEATURE_NAMES),
        include_plot: bool = True,
    ) -> ChargesExplanation:
        """
        Generate the complete explanation for one record.

        Args:
            record: Record or mapping with age, sex, bmi, children, smoker, region
            max_features: Maximum number of features to list in the text
            include_plot: Whether to draw the matplotlib waterfall plot

        Returns:
            ChargesExplanation with the clamped prediction, the raw linear output,
            the SHAP base value and a contributions table sorted by impact.
        """
        record = as_record(record).validate()
        features = encode(record)
        raw_prediction = self.model.raw_predict(features)
        values = self._contributions(features)

        df_contrib = pd.DataFrame(
            {
                "feature": list(FEATURE_NAMES),
                "display_name": [DISPLAY_NAMES[f] for f in FEATURE_NAMES],
                "value": features,
                "coefficient": list(self.model.coefficients),
                "contribution": values,
            }
        )
        df_contrib["abs_contribution"] = df_contrib["contribution"].abs()
        df_contrib = df_contrib.sort_values("abs_contribution", ascending=False).reset_index(drop=True)
        df_contrib["rank"] = range(1, len(df_contrib) + 1)
        df_contrib["impact_direction"] = np.where(
            df_contrib["contribution"] > 0, "Increases", "Decreases"
        )

        text_output = self._generate_text_explanation(
            raw_prediction, self.base_value, df_contrib, max_features
        )

        waterfall_fig = None
        if include_plot:
            waterfall_fig = self._create_waterfall_plot(features, values, max_features)

        return ChargesExplanation(
            prediction=max(0.0, raw_prediction),
            raw_prediction=raw_prediction,
            base_value=self.base_value,
            contributions_df=df_contrib,
            text_explanation=text_output,
            waterfall_plot=waterfall_fig,
        )

    def explain_text(self, record: RecordLike, max_features: int = len(FEATURE_NAMES)) -> str:
        return self.explain_full(record, max_features, include_plot=False).text_explanation

    def _generate_text_explanation(
        self,
        raw_prediction: float,
        base_value: float,
        df_contrib: pd.DataFrame,
        max_features: int,
    ) -> str:
        output = []
        output.append("=" * 60)
        output.append("CHARGES BREAKDOWN")
        output.append("=" * 60)
        output.append(f"Average charges (base):   {format_charges(base_value)}")
        output.append(f"Model output:             {raw_prediction:,.2f}")
        output.append("")
        output.append("Feature contributions (sorted by impact):")
        output.append("-" * 60)

        running_total = base_value
        shown = df_contrib.head(max_features)
        for i, row in enumerate(shown.itertuples()):
            running_total += row.contribution
            direction = "↑" if row.contribution > 0 else "↓"
            output.append(
                f"{i + 1:2d}. {row.display_name:<24} "
                f"{row.contribution:+12,.2f} {direction} "
                f"(Total: {running_total:12,.2f})"
            )

        if len(df_contrib) > max_features:
            remaining = df_contrib["contribution"].iloc[max_features:].sum()
            running_total += remaining
            output.append(
                f"    {'... remaining features':<24} "
                f"{remaining:+12,.2f}   "
                f"(Total: {running_total:12,.2f})"
            )

        output.append("-" * 60)
        if raw_prediction < 0:
            output.append("Model output is negative; the estimate is floored at $0.00")
        output.append(f"Estimated charges: {format_charges(max(0.0, raw_prediction))}")

        return "\n".join(output)

    def _create_waterfall_plot(
        self, features: List[float], values: np.ndarray, max_features: int
    ) -> plt.Figure:
        explanation = shap.Explanation(
            values=values,
            base_values=self.base_value,
            data=np.array(features),
            feature_names=[DISPLAY_NAMES[f] for f in FEATURE_NAMES],
        )

        plt.figure(figsize=(10, 6))
        shap.plots.waterfall(explanation, max_display=max_features, show=False)
        # Callers own the figure and must close it
        return plt.gcf()


def load_fitted_model(model_path: str) -> FittedModel:
    """Load a pickled FittedModel written by create_fresh_model."""
    with open(model_path, "rb") as f:
        model = pickle.load(f)
    if not isinstance(model, FittedModel):
        raise TypeError(f"{model_path} does not contain a FittedModel")
    return model


def main():
    """Main function for command line usage."""
    parser = argparse.ArgumentParser(
        description="Estimate insurance charges and explain the estimate"
    )
    parser.add_argument("--data", type=str, default=config.DATA_PATH, help="Insurance CSV to train on")
    parser.add_argument("--model", type=str, help="Pickled model from create_fresh_model (skips training)")
    parser.add_argument(
        "--allow-underdetermined",
        action="store_true",
        default=config.ALLOW_UNDERDETERMINED_FIT,
        help="Fit even with fewer rows than coefficients",
    )
    parser.add_argument("--age", type=float, required=True)
    parser.add_argument("--sex", choices=["male", "female"], required=True)
    parser.add_argument("--bmi", type=float, required=True)
    parser.add_argument("--children", type=int, default=0)
    parser.add_argument("--smoker", choices=["yes", "no"], required=True)
    parser.add_argument(
        "--region", choices=["northeast", "northwest", "southeast", "southwest"], required=True
    )
    parser.add_argument("--plot", action="store_true", help="Show the waterfall plot")

    args = parser.parse_args()
    logging.basicConfig(level=config.LOG_LEVEL)

    if args.model and Path(args.model).exists():
        model = load_fitted_model(args.model)
    else:
        dataset = DataLoader(args.data).load()
        try:
            model = fit(dataset, allow_underdetermined=args.allow_underdetermined)
        except ChargesModelError as e:
            parser.exit(1, f"error: {e}\n")

    record: Dict = {
        "age": args.age,
        "sex": args.sex,
        "bmi": args.bmi,
        "children": args.children,
        "smoker": args.smoker,
        "region": args.region,
    }

    result = ChargesExplainer(model).explain_full(record, include_plot=args.plot)

    print(f"Estimated charges: {format_charges(result.prediction)}\n")
    print("Most important factors affecting insurance cost:")
    for i, statement in enumerate(explain(model), start=1):
        print(f"{i}. {statement}")
    print()
    print(result.text_explanation)

    if result.waterfall_plot:
        plt.show()


if __name__ == "__main__":
    main()
