#!/usr/bin/env python3
"""
Fit a fresh charges model, report how well it fits, and save it for the CLI.
"""

import argparse
import logging
import pickle

from charges_model import config
from charges_model.ChargesModel import evaluate, fit
from charges_model.charges_explainer import ChargesExplainer, explain
from charges_model.data_loader import DataLoader
from charges_model.errors import UnderdeterminedFitError


def main():
    parser = argparse.ArgumentParser(description="Train the insurance charges model")
    parser.add_argument("--data", type=str, default=config.DATA_PATH, help="Insurance CSV to train on")
    parser.add_argument("--output", type=str, default=config.MODEL_PATH, help="Where to pickle the model")
    parser.add_argument(
        "--allow-underdetermined",
        action="store_true",
        default=config.ALLOW_UNDERDETERMINED_FIT,
        help="Fit even with fewer rows than coefficients",
    )
    args = parser.parse_args()
    logging.basicConfig(level=config.LOG_LEVEL)

    print("Loading data...")
    loader = DataLoader(args.data)
    df = loader.load()
    report = loader.last_report
    print(f"Using {report.source}: {report.rows_kept} rows kept, {report.rows_dropped} dropped")

    print(f"Training model on {len(df)} rows...")
    try:
        model = fit(df, allow_underdetermined=args.allow_underdetermined)
    except UnderdeterminedFitError as e:
        parser.exit(1, f"error: {e}\n")

    summary = evaluate(model, df)
    r2_text = f"{summary.r2:.4f}" if summary.r2 is not None else "n/a"
    print(f"\nIn-sample fit: R2={r2_text}  MAE={summary.mae:,.2f}  RMSE={summary.rmse:,.2f}")

    print("\nCoefficients:")
    for name, value in model.as_dict().items():
        print(f"  {name:<18} {value:>14,.2f}")

    print("\nMost important factors affecting insurance cost:")
    for i, statement in enumerate(explain(model), start=1):
        print(f"{i}. {statement}")

    with open(args.output, "wb") as f:
        pickle.dump(model, f)
    print(f"\nModel saved to {args.output}")

    # Sanity check on the first training row
    print("\nBreakdown for the first row:")
    print(ChargesExplainer(model).explain_text(df.iloc[0]))


if __name__ == "__main__":
    main()
