"""
Runtime configuration read from the environment (and a local .env file).
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


DATA_PATH = os.getenv("INSURANCE_DATA_PATH", "insurance.csv")
MODEL_PATH = os.getenv("CHARGES_MODEL_PATH", "trained_charges_model.pkl")
ALLOW_UNDERDETERMINED_FIT = _env_flag("ALLOW_UNDERDETERMINED_FIT")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
