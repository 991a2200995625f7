from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional

import pandas as pd

from charges_model.errors import InvalidQueryInputError

SEXES = ("male", "female")
SMOKER_VALUES = ("yes", "no")
REGIONS = ("northeast", "northwest", "southeast", "southwest")

# Column order of a cleaned dataset
COLUMNS = ["age", "sex", "bmi", "children", "smoker", "region", "charges"]
TEXT_COLUMNS = ["sex", "smoker", "region"]
NUMERIC_COLUMNS = ["age", "bmi", "children"]

MIN_AGE, MAX_AGE = 0, 120


def _field(data: Mapping[str, Any], name: str) -> Any:
    try:
        return data[name]
    except KeyError:
        raise InvalidQueryInputError(f"{name} is required") from None


def _number(data: Mapping[str, Any], name: str) -> float:
    value = _field(data, name)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidQueryInputError(f"{name} must be a number, got {value!r}") from None


def _text(data: Mapping[str, Any], name: str) -> str:
    return str(_field(data, name)).strip().lower()


@dataclass(frozen=True)
class Record:
    """One person's attributes, with the observed charges when known."""
    age: float
    sex: str
    bmi: float
    children: float
    smoker: str
    region: str
    charges: Optional[float] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Record":
        """Build a record from a dict or pandas Series, normalizing text fields."""
        charges = data.get("charges")
        if charges is not None and pd.isna(charges):
            charges = None
        return cls(
            age=_number(data, "age"),
            sex=_text(data, "sex"),
            bmi=_number(data, "bmi"),
            children=_number(data, "children"),
            smoker=_text(data, "smoker"),
            region=_text(data, "region"),
            charges=None if charges is None else _number(data, "charges"),
        )

    def validate(self) -> "Record":
        """
        Check every field against its allowed values.

        Returns:
        - Record: the same record, so calls can be chained.

        Raises:
        - InvalidQueryInputError: if any field is out of range.
        """
        problems = []
        if self.sex not in SEXES:
            problems.append(f"sex must be one of {SEXES}, got {self.sex!r}")
        if self.smoker not in SMOKER_VALUES:
            problems.append(f"smoker must be one of {SMOKER_VALUES}, got {self.smoker!r}")
        if self.region not in REGIONS:
            problems.append(f"region must be one of {REGIONS}, got {self.region!r}")
        if pd.isna(self.age) or not MIN_AGE <= self.age <= MAX_AGE:
            problems.append(f"age must be between {MIN_AGE} and {MAX_AGE}, got {self.age}")
        if pd.isna(self.bmi) or self.bmi <= 0:
            problems.append(f"bmi must be positive, got {self.bmi}")
        if pd.isna(self.children) or self.children < 0 or int(self.children) != self.children:
            problems.append(f"children must be a non-negative integer, got {self.children}")
        if self.charges is not None and self.charges < 0:
            problems.append(f"charges cannot be negative, got {self.charges}")

        if problems:
            raise InvalidQueryInputError("; ".join(problems))
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
