class ChargesModelError(Exception):
    """Base class for errors raised by the charges model."""


class SourceUnavailableError(ChargesModelError):
    """The insurance CSV could not be read or is missing required columns."""


class UnderdeterminedFitError(ChargesModelError):
    """Fewer usable training rows than model parameters."""

    def __init__(self, n_records: int, n_parameters: int):
        self.n_records = n_records
        self.n_parameters = n_parameters
        super().__init__(
            f"Cannot fit {n_parameters} coefficients from {n_records} records; "
            f"at least {n_parameters} usable rows are required"
        )


class InvalidQueryInputError(ChargesModelError, ValueError):
    """A query record has a field outside its allowed values."""
