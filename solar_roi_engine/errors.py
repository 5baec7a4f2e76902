# solar_roi_engine/errors.py

from __future__ import annotations


class EngineError(ValueError):
    """Base class for every failure the engine reports back to its caller."""

    code = "ENGINE_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code

    def to_dict(self):
        return {"error": self.code, "detail": str(self)}


class InvalidConfiguration(EngineError):
    """Provider or analysis configuration that cannot be used."""

    code = "INVALID_CONFIGURATION"


class MissingData(EngineError):
    """Historical consumption/solar data is absent or does not overlap."""

    code = "MISSING_DATA"


class ContractViolation(EngineError):
    """Malformed input at the simulator / tariff engine boundary."""

    code = "CONTRACT_VIOLATION"
