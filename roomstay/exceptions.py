"""
Engine error taxonomy.

- ValidationError: malformed input, rejected before any read; never retried.
- Conflict: availability lost (block, existing reservation, concurrent writer);
  an expected outcome, not a fault.
- TransientStoreError: lock timeout / aborted transaction; the whole operation
  may be retried with backoff.
- InvariantViolation: persisted state breaks an engine invariant; logged as a
  data-integrity alert and the operation is aborted.
"""

from typing import Optional


class EngineError(Exception):
    """Base class for all availability engine errors"""

    status_code = 500
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {
            "error": type(self).__name__,
            "detail": self.message,
            "retryable": self.retryable,
        }


class ValidationError(EngineError):
    status_code = 422


class NotFound(ValidationError):
    """Unknown id within the caller's company"""

    status_code = 404


class Conflict(EngineError):
    status_code = 409

    def __init__(self, message: str, result: Optional[object] = None):
        super().__init__(message)
        # AvailabilityResult explaining the conflict, when one was computed
        self.result = result

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.result is not None and hasattr(self.result, "to_dict"):
            data["availability"] = self.result.to_dict()
        return data


class TransientStoreError(Conflict):
    retryable = True


class InvariantViolation(EngineError):
    status_code = 500
