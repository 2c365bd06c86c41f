from .errors import ConflictError, SlotTakenError, error_response, failure_response
