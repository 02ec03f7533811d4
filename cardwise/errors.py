"""
Error kinds raised by the engine and the catalog/wallet services.

NO_RULE and BELOW_MINIMUM are not here on purpose: they are normal reward
outcomes (see RewardFlag), not failures.
"""


class CardwiseError(Exception):
    code = "ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CardwiseError):
    """Bad input, rejected before any computation."""

    code = "VALIDATION_ERROR"


class NotFoundError(CardwiseError):
    code = "NOT_FOUND"

    def __init__(self, kind: str, ident):
        super().__init__(f"{kind} {ident} not found")
        self.kind = kind
        self.ident = ident


class DataIntegrityError(CardwiseError):
    """Stored data breaks an invariant, e.g. two rules tie on specificity."""

    code = "DATA_INTEGRITY_ERROR"


class DuplicateRuleError(DataIntegrityError):
    def __init__(self, message: str, existing_rule_id: int | None = None):
        super().__init__(message)
        self.existing_rule_id = existing_rule_id


class TransientFetchError(CardwiseError):
    """Storage was unavailable. Callers may retry; the engine never does."""

    code = "TRANSIENT_FETCH_ERROR"


class PermissionDeniedError(CardwiseError):
    code = "FORBIDDEN"
