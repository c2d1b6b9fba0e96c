"""
Typed exception hierarchy for the recurring-transaction engine.

Every error has a typed class (catch by type, not message), a class-level
``code`` (machine-readable, safe to surface in a run summary), and carries
its context as attributes rather than only inside the message string.

    PfmError (base)
    |
    +-- TriggerError
    |   +-- TriggerAuthorizationError
    |
    +-- ScheduleError
    |   +-- InvalidScheduleError
    |
    +-- ReferentialError
    |   +-- WalletNotFoundError
    |   +-- CategoryNotFoundError
    |
    +-- MaterializationError
    |   +-- BalanceUpdateError
    |
    +-- AlertError
    |   +-- BudgetEvaluationError
    |
    +-- ConfigurationError
        +-- InvalidConfigurationError

Category        | Code                      | When Raised
----------------|---------------------------|-----------------------------------------
Trigger         | TRIGGER_UNAUTHORIZED      | Trigger secret absent or mismatched
Schedule        | INVALID_SCHEDULE          | Naive datetime / anchor day out of range
Referential     | WALLET_NOT_FOUND          | Template wallet deleted or missing
                | CATEGORY_NOT_FOUND        | Template category deleted or missing
Materialization | BALANCE_UPDATE_FAILED     | Wallet balance increment did not apply
Alert           | BUDGET_EVALUATION_FAILED  | Budget window/spend could not be computed
Configuration   | INVALID_CONFIGURATION     | Config value fails validation

A lost claim race is deliberately NOT an exception: the claimer reports it
as ``ClaimStatus.LOST`` because overlapping invocations are a normal
operating condition.
"""


class PfmError(Exception):
    """
    Base exception for all engine errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "PFM_ERROR"


# Trigger


class TriggerError(PfmError):
    """Base exception for trigger invocation errors."""

    code: str = "TRIGGER_ERROR"


class TriggerAuthorizationError(TriggerError):
    """Trigger invoked without a valid shared secret.

    Raised before any state is read or written.
    """

    code: str = "TRIGGER_UNAUTHORIZED"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Trigger rejected: {reason}")


# Schedule


class ScheduleError(PfmError):
    """Base exception for schedule computation errors."""

    code: str = "SCHEDULE_ERROR"


class InvalidScheduleError(ScheduleError):
    """Schedule inputs are malformed (programming error, not runtime data)."""

    code: str = "INVALID_SCHEDULE"

    def __init__(self, frequency: str, detail: str):
        self.frequency = frequency
        self.detail = detail
        super().__init__(f"Invalid {frequency} schedule: {detail}")


# Referential


class ReferentialError(PfmError):
    """A template points at a record that no longer exists."""

    code: str = "REFERENTIAL_ERROR"


class WalletNotFoundError(ReferentialError):
    code: str = "WALLET_NOT_FOUND"

    def __init__(self, wallet_id: str):
        self.wallet_id = wallet_id
        super().__init__(f"Wallet not found or deleted: {wallet_id}")


class CategoryNotFoundError(ReferentialError):
    code: str = "CATEGORY_NOT_FOUND"

    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Category not found or deleted: {category_id}")



# Materialization


class MaterializationError(PfmError):
    """Base exception for failures inside the transaction + balance unit."""

    code: str = "MATERIALIZATION_ERROR"


class BalanceUpdateError(MaterializationError):
    """The wallet balance increment did not apply to exactly one row.

    The whole unit (transaction insert included) is rolled back.
    """

    code: str = "BALANCE_UPDATE_FAILED"

    def __init__(self, wallet_id: str, delta: int, detail: str = ""):
        self.wallet_id = wallet_id
        self.delta = delta
        self.detail = detail
        message = f"Balance update of {delta} failed for wallet {wallet_id}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


# Alerts


class AlertError(PfmError):
    """Base exception for budget evaluation and notification errors."""

    code: str = "ALERT_ERROR"


class BudgetEvaluationError(AlertError):
    code: str = "BUDGET_EVALUATION_FAILED"

    def __init__(self, budget_id: str, detail: str):
        self.budget_id = budget_id
        self.detail = detail
        super().__init__(f"Budget {budget_id} could not be evaluated: {detail}")


# Configuration


class ConfigurationError(PfmError):
    """Base exception for configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class InvalidConfigurationError(ConfigurationError):
    code: str = "INVALID_CONFIGURATION"

    def __init__(self, key: str, detail: str):
        self.key = key
        self.detail = detail
        super().__init__(f"Invalid configuration for '{key}': {detail}")
