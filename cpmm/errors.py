"""Pool interaction error classes.

Each class names one failure mode the UI reacts to differently:
- PoolNotFound is recoverable by offering pool creation
- InsufficientBalance, ApprovalFailed and OperationInProgress abort before
  anything is submitted
- OperationReverted means the ledger rejected a submitted transaction
- GatewayUnavailable is a transport failure left after retries
"""


class CpmmError(Exception):
    """Base error for pool operations."""

    pass


class PoolNotFound(CpmmError):
    """No pool exists for the canonical pair."""

    def __init__(self, token_low: str | None = None, token_high: str | None = None) -> None:
        if token_low and token_high:
            super().__init__(f"No pool for pair {token_low}/{token_high}")
        else:
            super().__init__("No pool for pair")
        self.token_low = token_low
        self.token_high = token_high


class InsufficientBalance(CpmmError):
    """Owner balance is below the amount the operation needs."""

    def __init__(self, token: str, required: int, available: int) -> None:
        super().__init__(f"Insufficient balance of {token}: need {required}, have {available}")
        self.token = token
        self.required = required
        self.available = available


class ReserveInvariantViolation(CpmmError):
    """A ratio computation hit a zero reserve or zero share supply."""

    pass


class ApprovalFailed(CpmmError):
    """Allowance grant failed; the dependent call was not attempted."""

    def __init__(self, token: str, spender: str, amount: int, reason: str = "") -> None:
        message = f"Approval of {amount} {token} for {spender} failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.token = token
        self.spender = spender
        self.amount = amount


class OperationReverted(CpmmError):
    """The ledger rejected the submitted transaction."""

    def __init__(self, operation: str, reason: str = "", tx_hash: str | None = None) -> None:
        message = f"{operation} reverted"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.operation = operation
        self.reason = reason
        self.tx_hash = tx_hash


class GatewayUnavailable(CpmmError):
    """Transport-level failure talking to the ledger."""

    pass


class OperationInProgress(CpmmError):
    """A mutating operation is already pending for this session."""

    pass
