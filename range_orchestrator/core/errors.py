"""Exception types raised by the orchestration engine and yield venue clients"""

from typing import Optional


class OrchestratorError(Exception):
    """Base class for all orchestration errors"""


class PositionNotFound(OrchestratorError, KeyError):
    """No ledger record exists for the given position id"""

    def __init__(self, position_id: str):
        self.position_id = position_id
        super().__init__(f"Position {position_id} not found")

    def __str__(self) -> str:
        return f"Position {self.position_id} not found"


class Unauthorized(OrchestratorError):
    """Caller lacks the operator (or owner) role for an administrative call"""

    def __init__(self, caller: Optional[str], action: str):
        self.caller = caller
        self.action = action
        super().__init__(f"{caller!r} is not allowed to {action}")


class InvalidReservePercent(OrchestratorError, ValueError):
    """Reserve percent outside the configured bounds"""


class InvalidTickRange(OrchestratorError, ValueError):
    """Tick bounds violate tick_lower < tick_upper or the global tick limits"""


class PositionBusy(OrchestratorError):
    """Another lifecycle operation is already in flight for this position"""

    def __init__(self, position_id: str):
        self.position_id = position_id
        super().__init__(f"Position {position_id} already has an operation in flight")


class YieldVenueError(OrchestratorError):
    """Raised by yield venue clients when a deposit or withdrawal reverts"""


class VenueLegError(OrchestratorError):
    """A single-asset venue operation failed"""

    operation = "venue"

    def __init__(self, asset: int, reason: str = ""):
        self.asset = asset
        self.reason = reason
        super().__init__(f"{self.operation} failed for asset{asset}: {reason}" if reason
                         else f"{self.operation} failed for asset{asset}")


class VenueDepositFailed(VenueLegError):
    operation = "Deposit"


class VenueWithdrawFailed(VenueLegError):
    operation = "Withdrawal"
