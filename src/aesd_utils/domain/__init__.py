from aesd_utils.domain.contracts import CommandSpec, ExecutionResult
from aesd_utils.domain.errors import UtilityError, error_for_outcome

__all__ = [
    "CommandSpec",
    "ExecutionResult",
    "UtilityError",
    "error_for_outcome",
]
