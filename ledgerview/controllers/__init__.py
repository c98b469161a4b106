"""Form and grid controllers."""

from ledgerview.controllers.form import (
    FormError,
    FormStatus,
    SubmissionBlockedError,
    TransactionFormController,
)
from ledgerview.controllers.grid import (
    EDITABLE_FIELDS,
    CellEditError,
    CellState,
    CellStatus,
    GridEditController,
)

__all__ = [
    # Add-transaction dialog
    "FormError",
    "FormStatus",
    "SubmissionBlockedError",
    "TransactionFormController",
    # Table
    "EDITABLE_FIELDS",
    "CellEditError",
    "CellState",
    "CellStatus",
    "GridEditController",
]
