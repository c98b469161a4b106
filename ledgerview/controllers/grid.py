"""
Transaction Grid Edit Controller

Tracks inline edits of the transaction table, one cell at a time.

Cell states:
    viewing -> begin_edit() -> editing
    editing -> commit()     -> committing -> viewing
    editing -> cancel()     -> viewing

A value that doesn't parse keeps the cell in `editing` with the error
set. A backend failure sends the cell back to `viewing` with the error
kept; the store has already reverted the row by then.

IMPORTANT: Edits are tracked per (row, field). A failure on one cell
never touches the edit state of another.
"""

from datetime import date as date_type
from datetime import datetime, time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from ledgerview.audit import AuditLogger
from ledgerview.models.ledger import PATCHABLE_FIELDS, Transaction, TransactionPatch
from ledgerview.store import StoreError, TransactionStore, WriteStatus
from ledgerview.validation import INVALID, AmountParser

EDITABLE_FIELDS = PATCHABLE_FIELDS


class CellState(str, Enum):
    VIEWING = "viewing"
    EDITING = "editing"
    COMMITTING = "committing"


class CellStatus(BaseModel):
    """What the table needs to render one cell."""
    model_config = ConfigDict(frozen=True)

    state: CellState = CellState.VIEWING
    write_status: Optional[WriteStatus] = None
    error: Optional[str] = None
    value: Any = None


class _CellEdit:
    """Mutable edit-in-progress of one cell."""

    def __init__(self, value: Any):
        self.state = CellState.EDITING
        self.value = value
        self.error: Optional[str] = None


class _CellValueError(ValueError):
    pass


class GridEditController:
    """Per-cell edit state for the table of one store."""

    def __init__(
        self,
        store: TransactionStore,
        parser: type[AmountParser] = AmountParser,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._parser = parser
        self._audit_logger = audit_logger or store.audit_logger
        self._cells: dict[tuple[str, str], _CellEdit] = {}

    # -------------------------------------------------------------------------
    # Edit lifecycle
    # -------------------------------------------------------------------------

    def begin_edit(self, row_id: str, field: str) -> Any:
        """
        Put a cell into editing and return its starting value.

        Raises:
            CellEditError: If the field is not editable, the row is not
                cached, or the cell is already being edited
        """
        if field not in EDITABLE_FIELDS:
            raise CellEditError(f"Field is not editable: {field}")

        transaction = self._store.get(row_id)
        if transaction is None:
            raise CellEditError(f"Transaction not found: {row_id}")

        existing = self._cells.get((row_id, field))
        if existing is not None and existing.state is not CellState.VIEWING:
            raise CellEditError(f"Cell {row_id}/{field} is already {existing.state.value}")

        value = self._display_value(transaction, field)
        self._cells[(row_id, field)] = _CellEdit(value)
        return value

    def set_value(self, row_id: str, field: str, value: Any) -> None:
        edit = self._require_state(row_id, field, CellState.EDITING)
        edit.value = value
        edit.error = None

    def cancel(self, row_id: str, field: str) -> None:
        """Leave editing without sending anything."""
        edit = self._cells.get((row_id, field))
        if edit is None:
            return
        if edit.state is CellState.COMMITTING:
            raise CellEditError(f"Cell {row_id}/{field} is being saved")
        del self._cells[(row_id, field)]

    async def commit(self, row_id: str, field: str) -> Optional[Transaction]:
        """
        Send the edited value through the store.

        Returns:
            The confirmed transaction, or None if the value didn't parse
            or the store reported a failure (see `cell_status`)
        """
        edit = self._require_state(row_id, field, CellState.EDITING)

        try:
            value = self._parse(field, edit.value)
        except _CellValueError as e:
            edit.error = str(e)
            await self._audit_logger.log_validation_failed(field, str(edit.value), str(e))
            return None

        edit.state = CellState.COMMITTING
        edit.error = None
        try:
            if field == "tags":
                value = await self._store.resolve_tags(value)
            result = await self._store.update(row_id, TransactionPatch(**{field: value}))
        except StoreError as e:
            edit.state = CellState.VIEWING
            edit.error = str(e)
            return None

        del self._cells[(row_id, field)]
        return result

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def cell_status(self, row_id: str, field: str) -> CellStatus:
        edit = self._cells.get((row_id, field))
        write_status = self._store.cell_status(row_id, field)
        if edit is None:
            return CellStatus(write_status=write_status)
        return CellStatus(
            state=edit.state,
            write_status=write_status,
            error=edit.error,
            value=edit.value,
        )

    def cell_state(self, row_id: str, field: str) -> CellState:
        edit = self._cells.get((row_id, field))
        return edit.state if edit else CellState.VIEWING

    def active_cells(self) -> list[tuple[str, str]]:
        """Cells currently editing or committing."""
        return [
            key for key, edit in self._cells.items()
            if edit.state is not CellState.VIEWING
        ]

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require_state(self, row_id: str, field: str, state: CellState) -> _CellEdit:
        edit = self._cells.get((row_id, field))
        if edit is None or edit.state is not state:
            current = edit.state.value if edit else CellState.VIEWING.value
            raise CellEditError(f"Cell {row_id}/{field} is {current}, expected {state.value}")
        return edit

    @staticmethod
    def _display_value(transaction: Transaction, field: str) -> Any:
        if field == "amount":
            return str(transaction.amount)
        if field == "tags":
            return [tag.label for tag in transaction.tags]
        return getattr(transaction, field)

    def _parse(self, field: str, value: Any) -> Any:
        if field == "amount":
            amount = self._parser.parse(value if isinstance(value, str) else str(value))
            if amount is INVALID:
                raise _CellValueError(f"Not a valid amount: {value!r}")
            return amount

        if field == "date":
            return _parse_date(value)

        if field == "tags":
            if isinstance(value, str):
                return value.split(",")
            if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
                return list(value)
            raise _CellValueError("Tags must be a list of labels")

        if value is None:
            return ""
        if not isinstance(value, str):
            raise _CellValueError("Description must be text")
        if len(value.strip()) > 500:
            raise _CellValueError("Description is too long")
        return value


def _parse_date(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date_type):
        return datetime.combine(value, time())
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            raise _CellValueError(f"Not a valid date: {value!r}")
    raise _CellValueError(f"Not a valid date: {value!r}")


class CellEditError(Exception):
    """Invalid transition of a cell's edit state."""
    pass
