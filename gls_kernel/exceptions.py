"""
Typed Exception Hierarchy for the GLS payment system.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (an HTTP adapter, a CLI, a batch job) must map every failure to a
stable response without parsing message text.  Every exception therefore
carries:
  1. a TYPED class (catch by type, not message)
  2. a CODE class attribute (machine-readable, API-safe)
  3. a KIND class attribute (one of a small fixed set of categories)
  4. structured DATA as instance attributes

Example:
    try:
        payables.cancel_bill(principal, bill_id, reason="duplicate entry")
    except BillHasSettlementsError as e:
        api_response(status=409, code=e.code, settled=e.settled_amount)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    GlsError (base)
    |
    +-- ValidationError                 kind=validation
    |
    +-- NotFoundError                   kind=not_found
    |
    +-- DanglingReferenceError          kind=reference
    |
    +-- ConflictError                   kind=conflict
    |   +-- BillCancelledError
    |   +-- BillPaidError
    |   +-- BillHasSettlementsError
    |   +-- OverSettlementError
    |   +-- OptimisticLockError
    |   +-- DuplicateCodeError
    |   +-- CounterpartyHasOutstandingBillsError
    |   +-- InvalidTransitionError
    |   +-- BillNotEligibleError
    |   +-- ProposalAlreadyCompletedError
    |   +-- DetailAlreadySettledError
    |
    +-- PreconditionError               kind=precondition
    |   +-- ProposalNotApprovedError
    |   +-- NoApprovedItemsError
    |
    +-- AuthorizationError              kind=authorization
    |
    +-- StorageTimeoutError             kind=timeout (also a TimeoutError)

===============================================================================
BATCH FAILURES
===============================================================================

Operations that apply a list of per-item commands (accounts action, owner
action, UTR batch) stop at the first failing item, roll back the whole
batch, and re-raise the original exception with ``failed_item_id`` set.
The kind of the error never changes on the way out.

    try:
        payments.update_utr(principal, payment_id, entries)
    except GlsError as e:
        report(kind=e.kind, code=e.code, item=e.failed_item_id)
"""

from typing import Any


class GlsError(Exception):
    """
    Base exception for all GLS domain errors.

    All subclasses set ``code``; category subclasses set ``kind``.
    """

    code: str = "GLS_ERROR"
    kind: str = "internal"

    # Set by batch operations when a single entry of the batch failed.
    failed_item_id: Any = None

    def to_dict(self) -> dict[str, Any]:
        """Machine-readable representation for API and log payloads."""
        payload: dict[str, Any] = {
            "kind": self.kind,
            "code": self.code,
            "message": str(self),
        }
        if self.failed_item_id is not None:
            payload["failed_item_id"] = str(self.failed_item_id)
        return payload


# Validation


class ValidationError(GlsError):
    """Malformed or missing input.  ``field_errors`` maps field -> problem."""

    code: str = "VALIDATION_FAILED"
    kind: str = "validation"

    def __init__(self, field_errors: dict[str, str], message: str | None = None):
        self.field_errors = dict(field_errors)
        if message is None:
            detail = "; ".join(
                f"{field}: {problem}" for field, problem in sorted(self.field_errors.items())
            )
            message = f"Validation failed: {detail}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["fields"] = self.field_errors
        return payload


# Lookup


class NotFoundError(GlsError):
    """Entity addressed by id does not exist."""

    code: str = "NOT_FOUND"
    kind: str = "not_found"

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class DanglingReferenceError(GlsError):
    """A foreign reference points at a missing or inactive record."""

    code: str = "DANGLING_REFERENCE"
    kind: str = "reference"

    def __init__(self, entity_type: str, entity_id: Any, reason: str = "missing"):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"{entity_type} {entity_id} is {reason}")


# Conflicts (state machine violations)


class ConflictError(GlsError):
    """Base exception for state-machine and concurrency conflicts."""

    code: str = "CONFLICT"
    kind: str = "conflict"


class BillCancelledError(ConflictError):
    """Bill is cancelled and cannot be changed or settled."""

    code: str = "BILL_CANCELLED"

    def __init__(self, bill_id: Any):
        self.bill_id = bill_id
        super().__init__(f"Bill {bill_id} is cancelled")


class BillPaidError(ConflictError):
    """Bill is fully settled and cannot be edited."""

    code: str = "BILL_PAID"

    def __init__(self, bill_id: Any):
        self.bill_id = bill_id
        super().__init__(f"Bill {bill_id} is already paid")


class BillHasSettlementsError(ConflictError):
    """Bill carries payments or collections and cannot be cancelled."""

    code: str = "BILL_HAS_SETTLEMENTS"

    def __init__(self, bill_id: Any, settled_amount: Any):
        self.bill_id = bill_id
        self.settled_amount = settled_amount
        super().__init__(
            f"Bill {bill_id} cannot be cancelled: {settled_amount} already settled"
        )


class OverSettlementError(ConflictError):
    """A settlement would push paid/collected amount above the bill amount."""

    code: str = "BILL_OVER_SETTLEMENT"

    def __init__(self, bill_id: Any, amount: Any, settled_amount: Any, increment: Any):
        self.bill_id = bill_id
        self.amount = amount
        self.settled_amount = settled_amount
        self.increment = increment
        super().__init__(
            f"Bill {bill_id}: settling {increment} on top of {settled_amount} "
            f"exceeds amount {amount}"
        )


class OptimisticLockError(ConflictError):
    """Version compare-and-swap failed: the row changed since it was read."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(
        self,
        entity_type: str,
        entity_id: Any,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            f"expected version {expected_version}, found {actual_version}"
        )


class DuplicateCodeError(ConflictError):
    """Counterparty or bank account identifier already in use."""

    code: str = "DUPLICATE_CODE"

    def __init__(self, entity_type: str, value: str):
        self.entity_type = entity_type
        self.value = value
        super().__init__(f"{entity_type} code already exists: {value}")


class CounterpartyHasOutstandingBillsError(ConflictError):
    """Counterparty cannot be deactivated while bills remain open."""

    code: str = "COUNTERPARTY_HAS_OUTSTANDING_BILLS"

    def __init__(self, entity_type: str, entity_id: Any, outstanding_count: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.outstanding_count = outstanding_count
        super().__init__(
            f"{entity_type} {entity_id} has {outstanding_count} outstanding bill(s)"
        )


class InvalidTransitionError(ConflictError):
    """Action is not permitted from the entity's current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, entity_type: str, entity_id: Any, from_state: str, action: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.from_state = from_state
        self.action = action
        super().__init__(
            f"{entity_type} {entity_id}: action '{action}' not allowed in state '{from_state}'"
        )


class BillNotEligibleError(ConflictError):
    """Bill is already committed to another open proposal, or closed."""

    code: str = "BILL_NOT_ELIGIBLE"

    def __init__(self, bill_id: Any, reason: str):
        self.bill_id = bill_id
        self.reason = reason
        super().__init__(f"Bill {bill_id} cannot be proposed: {reason}")


class ProposalAlreadyCompletedError(ConflictError):
    """Payment batch was already generated for this proposal."""

    code: str = "PROPOSAL_ALREADY_COMPLETED"

    def __init__(self, proposal_id: Any):
        self.proposal_id = proposal_id
        super().__init__(f"Proposal {proposal_id} is already completed")


class DetailAlreadySettledError(ConflictError):
    """Payment detail already carries a UTR."""

    code: str = "DETAIL_ALREADY_SETTLED"

    def __init__(self, detail_id: Any, utr_number: str | None):
        self.detail_id = detail_id
        self.utr_number = utr_number
        super().__init__(f"Payment detail {detail_id} already settled with UTR {utr_number}")


# Preconditions


class PreconditionError(GlsError):
    """Entity is not in the state the requested action requires."""

    code: str = "PRECONDITION_FAILED"
    kind: str = "precondition"


class ProposalNotApprovedError(PreconditionError):
    """Payment generation requires an approved or partially approved proposal."""

    code: str = "PROPOSAL_NOT_APPROVED"

    def __init__(self, proposal_id: Any, status: str):
        self.proposal_id = proposal_id
        self.status = status
        super().__init__(f"Proposal {proposal_id} is '{status}', not approved")


class NoApprovedItemsError(PreconditionError):
    """Proposal has no owner-approved items to pay."""

    code: str = "NO_APPROVED_ITEMS"

    def __init__(self, proposal_id: Any):
        self.proposal_id = proposal_id
        super().__init__(f"Proposal {proposal_id} has no owner-approved items")


# Access control


class AuthorizationError(GlsError):
    """Principal's role (or ownership) does not permit the operation."""

    code: str = "FORBIDDEN"
    kind: str = "authorization"

    def __init__(self, operation: str, role: str, reason: str | None = None):
        self.operation = operation
        self.role = role
        self.reason = reason or f"role '{role}' may not perform '{operation}'"
        super().__init__(self.reason)


# Storage


class StorageTimeoutError(GlsError, TimeoutError):
    """Storage operation exceeded its deadline; the transaction was rolled back."""

    code: str = "STORAGE_TIMEOUT"
    kind: str = "timeout"

    def __init__(self, operation: str, timeout_seconds: float):
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(f"{operation} exceeded {timeout_seconds}s and was rolled back")
