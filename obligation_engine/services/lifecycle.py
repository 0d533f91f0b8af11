"""
Obligation lifecycle controller.

Every caller-facing operation runs as one unit of work: all store writes are
flushed inside a single session transaction that is committed on success and
rolled back on any failure, so an entry is never left paid without its ledger
transaction (or the reverse). Failures come back as OperationResult values,
never as exceptions.

State machine:
    pending  -> paid      confirm
    paid     -> pending   cancel
    pending  -> deleted   reconciliation plan, or direct delete
"""

import logging
import time
import uuid
from contextlib import ExitStack
from datetime import date
from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from obligation_engine.config import settings
from obligation_engine.domain.clock import Clock, SystemClock
from obligation_engine.domain.exceptions import (
    DomainException,
    InvalidEntryError,
    InvalidRecurrenceError,
    InvalidStateError,
    NotFoundError,
    StoreFailureError,
)
from obligation_engine.domain.installments import generate_installment_plan
from obligation_engine.domain.models import (
    AccountScope,
    EntryKind,
    EntryStatus,
    InstallmentDefinition,
    InstallmentInfo,
    LedgerTransaction,
    OperationResult,
    Periodicity,
    ReconciliationPlan,
    RecurrenceDefinition,
    ScheduledEntry,
    SeriesType,
)
from obligation_engine.domain.reconciliation import plan_reconciliation
from obligation_engine.domain.schedule import generate_dates, normalize_periodicity
from obligation_engine.infrastructure.database.repositories import (
    LedgerTransactionRepository,
    RecurrenceGroupRepository,
    ScheduledEntryRepository,
)
from obligation_engine.infrastructure.observability.logging import log_operation
from obligation_engine.infrastructure.observability.metrics import (
    record_generated,
    record_operation,
    record_plan,
)
from obligation_engine.services.notifications import ChangeNotifier, EntryChangeEvent
from obligation_engine.utils.date_utils import shift_date
from obligation_engine.utils.locks import KeyedLocks

logger = logging.getLogger(__name__)

# Shared by every service instance in the process
entry_locks = KeyedLocks()
change_notifier = ChangeNotifier()

Work = Callable[[ExitStack], Tuple[OperationResult, Optional[EntryChangeEvent]]]


class ObligationLifecycleService:
    """Confirm, cancel, expand and reconcile scheduled entries"""

    def __init__(
        self,
        db: Session,
        clock: Clock | None = None,
        notifier: ChangeNotifier | None = None,
        locks: KeyedLocks | None = None,
        request_id: str | None = None,
    ):
        self.db = db
        self.request_id = request_id
        self.clock = clock or SystemClock()
        self.notifier = notifier or change_notifier
        self.locks = locks or entry_locks
        self.entries = ScheduledEntryRepository(db)
        self.groups = RecurrenceGroupRepository(db)
        self.ledger = LedgerTransactionRepository(db)

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def _execute(self, operation: str, work: Work, **log_fields) -> OperationResult:
        """
        Run `work` inside one transaction.

        `work` enters the locks it needs on the ExitStack it receives; they are
        released only after commit or rollback.
        """
        start_time = time.time()
        event = None
        with ExitStack() as stack:
            try:
                try:
                    result, event = work(stack)
                    self.db.commit()
                except SQLAlchemyError as e:
                    raise StoreFailureError(f"Store failure during {operation}: {e.__class__.__name__}") from e
            except DomainException as e:
                self.db.rollback()
                result = OperationResult.failure(e.error_kind, str(e))
                event = None
            except Exception:
                self.db.rollback()
                raise

        outcome = "ok" if result.ok else result.error_kind
        record_operation(operation, outcome)
        log_operation(
            operation,
            outcome,
            (time.time() - start_time) * 1000,
            detail=result.message,
            request_id=self.request_id,
            **log_fields,
        )

        if event is not None:
            self.notifier.publish(event)
        return result

    def _lock_entry(self, stack: ExitStack, entry_id: uuid.UUID) -> None:
        stack.enter_context(self.locks.hold(f"entry:{entry_id}"))

    def _load_entry(self, entry_id: uuid.UUID) -> ScheduledEntry:
        entry = self.entries.find(entry_id, lock=True)
        if entry is None:
            raise NotFoundError(f"Scheduled entry {entry_id} not found")
        return entry

    # ------------------------------------------------------------------
    # Realization
    # ------------------------------------------------------------------

    def confirm(self, entry_id: uuid.UUID, effective_date: Optional[date] = None) -> OperationResult:
        """
        Realize a pending entry into exactly one ledger transaction.

        The counterparty becomes the transaction's payer for expenses and its
        payee for incomes. effective_date defaults to today.
        """

        def work(stack: ExitStack):
            self._lock_entry(stack, entry_id)
            entry = self._load_entry(entry_id)
            if entry.status != EntryStatus.PENDING:
                raise InvalidStateError(
                    f"Scheduled entry {entry_id} is {entry.status.value}; only pending entries can be confirmed"
                )

            realized_on = effective_date or self.clock.today()
            is_expense = entry.kind == EntryKind.EXPENSE
            transaction_id = self.ledger.insert(
                LedgerTransaction(
                    owner_id=entry.owner_id,
                    kind=entry.kind,
                    amount=entry.amount,
                    description=entry.description,
                    category_id=entry.category_id,
                    transaction_date=realized_on,
                    account_scope=entry.account_scope,
                    account_id=entry.account_id,
                    payer=entry.counterparty if is_expense else None,
                    payee=None if is_expense else entry.counterparty,
                    originating_entry_id=entry.id,
                )
            )
            updated = self.entries.update(
                entry_id,
                {
                    "status": EntryStatus.PAID,
                    "effective_date": realized_on,
                    "realized_transaction_id": transaction_id,
                },
            )
            event = EntryChangeEvent("confirm", entry.owner_id, (entry.id,), entry.recurrence_group_id)
            return OperationResult.success(entry=updated, transaction_id=transaction_id), event

        return self._execute("confirm", work, entry_id=entry_id)

    def cancel(self, entry_id: uuid.UUID) -> OperationResult:
        """Reverse a confirmation: drop the ledger transaction and return the entry to pending"""

        def work(stack: ExitStack):
            self._lock_entry(stack, entry_id)
            entry = self._load_entry(entry_id)
            if entry.status != EntryStatus.PAID:
                raise InvalidStateError(
                    f"Scheduled entry {entry_id} is {entry.status.value}; only paid entries can be canceled"
                )

            transaction_id = entry.realized_transaction_id
            if transaction_id is not None and not self.ledger.delete(transaction_id):
                logger.warning(
                    "Linked ledger transaction already gone",
                    extra={"entry_id": str(entry_id), "transaction_id": str(transaction_id)},
                )

            updated = self.entries.update(
                entry_id,
                {
                    "status": EntryStatus.PENDING,
                    "effective_date": None,
                    "realized_transaction_id": None,
                },
            )
            event = EntryChangeEvent("cancel", entry.owner_id, (entry.id,), entry.recurrence_group_id)
            return OperationResult.success(entry=updated, transaction_id=transaction_id), event

        return self._execute("cancel", work, entry_id=entry_id)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_entry(self, entry: ScheduledEntry) -> OperationResult:
        """Store a single, non-recurring pending entry"""

        def work(stack: ExitStack):
            if entry.amount <= 0:
                raise InvalidEntryError(f"Scheduled entry amount must be positive, got {entry.amount}")
            created = self.entries.insert(
                ScheduledEntry(
                    owner_id=entry.owner_id,
                    kind=entry.kind,
                    amount=entry.amount,
                    description=entry.description,
                    category_id=entry.category_id,
                    expected_date=entry.expected_date,
                    account_scope=entry.account_scope,
                    account_id=entry.account_id,
                    counterparty=entry.counterparty,
                )
            )
            return OperationResult.success(entry=created), EntryChangeEvent("create", created.owner_id, (created.id,))

        return self._execute("create", work, owner_id=entry.owner_id)

    def expand_recurrence(self, definition: RecurrenceDefinition) -> OperationResult:
        """
        Create a recurrence group and one pending entry per generated date.

        Without an end date the series is expanded over the configured horizon
        and that horizon is stored as its end date.
        """

        def work(stack: ExitStack):
            if definition.amount <= 0:
                raise InvalidRecurrenceError("Amount must be positive")
            periodicity = normalize_periodicity(definition.periodicity)
            end_date = definition.end_date or shift_date(
                definition.start_date, Periodicity.MONTHLY, settings.open_ended_horizon_months
            )
            if end_date < definition.start_date:
                raise InvalidRecurrenceError(
                    f"End date {end_date.isoformat()} is before start date {definition.start_date.isoformat()}"
                )

            dates = generate_dates(definition.start_date, end_date, periodicity)
            group = self.groups.create_group(
                owner_id=definition.owner_id,
                series_type=SeriesType.RECURRENCE,
                periodicity=periodicity,
                start_date=definition.start_date,
                end_date=end_date,
            )
            created = self.entries.insert_many(
                ScheduledEntry(
                    owner_id=definition.owner_id,
                    kind=definition.kind,
                    amount=definition.amount,
                    description=definition.description,
                    category_id=definition.category_id,
                    expected_date=day,
                    account_scope=definition.account_scope,
                    account_id=definition.account_id,
                    counterparty=definition.counterparty,
                    is_recurring=True,
                    periodicity=periodicity,
                    recurrence_end_date=end_date,
                    recurrence_group_id=group.id,
                )
                for day in dates
            )
            record_generated(periodicity.value, len(created))
            event = EntryChangeEvent(
                "expand_recurrence", definition.owner_id, tuple(e.id for e in created), group.id
            )
            return OperationResult.success(entries=created, group_id=group.id), event

        return self._execute("expand_recurrence", work, owner_id=definition.owner_id)

    def expand_installments(self, definition: InstallmentDefinition) -> OperationResult:
        """Create an installment plan: `count` pending entries sharing one group"""

        def work(stack: ExitStack):
            installments = generate_installment_plan(
                definition.total_amount,
                definition.count,
                definition.first_date,
                definition.periodicity,
            )
            periodicity = normalize_periodicity(definition.periodicity)
            group = self.groups.create_group(
                owner_id=definition.owner_id,
                series_type=SeriesType.INSTALLMENT,
                periodicity=periodicity,
                start_date=installments[0].due_date,
                end_date=installments[-1].due_date,
            )
            created = self.entries.insert_many(
                ScheduledEntry(
                    owner_id=definition.owner_id,
                    kind=definition.kind,
                    amount=inst.amount,
                    description=definition.description,
                    category_id=definition.category_id,
                    expected_date=inst.due_date,
                    account_scope=definition.account_scope,
                    account_id=definition.account_id,
                    counterparty=definition.counterparty,
                    installment_info=InstallmentInfo(current_index=inst.index, total_count=definition.count),
                    recurrence_group_id=group.id,
                )
                for inst in installments
            )
            record_generated(periodicity.value, len(created))
            event = EntryChangeEvent(
                "expand_installments", definition.owner_id, tuple(e.id for e in created), group.id
            )
            return OperationResult.success(entries=created, group_id=group.id), event

        return self._execute("expand_installments", work, owner_id=definition.owner_id)

    # ------------------------------------------------------------------
    # Recurrence edits
    # ------------------------------------------------------------------

    def _group_key(self, anchor: ScheduledEntry) -> str:
        if anchor.recurrence_group_id is not None:
            return f"group:{anchor.recurrence_group_id}"
        if anchor.periodicity is None:
            return f"series:{anchor.id}"
        return "group:{}:{}:{}:{}:{}".format(
            anchor.owner_id,
            anchor.kind.value,
            anchor.category_id,
            anchor.periodicity.value,
            anchor.account_scope.value,
        )

    def _load_series(self, anchor: ScheduledEntry, lock: bool) -> List[ScheduledEntry]:
        """Entries of the anchor's recurring series dated on or after the anchor"""
        if not anchor.is_recurring or anchor.periodicity is None:
            raise InvalidRecurrenceError(f"Scheduled entry {anchor.id} is not part of a recurring series")
        if anchor.recurrence_group_id is not None:
            return self.entries.find_group(anchor.recurrence_group_id, from_date=anchor.expected_date, lock=lock)
        return self.entries.find_group_by_signature(
            owner_id=anchor.owner_id,
            kind=anchor.kind,
            category_id=anchor.category_id,
            periodicity=anchor.periodicity,
            account_scope=anchor.account_scope,
            from_date=anchor.expected_date,
            lock=lock,
        )

    def _plan(
        self,
        anchor: ScheduledEntry,
        series: List[ScheduledEntry],
        new_periodicity: Periodicity | str,
        new_end_date: date,
    ) -> ReconciliationPlan:
        if new_end_date < anchor.expected_date:
            raise InvalidRecurrenceError(
                f"End date {new_end_date.isoformat()} is before the series start {anchor.expected_date.isoformat()}"
            )
        series_start = None
        if anchor.recurrence_group_id is not None:
            group = self.groups.get_group(anchor.recurrence_group_id)
            series_start = group.start_date if group else None
        return plan_reconciliation(anchor, series, new_periodicity, new_end_date, series_start=series_start)

    def preview_recurrence_update(
        self,
        anchor_entry_id: uuid.UUID,
        new_periodicity: Periodicity | str,
        new_end_date: date,
    ) -> OperationResult:
        """Compute the reconciliation plan and its impact summary without writing"""

        def work(stack: ExitStack):
            anchor = self.entries.find(anchor_entry_id)
            if anchor is None:
                raise NotFoundError(f"Scheduled entry {anchor_entry_id} not found")
            plan = self._plan(anchor, self._load_series(anchor, lock=False), new_periodicity, new_end_date)
            return (
                OperationResult.success(
                    entry=anchor,
                    group_id=anchor.recurrence_group_id,
                    plan=plan,
                    requires_confirmation=not plan.is_noop,
                    message=plan.impact_summary(),
                ),
                None,
            )

        return self._execute("preview_recurrence_update", work, entry_id=anchor_entry_id)

    def update_recurrence(
        self,
        anchor_entry_id: uuid.UUID,
        new_periodicity: Periodicity | str,
        new_end_date: date,
        confirmed: bool = False,
    ) -> OperationResult:
        """
        Apply a periodicity and/or end-date change to a recurring series.

        A non-empty plan is only committed when `confirmed` is set; otherwise the
        plan and its impact summary are returned with requires_confirmation and
        nothing is written. An empty plan commits directly.

        Commit steps: insert the plan's new entries, delete its removed entries
        after re-checking none of them is paid, then stamp the new periodicity
        and end date on every remaining entry of the series.
        """

        def work(stack: ExitStack):
            anchor = self.entries.find(anchor_entry_id)
            if anchor is None:
                raise NotFoundError(f"Scheduled entry {anchor_entry_id} not found")
            if not anchor.is_recurring or anchor.periodicity is None:
                raise InvalidRecurrenceError(f"Scheduled entry {anchor_entry_id} is not part of a recurring series")

            stack.enter_context(self.locks.hold(self._group_key(anchor)))
            anchor = self._load_entry(anchor_entry_id)
            series = self._load_series(anchor, lock=True)
            periodicity = normalize_periodicity(new_periodicity)
            plan = self._plan(anchor, series, periodicity, new_end_date)
            record_plan(plan)

            if not plan.is_noop and not confirmed:
                return (
                    OperationResult.success(
                        entry=anchor,
                        group_id=anchor.recurrence_group_id,
                        plan=plan,
                        requires_confirmation=True,
                        message=plan.impact_summary(),
                    ),
                    None,
                )

            created = self.entries.insert_many(plan.to_create)
            record_generated(periodicity.value, len(created))

            delete_ids = []
            for doomed in plan.to_delete:
                self._lock_entry(stack, doomed.id)
                current = self.entries.find(doomed.id, lock=True)
                if current is None:
                    continue
                if current.status == EntryStatus.PAID:
                    raise InvalidStateError(
                        f"Scheduled entry {doomed.id} was paid on "
                        f"{current.effective_date.isoformat()} and cannot be removed"
                    )
                delete_ids.append(current.id)
            self.entries.delete_many(delete_ids)

            removed = set(delete_ids)
            remaining_ids = [e.id for e in series if e.id not in removed]
            self.entries.update_many(
                remaining_ids,
                {"periodicity": periodicity, "recurrence_end_date": new_end_date},
            )
            if anchor.recurrence_group_id is not None:
                self.groups.update_definition(anchor.recurrence_group_id, periodicity, new_end_date)

            applied = ReconciliationPlan(to_create=created, to_delete=plan.to_delete)
            refreshed = self._load_series(
                self.entries.find(anchor_entry_id) or anchor, lock=False
            )
            event = EntryChangeEvent(
                "update_recurrence",
                anchor.owner_id,
                tuple(e.id for e in created) + tuple(delete_ids) + tuple(remaining_ids),
                anchor.recurrence_group_id,
            )
            return (
                OperationResult.success(
                    entry=anchor,
                    entries=refreshed,
                    group_id=anchor.recurrence_group_id,
                    plan=applied,
                    message=applied.impact_summary(),
                    details={"created": len(created), "deleted": len(delete_ids), "updated": len(remaining_ids)},
                ),
                event,
            )

        return self._execute("update_recurrence", work, entry_id=anchor_entry_id)

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def _series_tail(self, entry: ScheduledEntry) -> List[ScheduledEntry]:
        """The entry plus later entries of its recurrence or installment plan"""
        if entry.installment_info is not None and entry.recurrence_group_id is not None:
            return self.entries.find_installment_tail(entry.recurrence_group_id, entry.installment_info.current_index)
        if entry.is_recurring and entry.periodicity is not None:
            return self._load_series(entry, lock=True)
        return [entry]

    def delete_entry(self, entry_id: uuid.UUID, scope: str = "single") -> OperationResult:
        """
        Remove a non-paid entry, or with scope="series" the entry and every
        later non-paid entry of its series. Paid entries stay as history.
        """

        def work(stack: ExitStack):
            if scope not in ("single", "series"):
                raise InvalidStateError(f"Unknown delete scope: {scope}")
            entry = self.entries.find(entry_id)
            if entry is None:
                raise NotFoundError(f"Scheduled entry {entry_id} not found")
            # Lock order is always series before entry
            if scope == "series" and (entry.is_recurring or entry.installment_info is not None):
                stack.enter_context(self.locks.hold(self._group_key(entry)))
            self._lock_entry(stack, entry_id)
            entry = self._load_entry(entry_id)
            if entry.status == EntryStatus.PAID:
                raise InvalidStateError(
                    f"Scheduled entry {entry_id} is paid; cancel the payment before deleting it"
                )

            targets = self._series_tail(entry) if scope == "series" else [entry]
            delete_ids = []
            kept = 0
            for target in targets:
                if target.id != entry_id:
                    self._lock_entry(stack, target.id)
                    target = self.entries.find(target.id, lock=True)
                    if target is None:
                        continue
                if target.status == EntryStatus.PAID:
                    kept += 1
                else:
                    delete_ids.append(target.id)
            self.entries.delete_many(delete_ids)

            event = EntryChangeEvent("delete", entry.owner_id, tuple(delete_ids), entry.recurrence_group_id)
            return (
                OperationResult.success(
                    entry=entry,
                    group_id=entry.recurrence_group_id,
                    details={"deleted": len(delete_ids), "kept_paid": kept},
                ),
                event,
            )

        return self._execute("delete", work, entry_id=entry_id, scope=scope)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def upcoming(self, owner_id: str, account_scope: AccountScope) -> List[ScheduledEntry]:
        """Pending entries due within the configured upcoming window"""
        return self.entries.list_upcoming(
            owner_id=owner_id,
            account_scope=account_scope,
            today=self.clock.today(),
            window_days=settings.upcoming_window_days,
            limit=settings.upcoming_limit,
        )
