"""Data access layer for scheduled entries, recurrence groups and ledger transactions"""

import uuid
from datetime import date
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy.orm import Session

from obligation_engine.infrastructure.database.models import (
    LedgerTransactionRecord,
    RecurrenceGroup,
    ScheduledEntryRecord,
)
from obligation_engine.domain.exceptions import NotFoundError
from obligation_engine.domain.models import (
    AccountScope,
    EntryKind,
    EntryStatus,
    InstallmentInfo,
    LedgerTransaction,
    Periodicity,
    ScheduledEntry,
    SeriesType,
)
from obligation_engine.domain.schedule import normalize_periodicity
from obligation_engine.utils.date_utils import add_days


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def _to_domain(record: ScheduledEntryRecord) -> ScheduledEntry:
    installment_info = None
    if record.installment_index is not None and record.installment_total is not None:
        installment_info = InstallmentInfo(
            current_index=record.installment_index,
            total_count=record.installment_total,
        )

    return ScheduledEntry(
        id=record.id,
        owner_id=record.owner_id,
        kind=EntryKind(record.kind),
        amount=record.amount,
        description=record.description,
        category_id=record.category_id,
        expected_date=record.expected_date,
        account_scope=AccountScope(record.account_scope),
        account_id=record.account_id,
        counterparty=record.counterparty,
        status=EntryStatus(record.status),
        is_recurring=record.is_recurring,
        periodicity=normalize_periodicity(record.periodicity) if record.periodicity else None,
        recurrence_end_date=record.recurrence_end_date,
        installment_info=installment_info,
        recurrence_group_id=record.recurrence_group_id,
        realized_transaction_id=record.realized_transaction_id,
        effective_date=record.effective_date,
    )


def _to_columns(patch: Dict[str, Any]) -> Dict[str, Any]:
    """Translate a domain-level patch into column values"""
    columns: Dict[str, Any] = {}
    for key, value in patch.items():
        if key == "installment_info":
            columns["installment_index"] = value.current_index if value else None
            columns["installment_total"] = value.total_count if value else None
        elif key == "id":
            continue
        else:
            columns[key] = _enum_value(value)
    return columns


class ScheduledEntryRepository:
    """Repository for scheduled (not yet realized) entries"""

    def __init__(self, db: Session):
        self.db = db

    def _get_record(self, entry_id: uuid.UUID, lock: bool = False) -> Optional[ScheduledEntryRecord]:
        query = self.db.query(ScheduledEntryRecord).filter(ScheduledEntryRecord.id == entry_id)
        if lock:
            query = query.with_for_update()  # Row-level lock
        return query.first()

    def find(self, entry_id: uuid.UUID, lock: bool = False) -> Optional[ScheduledEntry]:
        """Fetch one entry, optionally locking its row until commit"""
        record = self._get_record(entry_id, lock=lock)
        return _to_domain(record) if record else None

    def find_group(
        self,
        group_id: uuid.UUID,
        from_date: Optional[date] = None,
        lock: bool = False,
    ) -> List[ScheduledEntry]:
        """Entries of a recurrence group ordered by expected date"""
        query = self.db.query(ScheduledEntryRecord).filter(ScheduledEntryRecord.recurrence_group_id == group_id)
        if from_date is not None:
            query = query.filter(ScheduledEntryRecord.expected_date >= from_date)
        if lock:
            query = query.with_for_update()
        return [_to_domain(r) for r in query.order_by(ScheduledEntryRecord.expected_date).all()]

    def find_group_by_signature(
        self,
        owner_id: str,
        kind: EntryKind,
        category_id: str,
        periodicity: Periodicity | str,
        account_scope: AccountScope,
        from_date: date,
        lock: bool = False,
    ) -> List[ScheduledEntry]:
        """
        Resolve a recurring series for rows that predate explicit group ids.

        Membership is the (owner, kind, category, periodicity, scope) tuple plus
        an expected date on or after the anchor's.
        """
        query = (
            self.db.query(ScheduledEntryRecord)
            .filter(ScheduledEntryRecord.owner_id == owner_id)
            .filter(ScheduledEntryRecord.is_recurring.is_(True))
            .filter(ScheduledEntryRecord.recurrence_group_id.is_(None))
            .filter(ScheduledEntryRecord.kind == _enum_value(kind))
            .filter(ScheduledEntryRecord.category_id == category_id)
            .filter(ScheduledEntryRecord.periodicity == _enum_value(periodicity))
            .filter(ScheduledEntryRecord.account_scope == _enum_value(account_scope))
            .filter(ScheduledEntryRecord.expected_date >= from_date)
        )
        if lock:
            query = query.with_for_update()
        return [_to_domain(r) for r in query.order_by(ScheduledEntryRecord.expected_date).all()]

    def find_installment_tail(self, group_id: uuid.UUID, from_index: int) -> List[ScheduledEntry]:
        """Installments of a plan from `from_index` on"""
        records = (
            self.db.query(ScheduledEntryRecord)
            .filter(ScheduledEntryRecord.recurrence_group_id == group_id)
            .filter(ScheduledEntryRecord.installment_index >= from_index)
            .order_by(ScheduledEntryRecord.installment_index)
            .with_for_update()
            .all()
        )
        return [_to_domain(r) for r in records]

    def insert(self, entry: ScheduledEntry) -> ScheduledEntry:
        """Persist a new entry and return it with its assigned id"""
        columns = _to_columns(
            {k: v for k, v in vars(entry).items() if k not in ("id", "installment_info")}
        )
        columns.update(_to_columns({"installment_info": entry.installment_info}))
        record = ScheduledEntryRecord(**columns)
        self.db.add(record)
        self.db.flush()  # Get ID without committing
        return _to_domain(record)

    def insert_many(self, entries: Iterable[ScheduledEntry]) -> List[ScheduledEntry]:
        return [self.insert(entry) for entry in entries]

    def update(self, entry_id: uuid.UUID, patch: Dict[str, Any]) -> ScheduledEntry:
        """Apply a field patch to one entry"""
        record = self._get_record(entry_id)
        if record is None:
            raise NotFoundError(f"Scheduled entry {entry_id} not found")
        for column, value in _to_columns(patch).items():
            setattr(record, column, value)
        self.db.flush()
        return _to_domain(record)

    def update_many(self, entry_ids: List[uuid.UUID], patch: Dict[str, Any]) -> int:
        if not entry_ids:
            return 0
        updated = (
            self.db.query(ScheduledEntryRecord)
            .filter(ScheduledEntryRecord.id.in_(entry_ids))
            .update(_to_columns(patch), synchronize_session="fetch")
        )
        self.db.flush()
        return updated

    def delete(self, entry_id: uuid.UUID) -> None:
        record = self._get_record(entry_id)
        if record is None:
            raise NotFoundError(f"Scheduled entry {entry_id} not found")
        self.db.delete(record)
        self.db.flush()

    def delete_many(self, entry_ids: List[uuid.UUID]) -> int:
        if not entry_ids:
            return 0
        deleted = (
            self.db.query(ScheduledEntryRecord)
            .filter(ScheduledEntryRecord.id.in_(entry_ids))
            .delete(synchronize_session="fetch")
        )
        self.db.flush()
        return deleted

    def list_entries(
        self,
        owner_id: str,
        kind: Optional[EntryKind] = None,
        account_scope: Optional[AccountScope] = None,
        status: Optional[EntryStatus] = None,
    ) -> List[ScheduledEntry]:
        """Entries of an owner ordered by expected date"""
        query = self.db.query(ScheduledEntryRecord).filter(ScheduledEntryRecord.owner_id == owner_id)
        if kind is not None:
            query = query.filter(ScheduledEntryRecord.kind == _enum_value(kind))
        if account_scope is not None:
            query = query.filter(ScheduledEntryRecord.account_scope == _enum_value(account_scope))
        if status is not None:
            query = query.filter(ScheduledEntryRecord.status == _enum_value(status))
        return [_to_domain(r) for r in query.order_by(ScheduledEntryRecord.expected_date).all()]

    def list_upcoming(
        self,
        owner_id: str,
        account_scope: AccountScope,
        today: date,
        window_days: int,
        limit: int,
    ) -> List[ScheduledEntry]:
        """Pending entries due between today and today + window_days"""
        records = (
            self.db.query(ScheduledEntryRecord)
            .filter(ScheduledEntryRecord.owner_id == owner_id)
            .filter(ScheduledEntryRecord.account_scope == _enum_value(account_scope))
            .filter(ScheduledEntryRecord.status == EntryStatus.PENDING.value)
            .filter(ScheduledEntryRecord.expected_date >= today)
            .filter(ScheduledEntryRecord.expected_date <= add_days(today, window_days))
            .order_by(ScheduledEntryRecord.expected_date)
            .limit(limit)
            .all()
        )
        return [_to_domain(r) for r in records]


class RecurrenceGroupRepository:
    """Repository for recurrence groups"""

    def __init__(self, db: Session):
        self.db = db

    def create_group(
        self,
        owner_id: str,
        series_type: SeriesType,
        periodicity: Periodicity,
        start_date: date,
        end_date: Optional[date],
    ) -> RecurrenceGroup:
        group = RecurrenceGroup(
            owner_id=owner_id,
            series_type=series_type.value,
            periodicity=periodicity.value,
            start_date=start_date,
            end_date=end_date,
        )
        self.db.add(group)
        self.db.flush()
        return group

    def get_group(self, group_id: uuid.UUID, lock: bool = False) -> Optional[RecurrenceGroup]:
        query = self.db.query(RecurrenceGroup).filter(RecurrenceGroup.id == group_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def update_definition(self, group_id: uuid.UUID, periodicity: Periodicity, end_date: date) -> None:
        group = self.get_group(group_id)
        if group is None:
            raise NotFoundError(f"Recurrence group {group_id} not found")
        group.periodicity = periodicity.value
        group.end_date = end_date
        self.db.flush()


class LedgerTransactionRepository:
    """Repository for realized ledger transactions"""

    def __init__(self, db: Session):
        self.db = db

    def insert(self, transaction: LedgerTransaction) -> uuid.UUID:
        """Persist a realized transaction and return its id"""
        record = LedgerTransactionRecord(
            owner_id=transaction.owner_id,
            kind=transaction.kind.value,
            amount=transaction.amount,
            description=transaction.description,
            category_id=transaction.category_id,
            transaction_date=transaction.transaction_date,
            account_scope=transaction.account_scope.value,
            account_id=transaction.account_id,
            payer=transaction.payer,
            payee=transaction.payee,
            originating_entry_id=transaction.originating_entry_id,
        )
        self.db.add(record)
        self.db.flush()
        return record.id

    def get(self, transaction_id: uuid.UUID) -> Optional[LedgerTransactionRecord]:
        return (
            self.db.query(LedgerTransactionRecord)
            .filter(LedgerTransactionRecord.id == transaction_id)
            .first()
        )

    def delete(self, transaction_id: uuid.UUID) -> bool:
        """Delete a transaction; False when it no longer exists"""
        record = self.get(transaction_id)
        if record is None:
            return False
        self.db.delete(record)
        self.db.flush()
        return True
