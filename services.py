from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from models import Category, Transaction
from periods import resolve_window
from schemas import (
    CategoryIn,
    CategorySortField,
    CategoryUpdate,
    SortDirection,
    TransactionIn,
    TransactionSortField,
    TransactionUpdate,
)
from spending import (
    CategoryRecord,
    CategorySummary,
    ChartSeries,
    UNCATEGORIZED,
    TransactionRecord,
    chart_series,
    summarize,
)

logger = logging.getLogger(__name__)


def get_current_user_id() -> int:
    return 1


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class CategoryService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(
        self,
        sort_field: CategorySortField = "name",
        direction: SortDirection = "asc",
    ) -> list[Category]:
        if sort_field == "max_spend_limit":
            column = Category.max_spend_limit_cents
        else:
            column = func.lower(Category.name)
        order = column.desc() if direction == "desc" else column.asc()
        stmt = (
            select(Category)
            .where(Category.user_id == self.user_id)
            .order_by(order, Category.id)
        )
        return list(self.session.scalars(stmt).all())

    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise ValueError("Category not found")
        return category

    def _ensure_allowed_name(
        self, name: str, exclude_id: Optional[int] = None
    ) -> None:
        if name.lower() == UNCATEGORIZED.lower():
            raise ValueError(f'"{UNCATEGORIZED}" is reserved for unassigned spending')
        stmt = select(Category).where(
            Category.user_id == self.user_id,
            func.lower(Category.name) == name.lower(),
        )
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        if self.session.scalar(stmt):
            raise ValueError("Category with this name already exists")

    def create(self, data: CategoryIn) -> Category:
        name = data.name.strip()
        if not name:
            raise ValueError("Category name is required")
        self._ensure_allowed_name(name)
        category = Category(
            user_id=self.user_id,
            name=name,
            max_spend_limit_cents=data.max_spend_limit_cents,
        )
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        logger.info(f"category_created: id={category.id} user_id={self.user_id}")
        return category

    def update(self, category_id: int, data: CategoryUpdate) -> Category:
        category = self.get(category_id)
        fields = data.model_fields_set
        if "name" in fields and data.name is not None:
            name = data.name.strip()
            if not name:
                raise ValueError("Category name is required")
            self._ensure_allowed_name(name, exclude_id=category.id)
            category.name = name
        if "max_spend_limit_cents" in fields:
            category.max_spend_limit_cents = data.max_spend_limit_cents
        self.session.commit()
        self.session.refresh(category)
        return category

    def delete(self, category_id: int) -> None:
        """Delete a category; its transactions fall back to "Uncategorized"."""
        category = self.get(category_id)
        self.session.delete(category)
        self.session.commit()
        logger.info(f"category_deleted: id={category_id} user_id={self.user_id}")


class TransactionService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def _resolve_category(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise ValueError("Category not found")
        return category

    def create(self, data: TransactionIn) -> Transaction:
        self._resolve_category(data.category_id)
        txn = Transaction(
            user_id=self.user_id,
            category_id=data.category_id,
            amount_cents=data.amount_cents,
            transaction_date=(
                to_naive_utc(data.transaction_date)
                if data.transaction_date
                else datetime.utcnow()
            ),
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_created: id={txn.id} user_id={self.user_id} "
            f"category_id={txn.category_id} amount_cents={txn.amount_cents}"
        )
        return txn

    def get(self, transaction_id: int) -> Transaction:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(
                Transaction.user_id == self.user_id, Transaction.id == transaction_id
            )
        )
        txn = self.session.scalar(stmt)
        if not txn:
            raise ValueError("Transaction not found")
        return txn

    def list(
        self,
        sort_field: TransactionSortField = "transaction_date",
        direction: SortDirection = "desc",
    ) -> list[Transaction]:
        if sort_field == "category_name":
            column = func.lower(Category.name)
        elif sort_field == "amount":
            column = Transaction.amount_cents
        else:
            column = Transaction.transaction_date
        order = column.desc() if direction == "desc" else column.asc()
        stmt = (
            select(Transaction)
            .outerjoin(Category, Category.id == Transaction.category_id)
            .options(joinedload(Transaction.category))
            .where(Transaction.user_id == self.user_id)
            .order_by(order, Transaction.id)
        )
        return list(self.session.scalars(stmt).unique().all())

    def by_category(self, category_id: int) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(
                Transaction.user_id == self.user_id,
                Transaction.category_id == category_id,
            )
            .order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
        )
        return list(self.session.scalars(stmt).unique().all())

    def update(self, transaction_id: int, data: TransactionUpdate) -> Transaction:
        txn = self.get(transaction_id)
        fields = data.model_fields_set
        if "category_id" in fields and data.category_id is not None:
            self._resolve_category(data.category_id)
            txn.category_id = data.category_id
        if "amount_cents" in fields and data.amount_cents is not None:
            txn.amount_cents = data.amount_cents
        if "transaction_date" in fields and data.transaction_date is not None:
            txn.transaction_date = to_naive_utc(data.transaction_date)
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def delete(self, transaction_id: int) -> None:
        txn = self.session.get(Transaction, transaction_id)
        if not txn or txn.user_id != self.user_id:
            raise ValueError("Transaction not found")
        self.session.delete(txn)
        self.session.commit()
        logger.info(f"transaction_deleted: id={transaction_id} user_id={self.user_id}")

    def snapshot(self) -> tuple[list[TransactionRecord], list[CategoryRecord]]:
        """Load the user's transactions and categories as engine records.

        Transactions come back in insertion (id) order, so a backdated entry
        does not move its category ahead in the summary.
        """
        txn_rows = self.session.execute(
            select(
                Transaction.id,
                Transaction.category_id,
                Transaction.amount_cents,
                Transaction.transaction_date,
            )
            .where(Transaction.user_id == self.user_id)
            .order_by(Transaction.id.asc())
        ).all()
        category_rows = self.session.execute(
            select(Category.id, Category.name, Category.max_spend_limit_cents).where(
                Category.user_id == self.user_id
            )
        ).all()
        transactions = [
            TransactionRecord(
                id=row.id,
                category_id=row.category_id,
                amount=row.amount_cents,
                date=row.transaction_date,
                user_id=self.user_id,
            )
            for row in txn_rows
        ]
        categories = [
            CategoryRecord(
                id=row.id, name=row.name, limit=row.max_spend_limit_cents
            )
            for row in category_rows
        ]
        return transactions, categories


class SpendingService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def summary(
        self, window_label: Optional[str], now: datetime
    ) -> list[CategorySummary]:
        transactions, categories = TransactionService(
            self.session, self.user_id
        ).snapshot()
        result = summarize(transactions, categories, window_label, now)
        logger.info(
            f"summary_built: user_id={self.user_id} "
            f"window={resolve_window(window_label).label} items={len(result)} "
            f"over_limit={sum(1 for item in result if item.over_limit)}"
        )
        return result

    def chart(self, window_label: Optional[str], now: datetime) -> ChartSeries:
        return chart_series(self.summary(window_label, now))
