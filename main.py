import logging
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Response
from sqlalchemy.orm import Session

from config import get_settings
from database import SessionLocal
from models import Transaction
from periods import available_windows, resolve_window
from schemas import (
    CategoryIn,
    CategoryOut,
    CategorySortField,
    CategorySummaryOut,
    CategoryUpdate,
    ChartSeriesOut,
    SortDirection,
    SpendingSummaryOut,
    TransactionIn,
    TransactionOut,
    TransactionSortField,
    TransactionUpdate,
)
from services import CategoryService, SpendingService, TransactionService
from spending import SummaryInputError

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Budget Tracker")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def transaction_out(txn: Transaction) -> TransactionOut:
    category = txn.category
    return TransactionOut(
        id=txn.id,
        category_id=txn.category_id,
        category_name=category.name if category else None,
        max_spend_limit_cents=category.max_spend_limit_cents if category else None,
        amount_cents=txn.amount_cents,
        transaction_date=txn.transaction_date,
    )


def _now_or_default(now: Optional[datetime]) -> datetime:
    return now or datetime.utcnow()


@app.get("/api/windows")
def api_windows():
    return {"windows": available_windows(), "default": settings.default_window}


@app.get("/api/categories", response_model=list[CategoryOut])
def list_categories(
    sort: CategorySortField = "name",
    direction: SortDirection = "asc",
    db: Session = Depends(get_db),
):
    return CategoryService(db).list_all(sort, direction)


@app.post("/api/categories", response_model=CategoryOut, status_code=201)
def create_category(data: CategoryIn, db: Session = Depends(get_db)):
    try:
        return CategoryService(db).create(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/api/categories/{category_id}", response_model=CategoryOut)
def get_category(category_id: int, db: Session = Depends(get_db)):
    try:
        return CategoryService(db).get(category_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.patch("/api/categories/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: int, data: CategoryUpdate, db: Session = Depends(get_db)
):
    service = CategoryService(db)
    try:
        service.get(category_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    try:
        return service.update(category_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.delete("/api/categories/{category_id}", status_code=204)
def delete_category(category_id: int, db: Session = Depends(get_db)):
    try:
        CategoryService(db).delete(category_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get(
    "/api/categories/{category_id}/transactions",
    response_model=list[TransactionOut],
)
def category_transactions(category_id: int, db: Session = Depends(get_db)):
    try:
        CategoryService(db).get(category_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return [transaction_out(t) for t in TransactionService(db).by_category(category_id)]


@app.get("/api/transactions", response_model=list[TransactionOut])
def list_transactions(
    sort: TransactionSortField = "transaction_date",
    direction: SortDirection = "desc",
    db: Session = Depends(get_db),
):
    return [transaction_out(t) for t in TransactionService(db).list(sort, direction)]


@app.post("/api/transactions", response_model=TransactionOut, status_code=201)
def create_transaction(data: TransactionIn, db: Session = Depends(get_db)):
    service = TransactionService(db)
    try:
        txn = service.create(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return transaction_out(service.get(txn.id))


@app.get("/api/transactions/{transaction_id}", response_model=TransactionOut)
def get_transaction(transaction_id: int, db: Session = Depends(get_db)):
    try:
        return transaction_out(TransactionService(db).get(transaction_id))
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.patch("/api/transactions/{transaction_id}", response_model=TransactionOut)
def update_transaction(
    transaction_id: int, data: TransactionUpdate, db: Session = Depends(get_db)
):
    service = TransactionService(db)
    try:
        service.get(transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    try:
        txn = service.update(transaction_id, data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return transaction_out(service.get(txn.id))


@app.delete("/api/transactions/{transaction_id}", status_code=204)
def delete_transaction(transaction_id: int, db: Session = Depends(get_db)):
    try:
        TransactionService(db).delete(transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/api/summary", response_model=SpendingSummaryOut)
def api_summary(
    window: Optional[str] = Query(default=None),
    now: Optional[datetime] = Query(default=None),
    db: Session = Depends(get_db),
):
    label = window or settings.default_window
    reference = _now_or_default(now)
    try:
        items = SpendingService(db).summary(label, reference)
    except SummaryInputError as exc:
        logger.warning(f"summary_rejected: reason={exc}")
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return SpendingSummaryOut(
        window=resolve_window(label).label,
        now=reference,
        items=[
            CategorySummaryOut(
                name=item.name,
                total_spent_cents=item.total_spent,
                limit_cents=item.limit,
                over_limit=item.over_limit,
            )
            for item in items
        ],
    )


@app.get("/api/summary/chart", response_model=ChartSeriesOut)
def api_summary_chart(
    window: Optional[str] = Query(default=None),
    now: Optional[datetime] = Query(default=None),
    db: Session = Depends(get_db),
):
    label = window or settings.default_window
    try:
        series = SpendingService(db).chart(label, _now_or_default(now))
    except SummaryInputError as exc:
        logger.warning(f"chart_rejected: reason={exc}")
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ChartSeriesOut(
        window=resolve_window(label).label,
        labels=series.labels,
        totals_cents=series.totals,
        over_limit=series.over_limit,
    )
