"""
bullionpos/routers/calculation.py

Derived views over the stored history: FIFO cost basis, running inventory
with reorder alerts, the dashboard and per-customer profiles. Nothing here
writes; every call recomputes from the transaction list.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from bullionpos.database import get_db
from bullionpos.schemas.calculation import (
    CostBasisReport,
    CustomerProfile,
    Dashboard,
    InventoryResponse,
)
from bullionpos.schemas.pricing import SpotPrices
from bullionpos.services import store
from bullionpos.services.cost_basis import compute_cost_basis, get_inventory, inventory_items
from bullionpos.services.dashboard import build_dashboard, customer_profile, reorder_alerts

router = APIRouter(tags=["calculations"])


@router.get("/cost-basis", response_model=CostBasisReport, response_model_by_alias=True)
def get_cost_basis(db: Session = Depends(get_db)):
    return compute_cost_basis(store.load_transactions(db), store.load_settings(db))


@router.get("/inventory", response_model=InventoryResponse, response_model_by_alias=True)
def get_running_inventory(db: Session = Depends(get_db)):
    settings = store.load_settings(db)
    inventory = get_inventory(store.load_transactions(db))
    return InventoryResponse(
        items=inventory_items(inventory),
        reorder_alerts=reorder_alerts(inventory, settings),
    )


@router.get("/dashboard", response_model=Dashboard, response_model_by_alias=True)
def get_dashboard(
    gold: Decimal = Query(default=Decimal("0"), ge=0),
    silver: Decimal = Query(default=Decimal("0"), ge=0),
    today: Optional[date] = Query(default=None),
    db: Session = Depends(get_db),
):
    """Spot prices are injected by the caller (?gold=...&silver=...)."""
    return build_dashboard(
        store.load_transactions(db),
        store.load_settings(db),
        SpotPrices(gold=gold, silver=silver),
        today,
    )


@router.get("/customers/{customer_id}", response_model=CustomerProfile, response_model_by_alias=True)
def get_customer_profile(customer_id: str, db: Session = Depends(get_db)):
    return customer_profile(store.load_transactions(db), customer_id)
