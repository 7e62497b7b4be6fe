"""
bullionpos/schemas/calculation.py

Response models for the derived views: FIFO cost basis, running inventory,
reorder alerts, the dashboard and a customer's profile.
"""

from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FormSummary(BaseModel):
    model_config = CAMEL

    qty: Decimal = Decimal("0")
    total_cost: Decimal = Decimal("0")
    avg_cost: Decimal = Decimal("0")


class IntegrityIssue(BaseModel):
    """Serializable record of a DataIntegrityWarning."""
    model_config = CAMEL

    code: str
    message: str
    transaction_id: str
    metal: str
    form: str
    coin_type: Optional[str] = None
    unmatched_qty: Decimal


class CostBasisReport(BaseModel):
    model_config = CAMEL

    # metal -> form -> remaining lots
    summary: Dict[str, Dict[str, FormSummary]] = Field(default_factory=dict)
    total_cost_basis: Decimal = Decimal("0")
    total_realized_pnl: Decimal = Decimal("0")
    realized_by_tx: Dict[str, Decimal] = Field(default_factory=dict)
    warnings: List[IntegrityIssue] = Field(default_factory=list)


class InventoryItem(BaseModel):
    model_config = CAMEL

    metal: str
    form: str
    coin_type: Optional[str] = None
    qty: Decimal


class ReorderAlert(BaseModel):
    model_config = CAMEL

    bucket: str
    qty: Decimal
    reorder_point: Decimal


class InventoryResponse(BaseModel):
    model_config = CAMEL

    items: List[InventoryItem] = Field(default_factory=list)
    reorder_alerts: List[ReorderAlert] = Field(default_factory=list)


class Holding(BaseModel):
    model_config = CAMEL

    qty: Decimal = Decimal("0")
    value: Decimal = Decimal("0")


class Dashboard(BaseModel):
    model_config = CAMEL

    today_count: int = 0
    today_bought: Decimal = Decimal("0")
    today_sold: Decimal = Decimal("0")
    today_profit: Decimal = Decimal("0")

    gold: Holding = Field(default_factory=Holding)
    silver: Holding = Field(default_factory=Holding)
    junk: Holding = Field(default_factory=Holding)
    junk_face_value: Decimal = Decimal("0")

    cost_basis: Decimal = Decimal("0")
    unrealized_pnl: Decimal = Decimal("0")

    unfiled_8300: int = 0
    unfiled_1099b: int = 0
    reorder_alert_count: int = 0


class CustomerProfile(BaseModel):
    model_config = CAMEL

    customer_id: str
    transaction_count: int = 0
    total_bought: Decimal = Decimal("0")
    total_sold: Decimal = Decimal("0")
    pnl: Decimal = Decimal("0")
    form_8300_count: int = 0
    form_1099b_count: int = 0
