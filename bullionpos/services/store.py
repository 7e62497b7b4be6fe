"""
bullionpos/services/store.py

Load/save of the two stored documents. Settings are sanitised on the way in
and out (schemas/settings.py validators); transactions are stored camelCase
with None fields omitted.
"""

import logging
from typing import List

from pydantic import ValidationError
from sqlalchemy.orm import Session

from bullionpos.models.store import KeyValue
from bullionpos.schemas.settings import Settings
from bullionpos.schemas.transaction import Transaction

logger = logging.getLogger(__name__)

SETTINGS_KEY = "settings"
TRANSACTIONS_KEY = "transactions"


def _get(db: Session, key: str):
    row = db.query(KeyValue).filter(KeyValue.key == key).first()
    return row.value if row else None


def _put(db: Session, key: str, value):
    row = db.query(KeyValue).filter(KeyValue.key == key).first()
    if row is None:
        row = KeyValue(key=key, value=value)
        db.add(row)
    else:
        row.value = value
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.debug(f"Stored key {key!r}")

# ---------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------

def load_settings(db: Session) -> Settings:
    raw = _get(db, SETTINGS_KEY)
    if not raw:
        return Settings()
    try:
        return Settings.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Stored settings are unreadable, using defaults: {e}")
        return Settings()


def save_settings(db: Session, settings: Settings) -> Settings:
    # Round-trip through validation so the stored copy is sanitised
    clean = Settings.model_validate(settings.model_dump(by_alias=True))
    _put(db, SETTINGS_KEY, clean.model_dump(by_alias=True, mode="json", exclude_none=True))
    logger.info(f"Settings saved for {clean.shop_name!r}")
    return clean

# ---------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------

def load_transactions(db: Session) -> List[Transaction]:
    raw = _get(db, TRANSACTIONS_KEY) or []
    return [Transaction.model_validate(record) for record in raw]


def save_transactions(db: Session, transactions: List[Transaction]) -> None:
    _put(db, TRANSACTIONS_KEY, [tx.to_record() for tx in transactions])
    logger.debug(f"Stored {len(transactions)} transactions")
