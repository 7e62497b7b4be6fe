"""
bullionpos/routers/settings.py

Dealer settings: read the current document, or sanitise and save a new one.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from bullionpos.database import get_db
from bullionpos.schemas.settings import Settings
from bullionpos.services import store

router = APIRouter(tags=["settings"])


@router.get("", response_model=Settings, response_model_by_alias=True)
def read_settings(db: Session = Depends(get_db)):
    return store.load_settings(db)


@router.put("", response_model=Settings, response_model_by_alias=True)
def update_settings(settings: Settings, db: Session = Depends(get_db)):
    """
    Full overwrite. Negative margins are stored as 0, a bad junk multiplier
    as 0.715, unknown premium modes as 'percent'.
    """
    return store.save_settings(db, settings)
