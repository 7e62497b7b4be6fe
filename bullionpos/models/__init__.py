# bullionpos/models/__init__.py

"""
Centralizes model imports so Base.metadata knows every table.
"""

from bullionpos.database import Base

# Key/value document store
from .store import KeyValue
