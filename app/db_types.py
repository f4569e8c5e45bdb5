"""Database-agnostic type definitions for SQLAlchemy models.

This module provides type definitions that work with both SQLite and PostgreSQL.
"""
from sqlalchemy import Numeric, Uuid

# UUID type that works with both databases (native uuid on PostgreSQL, CHAR(32) on SQLite)
UUIDType = Uuid

# All monetary columns: rupees with paise
MoneyType = Numeric(12, 2)

# GST percentages such as 18.00 or 2.50
RateType = Numeric(5, 2)
