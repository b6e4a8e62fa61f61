"""Database-agnostic type definitions for SQLAlchemy models.

This module provides type definitions that work with both SQLite and PostgreSQL.
"""
from sqlalchemy import JSON, Numeric, Uuid

# JSONB is PostgreSQL-specific, JSON works with both SQLite and PostgreSQL
JSONType = JSON

# Native UUID on PostgreSQL, CHAR(32) on SQLite
UUIDType = Uuid

# Currency amounts: two fractional digits
MoneyType = Numeric(12, 2)

# Coverage rates such as 0.0188
RateType = Numeric(10, 6)
