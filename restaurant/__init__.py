"""
                Restaurant Management Backend

Order lifecycle, line-item aggregation and role-based authorization
for a restaurant: orders, order lines, reservations, food catalog and
inventory, served over FastAPI with an async SQLAlchemy store.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
