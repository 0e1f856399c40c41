"""
Repository layer exports.
"""

from db.repositories.errors import MetricStoreError, SchemaUnavailableError
from db.repositories.table_gateway import SQLAlchemyTableGateway, TableGateway

__all__ = [
    "MetricStoreError",
    "SchemaUnavailableError",
    "SQLAlchemyTableGateway",
    "TableGateway",
]
