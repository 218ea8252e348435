"""
Core Package - HRM KPI Engine
hrm_kpi/core/__init__.py

Core infrastructure: exceptions, logging. Dependency factories live in
hrm_kpi.core.dependencies and are imported from there by the routers.
"""

from hrm_kpi.core.exceptions import (
    DatabaseConnectionException,
    DuplicateEntityException,
    EntityNotFoundException,
    ForeignKeyViolationException,
    KpiEngineError,
    RepositoryException,
)

__all__ = [
    # Exceptions
    "DatabaseConnectionException",
    "DuplicateEntityException",
    "EntityNotFoundException",
    "ForeignKeyViolationException",
    "KpiEngineError",
    "RepositoryException",
]
