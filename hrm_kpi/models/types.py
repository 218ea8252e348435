"""
Shared field types - HRM KPI Engine
hrm_kpi/models/types.py

Scores and amounts are Decimals internally (exact 2 dp rounding across
recomputes) and serialize as JSON numbers.
"""

from decimal import Decimal
from typing import Annotated

from pydantic import PlainSerializer

Score = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
