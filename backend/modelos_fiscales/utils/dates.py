"""
Utilidades de fechas: parseo tolerante y límites de trimestre.
"""
import calendar
import logging
from datetime import date, datetime
from typing import Any, Optional

logger = logging.getLogger(__name__)


def parse_fecha(value: Any) -> Optional[date]:
    """
    Parsea una fecha soportando varios formatos.

    - date / datetime
    - ISO con hora: 2024-01-15T10:30:00
    - dd/mm/yyyy
    - ISO: 2024-01-15

    Devuelve None si no se puede interpretar; nunca lanza excepción.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    try:
        if "T" in text:
            return date.fromisoformat(text[:10])
        if "/" in text:
            return datetime.strptime(text, "%d/%m/%Y").date()
        return date.fromisoformat(text)
    except ValueError:
        logger.warning(f"No se pudo parsear fecha: {text}")
        return None


def quarter_start(year: int, quarter: int) -> date:
    """Primer día del trimestre: meses 3N-2..3N."""
    return date(year, (quarter - 1) * 3 + 1, 1)


def quarter_end(year: int, quarter: int) -> date:
    """Último día del trimestre."""
    month = quarter * 3
    return date(year, month, calendar.monthrange(year, month)[1])


def quarter_of(value: date) -> int:
    """Trimestre natural al que pertenece una fecha."""
    return (value.month - 1) // 3 + 1
