"""
Esquemas Pydantic de los registros de facturación.
Los registros llegan de la fuente externa y son inmutables para el motor:
los nulos se normalizan una sola vez, al construirlos.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, model_validator

from ..utils.dates import parse_fecha
from ..utils.formatters import normalize_nif, round_half_up, to_decimal


class RecordKind(str, Enum):
    ISSUED_INVOICE = "factura_emitida"
    RECEIVED_INVOICE = "factura_recibida"
    EXPENSE = "gasto"


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class FinancialRecord(BaseModel):
    """
    Factura emitida, factura recibida o gasto.

    - Importes nulos -> 0
    - Cuota nula con tipo conocido -> base * tipo / 100 (HALF_UP)
    - Total nulo -> base + cuota
    - Fecha no interpretable -> None (el registro queda fuera de cualquier período)
    """
    model_config = ConfigDict(frozen=True)

    kind: RecordKind
    record_date: Optional[date] = None
    number: Optional[str] = None

    base_amount: Decimal = Decimal(0)
    vat_rate: Optional[Decimal] = None
    vat_amount: Decimal = Decimal(0)
    total: Decimal = Decimal(0)
    # Retención IRPF soportada en la factura
    withholding_amount: Decimal = Decimal(0)

    counterparty_id: Optional[str] = None
    counterparty_name: Optional[str] = None
    counterparty_tax_id: Optional[str] = None

    category: Optional[str] = None
    concept: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_amounts(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)

        base = to_decimal(data.get("base_amount"))
        rate = None if _is_blank(data.get("vat_rate")) else to_decimal(data.get("vat_rate"))

        vat = data.get("vat_amount")
        if _is_blank(vat):
            vat = round_half_up(base * rate / 100) if rate is not None else Decimal(0)
        else:
            vat = to_decimal(vat)

        total = data.get("total")
        total = base + vat if _is_blank(total) else to_decimal(total)

        counterparty_id = data.get("counterparty_id")

        data.update(
            base_amount=base,
            vat_rate=rate,
            vat_amount=vat,
            total=total,
            withholding_amount=to_decimal(data.get("withholding_amount")),
            record_date=parse_fecha(data.get("record_date")),
            counterparty_id=None if _is_blank(counterparty_id) else str(counterparty_id),
        )
        return data

    @classmethod
    def issued_invoice(cls, **fields) -> "FinancialRecord":
        return cls(kind=RecordKind.ISSUED_INVOICE, **fields)

    @classmethod
    def received_invoice(cls, **fields) -> "FinancialRecord":
        return cls(kind=RecordKind.RECEIVED_INVOICE, **fields)

    @classmethod
    def expense(cls, **fields) -> "FinancialRecord":
        return cls(kind=RecordKind.EXPENSE, **fields)

    @property
    def counterparty_key(self) -> Optional[str]:
        """
        Clave de agrupación del tercero: NIF si existe, si no el nombre.
        """
        tax_id = normalize_nif(self.counterparty_tax_id)
        if tax_id:
            return tax_id
        if not _is_blank(self.counterparty_name):
            return self.counterparty_name.strip()
        return None

    def in_range(self, start: date, end: date) -> bool:
        """Fecha dentro de [start, end], ambos inclusive."""
        return self.record_date is not None and start <= self.record_date <= end


@dataclass(frozen=True)
class CounterpartyInfo:
    """Datos de un cliente o proveedor, solo para presentación."""
    name: Optional[str] = None
    tax_id: Optional[str] = None
