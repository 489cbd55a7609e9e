"""
Fuentes de registros de facturación.

El motor solo conoce tres consultas de lectura; cualquier fallo de la fuente
se convierte en DataUnavailableError. Nunca se devuelve una lista vacía en su
lugar, porque daría lugar a una declaración a cero con apariencia legítima.
"""
import json
import logging
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Union

from ..core.exceptions import DataUnavailableError, FiscalEngineError
from ..schemas.records import CounterpartyInfo, FinancialRecord, RecordKind

logger = logging.getLogger(__name__)


class RecordSource(Protocol):
    """Interfaz de lectura que debe ofrecer el sistema de facturación."""

    def issued_invoices(self, start: date, end: date) -> List[FinancialRecord]:
        ...

    def received_invoices_and_expenses(self, start: date, end: date) -> List[FinancialRecord]:
        ...

    def counterparty_info(self, key: str) -> Optional[CounterpartyInfo]:
        ...


class InMemoryRecordSource:
    """Fuente sobre colecciones ya cargadas en memoria."""

    def __init__(
        self,
        records: Iterable[FinancialRecord] = (),
        counterparties: Optional[Dict[str, CounterpartyInfo]] = None
    ):
        self.records = tuple(records)
        self.counterparties = dict(counterparties or {})

    def _select(self, kinds, start: date, end: date) -> List[FinancialRecord]:
        return [r for r in self.records if r.kind in kinds and r.in_range(start, end)]

    def issued_invoices(self, start: date, end: date) -> List[FinancialRecord]:
        return self._select({RecordKind.ISSUED_INVOICE}, start, end)

    def received_invoices_and_expenses(self, start: date, end: date) -> List[FinancialRecord]:
        return self._select({RecordKind.RECEIVED_INVOICE, RecordKind.EXPENSE}, start, end)

    def counterparty_info(self, key: str) -> Optional[CounterpartyInfo]:
        return self.counterparties.get(key)


class JsonRecordSource(InMemoryRecordSource):
    """
    Fuente sobre un fichero JSON exportado del sistema de facturación.

    Formato:
    {
        "issued_invoices": [{"record_date": "2024-01-15", "base_amount": "1000", ...}],
        "received_invoices": [...],
        "expenses": [...],
        "counterparties": {"12": {"name": "...", "tax_id": "..."}}
    }
    """

    SECTIONS = {
        "issued_invoices": RecordKind.ISSUED_INVOICE,
        "received_invoices": RecordKind.RECEIVED_INVOICE,
        "expenses": RecordKind.EXPENSE,
    }

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._loaded = False
        super().__init__()

    def _load(self):
        if self._loaded:
            return
        with open(self.path, encoding="utf-8") as fh:
            data = json.load(fh)

        records = []
        for section, kind in self.SECTIONS.items():
            for item in data.get(section, []):
                records.append(FinancialRecord(**{**item, "kind": kind}))

        self.records = tuple(records)
        self.counterparties = {
            str(key): CounterpartyInfo(name=info.get("name"), tax_id=info.get("tax_id"))
            for key, info in data.get("counterparties", {}).items()
        }
        self._loaded = True
        logger.info(f"{len(self.records)} registros cargados desde {self.path}")

    def issued_invoices(self, start: date, end: date) -> List[FinancialRecord]:
        self._load()
        return super().issued_invoices(start, end)

    def received_invoices_and_expenses(self, start: date, end: date) -> List[FinancialRecord]:
        self._load()
        return super().received_invoices_and_expenses(start, end)

    def counterparty_info(self, key: str) -> Optional[CounterpartyInfo]:
        self._load()
        return super().counterparty_info(key)


class RecordFetcher:
    """
    Envoltorio de una fuente que traduce cualquier fallo en DataUnavailableError.
    """

    def __init__(self, source: RecordSource):
        self.source = source

    def _call(self, label: str, fn, *args):
        try:
            return list(fn(*args))
        except FiscalEngineError:
            raise
        except Exception as e:
            logger.error(f"Error obteniendo {label}: {e}")
            raise DataUnavailableError(label, *args) from e

    def issued_invoices(self, start: date, end: date) -> List[FinancialRecord]:
        return self._call("facturas emitidas", self.source.issued_invoices, start, end)

    def received_invoices_and_expenses(self, start: date, end: date) -> List[FinancialRecord]:
        return self._call(
            "facturas recibidas y gastos",
            self.source.received_invoices_and_expenses,
            start,
            end,
        )

    def counterparty_info(self, key: str) -> Optional[CounterpartyInfo]:
        try:
            return self.source.counterparty_info(key)
        except FiscalEngineError:
            raise
        except Exception as e:
            logger.error(f"Error obteniendo datos del tercero {key}: {e}")
            raise DataUnavailableError(f"tercero {key}") from e
