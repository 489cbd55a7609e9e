"""
Generación del Modelo 347 - Operaciones con terceras personas.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from ..schemas.declarations import (
    Declarant,
    DeclarationKind,
    DeclarationPeriod,
    DeclaredCounterparty,
    OperationCode,
    ThirdPartyReport,
)
from ..schemas.records import FinancialRecord
from ..utils.dates import quarter_of
from ..utils.formatters import normalize_nif, pad_zeros, round_half_up
from ..utils.validators import is_nif_format, validate_nif
from .calculation_engine import DISCLOSURE_THRESHOLD
from .record_source import RecordFetcher, RecordSource

logger = logging.getLogger(__name__)


@dataclass
class _CounterpartyGroup:
    key: str
    operation_code: OperationCode
    name: str = ""
    annual_total: Decimal = Decimal(0)
    quarter_totals: List[Decimal] = field(
        default_factory=lambda: [Decimal(0), Decimal(0), Decimal(0), Decimal(0)]
    )
    operation_count: int = 0

    def add(self, record: FinancialRecord, name: Optional[str]):
        if not self.name and name:
            self.name = name.strip()
        self.annual_total += record.total
        self.quarter_totals[quarter_of(record.record_date) - 1] += record.total
        self.operation_count += 1


class ThresholdFilter:
    """Umbral de declaración: se incluye el tercero si abs(importe) >= 3005.06 €."""

    threshold = DISCLOSURE_THRESHOLD

    def qualifies(self, amount: Decimal) -> bool:
        return abs(round_half_up(amount)) >= self.threshold

    def apply(self, counterparties: Iterable[DeclaredCounterparty]) -> List[DeclaredCounterparty]:
        return [c for c in counterparties if self.qualifies(c.annual_total)]


class ThirdPartyReportBuilder:
    """
    Modelo 347.

    - Ventas (clave B): totales de facturas emitidas agrupados por cliente.
    - Compras (clave A): totales de facturas recibidas y gastos por proveedor.
    - Agrupación por NIF, o por nombre si no hay NIF. Si el registro no trae
      ninguno de los dos, se consulta la fuente por el identificador del tercero.
    """

    def __init__(
        self,
        source: RecordSource,
        declarant: Declarant,
        threshold_filter: Optional[ThresholdFilter] = None
    ):
        self.fetcher = RecordFetcher(source)
        self.declarant = declarant
        self.threshold_filter = threshold_filter or ThresholdFilter()

    def build(
        self,
        period: DeclarationPeriod,
        declaration_kind: DeclarationKind = DeclarationKind.NORMAL
    ) -> ThirdPartyReport:
        logger.info(f"Generando Modelo 347 para año {period.year}")

        sales = self.fetcher.issued_invoices(period.start, period.end)
        purchases = self.fetcher.received_invoices_and_expenses(period.start, period.end)

        report = self.build_from_records(period, sales, purchases, declaration_kind)

        logger.info(
            f"Modelo 347 generado - {report.customer_count} clientes, "
            f"{report.supplier_count} proveedores"
        )
        return report

    def build_from_records(
        self,
        period: DeclarationPeriod,
        sales: Iterable[FinancialRecord],
        purchases: Iterable[FinancialRecord],
        declaration_kind: DeclarationKind = DeclarationKind.NORMAL
    ) -> ThirdPartyReport:
        """Calcula el 347 a partir de registros ya obtenidos."""
        candidates = (
            self._group(sales, period, OperationCode.SALES)
            + self._group(purchases, period, OperationCode.PURCHASES)
        )
        declared = self.threshold_filter.apply(candidates)

        if len(declared) < len(candidates):
            logger.debug(
                f"{len(candidates) - len(declared)} terceros por debajo del umbral "
                f"{self.threshold_filter.threshold}"
            )

        return ThirdPartyReport(
            period=DeclarationPeriod(year=period.year),
            declarant=self.declarant,
            declaration_kind=declaration_kind,
            counterparties=tuple(declared),
        )

    def _identify(self, record: FinancialRecord) -> Tuple[Optional[str], Optional[str]]:
        """Clave de agrupación y nombre del tercero de un registro."""
        key = record.counterparty_key
        if key:
            return key, record.counterparty_name

        if record.counterparty_id:
            info = self.fetcher.counterparty_info(record.counterparty_id)
            if info is not None:
                tax_id = normalize_nif(info.tax_id)
                name = (info.name or "").strip()
                return tax_id or name or None, name

        return None, None

    def _group(
        self,
        records: Iterable[FinancialRecord],
        period: DeclarationPeriod,
        operation_code: OperationCode
    ) -> List[DeclaredCounterparty]:
        groups: Dict[str, _CounterpartyGroup] = {}
        anonymous = 0

        for record in records:
            if not record.in_range(period.start, period.end):
                continue
            key, name = self._identify(record)
            if key is None:
                anonymous += 1
                continue
            group = groups.get(key)
            if group is None:
                group = groups[key] = _CounterpartyGroup(key=key, operation_code=operation_code)
            group.add(record, name)

        if anonymous:
            logger.warning(
                f"{anonymous} registros sin tercero identificable excluidos "
                f"del 347 (clave {operation_code.value})"
            )

        return [self._declare(groups[key]) for key in sorted(groups)]

    def _declare(self, group: _CounterpartyGroup) -> DeclaredCounterparty:
        tax_id = group.key if is_nif_format(group.key) else ""
        if tax_id and not validate_nif(tax_id):
            logger.warning(f"NIF con letra de control incorrecta en el 347: {tax_id}")

        return DeclaredCounterparty(
            tax_id=tax_id,
            name=group.name or group.key,
            province_code=pad_zeros(self.declarant.province_code, 2),
            operation_code=group.operation_code,
            annual_total=round_half_up(group.annual_total),
            quarter_totals=tuple(round_half_up(t) for t in group.quarter_totals),
            operation_count=group.operation_count,
        )
