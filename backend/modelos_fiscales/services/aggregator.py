"""
Agregador de registros por período.
Suma bases, cuotas y totales por tipo de IVA y por categoría para los
registros cuya fecha cae en [desde, hasta], ambos inclusive.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from ..core.config import settings
from ..schemas.records import FinancialRecord
from ..utils.dates import quarter_end, quarter_start
from ..utils.formatters import round_half_up, to_decimal

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Sin categoría"


@dataclass(frozen=True)
class AmountBucket:
    """Acumulado de base, cuota y total de un grupo de registros."""
    base: Decimal = Decimal(0)
    vat: Decimal = Decimal(0)
    total: Decimal = Decimal(0)
    withholding: Decimal = Decimal(0)
    count: int = 0

    def plus(self, record: FinancialRecord) -> "AmountBucket":
        return AmountBucket(
            base=self.base + record.base_amount,
            vat=self.vat + record.vat_amount,
            total=self.total + record.total,
            withholding=self.withholding + record.withholding_amount,
            count=self.count + 1,
        )

    def merge(self, other: "AmountBucket") -> "AmountBucket":
        return AmountBucket(
            base=self.base + other.base,
            vat=self.vat + other.vat,
            total=self.total + other.total,
            withholding=self.withholding + other.withholding,
            count=self.count + other.count,
        )

    def rounded(self) -> "AmountBucket":
        return AmountBucket(
            base=round_half_up(self.base),
            vat=round_half_up(self.vat),
            total=round_half_up(self.total),
            withholding=round_half_up(self.withholding),
            count=self.count,
        )


@dataclass(frozen=True)
class PeriodTotals:
    """Resultado inmutable de una agregación."""
    start: date
    end: date
    totals: AmountBucket = AmountBucket()
    by_rate: Mapping[Decimal, AmountBucket] = field(default_factory=dict)
    by_category: Mapping[str, AmountBucket] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return self.totals.count

    def rate(self, rate) -> AmountBucket:
        """Acumulado de un tipo concreto (vacío si no hay registros)."""
        return self.by_rate.get(to_decimal(rate), AmountBucket())

    def other_rates(self, tiers: Iterable) -> AmountBucket:
        """Acumulado de los tipos que no son ninguno de los tramos indicados."""
        known = {to_decimal(t) for t in tiers}
        bucket = AmountBucket()
        for rate, amounts in self.by_rate.items():
            if rate not in known:
                bucket = bucket.merge(amounts)
        return bucket

    def category(self, name: Optional[str]) -> AmountBucket:
        return self.by_category.get(name or UNCATEGORIZED, AmountBucket())


class PeriodAggregator:
    """
    Agregación pura: no consulta fuentes ni guarda estado entre llamadas.

    Tramos de IVA: un registro sin tipo se imputa al tipo general (primer
    tramo); los tipos fuera de los tramos se conservan con su propia clave.
    """

    def __init__(self, tiers: Optional[Sequence] = None):
        tiers = tiers if tiers is not None else settings.VAT_TIERS
        self.tiers: List[Decimal] = [to_decimal(t) for t in tiers]

    @property
    def general_rate(self) -> Decimal:
        return self.tiers[0]

    def resolve_rate(self, record: FinancialRecord) -> Decimal:
        if record.vat_rate is None:
            return self.general_rate
        return record.vat_rate

    def aggregate(
        self,
        records: Iterable[FinancialRecord],
        start: date,
        end: date
    ) -> PeriodTotals:
        """
        Suma los registros con fecha en [start, end].
        Los registros sin fecha válida se excluyen.
        """
        totals = AmountBucket()
        by_rate: Dict[Decimal, AmountBucket] = {}
        by_category: Dict[str, AmountBucket] = {}
        skipped = 0

        for record in records:
            if record.record_date is None:
                skipped += 1
                continue
            if not record.in_range(start, end):
                continue

            totals = totals.plus(record)

            rate = self.resolve_rate(record)
            by_rate[rate] = by_rate.get(rate, AmountBucket()).plus(record)

            category = record.category or UNCATEGORIZED
            by_category[category] = by_category.get(category, AmountBucket()).plus(record)

        if skipped:
            logger.warning(f"{skipped} registros sin fecha válida excluidos ({start} - {end})")

        return PeriodTotals(
            start=start,
            end=end,
            totals=totals,
            by_rate=MappingProxyType(by_rate),
            by_category=MappingProxyType(by_category),
        )

    def aggregate_period(self, records: Iterable[FinancialRecord], period) -> PeriodTotals:
        """Agregación local del período (trimestre o año)."""
        return self.aggregate(records, period.start, period.end)

    def aggregate_cumulative(self, records: Iterable[FinancialRecord], period) -> PeriodTotals:
        """Agregación acumulada desde el 1 de enero hasta el fin del período."""
        return self.aggregate(records, period.year_start, period.end)

    def split_by_quarter(self, records: Iterable[FinancialRecord], year: int) -> List[PeriodTotals]:
        """Agregación local de cada uno de los cuatro trimestres del ejercicio."""
        records = list(records)
        return [
            self.aggregate(records, quarter_start(year, quarter), quarter_end(year, quarter))
            for quarter in range(1, 5)
        ]
