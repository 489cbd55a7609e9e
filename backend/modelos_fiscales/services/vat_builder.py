"""
Generación de los modelos de IVA: 303 (trimestral) y 390 (resumen anual).
"""
import logging
from decimal import Decimal
from typing import Iterable, Optional

from ..schemas.declarations import (
    AnnualVatSummary,
    Declarant,
    DeclarationPeriod,
    QuarterSummary,
    TierLine,
    VatDeclaration,
)
from ..schemas.records import FinancialRecord
from ..utils.formatters import round_half_up
from .aggregator import PeriodAggregator
from .record_source import RecordFetcher, RecordSource

logger = logging.getLogger(__name__)


class VatDeclarationBuilder:
    """
    Modelo 303 - IVA trimestral.

    - IVA devengado: facturas emitidas del trimestre, por tipo impositivo.
    - IVA deducible: facturas recibidas y gastos del trimestre, todo como
      operaciones interiores corrientes.
    - Las cuotas a compensar de períodos anteriores llegan como dato externo.
    """

    def __init__(
        self,
        source: RecordSource,
        declarant: Declarant,
        aggregator: Optional[PeriodAggregator] = None
    ):
        self.fetcher = RecordFetcher(source)
        self.declarant = declarant
        self.aggregator = aggregator or PeriodAggregator()

    def build(self, period: DeclarationPeriod, prior_offset=Decimal(0)) -> VatDeclaration:
        logger.info(f"Generando Modelo 303 para {period}")

        issued = self.fetcher.issued_invoices(period.start, period.end)
        received = self.fetcher.received_invoices_and_expenses(period.start, period.end)

        declaration = self.build_from_records(period, issued, received, prior_offset)

        logger.info(
            f"Modelo 303 generado - Resultado: {declaration.result} € "
            f"({declaration.result_type.value})"
        )
        return declaration

    def build_from_records(
        self,
        period: DeclarationPeriod,
        issued: Iterable[FinancialRecord],
        received: Iterable[FinancialRecord],
        prior_offset=Decimal(0)
    ) -> VatDeclaration:
        """Calcula el 303 a partir de registros ya obtenidos."""
        output = self.aggregator.aggregate_period(issued, period)
        deductible = self.aggregator.aggregate_period(received, period).totals.rounded()

        tiers = []
        for rate in self.aggregator.tiers:
            bucket = output.rate(rate).rounded()
            tiers.append(TierLine(rate=rate, base=bucket.base, vat=bucket.vat))
        other = output.other_rates(self.aggregator.tiers).rounded()

        return VatDeclaration(
            period=period,
            declarant=self.declarant,
            tiers=tuple(tiers),
            other_rates_base=other.base,
            other_rates_vat=other.vat,
            deductible_interior_base=deductible.base,
            deductible_interior_vat=deductible.vat,
            prior_offset=round_half_up(prior_offset),
            issued_count=output.count,
            received_count=deductible.count,
        )


class AnnualVatSummaryBuilder:
    """
    Modelo 390 - Resumen anual de IVA.

    Cada trimestre se reconstruye con el builder del 303 de forma independiente,
    sin cuotas a compensar de períodos anteriores, y los importes anuales son
    la suma de los cuatro.
    """

    def __init__(self, vat_builder: VatDeclarationBuilder):
        self.vat_builder = vat_builder

    def build(
        self,
        period: DeclarationPeriod,
        exempt_operations=Decimal(0),
        differentiated_sectors: bool = False
    ) -> AnnualVatSummary:
        logger.info(f"Generando Modelo 390 para año {period.year}")

        quarterly = [self.vat_builder.build(quarter) for quarter in period.quarters()]

        summary = self.summarize(period, quarterly, exempt_operations, differentiated_sectors)

        logger.info(f"Modelo 390 generado - Volumen operaciones: {summary.volume_of_operations} €")
        return summary

    def summarize(
        self,
        period: DeclarationPeriod,
        quarterly,
        exempt_operations=Decimal(0),
        differentiated_sectors: bool = False
    ) -> AnnualVatSummary:
        """Suma los 303 trimestrales en el resumen anual."""
        def total(getter) -> Decimal:
            return round_half_up(sum((getter(d) for d in quarterly), Decimal(0)))

        tiers = []
        for index, rate in enumerate(self.vat_builder.aggregator.tiers):
            tiers.append(TierLine(
                rate=rate,
                base=total(lambda d: d.tier_at(index).base),
                vat=total(lambda d: d.tier_at(index).vat),
            ))

        declarant = self.vat_builder.declarant
        return AnnualVatSummary(
            period=DeclarationPeriod(year=period.year),
            declarant=declarant,
            tiers=tuple(tiers),
            other_rates_base=total(lambda d: d.other_rates_base),
            other_rates_vat=total(lambda d: d.other_rates_vat),
            deductible_interior_base=total(lambda d: d.deductible_interior_base),
            deductible_interior_vat=total(lambda d: d.deductible_interior_vat),
            deductible_investment_base=total(lambda d: d.deductible_investment_base),
            deductible_investment_vat=total(lambda d: d.deductible_investment_vat),
            deductible_imports_base=total(lambda d: d.deductible_imports_base),
            deductible_imports_vat=total(lambda d: d.deductible_imports_vat),
            issued_count=sum(d.issued_count for d in quarterly),
            received_count=sum(d.received_count for d in quarterly),
            quarters=tuple(QuarterSummary.from_declaration(d) for d in quarterly),
            exempt_operations=round_half_up(exempt_operations),
            differentiated_sectors=differentiated_sectors,
        )
