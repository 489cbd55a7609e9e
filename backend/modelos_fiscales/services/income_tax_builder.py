"""
Generación del Modelo 130 - Pago fraccionado IRPF (estimación directa).
"""
import logging
from decimal import Decimal
from typing import Iterable, List, Optional

from ..core.exceptions import IncompleteInputError
from ..schemas.declarations import Declarant, DeclarationPeriod, IncomeTaxAdvance
from ..schemas.records import FinancialRecord
from ..utils.formatters import round_half_up
from .aggregator import PeriodAggregator
from .record_source import RecordFetcher, RecordSource

logger = logging.getLogger(__name__)


class IncomeTaxAdvanceBuilder:
    """
    Modelo 130.

    - Ingresos (C01): bases de las facturas emitidas desde el 1 de enero.
    - Gastos (C02): totales de facturas recibidas y gastos desde el 1 de enero.
    - Retenciones (C05): si no se indican, las retenciones acumuladas de las
      facturas emitidas.
    - Pagos anteriores (C06): si no se indican, la suma de los resultados
      positivos de los trimestres anteriores del ejercicio. Para derivarlos
      las retenciones también deben ser derivadas.
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

    def build(
        self,
        period: DeclarationPeriod,
        *,
        first_year_activity: bool,
        withholdings: Optional[Decimal] = None,
        prior_payments: Optional[Decimal] = None,
        to_deduct=Decimal(0)
    ) -> IncomeTaxAdvance:
        logger.info(f"Generando Modelo 130 para {period}")

        issued = self.fetcher.issued_invoices(period.year_start, period.end)
        expenses = self.fetcher.received_invoices_and_expenses(period.year_start, period.end)

        advance = self.build_from_records(
            period,
            issued,
            expenses,
            first_year_activity=first_year_activity,
            withholdings=withholdings,
            prior_payments=prior_payments,
            to_deduct=to_deduct,
        )

        logger.info(
            f"Modelo 130 generado - Rendimiento: {advance.net_yield} €, "
            f"Resultado: {advance.total} € ({advance.result_type.value})"
        )
        return advance

    def build_from_records(
        self,
        period: DeclarationPeriod,
        issued: Iterable[FinancialRecord],
        expenses: Iterable[FinancialRecord],
        *,
        first_year_activity: bool,
        withholdings: Optional[Decimal] = None,
        prior_payments: Optional[Decimal] = None,
        to_deduct=Decimal(0)
    ) -> IncomeTaxAdvance:
        """Calcula el 130 a partir de registros ya obtenidos."""
        issued = list(issued)
        expenses = list(expenses)

        prior_payments_derived = prior_payments is None
        if prior_payments_derived and withholdings is not None and period.previous_quarters():
            # Los trimestres anteriores solo se pueden recalcular con retenciones derivadas
            raise IncompleteInputError(
                "Con retenciones indicadas hay que indicar también los pagos anteriores"
            )
        if prior_payments_derived:
            prior_payments = self.derive_prior_payments(
                period, issued, expenses, first_year_activity
            )

        return self._compute(
            period,
            issued,
            expenses,
            first_year_activity=first_year_activity,
            withholdings=withholdings,
            prior_payments=prior_payments,
            prior_payments_derived=prior_payments_derived,
            to_deduct=to_deduct,
        )

    def derive_prior_payments(
        self,
        period: DeclarationPeriod,
        issued: List[FinancialRecord],
        expenses: List[FinancialRecord],
        first_year_activity: bool
    ) -> Decimal:
        """
        Casilla 06: suma de los pagos fraccionados positivos de los trimestres
        anteriores, recalculando cada uno con los pagos que le preceden.
        """
        paid = Decimal("0.00")
        for previous in period.previous_quarters():
            advance = self._compute(
                previous,
                issued,
                expenses,
                first_year_activity=first_year_activity,
                withholdings=None,
                prior_payments=paid,
                prior_payments_derived=True,
            )
            if advance.total > 0:
                paid = round_half_up(paid + advance.total)
        return paid

    def _compute(
        self,
        period: DeclarationPeriod,
        issued: List[FinancialRecord],
        expenses: List[FinancialRecord],
        *,
        first_year_activity: bool,
        withholdings: Optional[Decimal],
        prior_payments: Decimal,
        prior_payments_derived: bool,
        to_deduct=Decimal(0)
    ) -> IncomeTaxAdvance:
        income = self.aggregator.aggregate_cumulative(issued, period)
        spent = self.aggregator.aggregate_cumulative(expenses, period)

        # Importes del trimestre, solo informativos
        quarter_income = self.aggregator.aggregate_period(issued, period).totals.rounded()
        quarter_expenses = self.aggregator.aggregate_period(expenses, period).totals.rounded()

        withholdings_derived = withholdings is None
        if withholdings_derived:
            withholdings = income.totals.withholding

        return IncomeTaxAdvance(
            period=period,
            declarant=self.declarant,
            income=round_half_up(income.totals.base),
            expenses=round_half_up(spent.totals.total),
            withholdings=round_half_up(withholdings),
            prior_payments=round_half_up(prior_payments),
            first_year_activity=first_year_activity,
            to_deduct=round_half_up(to_deduct),
            quarter_income=quarter_income.base,
            quarter_expenses=quarter_expenses.total,
            expenses_by_category={
                name: round_half_up(bucket.total)
                for name, bucket in sorted(spent.by_category.items())
            },
            withholdings_derived=withholdings_derived,
            prior_payments_derived=prior_payments_derived,
            issued_count=income.count,
            expense_count=spent.count,
        )
