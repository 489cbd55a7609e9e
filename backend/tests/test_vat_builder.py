"""
Tests para la generación del Modelo 303 y del resumen anual 390.
"""
from decimal import Decimal

from modelos_fiscales.schemas.declarations import Declarant, DeclarationPeriod
from modelos_fiscales.schemas.records import FinancialRecord
from modelos_fiscales.services.aggregator import PeriodAggregator
from modelos_fiscales.services.calculation_engine import ResultType
from modelos_fiscales.services.record_source import InMemoryRecordSource
from modelos_fiscales.services.vat_builder import AnnualVatSummaryBuilder, VatDeclarationBuilder


D = Decimal
DECLARANT = Declarant(nif="12345678Z", name="EMPRESA SL", cnae="4520", province_code="14")


def issued(record_date, base, rate="21", **fields):
    return FinancialRecord.issued_invoice(record_date=record_date, base_amount=base, vat_rate=rate, **fields)


def received(record_date, base, rate="21", **fields):
    return FinancialRecord.received_invoice(record_date=record_date, base_amount=base, vat_rate=rate, **fields)


def make_builder(records):
    return VatDeclarationBuilder(
        InMemoryRecordSource(records), DECLARANT, PeriodAggregator(["21", "10", "4"])
    )


class TestVatDeclarationBuilder:
    """Tests del Modelo 303."""

    def test_single_quarter_to_pay(self):
        """
        Emitida 1000 al 21% y recibida 200 al 21%:
        devengado 210, deducible 42, resultado 168 a ingresar.
        """
        builder = make_builder([
            issued("2024-02-01", "1000"),
            received("2024-02-15", "200"),
        ])
        declaration = builder.build(DeclarationPeriod.quarterly(2024, 1))

        assert declaration.general.base == D("1000.00")
        assert declaration.total_output_vat == D("210.00")
        assert declaration.total_deductible_vat == D("42.00")
        assert declaration.difference == D("168.00")
        assert declaration.result == D("168.00")
        assert declaration.result_type == ResultType.TO_PAY
        assert declaration.amount_due == D("168.00")
        assert declaration.offset_generated == D("0.00")
        assert declaration.issued_count == 1
        assert declaration.received_count == 1

    def test_tier_sum(self):
        """
        Test Casilla 21 = suma de cuotas de los tres tramos.
        """
        builder = make_builder([
            issued("2024-01-10", "1000", "21"),
            issued("2024-01-11", "400", "10"),
            issued("2024-01-12", "250", "4"),
        ])
        declaration = builder.build(DeclarationPeriod.quarterly(2024, 1))

        assert declaration.general.vat == D("210.00")
        assert declaration.reduced.vat == D("40.00")
        assert declaration.super_reduced.vat == D("10.00")
        assert declaration.total_output_vat == D("260.00")
        assert declaration.total_output_base == D("1650.00")

    def test_other_rates_are_included_in_totals(self):
        builder = make_builder([
            issued("2024-01-10", "1000", "21"),
            issued("2024-01-11", "100", "7"),
        ])
        declaration = builder.build(DeclarationPeriod.quarterly(2024, 1))

        assert declaration.other_rates_vat == D("7.00")
        assert declaration.total_output_vat == D("217.00")

    def test_all_deductible_vat_is_interior(self):
        builder = make_builder([
            received("2024-01-10", "100", "21"),
            FinancialRecord.expense(record_date="2024-01-11", base_amount="50", vat_rate="10"),
        ])
        declaration = builder.build(DeclarationPeriod.quarterly(2024, 1))

        assert declaration.deductible_interior_base == D("150.00")
        assert declaration.deductible_interior_vat == D("26.00")
        assert declaration.deductible_investment_vat == D("0.00")
        assert declaration.deductible_imports_vat == D("0.00")

    def test_negative_result_is_to_offset(self):
        builder = make_builder([
            issued("2024-04-10", "100"),
            received("2024-05-10", "500"),
        ])
        declaration = builder.build(DeclarationPeriod.quarterly(2024, 2))

        assert declaration.result == D("-84.00")
        assert declaration.result_type == ResultType.TO_OFFSET
        assert declaration.amount_due == D("0.00")
        assert declaration.offset_generated == D("84.00")

    def test_prior_offset_reduces_result(self):
        builder = make_builder([issued("2024-07-10", "1000")])
        declaration = builder.build(DeclarationPeriod.quarterly(2024, 3), prior_offset=D("84"))
        assert declaration.result == D("126.00")

    def test_empty_quarter(self):
        declaration = make_builder([]).build(DeclarationPeriod.quarterly(2024, 4))
        assert declaration.result == D("0.00")
        assert declaration.result_type == ResultType.ZERO

    def test_records_outside_quarter_are_ignored(self):
        builder = make_builder([
            issued("2024-03-31", "100"),
            issued("2024-04-01", "1000"),
        ])
        declaration = builder.build(DeclarationPeriod.quarterly(2024, 1))
        assert declaration.total_output_base == D("100.00")

    def test_build_is_idempotent(self):
        builder = make_builder([issued("2024-02-01", "1000"), received("2024-02-15", "200")])
        period = DeclarationPeriod.quarterly(2024, 1)
        assert builder.build(period) == builder.build(period)


class TestAnnualVatSummaryBuilder:
    """Tests del Modelo 390."""

    def setup_method(self):
        self.records = [
            issued("2024-02-01", "1000"),
            received("2024-02-15", "200"),
            issued("2024-04-10", "100"),
            received("2024-05-10", "500"),
            issued("2024-07-10", "1000"),
            issued("2024-08-10", "400", "10"),
        ]
        self.vat_builder = make_builder(self.records)
        self.builder = AnnualVatSummaryBuilder(self.vat_builder)

    def test_quarters_sum_to_annual_totals(self):
        summary = self.builder.build(DeclarationPeriod.annual(2024))

        assert len(summary.quarters) == 4
        assert summary.total_output_vat == sum(q.output_vat for q in summary.quarters)
        assert summary.total_deductible_vat == sum(q.deductible_vat for q in summary.quarters)
        assert summary.sum_of_results == sum(q.result for q in summary.quarters)

    def test_annual_figures(self):
        summary = self.builder.build(DeclarationPeriod.annual(2024))

        # 210 + 21 + 210 al 21%, 40 al 10%
        assert summary.general.base == D("2100.00")
        assert summary.general.vat == D("441.00")
        assert summary.reduced.vat == D("40.00")
        assert summary.total_output_vat == D("481.00")
        assert summary.total_deductible_vat == D("147.00")
        assert summary.difference == D("334.00")
        assert summary.volume_of_operations == D("2500.00")
        assert summary.issued_count == 4
        assert summary.received_count == 2

    def test_quarter_results(self):
        """
        Cada trimestre se recalcula sin compensaciones: la suma de resultados
        coincide con la diferencia anual.
        """
        summary = self.builder.build(DeclarationPeriod.annual(2024))
        results = [q.result for q in summary.quarters]

        assert results == [D("168.00"), D("-84.00"), D("250.00"), D("0.00")]
        assert summary.sum_of_results == D("334.00")
        assert summary.sum_of_results == summary.difference
        assert summary.paid_results == D("418.00")
        assert summary.offset_results == D("84.00")
        assert summary.result_type == ResultType.TO_PAY
        assert summary.amount_due == D("334.00")
        assert summary.offset_generated == D("0.00")

    def test_quarters_match_independent_303(self):
        summary = self.builder.build(DeclarationPeriod.annual(2024))
        first = self.vat_builder.build(DeclarationPeriod.quarterly(2024, 1))

        assert summary.quarters[0].output_vat == first.total_output_vat
        assert summary.quarters[0].result == first.result

    def test_exempt_operations_add_to_volume(self):
        summary = self.builder.build(DeclarationPeriod.annual(2024), exempt_operations=D("500"))
        assert summary.volume_of_operations == D("3000.00")

    def test_empty_year(self):
        summary = AnnualVatSummaryBuilder(make_builder([])).build(DeclarationPeriod.annual(2024))
        assert summary.sum_of_results == D("0.00")
        assert summary.result_type == ResultType.ZERO
        assert [q.quarter for q in summary.quarters] == [1, 2, 3, 4]
