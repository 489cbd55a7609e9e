"""
Tests para las fuentes de registros y el tratamiento de fallos.
"""
import json
from datetime import date
from decimal import Decimal

import pytest
from modelos_fiscales.core.exceptions import DataUnavailableError
from modelos_fiscales.schemas.declarations import Declarant, DeclarationPeriod
from modelos_fiscales.schemas.records import CounterpartyInfo, FinancialRecord, RecordKind
from modelos_fiscales.services.income_tax_builder import IncomeTaxAdvanceBuilder
from modelos_fiscales.services.record_source import (
    InMemoryRecordSource,
    JsonRecordSource,
    RecordFetcher,
)
from modelos_fiscales.services.third_party_builder import ThirdPartyReportBuilder
from modelos_fiscales.services.vat_builder import VatDeclarationBuilder


DECLARANT = Declarant(nif="12345678Z", name="EMPRESA SL")


class BrokenSource:
    """Fuente que falla en cualquier consulta."""

    def issued_invoices(self, start, end):
        raise ConnectionError("conexión rechazada")

    def received_invoices_and_expenses(self, start, end):
        raise ConnectionError("conexión rechazada")

    def counterparty_info(self, key):
        raise ConnectionError("conexión rechazada")


class LazyBrokenSource(BrokenSource):
    """Falla al recorrer el resultado, no al pedirlo."""

    def issued_invoices(self, start, end):
        def rows():
            yield FinancialRecord.issued_invoice(record_date=start, base_amount="1")
            raise TimeoutError("timeout")
        return rows()


class TestInMemoryRecordSource:

    def test_filters_by_kind_and_range(self):
        source = InMemoryRecordSource([
            FinancialRecord.issued_invoice(record_date="2024-01-10"),
            FinancialRecord.received_invoice(record_date="2024-01-11"),
            FinancialRecord.expense(record_date="2024-01-12"),
            FinancialRecord.expense(record_date="2024-04-01"),
        ])
        q1 = (date(2024, 1, 1), date(2024, 3, 31))

        assert len(source.issued_invoices(*q1)) == 1
        assert len(source.received_invoices_and_expenses(*q1)) == 2

    def test_counterparty_info(self):
        source = InMemoryRecordSource(counterparties={"1": CounterpartyInfo(name="X")})
        assert source.counterparty_info("1").name == "X"
        assert source.counterparty_info("2") is None


class TestJsonRecordSource:

    def test_load(self, tmp_path):
        path = tmp_path / "datos.json"
        path.write_text(json.dumps({
            "issued_invoices": [
                {"record_date": "15/01/2024", "base_amount": "1.000,00", "vat_rate": 21}
            ],
            "received_invoices": [
                {"record_date": "2024-02-01", "base_amount": 200, "vat_rate": 21, "counterparty_id": 3}
            ],
            "expenses": [
                {"record_date": "2024-02-02T09:00:00", "total": "50", "category": "Oficina"}
            ],
            "counterparties": {"3": {"name": "PROVEEDOR", "tax_id": "B12345678"}},
        }), encoding="utf-8")
        source = JsonRecordSource(path)
        q1 = (date(2024, 1, 1), date(2024, 3, 31))

        issued = source.issued_invoices(*q1)
        assert len(issued) == 1
        assert issued[0].kind == RecordKind.ISSUED_INVOICE
        assert str(issued[0].vat_amount) == "210.00"

        purchases = source.received_invoices_and_expenses(*q1)
        assert {r.kind for r in purchases} == {RecordKind.RECEIVED_INVOICE, RecordKind.EXPENSE}
        assert source.counterparty_info("3").tax_id == "B12345678"

    def test_non_numeric_cell_does_not_break_source(self, tmp_path):
        """
        Una celda NaN se lee como cero; el resto del fichero sigue siendo válido.
        """
        path = tmp_path / "datos.json"
        path.write_text(json.dumps({
            "issued_invoices": [
                {"record_date": "2024-01-10", "base_amount": "1000", "vat_rate": 21, "vat_amount": "NaN"},
                {"record_date": "2024-01-11", "base_amount": "500", "vat_rate": 21},
            ],
        }), encoding="utf-8")
        fetcher = RecordFetcher(JsonRecordSource(path))

        issued = fetcher.issued_invoices(date(2024, 1, 1), date(2024, 3, 31))
        assert sorted(r.vat_amount for r in issued) == [Decimal(0), Decimal("105")]

    def test_missing_file_is_unavailable(self, tmp_path):
        fetcher = RecordFetcher(JsonRecordSource(tmp_path / "no_existe.json"))
        with pytest.raises(DataUnavailableError):
            fetcher.issued_invoices(date(2024, 1, 1), date(2024, 3, 31))


class TestDataUnavailable:
    """Un fallo de la fuente nunca produce una declaración a cero."""

    def test_vat_builder(self):
        builder = VatDeclarationBuilder(BrokenSource(), DECLARANT)
        with pytest.raises(DataUnavailableError) as exc_info:
            builder.build(DeclarationPeriod.quarterly(2024, 1))
        assert exc_info.value.start == date(2024, 1, 1)
        assert exc_info.value.end == date(2024, 3, 31)
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_income_tax_builder(self):
        builder = IncomeTaxAdvanceBuilder(BrokenSource(), DECLARANT)
        with pytest.raises(DataUnavailableError):
            builder.build(DeclarationPeriod.quarterly(2024, 2), first_year_activity=False)

    def test_lazy_failure(self):
        builder = VatDeclarationBuilder(LazyBrokenSource(), DECLARANT)
        with pytest.raises(DataUnavailableError):
            builder.build(DeclarationPeriod.quarterly(2024, 1))

    def test_counterparty_lookup_failure(self):
        records = [FinancialRecord.issued_invoice(record_date="2024-01-10", total="5000", counterparty_id="9")]

        class LookupFails(InMemoryRecordSource):
            def counterparty_info(self, key):
                raise ConnectionError("conexión rechazada")

        builder = ThirdPartyReportBuilder(LookupFails(records), DECLARANT)
        with pytest.raises(DataUnavailableError):
            builder.build(DeclarationPeriod.annual(2024))
