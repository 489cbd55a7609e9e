"""
Tests para el motor de cálculo de los modelos 303, 130 y 390.
"""
from decimal import Decimal

import pytest
from modelos_fiscales.services.calculation_engine import (
    DISCLOSURE_THRESHOLD,
    FiscalCalculationEngine,
    ResultType,
)


D = Decimal


class TestVatRules:
    """Tests de las casillas del IVA."""

    def test_calculate_total_output_vat(self):
        """
        Test Casilla 21: suma de cuotas de los tramos
        """
        result = FiscalCalculationEngine.calculate_total_output_vat([D("210"), D("40"), D("10")])
        assert result == D("260.00")

    def test_calculate_total_deductible_vat(self):
        """
        Test Casilla 28: interiores + inversión + importaciones
        """
        result = FiscalCalculationEngine.calculate_total_deductible_vat(D("42"), D("8.5"), D("0"))
        assert result == D("50.50")

    def test_calculate_difference(self):
        """
        Test Casilla 29: C29 = C21 - C28
        """
        assert FiscalCalculationEngine.calculate_difference(D("210"), D("42")) == D("168.00")
        assert FiscalCalculationEngine.calculate_difference(D("21"), D("105")) == D("-84.00")

    def test_calculate_vat_result_with_prior_offset(self):
        """
        Test Casilla 71: diferencia - cuotas a compensar anteriores
        """
        result = FiscalCalculationEngine.calculate_vat_result(D("210"), D("84"))
        assert result == D("126.00")

    @pytest.mark.parametrize("result,expected", [
        (D("168"), ResultType.TO_PAY),
        (D("-84"), ResultType.TO_OFFSET),
        (D("0"), ResultType.ZERO),
        (D("0.004"), ResultType.ZERO),
    ])
    def test_classify_vat_result(self, result, expected):
        assert FiscalCalculationEngine.classify_vat_result(result) == expected

    def test_amount_due_and_offset_generated(self):
        """
        Test Casillas 68/69/70: a ingresar nunca negativo, a compensar en valor absoluto
        """
        assert FiscalCalculationEngine.calculate_amount_due(D("-84")) == D("0.00")
        assert FiscalCalculationEngine.calculate_amount_due(D("168")) == D("168.00")
        assert FiscalCalculationEngine.calculate_offset_generated(D("-84")) == D("84.00")
        assert FiscalCalculationEngine.calculate_offset_generated(D("168")) == D("0.00")


class TestIncomeTaxRules:
    """Tests de las casillas del Modelo 130."""

    def test_calculate_net_yield(self):
        """
        Test Casilla 03: C03 = C01 - C02
        """
        assert FiscalCalculationEngine.calculate_net_yield(D("3000"), D("121")) == D("2879.00")

    def test_calculate_advance_payment(self):
        """
        Test Casilla 04: 20% del rendimiento neto
        """
        assert FiscalCalculationEngine.calculate_advance_payment(D("2879")) == D("575.80")

    def test_advance_payment_no_negative(self):
        """
        Test que el pago fraccionado sea cero con rendimiento negativo.
        """
        assert FiscalCalculationEngine.calculate_advance_payment(D("-500")) == D("0.00")

    def test_calculate_preliminary_result(self):
        """
        Test Casilla 07: C07 = C04 - C05 - C06
        """
        result = FiscalCalculationEngine.calculate_preliminary_result(D("575.80"), D("100"), D("175.80"))
        assert result == D("300.00")

    def test_first_year_relief(self):
        """
        Test Casilla 13: 50% del pago previo
        """
        assert FiscalCalculationEngine.calculate_first_year_relief(D("175.80"), True) == D("87.90")

    def test_first_year_relief_cap(self):
        """
        Test que la minoración no supere 400 €.
        """
        assert FiscalCalculationEngine.calculate_first_year_relief(D("1000"), True) == D("400.00")

    def test_no_relief_without_first_year_or_positive_result(self):
        assert FiscalCalculationEngine.calculate_first_year_relief(D("1000"), False) == D("0.00")
        assert FiscalCalculationEngine.calculate_first_year_relief(D("-50"), True) == D("0.00")

    def test_calculate_advance_total(self):
        """
        Test Casilla 15: C15 = C12 - C13 - C14
        """
        result = FiscalCalculationEngine.calculate_advance_total(D("1000"), D("400"), D("50"))
        assert result == D("550.00")

    @pytest.mark.parametrize("total,expected", [
        (D("10"), ResultType.TO_PAY),
        (D("-10"), ResultType.NEGATIVE),
        (D("0"), ResultType.ZERO),
    ])
    def test_classify_advance_result(self, total, expected):
        assert FiscalCalculationEngine.classify_advance_result(total) == expected


class TestDisclosureThreshold:

    def test_threshold_value(self):
        assert DISCLOSURE_THRESHOLD == D("3005.06")
