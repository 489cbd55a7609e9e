"""
Motor de reglas de cálculo de los modelos 303, 130 y 390.
Implementa las fórmulas de cada casilla de manera desacoplada de la
obtención de datos: todas las funciones son puras sobre Decimal.
"""
from decimal import Decimal
from enum import Enum
from typing import Iterable

from ..utils.formatters import round_half_up


# Modelo 130: pago fraccionado del 20% del rendimiento neto
ADVANCE_PAYMENT_RATE = Decimal("0.20")

# Modelo 130: minoración por primer año de actividad (50% con límite)
FIRST_YEAR_RELIEF_RATE = Decimal("0.50")
FIRST_YEAR_RELIEF_CAP = Decimal("400.00")

# Modelo 347: importe anual mínimo para declarar a un tercero
DISCLOSURE_THRESHOLD = Decimal("3005.06")


class ResultType(str, Enum):
    """Sentido del resultado de una autoliquidación."""
    TO_PAY = "ingresar"
    TO_OFFSET = "compensar"
    NEGATIVE = "negativa"
    ZERO = "cero"


class FiscalCalculationEngine:
    """
    Motor de cálculo de los modelos fiscales.
    Cada método corresponde a una casilla o grupo de casillas.
    """

    @staticmethod
    def sum_amounts(amounts: Iterable[Decimal]) -> Decimal:
        """Suma redondeada a 2 decimales."""
        return round_half_up(sum(amounts, Decimal(0)))

    # ===================== MODELO 303 / 390 =====================

    @staticmethod
    def calculate_total_output_vat(tier_vat: Iterable[Decimal]) -> Decimal:
        """
        Casilla 21 (303) / 34 (390): Total cuota devengada.
        Fórmula: suma de las cuotas de cada tipo impositivo.
        """
        return FiscalCalculationEngine.sum_amounts(tier_vat)

    @staticmethod
    def calculate_total_deductible_vat(
        interior: Decimal,
        investment: Decimal,
        imports: Decimal
    ) -> Decimal:
        """
        Casilla 28 (303) / 49 (390): Total a deducir.
        Fórmula: interiores corrientes + bienes de inversión + importaciones
        """
        return FiscalCalculationEngine.sum_amounts((interior, investment, imports))

    @staticmethod
    def calculate_difference(total_output: Decimal, total_deductible: Decimal) -> Decimal:
        """
        Casilla 29: Diferencia.
        Fórmula: C29 = C21 - C28
        """
        return round_half_up(total_output - total_deductible)

    @staticmethod
    def calculate_vat_result(difference: Decimal, prior_offset: Decimal) -> Decimal:
        """
        Casilla 71: Resultado.
        Fórmula: diferencia - cuotas a compensar de períodos anteriores
        """
        return round_half_up(difference - prior_offset)

    @staticmethod
    def classify_vat_result(result: Decimal) -> ResultType:
        """
        Tipo de declaración del 303: a ingresar, a compensar o sin actividad.
        """
        result = round_half_up(result)
        if result > 0:
            return ResultType.TO_PAY
        if result < 0:
            return ResultType.TO_OFFSET
        return ResultType.ZERO

    @staticmethod
    def calculate_amount_due(result: Decimal) -> Decimal:
        """Casilla 69: resultado a ingresar (nunca negativo)."""
        return max(round_half_up(result), Decimal("0.00"))

    @staticmethod
    def calculate_offset_generated(result: Decimal) -> Decimal:
        """Casillas 68 / 70: cuotas a compensar generadas en el período."""
        result = round_half_up(result)
        if result < 0:
            return abs(result)
        return Decimal("0.00")

    # ===================== MODELO 130 =====================

    @staticmethod
    def calculate_net_yield(income: Decimal, expenses: Decimal) -> Decimal:
        """
        Casilla 03: Rendimiento neto.
        Fórmula: C03 = C01 - C02 (ingresos y gastos acumulados desde el 1 de enero)
        """
        return round_half_up(income - expenses)

    @staticmethod
    def calculate_advance_payment(net_yield: Decimal) -> Decimal:
        """
        Casilla 04: 20% del rendimiento neto.
        Si el rendimiento es negativo o cero, el pago es cero.
        """
        if net_yield <= 0:
            return Decimal("0.00")
        return round_half_up(net_yield * ADVANCE_PAYMENT_RATE)

    @staticmethod
    def calculate_preliminary_result(
        advance_payment: Decimal,
        withholdings: Decimal,
        prior_payments: Decimal
    ) -> Decimal:
        """
        Casilla 07: Pago fraccionado previo.
        Fórmula: C07 = C04 - C05 - C06
        """
        return round_half_up(advance_payment - withholdings - prior_payments)

    @staticmethod
    def calculate_first_year_relief(preliminary_result: Decimal, first_year: bool) -> Decimal:
        """
        Casilla 13: Minoración por primer año de actividad.
        50% del pago previo positivo, con un máximo de 400 €.
        """
        if not first_year or preliminary_result <= 0:
            return Decimal("0.00")
        relief = round_half_up(preliminary_result * FIRST_YEAR_RELIEF_RATE)
        return min(relief, FIRST_YEAR_RELIEF_CAP)

    @staticmethod
    def calculate_advance_total(
        preliminary_result: Decimal,
        relief: Decimal,
        to_deduct: Decimal
    ) -> Decimal:
        """
        Casilla 15: Total liquidación.
        Fórmula: C15 = C12 - C13 - C14
        """
        return round_half_up(preliminary_result - relief - to_deduct)

    @staticmethod
    def classify_advance_result(total: Decimal) -> ResultType:
        """
        Tipo de declaración del 130: a ingresar, negativa o cero.
        """
        total = round_half_up(total)
        if total > 0:
            return ResultType.TO_PAY
        if total < 0:
            return ResultType.NEGATIVE
        return ResultType.ZERO

