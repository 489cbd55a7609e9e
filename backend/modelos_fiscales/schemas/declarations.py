"""
Esquemas Pydantic de las declaraciones: modelos 303, 130, 390 y 347.

Todas las declaraciones son inmutables. Los totales no se almacenan: se
derivan de los datos de entrada cada vez que se leen, de modo que nunca
pueden quedar desalineados con ellos.
"""
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, computed_field, model_validator

from ..core.config import settings
from ..core.exceptions import InvalidPeriodError
from ..services.calculation_engine import (
    DISCLOSURE_THRESHOLD,
    FiscalCalculationEngine as engine,
    ResultType,
)
from ..utils.dates import quarter_end, quarter_start
from ..utils.validators import validate_quarter, validate_tax_year


ZERO = Decimal("0.00")


# ===================== PERÍODO Y DECLARANTE =====================

class DeclarationPeriod(BaseModel):
    """
    Ejercicio + trimestre (1-4), o ejercicio completo si quarter es None.
    """
    model_config = ConfigDict(frozen=True)

    year: int
    quarter: Optional[int] = None

    def __init__(self, **data: Any):
        super().__init__(**data)
        # InvalidPeriodError directo, no ValidationError
        if not validate_tax_year(self.year):
            raise InvalidPeriodError(f"Ejercicio no válido: {self.year}")
        if self.quarter is not None and not validate_quarter(self.quarter):
            raise InvalidPeriodError(f"Trimestre no válido: {self.quarter}")

    @classmethod
    def quarterly(cls, year: int, quarter: int) -> "DeclarationPeriod":
        if quarter is None:
            raise InvalidPeriodError("Falta el trimestre")
        return cls(year=year, quarter=quarter)

    @classmethod
    def annual(cls, year: int) -> "DeclarationPeriod":
        return cls(year=year)

    @property
    def is_annual(self) -> bool:
        return self.quarter is None

    @property
    def start(self) -> date:
        if self.is_annual:
            return date(self.year, 1, 1)
        return quarter_start(self.year, self.quarter)

    @property
    def end(self) -> date:
        if self.is_annual:
            return date(self.year, 12, 31)
        return quarter_end(self.year, self.quarter)

    @property
    def year_start(self) -> date:
        return date(self.year, 1, 1)

    @property
    def code(self) -> str:
        """Período en formato AEAT: "1T".."4T"; vacío en modelos anuales."""
        return "" if self.is_annual else f"{self.quarter}T"

    def quarters(self) -> List["DeclarationPeriod"]:
        """Los cuatro trimestres del ejercicio."""
        return [DeclarationPeriod(year=self.year, quarter=q) for q in range(1, 5)]

    def previous_quarters(self) -> List["DeclarationPeriod"]:
        """Trimestres del ejercicio anteriores a este."""
        last = 4 if self.is_annual else self.quarter - 1
        return [DeclarationPeriod(year=self.year, quarter=q) for q in range(1, last + 1)]

    def __str__(self) -> str:
        return f"{self.code} {self.year}".strip()


class Declarant(BaseModel):
    """Datos identificativos del declarante."""
    model_config = ConfigDict(frozen=True)

    nif: str
    name: str
    address: str = ""
    cnae: str = ""
    province_code: str = ""

    @classmethod
    def from_settings(cls) -> "Declarant":
        return cls(
            nif=settings.DECLARANT_NIF,
            name=settings.DECLARANT_NAME,
            address=settings.DECLARANT_ADDRESS,
            cnae=settings.DECLARANT_CNAE,
            province_code=settings.DECLARANT_PROVINCE,
        )


# ===================== IVA (303 / 390) =====================

class TierLine(BaseModel):
    """Base, tipo y cuota de un tramo de IVA devengado."""
    model_config = ConfigDict(frozen=True)

    rate: Decimal
    base: Decimal = ZERO
    vat: Decimal = ZERO


class VatFigures(BaseModel):
    """
    Bloque común del IVA devengado y deducible.
    Los tramos van en orden: general, reducido, superreducido.
    """
    model_config = ConfigDict(frozen=True)

    period: DeclarationPeriod
    declarant: Declarant

    tiers: Tuple[TierLine, ...] = ()
    # Tipos distintos de los tramos (0%, tipos transitorios...)
    other_rates_base: Decimal = ZERO
    other_rates_vat: Decimal = ZERO

    deductible_interior_base: Decimal = ZERO
    deductible_interior_vat: Decimal = ZERO
    deductible_investment_base: Decimal = ZERO
    deductible_investment_vat: Decimal = ZERO
    deductible_imports_base: Decimal = ZERO
    deductible_imports_vat: Decimal = ZERO

    issued_count: int = 0
    received_count: int = 0

    def tier_at(self, index: int) -> TierLine:
        if index < len(self.tiers):
            return self.tiers[index]
        return TierLine(rate=ZERO)

    @property
    def general(self) -> TierLine:
        return self.tier_at(0)

    @property
    def reduced(self) -> TierLine:
        return self.tier_at(1)

    @property
    def super_reduced(self) -> TierLine:
        return self.tier_at(2)

    @computed_field
    @property
    def total_output_base(self) -> Decimal:
        return engine.sum_amounts([t.base for t in self.tiers] + [self.other_rates_base])

    @computed_field
    @property
    def total_output_vat(self) -> Decimal:
        return engine.calculate_total_output_vat(
            [t.vat for t in self.tiers] + [self.other_rates_vat]
        )

    @computed_field
    @property
    def total_deductible_base(self) -> Decimal:
        return engine.sum_amounts((
            self.deductible_interior_base,
            self.deductible_investment_base,
            self.deductible_imports_base,
        ))

    @computed_field
    @property
    def total_deductible_vat(self) -> Decimal:
        return engine.calculate_total_deductible_vat(
            self.deductible_interior_vat,
            self.deductible_investment_vat,
            self.deductible_imports_vat,
        )

    @computed_field
    @property
    def difference(self) -> Decimal:
        return engine.calculate_difference(self.total_output_vat, self.total_deductible_vat)


class VatDeclaration(VatFigures):
    """
    Modelo 303 - Autoliquidación trimestral de IVA.
    """
    prior_offset: Decimal = ZERO

    @computed_field
    @property
    def result(self) -> Decimal:
        return engine.calculate_vat_result(self.difference, self.prior_offset)

    @computed_field
    @property
    def result_type(self) -> ResultType:
        return engine.classify_vat_result(self.result)

    @property
    def amount_due(self) -> Decimal:
        return engine.calculate_amount_due(self.result)

    @property
    def offset_generated(self) -> Decimal:
        return engine.calculate_offset_generated(self.result)


class QuarterSummary(BaseModel):
    """Resumen de un 303 trimestral dentro del 390."""
    model_config = ConfigDict(frozen=True)

    quarter: int
    output_base: Decimal = ZERO
    output_vat: Decimal = ZERO
    deductible_base: Decimal = ZERO
    deductible_vat: Decimal = ZERO
    result: Decimal = ZERO
    issued_count: int = 0
    received_count: int = 0

    @classmethod
    def from_declaration(cls, declaration: VatDeclaration) -> "QuarterSummary":
        return cls(
            quarter=declaration.period.quarter,
            output_base=declaration.total_output_base,
            output_vat=declaration.total_output_vat,
            deductible_base=declaration.total_deductible_base,
            deductible_vat=declaration.total_deductible_vat,
            result=declaration.result,
            issued_count=declaration.issued_count,
            received_count=declaration.received_count,
        )

    @property
    def code(self) -> str:
        return f"{self.quarter}T"


class AnnualVatSummary(VatFigures):
    """
    Modelo 390 - Declaración-resumen anual de IVA.
    Los importes anuales son la suma de los cuatro 303 reconstruidos.
    """
    quarters: Tuple[QuarterSummary, ...] = ()
    exempt_operations: Decimal = ZERO
    differentiated_sectors: bool = False

    @computed_field
    @property
    def volume_of_operations(self) -> Decimal:
        return engine.sum_amounts((self.total_output_base, self.exempt_operations))

    @computed_field
    @property
    def sum_of_results(self) -> Decimal:
        return engine.sum_amounts(q.result for q in self.quarters)

    @computed_field
    @property
    def paid_results(self) -> Decimal:
        """Suma de resultados a ingresar de los trimestres."""
        return engine.sum_amounts(q.result for q in self.quarters if q.result > 0)

    @computed_field
    @property
    def offset_results(self) -> Decimal:
        """Suma de resultados a compensar (en valor absoluto)."""
        return engine.sum_amounts(abs(q.result) for q in self.quarters if q.result < 0)

    @computed_field
    @property
    def result_type(self) -> ResultType:
        return engine.classify_vat_result(self.sum_of_results)

    @property
    def amount_due(self) -> Decimal:
        """Casilla 110: suma de resultados, si es positiva."""
        return engine.calculate_amount_due(self.sum_of_results)

    @property
    def offset_generated(self) -> Decimal:
        """Casilla 111: suma de resultados en valor absoluto, si es negativa."""
        return engine.calculate_offset_generated(self.sum_of_results)


# ===================== IRPF (130) =====================

class IncomeTaxAdvance(BaseModel):
    """
    Modelo 130 - Pago fraccionado IRPF, estimación directa.
    Ingresos y gastos acumulados desde el 1 de enero hasta el fin del trimestre.
    """
    model_config = ConfigDict(frozen=True)

    period: DeclarationPeriod
    declarant: Declarant

    income: Decimal = ZERO
    expenses: Decimal = ZERO
    withholdings: Decimal = ZERO
    prior_payments: Decimal = ZERO
    first_year_activity: bool = False
    to_deduct: Decimal = ZERO

    # Solo informativos: importes del trimestre, no acumulados
    quarter_income: Decimal = ZERO
    quarter_expenses: Decimal = ZERO
    expenses_by_category: Dict[str, Decimal] = {}
    withholdings_derived: bool = True
    prior_payments_derived: bool = True

    issued_count: int = 0
    expense_count: int = 0

    @computed_field
    @property
    def net_yield(self) -> Decimal:
        return engine.calculate_net_yield(self.income, self.expenses)

    @computed_field
    @property
    def advance_payment(self) -> Decimal:
        return engine.calculate_advance_payment(self.net_yield)

    @computed_field
    @property
    def preliminary_result(self) -> Decimal:
        return engine.calculate_preliminary_result(
            self.advance_payment, self.withholdings, self.prior_payments
        )

    @computed_field
    @property
    def relief(self) -> Decimal:
        return engine.calculate_first_year_relief(
            self.preliminary_result, self.first_year_activity
        )

    @computed_field
    @property
    def total(self) -> Decimal:
        return engine.calculate_advance_total(
            self.preliminary_result, self.relief, self.to_deduct
        )

    @computed_field
    @property
    def result_type(self) -> ResultType:
        return engine.classify_advance_result(self.total)


# ===================== OPERACIONES CON TERCEROS (347) =====================

class OperationCode(str, Enum):
    """Clave de operación del 347."""
    PURCHASES = "A"
    SALES = "B"


class DeclarationKind(str, Enum):
    NORMAL = "N"
    COMPLEMENTARY = "C"
    SUBSTITUTE = "S"


class DeclaredCounterparty(BaseModel):
    """Persona o entidad declarada en el 347."""
    model_config = ConfigDict(frozen=True)

    tax_id: str = ""
    name: str = ""
    province_code: str = ""
    operation_code: OperationCode
    annual_total: Decimal = ZERO
    quarter_totals: Tuple[Decimal, Decimal, Decimal, Decimal] = (ZERO, ZERO, ZERO, ZERO)
    operation_count: int = 0


class ThirdPartyReport(BaseModel):
    """
    Modelo 347 - Declaración anual de operaciones con terceras personas.
    Un tercero figura si y solo si abs(importe anual) >= 3005.06.
    """
    model_config = ConfigDict(frozen=True)

    period: DeclarationPeriod
    declarant: Declarant
    declaration_kind: DeclarationKind = DeclarationKind.NORMAL
    counterparties: Tuple[DeclaredCounterparty, ...] = ()

    @model_validator(mode="after")
    def check_threshold(self) -> "ThirdPartyReport":
        for counterparty in self.counterparties:
            if abs(counterparty.annual_total) < DISCLOSURE_THRESHOLD:
                raise ValueError(
                    f"{counterparty.name}: importe {counterparty.annual_total} "
                    f"inferior al umbral {DISCLOSURE_THRESHOLD}"
                )
        return self

    def _of(self, code: OperationCode) -> List[DeclaredCounterparty]:
        return [c for c in self.counterparties if c.operation_code == code]

    @computed_field
    @property
    def declared_count(self) -> int:
        return len(self.counterparties)

    @computed_field
    @property
    def total_amount(self) -> Decimal:
        return engine.sum_amounts(c.annual_total for c in self.counterparties)

    @computed_field
    @property
    def customer_count(self) -> int:
        return len(self._of(OperationCode.SALES))

    @computed_field
    @property
    def sales_total(self) -> Decimal:
        return engine.sum_amounts(c.annual_total for c in self._of(OperationCode.SALES))

    @computed_field
    @property
    def supplier_count(self) -> int:
        return len(self._of(OperationCode.PURCHASES))

    @computed_field
    @property
    def purchases_total(self) -> Decimal:
        return engine.sum_amounts(c.annual_total for c in self._of(OperationCode.PURCHASES))
