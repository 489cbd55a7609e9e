"""
Definición declarativa de los ficheros BOE de cada modelo.

Un esquema es una lista ordenada de páginas; cada página, una lista ordenada
de casillas. Cada casilla indica de qué atributo de la declaración sale su
valor (ruta con puntos, admite índices: "quarters.0.result") y cómo se
formatea. El serializador es único para todos los modelos.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple

from ..core.exceptions import UnknownModelError
from ..schemas.declarations import DeclarationKind
from .calculation_engine import ResultType


class FieldKind(str, Enum):
    NUMERIC = "numeric"      # importe, 2 decimales con punto
    INTEGER = "integer"      # contador
    TEXT = "text"            # texto tal cual (o ajustado a `width`)
    RATE = "rate"            # tipo impositivo con coma: "21,00"
    FLAG = "flag"            # booleano como "S" / "N"
    CONSTANT = "constant"    # valor fijo


@dataclass(frozen=True)
class BoeField:
    tag: str
    source: Optional[str] = None
    kind: FieldKind = FieldKind.NUMERIC
    width: Optional[int] = None
    value: str = ""


@dataclass(frozen=True)
class BoePage:
    number: int
    fields: Tuple[BoeField, ...]
    # Ruta a una colección: la página se repite una vez por elemento.
    # Con la colección vacía se emite una sola vez, sin campos.
    repeat: Optional[str] = None


@dataclass(frozen=True)
class BoeSchema:
    model_code: str
    version: str
    pages: Tuple[BoePage, ...]
    # Atributo que determina el <TYPE> y su traducción a código
    classification_source: str = "result_type"
    classification: Optional[Mapping[str, str]] = None
    extension: str = "txt"

    def classify(self, value) -> str:
        if value is None or not self.classification:
            return ""
        if isinstance(value, Enum):
            value = value.value
        return self.classification.get(value, "")


def amount(tag: str, source: Optional[str] = None) -> BoeField:
    """Importe; sin origen se emite 0.00."""
    return BoeField(tag, source, FieldKind.NUMERIC)


def count(tag: str, source: str) -> BoeField:
    return BoeField(tag, source, FieldKind.INTEGER)


def text(tag: str, source: str, width: Optional[int] = None) -> BoeField:
    return BoeField(tag, source, FieldKind.TEXT, width=width)


def rate(tag: str, source: str) -> BoeField:
    return BoeField(tag, source, FieldKind.RATE)


def flag(tag: str, source: str) -> BoeField:
    return BoeField(tag, source, FieldKind.FLAG)


def constant(tag: str, value: str) -> BoeField:
    return BoeField(tag, kind=FieldKind.CONSTANT, value=value)


def zeros(*tags: str) -> Tuple[BoeField, ...]:
    return tuple(amount(tag) for tag in tags)


def identification(*extra: BoeField) -> BoePage:
    """Página 1 de los modelos trimestrales."""
    return BoePage(1, (
        text("01", "period.year"),
        text("02", "period.code"),
        text("03", "declarant.nif"),
        text("04", "declarant.name"),
    ) + extra)


# Códigos de tipo de declaración
VAT_CLASSIFICATION: Dict[str, str] = {
    ResultType.TO_PAY.value: "I",
    ResultType.TO_OFFSET.value: "C",
    ResultType.ZERO.value: "N",
}

ADVANCE_CLASSIFICATION: Dict[str, str] = {
    ResultType.TO_PAY.value: "I",
    ResultType.NEGATIVE.value: "N",
    ResultType.ZERO.value: "B",
}

THIRD_PARTY_CLASSIFICATION: Dict[str, str] = {
    kind.value: kind.value for kind in DeclarationKind
}


# ===================== MODELO 303 =====================

MODELO_303 = BoeSchema(
    model_code="303",
    version="2.0",
    classification=VAT_CLASSIFICATION,
    pages=(
        identification(),
        BoePage(2, (
            # Régimen general: base, tipo y cuota por tramo
            amount("01", "general.base"),
            rate("02", "general.rate"),
            amount("03", "general.vat"),
            amount("04", "reduced.base"),
            rate("05", "reduced.rate"),
            amount("06", "reduced.vat"),
            amount("07", "super_reduced.base"),
            rate("08", "super_reduced.rate"),
            amount("09", "super_reduced.vat"),
            amount("21", "total_output_vat"),
            # Deducible
            amount("22", "deductible_interior_base"),
            amount("23", "deductible_interior_vat"),
            amount("24", "deductible_investment_base"),
            amount("25", "deductible_investment_vat"),
            amount("26", "deductible_imports_base"),
            amount("27", "deductible_imports_vat"),
            amount("28", "total_deductible_vat"),
            amount("29", "difference"),
            constant("30", "100"),
            amount("31", "prior_offset"),
        ) + zeros("32", "33")),
        BoePage(3, (
            amount("64", "result"),
            amount("65", "result"),
        ) + zeros("66", "67") + (
            amount("68", "offset_generated"),
            amount("69", "amount_due"),
            amount("70", "offset_generated"),
            amount("71", "result"),
        )),
    ),
)


# ===================== MODELO 130 =====================

MODELO_130 = BoeSchema(
    model_code="130",
    version="1.0",
    classification=ADVANCE_CLASSIFICATION,
    pages=(
        identification(),
        BoePage(2, (
            amount("01", "income"),
            amount("02", "expenses"),
            amount("03", "net_yield"),
            amount("04", "advance_payment"),
            amount("05", "withholdings"),
            amount("06", "prior_payments"),
            amount("07", "preliminary_result"),
        )),
        BoePage(3, (
            amount("12", "preliminary_result"),
            amount("13", "relief"),
            amount("14", "to_deduct"),
            amount("15", "total"),
            amount("16"),
            amount("17", "total"),
        )),
    ),
)


# ===================== MODELO 390 =====================

def _quarter_fields(first_tag: int) -> Tuple[BoeField, ...]:
    fields = []
    tag = first_tag
    for index in range(4):
        for source in ("output_vat", "deductible_vat", "result"):
            fields.append(amount(f"{tag:02d}", f"quarters.{index}.{source}"))
            tag += 1
    return tuple(fields)


MODELO_390 = BoeSchema(
    model_code="390",
    version="2.0",
    classification=VAT_CLASSIFICATION,
    pages=(
        BoePage(1, (
            text("01", "period.year"),
            text("02", "declarant.nif"),
            text("03", "declarant.name"),
            text("04", "declarant.cnae"),
            constant("05", "N"),
            constant("06", "N"),
            constant("07", "N"),
            constant("08", "N"),
            flag("09", "differentiated_sectors"),
        )),
        BoePage(3, (
            amount("01", "general.base"),
            rate("02", "general.rate"),
            amount("03", "general.vat"),
            amount("04", "reduced.base"),
            rate("05", "reduced.rate"),
            amount("06", "reduced.vat"),
            amount("07", "super_reduced.base"),
            rate("08", "super_reduced.rate"),
            amount("09", "super_reduced.vat"),
            amount("33", "total_output_base"),
            amount("34", "total_output_vat"),
        )),
        BoePage(4, (
            amount("35", "deductible_interior_base"),
            amount("36", "deductible_interior_vat"),
            amount("37", "deductible_investment_base"),
            amount("38", "deductible_investment_vat"),
            amount("39", "deductible_imports_base"),
            amount("40", "deductible_imports_vat"),
            amount("49", "total_deductible_vat"),
        )),
        BoePage(5, (
            amount("50", "difference"),
            amount("51"),
            amount("52", "difference"),
        ) + zeros("53", "54", "55") + (
            amount("56", "difference"),
        ) + zeros("57", "58", "59")),
        BoePage(6, (
            amount("80", "total_output_base"),
        ) + zeros("81", "82", "83", "84", "85", "86", "87") + (
            amount("88", "volume_of_operations"),
        )),
        BoePage(8, _quarter_fields(95) + (
            amount("107", "total_output_vat"),
            amount("108", "total_deductible_vat"),
            amount("109", "sum_of_results"),
            amount("110", "amount_due"),
            amount("111", "offset_generated"),
        )),
    ),
)


# ===================== MODELO 347 =====================

MODELO_347 = BoeSchema(
    model_code="347",
    version="1.0",
    classification=THIRD_PARTY_CLASSIFICATION,
    classification_source="declaration_kind",
    pages=(
        BoePage(1, (
            text("01", "period.year"),
            text("02", "declarant.nif"),
            text("03", "declarant.name"),
            text("04", "declarant.address"),
        )),
        BoePage(2, (
            text("01", "tax_id", width=9),
            text("02", "name", width=40),
            text("03", "province_code", width=2),
            text("04", "operation_code"),
            amount("05", "annual_total"),
            amount("06", "quarter_totals.0"),
            amount("07", "quarter_totals.1"),
            amount("08", "quarter_totals.2"),
            amount("09", "quarter_totals.3"),
            count("10", "operation_count"),
        ), repeat="counterparties"),
        BoePage(3, (
            count("01", "declared_count"),
            amount("02", "total_amount"),
            count("03", "customer_count"),
            amount("04", "sales_total"),
            count("05", "supplier_count"),
            amount("06", "purchases_total"),
        )),
    ),
)


SCHEMAS: Dict[str, BoeSchema] = {
    schema.model_code: schema
    for schema in (MODELO_303, MODELO_130, MODELO_390, MODELO_347)
}


def schema_for(model_code: str) -> BoeSchema:
    """Esquema BOE de un modelo por su código ("303", "130", "390", "347")."""
    try:
        return SCHEMAS[str(model_code)]
    except KeyError:
        raise UnknownModelError(model_code)
