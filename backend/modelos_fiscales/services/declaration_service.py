"""
Servicio de generación de declaraciones.
Orquesta builder + serializador BOE y, opcionalmente, escribe el fichero.
"""
import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from ..core.config import get_boe_path, settings
from ..core.exceptions import UnknownModelError
from ..schemas.declarations import (
    AnnualVatSummary,
    Declarant,
    DeclarationKind,
    DeclarationPeriod,
    IncomeTaxAdvance,
    ThirdPartyReport,
    VatDeclaration,
)
from ..utils.validators import sanitize_filename
from .aggregator import PeriodAggregator
from .boe_schemas import BoeSchema, schema_for
from .boe_serializer import BoeSerializer
from .income_tax_builder import IncomeTaxAdvanceBuilder
from .record_source import RecordSource
from .third_party_builder import ThirdPartyReportBuilder
from .vat_builder import AnnualVatSummaryBuilder, VatDeclarationBuilder

logger = logging.getLogger(__name__)

QUARTERLY_MODELS = ("303", "130")
ANNUAL_MODELS = ("390", "347")


@dataclass(frozen=True)
class GeneratedDeclaration:
    """Declaración calculada junto con su fichero BOE."""
    model_code: str
    declaration: Any
    content: str
    file_name: str


class DeclarationService:
    """
    Punto de entrada único para generar los modelos 303, 130, 390 y 347.
    """

    def __init__(
        self,
        source: RecordSource,
        declarant: Optional[Declarant] = None,
        aggregator: Optional[PeriodAggregator] = None,
        serializer: Optional[BoeSerializer] = None
    ):
        self.declarant = declarant or Declarant.from_settings()
        self.aggregator = aggregator or PeriodAggregator()
        self.serializer = serializer or BoeSerializer()

        self.vat_builder = VatDeclarationBuilder(source, self.declarant, self.aggregator)
        self.annual_vat_builder = AnnualVatSummaryBuilder(self.vat_builder)
        self.income_tax_builder = IncomeTaxAdvanceBuilder(source, self.declarant, self.aggregator)
        self.third_party_builder = ThirdPartyReportBuilder(source, self.declarant)

    # ===================== CÁLCULO =====================

    def build_303(self, year: int, quarter: int, prior_offset=Decimal(0)) -> VatDeclaration:
        period = DeclarationPeriod.quarterly(year, quarter)
        return self.vat_builder.build(period, prior_offset=prior_offset)

    def build_130(
        self,
        year: int,
        quarter: int,
        *,
        first_year_activity: bool,
        withholdings: Optional[Decimal] = None,
        prior_payments: Optional[Decimal] = None,
        to_deduct=Decimal(0)
    ) -> IncomeTaxAdvance:
        period = DeclarationPeriod.quarterly(year, quarter)
        return self.income_tax_builder.build(
            period,
            first_year_activity=first_year_activity,
            withholdings=withholdings,
            prior_payments=prior_payments,
            to_deduct=to_deduct,
        )

    def build_390(
        self,
        year: int,
        exempt_operations=Decimal(0),
        differentiated_sectors: bool = False
    ) -> AnnualVatSummary:
        period = DeclarationPeriod.annual(year)
        return self.annual_vat_builder.build(
            period,
            exempt_operations=exempt_operations,
            differentiated_sectors=differentiated_sectors,
        )

    def build_347(
        self,
        year: int,
        declaration_kind: DeclarationKind = DeclarationKind.NORMAL
    ) -> ThirdPartyReport:
        period = DeclarationPeriod.annual(year)
        return self.third_party_builder.build(period, declaration_kind)

    # ===================== FICHERO BOE =====================

    def to_boe(self, declaration: Any, schema: BoeSchema) -> GeneratedDeclaration:
        return GeneratedDeclaration(
            model_code=schema.model_code,
            declaration=declaration,
            content=self.serializer.serialize(declaration, schema),
            file_name=self.serializer.file_name(declaration, schema),
        )

    def generate(
        self,
        model_code: str,
        year: int,
        quarter: Optional[int] = None,
        **options
    ) -> GeneratedDeclaration:
        """
        Calcula un modelo y genera su fichero BOE.

        Opciones por modelo:
        - 303: prior_offset
        - 130: first_year_activity (obligatoria), withholdings, prior_payments, to_deduct
        - 390: exempt_operations, differentiated_sectors
        - 347: declaration_kind
        """
        model_code = str(model_code)
        schema = schema_for(model_code)

        if model_code == "303":
            declaration = self.build_303(year, quarter, **options)
        elif model_code == "130":
            declaration = self.build_130(year, quarter, **options)
        elif model_code == "390":
            declaration = self.build_390(year, **options)
        elif model_code == "347":
            declaration = self.build_347(year, **options)
        else:
            raise UnknownModelError(model_code)

        return self.to_boe(declaration, schema)

    def export(self, generated: GeneratedDeclaration, output_dir: Optional[str] = None) -> str:
        """
        Escribe el fichero BOE en disco y devuelve su ruta.
        Por defecto: {BOE_OUTPUT_PATH}/{ejercicio}/{modelo}/{fichero}
        """
        if output_dir is None:
            output_dir = get_boe_path(generated.declaration.period.year, generated.model_code)
        os.makedirs(output_dir, exist_ok=True)

        path = os.path.join(output_dir, sanitize_filename(generated.file_name))
        with open(path, "w", encoding=settings.BOE_ENCODING, errors="replace", newline="") as fh:
            fh.write(generated.content)

        logger.info(f"Fichero BOE guardado: {path}")
        return path
