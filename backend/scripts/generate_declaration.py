#!/usr/bin/env python3
"""
Script para generar el fichero BOE de un modelo fiscal a partir de un JSON
exportado del sistema de facturación.

Ejecutar:
    python backend/scripts/generate_declaration.py 303 2024 --quarter 1 --records datos.json
    python backend/scripts/generate_declaration.py 130 2024 --quarter 2 --records datos.json --first-year
    python backend/scripts/generate_declaration.py 390 2024 --records datos.json
    python backend/scripts/generate_declaration.py 347 2024 --records datos.json
"""

import argparse
import logging
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path

# Agregar el directorio raíz al path de Python
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

from modelos_fiscales.core.config import settings
from modelos_fiscales.core.exceptions import FiscalEngineError
from modelos_fiscales.schemas.declarations import DeclarationKind
from modelos_fiscales.services.declaration_service import (
    ANNUAL_MODELS,
    QUARTERLY_MODELS,
    DeclarationService,
)
from modelos_fiscales.services.record_source import JsonRecordSource


def amount(value: str) -> Decimal:
    try:
        return Decimal(value.replace(",", "."))
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"importe no válido: {value}")


def parse_args(argv):
    parser = argparse.ArgumentParser(description="Genera el fichero BOE de un modelo AEAT")
    parser.add_argument("model", choices=QUARTERLY_MODELS + ANNUAL_MODELS, help="Modelo a generar")
    parser.add_argument("year", type=int, help="Ejercicio")
    parser.add_argument("--quarter", type=int, choices=(1, 2, 3, 4), help="Trimestre (303 y 130)")
    parser.add_argument("--records", required=True, help="Fichero JSON con facturas y gastos")
    parser.add_argument("--output-dir", help="Directorio de salida (por defecto BOE_OUTPUT_PATH)")
    parser.add_argument("--prior-offset", type=amount, default=Decimal(0),
                        help="Cuotas a compensar de períodos anteriores (303)")
    parser.add_argument("--exempt-operations", type=amount, default=Decimal(0),
                        help="Operaciones exentas del ejercicio (390)")
    parser.add_argument("--first-year", action="store_true",
                        help="Primer año de actividad: aplica la minoración del 130")
    parser.add_argument("--withholdings", type=amount, help="Retenciones acumuladas (130)")
    parser.add_argument("--prior-payments", type=amount, help="Pagos fraccionados anteriores (130)")
    parser.add_argument("--to-deduct", type=amount, default=Decimal(0),
                        help="Importe a deducir, casilla 14 (130)")
    parser.add_argument("--differentiated-sectors", action="store_true",
                        help="Sectores diferenciados (390)")
    parser.add_argument("--kind", choices=[k.value for k in DeclarationKind], default="N",
                        help="Tipo de declaración del 347: N, C o S")
    parser.add_argument("--stdout", action="store_true", help="Mostrar el fichero en lugar de guardarlo")
    return parser.parse_args(argv)


def build_options(args) -> dict:
    if args.model == "303":
        return {"prior_offset": args.prior_offset}
    if args.model == "130":
        return {
            "first_year_activity": args.first_year,
            "withholdings": args.withholdings,
            "prior_payments": args.prior_payments,
            "to_deduct": args.to_deduct,
        }
    if args.model == "390":
        return {
            "exempt_operations": args.exempt_operations,
            "differentiated_sectors": args.differentiated_sectors,
        }
    return {"declaration_kind": DeclarationKind(args.kind)}


def main(argv=None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.model in QUARTERLY_MODELS and args.quarter is None:
        print(f"❌ Error: el modelo {args.model} requiere --quarter")
        return 2

    service = DeclarationService(JsonRecordSource(args.records))

    try:
        generated = service.generate(
            args.model,
            args.year,
            args.quarter if args.model in QUARTERLY_MODELS else None,
            **build_options(args),
        )
    except FiscalEngineError as e:
        print(f"❌ Error: {e}")
        return 1

    if args.stdout:
        print(generated.content)
        return 0

    path = service.export(generated, args.output_dir)
    print(f"✅ Modelo {generated.model_code} generado: {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
