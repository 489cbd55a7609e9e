"""
Utilidades de validación.
Formato de NIF/NIE/CIF y rangos de ejercicio y trimestre.
"""
import re
from typing import Optional
from datetime import date

from .formatters import normalize_nif


# DNI: 8 dígitos + letra; CIF: letra + 8 dígitos; NIE/CIF: letra + 7 dígitos + letra
NIF_PATTERN = re.compile(r"\d{8}[A-Z]|[A-Z]\d{8}|[A-Z]\d{7}[A-Z]")

DNI_LETTERS = "TRWAGMYFPDXBNJZSQVHLCKE"
NIE_PREFIXES = {"X": "0", "Y": "1", "Z": "2"}


def is_nif_format(value: Optional[str]) -> bool:
    """
    Indica si un identificador tiene forma de NIF.
    Solo valida el patrón, no el carácter de control.
    """
    if not value:
        return False
    return NIF_PATTERN.fullmatch(value) is not None


def validate_nif(nif: Optional[str]) -> bool:
    """
    Valida un NIF de persona física (DNI o NIE) con su letra de control.
    Los CIF de entidades se aceptan si cumplen el patrón.
    """
    nif = normalize_nif(nif)
    if not is_nif_format(nif):
        return False

    number = nif[:-1]
    if number[0] in NIE_PREFIXES:
        number = NIE_PREFIXES[number[0]] + number[1:]

    if not number.isdigit():
        # CIF: letra inicial de entidad, sin comprobación de control
        return True

    return DNI_LETTERS[int(number) % 23] == nif[-1]


def validate_tax_year(year: int) -> bool:
    """
    Valida que el ejercicio sea razonable (no muy antiguo ni futuro).
    """
    current_year = date.today().year
    return 2000 <= year <= current_year + 1


def validate_quarter(quarter: int) -> bool:
    """Trimestre natural 1-4."""
    return quarter in (1, 2, 3, 4)


def sanitize_filename(filename: str) -> str:
    """
    Sanitiza un nombre de archivo para prevenir path traversal.
    """
    if not filename:
        return filename

    # Eliminar caracteres peligrosos
    filename = re.sub(r'[/\\:*?"<>|]', '', filename)

    # Eliminar intentos de path traversal
    filename = filename.replace('..', '')

    return filename
