"""
Utilidades de formato numérico y de texto para los ficheros BOE.

Los importes se expresan siempre con 2 decimales, redondeo HALF_UP (sobre la
magnitud: -1.005 -> -1.01), punto decimal y sin separador de miles.
"""
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional


def to_decimal(value: Any) -> Decimal:
    """
    Convierte un valor a Decimal.
    None, cadenas vacías y valores no numéricos se tratan como cero.
    """
    if value is None:
        return Decimal(0)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        result = Decimal(int(value))
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        # str() evita arrastrar el error binario del float
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(_normalize_separators(str(value).strip()))
        except InvalidOperation:
            return Decimal(0)

    # NaN e Infinity no son importes
    if not result.is_finite():
        return Decimal(0)
    return result


def _normalize_separators(text: str) -> str:
    """
    "1.234,56" (español) y "1,234.56" (inglés) -> "1234.56".
    La coma es decimal salvo que haya un punto detrás de ella.
    """
    if "," not in text:
        return text
    if "." in text[text.rfind(","):]:
        return text.replace(",", "")
    return text.replace(".", "").replace(",", ".")


def round_half_up(value: Any, places: int = 2) -> Decimal:
    """Redondea a `places` decimales con HALF_UP."""
    exponent = Decimal(1).scaleb(-places)
    result = to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP)
    # Sin cero negativo: -0.001 se representa como 0.00
    if result == 0:
        return abs(result)
    return result


def format_amount(value: Optional[Any]) -> str:
    """
    Formatea un importe para el fichero BOE.
    Ej: 1234.5 -> "1234.50", None -> "0.00", -168 -> "-168.00"
    """
    return f"{round_half_up(value):f}"


def format_rate(value: Any) -> str:
    """
    Formatea un tipo impositivo con coma decimal, como lo espera la casilla de tipo.
    Ej: 21 -> "21,00"
    """
    return format_amount(value).replace(".", ",")


def pad_right(text: Optional[str], width: int) -> str:
    """Completa con espacios a la derecha; trunca si excede la longitud."""
    text = text or ""
    if len(text) >= width:
        return text[:width]
    return text + " " * (width - len(text))


def pad_zeros(text: Optional[str], width: int) -> str:
    """
    Completa con ceros a la izquierda tras eliminar todo lo que no sea dígito.
    """
    digits = re.sub(r"[^0-9]", "", text or "")
    if len(digits) >= width:
        return digits[:width]
    return "0" * (width - len(digits)) + digits


def normalize_nif(nif: Optional[str]) -> str:
    """NIF en mayúsculas y sin separadores."""
    return re.sub(r"[^A-Z0-9]", "", (nif or "").upper())


def format_nif(nif: Optional[str], width: int = 9) -> str:
    """NIF normalizado a ancho fijo (9 posiciones)."""
    return pad_right(normalize_nif(nif), width)
