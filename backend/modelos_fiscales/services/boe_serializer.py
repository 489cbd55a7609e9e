"""
Serializador genérico de declaraciones al formato de texto etiquetado del BOE.

Estructura del fichero:

    <T{modelo}0{ejercicio}{periodo}0000>
    <AUX>...</AUX>
    <T{modelo}0{página}000><01>valor</01>...</T{modelo}0{página}000>
    ...
    </T{modelo}0{ejercicio}{periodo}0000>

Todo va en una sola línea, sin separadores. El <TYPE> del resultado se
escribe dentro de la última página.
"""
import logging
from enum import Enum
from typing import Any, List, Mapping, Optional, Sequence

from ..utils.formatters import format_amount, format_nif, format_rate, pad_right, to_decimal
from .boe_schemas import BoeField, BoePage, BoeSchema, FieldKind

logger = logging.getLogger(__name__)

# Bloque auxiliar: reservado AEAT + versión + reservado + NIF + reservado
AUX_LEADING_BLANKS = 70
AUX_VERSION_WIDTH = 4
AUX_MIDDLE_BLANKS = 4
AUX_TRAILING_BLANKS = 213


def resolve(obj: Any, path: Optional[str]) -> Any:
    """
    Lee un valor anidado por ruta con puntos. Los segmentos numéricos indexan
    secuencias. Cualquier segmento ausente devuelve None.
    """
    if not path:
        return None
    for part in path.split("."):
        if obj is None:
            return None
        if part.isdigit() and isinstance(obj, Sequence) and not isinstance(obj, str):
            index = int(part)
            obj = obj[index] if index < len(obj) else None
        elif isinstance(obj, Mapping):
            obj = obj.get(part)
        else:
            obj = getattr(obj, part, None)
    return obj


def render_value(field: BoeField, value: Any) -> str:
    """Formatea el valor de una casilla según su tipo."""
    if field.kind == FieldKind.CONSTANT:
        return field.value
    if field.kind == FieldKind.NUMERIC:
        return format_amount(value)
    if field.kind == FieldKind.RATE:
        return format_rate(value)
    if field.kind == FieldKind.INTEGER:
        return str(int(to_decimal(value)))
    if field.kind == FieldKind.FLAG:
        return "S" if value else "N"

    if value is None:
        text = ""
    elif isinstance(value, Enum):
        text = str(value.value)
    else:
        text = str(value)
    if field.width is not None:
        return pad_right(text, field.width)
    return text


class BoeSerializer:
    """
    Un único serializador para todos los modelos: el formato de cada uno lo
    define su BoeSchema.
    """

    def serialize(self, declaration: Any, schema: BoeSchema) -> str:
        envelope = self.envelope_tag(schema, resolve(declaration, "period"))
        type_tag = self.type_tag(declaration, schema)

        parts: List[str] = [f"<{envelope}>", self.aux_block(declaration, schema)]

        for position, page in enumerate(schema.pages):
            is_last = position == len(schema.pages) - 1
            items = self._page_items(declaration, page)

            if not items:
                # Página repetida sin elementos: se emite vacía, nunca se omite
                parts.append(self._page(schema, page, "", type_tag if is_last else ""))
                continue

            for index, item in enumerate(items):
                trailer = type_tag if is_last and index == len(items) - 1 else ""
                parts.append(self._page(schema, page, self._fields(page, item), trailer))

        parts.append(f"</{envelope}>")
        content = "".join(parts)

        logger.debug(f"Fichero BOE {schema.model_code} serializado ({len(content)} caracteres)")
        return content

    def file_name(self, declaration: Any, schema: BoeSchema) -> str:
        """Nombre del fichero: {modelo}{ejercicio}{periodo}.txt, ej. 30320241T.txt"""
        period = resolve(declaration, "period")
        year = resolve(period, "year") or ""
        code = resolve(period, "code") or ""
        return f"{schema.model_code}{year}{code}.{schema.extension}"

    @staticmethod
    def envelope_tag(schema: BoeSchema, period: Any) -> str:
        year = resolve(period, "year") or ""
        code = resolve(period, "code") or ""
        return f"T{schema.model_code}0{year}{code}0000"

    @staticmethod
    def page_tag(schema: BoeSchema, number: int) -> str:
        return f"T{schema.model_code}0{number}000"

    @staticmethod
    def type_tag(declaration: Any, schema: BoeSchema) -> str:
        code = schema.classify(resolve(declaration, schema.classification_source))
        return f"<TYPE>{code}</TYPE>"

    def aux_block(self, declaration: Any, schema: BoeSchema) -> str:
        nif = resolve(declaration, "declarant.nif")
        return (
            "<AUX>"
            + " " * AUX_LEADING_BLANKS
            + pad_right(schema.version, AUX_VERSION_WIDTH)
            + " " * AUX_MIDDLE_BLANKS
            + format_nif(nif)
            + " " * AUX_TRAILING_BLANKS
            + "</AUX>"
        )

    def _page_items(self, declaration: Any, page: BoePage) -> List[Any]:
        """Objetos de los que lee cada repetición de la página."""
        if not page.repeat:
            return [declaration]
        items = resolve(declaration, page.repeat)
        return list(items) if items else []

    @staticmethod
    def _fields(page: BoePage, item: Any) -> str:
        return "".join(
            f"<{field.tag}>{render_value(field, resolve(item, field.source))}</{field.tag}>"
            for field in page.fields
        )

    def _page(self, schema: BoeSchema, page: BoePage, body: str, trailer: str) -> str:
        tag = self.page_tag(schema, page.number)
        return f"<{tag}>{body}{trailer}</{tag}>"
