"""
Excepciones del motor de modelos fiscales.
"""


class FiscalEngineError(Exception):
    """Error base del motor de declaraciones."""


class DataUnavailableError(FiscalEngineError):
    """
    La fuente de registros no pudo entregar los datos del período.

    Nunca se convierte en una declaración a cero: el llamador debe saber que
    la declaración no se pudo generar.
    """

    def __init__(self, source: str, start=None, end=None):
        self.source = source
        self.start = start
        self.end = end
        detail = f"Datos no disponibles: {source}"
        if start is not None and end is not None:
            detail += f" ({start} - {end})"
        super().__init__(detail)


class InvalidPeriodError(FiscalEngineError, ValueError):
    """Ejercicio o trimestre fuera de rango."""


class UnknownModelError(FiscalEngineError, ValueError):
    """Código de modelo no soportado."""

    def __init__(self, model_code: str):
        self.model_code = model_code
        super().__init__(f"Modelo no soportado: {model_code}")


class IncompleteInputError(FiscalEngineError, ValueError):
    """Combinación de datos de entrada con la que no se puede calcular la casilla."""
