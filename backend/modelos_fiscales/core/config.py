"""
Configuración central del motor de modelos fiscales.
Los datos del declarante y las rutas de salida se cargan desde variables de entorno.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import os


class Settings(BaseSettings):
    """
    Configuración de la aplicación.
    Los valores se cargan desde variables de entorno o desde el fichero .env.
    """
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)

    # Application
    APP_NAME: str = "Modelos Fiscales AEAT"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Declarante (datos del emisor)
    DECLARANT_NIF: str = "00000000T"
    DECLARANT_NAME: str = "DECLARANTE"
    DECLARANT_ADDRESS: str = ""
    DECLARANT_CNAE: str = "4520"
    DECLARANT_PROVINCE: str = "14"

    # Tipos de IVA vigentes: general, reducido y superreducido
    VAT_TIERS: List[str] = ["21", "10", "4"]

    # Ficheros BOE
    BOE_OUTPUT_PATH: str = "./boe"
    BOE_ENCODING: str = "ISO-8859-1"


settings = Settings()


def get_boe_path(year: int, model_code: str) -> str:
    """
    Genera la ruta de almacenamiento de los ficheros BOE organizada por año y modelo.
    """
    base_path = settings.BOE_OUTPUT_PATH
    return os.path.join(base_path, str(year), model_code)
