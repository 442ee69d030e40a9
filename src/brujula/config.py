"""
Configuración centralizada del sistema.
Carga variables de entorno y define settings globales del motor de scoring.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Encontrar la raíz del proyecto (donde está el .env)
# config.py -> brujula/ -> src/ -> raíz del proyecto
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Configuración principal de la aplicación."""

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Pesos por defecto del score final
    weight_compatibility: float = Field(
        0.4, ge=0.0, description="Peso del score de compatibilidad"
    )
    weight_behavior: float = Field(
        0.3, ge=0.0, description="Peso del score de comportamiento"
    )
    weight_temporal: float = Field(
        0.3, ge=0.0, description="Peso del score temporal"
    )

    # Quick score (listings sin historial de interacción)
    quick_weight_compatibility: float = Field(
        0.6, ge=0.0, description="Peso de compatibilidad en quick score"
    )
    quick_weight_temporal: float = Field(
        0.4, ge=0.0, description="Peso temporal en quick score"
    )

    # Versionado del algoritmo
    scoring_version: str = Field("2.0", description="Versión del algoritmo de scoring")

    # Optimizador de pesos
    optimizer_learning_rate: float = Field(
        0.01, gt=0.0, le=1.0, description="Learning rate del descenso por gradiente"
    )
    optimizer_min_samples: int = Field(
        50, ge=1, description="Mínimo de muestras para entrenar"
    )
    optimizer_train_every: int = Field(
        10, ge=1, description="Re-entrenar cada N muestras nuevas (una vez alcanzado el mínimo)"
    )
    optimizer_ab_tie_margin: float = Field(
        0.05, ge=0.0, le=1.0, description="Diferencia de accuracy considerada empate en A/B"
    )

    # Ranking
    ranking_max_workers: int = Field(
        4, ge=1, description="Máximo de workers para scoring en lote"
    )
    ranking_parallel_threshold: int = Field(
        64, ge=1, description="A partir de cuántos listings se usa el pool de workers"
    )
    ranking_group_round_size: int = Field(
        2, ge=1, description="Listings por grupo en cada ronda de diversificación"
    )

    # Logging
    log_level: str = Field("INFO", description="Nivel de logging")


@lru_cache
def get_settings() -> Settings:
    """Obtiene la configuración cacheada."""
    return Settings()


# Bandas de score para agrupar resultados
SCORE_TIERS = {
    "excellent": 80.0,
    "good": 60.0,
    "fair": 40.0,
    "poor": 0.0,
}

# Umbral de "score alto" para métricas de precisión/recall
HIGH_SCORE_THRESHOLD = 70.0
