"""
Guardas numéricas y helpers de tiempo compartidos por los scorers.
"""

import math
from datetime import datetime, timezone
from typing import Optional

SECONDS_PER_DAY = 86400.0
EARTH_RADIUS_KM = 6371.0


def clamp(value: float, low: float, high: float) -> float:
    """
    Acota value a [low, high].

    NaN se lleva a low; +inf/-inf a los extremos. Ningún NaN
    sale de aquí hacia la combinación de scores.
    """
    if value is None or math.isnan(value):
        return low
    return max(low, min(high, value))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(moment: datetime) -> datetime:
    """Fechas naive se interpretan como UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def days_since(moment: Optional[datetime], now: datetime) -> Optional[float]:
    """Días (fraccionales) transcurridos; None si no hay fecha. Fechas futuras cuentan como 0."""
    if moment is None:
        return None
    delta = (ensure_utc(now) - ensure_utc(moment)).total_seconds() / SECONDS_PER_DAY
    return max(0.0, delta)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distancia en km entre dos coordenadas (fórmula de Haversine)."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    # El redondeo puede dejar a apenas fuera de [0, 1] en puntos antípodas
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def band(value: float, table: list[tuple[float, float]], default: float) -> float:
    """
    Busca value en una tabla de bandas [(límite_superior, puntos), ...].

    Devuelve los puntos de la primera banda cuyo límite es >= value,
    o default si value supera todos los límites.
    """
    for upper, points in table:
        if value <= upper:
            return points
    return default
