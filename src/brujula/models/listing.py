"""
Listing canónico.

Modelo de una propiedad ya normalizada por los colaboradores externos
(portales, CRMs, agregadores). El motor de scoring solo lee estos datos.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PropertyType(str, Enum):
    """Tipos de inmueble conocidos."""

    APARTMENT = "apartment"
    HOUSE = "house"
    VILLA = "villa"
    LAND = "land"
    COMMERCIAL = "commercial"
    OFFICE = "office"
    WAREHOUSE = "warehouse"
    GARAGE = "garage"
    OTHER = "other"


class DataQuality(str, Enum):
    """Nivel de calidad/completitud de los datos del listing."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INVALID = "invalid"


class Feature(str, Enum):
    """
    Características booleanas conocidas.

    Enumeración cerrada: una key desconocida falla en validación en vez de
    ignorarse silenciosamente en el matching.
    """

    ELEVATOR = "elevator"
    BALCONY = "balcony"
    TERRACE = "terrace"
    GARDEN = "garden"
    POOL = "pool"
    AIR_CONDITIONING = "air_conditioning"
    HEATING = "heating"
    FIREPLACE = "fireplace"
    STORAGE = "storage"
    FURNISHED = "furnished"
    PETS_ALLOWED = "pets_allowed"
    PARKING = "parking"


def coerce_feature_set(value):
    """Acepta lista/set de features o un dict {feature: bool}."""
    if value is None:
        return set()
    if isinstance(value, dict):
        return {key for key, enabled in value.items() if enabled}
    return value


class Coordinates(BaseModel):
    """Punto geográfico (WGS84)."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class Address(BaseModel):
    """Dirección estructurada. municipality es el nivel fino, district el grueso."""

    street: Optional[str] = Field(None, description="Calle y número")
    parish: Optional[str] = Field(None, description="Freguesia / barrio")
    municipality: str = Field(default="", description="Concelho / municipio")
    district: str = Field(default="", description="Distrito / provincia")
    country: str = Field(default="Portugal")


class ListingLocation(BaseModel):
    address: Address = Field(default_factory=Address)
    coordinates: Optional[Coordinates] = None


class PriceRange(BaseModel):
    """Rango de precios observado entre las distintas fuentes."""

    min: float = Field(..., ge=0)
    max: float = Field(..., ge=0)
    divergence_percentage: float = Field(
        ..., ge=0, description="Diferencia porcentual entre fuentes"
    )


class ListingPrice(BaseModel):
    value: Optional[float] = Field(None, ge=0, description="Precio principal")
    currency: str = Field(default="EUR")
    price_per_m2: Optional[float] = Field(None, ge=0, description="Precio por m²")
    price_range: Optional[PriceRange] = Field(
        None, description="Rango entre portales cuando hay varias fuentes"
    )


class Characteristics(BaseModel):
    """Características físicas del inmueble."""

    total_area: Optional[float] = Field(None, ge=0, description="Superficie total m²")
    useful_area: Optional[float] = Field(None, ge=0, description="Superficie útil m²")
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    parking_spaces: Optional[int] = Field(None, ge=0)
    typology: Optional[str] = Field(None, description="Tipología: T0, T1, T2...")
    features: set[Feature] = Field(default_factory=set)

    @field_validator("features", mode="before")
    @classmethod
    def parse_features(cls, value):
        return coerce_feature_set(value)

    @property
    def area(self) -> Optional[float]:
        """Superficie de referencia: total si existe, si no la útil."""
        return self.total_area or self.useful_area


class ListingMetadata(BaseModel):
    """Metadatos temporales y de calidad agregados por el pipeline de ingesta."""

    first_seen: Optional[datetime] = Field(None, description="Primera detección")
    last_seen: Optional[datetime] = Field(None, description="Última vez visto activo")
    last_updated: Optional[datetime] = Field(None, description="Última modificación")
    portal_count: Optional[int] = Field(None, ge=0, description="Portales donde aparece")
    view_count: Optional[int] = Field(None, ge=0, description="Visualizaciones totales")
    data_quality: Optional[DataQuality] = None
    availability_probability: Optional[float] = Field(
        None, ge=0, le=1, description="Probabilidad de disponibilidad estimada por IA"
    )


class Listing(BaseModel):
    """
    Propiedad en formato canónico.

    Todos los campos salvo el id son opcionales o tienen default: el scoring
    degrada a crédito neutro cuando falta un dato.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., min_length=1, description="ID estable del listing")
    title: Optional[str] = None
    property_type: PropertyType = Field(default=PropertyType.OTHER)
    location: ListingLocation = Field(default_factory=ListingLocation)
    price: ListingPrice = Field(default_factory=ListingPrice)
    characteristics: Characteristics = Field(default_factory=Characteristics)
    metadata: ListingMetadata = Field(default_factory=ListingMetadata)
