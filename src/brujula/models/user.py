"""
Modelo de Preferencias y Comportamiento del usuario

Define lo que el usuario declara buscar (preferencias) y lo que
efectivamente hizo con cada listing (comportamiento observado).
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from brujula.models.listing import Coordinates, Feature, coerce_feature_set


class LocationPreferences(BaseModel):
    """Zonas preferidas y, opcionalmente, un punto de referencia con radio."""

    preferred_municipalities: list[str] = Field(
        default_factory=list, description="Concelhos/municipios aceptables"
    )
    preferred_districts: list[str] = Field(
        default_factory=list, description="Distritos aceptables"
    )
    reference_point: Optional[Coordinates] = Field(
        None, description="Punto de referencia (trabajo, escuela...)"
    )
    max_distance_km: Optional[float] = Field(
        None, gt=0, description="Distancia máxima al punto de referencia"
    )


class PricePreferences(BaseModel):
    """Rango de precio aceptable y precio ideal opcional."""

    min_price: Optional[float] = Field(None, ge=0)
    max_price: Optional[float] = Field(None, ge=0)
    ideal_price: Optional[float] = Field(None, ge=0)

    @model_validator(mode="after")
    def check_range(self):
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise ValueError("min_price no puede ser mayor que max_price")
        return self


class CharacteristicPreferences(BaseModel):
    """Umbrales de características físicas y features deseadas."""

    min_bedrooms: Optional[int] = Field(None, ge=0)
    max_bedrooms: Optional[int] = Field(None, ge=0)
    min_bathrooms: Optional[int] = Field(None, ge=0)
    min_area: Optional[float] = Field(None, ge=0)
    max_area: Optional[float] = Field(None, ge=0)
    required_features: set[Feature] = Field(
        default_factory=set, description="Must-have"
    )
    preferred_features: set[Feature] = Field(
        default_factory=set, description="Deseables, suman pero no son excluyentes"
    )

    @field_validator("required_features", "preferred_features", mode="before")
    @classmethod
    def parse_features(cls, value):
        return coerce_feature_set(value)


class UserPreferences(BaseModel):
    """
    Preferencias declaradas por el usuario.

    Cada bloque es opcional: si falta, el scorer correspondiente
    asigna crédito neutro (la mitad del máximo).
    """

    user_id: Optional[str] = Field(None, description="ID del usuario")
    location: Optional[LocationPreferences] = None
    price: Optional[PricePreferences] = None
    property_types: list[str] = Field(
        default_factory=list,
        description="Tipos (apartment, house...) o tipologías (T2, T3...) aceptables",
    )
    characteristics: Optional[CharacteristicPreferences] = None


class InteractionFlags(BaseModel):
    """Acciones realizadas por el usuario sobre un listing."""

    saved: bool = False
    shared: bool = False
    contacted: bool = False
    scheduled: bool = Field(default=False, description="Agendó visita")
    inquired: bool = Field(default=False, description="Hizo preguntas")


class UserBehavior(BaseModel):
    """Historial de interacción de un usuario con un listing."""

    user_id: Optional[str] = None
    listing_id: str = Field(..., min_length=1)

    view_count: int = Field(default=0, ge=0)
    total_view_seconds: float = Field(default=0.0, ge=0)
    average_view_seconds: Optional[float] = Field(
        None, ge=0, description="Si falta se deriva de total / view_count"
    )
    first_viewed_at: Optional[datetime] = None
    last_viewed_at: Optional[datetime] = None

    actions: InteractionFlags = Field(default_factory=InteractionFlags)

    # Engagement auxiliar
    images_viewed: int = Field(default=0, ge=0)
    details_expanded: bool = False
    map_viewed: bool = False

    @property
    def avg_view_seconds(self) -> float:
        if self.average_view_seconds is not None:
            return self.average_view_seconds
        if self.view_count <= 0:
            return 0.0
        return self.total_view_seconds / self.view_count

    @property
    def action_count(self) -> int:
        return sum(1 for value in self.actions.model_dump().values() if value)
