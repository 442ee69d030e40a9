"""
Generación de razones legibles.

Funciones puras de (desglose, datos de entrada) -> razones. No participan
del cálculo numérico: el scorer calcula el desglose y después pide las
razones, así los textos se pueden traducir o testear por separado.
"""

import math
from datetime import datetime
from typing import Optional

from brujula.models import (
    BehaviorBreakdown,
    CompatibilityBreakdown,
    Feature,
    Listing,
    PropertyScore,
    ScoreComponent,
    ScoreReason,
    TemporalBreakdown,
    UserBehavior,
    UserPreferences,
    WeightVector,
)
from brujula.models.scoring import MAX_REASONS
from brujula.scoring.numeric import days_since

FEATURE_LABELS: dict[Feature, str] = {
    Feature.ELEVATOR: "ascensor",
    Feature.BALCONY: "balcón",
    Feature.TERRACE: "terraza",
    Feature.GARDEN: "jardín",
    Feature.POOL: "piscina",
    Feature.AIR_CONDITIONING: "aire acondicionado",
    Feature.HEATING: "calefacción",
    Feature.FIREPLACE: "chimenea",
    Feature.STORAGE: "baulera",
    Feature.FURNISHED: "amoblado",
    Feature.PETS_ALLOWED: "acepta mascotas",
    Feature.PARKING: "cochera",
}

NOT_VIEWED_REASON = "Propiedad todavía no vista"


def _top(reasons: list[ScoreReason], limit: int = MAX_REASONS) -> list[ScoreReason]:
    # sorted() es estable: a igual puntaje se respeta el orden de generación
    return sorted(reasons, key=lambda r: r.points, reverse=True)[:limit]


def _format_price(value: float) -> str:
    return f"€{value:,.0f}".replace(",", ".")


def compatibility_reasons(
    listing: Listing,
    preferences: UserPreferences,
    breakdown: CompatibilityBreakdown,
) -> list[ScoreReason]:
    reasons = []
    component = ScoreComponent.COMPATIBILITY
    address = listing.location.address

    def add(text: str, points: float):
        reasons.append(ScoreReason(component=component, text=text, points=points))

    # Ubicación
    if breakdown.location > 20:
        add(f"Ubicación excelente: {address.municipality}, {address.district}", breakdown.location)
    elif breakdown.location > 15:
        add(f"Buena ubicación en {address.municipality}", breakdown.location)
    elif breakdown.location < 10:
        add("Ubicación fuera de las zonas preferidas", breakdown.location)

    # Precio
    price = listing.price.value
    if breakdown.price > 20 and price:
        add(f"Precio muy alineado con tu presupuesto ({_format_price(price)})", breakdown.price)
    elif breakdown.price > 15:
        add("Precio dentro del rango aceptable", breakdown.price)
    elif breakdown.price < 10:
        max_price = preferences.price.max_price if preferences.price else None
        if max_price is not None and price is not None and price > max_price:
            add("Precio por encima del presupuesto", breakdown.price)
        else:
            add("Precio no alineado con tus preferencias", breakdown.price)

    # Tipo
    if breakdown.property_type >= 15:
        add(
            f"El tipo de inmueble coincide con lo buscado ({listing.property_type.value})",
            breakdown.property_type,
        )
    elif breakdown.property_type == 0:
        add("Tipo de inmueble distinto al preferido", breakdown.property_type)

    # Características
    chars = listing.characteristics
    if breakdown.characteristics > 24:
        add(
            f"Características ideales: {chars.bedrooms or 0} dormitorios, "
            f"{chars.area or 0:.0f} m²",
            breakdown.characteristics,
        )
    elif breakdown.characteristics > 18:
        add("Buenas características generales", breakdown.characteristics)
    elif breakdown.characteristics < 12:
        add(
            "Algunas características no coinciden con tus preferencias",
            breakdown.characteristics,
        )

    wanted = preferences.characteristics
    if wanted and wanted.preferred_features:
        matched = sorted(wanted.preferred_features & chars.features, key=lambda f: f.value)
        if matched:
            labels = ", ".join(FEATURE_LABELS[f] for f in matched)
            add(f"Incluye lo que te gusta: {labels}", breakdown.characteristics)

    return _top(reasons)


def behavior_reasons(
    behavior: Optional[UserBehavior],
    breakdown: BehaviorBreakdown,
    now: datetime,
) -> list[ScoreReason]:
    component = ScoreComponent.BEHAVIOR
    if behavior is None:
        points = max(breakdown.view_frequency, breakdown.view_duration, breakdown.interactions)
        return [ScoreReason(component=component, text=NOT_VIEWED_REASON, points=points)]

    reasons = []

    def add(text: str, points: float):
        reasons.append(ScoreReason(component=component, text=text, points=points))

    # Frecuencia
    views = behavior.view_count
    if views > 4:
        add(f"Lo viste {views} veces: alto interés", breakdown.view_frequency)
    elif views > 2:
        add(f"Lo viste varias veces ({views})", breakdown.view_frequency)
    elif views == 1:
        add("Primera visualización", breakdown.view_frequency)

    # Duración
    avg_seconds = behavior.avg_view_seconds
    if behavior.total_view_seconds >= 300:
        minutes = round(behavior.total_view_seconds / 60)
        add(f"Tiempo total de análisis: {minutes}+ minutos", breakdown.view_duration)
    elif avg_seconds >= 120:
        add(f"Análisis detallado ({avg_seconds:.0f}s de promedio)", breakdown.view_duration)
    elif views > 0 and avg_seconds < 30:
        add(f"Vista rápida ({avg_seconds:.0f}s)", breakdown.view_duration)

    # Interacciones
    actions = []
    if behavior.actions.scheduled:
        actions.append("agendaste visita")
    if behavior.actions.contacted:
        actions.append("contactaste")
    if behavior.actions.inquired:
        actions.append("hiciste preguntas")
    if behavior.actions.saved:
        actions.append("guardaste")
    if behavior.actions.shared:
        actions.append("compartiste")
    if actions:
        add(f"Acciones: {', '.join(actions)}", breakdown.interactions)

    if behavior.images_viewed > 5:
        add(f"Viste {behavior.images_viewed} imágenes", breakdown.interactions)

    # Recencia
    elapsed = days_since(behavior.last_viewed_at, now)
    if elapsed is not None:
        days = math.floor(elapsed)
        if days == 0:
            add("Visto hoy", breakdown.view_frequency)
        elif days == 1:
            add("Visto ayer", breakdown.view_frequency)
        elif days <= 7:
            add(f"Visto hace {days} días", breakdown.view_frequency)
        elif days > 30:
            add("Visto hace más de un mes", breakdown.view_frequency)

    return _top(reasons)


def temporal_reasons(
    listing: Listing,
    breakdown: TemporalBreakdown,
    now: datetime,
) -> list[ScoreReason]:
    component = ScoreComponent.TEMPORAL
    meta = listing.metadata
    reasons = []

    def add(text: str, points: float):
        reasons.append(ScoreReason(component=component, text=text, points=points))

    # Urgencia
    on_market = days_since(meta.first_seen, now)
    if on_market is not None:
        days = math.floor(on_market)
        if days == 0:
            add("¡Nuevo en el mercado hoy!", breakdown.urgency)
        elif days == 1:
            add("Publicado ayer", breakdown.urgency)
        elif days <= 7:
            add(f"Publicado hace {days} días", breakdown.urgency)
        elif days <= 30:
            add(f"En el mercado hace {days} días", breakdown.urgency)
        else:
            add(f"En el mercado hace {days // 7} semanas", breakdown.urgency)

    # Disponibilidad
    if meta.availability_probability is not None and meta.availability_probability > 0.7:
        add("Alta probabilidad de disponibilidad", breakdown.availability)
    else:
        unseen = days_since(meta.last_seen, now)
        if unseen is not None and unseen <= 1:
            add("Confirmado disponible hoy", breakdown.availability)
        elif unseen is not None and unseen <= 7:
            add(f"Última confirmación hace {math.floor(unseen)} días", breakdown.availability)

    portals = meta.portal_count
    if portals is not None and portals >= 3:
        add(f"Visible en {portals} portales", breakdown.availability)
    elif portals == 1:
        add("Publicado en un solo portal", breakdown.availability)

    # Tendencia de mercado
    price_range = listing.price.price_range
    if price_range is not None and price_range.divergence_percentage > 15:
        add(
            f"Alta variación de precio entre portales ({price_range.divergence_percentage:.1f}%)",
            breakdown.market_trend,
        )

    ppa = listing.price.price_per_m2
    if ppa and ppa < 2000:
        add(f"Precio competitivo: €{ppa:.0f}/m²", breakdown.market_trend)

    if meta.view_count is not None and meta.view_count >= 50:
        add(f"Alta demanda: {meta.view_count} visualizaciones", breakdown.market_trend)

    return _top(reasons)


def merge_reasons(
    groups: list[list[ScoreReason]],
    weights: WeightVector,
    limit: int = MAX_REASONS,
) -> list[ScoreReason]:
    """
    Combina las razones de los tres scorers ponderando por el peso de su componente.

    Razones de un componente con peso 0 se descartan.
    """
    weighted = []
    for group in groups:
        for reason in group:
            weight = weights.weight_for(reason.component)
            if weight <= 0:
                continue
            weighted.append(reason.model_copy(update={"impact": weight * reason.points}))

    weighted.sort(key=lambda r: r.impact, reverse=True)
    return weighted[:limit]


def explain_score(score: PropertyScore) -> str:
    """Resumen multilínea del score, para logs o presentación."""
    weights = score.weights
    lines = [
        f"Score Final: {score.final_score:.1f}/100 (confianza {score.confidence:.0%})",
        "",
        f"Compatibilidad: {score.compatibility.total:.1f}/100 (peso {weights.compatibility:.0%})",
        f"Comportamiento: {score.behavior.total:.1f}/100 (peso {weights.behavior:.0%}, "
        f"recencia x{score.recency_multiplier:.2f})",
        f"Temporal: {score.temporal.total:.1f}/100 (peso {weights.temporal:.0%})",
    ]
    if score.reasons:
        lines.append("")
        lines.append("Principales Razones:")
        lines.extend(f"  {i}. {reason.text}" for i, reason in enumerate(score.reasons, 1))
    return "\n".join(lines)
