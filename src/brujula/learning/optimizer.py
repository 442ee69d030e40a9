"""
Optimizador de pesos por descenso de gradiente.

Aprende el vector de pesos que mejor predice el outcome observado
(converted=100, contacted=70, viewed=30, ignored=0) a partir de los
sub-scores que tenía cada listing al mostrarse.

El buffer de muestras y los pesos son el único estado mutable del core:
todo acceso pasa por un RLock, así que un entrenamiento nunca lee un
buffer a medio modificar y los lectores siempre ven pesos consistentes.
"""

import math
import statistics
import threading
from datetime import datetime, timezone
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from brujula.config import get_settings
from brujula.errors import InsufficientDataError
from brujula.models import ModelState, TrainingSample, WeightVector
from brujula.models.scoring import ScoreComponent
from brujula.models.training import SUCCESSFUL_OUTCOMES
from brujula.scoring.numeric import clamp

logger = structlog.get_logger()

# Piso de cada peso antes de renormalizar
WEIGHT_FLOOR = 0.1

# Una predicción es "acierto" si el error absoluto es menor a esto
HIT_TOLERANCE = 20.0

COMPONENTS = (
    ScoreComponent.COMPATIBILITY,
    ScoreComponent.BEHAVIOR,
    ScoreComponent.TEMPORAL,
)

RATIONALES = {
    ScoreComponent.COMPATIBILITY: "la compatibilidad con las preferencias es el factor más predictivo",
    ScoreComponent.BEHAVIOR: "las señales de comportamiento del usuario son el factor más predictivo",
    ScoreComponent.TEMPORAL: "la urgencia y disponibilidad son el factor más predictivo",
}


class EvaluationReport(BaseModel):
    """Desempeño de un vector de pesos sobre las muestras."""

    accuracy: float = Field(..., ge=0, le=1, description="1 - error absoluto medio / 100")
    avg_error: float = Field(..., ge=0)
    hit_rate: float = Field(..., ge=0, le=1, description="Fracción con error < 20 puntos")
    sample_count: int
    weights: WeightVector


class ABTestResult(BaseModel):
    """Comparación de dos vectores de pesos sobre las mismas muestras. winner: A, B o tie."""

    winner: str
    winner_weights: WeightVector
    report_a: EvaluationReport
    report_b: EvaluationReport

    @property
    def accuracy_difference(self) -> float:
        return self.report_a.accuracy - self.report_b.accuracy


class WeightSuggestion(BaseModel):
    current: WeightVector
    suggested: WeightVector
    correlations: dict[str, float] = Field(default_factory=dict)
    rationale: str


def is_valid_sample(sample: TrainingSample) -> bool:
    """Una muestra es usable si sus tres sub-scores son finitos y están en [0, 100]."""
    return all(math.isfinite(value) and 0 <= value <= 100 for value in sample.features)


def evaluate_weights(
    weights: WeightVector,
    samples: list[TrainingSample],
) -> EvaluationReport:
    """Evalúa pesos sobre muestras sin modificar ningún estado."""
    weights = weights.normalized()
    usable = [s for s in samples if is_valid_sample(s)]
    if not usable:
        return EvaluationReport(
            accuracy=0.0, avg_error=0.0, hit_rate=0.0, sample_count=0, weights=weights
        )

    errors = [abs(weights.blend(*sample.features) - sample.target) for sample in usable]
    avg_error = sum(errors) / len(errors)
    hits = sum(1 for error in errors if error < HIT_TOLERANCE)

    return EvaluationReport(
        accuracy=clamp(1 - avg_error / 100, 0.0, 1.0),
        avg_error=avg_error,
        hit_rate=hits / len(errors),
        sample_count=len(usable),
        weights=weights,
    )


class WeightOptimizer:
    """
    Optimizador online de pesos.

    Uso:
        optimizer = WeightOptimizer()
        optimizer.add_sample(sample)   # entrena solo al alcanzar el mínimo
        weights = optimizer.weights    # snapshot inmutable
    """

    def __init__(
        self,
        initial_weights: Optional[WeightVector] = None,
        learning_rate: Optional[float] = None,
        min_samples: Optional[int] = None,
        train_every: Optional[int] = None,
        tie_margin: Optional[float] = None,
    ):
        settings = get_settings()
        self.learning_rate = learning_rate or settings.optimizer_learning_rate
        self.min_samples = min_samples or settings.optimizer_min_samples
        self.train_every = train_every or settings.optimizer_train_every
        self.tie_margin = (
            tie_margin if tie_margin is not None else settings.optimizer_ab_tie_margin
        )

        self._initial_weights = (initial_weights or WeightVector()).normalized()
        self._lock = threading.RLock()
        self._state = ModelState(weights=self._initial_weights)

    @property
    def weights(self) -> WeightVector:
        with self._lock:
            return self._state.weights

    @property
    def sample_count(self) -> int:
        with self._lock:
            return len(self._state.samples)

    @property
    def state(self) -> ModelState:
        return self.export_state()

    def add_sample(self, sample: TrainingSample) -> bool:
        """
        Agrega una muestra al buffer.

        Al alcanzar el mínimo de muestras, y después cada train_every
        muestras, dispara un entrenamiento.

        Returns:
            True si la muestra disparó un entrenamiento
        """
        with self._lock:
            self._state.samples.append(sample)
            count = len(self._state.samples)
            if count >= self.min_samples and (count - self.min_samples) % self.train_every == 0:
                self.train()
                return True
            return False

    def train(self, strict: bool = False) -> Optional[EvaluationReport]:
        """
        Un paso de descenso de gradiente sobre todo el buffer.

        error = pesos · sub-scores - target
        gradiente_i = promedio(error * sub-score_i)
        peso_i -= learning_rate * gradiente_i, con piso 0.1 y renormalizado

        Las muestras corruptas se descartan sin abortar el entrenamiento.

        Args:
            strict: Si es True, entrenar sin suficientes muestras lanza error

        Returns:
            EvaluationReport del paso, o None si no se entrenó

        Raises:
            InsufficientDataError: solo con strict=True y menos muestras que el mínimo
        """
        with self._lock:
            samples = list(self._state.samples)
            if len(samples) < self.min_samples:
                if strict:
                    raise InsufficientDataError(self.min_samples, len(samples))
                logger.warning(
                    "Muestras insuficientes para entrenar",
                    required=self.min_samples,
                    available=len(samples),
                )
                return None

            usable = []
            for sample in samples:
                if is_valid_sample(sample):
                    usable.append(sample)
                else:
                    logger.warning(
                        "Muestra descartada",
                        listing_id=sample.listing_id,
                        features=sample.features,
                    )
            if not usable:
                logger.warning("Ninguna muestra válida para entrenar", total=len(samples))
                return None

            weights = self._state.weights
            gradients = [0.0, 0.0, 0.0]
            total_error = 0.0
            for sample in usable:
                error = weights.blend(*sample.features) - sample.target
                total_error += abs(error)
                for i, value in enumerate(sample.features):
                    gradients[i] += error * value

            n = len(usable)
            gradients = [g / n for g in gradients]
            if not all(math.isfinite(g) for g in gradients):
                logger.warning("Gradiente no finito, se omite la actualización", gradients=gradients)
                return None

            current = (weights.compatibility, weights.behavior, weights.temporal)
            updated = [
                max(WEIGHT_FLOOR, w - self.learning_rate * g)
                for w, g in zip(current, gradients)
            ]
            new_weights = WeightVector(
                compatibility=updated[0],
                behavior=updated[1],
                temporal=updated[2],
            ).normalized()

            accuracy = clamp(1 - total_error / (n * 100), 0.0, 1.0)
            self._state = self._state.model_copy(
                update={
                    "weights": new_weights,
                    "last_trained_at": datetime.now(timezone.utc),
                    "accuracy": accuracy,
                }
            )

            logger.info(
                "Entrenamiento completado",
                samples=n,
                skipped=len(samples) - n,
                compatibility=round(new_weights.compatibility, 4),
                behavior=round(new_weights.behavior, 4),
                temporal=round(new_weights.temporal, 4),
                accuracy=round(accuracy, 4),
            )

            return EvaluationReport(
                accuracy=accuracy,
                avg_error=total_error / n,
                hit_rate=evaluate_weights(new_weights, usable).hit_rate,
                sample_count=n,
                weights=new_weights,
            )

    def evaluate(self, samples: Optional[list[TrainingSample]] = None) -> EvaluationReport:
        """Desempeño de los pesos actuales; no modifica el estado."""
        with self._lock:
            weights = self._state.weights
            data = list(self._state.samples) if samples is None else list(samples)
        return evaluate_weights(weights, data)

    def ab_test(
        self,
        weights_a: WeightVector,
        weights_b: WeightVector,
        samples: Optional[list[TrainingSample]] = None,
    ) -> ABTestResult:
        """
        Compara dos vectores de pesos sobre el mismo conjunto de muestras.

        Si la diferencia de accuracy no supera el margen de empate el
        resultado es "tie" y se conservan los pesos A.
        """
        if samples is None:
            with self._lock:
                samples = list(self._state.samples)

        report_a = evaluate_weights(weights_a, samples)
        report_b = evaluate_weights(weights_b, samples)

        difference = report_a.accuracy - report_b.accuracy
        if abs(difference) <= self.tie_margin:
            winner = "tie"
        elif difference > 0:
            winner = "A"
        else:
            winner = "B"

        logger.info(
            "A/B test de pesos",
            winner=winner,
            accuracy_a=round(report_a.accuracy, 4),
            accuracy_b=round(report_b.accuracy, 4),
            samples=report_a.sample_count,
        )

        return ABTestResult(
            winner=winner,
            winner_weights=report_b.weights if winner == "B" else report_a.weights,
            report_a=report_a,
            report_b=report_b,
        )

    def suggest_weights(self) -> WeightSuggestion:
        """
        Sugiere pesos según la correlación de cada sub-score con el outcome.

        Correlaciones negativas cuentan como 0. No modifica los pesos actuales.
        """
        with self._lock:
            current = self._state.weights
            samples = [s for s in self._state.samples if is_valid_sample(s)]

        if len(samples) < self.min_samples:
            return WeightSuggestion(
                current=current,
                suggested=current,
                rationale=(
                    f"Datos insuficientes: se necesitan {self.min_samples} muestras, "
                    f"hay {len(samples)}"
                ),
            )

        targets = [sample.target for sample in samples]
        correlations = {}
        for i, component in enumerate(COMPONENTS):
            values = [sample.features[i] for sample in samples]
            try:
                correlations[component.value] = statistics.correlation(values, targets)
            except statistics.StatisticsError:
                # Serie constante: no aporta información
                correlations[component.value] = 0.0

        positive = {key: max(0.0, value) for key, value in correlations.items()}
        if sum(positive.values()) <= 0:
            return WeightSuggestion(
                current=current,
                suggested=current,
                correlations=correlations,
                rationale="Ningún sub-score correlaciona con los outcomes; se mantienen los pesos",
            )

        suggested = WeightVector(**positive).normalized()
        strongest = max(COMPONENTS, key=lambda c: suggested.weight_for(c))
        return WeightSuggestion(
            current=current,
            suggested=suggested,
            correlations=correlations,
            rationale=f"Según los outcomes observados, {RATIONALES[strongest]}",
        )

    def feature_importance(self) -> dict[str, float]:
        """Importancia de cada sub-score (proporcional a su peso)."""
        weights = self.weights
        return {component.value: weights.weight_for(component) for component in COMPONENTS}

    def success_rate(self) -> float:
        """Fracción de muestras con outcome converted o contacted."""
        with self._lock:
            samples = list(self._state.samples)
        if not samples:
            return 0.0
        successful = sum(
            1 for s in samples if s.outcome in SUCCESSFUL_OUTCOMES
        )
        return successful / len(samples)

    def export_state(self) -> ModelState:
        """Copia profunda del estado, apta para persistir con model_dump_json()."""
        with self._lock:
            return self._state.model_copy(deep=True)

    def load_state(self, state: ModelState) -> None:
        """Reemplaza el estado completo (pesos, muestras, métricas)."""
        weights = state.weights.normalized()
        with self._lock:
            self._state = state.model_copy(update={"weights": weights}, deep=True)
        logger.info(
            "Estado del optimizador cargado",
            samples=len(state.samples),
            accuracy=state.accuracy,
        )

    def reset(self, initial_weights: Optional[WeightVector] = None) -> None:
        """Vuelve a los pesos iniciales y vacía el buffer."""
        weights = (initial_weights or self._initial_weights).normalized()
        with self._lock:
            self._state = ModelState(weights=weights)
