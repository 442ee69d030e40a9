"""
Excepciones del motor de scoring.

- InputValidationError: input estructuralmente inválido (uso incorrecto del caller).
- ConfigurationError: pesos imposibles de normalizar.
- InsufficientDataError: entrenamiento con menos muestras que el mínimo.
"""


class BrujulaError(Exception):
    """Clase base de errores del paquete."""


class InputValidationError(BrujulaError, ValueError):
    """Input requerido ausente o con tipo incorrecto. No se reintenta."""


class ConfigurationError(BrujulaError, ValueError):
    """Configuración de pesos inválida (todos cero, NaN, infinito)."""


class InsufficientDataError(BrujulaError):
    """No hay suficientes muestras para entrenar el optimizador."""

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"Se necesitan {required} muestras para entrenar, hay {available}"
        )
