"""
Script para entrenar los pesos del score con outcomes observados.

Lee muestras de entrenamiento (lista JSON de TrainingSample), ejecuta
pasadas de descenso de gradiente e imprime los pesos resultantes junto
con la evaluación. Opcionalmente persiste el estado del modelo.

Uso:
    python -m brujula.scripts.run_training --samples samples.json
    brujula-train --samples samples.json --epochs 20 --state-out model.json
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

import structlog

from brujula.config import get_settings
from brujula.learning import WeightOptimizer
from brujula.log_config import configure_logging
from brujula.models import ModelState, TrainingSample

logger = structlog.get_logger()


def run_training(
    samples_path: str,
    epochs: int = 1,
    min_samples: Optional[int] = None,
    learning_rate: Optional[float] = None,
    state_in: Optional[str] = None,
    state_out: Optional[str] = None,
) -> dict:
    """
    Entrena el optimizador con las muestras del archivo.

    Args:
        samples_path: JSON con la lista de muestras
        epochs: Pasadas de entrenamiento sobre el buffer completo
        min_samples: Mínimo de muestras (por defecto el de settings)
        learning_rate: Learning rate (por defecto el de settings)
        state_in: Estado previo a cargar antes de agregar las muestras
        state_out: Archivo donde guardar el estado final

    Returns:
        Pesos, evaluación y sugerencia serializados

    Raises:
        InsufficientDataError: si no hay muestras suficientes para entrenar
    """
    with Path(samples_path).open(encoding="utf-8") as f:
        samples = [TrainingSample.model_validate(item) for item in json.load(f)]

    optimizer = WeightOptimizer(learning_rate=learning_rate, min_samples=min_samples)

    state = ModelState(weights=optimizer.weights)
    if state_in:
        state = ModelState.model_validate_json(Path(state_in).read_text(encoding="utf-8"))
    optimizer.load_state(state.model_copy(update={"samples": state.samples + samples}))

    logger.info(
        "Iniciando entrenamiento",
        samples=optimizer.sample_count,
        epochs=epochs,
        learning_rate=optimizer.learning_rate,
    )

    initial_weights = optimizer.weights
    for _ in range(epochs):
        optimizer.train(strict=True)

    evaluation = optimizer.evaluate()
    suggestion = optimizer.suggest_weights()

    if state_out:
        Path(state_out).write_text(
            optimizer.export_state().model_dump_json(indent=2), encoding="utf-8"
        )
        logger.info("Estado del modelo guardado", path=state_out)

    return {
        "initial_weights": initial_weights.model_dump(),
        "weights": optimizer.weights.model_dump(),
        "evaluation": evaluation.model_dump(mode="json"),
        "suggestion": suggestion.model_dump(mode="json"),
    }


def main():
    """Entry point del script."""
    parser = argparse.ArgumentParser(description="Entrena los pesos del score")
    parser.add_argument("--samples", required=True, help="JSON con la lista de muestras")
    parser.add_argument("--epochs", type=int, default=1, help="Pasadas de entrenamiento")
    parser.add_argument("--min-samples", type=int, help="Mínimo de muestras para entrenar")
    parser.add_argument("--learning-rate", type=float, help="Learning rate")
    parser.add_argument("--state-in", help="Estado previo del modelo (JSON)")
    parser.add_argument("--state-out", help="Dónde guardar el estado final (JSON)")

    args = parser.parse_args()
    configure_logging(get_settings().log_level)

    if args.epochs < 1:
        logger.error("epochs debe ser al menos 1", epochs=args.epochs)
        sys.exit(1)

    try:
        output = run_training(
            args.samples,
            epochs=args.epochs,
            min_samples=args.min_samples,
            learning_rate=args.learning_rate,
            state_in=args.state_in,
            state_out=args.state_out,
        )
        print(json.dumps(output, ensure_ascii=False, indent=2))

        logger.info("Entrenamiento completado", **output["weights"])
        sys.exit(0)

    except KeyboardInterrupt:
        logger.info("Entrenamiento interrumpido por usuario")
        sys.exit(130)
    except Exception as e:
        logger.error("Error fatal en entrenamiento", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
