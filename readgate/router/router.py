# router/router.py
import logging
from typing import Optional

from readgate.router.base import BaseModel
from readgate.router.models import ModelResponse

logger = logging.getLogger(__name__)


class ModelUnavailableError(Exception):
    """El modelo pedido no está configurado o agotó su quota del día."""
    pass


class Router:
    """
    Resuelve el adaptador de cada llamada a partir del id de modelo.
    El pipeline llama a Router.complete(), nunca a un adaptador directamente.

    No hay failover ni reintentos: el modelo pedido es el que responde,
    porque forma parte de la clave de cache del quiz.
    """

    def __init__(self, models: list[BaseModel]):
        # La lista ya viene ordenada por prioridad desde el config
        if not models:
            raise ValueError("El Router necesita al menos un modelo")
        self._models = models

    def complete(self, system_prompt: str, user_prompt: str, model: str) -> ModelResponse:
        adapter = self._resolve(model)
        logger.debug("Llamando a %s", adapter.name)
        response = adapter.complete(system_prompt, user_prompt, model)
        logger.info(
            "Respuesta de %s | tokens: %d+%d",
            response.model_used,
            response.tokens_input,
            response.tokens_output,
        )
        return response

    def default_model(self) -> str:
        """El modelo disponible de mayor prioridad."""
        for model in self._models:
            if model.is_available():
                return model.name
        raise ModelUnavailableError("Ningún modelo tiene quota disponible hoy")

    def available_models(self) -> list[str]:
        """Útil para logging y para la CLI."""
        return [m.name for m in self._models if m.is_available()]

    def _resolve(self, model: Optional[str]) -> BaseModel:
        if not model:
            model = self.default_model()

        for adapter in self._models:
            if adapter.name == model:
                if not adapter.is_available():
                    raise ModelUnavailableError(f"Modelo {model} sin quota disponible hoy")
                return adapter

        raise ModelUnavailableError(
            f"Modelo '{model}' no configurado. "
            f"Disponibles: {', '.join(m.name for m in self._models)}"
        )
