# router/base.py
from abc import ABC, abstractmethod
from typing import Optional

from readgate.router.models import ModelResponse


class BaseModel(ABC):
    """
    Contrato que deben cumplir todos los adaptadores.
    El pipeline y el Router solo hablan con esta interfaz.
    Nunca importan claude.py ni gemini.py directamente.
    """

    @abstractmethod
    def complete(
        self,
        system_prompt: str,
        user_prompt:   str,
        model:         Optional[str] = None,
    ) -> ModelResponse:
        """
        Envía system + user al modelo y devuelve el texto crudo.
        No parsea: la validación de forma la hace quien llama.
        Puede lanzar los errores del SDK (timeout, rate limit, API).
        """
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """
        Consulta quota del día en storage antes de hacer cualquier
        llamada de red. Si superó el límite → False sin latencia.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Identificador del modelo. Debe coincidir con quota_usage.model."""
        ...
