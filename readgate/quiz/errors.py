# quiz/errors.py
from typing import Optional


class QuizGenerationError(Exception):
    """
    Base de los errores del pipeline de quiz.
    stage indica la última etapa alcanzada antes de fallar.
    """

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class QuizInputError(QuizGenerationError):
    """Entrada inválida: se detecta antes de llamar al modelo."""
    pass


class EmptyWindowError(QuizInputError):
    """La ventana de chunks para el gate está vacía."""
    pass


class SchemaValidationError(QuizGenerationError):
    """La respuesta del modelo no respeta el schema del paso indicado."""

    def __init__(self, step: str, detail: str, stage: Optional[str] = None):
        super().__init__(f"Respuesta inválida en {step}: {detail}", stage=stage)
        self.step   = step
        self.detail = detail


class ModelCallError(QuizGenerationError):
    """Falló la llamada al modelo. La causa original queda en __cause__."""
    pass
