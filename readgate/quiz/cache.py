# quiz/cache.py
import hashlib
import json
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from readgate.quiz.pipeline import GateQuizResult


def make_cache_key(
    model:           str,
    question_count:  int,
    chapter_number:  Optional[str] = None,
    paragraph_index: Optional[int] = None,
    question_number: Optional[int] = None,
) -> str:
    """
    sha256 del JSON de las coordenadas del gate.
    El contenido de la ventana no entra en la clave: mismas coordenadas
    con distinto texto comparten entrada.
    """
    payload = json.dumps(
        {
            "chapterNumber":  chapter_number or "unknown",
            "paragraphIndex": -1 if paragraph_index is None else paragraph_index,
            "questionNumber": -1 if question_number is None else question_number,
            "model":          model,
            "questionCount":  question_count,
        },
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class QuizCache:
    """
    Cache en memoria de resultados completos del pipeline.
    Sin límite ni expiración; vive lo que vive la instancia.
    No usa locks: dos peticiones simultáneas con la misma clave pueden
    fallar ambas y escribir, gana la última.
    """

    def __init__(self):
        self._entries: dict[str, "GateQuizResult"] = {}

    def get(self, key: str) -> Optional["GateQuizResult"]:
        return self._entries.get(key)

    def set(self, key: str, value: "GateQuizResult") -> None:
        self._entries[key] = value

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
