# quiz/gating.py
from dataclasses import dataclass
from typing import Optional, Sequence

from readgate.processor.models import Chunk
from readgate.quiz.schemas import McqQuestion

DEFAULT_GATE_SIZE = 5

# (mínimo de palabras en la ventana, preguntas), de mayor a menor
_QUESTION_THRESHOLDS = (
    (400, 4),
    (300, 3),
    (200, 2),
)


@dataclass(frozen=True)
class GateWindow:
    start: int
    end:   int

    @property
    def size(self) -> int:
        return self.end - self.start + 1


@dataclass(frozen=True)
class AttemptResult:
    correct_count: int
    total:         int
    passed:        bool


def question_count_for_words(total_words: int) -> int:
    for threshold, count in _QUESTION_THRESHOLDS:
        if total_words >= threshold:
            return count
    return 1


def question_count_for_window(chunks: Sequence[Chunk]) -> int:
    return question_count_for_words(sum(c.word_count for c in chunks))


def initial_unlocked_until(chunk_count: int, gate_size: int = DEFAULT_GATE_SIZE) -> int:
    """Al empezar un libro se puede leer la primera ventana completa."""
    return min(gate_size, chunk_count) - 1


def next_gate_window(
    unlocked_until: int,
    chunk_count:    int,
    gate_size:      int = DEFAULT_GATE_SIZE,
) -> Optional[GateWindow]:
    """
    Ventana que hay que aprobar para seguir leyendo: los últimos
    gate_size chunks desbloqueados. None si el libro ya está abierto
    hasta el final.
    """
    last = chunk_count - 1
    if chunk_count <= 0 or unlocked_until >= last:
        return None

    end = max(unlocked_until, 0)
    return GateWindow(start=max(0, end - gate_size + 1), end=end)


def unlock_after_pass(
    gate_end:    int,
    chunk_count: int,
    gate_size:   int = DEFAULT_GATE_SIZE,
) -> int:
    """Aprobar un gate abre los gate_size chunks que le siguen."""
    return min(gate_end + gate_size, chunk_count - 1)


def grade_attempt(questions: Sequence[McqQuestion], answers: dict[str, str]) -> AttemptResult:
    """
    Corrige sin llamar al modelo: respuesta == correct_choice.
    Solo se aprueba con todas correctas.
    """
    correct = 0
    for question in questions:
        answer = (answers.get(question.id) or "").strip().upper()
        if answer == question.correct_choice:
            correct += 1

    total = len(questions)
    return AttemptResult(
        correct_count = correct,
        total         = total,
        passed        = total > 0 and correct == total,
    )
