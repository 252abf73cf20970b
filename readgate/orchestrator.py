# readgate/orchestrator.py
import hashlib
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from readgate.context.reader_state import ReaderState
from readgate.processor.chunker.chunker import Chunker
from readgate.processor.parsers.factory import ParserFactory
from readgate.quiz.gating import (
    DEFAULT_GATE_SIZE,
    GateWindow,
    grade_attempt,
    initial_unlocked_until,
    next_gate_window,
    question_count_for_window,
    unlock_after_pass,
)
from readgate.quiz.pipeline import QuizPipeline
from readgate.quiz.schemas import McqQuestion, McqResponse
from readgate.router.router import Router
from readgate.storage.models import ReadingProgress, StoredChunk
from readgate.storage.repository import Repository

logger = logging.getLogger(__name__)

DEFAULT_SESSION = "local"


# ------------------------------------------------------------------
# Resultados: lo que el CLI consume
# ------------------------------------------------------------------

@dataclass
class IngestResult:
    book_id:        int
    title:          str
    total_chunks:   int
    total_sections: int
    was_existing:   bool


@dataclass
class GateQuiz:
    quiz_id:    int
    book_id:    int
    gate_start: int
    gate_end:   int
    questions:  list[McqQuestion]
    was_stored: bool


@dataclass
class AttemptOutcome:
    attempt_id:     int
    correct_count:  int
    total:          int
    passed:         bool
    unlocked_until: int


@dataclass
class BookOverview:
    book_id:        int
    title:          str
    total_chunks:   int
    current_chunk:  Optional[int]
    unlocked_until: Optional[int]


# ------------------------------------------------------------------
# Errores propios del Orchestrator
# ------------------------------------------------------------------

class BookNotFoundError(Exception):
    """No hay libro con ese id en storage."""
    pass


class QuizNotFoundError(Exception):
    """No hay quiz con ese id en storage."""
    pass


class NoGateRemainingError(Exception):
    """El libro ya está desbloqueado hasta el final: no quedan gates."""
    pass


class ChunkLockedError(Exception):
    """Se pidió un chunk más allá de lo desbloqueado."""
    pass


# ------------------------------------------------------------------
# Orchestrator
# ------------------------------------------------------------------

class Orchestrator:
    """
    Coordina ingestión, gates y progreso de lectura.
    No tiene lógica de negocio propia: coordina módulos.

    Responsabilidades:
    - Identificar el libro por hash y chunkearlo una sola vez
    - Armar la ventana del gate, el estado del lector y el nº de preguntas
    - Persistir quiz + estado nuevo solo cuando el pipeline termina bien
    - Corregir intentos y desbloquear lectura
    """

    def __init__(
        self,
        repo:           Repository,
        parser_factory: ParserFactory,
        chunker:        Chunker,
        pipeline:       Optional[QuizPipeline] = None,
        router:         Optional[Router]       = None,
        model:          Optional[str]          = None,
        gate_size:      int                    = DEFAULT_GATE_SIZE,
    ):
        self._repo           = repo
        self._parser_factory = parser_factory
        self._chunker        = chunker
        self._pipeline       = pipeline
        self._router         = router
        self._model          = model
        self._gate_size      = gate_size

    # ------------------------------------------------------------------
    # Ingestión
    # ------------------------------------------------------------------

    def ingest(self, file_path: str) -> IngestResult:
        """
        Parsea, chunkea y guarda el libro. Idempotente:
        un archivo con el mismo hash no se vuelve a procesar.
        """
        path = Path(file_path).resolve()
        if not path.exists():
            raise FileNotFoundError(f"Archivo no encontrado: {path}")

        file_hash = _compute_hash(path)
        existing  = self._repo.get_book_by_hash(file_hash)
        if existing:
            self._log(f"'{existing.title}' ya estaba ingresado (book_id={existing.id})")
            return IngestResult(
                book_id        = existing.id,
                title          = existing.title,
                total_chunks   = self._repo.count_chunks(existing.id),
                total_sections = len(self._repo.get_sections(existing.id)),
                was_existing   = True,
            )

        book   = self._parser_factory.parse(str(path))
        result = self._chunker.chunk(book)

        book_id = self._repo.create_book(
            title       = book.title,
            file_hash   = file_hash,
            author      = book.author,
            language    = book.language,
            source_path = str(path),
        )
        self._repo.save_chunks(book_id, result.chunks)
        self._repo.save_sections(book_id, result.sections)

        self._log(
            f"Nuevo libro: '{book.title}' (book_id={book_id}) | "
            f"{len(result.chunks)} chunks, {len(result.sections)} secciones"
        )
        return IngestResult(
            book_id        = book_id,
            title          = book.title,
            total_chunks   = len(result.chunks),
            total_sections = len(result.sections),
            was_existing   = False,
        )

    # ------------------------------------------------------------------
    # Progreso
    # ------------------------------------------------------------------

    def get_progress(self, book_id: int, session_id: str = DEFAULT_SESSION) -> ReadingProgress:
        """Progreso del lector. La primera vez abre la primera ventana."""
        self._require_book(book_id)
        progress = self._repo.get_progress(session_id, book_id)
        if progress is not None:
            return progress
        chunk_count = self._repo.count_chunks(book_id)
        return self._repo.init_progress(
            session_id,
            book_id,
            unlocked_until=max(initial_unlocked_until(chunk_count, self._gate_size), 0),
        )

    def read_chunk(self, book_id: int, chunk_index: int, session_id: str = DEFAULT_SESSION) -> StoredChunk:
        progress = self.get_progress(book_id, session_id)
        if chunk_index > progress.unlocked_until_chunk_index:
            raise ChunkLockedError(
                f"El chunk {chunk_index} está bloqueado. "
                f"Desbloqueado hasta {progress.unlocked_until_chunk_index}: aprueba el quiz del gate."
            )

        chunks = self._repo.get_chunks(book_id, start=chunk_index, end=chunk_index)
        if not chunks:
            raise IndexError(f"El libro {book_id} no tiene chunk {chunk_index}")

        self._repo.set_current_chunk(session_id, book_id, chunk_index)
        return chunks[0]

    def next_gate(self, book_id: int, session_id: str = DEFAULT_SESSION) -> Optional[GateWindow]:
        progress = self.get_progress(book_id, session_id)
        return next_gate_window(
            progress.unlocked_until_chunk_index,
            self._repo.count_chunks(book_id),
            self._gate_size,
        )

    def books_overview(self, session_id: str = DEFAULT_SESSION) -> list[BookOverview]:
        overview = []
        for book in self._repo.list_books():
            progress = self._repo.get_progress(session_id, book.id)
            overview.append(BookOverview(
                book_id        = book.id,
                title          = book.title,
                total_chunks   = self._repo.count_chunks(book.id),
                current_chunk  = progress.current_chunk_index if progress else None,
                unlocked_until = progress.unlocked_until_chunk_index if progress else None,
            ))
        return overview

    # ------------------------------------------------------------------
    # Gates
    # ------------------------------------------------------------------

    def create_gate_quiz(
        self,
        book_id:    int,
        session_id: str                  = DEFAULT_SESSION,
        window:     Optional[GateWindow] = None,
        model:      Optional[str]        = None,
    ) -> GateQuiz:
        """
        Genera (o recupera) el quiz de un gate.
        Sin window se usa el siguiente gate según el progreso.
        """
        self._require_book(book_id)
        window = window or self.next_gate(book_id, session_id)
        if window is None:
            raise NoGateRemainingError(f"El libro {book_id} ya está desbloqueado completo")

        stored = self._repo.get_quiz(session_id, book_id, window.start, window.end)
        if stored:
            self._log(f"Quiz del gate {window.start}-{window.end} ya existe (quiz_id={stored.id})")
            return GateQuiz(
                quiz_id    = stored.id,
                book_id    = book_id,
                gate_start = window.start,
                gate_end   = window.end,
                questions  = McqResponse.model_validate(stored.questions).questions,
                was_stored = True,
            )

        if self._pipeline is None:
            raise RuntimeError("Orchestrator sin pipeline de quiz: configura al menos un modelo")

        chunks  = [c.to_chunk() for c in self._repo.get_chunks(book_id, window.start, window.end)]
        section = self._repo.get_section_for_chunk(book_id, window.start)
        state   = self._repo.get_latest_reader_state(session_id, book_id) or ReaderState.empty()
        if section is not None:
            state = replace(state, section_title=section.title)

        model_id       = self._resolve_model(model)
        question_count = question_count_for_window(chunks)
        self._log(
            f"Generando quiz del gate {window.start}-{window.end} "
            f"({question_count} preguntas, {model_id})"
        )

        result = self._pipeline.generate_gate_quiz(
            state           = state,
            window_chunks   = chunks,
            question_count  = question_count,
            model           = model_id,
            chapter_number  = (
                f"book-{book_id}:session-{session_id}:"
                f"section-{section.section_index if section else 'none'}"
            ),
            paragraph_index = window.start,
            question_number = window.end,
        )

        quiz_id, version = self._repo.save_gate_quiz(
            session_id = session_id,
            book_id    = book_id,
            gate_start = window.start,
            gate_end   = window.end,
            facts      = result.facts.model_dump(),
            questions  = result.mcq.model_dump(),
            model      = model_id,
            state      = result.next_state,
        )
        logger.debug("Estado del lector guardado (versión %d)", version)

        return GateQuiz(
            quiz_id    = quiz_id,
            book_id    = book_id,
            gate_start = window.start,
            gate_end   = window.end,
            questions  = result.mcq.questions,
            was_stored = False,
        )

    def submit_attempt(self, quiz_id: int, answers: dict[str, str]) -> AttemptOutcome:
        """Corrige un intento. Aprobar desbloquea los chunks que siguen al gate."""
        quiz = self._repo.get_quiz_by_id(quiz_id)
        if quiz is None:
            raise QuizNotFoundError(f"Quiz {quiz_id} no encontrado")

        questions = McqResponse.model_validate(quiz.questions).questions
        graded    = grade_attempt(questions, answers)
        attempt_id = self._repo.save_attempt(
            quiz_id       = quiz_id,
            answers       = answers,
            correct_count = graded.correct_count,
            passed        = graded.passed,
        )

        if graded.passed:
            unlocked = unlock_after_pass(
                quiz.gate_end,
                self._repo.count_chunks(quiz.book_id),
                self._gate_size,
            )
            progress = self._repo.unlock_until(quiz.session_id, quiz.book_id, unlocked)
            self._log(
                f"Quiz aprobado ({graded.correct_count}/{graded.total}). "
                f"Desbloqueado hasta el chunk {progress.unlocked_until_chunk_index}"
            )
        else:
            progress = self.get_progress(quiz.book_id, quiz.session_id)
            self._log(f"Quiz no aprobado ({graded.correct_count}/{graded.total})")

        return AttemptOutcome(
            attempt_id     = attempt_id,
            correct_count  = graded.correct_count,
            total          = graded.total,
            passed         = graded.passed,
            unlocked_until = progress.unlocked_until_chunk_index,
        )

    # ------------------------------------------------------------------
    # Helpers privados
    # ------------------------------------------------------------------

    def _require_book(self, book_id: int) -> None:
        if self._repo.get_book_by_id(book_id) is None:
            raise BookNotFoundError(f"Libro {book_id} no encontrado")

    def _resolve_model(self, model: Optional[str]) -> str:
        if model or self._model:
            return model or self._model  # type: ignore[return-value]
        if self._router is None:
            raise ValueError("Sin modelo: pasa model o configura un Router")
        return self._router.default_model()

    @staticmethod
    def _log(message: str) -> None:
        print(f"[readgate] {message}")


# ------------------------------------------------------------------
# Funciones de módulo (helpers privados)
# ------------------------------------------------------------------

def _compute_hash(path: Path) -> str:
    """SHA-256 del archivo: identifica el libro independientemente del nombre."""
    h = hashlib.sha256()
    with path.open("rb") as f:
        for block in iter(lambda: f.read(65536), b""):
            h.update(block)
    return h.hexdigest()
