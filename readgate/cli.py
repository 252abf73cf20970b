# readgate/cli.py
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from readgate.factory import build_orchestrator
from readgate.orchestrator import (
    DEFAULT_SESSION,
    BookNotFoundError,
    ChunkLockedError,
    NoGateRemainingError,
    QuizNotFoundError,
)
from readgate.processor.parsers.factory import UnsupportedFormatError
from readgate.quiz.errors import ModelCallError, QuizGenerationError, QuizInputError
from readgate.router.router import ModelUnavailableError


# Carga .env una sola vez, antes que cualquier otra cosa
load_dotenv()

# Extensiones soportadas
_SUPPORTED_FORMATS = {".epub"}

_session_option = click.option(
    "--session", "-s",
    default      = DEFAULT_SESSION,
    show_default = True,
    help         = "Identificador anónimo de sesión del lector",
)


# ------------------------------------------------------------------
# Grupo raíz
# ------------------------------------------------------------------

@click.group()
@click.version_option(package_name="readgate")
@click.option("--verbose", "-v", is_flag=True, help="Logs de depuración en stderr")
def main(verbose: bool):
    """
    readgate: lectura con gates de comprensión.

    Parte un EPUB en chunks de tamaño acotado y bloquea el avance
    detrás de quizzes generados por IA a partir del propio texto.
    """
    if verbose:
        logging.basicConfig(
            level  = logging.DEBUG,
            format = "%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


# ------------------------------------------------------------------
# readgate ingest
# ------------------------------------------------------------------

@main.command()
@click.option(
    "--book", "-b",
    required = True,
    type     = click.Path(exists=False),   # validamos nosotros para mejor mensaje
    help     = "Ruta al archivo del libro (.epub)",
)
@click.option(
    "--chunk-size",
    default      = "standard",
    show_default = True,
    type         = click.Choice(["standard", "short", "long"], case_sensitive=False),
    help         = "Banda de palabras por chunk: standard (60-120), short (40-80), long (120-240)",
)
@click.option(
    "--strategy",
    default      = "paragraph",
    show_default = True,
    type         = click.Choice(["paragraph", "html"], case_sensitive=False),
    help         = "paragraph respeta párrafos y secciones; html empaqueta el texto plano de cada sección",
)
def ingest(book: str, chunk_size: str, strategy: str):
    """Parsea y chunkea un libro. Reingresar el mismo archivo no hace nada."""
    _validate_file(book)
    orchestrator = build_orchestrator(
        chunk_size = chunk_size.lower(),
        strategy   = strategy.lower(),
        offline    = True,
    )

    try:
        result = orchestrator.ingest(book)
    except UnsupportedFormatError as e:
        _abort(str(e))
    except FileNotFoundError:
        _abort(f"Archivo no encontrado: {book}")
    except Exception as e:
        _error(f"Error inesperado: {type(e).__name__}: {e}")
        sys.exit(1)

    click.echo("")
    click.echo("─" * 50)
    click.echo(f"[readgate] {'✓ Ya ingresado' if result.was_existing else '✓ Libro ingresado'}")
    click.echo(f"[readgate]   book_id   : {result.book_id}")
    click.echo(f"[readgate]   Título    : {result.title}")
    click.echo(f"[readgate]   Chunks    : {result.total_chunks}")
    click.echo(f"[readgate]   Secciones : {result.total_sections}")
    click.echo("─" * 50)


# ------------------------------------------------------------------
# readgate quiz
# ------------------------------------------------------------------

@main.command()
@click.option("--book-id", "-b", required=True, type=int, help="Libro ingresado")
@click.option("--model", "-m", default=None, help="Id del modelo (por defecto el de mayor prioridad)")
@_session_option
def quiz(book_id: int, model: str | None, session: str):
    """Genera (o muestra) el quiz del siguiente gate."""
    try:
        orchestrator = build_orchestrator(model=model)
    except (FileNotFoundError, RuntimeError, ValueError) as e:
        _abort(str(e))

    try:
        gate = orchestrator.create_gate_quiz(book_id, session_id=session)
    except BookNotFoundError as e:
        _abort(str(e))
    except NoGateRemainingError:
        click.echo("[readgate] ✓ No quedan gates: el libro está desbloqueado completo.")
        return
    except ModelUnavailableError as e:
        _error(f"Modelo no disponible. {e}")
        sys.exit(2)
    except ModelCallError as e:
        if isinstance(e.__cause__, ModelUnavailableError):
            _error(f"Modelo no disponible. {e.__cause__}")
            sys.exit(2)
        _error(f"Falló la llamada al modelo (etapa {e.stage}): {e}")
        sys.exit(1)
    except QuizInputError as e:
        _abort(str(e))
    except QuizGenerationError as e:
        _error(f"No se pudo generar el quiz (etapa {e.stage}): {e}")
        sys.exit(1)

    click.echo("")
    click.echo(f"[readgate] Quiz {gate.quiz_id} | chunks {gate.gate_start}-{gate.gate_end}")
    for question in gate.questions:
        click.echo("")
        click.echo(f"  {question.id}. {question.question}")
        click.echo(f"     A) {question.choices.A}")
        click.echo(f"     B) {question.choices.B}")
        click.echo(f"     C) {question.choices.C}")
    click.echo("")
    example = " ".join(f"{q.id}=A" for q in gate.questions)
    click.echo(f"[readgate] Responde con: readgate answer --quiz-id {gate.quiz_id} {example}")


# ------------------------------------------------------------------
# readgate answer
# ------------------------------------------------------------------

@main.command()
@click.option("--quiz-id", "-q", required=True, type=int, help="Quiz a responder")
@click.argument("answers", nargs=-1, required=True)
def answer(quiz_id: int, answers: tuple[str, ...]):
    """Responde un quiz: readgate answer -q 3 Q1=A Q2=C"""
    parsed = _parse_answers(answers)
    orchestrator = build_orchestrator(offline=True)

    try:
        outcome = orchestrator.submit_attempt(quiz_id, parsed)
    except QuizNotFoundError as e:
        _abort(str(e))

    click.echo("")
    if outcome.passed:
        click.echo(click.style(
            f"[readgate] ✓ Aprobado {outcome.correct_count}/{outcome.total}", fg="green",
        ))
    else:
        click.echo(click.style(
            f"[readgate] ✗ No aprobado {outcome.correct_count}/{outcome.total}", fg="yellow",
        ))
    click.echo(f"[readgate]   Desbloqueado hasta el chunk {outcome.unlocked_until}")


# ------------------------------------------------------------------
# readgate read
# ------------------------------------------------------------------

@main.command()
@click.option("--book-id", "-b", required=True, type=int, help="Libro ingresado")
@click.option("--chunk", "-c", "chunk_index", required=True, type=int, help="Índice del chunk")
@_session_option
def read(book_id: int, chunk_index: int, session: str):
    """Muestra un chunk si está desbloqueado y mueve la posición de lectura."""
    orchestrator = build_orchestrator(offline=True)

    try:
        chunk = orchestrator.read_chunk(book_id, chunk_index, session_id=session)
    except (BookNotFoundError, IndexError) as e:
        _abort(str(e))
    except ChunkLockedError as e:
        _error(str(e))
        sys.exit(1)

    click.echo(f"[readgate] Chunk {chunk.chunk_index} ({chunk.word_count} palabras)")
    click.echo("")
    click.echo(chunk.text)


# ------------------------------------------------------------------
# readgate progress / status
# ------------------------------------------------------------------

@main.command()
@click.option("--book-id", "-b", required=True, type=int, help="Libro ingresado")
@_session_option
def progress(book_id: int, session: str):
    """Posición de lectura, límite desbloqueado y siguiente gate."""
    orchestrator = build_orchestrator(offline=True)

    try:
        current = orchestrator.get_progress(book_id, session_id=session)
        gate    = orchestrator.next_gate(book_id, session_id=session)
    except BookNotFoundError as e:
        _abort(str(e))

    click.echo(f"[readgate]   Chunk actual     : {current.current_chunk_index}")
    click.echo(f"[readgate]   Desbloqueado hasta: {current.unlocked_until_chunk_index}")
    if gate is None:
        click.echo("[readgate]   Siguiente gate   : ninguno (libro completo)")
    else:
        click.echo(f"[readgate]   Siguiente gate   : chunks {gate.start}-{gate.end}")


@main.command()
@_session_option
def status(session: str):
    """Libros ingresados y progreso de la sesión."""
    orchestrator = build_orchestrator(offline=True)
    books = orchestrator.books_overview(session_id=session)

    if not books:
        click.echo("[readgate] No hay libros ingresados todavía.")
        return

    for book in books:
        unlocked = "-" if book.unlocked_until is None else book.unlocked_until
        click.echo(
            f"[readgate] {book.book_id:>3}  {book.title}  "
            f"({book.total_chunks} chunks, desbloqueado hasta {unlocked})"
        )


# ------------------------------------------------------------------
# Helpers de validación
# ------------------------------------------------------------------

def _validate_file(path: str) -> None:
    """Verifica existencia y formato del archivo."""
    p = Path(path)

    if not p.exists():
        _abort(f"Archivo no encontrado: {path}")

    if not p.is_file():
        _abort(f"La ruta no es un archivo: {path}")

    if p.suffix.lower() not in _SUPPORTED_FORMATS:
        supported = ", ".join(sorted(_SUPPORTED_FORMATS))
        _abort(
            f"Formato no soportado: '{p.suffix}'\n"
            f"Formatos disponibles: {supported}"
        )


def _parse_answers(raw: tuple[str, ...]) -> dict[str, str]:
    """Convierte ('Q1=A', 'q2=b') en {'Q1': 'A', 'q2': 'B'}."""
    answers: dict[str, str] = {}
    for item in raw:
        question_id, sep, choice = item.partition("=")
        choice = choice.strip().upper()
        if not sep or not question_id.strip() or choice not in {"A", "B", "C"}:
            _abort(f"Respuesta inválida: '{item}'. Formato esperado: Q1=A (A, B o C)")
        answers[question_id.strip()] = choice
    return answers


# ------------------------------------------------------------------
# Helpers de output
# ------------------------------------------------------------------

def _abort(message: str) -> None:
    """Error de validación: culpa del usuario."""
    click.echo(click.style(f"[readgate] Error: {message}", fg="red"), err=True)
    sys.exit(1)


def _error(message: str) -> None:
    """Error de sistema: no es culpa del usuario."""
    click.echo(click.style(f"[readgate] {message}", fg="red"), err=True)
