# storage/repository.py
import json
import logging
import sqlite3
from datetime import date, datetime, timezone
from typing import Optional, Sequence

from readgate.context.reader_state import ReaderState
from readgate.processor.models import Chunk, Section
from readgate.storage.db import get_connection, init_schema
from readgate.storage.models import (
    ReadingProgress, StoredAttempt, StoredBook, StoredChunk, StoredQuiz, StoredSection,
)

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Repository:
    """
    Única interfaz entre el resto de la aplicación y SQLite.
    Recibe un db_path para facilitar el testing con :memory:.
    """

    def __init__(self, db_path: str | None = None):
        self._conn = get_connection(db_path)
        init_schema(self._conn)

    # ------------------------------------------------------------------
    # Books
    # ------------------------------------------------------------------

    def create_book(
        self,
        title:       str,
        file_hash:   str,
        author:      str | None = None,
        language:    str | None = None,
        source_path: str | None = None,
    ) -> int:
        """
        Inserta un libro nuevo y devuelve su id.
        Si el hash ya existe lanza IntegrityError, el caller decide qué hacer.
        """
        with self._conn:
            cursor = self._conn.execute(
                """
                INSERT INTO books (title, author, language, source_path, file_hash, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (title, author, language, source_path, file_hash, _now()),
            )
        return cursor.lastrowid  # type: ignore[return-value]

    def get_book_by_hash(self, file_hash: str) -> StoredBook | None:
        row = self._conn.execute(
            "SELECT * FROM books WHERE file_hash = ?", (file_hash,)
        ).fetchone()
        return self._row_to_book(row) if row else None

    def get_book_by_id(self, book_id: int) -> StoredBook | None:
        row = self._conn.execute(
            "SELECT * FROM books WHERE id = ?", (book_id,)
        ).fetchone()
        return self._row_to_book(row) if row else None

    def list_books(self) -> list[StoredBook]:
        rows = self._conn.execute("SELECT * FROM books ORDER BY id ASC").fetchall()
        return [self._row_to_book(r) for r in rows]

    # ------------------------------------------------------------------
    # Chunks + secciones
    # ------------------------------------------------------------------

    def save_chunks(self, book_id: int, chunks: Sequence[Chunk]) -> None:
        """
        Bulk insert de chunks. Usa INSERT OR IGNORE para ser idempotente:
        si el proceso se interrumpe y se relanza, no explota por el UNIQUE.
        """
        rows = [
            (
                book_id,
                chunk.index,
                chunk.text,
                chunk.word_count,
                chunk.html,
                chunk.source_hint.section_index if chunk.source_hint else None,
                chunk.source_hint.element_index if chunk.source_hint else None,
            )
            for chunk in chunks
        ]
        with self._conn:
            self._conn.executemany(
                """
                INSERT OR IGNORE INTO chunks
                    (book_id, chunk_index, text, word_count, html,
                     section_index, element_index)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )

    def get_chunks(
        self,
        book_id: int,
        start:   int | None = None,
        end:     int | None = None,
    ) -> list[StoredChunk]:
        """Chunks del libro en orden, opcionalmente limitados a [start, end]."""
        query  = "SELECT * FROM chunks WHERE book_id = ?"
        params: list = [book_id]
        if start is not None:
            query += " AND chunk_index >= ?"
            params.append(start)
        if end is not None:
            query += " AND chunk_index <= ?"
            params.append(end)
        query += " ORDER BY chunk_index ASC"

        rows = self._conn.execute(query, params).fetchall()
        return [self._row_to_chunk(r) for r in rows]

    def count_chunks(self, book_id: int) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) AS n FROM chunks WHERE book_id = ?", (book_id,)
        ).fetchone()
        return row["n"]

    def save_sections(self, book_id: int, sections: Sequence[Section]) -> None:
        """Las secciones ya vienen remapeadas a índices de chunk."""
        rows = [
            (book_id, position, s.title, s.start_paragraph_index, s.end_paragraph_index)
            for position, s in enumerate(sections)
        ]
        with self._conn:
            self._conn.executemany(
                """
                INSERT OR IGNORE INTO sections
                    (book_id, section_index, title, start_chunk_index, end_chunk_index)
                VALUES (?, ?, ?, ?, ?)
                """,
                rows,
            )

    def get_sections(self, book_id: int) -> list[StoredSection]:
        rows = self._conn.execute(
            "SELECT * FROM sections WHERE book_id = ? ORDER BY section_index ASC",
            (book_id,),
        ).fetchall()
        return [
            StoredSection(
                id                = r["id"],
                book_id           = r["book_id"],
                section_index     = r["section_index"],
                title             = r["title"],
                start_chunk_index = r["start_chunk_index"],
                end_chunk_index   = r["end_chunk_index"],
            )
            for r in rows
        ]

    def get_section_for_chunk(self, book_id: int, chunk_index: int) -> StoredSection | None:
        for section in self.get_sections(book_id):
            if section.start_chunk_index <= chunk_index <= section.end_chunk_index:
                return section
        return None

    # ------------------------------------------------------------------
    # Quota
    # ------------------------------------------------------------------

    def add_token_usage(self, model: str, tokens: int) -> None:
        """
        Upsert: si ya existe el registro de hoy lo incrementa,
        si no existe lo crea.
        """
        today = date.today().isoformat()
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO quota_usage (model, date, tokens_used)
                VALUES (?, ?, ?)
                ON CONFLICT (model, date)
                DO UPDATE SET tokens_used = tokens_used + excluded.tokens_used
                """,
                (model, today, tokens),
            )

    def get_token_usage_today(self, model: str) -> int:
        today = date.today().isoformat()
        row = self._conn.execute(
            "SELECT tokens_used FROM quota_usage WHERE model = ? AND date = ?",
            (model, today),
        ).fetchone()
        return row["tokens_used"] if row else 0

    # ------------------------------------------------------------------
    # Reader state
    # ------------------------------------------------------------------

    def save_reader_state(self, session_id: str, book_id: int, state: ReaderState) -> int:
        """
        Guarda una nueva versión del estado del lector.
        Siempre inserta una fila nueva (versionado inmutable).
        Retorna el número de versión asignado.
        """
        with self._conn:
            return self._insert_reader_state(session_id, book_id, state)

    def get_latest_reader_state(self, session_id: str, book_id: int) -> Optional[ReaderState]:
        """
        Carga la versión más reciente del estado.
        Devuelve None si todavía no existe (primer gate del libro).
        """
        row = self._conn.execute(
            """
            SELECT content_json FROM reader_state
            WHERE session_id = ? AND book_id = ?
            ORDER BY version DESC
            LIMIT 1
            """,
            (session_id, book_id),
        ).fetchone()

        if not row:
            return None

        try:
            return ReaderState.from_json(row["content_json"])
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Error deserializando el estado del libro %d: %s", book_id, e)
            return None

    # ------------------------------------------------------------------
    # Quizzes
    # ------------------------------------------------------------------

    def create_quiz(
        self,
        session_id: str,
        book_id:    int,
        gate_start: int,
        gate_end:   int,
        facts:      dict,
        questions:  dict,
        model:      str,
    ) -> int:
        with self._conn:
            return self._insert_quiz(
                session_id, book_id, gate_start, gate_end, facts, questions, model,
            )

    def save_gate_quiz(
        self,
        session_id: str,
        book_id:    int,
        gate_start: int,
        gate_end:   int,
        facts:      dict,
        questions:  dict,
        model:      str,
        state:      ReaderState,
    ) -> tuple[int, int]:
        """
        Guarda el quiz de un gate y la nueva versión del estado del lector
        en una sola transacción: o quedan los dos o ninguno.
        Retorna (quiz_id, versión del estado).
        """
        with self._conn:
            quiz_id = self._insert_quiz(
                session_id, book_id, gate_start, gate_end, facts, questions, model,
            )
            version = self._insert_reader_state(session_id, book_id, state)
        return quiz_id, version

    def get_quiz(self, session_id: str, book_id: int, gate_start: int, gate_end: int) -> StoredQuiz | None:
        row = self._conn.execute(
            """
            SELECT * FROM quizzes
            WHERE session_id = ? AND book_id = ? AND gate_start = ? AND gate_end = ?
            """,
            (session_id, book_id, gate_start, gate_end),
        ).fetchone()
        return self._row_to_quiz(row) if row else None

    def get_quiz_by_id(self, quiz_id: int) -> StoredQuiz | None:
        row = self._conn.execute(
            "SELECT * FROM quizzes WHERE id = ?", (quiz_id,)
        ).fetchone()
        return self._row_to_quiz(row) if row else None

    def list_quizzes(self, session_id: str, book_id: int) -> list[StoredQuiz]:
        rows = self._conn.execute(
            """
            SELECT * FROM quizzes
            WHERE session_id = ? AND book_id = ?
            ORDER BY gate_start ASC
            """,
            (session_id, book_id),
        ).fetchall()
        return [self._row_to_quiz(r) for r in rows]

    def save_attempt(self, quiz_id: int, answers: dict, correct_count: int, passed: bool) -> int:
        with self._conn:
            cursor = self._conn.execute(
                """
                INSERT INTO quiz_attempts (quiz_id, answers_json, correct_count, passed, answered_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (quiz_id, json.dumps(answers), correct_count, int(passed), _now()),
            )
        return cursor.lastrowid  # type: ignore[return-value]

    def get_attempts(self, quiz_id: int) -> list[StoredAttempt]:
        rows = self._conn.execute(
            "SELECT * FROM quiz_attempts WHERE quiz_id = ? ORDER BY id ASC",
            (quiz_id,),
        ).fetchall()
        return [
            StoredAttempt(
                id            = r["id"],
                quiz_id       = r["quiz_id"],
                answers       = json.loads(r["answers_json"]),
                correct_count = r["correct_count"],
                passed        = bool(r["passed"]),
                answered_at   = r["answered_at"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Progreso de lectura
    # ------------------------------------------------------------------

    def get_progress(self, session_id: str, book_id: int) -> ReadingProgress | None:
        row = self._conn.execute(
            "SELECT * FROM reading_progress WHERE session_id = ? AND book_id = ?",
            (session_id, book_id),
        ).fetchone()
        return self._row_to_progress(row) if row else None

    def init_progress(self, session_id: str, book_id: int, unlocked_until: int) -> ReadingProgress:
        """Crea el progreso si no existe. Si ya existe lo devuelve sin tocarlo."""
        with self._conn:
            self._conn.execute(
                """
                INSERT OR IGNORE INTO reading_progress
                    (session_id, book_id, current_chunk_index, unlocked_until_chunk_index, updated_at)
                VALUES (?, ?, 0, ?, ?)
                """,
                (session_id, book_id, unlocked_until, _now()),
            )
        return self.get_progress(session_id, book_id)  # type: ignore[return-value]

    def unlock_until(self, session_id: str, book_id: int, chunk_index: int) -> ReadingProgress:
        """Sube el límite desbloqueado. Nunca lo baja."""
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO reading_progress
                    (session_id, book_id, current_chunk_index, unlocked_until_chunk_index, updated_at)
                VALUES (?, ?, 0, ?, ?)
                ON CONFLICT (session_id, book_id) DO UPDATE SET
                    unlocked_until_chunk_index = MAX(unlocked_until_chunk_index,
                                                     excluded.unlocked_until_chunk_index),
                    updated_at = excluded.updated_at
                """,
                (session_id, book_id, chunk_index, _now()),
            )
        return self.get_progress(session_id, book_id)  # type: ignore[return-value]

    def set_current_chunk(self, session_id: str, book_id: int, chunk_index: int) -> ReadingProgress:
        """
        Mueve la posición de lectura. Se recorta a [0, unlocked_until]:
        no se puede leer más allá de lo desbloqueado.
        """
        progress = self.get_progress(session_id, book_id)
        if progress is None:
            progress = self.init_progress(session_id, book_id, unlocked_until=0)

        clamped = max(0, min(chunk_index, progress.unlocked_until_chunk_index))
        with self._conn:
            self._conn.execute(
                """
                UPDATE reading_progress
                SET current_chunk_index = ?, updated_at = ?
                WHERE session_id = ? AND book_id = ?
                """,
                (clamped, _now(), session_id, book_id),
            )
        return self.get_progress(session_id, book_id)  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Inserts sin commit: el caller abre la transacción
    # ------------------------------------------------------------------

    def _insert_quiz(
        self,
        session_id: str,
        book_id:    int,
        gate_start: int,
        gate_end:   int,
        facts:      dict,
        questions:  dict,
        model:      str,
    ) -> int:
        cursor = self._conn.execute(
            """
            INSERT INTO quizzes
                (session_id, book_id, gate_start, gate_end,
                 facts_json, questions_json, model, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (session_id, book_id, gate_start, gate_end,
             json.dumps(facts, ensure_ascii=False),
             json.dumps(questions, ensure_ascii=False),
             model, _now()),
        )
        return cursor.lastrowid  # type: ignore[return-value]

    def _insert_reader_state(self, session_id: str, book_id: int, state: ReaderState) -> int:
        row = self._conn.execute(
            "SELECT MAX(version) AS max_v FROM reader_state WHERE session_id = ? AND book_id = ?",
            (session_id, book_id),
        ).fetchone()
        next_version = (row["max_v"] or 0) + 1

        self._conn.execute(
            """
            INSERT INTO reader_state (session_id, book_id, version, content_json, updated_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (session_id, book_id, next_version, state.to_json(), _now()),
        )
        return next_version

    # ------------------------------------------------------------------
    # Mapeo de rows a dataclasses
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_book(row: sqlite3.Row) -> StoredBook:
        return StoredBook(
            id=row["id"],
            title=row["title"],
            file_hash=row["file_hash"],
            created_at=row["created_at"],
            author=row["author"],
            language=row["language"],
            source_path=row["source_path"],
        )

    @staticmethod
    def _row_to_chunk(row: sqlite3.Row) -> StoredChunk:
        return StoredChunk(
            id=row["id"],
            book_id=row["book_id"],
            chunk_index=row["chunk_index"],
            text=row["text"],
            word_count=row["word_count"],
            html=row["html"],
            section_index=row["section_index"],
            element_index=row["element_index"],
        )

    @staticmethod
    def _row_to_quiz(row: sqlite3.Row) -> StoredQuiz:
        return StoredQuiz(
            id=row["id"],
            session_id=row["session_id"],
            book_id=row["book_id"],
            gate_start=row["gate_start"],
            gate_end=row["gate_end"],
            facts=json.loads(row["facts_json"]),
            questions=json.loads(row["questions_json"]),
            model=row["model"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_progress(row: sqlite3.Row) -> ReadingProgress:
        return ReadingProgress(
            session_id=row["session_id"],
            book_id=row["book_id"],
            current_chunk_index=row["current_chunk_index"],
            unlocked_until_chunk_index=row["unlocked_until_chunk_index"],
            updated_at=row["updated_at"],
        )

    # ------------------------------------------------------------------
    # Cleanup (para tests)
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._conn.close()
