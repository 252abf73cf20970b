# storage/db.py
import sqlite3
import os
from pathlib import Path


_DEFAULT_DB_PATH = Path.home() / ".readgate" / "readgate.db"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS books (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    title       TEXT    NOT NULL,
    author      TEXT,
    language    TEXT,
    source_path TEXT,
    file_hash   TEXT    NOT NULL UNIQUE,
    created_at  TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS sections (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    book_id           INTEGER NOT NULL,
    section_index     INTEGER NOT NULL,
    title             TEXT    NOT NULL,
    start_chunk_index INTEGER NOT NULL,
    end_chunk_index   INTEGER NOT NULL,
    FOREIGN KEY (book_id) REFERENCES books(id) ON DELETE CASCADE,
    UNIQUE (book_id, section_index)
);

CREATE TABLE IF NOT EXISTS chunks (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    book_id       INTEGER NOT NULL,
    chunk_index   INTEGER NOT NULL,
    text          TEXT    NOT NULL,
    word_count    INTEGER NOT NULL,
    html          TEXT,
    section_index INTEGER,
    element_index INTEGER,
    FOREIGN KEY (book_id) REFERENCES books(id) ON DELETE CASCADE,
    UNIQUE (book_id, chunk_index)
);

CREATE TABLE IF NOT EXISTS reader_state (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id   TEXT    NOT NULL,
    book_id      INTEGER NOT NULL,
    version      INTEGER NOT NULL DEFAULT 1,
    content_json TEXT    NOT NULL,
    updated_at   TEXT    NOT NULL,
    FOREIGN KEY (book_id) REFERENCES books(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS quizzes (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id     TEXT    NOT NULL,
    book_id        INTEGER NOT NULL,
    gate_start     INTEGER NOT NULL,
    gate_end       INTEGER NOT NULL,
    facts_json     TEXT    NOT NULL,
    questions_json TEXT    NOT NULL,
    model          TEXT    NOT NULL,
    created_at     TEXT    NOT NULL,
    FOREIGN KEY (book_id) REFERENCES books(id) ON DELETE CASCADE,
    UNIQUE (session_id, book_id, gate_start, gate_end)
);

CREATE TABLE IF NOT EXISTS quiz_attempts (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    quiz_id       INTEGER NOT NULL,
    answers_json  TEXT    NOT NULL,
    correct_count INTEGER NOT NULL,
    passed        INTEGER NOT NULL,
    answered_at   TEXT    NOT NULL,
    FOREIGN KEY (quiz_id) REFERENCES quizzes(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS reading_progress (
    session_id                 TEXT    NOT NULL,
    book_id                    INTEGER NOT NULL,
    current_chunk_index        INTEGER NOT NULL DEFAULT 0,
    unlocked_until_chunk_index INTEGER NOT NULL DEFAULT 0,
    updated_at                 TEXT    NOT NULL,
    PRIMARY KEY (session_id, book_id),
    FOREIGN KEY (book_id) REFERENCES books(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS quota_usage (
    model       TEXT    NOT NULL,
    date        TEXT    NOT NULL,
    tokens_used INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (model, date)
);
"""


def get_connection(db_path: str | None = None) -> sqlite3.Connection:
    """
    Abre y configura la conexión a SQLite.
    Siempre devuelve rows como dicts (row_factory).
    Activa foreign keys, que SQLite tiene desactivadas por defecto.
    """
    path = db_path or os.environ.get("READGATE_DB_PATH") or str(_DEFAULT_DB_PATH)

    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


def init_schema(conn: sqlite3.Connection) -> None:
    """Crea las tablas si no existen. Idempotente."""
    with conn:
        conn.executescript(_SCHEMA)
