# storage/models.py
from dataclasses import dataclass
from typing import Optional

from readgate.processor.models import Chunk, SourceHint


@dataclass
class StoredBook:
    id:          int
    title:       str
    file_hash:   str
    created_at:  str
    author:      Optional[str] = None
    language:    Optional[str] = None
    source_path: Optional[str] = None


@dataclass
class StoredChunk:
    id:            int
    book_id:       int
    chunk_index:   int
    text:          str
    word_count:    int
    html:          Optional[str] = None
    section_index: Optional[int] = None
    element_index: Optional[int] = None

    def to_chunk(self) -> Chunk:
        hint = None
        if self.section_index is not None:
            hint = SourceHint(section_index=self.section_index, element_index=self.element_index)
        return Chunk(
            index       = self.chunk_index,
            text        = self.text,
            word_count  = self.word_count,
            html        = self.html,
            source_hint = hint,
        )


@dataclass
class StoredSection:
    id:                int
    book_id:           int
    section_index:     int
    title:             str
    start_chunk_index: int
    end_chunk_index:   int


@dataclass
class StoredQuiz:
    id:               int
    session_id:       str
    book_id:          int
    gate_start:       int
    gate_end:         int
    facts:            dict
    questions:        dict
    model:            str
    created_at:       str


@dataclass
class StoredAttempt:
    id:            int
    quiz_id:       int
    answers:       dict
    correct_count: int
    passed:        bool
    answered_at:   str


@dataclass
class ReadingProgress:
    session_id:                 str
    book_id:                    int
    current_chunk_index:        int
    unlocked_until_chunk_index: int
    updated_at:                 str
