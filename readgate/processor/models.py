from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Paragraph:
    """Párrafo tal como sale del parser. Inmutable una vez chunkeado."""
    index: int
    text:  str
    html:  Optional[str] = None


@dataclass
class Section:
    """
    Rango lógico de una sección del EPUB.
    Antes de chunkear los índices apuntan a párrafos; después, a chunks.
    """
    title:                 str
    start_paragraph_index: int
    end_paragraph_index:   int


@dataclass(frozen=True)
class SourceHint:
    """Trazabilidad de un chunk hacia la sección y posición de origen."""
    section_index: int
    element_index: Optional[int] = None


@dataclass
class Chunk:
    """Unidad de lectura: lo que el lector avanza y lo que se evalúa en cada gate."""
    index:       int
    text:        str
    word_count:  int
    html:        Optional[str]        = None
    source_hint: Optional[SourceHint] = None


@dataclass
class ChunkingResult:
    """Chunks densos 0..N-1 y secciones ya reindexadas sobre esos chunks."""
    chunks:   list[Chunk]
    sections: list[Section] = field(default_factory=list)


@dataclass
class ParsedSection:
    """Ítem del spine del EPUB con su HTML crudo."""
    href:  str
    html:  str
    title: Optional[str] = None


@dataclass
class ParsedBook:
    """Lo que sale de cualquier Parser: secciones, párrafos y metadata."""
    title:       str
    source_path: str
    sections:    list[ParsedSection]
    paragraphs:  list[Paragraph]
    section_ranges: list[Section]
    author:      Optional[str] = None
    language:    Optional[str] = None
