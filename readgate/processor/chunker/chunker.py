# chunker/chunker.py
from enum import Enum

from .html_chunker import HtmlChunker
from .models import ChunkConfig
from .paragraph_chunker import ParagraphChunker
from ..models import ChunkingResult, ParsedBook, Section


class ChunkStrategy(Enum):
    PARAGRAPH = "paragraph"
    HTML      = "html"


class Chunker:
    """
    Punto de entrada único para chunkear un ParsedBook.
    Elige entre ParagraphChunker (por defecto) y HtmlChunker.
    """

    def __init__(
        self,
        config:   ChunkConfig | None = None,
        strategy: ChunkStrategy      = ChunkStrategy.PARAGRAPH,
    ):
        self._config   = config or ChunkConfig()
        self._strategy = strategy
        self._paragraph_chunker = ParagraphChunker(self._config)
        self._html_chunker      = HtmlChunker(self._config)

    @property
    def strategy(self) -> ChunkStrategy:
        return self._strategy

    def chunk(self, book: ParsedBook) -> ChunkingResult:
        if self._strategy is ChunkStrategy.HTML:
            return self._chunk_html(book)
        return self._paragraph_chunker.chunk(book.paragraphs, book.section_ranges)

    def _chunk_html(self, book: ParsedBook) -> ChunkingResult:
        chunks = self._html_chunker.chunk_sections([s.html for s in book.sections])
        upper  = max(len(chunks) - 1, 0)

        # Reconstruir los rangos de sección a partir de la trazabilidad
        sections: list[Section] = []
        next_start = 0
        for section_index, parsed in enumerate(book.sections):
            owned = [
                c.index for c in chunks
                if c.source_hint and c.source_hint.section_index == section_index
            ]
            start = owned[0] if owned else next_start
            end   = owned[-1] if owned else start
            sections.append(Section(
                title                 = parsed.title or parsed.href,
                start_paragraph_index = min(start, upper),
                end_paragraph_index   = min(end, upper),
            ))
            next_start = end + 1 if owned else next_start

        return ChunkingResult(chunks=chunks, sections=sections)
