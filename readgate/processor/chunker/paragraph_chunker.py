# chunker/paragraph_chunker.py
import html as html_lib
import logging
import math
import re
from dataclasses import dataclass
from typing import Optional

from .models import ChunkConfig
from .text_stats import count_words, segment_sentences
from ..models import Chunk, ChunkingResult, Paragraph, Section, SourceHint

logger = logging.getLogger(__name__)

_CLAUSE_SPLIT_RE = re.compile(r"([,;]+\s+)")
_PARAGRAPH_JOIN  = "\n\n"


@dataclass
class _Draft:
    """Chunk en construcción, todavía sin índice global."""
    text:            str
    word_count:      int
    paragraph_index: int
    html:            Optional[str] = None


@dataclass
class _Segment:
    """Rango contiguo de párrafos que se chunkea de forma aislada."""
    start:         int
    end:           int
    section_index: Optional[int]


class ParagraphChunker:
    """
    Convierte párrafos en chunks de [min_words, max_words] palabras.

    Política por párrafo, siempre dentro del rango de su sección:
    - en rango: se emite tal cual;
    - corto: absorbe los siguientes párrafos cortos de la misma sección;
    - largo: se divide por oraciones (o por cláusulas si es una sola).

    Las fronteras de sección son sagradas: nunca se fusiona a través de ellas.
    Nunca lanza excepción; si algo no se puede dividir se emite como está.
    """

    def __init__(self, config: ChunkConfig | None = None):
        self._config = config or ChunkConfig()

    def chunk(
        self,
        paragraphs: list[Paragraph],
        sections:   list[Section] | None = None,
    ) -> ChunkingResult:
        sections = sections or []
        segments = self._plan_segments(len(paragraphs), sections)

        chunks: list[Chunk] = []
        first_chunk: dict[int, int] = {}
        last_chunk:  dict[int, int] = {}

        for segment in segments:
            if segment.section_index is not None:
                # Una sección sin chunks apunta al que vendría a continuación
                first_chunk[segment.section_index] = len(chunks)
                last_chunk[segment.section_index]  = len(chunks)

            drafts = self._chunk_range(paragraphs, segment.start, segment.end)
            drafts = self._merge_undersized(drafts)
            if not drafts:
                continue

            for draft in drafts:
                hint = None
                if segment.section_index is not None:
                    hint = SourceHint(
                        section_index = segment.section_index,
                        element_index = draft.paragraph_index,
                    )
                chunks.append(Chunk(
                    index       = len(chunks),
                    text        = draft.text,
                    word_count  = draft.word_count,
                    html        = draft.html,
                    source_hint = hint,
                ))

            if segment.section_index is not None:
                last_chunk[segment.section_index] = len(chunks) - 1

        remapped = self._remap_sections(sections, first_chunk, last_chunk, len(chunks))
        logger.debug(
            "%d párrafos → %d chunks en %d secciones",
            len(paragraphs), len(chunks), len(sections),
        )
        return ChunkingResult(chunks=chunks, sections=remapped)

    # ------------------------------------------------------------------
    # Planificación de segmentos
    # ------------------------------------------------------------------

    def _plan_segments(
        self,
        paragraph_count: int,
        sections:        list[Section],
    ) -> list[_Segment]:
        """
        Recorre las secciones ordenadas por inicio y produce segmentos
        contiguos que cubren todos los párrafos exactamente una vez.

        Los huecos entre secciones forman segmentos sin sección.
        Una sección sin párrafos (o solapada por la anterior) queda como
        segmento vacío en su posición, para poder reindexarla.
        """
        segments: list[_Segment] = []
        cursor = 0

        ordered = sorted(
            range(len(sections)),
            key=lambda i: (sections[i].start_paragraph_index, i),
        )
        for section_index in ordered:
            section = sections[section_index]
            start = max(section.start_paragraph_index, cursor)
            end   = min(section.end_paragraph_index, paragraph_count - 1)

            if start > cursor and cursor < paragraph_count:
                segments.append(_Segment(cursor, min(start, paragraph_count) - 1, None))
                cursor = min(start, paragraph_count)

            if start > end:
                segments.append(_Segment(cursor, cursor - 1, section_index))
                continue

            segments.append(_Segment(start, end, section_index))
            cursor = end + 1

        if cursor < paragraph_count:
            segments.append(_Segment(cursor, paragraph_count - 1, None))

        return segments

    # ------------------------------------------------------------------
    # Política por párrafo
    # ------------------------------------------------------------------

    def _chunk_range(
        self,
        paragraphs: list[Paragraph],
        start:      int,
        end:        int,
    ) -> list[_Draft]:
        cfg = self._config
        drafts: list[_Draft] = []
        i = start

        while i <= end:
            para = paragraphs[i]
            if not para.text or not para.text.strip():
                i += 1
                continue

            word_count = count_words(para.text)

            if cfg.is_in_band(word_count):
                drafts.append(_Draft(para.text, word_count, i, para.html))
                i += 1
                continue

            if word_count < cfg.min_words:
                merged, i = self._absorb_following(paragraphs, i, end)
                drafts.append(merged)
                continue

            for piece in self._split_long(para.text):
                drafts.append(_Draft(
                    text            = piece,
                    word_count      = count_words(piece),
                    paragraph_index = i,
                    html            = _piece_html(piece) if para.html is not None else None,
                ))
            i += 1

        return drafts

    def _absorb_following(
        self,
        paragraphs: list[Paragraph],
        start:      int,
        end:        int,
    ) -> tuple[_Draft, int]:
        """
        Fusiona un párrafo corto con los siguientes de su sección.
        Se detiene antes de un párrafo en rango o si se pasaría de max_words.
        Devuelve el borrador fusionado y el índice del primer párrafo no consumido.
        """
        cfg   = self._config
        first = paragraphs[start]
        texts = [first.text]
        htmls = [first.html]
        j = start + 1

        while j <= end:
            candidate = paragraphs[j]
            if not candidate.text or not candidate.text.strip():
                j += 1
                continue

            if cfg.is_in_band(count_words(candidate.text)):
                break

            combined = count_words(" ".join(texts) + " " + candidate.text)
            if combined > cfg.max_words:
                break

            texts.append(candidate.text)
            htmls.append(candidate.html)
            j += 1

        text = _PARAGRAPH_JOIN.join(texts)
        html = None
        if any(h is not None for h in htmls):
            html = _PARAGRAPH_JOIN.join(h or "" for h in htmls)

        return _Draft(text, count_words(text), start, html), j

    # ------------------------------------------------------------------
    # División de párrafos largos
    # ------------------------------------------------------------------

    def _split_long(self, text: str) -> list[str]:
        sentences = segment_sentences(text, self._config.abbreviations)
        if len(sentences) <= 1:
            return self._split_single_sentence(text.strip())
        return self._split_by_sentences(sentences)

    def _split_single_sentence(self, text: str) -> list[str]:
        """
        Una sola oración demasiado larga: un único corte, primero por
        cláusulas (comas y punto y coma), luego bisección por palabras.
        Si ni así se pueden dejar min_words a cada lado, se emite entera.
        Las mitades pueden seguir pasando de max_words: se aceptan.
        """
        cfg   = self._config
        total = count_words(text)
        if total <= cfg.max_words:
            return [text]

        halves = self._split_at_clause(text, total) or self._bisect_words(text)
        if halves is None:
            logger.debug(
                "Oración de %d palabras sin corte posible; se emite completa", total,
            )
            return [text]

        return [half for half in halves if half]

    def _split_at_clause(self, text: str, total: int) -> tuple[str, str] | None:
        cfg   = self._config
        parts = _CLAUSE_SPLIT_RE.split(text)
        clauses = [
            parts[i] + (parts[i + 1] if i + 1 < len(parts) else "")
            for i in range(0, len(parts), 2)
            if parts[i]
        ]
        if len(clauses) < 2:
            return None

        best_split: int | None = None
        best_score = math.inf
        cumulative = 0

        for i, clause in enumerate(clauses[:-1]):
            cumulative += count_words(clause)
            first  = cumulative
            second = total - cumulative
            if first < cfg.min_words or second < cfg.min_words:
                continue
            score = abs(first - cfg.target_words) + abs(second - cfg.target_words)
            if score < best_score:
                best_score = score
                best_split = i

        if best_split is None:
            return None

        first_part  = "".join(clauses[: best_split + 1]).strip()
        second_part = "".join(clauses[best_split + 1:]).strip()
        return first_part, second_part

    def _bisect_words(self, text: str) -> tuple[str, str] | None:
        cfg   = self._config
        words = text.split()
        if len(words) < 2 * cfg.min_words:
            return None

        midpoint = max(cfg.min_words, min(len(words) - cfg.min_words, len(words) // 2))
        return " ".join(words[:midpoint]), " ".join(words[midpoint:])

    def _split_by_sentences(self, sentences: list[str]) -> list[str]:
        """
        Reparte oraciones en ceil(total / max_words) chunks.

        Cada corte se puntúa por su distancia al objetivo acumulado, por la
        distancia del chunk resultante a target_words y con una penalización
        fuerte si deja detrás menos de min_words. Un corte solo es factible
        si lo que queda alcanza para el mínimo de los chunks pendientes.
        """
        cfg = self._config
        sentence_words = [count_words(s) for s in sentences]
        cumulative: list[int] = []
        running = 0
        for words in sentence_words:
            running += words
            cumulative.append(running)
        total = running

        num_chunks  = max(1, math.ceil(total / cfg.max_words))
        target_size = max(cfg.min_words, min(cfg.max_words, _round_half_up(total / num_chunks)))

        pieces: list[str] = []
        start_index = 0
        words_consumed = 0

        for chunk_idx in range(num_chunks - 1):
            running_target = (chunk_idx + 1) * target_size
            min_remaining  = (num_chunks - chunk_idx - 1) * cfg.min_words

            best_split: int | None = None
            best_score = math.inf

            for i in range(start_index, len(sentences) - 1):
                words_before = cumulative[i]
                words_after  = total - words_before
                if words_after < min_remaining:
                    continue

                orphan = cfg.orphan_penalty if words_after < cfg.min_words else 0
                chunk_words = words_before - words_consumed
                score = (
                    abs(words_before - running_target)
                    + orphan
                    + abs(chunk_words - cfg.target_words)
                )
                if score < best_score:
                    best_score = score
                    best_split = i

            if best_split is None:
                break

            pieces.append(" ".join(sentences[start_index: best_split + 1]))
            start_index    = best_split + 1
            words_consumed = cumulative[best_split]

        if start_index < len(sentences):
            remaining       = " ".join(sentences[start_index:])
            remaining_words = count_words(remaining)

            if remaining_words < cfg.min_words and pieces:
                merged = pieces[-1] + " " + remaining
                if count_words(merged) <= cfg.max_words:
                    pieces[-1] = merged
                else:
                    pieces.append(remaining)
            else:
                pieces.append(remaining)

        # Validación: un trozo corto se fusiona con el siguiente si cabe
        validated: list[str] = []
        i = 0
        while i < len(pieces):
            piece = pieces[i]
            if count_words(piece) < cfg.min_words and i < len(pieces) - 1:
                merged = piece + " " + pieces[i + 1]
                if count_words(merged) <= cfg.max_words:
                    validated.append(merged)
                    i += 2
                    continue
            validated.append(piece)
            i += 1

        return [p for p in validated if p.strip()]

    # ------------------------------------------------------------------
    # Pasada final y reindexado
    # ------------------------------------------------------------------

    def _merge_undersized(self, drafts: list[_Draft]) -> list[_Draft]:
        """Un chunk por debajo de min_words se fusiona con su sucesor si cabe."""
        cfg = self._config
        result: list[_Draft] = []

        for draft in drafts:
            if result:
                previous = result[-1]
                combined = previous.word_count + draft.word_count
                if previous.word_count < cfg.min_words and combined <= cfg.max_words:
                    html = None
                    if previous.html is not None or draft.html is not None:
                        html = (previous.html or "") + _PARAGRAPH_JOIN + (draft.html or "")
                    text = previous.text + _PARAGRAPH_JOIN + draft.text
                    result[-1] = _Draft(
                        text            = text,
                        word_count      = count_words(text),
                        paragraph_index = previous.paragraph_index,
                        html            = html,
                    )
                    continue
            result.append(draft)

        return result

    @staticmethod
    def _remap_sections(
        sections:     list[Section],
        first_chunk:  dict[int, int],
        last_chunk:   dict[int, int],
        total_chunks: int,
    ) -> list[Section]:
        upper = max(total_chunks - 1, 0)
        remapped: list[Section] = []

        for section_index, section in enumerate(sections):
            start = first_chunk.get(section_index, 0)
            end   = last_chunk.get(section_index, start)
            start = min(max(start, 0), upper)
            end   = min(max(end, start), upper)
            remapped.append(Section(
                title                 = section.title,
                start_paragraph_index = start,
                end_paragraph_index   = end,
            ))

        return remapped


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _piece_html(piece: str) -> str:
    return f"<p>{html_lib.escape(piece)}</p>"
