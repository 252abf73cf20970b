# chunker/html_chunker.py
import re

from .models import ChunkConfig
from .text_stats import count_words
from ..models import Chunk, SourceHint

_SCRIPT_RE    = re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE     = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_TAG_RE       = re.compile(r"<[^>]+>")
_SPACES_RE    = re.compile(r"\s+")

# Separación de oraciones deliberadamente simple: no conoce abreviaturas
_SENTENCE_RE  = re.compile(r"(?<=[.!?])\s+")

# Entidades que se decodifican. El resto se deja tal cual.
_ENTITIES = (
    ("&nbsp;", " "),
    ("&amp;",  "&"),
    ("&lt;",   "<"),
    ("&gt;",   ">"),
    ("&quot;", '"'),
    ("&#39;",  "'"),
)


def extract_plain_text(html: str) -> str:
    """
    Convierte el HTML de una sección a texto plano en una sola línea:
    sin script/style, entidades básicas decodificadas, sin etiquetas
    y con los espacios colapsados.
    """
    text = _SCRIPT_RE.sub("", html or "")
    text = _STYLE_RE.sub("", text)

    for entity, replacement in _ENTITIES:
        text = text.replace(entity, replacement)

    text = _TAG_RE.sub(" ", text)
    return _SPACES_RE.sub(" ", text).strip()


class HtmlChunker:
    """
    Variante sencilla que trabaja sobre el HTML aplanado de cada sección.
    Bin-packing voraz de oraciones en chunks de [min_words, max_words].

    A diferencia de ParagraphChunker no respeta párrafos ni abreviaturas:
    la entrada es el texto plano de la sección completa.
    """

    def __init__(self, config: ChunkConfig | None = None):
        self._config = config or ChunkConfig()

    def chunk_text(self, text: str) -> list[tuple[str, int]]:
        """Devuelve pares (texto, palabras) sin índices ni trazabilidad."""
        cfg = self._config
        sentences = [s for s in _SENTENCE_RE.split(text) if s.strip()]

        packed: list[tuple[str, int]] = []
        current: list[str] = []
        current_words = 0

        for sentence in sentences:
            sentence_words = count_words(sentence)

            if current_words + sentence_words > cfg.max_words and current_words >= cfg.min_words:
                packed.append((" ".join(current).strip(), current_words))
                current = [sentence]
                current_words = sentence_words
            else:
                current.append(sentence)
                current_words += sentence_words

        if current and " ".join(current).strip():
            packed.append((" ".join(current).strip(), current_words))

        # Un chunk corto se fusiona con el siguiente si la suma cabe
        merged: list[tuple[str, int]] = []
        i = 0
        while i < len(packed):
            text_i, words_i = packed[i]
            if words_i < cfg.min_words and i < len(packed) - 1:
                text_next, words_next = packed[i + 1]
                if words_i + words_next <= cfg.max_words:
                    merged.append(((text_i + " " + text_next).strip(), words_i + words_next))
                    i += 2
                    continue
            merged.append((text_i, words_i))
            i += 1

        return merged

    def chunk_html(self, html: str, section_index: int, start_index: int = 0) -> list[Chunk]:
        """
        Chunkea el HTML de una sección.
        element_index es la posición del chunk dentro de la sección.
        """
        packed = self.chunk_text(extract_plain_text(html))
        return [
            Chunk(
                index       = start_index + position,
                text        = text,
                word_count  = words,
                source_hint = SourceHint(section_index=section_index, element_index=position),
            )
            for position, (text, words) in enumerate(packed)
        ]

    def chunk_sections(self, htmls: list[str]) -> list[Chunk]:
        """Chunkea todas las secciones con índices globales densos 0..N-1."""
        chunks: list[Chunk] = []
        for section_index, html in enumerate(htmls):
            chunks.extend(self.chunk_html(html, section_index, start_index=len(chunks)))
        return chunks
