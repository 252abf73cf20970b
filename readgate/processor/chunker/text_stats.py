# chunker/text_stats.py
import re
from collections.abc import Iterator

from .models import DEFAULT_ABBREVIATIONS

_PUNCTUATION_RE  = re.compile(r"[^\w\s]")
_WHITESPACE_RE   = re.compile(r"\s+")
_SENTENCE_ENDERS = frozenset(".!?")


def count_words(text: str) -> int:
    """
    Cuenta palabras: la puntuación se convierte en espacio y se cuentan
    los tokens no vacíos.

    Es el ÚNICO contador del proyecto. Los umbrales de los dos chunkers y
    la heurística de preguntas por gate comparan contra este número.
    """
    if not text:
        return 0
    cleaned = _PUNCTUATION_RE.sub(" ", text.strip())
    return len([w for w in _WHITESPACE_RE.split(cleaned) if w])


def iter_sentences(
    text: str,
    abbreviations: frozenset[str] = DEFAULT_ABBREVIATIONS,
) -> Iterator[str]:
    """
    Recorre el texto y emite oraciones una a una.

    Una oración se cierra en '.', '!' o '?' solo si:
    - el siguiente carácter no blanco es mayúscula, o no queda nada más
      que espacios hasta el final del texto;
    - y la palabra previa a la puntuación no es una abreviatura conocida
      (solo se comprueba cuando sigue una mayúscula).

    Lo que quede sin puntuación final sale como última oración.
    Función pura: cada llamada empieza de cero.
    """
    length  = len(text)
    current: list[str] = []
    i = 0

    while i < length:
        char = text[i]
        current.append(char)

        if char in _SENTENCE_ENDERS:
            next_index = i + 1
            while next_index < length and text[next_index].isspace():
                next_index += 1

            if next_index >= length:
                # Solo quedan espacios: fin de texto
                sentence = "".join(current).strip()
                if sentence:
                    yield sentence
                return

            if text[next_index].isupper():
                if _word_before(current) in abbreviations:
                    i += 1
                    continue

                sentence = "".join(current).strip()
                if sentence:
                    yield sentence
                current = []
                i = next_index
                continue

        i += 1

    remainder = "".join(current).strip()
    if remainder:
        yield remainder


def segment_sentences(
    text: str,
    abbreviations: frozenset[str] = DEFAULT_ABBREVIATIONS,
) -> list[str]:
    """Versión materializada de iter_sentences."""
    return list(iter_sentences(text, abbreviations))


def _word_before(current: list[str]) -> str:
    tokens = "".join(current).strip().split()
    if not tokens:
        return ""
    word = tokens[-1].lower()
    if word and word[-1] in _SENTENCE_ENDERS:
        word = word[:-1]
    return word
