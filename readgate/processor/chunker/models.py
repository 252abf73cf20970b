from dataclasses import dataclass, field


# Abreviaturas que no cierran oración aunque terminen en punto
DEFAULT_ABBREVIATIONS: frozenset[str] = frozenset({
    "mr", "mrs", "ms", "dr", "prof", "sr", "jr", "vs", "etc",
    "e.g", "i.e", "a.m", "p.m", "am", "pm",
    "vol", "no", "pp", "ed", "eds",
    "inc", "ltd", "corp", "co",
})


@dataclass(frozen=True)
class ChunkConfig:
    """Configuracion del chunker. Centralizada y explicita."""
    min_words:    int = 60
    max_words:    int = 120
    target_words: int = 90 # punto ideal de palabras

    # Penalización por dejar un resto menor que min_words tras un corte
    orphan_penalty: int = 1000

    abbreviations: frozenset[str] = field(default_factory=lambda: DEFAULT_ABBREVIATIONS)

    def is_in_band(self, word_count: int) -> bool:
        return self.min_words <= word_count <= self.max_words
