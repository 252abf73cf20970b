# context/reader_state.py
import json
import re
import time
from dataclasses import dataclass, field, replace
from typing import Optional

DEFAULT_MAX_ENTITIES = 20

_SUMMARY_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")


@dataclass(frozen=True)
class Entity:
    name:         str
    desc:         str
    last_seen_ms: Optional[int] = None


@dataclass(frozen=True)
class EntityAdd:
    """Entidad nueva o desambiguada que propone el modelo en el paso 1."""
    name: str
    desc: str


@dataclass(frozen=True)
class StateUpdate:
    """
    Lo que devuelve el paso 1 del pipeline junto a los facts.
    Solo contiene lo nuevo, no el estado completo.
    """
    entities_add:   tuple[EntityAdd, ...] = ()
    summary_append: str                   = ""


@dataclass(frozen=True)
class ReaderState:
    """
    Memoria acotada del lector: entidades vistas y resumen corto.
    Empieza vacía, se actualiza después de cada gate y se serializa
    a JSON para vivir en SQLite.
    """
    section_title: str                = ""
    entities:      tuple[Entity, ...] = field(default_factory=tuple)
    prior_summary: str                = ""

    @classmethod
    def empty(cls) -> "ReaderState":
        return cls()

    def is_empty(self) -> bool:
        return not self.entities and not self.prior_summary

    # ------------------------------------------------------------------
    # Serialización
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "section_title": self.section_title,
            "entities": [
                {"name": e.name, "desc": e.desc, "lastSeenMs": e.last_seen_ms}
                for e in self.entities
            ],
            "prior_summary": self.prior_summary,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)

    @classmethod
    def from_dict(cls, data: dict) -> "ReaderState":
        entities = tuple(
            Entity(
                name         = str(raw["name"]),
                desc         = str(raw.get("desc") or ""),
                last_seen_ms = raw.get("lastSeenMs", raw.get("last_seen_ms")),
            )
            for raw in data.get("entities") or []
        )
        return cls(
            section_title = data.get("section_title") or "",
            entities      = entities,
            prior_summary = data.get("prior_summary") or "",
        )

    @classmethod
    def from_json(cls, raw: str) -> "ReaderState":
        return cls.from_dict(json.loads(raw))


# ------------------------------------------------------------------
# Merge
# ------------------------------------------------------------------

def apply_state_update(
    prev:         ReaderState,
    update:       StateUpdate,
    max_entities: int           = DEFAULT_MAX_ENTITIES,
    now_ms:       Optional[int] = None,
) -> ReaderState:
    """
    Incorpora un StateUpdate al estado previo y devuelve un estado nuevo.
    Función pura: prev no se modifica.

    - Entidades por nombre sin distinguir mayúsculas. La grafía guardada
      primero es la canónica.
    - La descripción solo se reemplaza si la nueva es estrictamente más
      larga (más específica). last_seen_ms se refresca siempre que la
      entidad aparece en el update.
    - Se conservan las max_entities vistas más recientemente.
    - El resumen guarda las dos últimas oraciones de prior + append; sin
      append, o si el resultado queda vacío, se mantiene el anterior.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    merged: dict[str, Entity] = {}
    for entity in prev.entities:
        merged.setdefault(entity.name.lower(), entity)

    for add in update.entities_add:
        name = add.name.strip()
        if not name:
            continue

        key       = name.lower()
        next_desc = _normalize_whitespace(add.desc)
        current   = merged.get(key)

        if current is None:
            merged[key] = Entity(name=name, desc=next_desc, last_seen_ms=now_ms)
            continue

        should_replace = len(next_desc) > len(current.desc.strip())
        merged[key] = Entity(
            name         = current.name,
            desc         = next_desc if should_replace else current.desc,
            last_seen_ms = now_ms,
        )

    entities = list(merged.values())
    if update.entities_add or len(entities) > max_entities:
        # sorted es estable: empates conservan el orden previo
        entities = sorted(entities, key=lambda e: e.last_seen_ms or 0, reverse=True)
    entities = entities[:max_entities]

    summary  = prev.prior_summary or ""
    appended = update.summary_append.strip()
    if appended:
        prior   = summary.strip()
        summary = sentence_clamp_1_to_2(f"{prior} {appended}" if prior else appended) or summary

    return replace(
        prev,
        entities      = tuple(entities),
        prior_summary = summary,
    )


def sentence_clamp_1_to_2(text: str) -> str:
    """Se queda con las dos últimas oraciones, con espacios normalizados."""
    normalized = _normalize_whitespace(text)
    if not normalized:
        return ""
    parts = [p for p in _SUMMARY_SPLIT_RE.split(normalized) if p]
    return " ".join(parts[-2:]).strip()


def _normalize_whitespace(text: str) -> str:
    return " ".join((text or "").split())
