# quiz/prompt_builder.py
import json
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from readgate.context.reader_state import ReaderState
from readgate.processor.models import Chunk

_TOKEN_RE = re.compile(r"\{\{(\w+)\}\}")

PROMPT_FILES = (
    "step1.system.md",
    "step1.user.md",
    "step2.system.md",
    "step2.user.md",
)


_STEP1_SYSTEM = """\
You are an extraction engine. Use ONLY the WINDOW as the source of facts. \
STATE is optional hints for resolving references only. Do not add outside knowledge.
"""

_STEP1_USER = """\
Task:
1) Extract 3-6 key facts important for comprehension of the WINDOW.
2) Propose a compact state_update (entities + optional summary) for future reference resolution.

Rules for facts:
- Each fact MUST be directly supported by the WINDOW.
- Evidence MUST be an exact quote (<= 25 words) from the WINDOW.
- You MAY use STATE only to resolve ambiguous references (e.g., who "she" refers to), but MUST NOT introduce facts from STATE.
- If ambiguity remains, keep the fact neutral and mention ambiguity in notes.

Rules for state_update:
- entities_add: include only NEW or newly-disambiguated entities introduced/clarified in the WINDOW.
- Each entity description must be 3-8 words.
- summary_append: OPTIONAL; 1-2 sentences summarizing the WINDOW only (no spoilers).

Output JSON only, with this exact structure:
{"facts": [{"id": "F1", "fact": "...", "evidence": {"type": "quote", "text": "..."}}],
 "state_update": {"entities_add": [{"name": "...", "desc": "..."}], "summary_append": "..."},
 "notes": "..."}

STATE (optional hints; NOT evidence):
{{STATE_JSON}}

WINDOW:
{{WINDOW_TEXT}}
"""

_STEP2_SYSTEM = """\
You are a question writer. Generate questions ONLY from the provided FACTS JSON. \
Do not use any other context. Do not introduce new information.
"""

_STEP2_USER = """\
Task:
Generate {{QUESTION_COUNT}} multiple-choice comprehension questions from the FACTS below.

Rules:
- Use ONLY the facts provided (by id).
- Each question must have EXACTLY 3 answer choices (A, B, C).
- EXACTLY ONE choice must be correct.
- Wrong choices must be plausible but contradicted or unsupported by the facts.
- Provide correct_choice as "A" or "B" or "C".
- Evidence must copy the evidence quote(s) from the referenced facts.

Output JSON only, with this exact structure:
{"questions": [{"id": "Q1", "question": "...", "choices": {"A": "...", "B": "...", "C": "..."},
  "correct_choice": "A", "fact_ids": ["F1"], "evidence": [{"fact_id": "F1", "quote": "..."}]}]}

FACTS:
{{FACTS_JSON}}
"""


@dataclass(frozen=True)
class PromptTemplates:
    """Las cuatro plantillas del pipeline. Los tokens van como {{NOMBRE}}."""
    step1_system: str = _STEP1_SYSTEM
    step1_user:   str = _STEP1_USER
    step2_system: str = _STEP2_SYSTEM
    step2_user:   str = _STEP2_USER

    @classmethod
    def from_directory(cls, prompts_dir: str) -> "PromptTemplates":
        """
        Carga las plantillas desde un directorio con los cuatro .md.
        Si falta alguno se lanza FileNotFoundError: no se mezclan
        plantillas del disco con las de por defecto.
        """
        base = Path(prompts_dir)
        missing = [name for name in PROMPT_FILES if not (base / name).is_file()]
        if missing:
            raise FileNotFoundError(
                f"Faltan plantillas en {base}: {', '.join(missing)}"
            )

        step1_system, step1_user, step2_system, step2_user = (
            (base / name).read_text(encoding="utf-8") for name in PROMPT_FILES
        )
        return cls(
            step1_system = step1_system,
            step1_user   = step1_user,
            step2_system = step2_system,
            step2_user   = step2_user,
        )


def load_prompt_templates(prompts_dir: Optional[str] = None) -> PromptTemplates:
    """Plantillas de READGATE_PROMPTS_DIR si está definido; si no, las internas."""
    prompts_dir = prompts_dir or os.environ.get("READGATE_PROMPTS_DIR")
    if not prompts_dir:
        return PromptTemplates()
    return PromptTemplates.from_directory(prompts_dir)


# ------------------------------------------------------------------
# Render
# ------------------------------------------------------------------

def render_template(template: str, values: dict[str, str]) -> str:
    """Sustituye {{TOKEN}}. Un token sin valor se reemplaza por cadena vacía."""
    return _TOKEN_RE.sub(lambda m: values.get(m.group(1), ""), template)


def chunk_id(chunk: Chunk) -> str:
    return f"c{chunk.index}"


def render_window(chunks: Sequence[Chunk]) -> str:
    return "\n\n".join(
        f"- Chunk {position + 1} (id: {chunk_id(chunk)}):\n{chunk.text.strip()}"
        for position, chunk in enumerate(chunks)
    )


def render_state_hints(state: Optional[ReaderState]) -> str:
    """
    Proyección del estado que ve el modelo: sin lastSeenMs.
    Son pistas para resolver referencias, nunca evidencia.
    """
    state = state or ReaderState.empty()
    return json.dumps(
        {
            "section_title": state.section_title or "",
            "entities":      [{"name": e.name, "desc": e.desc} for e in state.entities],
            "prior_summary": state.prior_summary or "",
        },
        ensure_ascii=False,
        indent=2,
    )


def render_facts(facts: list[dict]) -> str:
    return json.dumps({"facts": facts}, ensure_ascii=False, indent=2)


def build_step1_prompts(
    templates: PromptTemplates,
    state:     Optional[ReaderState],
    window:    Sequence[Chunk],
) -> tuple[str, str]:
    """Devuelve (system, user) del paso 1."""
    user = render_template(templates.step1_user, {
        "STATE_JSON":  render_state_hints(state),
        "WINDOW_TEXT": render_window(window),
    })
    return templates.step1_system, user


def build_step2_prompts(
    templates:      PromptTemplates,
    facts:          list[dict],
    question_count: int,
) -> tuple[str, str]:
    """Devuelve (system, user) del paso 2. Solo facts: nada del texto original."""
    user = render_template(templates.step2_user, {
        "FACTS_JSON":     render_facts(facts),
        "QUESTION_COUNT": str(question_count),
    })
    return templates.step2_system, user
