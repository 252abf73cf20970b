# quiz/pipeline.py
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional, Sequence

from pydantic import ValidationError

from readgate.context.reader_state import ReaderState, apply_state_update
from readgate.processor.models import Chunk
from readgate.quiz.cache import QuizCache, make_cache_key
from readgate.quiz.errors import (
    EmptyWindowError,
    ModelCallError,
    QuizInputError,
    SchemaValidationError,
)
from readgate.quiz.prompt_builder import (
    PromptTemplates,
    build_step1_prompts,
    build_step2_prompts,
)
from readgate.quiz.schemas import FactsResponse, McqResponse
from readgate.router.response_parser import ResponseFormatError, extract_json_object

if TYPE_CHECKING:
    from readgate.router.router import Router

logger = logging.getLogger(__name__)

MIN_QUESTIONS = 1
MAX_QUESTIONS = 4


class PipelineStage(Enum):
    PENDING         = "pending"
    STEP1_CALLED    = "step1_called"
    STEP1_VALIDATED = "step1_validated"
    STEP2_CALLED    = "step2_called"
    STEP2_VALIDATED = "step2_validated"
    DONE            = "done"
    FAILED          = "failed"


@dataclass(frozen=True)
class GateQuizResult:
    facts:      FactsResponse
    mcq:        McqResponse
    next_state: ReaderState


class _StageTracker:
    """Etapa alcanzada por una ejecución. Cada llamada tiene el suyo."""

    def __init__(self):
        self.current = PipelineStage.PENDING

    def advance(self, stage: PipelineStage) -> None:
        logger.debug("Pipeline %s → %s", self.current.value, stage.value)
        self.current = stage

    def fail(self) -> str:
        """Marca FAILED y devuelve la última etapa alcanzada antes del fallo."""
        reached = self.current.value
        self.advance(PipelineStage.FAILED)
        return reached


class QuizPipeline:
    """
    Genera el quiz de un gate en dos llamadas al modelo:

      paso 1: ventana + estado → facts con cita textual + state_update
      paso 2: solo los facts   → preguntas A/B/C

    El paso 2 nunca ve el texto de la ventana, así las preguntas solo
    pueden apoyarse en facts con evidencia. El estado nuevo se calcula
    en cuanto valida el paso 1, pero solo se devuelve (y se cachea)
    si el pipeline completo termina bien.

    La etapa de cada ejecución vive en la propia llamada; si falla,
    queda en QuizGenerationError.stage.
    """

    def __init__(
        self,
        router:    "Router",
        prompts:   Optional[PromptTemplates] = None,
        cache:     Optional[QuizCache]       = None,
    ):
        self._router  = router
        self._prompts = prompts or PromptTemplates()
        self._cache   = cache if cache is not None else QuizCache()

    @property
    def cache(self) -> QuizCache:
        return self._cache

    def generate_gate_quiz(
        self,
        state:           Optional[ReaderState],
        window_chunks:   Sequence[Chunk],
        question_count:  int,
        model:           str,
        enable_cache:    bool          = True,
        chapter_number:  Optional[str] = None,
        paragraph_index: Optional[int] = None,
        question_number: Optional[int] = None,
        now_ms:          Optional[int] = None,
    ) -> GateQuizResult:
        run   = _StageTracker()
        state = state or ReaderState.empty()

        if not window_chunks:
            raise EmptyWindowError("La ventana del gate está vacía", stage=run.fail())
        if not MIN_QUESTIONS <= question_count <= MAX_QUESTIONS:
            raise QuizInputError(
                f"question_count debe estar entre {MIN_QUESTIONS} y {MAX_QUESTIONS}, "
                f"recibido {question_count}",
                stage=run.fail(),
            )

        cache_key = make_cache_key(
            model           = model,
            question_count  = question_count,
            chapter_number  = chapter_number,
            paragraph_index = paragraph_index,
            question_number = question_number,
        )
        if enable_cache:
            hit = self._cache.get(cache_key)
            if hit is not None:
                logger.debug("Cache hit %s", cache_key[:12])
                run.advance(PipelineStage.DONE)
                return hit

        # ── Paso 1: facts + state_update ─────────────────────────────────
        system, user = build_step1_prompts(self._prompts, state, window_chunks)
        raw = self._call(run, system, user, model)
        run.advance(PipelineStage.STEP1_CALLED)

        facts = self._validate(run, raw, model, FactsResponse, "step1")
        run.advance(PipelineStage.STEP1_VALIDATED)

        next_state = apply_state_update(
            state,
            facts.state_update.to_state_update(),
            now_ms=now_ms,
        )

        # ── Paso 2: preguntas a partir de los facts ──────────────────────
        system, user = build_step2_prompts(
            self._prompts,
            [fact.model_dump() for fact in facts.facts],
            question_count,
        )
        raw = self._call(run, system, user, model)
        run.advance(PipelineStage.STEP2_CALLED)

        mcq = self._validate(run, raw, model, McqResponse, "step2")
        run.advance(PipelineStage.STEP2_VALIDATED)

        result = GateQuizResult(facts=facts, mcq=mcq, next_state=next_state)
        if enable_cache:
            self._cache.set(cache_key, result)
        run.advance(PipelineStage.DONE)
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _call(self, run: _StageTracker, system: str, user: str, model: str) -> str:
        try:
            return self._router.complete(system, user, model).text
        except Exception as e:
            raise ModelCallError(f"Falló la llamada a {model}: {e}", stage=run.fail()) from e

    def _validate(self, run: _StageTracker, raw: str, model: str, schema, step: str):
        try:
            return schema.model_validate(extract_json_object(raw, model))
        except (ResponseFormatError, ValidationError) as e:
            raise SchemaValidationError(step, str(e), stage=run.fail()) from e
