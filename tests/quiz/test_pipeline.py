# tests/quiz/test_pipeline.py
import json
from unittest.mock import MagicMock

import pytest

from readgate.context.reader_state import Entity, ReaderState
from readgate.processor.models import Chunk
from readgate.quiz.cache import make_cache_key
from readgate.quiz.errors import (
    EmptyWindowError,
    ModelCallError,
    QuizInputError,
    SchemaValidationError,
)
from readgate.quiz.pipeline import PipelineStage, QuizPipeline
from readgate.router.models import ModelResponse

WINDOW_TEXT = "Mara sube a la torre y repara la antena antes del amanecer."

STEP1_JSON = {
    "facts": [
        {"id": "F1", "fact": "Mara repara la antena", "evidence": {"type": "quote", "text": "repara la antena"}},
        {"id": "F2", "fact": "Ocurre antes del amanecer", "evidence": {"type": "quote", "text": "antes del amanecer"}},
    ],
    "state_update": {
        "entities_add":   [{"name": "Mara", "desc": "ingeniera de radio"}],
        "summary_append": "Mara repara la antena.",
    },
    "notes": "",
}

STEP2_JSON = {
    "questions": [
        {
            "id":             "Q1",
            "question":       "¿Qué repara Mara?",
            "choices":        {"A": "La radio", "B": "La antena", "C": "El generador"},
            "correct_choice": "B",
            "fact_ids":       ["F1"],
            "evidence":       [{"fact_id": "F1", "quote": "repara la antena"}],
        }
    ]
}


def _response(payload, model: str = "claude-haiku") -> ModelResponse:
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return ModelResponse(text=text, model_used=model, tokens_input=100, tokens_output=50)


def make_router(*responses):
    router = MagicMock()
    router.complete.side_effect = list(responses)
    return router


def _window():
    return [Chunk(index=10, text=WINDOW_TEXT, word_count=12)]


def _run(pipeline, **overrides):
    kwargs = {
        "state":           ReaderState.empty(),
        "window_chunks":   _window(),
        "question_count":  1,
        "model":           "claude-haiku",
        "chapter_number":  "book-1:section-0",
        "paragraph_index": 10,
        "question_number": 10,
        "now_ms":          1000,
    }
    kwargs.update(overrides)
    return pipeline.generate_gate_quiz(**kwargs)


class TestCaminoFeliz:

    def test_genera_facts_y_preguntas(self):
        pipeline = QuizPipeline(make_router(_response(STEP1_JSON), _response(STEP2_JSON)))

        result = _run(pipeline)

        assert [f.id for f in result.facts.facts] == ["F1", "F2"]
        assert result.mcq.questions[0].correct_choice == "B"

    def test_calcula_el_estado_siguiente(self):
        previous = ReaderState(
            entities      = (Entity("Klein", "supervisor", last_seen_ms=500),),
            prior_summary = "Llega la tormenta.",
        )
        pipeline = QuizPipeline(make_router(_response(STEP1_JSON), _response(STEP2_JSON)))

        result = _run(pipeline, state=previous)

        assert [e.name for e in result.next_state.entities] == ["Mara", "Klein"]
        assert result.next_state.entities[0].last_seen_ms == 1000
        assert result.next_state.prior_summary == "Llega la tormenta. Mara repara la antena."

    def test_paso_2_no_ve_la_ventana(self):
        router   = make_router(_response(STEP1_JSON), _response(STEP2_JSON))
        pipeline = QuizPipeline(router)

        _run(pipeline, question_count=2)

        step1_user = router.complete.call_args_list[0].args[1]
        step2_user = router.complete.call_args_list[1].args[1]
        assert WINDOW_TEXT in step1_user
        assert "(id: c10)" in step1_user
        assert WINDOW_TEXT not in step2_user
        assert "Mara repara la antena" in step2_user
        assert "Generate 2 multiple-choice" in step2_user

    def test_usa_el_modelo_pedido(self):
        router   = make_router(_response(STEP1_JSON), _response(STEP2_JSON))
        pipeline = QuizPipeline(router)

        _run(pipeline, model="gemini-flash")

        assert all(call.args[2] == "gemini-flash" for call in router.complete.call_args_list)

    def test_acepta_json_envuelto_en_markdown(self):
        wrapped  = f"```json\n{json.dumps(STEP1_JSON)}\n```"
        pipeline = QuizPipeline(make_router(_response(wrapped), _response(STEP2_JSON)))

        result = _run(pipeline)

        assert len(result.facts.facts) == 2


class TestCache:

    def test_mismas_coordenadas_no_vuelven_a_llamar(self):
        router   = make_router(_response(STEP1_JSON), _response(STEP2_JSON))
        pipeline = QuizPipeline(router)

        first  = _run(pipeline)
        second = _run(pipeline)

        assert second is first
        assert router.complete.call_count == 2

    def test_otro_modelo_es_otra_entrada(self):
        router = make_router(
            _response(STEP1_JSON), _response(STEP2_JSON),
            _response(STEP1_JSON), _response(STEP2_JSON),
        )
        pipeline = QuizPipeline(router)

        _run(pipeline, model="claude-haiku")
        _run(pipeline, model="gemini-flash")

        assert router.complete.call_count == 4
        assert len(pipeline.cache) == 2

    def test_cache_deshabilitado(self):
        router = make_router(
            _response(STEP1_JSON), _response(STEP2_JSON),
            _response(STEP1_JSON), _response(STEP2_JSON),
        )
        pipeline = QuizPipeline(router)

        _run(pipeline, enable_cache=False)
        _run(pipeline, enable_cache=False)

        assert router.complete.call_count == 4
        assert len(pipeline.cache) == 0

    def test_guarda_con_la_clave_de_coordenadas(self):
        pipeline = QuizPipeline(make_router(_response(STEP1_JSON), _response(STEP2_JSON)))

        _run(pipeline)

        key = make_cache_key("claude-haiku", 1, "book-1:section-0", 10, 10)
        assert key in pipeline.cache


class TestErrores:

    def test_ventana_vacia(self):
        router   = make_router()
        pipeline = QuizPipeline(router)

        with pytest.raises(EmptyWindowError) as exc:
            _run(pipeline, window_chunks=[])

        assert exc.value.stage == "pending"
        router.complete.assert_not_called()

    @pytest.mark.parametrize("count", [0, 5])
    def test_question_count_fuera_de_rango(self, count):
        router = make_router()

        with pytest.raises(QuizInputError):
            _run(QuizPipeline(router), question_count=count)

        router.complete.assert_not_called()

    def test_paso_1_invalido(self):
        pipeline = QuizPipeline(make_router(_response({"facts": []})))

        with pytest.raises(SchemaValidationError) as exc:
            _run(pipeline)

        assert exc.value.step == "step1"
        assert exc.value.stage == "step1_called"

    def test_paso_2_invalido_no_cachea(self):
        bad_step2 = {"questions": [dict(STEP2_JSON["questions"][0], correct_choice="D")]}
        pipeline  = QuizPipeline(make_router(_response(STEP1_JSON), _response(bad_step2)))

        with pytest.raises(SchemaValidationError) as exc:
            _run(pipeline)

        assert exc.value.step == "step2"
        assert len(pipeline.cache) == 0

    def test_cuarta_opcion_en_paso_2_no_cachea(self):
        question  = dict(STEP2_JSON["questions"][0])
        question["choices"] = {"A": "La radio", "B": "La antena", "C": "El generador", "D": "La torre"}
        pipeline  = QuizPipeline(make_router(_response(STEP1_JSON), _response({"questions": [question]})))

        with pytest.raises(SchemaValidationError) as exc:
            _run(pipeline)

        assert exc.value.step == "step2"
        assert len(pipeline.cache) == 0

    def test_respuesta_sin_json(self):
        pipeline = QuizPipeline(make_router(_response("No puedo ayudar con eso.")))

        with pytest.raises(SchemaValidationError):
            _run(pipeline)

    def test_error_del_router_conserva_la_causa(self):
        cause    = ConnectionError("timeout")
        pipeline = QuizPipeline(make_router(cause))

        with pytest.raises(ModelCallError) as exc:
            _run(pipeline)

        assert exc.value.__cause__ is cause
        assert exc.value.stage == "pending"

    def test_error_en_paso_2(self):
        pipeline = QuizPipeline(make_router(_response(STEP1_JSON), RuntimeError("caído")))

        with pytest.raises(ModelCallError) as exc:
            _run(pipeline)

        assert exc.value.stage == "step1_validated"
        assert len(pipeline.cache) == 0


class TestEtapas:

    def test_cada_ejecucion_lleva_su_propia_etapa(self):
        router = make_router(
            _response(STEP1_JSON), RuntimeError("caído"),
            ConnectionError("timeout"),
        )
        pipeline = QuizPipeline(router)

        with pytest.raises(ModelCallError) as first:
            _run(pipeline, paragraph_index=0)
        with pytest.raises(ModelCallError) as second:
            _run(pipeline, paragraph_index=5)

        assert first.value.stage == PipelineStage.STEP1_VALIDATED.value
        assert second.value.stage == PipelineStage.PENDING.value

    def test_el_pipeline_no_guarda_etapa_compartida(self):
        pipeline = QuizPipeline(make_router(_response(STEP1_JSON), _response(STEP2_JSON)))
        _run(pipeline)
        assert not hasattr(pipeline, "stage")
