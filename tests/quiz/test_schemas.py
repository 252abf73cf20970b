# tests/quiz/test_schemas.py
import pytest
from pydantic import ValidationError

from readgate.context.reader_state import EntityAdd
from readgate.quiz.schemas import FactsResponse, McqResponse


def _fact(i: int = 1) -> dict:
    return {
        "id":       f"F{i}",
        "fact":     f"Hecho {i}",
        "evidence": {"type": "quote", "text": f"cita {i}"},
    }


def _question(i: int = 1, **overrides) -> dict:
    question = {
        "id":             f"Q{i}",
        "question":       f"¿Pregunta {i}?",
        "choices":        {"A": "uno", "B": "dos", "C": "tres"},
        "correct_choice": "B",
        "fact_ids":       ["F1"],
        "evidence":       [{"fact_id": "F1", "quote": "cita 1"}],
    }
    question.update(overrides)
    return question


class TestFactsResponse:

    def test_valores_por_defecto(self):
        parsed = FactsResponse.model_validate({"facts": [_fact()], "state_update": {}})
        assert parsed.state_update.entities_add == []
        assert parsed.state_update.summary_append == ""
        assert parsed.notes == ""

    @pytest.mark.parametrize("count", [0, 7])
    def test_entre_uno_y_seis_facts(self, count):
        with pytest.raises(ValidationError):
            FactsResponse.model_validate({
                "facts":        [_fact(i) for i in range(count)],
                "state_update": {},
            })

    def test_evidencia_debe_ser_cita(self):
        fact = _fact()
        fact["evidence"]["type"] = "paraphrase"
        with pytest.raises(ValidationError):
            FactsResponse.model_validate({"facts": [fact], "state_update": {}})

    def test_state_update_es_obligatorio(self):
        with pytest.raises(ValidationError):
            FactsResponse.model_validate({"facts": [_fact()]})

    def test_convierte_a_state_update(self):
        parsed = FactsResponse.model_validate({
            "facts": [_fact()],
            "state_update": {
                "entities_add":   [{"name": "Mara", "desc": "ingeniera"}],
                "summary_append": "Pasa algo.",
            },
        })
        update = parsed.state_update.to_state_update()
        assert update.entities_add == (EntityAdd("Mara", "ingeniera"),)
        assert update.summary_append == "Pasa algo."


class TestMcqResponse:

    def test_pregunta_valida(self):
        parsed = McqResponse.model_validate({"questions": [_question()]})
        assert parsed.questions[0].choices.B == "dos"
        assert parsed.questions[0].correct_choice == "B"

    def test_evidencia_por_defecto_vacia(self):
        question = _question()
        del question["evidence"]
        parsed = McqResponse.model_validate({"questions": [question]})
        assert parsed.questions[0].evidence == []

    @pytest.mark.parametrize("count", [0, 5])
    def test_entre_una_y_cuatro_preguntas(self, count):
        with pytest.raises(ValidationError):
            McqResponse.model_validate({"questions": [_question(i) for i in range(count)]})

    def test_respuesta_correcta_fuera_de_abc(self):
        with pytest.raises(ValidationError):
            McqResponse.model_validate({"questions": [_question(correct_choice="D")]})

    def test_faltan_opciones(self):
        with pytest.raises(ValidationError):
            McqResponse.model_validate({"questions": [_question(choices={"A": "x", "B": "y"})]})

    def test_al_menos_un_fact_id(self):
        with pytest.raises(ValidationError):
            McqResponse.model_validate({"questions": [_question(fact_ids=[])]})

    def test_cuarta_opcion_se_rechaza(self):
        choices = {"A": "uno", "B": "dos", "C": "tres", "D": "cuatro"}
        with pytest.raises(ValidationError):
            McqResponse.model_validate({"questions": [_question(choices=choices)]})

    def test_campos_desconocidos_en_la_pregunta(self):
        with pytest.raises(ValidationError):
            McqResponse.model_validate({"questions": [_question(difficulty="alta")]})


class TestCamposExtra:

    def test_fact_con_campo_extra(self):
        fact = _fact()
        fact["confidence"] = 0.9
        with pytest.raises(ValidationError):
            FactsResponse.model_validate({"facts": [fact], "state_update": {}})

    def test_state_update_con_campo_extra(self):
        with pytest.raises(ValidationError):
            FactsResponse.model_validate({
                "facts":        [_fact()],
                "state_update": {"entities_remove": ["Mara"]},
            })

    def test_entidad_con_campo_extra(self):
        with pytest.raises(ValidationError):
            FactsResponse.model_validate({
                "facts":        [_fact()],
                "state_update": {"entities_add": [{"name": "Mara", "desc": "x", "age": 30}]},
            })
