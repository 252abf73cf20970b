import pytest

from readgate.processor.chunker.text_stats import count_words, iter_sentences, segment_sentences


# ---------------------------------------------------------------------------
# count_words
# ---------------------------------------------------------------------------

class TestCountWords:

    @pytest.mark.parametrize("text,expected", [
        ("", 0),
        ("   \n\t ", 0),
        ("Hola mundo", 2),
        ("Hello, world!", 2),
        ("don't", 2),
        ("alpha-beta-gamma", 3),
        ("Ñandú, café y pingüino.", 4),
        ("  espacios   múltiples\n\nentre  palabras ", 4),
    ])
    def test_cuenta_tokens_tras_quitar_puntuacion(self, text, expected):
        assert count_words(text) == expected

    def test_puntuacion_sola_no_cuenta(self):
        assert count_words("... !!! ???") == 0

    def test_numeros_cuentan_como_palabras(self):
        assert count_words("Capítulo 12 de 30") == 4


# ---------------------------------------------------------------------------
# Segmentación de oraciones
# ---------------------------------------------------------------------------

class TestSegmentSentences:

    def test_separa_en_mayuscula_tras_punto(self):
        assert segment_sentences("Primera frase. Segunda frase.") == [
            "Primera frase.",
            "Segunda frase.",
        ]

    def test_abreviatura_no_cierra_oracion(self):
        text = "Mr. Smith went home. He slept."
        assert segment_sentences(text) == ["Mr. Smith went home.", "He slept."]

    def test_abreviatura_con_puntos_internos(self):
        text = "Bring tools, e.g. Hammers and nails. Then leave."
        assert segment_sentences(text) == [
            "Bring tools, e.g. Hammers and nails.",
            "Then leave.",
        ]

    def test_minuscula_tras_punto_no_separa(self):
        assert segment_sentences("El valor es 3.5 hoy. y sigue igual.") == [
            "El valor es 3.5 hoy. y sigue igual.",
        ]

    def test_puntos_suspensivos_y_pregunta(self):
        assert segment_sentences("Wait... what? Yes!") == ["Wait... what?", "Yes!"]

    def test_resto_sin_puntuacion_es_ultima_oracion(self):
        assert segment_sentences("Una frase. Y otra sin cierre") == [
            "Una frase.",
            "Y otra sin cierre",
        ]

    def test_texto_vacio_no_produce_oraciones(self):
        assert segment_sentences("") == []
        assert segment_sentences("   ") == []

    def test_espacios_finales_tras_puntuacion(self):
        assert segment_sentences("Fin del texto.   \n") == ["Fin del texto."]

    def test_abreviaturas_personalizadas(self):
        text = "Ver cap. Siguiente tema."
        assert segment_sentences(text) == ["Ver cap.", "Siguiente tema."]
        assert segment_sentences(text, frozenset({"cap"})) == ["Ver cap. Siguiente tema."]

    def test_iter_sentences_es_perezoso_y_reiniciable(self):
        text = "Uno. Dos. Tres."
        first = iter_sentences(text)
        assert next(first) == "Uno."
        # Una llamada nueva empieza de cero
        assert list(iter_sentences(text)) == ["Uno.", "Dos.", "Tres."]
