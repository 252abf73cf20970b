# tests/processor/parsers/test_epub_parser.py
from unittest.mock import MagicMock

import pytest
from ebooklib import epub

from readgate.processor.parsers.epub_parser import EpubParser
from readgate.processor.parsers.factory import ParserFactory, UnsupportedFormatError


def _write_epub(path, chapters, title="El libro de prueba", author="Autora", language="es"):
    """Construye un EPUB mínimo con ebooklib. chapters: [(titulo, html_body)]."""
    book = epub.EpubBook()
    book.set_identifier("readgate-test")
    book.set_title(title)
    book.set_language(language)
    book.add_author(author)

    items = []
    for i, (chapter_title, body) in enumerate(chapters, start=1):
        item = epub.EpubHtml(title=chapter_title, file_name=f"chap_{i}.xhtml", lang=language)
        item.content = f"<html><body>{body}</body></html>"
        book.add_item(item)
        items.append(item)

    book.toc = [epub.Link(item.file_name, item.title, f"chap{i}") for i, item in enumerate(items, 1)]
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ["nav", *items]

    epub.write_epub(str(path), book)
    return path


@pytest.fixture
def epub_file(tmp_path):
    return _write_epub(
        tmp_path / "libro.epub",
        [
            ("Capítulo 1", "<h1>Capítulo 1</h1><p>Primer párrafo.</p><p>Segundo &amp; último.</p>"),
            ("Capítulo 2", "<p>Tercer párrafo.</p><ul><li>Un ítem</li></ul>"),
        ],
    )


class TestEpubParser:

    def test_can_handle_por_extension(self):
        parser = EpubParser()
        assert parser.can_handle("libro.epub")
        assert parser.can_handle("LIBRO.EPUB")
        assert not parser.can_handle("libro.pdf")

    def test_metadata(self, epub_file):
        book = EpubParser().parse(str(epub_file))
        assert book.title == "El libro de prueba"
        assert book.author == "Autora"
        assert book.language == "es"
        assert book.source_path == str(epub_file)

    def test_parrafos_en_orden_con_indices_globales(self, epub_file):
        book = EpubParser().parse(str(epub_file))
        texts = [p.text for p in book.paragraphs]

        assert "Primer párrafo." in texts
        assert "Segundo & último." in texts
        assert texts.index("Primer párrafo.") < texts.index("Tercer párrafo.")
        assert [p.index for p in book.paragraphs] == list(range(len(book.paragraphs)))

    def test_parrafo_conserva_su_html(self, epub_file):
        book = EpubParser().parse(str(epub_file))
        first = next(p for p in book.paragraphs if p.text == "Primer párrafo.")
        assert first.html == "<p>Primer párrafo.</p>"

    def test_secciones_con_titulo_del_toc(self, epub_file):
        book = EpubParser().parse(str(epub_file))
        titles = [r.title for r in book.section_ranges]

        assert "Capítulo 1" in titles
        assert "Capítulo 2" in titles

    def test_rangos_de_seccion_cubren_sus_parrafos(self, epub_file):
        book = EpubParser().parse(str(epub_file))
        chapter_2 = next(r for r in book.section_ranges if r.title == "Capítulo 2")
        covered = [
            p.text for p in book.paragraphs
            if chapter_2.start_paragraph_index <= p.index <= chapter_2.end_paragraph_index
        ]
        assert covered == ["Tercer párrafo.", "Un ítem"]

    def test_seccion_sin_texto_se_descarta(self, tmp_path):
        path = _write_epub(
            tmp_path / "portada.epub",
            [("Portada", "<div><img src='cover.png'/></div>"), ("Uno", "<p>Texto.</p>")],
        )
        book = EpubParser().parse(str(path))
        assert all(s.title != "Portada" for s in book.sections)
        assert [p.text for p in book.paragraphs][-1] == "Texto."


class TestParserFactory:

    def test_parse_file_epub(self, epub_file):
        book = ParserFactory.parse_file(str(epub_file))
        assert book.title == "El libro de prueba"

    def test_archivo_inexistente(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ParserFactory().parse(str(tmp_path / "no_existe.epub"))

    def test_formato_no_soportado(self, tmp_path):
        f = tmp_path / "libro.pdf"
        f.write_bytes(b"%PDF-1.4")
        with pytest.raises(UnsupportedFormatError):
            ParserFactory().parse(str(f))

    def test_parser_registrado_tiene_prioridad(self, tmp_path, epub_file):
        custom = MagicMock()
        custom.can_handle.return_value = True
        custom.parse.return_value = "parseado"

        factory = ParserFactory()
        factory.register(custom, {".fb2"})

        assert factory.parse(str(epub_file)) == "parseado"
        assert ".fb2" in factory.supported_extensions()
