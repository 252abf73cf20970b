import logging
import os
import re

import ebooklib
from ebooklib import epub

from readgate.processor.chunker.html_chunker import extract_plain_text
from readgate.processor.models import ParsedBook, ParsedSection, Paragraph, Section
from .base import BaseParser

logger = logging.getLogger(__name__)

_SUPPORTED_EXTENSIONS = {'.epub'}

# Elementos de bloque que cuentan como párrafo de lectura
_BLOCK_RE = re.compile(
    r'<(p|h[1-6]|li|blockquote)\b[^>]*>(.*?)</\1\s*>',
    re.IGNORECASE | re.DOTALL,
)
_BODY_RE = re.compile(r'<body\b[^>]*>(.*)</body\s*>', re.IGNORECASE | re.DOTALL)


class EpubParser(BaseParser):
    """
    Parser para archivos .epub.

    Estrategia de sección:
      - Cada ítem del spine del EPUB = una sección (así lo estructura el autor).
      - El título de la sección sale del TOC (NCX o nav) si el href aparece ahí.
      - Los párrafos se extraen de los elementos de bloque (<p>, <h1-6>,
        <li>, <blockquote>) y conservan su HTML original.
      - Ítems sin texto (portadas de imagen, separadores) se descartan.

    Dependencia: ebooklib  →  pip install ebooklib
    """

    def can_handle(self, file_path: str) -> bool:
        _, ext = os.path.splitext(file_path)
        return ext.lower() in _SUPPORTED_EXTENSIONS

    def parse(self, file_path: str) -> ParsedBook:
        book = epub.read_epub(file_path)

        toc_titles = self._flatten_toc(book.toc)
        sections: list[ParsedSection] = []
        paragraphs: list[Paragraph] = []
        ranges: list[Section] = []

        for item in self._spine_documents(book):
            html = self._decode(item.get_content())
            href = item.get_name()
            section_paragraphs = self._extract_paragraphs(html, start_index=len(paragraphs))

            if not section_paragraphs and not extract_plain_text(html):
                logger.debug("Sección %s sin texto, descartada", href)
                continue

            title = toc_titles.get(href) or toc_titles.get(os.path.basename(href))
            sections.append(ParsedSection(href=href, html=html, title=title))

            if section_paragraphs:
                ranges.append(Section(
                    title                 = title or href,
                    start_paragraph_index = section_paragraphs[0].index,
                    end_paragraph_index   = section_paragraphs[-1].index,
                ))
                paragraphs.extend(section_paragraphs)

        return ParsedBook(
            title          = self._extract_metadata(book, 'title') or self._fallback_title(file_path),
            source_path    = file_path,
            sections       = sections,
            paragraphs     = paragraphs,
            section_ranges = ranges,
            author         = self._extract_metadata(book, 'creator'),
            language       = (self._extract_metadata(book, 'language') or '').lower() or None,
        )

    # ------------------------------------------------------------------ #
    #  Helpers privados                                                    #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _spine_documents(book) -> list:
        """Documentos en orden de lectura. Sin spine, orden del manifest."""
        documents = []
        for entry in book.spine:
            idref = entry[0] if isinstance(entry, tuple) else entry
            item = book.get_item_with_id(idref)
            if item is not None and item.get_type() == ebooklib.ITEM_DOCUMENT:
                documents.append(item)

        if documents:
            return documents
        return list(book.get_items_of_type(ebooklib.ITEM_DOCUMENT))

    def _flatten_toc(self, toc, titles: dict[str, str] | None = None) -> dict[str, str]:
        """Mapea href (sin fragmento) → título, recorriendo el TOC anidado."""
        titles = {} if titles is None else titles

        for entry in toc or []:
            if isinstance(entry, tuple):
                # (epub.Section, [hijos]): el primer título visto gana
                self._register_toc_entry(titles, entry[0])
                self._flatten_toc(entry[1], titles)
            else:
                self._register_toc_entry(titles, entry)

        return titles

    @staticmethod
    def _register_toc_entry(titles: dict[str, str], entry) -> None:
        href  = getattr(entry, 'href', None)
        title = getattr(entry, 'title', None)
        if not href or not title:
            return
        key = href.split('#', 1)[0]
        titles.setdefault(key, str(title).strip())
        titles.setdefault(os.path.basename(key), str(title).strip())

    @staticmethod
    def _extract_paragraphs(html: str, start_index: int) -> list[Paragraph]:
        body_match = _BODY_RE.search(html)
        body = body_match.group(1) if body_match else html

        paragraphs: list[Paragraph] = []
        for match in _BLOCK_RE.finditer(body):
            text = extract_plain_text(match.group(2))
            if not text:
                continue
            paragraphs.append(Paragraph(
                index = start_index + len(paragraphs),
                text  = text,
                html  = match.group(0),
            ))
        return paragraphs

    @staticmethod
    def _extract_metadata(book, field: str) -> str | None:
        values = book.get_metadata('DC', field)
        if values:
            value = str(values[0][0]).strip()
            return value or None
        return None

    @staticmethod
    def _fallback_title(file_path: str) -> str:
        return os.path.splitext(os.path.basename(file_path))[0]

    @staticmethod
    def _decode(content: bytes) -> str:
        try:
            return content.decode('utf-8')
        except UnicodeDecodeError:
            return content.decode('latin-1')
