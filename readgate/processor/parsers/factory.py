import os
from readgate.processor.models import ParsedBook
from .base import BaseParser
from .epub_parser import EpubParser, _SUPPORTED_EXTENSIONS as _EPUB_EXTENSIONS


class UnsupportedFormatError(Exception):
    """Se lanza cuando ningún parser registrado puede manejar el archivo."""
    pass


class ParserFactory:
    """
    Registro central de parsers.

    Uso básico:
        book = ParserFactory.parse_file("/ruta/al/libro.epub")

    Uso con parser registrado externamente:
        factory = ParserFactory()
        factory.register(MiParserCustom())
        book = factory.parse("/ruta/al/libro.fb2")

    Los parsers se evalúan en orden de registro.
    El primero que responda True a can_handle() gana.
    """

    def __init__(self):
        self._parsers: list[BaseParser] = [EpubParser()]
        self._extensions: set[str] = set(_EPUB_EXTENSIONS)

    def register(self, parser: BaseParser, extensions: set[str] | None = None) -> None:
        """Registra un parser adicional al inicio de la lista (mayor prioridad)."""
        self._parsers.insert(0, parser)
        self._extensions.update(extensions or set())

    def parse(self, file_path: str) -> ParsedBook:
        """
        Detecta el parser correcto para el archivo y devuelve un ParsedBook.

        Raises:
            FileNotFoundError: si el archivo no existe.
            UnsupportedFormatError: si ningún parser puede manejarlo.
        """
        if not os.path.isfile(file_path):
            raise FileNotFoundError(f"Archivo no encontrado: {file_path}")

        for parser in self._parsers:
            if parser.can_handle(file_path):
                return parser.parse(file_path)

        ext = os.path.splitext(file_path)[1].lower()
        raise UnsupportedFormatError(
            f"Formato '{ext}' no soportado. "
            f"Formatos disponibles: {self.supported_extensions()}"
        )

    def supported_extensions(self) -> str:
        return ", ".join(sorted(self._extensions))

    @classmethod
    def parse_file(cls, file_path: str) -> ParsedBook:
        """Shortcut: ParserFactory.parse_file('libro.epub')"""
        return cls().parse(file_path)
