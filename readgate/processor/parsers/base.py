from abc import ABC, abstractmethod
from readgate.processor.models import ParsedBook


class BaseParser(ABC):
    @abstractmethod
    def can_handle(self, file_path: str) -> bool:
        """Devuelve True si el parser puede manejar el archivo"""
        raise NotImplementedError

    @abstractmethod
    def parse(self, file_path: str) -> ParsedBook:
        """Parsea el archivo y devuelve un ParsedBook limpio"""
        raise NotImplementedError
