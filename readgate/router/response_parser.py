# router/response_parser.py
import json
import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

# Captura JSON dentro de bloques ```json ... ``` o ``` ... ```
_MARKDOWN_JSON_RE = re.compile(
    r"```(?:json)?\s*(\{.*?\})\s*```",
    re.DOTALL,
)

# Desde la primera llave hasta la última
_BARE_JSON_RE = re.compile(r"\{.*\}", re.DOTALL)


class ResponseFormatError(ValueError):
    """El texto del modelo no contiene un objeto JSON parseable."""
    pass


def extract_json_object(raw_text: str, model_name: str) -> dict:
    """
    Extrae el objeto JSON de la respuesta del modelo.

    Estrategia:
    1. JSON directo (el camino feliz)
    2. JSON dentro de bloque markdown
    3. Primer objeto JSON en el texto libre

    A diferencia de un parser tolerante, aquí no hay recuperación de
    emergencia: si nada parsea se lanza ResponseFormatError.
    """
    text = (raw_text or "").strip()

    result = _try_parse(text)
    if result is not None:
        return result

    match = _MARKDOWN_JSON_RE.search(text)
    if match:
        result = _try_parse(match.group(1))
        if result is not None:
            logger.warning(
                "%s envolvió la respuesta en markdown, considera reforzar el prompt",
                model_name,
            )
            return result

    match = _BARE_JSON_RE.search(text)
    if match:
        result = _try_parse(match.group(0))
        if result is not None:
            logger.warning("%s devolvió JSON con texto extra alrededor", model_name)
            return result

    logger.error("%s devolvió respuesta no parseable (%d caracteres)", model_name, len(text))
    raise ResponseFormatError(f"{model_name} no devolvió un objeto JSON")


def _try_parse(text: str) -> Optional[dict]:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None
