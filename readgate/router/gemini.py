# router/gemini.py
import logging
from typing import TYPE_CHECKING, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from readgate.router.base import BaseModel
from readgate.router.models import ModelConfig, ModelResponse

if TYPE_CHECKING:
    from readgate.storage.repository import Repository

logger = logging.getLogger(__name__)


class GeminiAdapter(BaseModel):

    def __init__(self, config: ModelConfig, repo: "Repository"):
        self._config = config
        self._repo   = repo
        genai.configure(api_key=config.api_key)

    @property
    def name(self) -> str:
        return self._config.name

    def is_available(self) -> bool:
        used = self._repo.get_token_usage_today(self.name)
        return used < self._config.daily_token_limit

    def _build_model(self, model_id: str, system_prompt: str):
        return genai.GenerativeModel(
            model_name         = model_id,
            system_instruction = system_prompt,
            generation_config  = genai.GenerationConfig(
                temperature        = self._config.temperature,
                max_output_tokens  = self._config.max_tokens,
                response_mime_type = "application/json",   # Gemini soporta forzar JSON nativo
            ),
        )

    def complete(
        self,
        system_prompt: str,
        user_prompt:   str,
        model:         Optional[str] = None,
    ) -> ModelResponse:
        model_id = model or self.name
        try:
            response = self._build_model(model_id, system_prompt).generate_content(
                user_prompt,
                request_options={"timeout": self._config.timeout_seconds},
            )
        except google_exceptions.GoogleAPIError as e:
            logger.warning("Gemini falló con %s: %s", model_id, e)
            raise

        raw_text      = response.text
        # Gemini devuelve tokens en usage_metadata
        tokens_input  = response.usage_metadata.prompt_token_count
        tokens_output = response.usage_metadata.candidates_token_count

        self._repo.add_token_usage(self.name, tokens_input + tokens_output)

        return ModelResponse(
            text          = raw_text,
            model_used    = model_id,
            tokens_input  = tokens_input,
            tokens_output = tokens_output,
        )
