# router/claude.py
import logging
from typing import TYPE_CHECKING, Optional

import anthropic

from readgate.router.base import BaseModel
from readgate.router.models import ModelConfig, ModelResponse

if TYPE_CHECKING:
    from readgate.storage.repository import Repository

logger = logging.getLogger(__name__)


class ClaudeAdapter(BaseModel):

    def __init__(self, config: ModelConfig, repo: "Repository", client=None):
        self._config = config
        self._repo   = repo
        self._client = client or anthropic.Anthropic(
            api_key = config.api_key,
            timeout = config.timeout_seconds,
        )

    @property
    def name(self) -> str:
        return self._config.name

    def is_available(self) -> bool:
        used = self._repo.get_token_usage_today(self.name)
        return used < self._config.daily_token_limit

    def complete(
        self,
        system_prompt: str,
        user_prompt:   str,
        model:         Optional[str] = None,
    ) -> ModelResponse:
        model_id = model or self.name
        try:
            response = self._client.messages.create(
                model       = model_id,
                max_tokens  = self._config.max_tokens,
                temperature = self._config.temperature,
                system      = system_prompt,
                messages    = [{"role": "user", "content": user_prompt}],
            )
        except anthropic.APIError as e:
            logger.warning("Claude falló con %s: %s", model_id, e)
            raise

        raw_text      = "".join(
            block.text for block in response.content if getattr(block, "type", "text") == "text"
        )
        tokens_input  = response.usage.input_tokens
        tokens_output = response.usage.output_tokens

        # Reportar tokens reales al storage
        self._repo.add_token_usage(self.name, tokens_input + tokens_output)

        return ModelResponse(
            text          = raw_text,
            model_used    = model_id,
            tokens_input  = tokens_input,
            tokens_output = tokens_output,
        )
