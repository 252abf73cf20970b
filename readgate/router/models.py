# router/models.py
from dataclasses import dataclass
from typing import Optional


@dataclass
class ModelResponse:
    text:          str
    model_used:    str
    tokens_input:  int
    tokens_output: int


@dataclass
class ModelConfig:
    """
    Configuración de un modelo individual.
    Se carga desde ~/.readgate/config.yaml.
    name es el id que se envía al proveedor y el que se usa en quota_usage.
    """
    name:              str
    provider:          str
    priority:          int
    daily_token_limit: int
    api_key:           Optional[str] = None
    timeout_seconds:   int = 60
    temperature:       float = 0.2
    max_tokens:        int = 2048
