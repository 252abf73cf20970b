from readgate.router.router import Router, ModelUnavailableError
from readgate.router.base import BaseModel
from readgate.router.models import ModelResponse, ModelConfig
from readgate.router.response_parser import ResponseFormatError, extract_json_object
from readgate.router.config_loader import load_model_configs

__all__ = [
    "Router",
    "ModelUnavailableError",
    "BaseModel",
    "ModelResponse",
    "ModelConfig",
    "ResponseFormatError",
    "extract_json_object",
    "load_model_configs",
]
