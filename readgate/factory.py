# readgate/factory.py
from typing import Optional

from readgate.orchestrator import Orchestrator
from readgate.processor.parsers.factory import ParserFactory
from readgate.processor.chunker.chunker import Chunker, ChunkStrategy
from readgate.processor.chunker.models import ChunkConfig
from readgate.quiz.pipeline import QuizPipeline
from readgate.quiz.prompt_builder import load_prompt_templates
from readgate.router.router import Router
from readgate.router.claude import ClaudeAdapter
from readgate.router.gemini import GeminiAdapter
from readgate.router.config_loader import load_model_configs
from readgate.storage.repository import Repository


_CHUNK_PRESETS: dict[str, dict] = {
    "standard": {"min_words": 60,  "max_words": 120, "target_words": 90},
    "short":    {"min_words": 40,  "max_words": 80,  "target_words": 60},
    "long":     {"min_words": 120, "max_words": 240, "target_words": 180},
}

_ADAPTERS = {
    "anthropic": ClaudeAdapter,
    "google":    GeminiAdapter,
}


def build_orchestrator(
    db_path:     Optional[str] = None,
    config_path: Optional[str] = None,
    prompts_dir: Optional[str] = None,
    chunk_size:  str           = "standard",
    strategy:    str           = "paragraph",
    model:       Optional[str] = None,
    offline:     bool          = False,
) -> Orchestrator:
    """
    Ensambla el Orchestrator con todas sus dependencias.
    Punto de entrada único para el CLI y los tests de integración.

    chunk_size: "standard" | "short" | "long", controla la banda de palabras.
    strategy:   "paragraph" | "html", el chunker a usar al ingresar.
    offline:    sin modelos; sirve para ingest, progreso y respuestas.
    """
    repo     = Repository(db_path=db_path)
    router   = None
    pipeline = None
    if not offline:
        router   = Router(_build_models(repo, config_path))
        pipeline = QuizPipeline(router, prompts=load_prompt_templates(prompts_dir))

    preset    = _CHUNK_PRESETS.get(chunk_size, _CHUNK_PRESETS["standard"])
    chunk_cfg = ChunkConfig(**preset)

    return Orchestrator(
        repo           = repo,
        parser_factory = ParserFactory(),
        chunker        = Chunker(config=chunk_cfg, strategy=ChunkStrategy(strategy)),
        pipeline       = pipeline,
        router         = router,
        model          = model,
    )


def _build_models(repo: Repository, config_path: Optional[str]) -> list:
    """
    Carga el config y construye los adaptadores disponibles.
    Si un adaptador no tiene api_key configurada, lo omite con un aviso.
    """
    configs = load_model_configs(config_path)
    models  = []

    for config in configs:
        adapter_class = _ADAPTERS.get(config.provider)
        if not adapter_class:
            continue
        if not config.api_key:
            print(f"[readgate] ⚠ {config.name}: sin api_key, omitiendo")
            continue
        models.append(adapter_class(config, repo))

    if not models:
        raise RuntimeError(
            "Ningún modelo configurado. "
            "Revisa ~/.readgate/config.yaml y tus variables de entorno."
        )

    return models
