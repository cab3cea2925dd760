"""
LLM Configuration - Model configs and fallback chains for LiteLLM.

Model ids come from settings so a deployment can swap providers without
code changes; temperatures and token budgets are fixed per use case.
"""
from dataclasses import dataclass, field
from typing import Dict, List

from ...config import settings


@dataclass
class ModelConfig:
    """Configuration for a specific model."""
    model_id: str  # LiteLLM format: provider/model
    temperature: float = 0.3
    max_tokens: int = 4000
    top_p: float = 1.0
    extra_params: Dict = field(default_factory=dict)


@dataclass
class ModelPreset:
    """Preset configuration for a use case (scoring, synthesis, title)."""
    primary: ModelConfig
    fallbacks: List[ModelConfig] = field(default_factory=list)


# Per-use-case generation parameters
_USE_CASE_PARAMS = {
    # Many small structured calls; low temperature keeps scores stable
    "scoring": {"temperature": 0.2, "max_tokens": 1000},
    # One long structured call per report
    "synthesis": {"temperature": 0.4, "max_tokens": 8000},
    # A handful of words
    "title": {"temperature": 0.3, "max_tokens": 50},
}


def _model_for_use_case(use_case: str) -> str:
    return {
        "scoring": settings.llm_scoring_model,
        "synthesis": settings.llm_synthesis_model,
        "title": settings.llm_title_model,
    }.get(use_case, settings.llm_scoring_model)


def get_preset_for_use_case(use_case: str) -> ModelPreset:
    """Build the model preset for a given use case from settings."""
    params = _USE_CASE_PARAMS.get(use_case, _USE_CASE_PARAMS["scoring"])
    primary = ModelConfig(model_id=_model_for_use_case(use_case), **params)
    fallbacks = [
        ModelConfig(model_id=model_id, **params)
        for model_id in settings.llm_fallback_models_list
        if model_id != primary.model_id
    ]
    return ModelPreset(primary=primary, fallbacks=fallbacks)


def get_fallback_chain(preset: ModelPreset) -> List[str]:
    """Get the list of model IDs for fallback."""
    return [preset.primary.model_id] + [m.model_id for m in preset.fallbacks]


def get_model_params(model_config: ModelConfig, **overrides) -> Dict:
    """Get parameters for a model, applying any overrides."""
    params = {
        "model": model_config.model_id,
        "temperature": model_config.temperature,
        "max_tokens": model_config.max_tokens,
    }
    if model_config.top_p != 1.0:
        params["top_p"] = model_config.top_p

    params.update(model_config.extra_params)
    params.update(overrides)
    return params
