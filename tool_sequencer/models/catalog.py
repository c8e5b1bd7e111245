"""
Known model limits.

Output and context sizes used to configure a conversation's sliding window.
Unknown model ids fall back to the default entry.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ModelInfo:
    """Capability metadata for a chat model."""

    model_id: str
    max_output_tokens: int
    context_window: int
    supports_images: bool = True


DEFAULT_MODEL_ID = "gpt-4o-mini"

MODELS: dict[str, ModelInfo] = {
    info.model_id: info
    for info in (
        ModelInfo("gpt-4o", max_output_tokens=16_384, context_window=128_000),
        ModelInfo("gpt-4o-mini", max_output_tokens=16_384, context_window=128_000),
        ModelInfo("gpt-4.1", max_output_tokens=32_768, context_window=1_047_576),
        ModelInfo("gpt-4.1-mini", max_output_tokens=32_768, context_window=1_047_576),
        ModelInfo("gemini-2.0-flash-001", max_output_tokens=8192, context_window=1_048_576),
        ModelInfo("gemini-2.0-pro-exp-02-05", max_output_tokens=8192, context_window=2_097_152),
        ModelInfo("gemini-1.5-pro-002", max_output_tokens=8192, context_window=1_048_576),
        ModelInfo(
            "gemini-1.0-pro-001",
            max_output_tokens=8192,
            context_window=32_768,
            supports_images=False,
        ),
    )
}


def get_model_info(model_id: str) -> ModelInfo:
    """
    Look up a model's limits.

    Args:
        model_id: Model identifier as sent to the provider.

    Returns:
        The catalog entry, or the default model's limits under the given id.
    """
    info = MODELS.get(model_id)
    if info is not None:
        return info
    default = MODELS[DEFAULT_MODEL_ID]
    return ModelInfo(
        model_id=model_id,
        max_output_tokens=default.max_output_tokens,
        context_window=default.context_window,
        supports_images=default.supports_images,
    )
