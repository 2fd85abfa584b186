"""Chat model construction per pipeline stage."""

from langchain_anthropic import ChatAnthropic
from langchain_google_genai import ChatGoogleGenerativeAI

from screenflow.config import get_config, stage_setting

_DEFAULT_TEMPERATURE = 1.0


def get_llm(stage: str):
    """Build the chat model configured for *stage*.

    ``<stage>_model`` picks the model; names starting with ``claude`` go to
    Anthropic, everything else to Gemini. ``<stage>_temperature`` sets the
    sampling temperature.
    """
    config = get_config()
    model_name = stage_setting(stage, "model")
    if not model_name:
        raise KeyError(f"No model configured for stage '{stage}' ({stage}_model).")
    temperature = stage_setting(stage, "temperature", _DEFAULT_TEMPERATURE)
    max_tokens = config.get("max_output_tokens")

    if model_name.startswith("claude"):
        return ChatAnthropic(model=model_name, temperature=temperature, max_tokens=max_tokens or 8192)
    return ChatGoogleGenerativeAI(
        model=model_name,
        temperature=temperature,
        max_output_tokens=max_tokens,
    )
