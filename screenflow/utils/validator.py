"""Input validation — checks the product idea before a pipeline run starts."""

DEFAULT_MAX_PROMPT_CHARS = 4000


def validate_prompt(prompt: str, max_chars: int = DEFAULT_MAX_PROMPT_CHARS) -> str:
    """Validate that the product idea is a non-empty string of reasonable length.

    Returns the stripped prompt on success.
    Raises ValueError if the prompt is empty, whitespace-only, not a string,
    or longer than *max_chars*.
    """
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValueError("Prompt must be a non-empty string.")
    prompt = prompt.strip()
    if len(prompt) > max_chars:
        raise ValueError(f"Prompt is {len(prompt)} characters; the limit is {max_chars}.")
    return prompt
