"""Design-System Proposer — suggests fonts and visual "vibes" before planning.

Colors are deliberately absent from the proposal; the Screen Synthesizer picks
them to fit the chosen vibe.
"""

import logging

from langchain_core.runnables import RunnableConfig
from pydantic import BaseModel, Field

from screenflow.config import get_config
from screenflow.llm import get_llm
from screenflow.state import DesignSystemOptions, SessionState, has_feedback
from screenflow.utils.parsing import extract_structured_block, invoke_with_timeout

logger = logging.getLogger(__name__)

OPTION_COUNT = 5


class FontSuggestion(BaseModel):
    id: str = ""
    name: str
    description: str = ""
    category: str = ""


class VibeSuggestion(BaseModel):
    id: str = ""
    name: str
    description: str = ""
    keywords: list[str] = Field(default_factory=list)
    emoji: str = ""


class DesignSystemReply(BaseModel):
    fonts: list[FontSuggestion] = Field(min_length=1)
    vibes: list[VibeSuggestion] = Field(min_length=1)


PROMPT_TEMPLATE = """\
You are a senior Brand & UI Designer preparing a design direction for a new web application.

PRODUCT: "{request}"

Propose exactly {count} font pairings and exactly {count} visual "vibes" the user can choose from.

RULES:
- Fonts must be available on Google Fonts. Describe where each one shines.
- A vibe is a mood for the whole interface: a name, a one-sentence description,
  3-5 keywords and a single emoji. DO NOT specify colors or hex codes.
- Make the {count} options genuinely different from each other and relevant to the product.
- Write descriptions in the SAME LANGUAGE as the product description.

FORMAT YOUR RESPONSE:

<thinking>
[What kind of product this is, who uses it, which directions would suit it]
</thinking>

```json
{{
  "fonts": [
    {{"id": "inter", "name": "Inter", "description": "Neutral and highly legible", "category": "sans-serif"}}
  ],
  "vibes": [
    {{"id": "calm-focus", "name": "Calm Focus", "description": "Quiet surfaces that keep attention on content",
      "keywords": ["minimal", "airy", "soft"], "emoji": "🌿"}}
  ]
}}
```
"""


def _slug(name: str) -> str:
    return "-".join(name.lower().split())


def _to_options(reply: DesignSystemReply) -> DesignSystemOptions:
    fonts = [
        {**f.model_dump(), "id": f.id or _slug(f.name)} for f in reply.fonts[:OPTION_COUNT]
    ]
    vibes = [
        {**v.model_dump(), "id": v.id or _slug(v.name)} for v in reply.vibes[:OPTION_COUNT]
    ]
    return {"fonts": fonts, "vibes": vibes}


def _should_skip(state: SessionState) -> bool:
    return bool(
        state.get("design_system_complete")
        or state.get("selected_design_system")
        or has_feedback(state)
        or state.get("design_approved")
    )


async def design_system_node(state: SessionState, config: RunnableConfig | None = None) -> dict:
    """Design-System node for the LangGraph StateGraph.

    Returns proposed options (completion then waits on the user's selection),
    or marks the stage complete without options when the model reply is
    unusable.
    """
    if _should_skip(state):
        return {"design_system_complete": True}

    settings = get_config()
    prompt = PROMPT_TEMPLATE.format(
        request=state.get("enriched_request") or state["user_request"],
        count=OPTION_COUNT,
    )

    try:
        llm = get_llm("design_system")
        content = await invoke_with_timeout(
            llm,
            [{"role": "user", "content": prompt}],
            timeout=settings.get("llm_timeout_seconds", 60),
            config=config,
        )
    except Exception as exc:
        logger.warning("[DesignSystem] Model call failed (%r); proceeding without options.", exc)
        return {"design_system_complete": True, "design_system_options": None}

    result = extract_structured_block(content, DesignSystemReply)
    if not result.ok:
        logger.warning("[DesignSystem] Unusable reply (%s); proceeding without options.", result.reason)
        return {"design_system_complete": True, "design_system_options": None}

    options = _to_options(result.value)
    if len(options["fonts"]) < OPTION_COUNT or len(options["vibes"]) < OPTION_COUNT:
        logger.info(
            "[DesignSystem] Got %d fonts / %d vibes (asked for %d).",
            len(options["fonts"]), len(options["vibes"]), OPTION_COUNT,
        )
    return {"design_system_options": options, "design_system_complete": False}
