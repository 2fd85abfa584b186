"""Screen Synthesizer — generates the HTML for one planned screen.

Screen 0 is the reference screen: it defines the visual language. Every later
screen is generated against the reference markup and told to copy its visual
DNA, changing only content. The prompt builders here are shared with the
parallel stage.
"""

import logging

from langchain_core.runnables import RunnableConfig

from screenflow.config import get_config
from screenflow.llm import get_llm
from screenflow.state import AUTO_VIBE_ID, DesignSystemSelection, Screen, SessionState
from screenflow.utils.parsing import invoke_with_timeout, strip_html_fences

logger = logging.getLogger(__name__)

BASE_PROMPT = """\
You are an elite UI/UX Designer creating production-ready interfaces.

USER REQUEST: "{request}"
SCREEN: {screen_name}
DESCRIPTION: {screen_description}

DESIGN REQUIREMENTS:

Context-adaptive excellence: a polished, production-grade design that matches the nature of the
request. Choose the layout, palette and typography that suit it best.

Detail and density: no wireframes or empty containers. Fill the space with realistic content,
meaningful components and finished-product detail.

Premium styling: depth through lighting, shadows, gradients, borders and textures. Modern,
professional, visually captivating.

Interactivity: every control looks tangible, with hover, focus and active states.

Functional interactivity with Alpine.js (v3):
- Use x-data to manage state and behaviour directly in the HTML.
- Interactive elements must respond to input; the UI must be usable, not a static artifact.

Mobile responsiveness: layouts adapt smoothly from desktop to small screens with stackable grids,
touch-friendly sizing and optimized navigation.

IMAGES: never use invalid or made-up image URLs.
"""

REFERENCE_SECTION = """
This is the MAIN REFERENCE SCREEN. It defines the design system for all other screens.
"""

FOLLOWER_SECTION = """
REFERENCE DESIGN (Screen #1, your design bible):
```html
{reference_html}
```

COPY THE VISUAL DNA VERBATIM. You MUST preserve:
1. Color palette
2. Typography
3. Spacing patterns
4. Component styles: buttons, cards, inputs and badges must look identical
5. Icon style: copy SVG icons exactly as they appear in the reference

Like a website template: the chrome (navigation, branding, layout frame) stays the same,
only the page content changes for "{screen_name}".
"""

OUTPUT_SECTION = """
OUTPUT: Return a COMPLETE HTML document starting with <!DOCTYPE html>. Include:
- <head> with the Tailwind CSS CDN, the Alpine.js CDN, Google Fonts imports and any custom <style>
- <body> with all your content
No markdown blocks, just raw HTML.
"""


def design_system_instruction(selection: DesignSystemSelection | None) -> str:
    """Mandatory font/vibe instruction for the prompt, or "" when nothing was selected."""
    if not selection:
        return ""
    font = selection.get("font") or {}
    vibe = selection.get("vibe") or {}
    lines = ["\nMANDATORY DESIGN SYSTEM (chosen by the user):"]
    if font.get("name"):
        lines.append(f"- Font: use \"{font['name']}\" from Google Fonts for all text.")
    if vibe.get("id") == AUTO_VIBE_ID:
        lines.append("- Vibe: none imposed. You have full creative freedom over mood and colors.")
    elif vibe.get("name"):
        keywords = ", ".join(vibe.get("keywords", []))
        lines.append(f"- Vibe: \"{vibe['name']}\". {vibe.get('description', '')}")
        if keywords:
            lines.append(f"  Keywords: {keywords}")
        lines.append("  Choose colors that express this vibe.")
    return "\n".join(lines) + "\n"


def reference_for(state: SessionState) -> str:
    """Reference markup for follower screens.

    Falls back to the stored first screen when a resumed state omits
    reference_html.
    """
    if state.get("reference_html"):
        return state["reference_html"]
    generated = {s["id"]: s["html"] for s in state.get("generated_screens", [])}
    planned = state.get("planned_screens", [])
    if planned and generated.get(planned[0]["id"]):
        return generated[planned[0]["id"]]
    for screen in state.get("generated_screens", []):
        if screen.get("html"):
            return screen["html"]
    return ""


def build_screen_prompt(state: SessionState, screen: Screen, reference_html: str = "") -> str:
    """Prompt for one screen. An empty *reference_html* selects the reference-screen variant."""
    prompt = BASE_PROMPT.format(
        request=state.get("enriched_request") or state["user_request"],
        screen_name=screen["name"],
        screen_description=screen.get("description", ""),
    )
    prompt += design_system_instruction(state.get("selected_design_system"))
    if reference_html:
        prompt += FOLLOWER_SECTION.format(reference_html=reference_html, screen_name=screen["name"])
    else:
        prompt += REFERENCE_SECTION
    return prompt + OUTPUT_SECTION


async def designer_node(state: SessionState, config: RunnableConfig | None = None) -> dict:
    """Designer node for the LangGraph StateGraph.

    Synthesizes planned_screens[current_screen_index] into current_screen_html.
    A screen already present in generated_screens is returned as stored,
    without calling the model.
    """
    index = state.get("current_screen_index", 0)
    screens = state.get("planned_screens", [])
    if index >= len(screens):
        return {"current_screen_html": ""}
    screen = screens[index]

    for stored in state.get("generated_screens", []):
        if stored["id"] == screen["id"]:
            logger.info("[Designer] Screen '%s' already generated; reusing it.", screen["id"])
            return {"current_screen_html": stored["html"]}

    reference_html = "" if index == 0 else reference_for(state)
    prompt = build_screen_prompt(state, screen, reference_html)
    settings = get_config()

    try:
        llm = get_llm("designer")
        content = await invoke_with_timeout(
            llm,
            [{"role": "user", "content": prompt}],
            timeout=settings.get("designer_timeout_seconds", 120),
            config=config,
        )
    except Exception as exc:
        logger.warning("[Designer] Generation failed for '%s' (%r).", screen["id"], exc)
        return {"current_screen_html": ""}

    html = strip_html_fences(content)
    logger.info("[Designer] Screen '%s' generated (%d chars).", screen["id"], len(html))
    return {"current_screen_html": html}
