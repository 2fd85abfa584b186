"""Reference-screen utilities: design-system documentation and project naming.

Both read a finished screen's markup and make a single low-temperature call
to the ``utility`` model. They run outside the stage graph.
"""

import logging

from screenflow.config import get_config
from screenflow.llm import get_llm
from screenflow.utils.parsing import invoke_with_timeout

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_NAME = "My Project"
MAX_NAME_LENGTH = 50

DESIGN_DOC_PROMPT = """\
You are an expert UI/UX designer and frontend architect.
Below is the HTML of the first screen of a web application.
Reverse-engineer the Design System it uses and document it in Markdown.

Include these sections:
1. **Core Principles**: the overall aesthetic (e.g. "Minimalist Dark Mode", "Corporate Clean").
2. **Color Palette**: primary, secondary, background and accent colors, with their Tailwind classes
   (e.g. `bg-blue-500`) and/or hex codes for inline styles.
3. **Typography**: font families, sizes (h1 vs p), weights and text colors.
4. **Spacing & Layout**: padding/margin scales, container widths, grid/flex patterns.
5. **Components**: buttons (primary/secondary), cards/containers, inputs/form elements, navigation items.
6. **Iconography**: the icon style used.

End the document with a section titled "## Reference HTML" containing the provided HTML in a code block.

HTML:
```html
{html}
```
"""

NAME_PROMPT = """\
Extract the app name from this HTML. Look at <title>, headers, or logo text. Return ONLY the name, nothing else.

{html}"""


async def document_design_system(html: str) -> str:
    """Return Markdown documentation of the design system used in *html*.

    Raises ValueError for empty input; model failures propagate to the caller.
    """
    if not html or not html.strip():
        raise ValueError("No HTML provided.")
    settings = get_config()
    llm = get_llm("utility")
    markdown = await invoke_with_timeout(
        llm,
        [{"role": "user", "content": DESIGN_DOC_PROMPT.format(html=html)}],
        timeout=settings.get("llm_timeout_seconds", 60),
    )
    return markdown.strip()


def _clean_name(raw: str) -> str:
    name = raw.strip().strip('"').strip("'").strip()
    if not name or len(name) > MAX_NAME_LENGTH or "\n" in name:
        return DEFAULT_PROJECT_NAME
    return name


async def extract_project_name(html: str) -> str:
    """Best-effort product name for *html*; falls back to DEFAULT_PROJECT_NAME."""
    if not html or not html.strip():
        raise ValueError("No HTML provided.")
    settings = get_config()
    try:
        llm = get_llm("utility")
        raw = await invoke_with_timeout(
            llm,
            [{"role": "user", "content": NAME_PROMPT.format(html=html)}],
            timeout=settings.get("llm_timeout_seconds", 60),
        )
    except Exception as exc:
        logger.warning("[ProjectName] Extraction failed (%r); using default name.", exc)
        return DEFAULT_PROJECT_NAME
    return _clean_name(raw)
