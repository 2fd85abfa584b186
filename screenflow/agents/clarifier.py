"""Clarifier Agent — asks one clarifying question at a time until the idea is plannable.

Required output schema:
{
  "ready": false,
  "question": {"id": "q2", "question": "string", "options": ["string", ...]}
}
or
{
  "ready": true,
  "summary": "string"
}
"""

import logging

from langchain_core.runnables import RunnableConfig
from pydantic import AliasChoices, BaseModel, Field

from screenflow.config import get_config
from screenflow.llm import get_llm
from screenflow.state import Question, SessionState, has_feedback, qa_turns
from screenflow.utils.parsing import extract_structured_block, invoke_with_timeout

logger = logging.getLogger(__name__)


class ClarifierQuestion(BaseModel):
    id: str = ""
    question: str = Field(default="", validation_alias=AliasChoices("question", "text"))
    options: list[str] = Field(default_factory=list)


class ClarifierReply(BaseModel):
    ready: bool = False
    question: ClarifierQuestion | None = None
    summary: str = ""


PROMPT_TEMPLATE = """\
You are a Product Discovery Expert helping to understand an app idea before designing it.

ORIGINAL USER REQUEST: "{user_request}"

CONVERSATION SO FAR:
{history}

YOUR TASK:
1. Analyze what information you already have vs what is missing.
2. Decide: do you have ENOUGH information to design this app?

If you have enough info, set "ready": true.
If you need more info, ask ONE focused question with 1-4 clickable options.

RULES:
- Ask only ONE question at a time.
- Make options specific and helpful, not generic.
- Questions must be in the SAME LANGUAGE as the user's request.
- After 3-4 questions you should usually have enough info.
- Each question should build on previous answers.

FORMAT YOUR RESPONSE:

<thinking>
[What you know, what is missing, why you are asking this question or why you are ready]
</thinking>

```json
{{
  "ready": false,
  "question": {{
    "id": "q{next_index}",
    "question": "Your single question here?",
    "options": ["Option A", "Option B", "Option C", "Option D"]
  }}
}}
```

OR if ready to design:

<thinking>
[Your analysis]
</thinking>

```json
{{
  "ready": true,
  "summary": "Brief summary of what you understood about the project"
}}
```
"""


def question_index(state: SessionState) -> int:
    """1-based position of the next question, for display."""
    return len(qa_turns(state)) + 1


def _format_history(state: SessionState) -> str:
    turns = state.get("conversation_history", [])
    if not turns:
        return "No previous questions yet."
    lines = []
    for turn in turns:
        if turn.get("kind") == "qa":
            lines.append(f"Q: {turn.get('question', '')}\nA: {turn.get('answer', '')}")
        else:
            lines.append(f"[Plan Feedback]: {turn.get('feedback', '')}")
    return "\n\n".join(lines)


def build_enriched_request(state: SessionState, summary: str = "") -> str:
    """Original request plus a digest of every answered question."""
    request = state["user_request"]
    digest = []
    for turn in state.get("conversation_history", []):
        if turn.get("kind") == "qa":
            digest.append(f"- {turn.get('question', '')}: {turn.get('answer', '')}")
        else:
            digest.append(f"- Plan feedback: {turn.get('feedback', '')}")

    parts = [request]
    if digest:
        parts.append("User clarifications:\n" + "\n".join(digest))
    if summary:
        parts.append(f"Summary: {summary}")
    return "\n\n".join(parts)


def _should_skip(state: SessionState) -> bool:
    """A later checkpoint was already passed, so there is nothing left to ask."""
    return bool(
        state.get("clarification_complete")
        or state.get("design_system_complete")
        or state.get("design_approved")
        or has_feedback(state)
        or state.get("skip_to_planning")
    )


def _complete(enriched_request: str) -> dict:
    return {
        "clarification_complete": True,
        "current_question": None,
        "enriched_request": enriched_request,
    }


def _accept_question(reply: ClarifierReply, state: SessionState) -> Question | None:
    """Return the question only if it has text and at least one non-empty option."""
    if reply.question is None:
        return None
    text = reply.question.question.strip()
    options = [o.strip() for o in reply.question.options if o and o.strip()]
    if not text or not options:
        return None
    return {
        "id": reply.question.id.strip() or f"q{question_index(state)}",
        "question": text,
        "options": options,
    }


async def clarifier_node(state: SessionState, config: RunnableConfig | None = None) -> dict:
    """Clarifier node for the LangGraph StateGraph.

    Either records a single pending question (and stays incomplete), or marks
    clarification complete with a frozen enriched request. Model and parse
    failures degrade to "ready" so the conversation never stalls.
    """
    if _should_skip(state):
        return _complete(state.get("enriched_request") or build_enriched_request(state))

    settings = get_config()
    prompt = PROMPT_TEMPLATE.format(
        user_request=state["user_request"],
        history=_format_history(state),
        next_index=question_index(state),
    )

    try:
        llm = get_llm("clarifier")
        content = await invoke_with_timeout(
            llm,
            [{"role": "user", "content": prompt}],
            timeout=settings.get("llm_timeout_seconds", 60),
            config=config,
        )
    except Exception as exc:
        logger.warning("[Clarifier] Model call failed (%r); continuing without questions.", exc)
        return _complete(state["user_request"])

    result = extract_structured_block(content, ClarifierReply)
    if not result.ok:
        logger.warning("[Clarifier] Unusable reply (%s); continuing without questions.", result.reason)
        return _complete(state["user_request"])

    reply = result.value
    if not reply.ready:
        question = _accept_question(reply, state)
        if question is not None:
            return {"current_question": question, "clarification_complete": False}
        logger.info("[Clarifier] Reply carried an invalid question; treating as ready.")

    return _complete(build_enriched_request(state, summary=reply.summary))
