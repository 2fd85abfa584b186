"""camelCase wire format for session state and event payloads."""

from screenflow.state import SessionState, new_session


def camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.title() for part in rest)


def state_to_wire(state: SessionState) -> dict:
    """Session state as the client stores and resends it."""
    return {camel(key): value for key, value in state.items()}


def state_from_wire(payload: dict) -> SessionState:
    """Inverse of state_to_wire; unknown keys are ignored, missing ones get defaults."""
    snake = {_snake(key): value for key, value in payload.items()}
    defaults = new_session(snake.get("user_request", ""))
    return new_session(
        defaults["user_request"],
        **{key: value for key, value in snake.items() if key in defaults and key != "user_request"},
    )


def _snake(key: str) -> str:
    out = []
    for ch in key:
        if ch.isupper():
            out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out)
