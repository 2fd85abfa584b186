"""Internal execution signals passed from the coordinator to the event translator."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class StageEntered:
    stage: str
    state: dict = field(repr=False)  # Session state as the stage sees it.


@dataclass(frozen=True)
class StageCompleted:
    stage: str
    output: dict  # The stage's partial update.
    state: dict = field(repr=False)  # Session state after the update was merged.


@dataclass(frozen=True)
class Token:
    stage: str
    content: str
    screen_id: str | None = None  # Set only for per-screen channels of the parallel stage.
