"""Request/response models for the HTTP API (camelCase on the wire)."""

from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from screenflow.state import SessionState, new_session


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class TurnIn(WireModel):
    kind: Literal["qa", "plan_feedback"] = Field(validation_alias=AliasChoices("kind", "type"))
    question: str | None = None
    answer: str | None = None
    feedback: str | None = None

    def to_turn(self) -> dict:
        return self.model_dump(exclude_none=True)


class ScreenIn(WireModel):
    id: str
    name: str
    description: str = ""


class FlowIn(WireModel):
    id: str = ""
    source: str = Field(validation_alias=AliasChoices("from", "source"))
    target: str = Field(validation_alias=AliasChoices("to", "target"))
    label: str = ""

    def to_flow(self) -> dict:
        return {"id": self.id, "from": self.source, "to": self.target, "label": self.label}


class GeneratedScreenIn(WireModel):
    id: str
    name: str = ""
    html: str = ""


class FontIn(WireModel):
    id: str = ""
    name: str = ""
    description: str = ""
    category: str = ""


class VibeIn(WireModel):
    id: str = ""
    name: str = ""
    description: str = ""
    keywords: list[str] = Field(default_factory=list)
    emoji: str = ""


class DesignSystemOptionsIn(WireModel):
    fonts: list[FontIn] = Field(default_factory=list)
    vibes: list[VibeIn] = Field(default_factory=list)


class QuestionIn(WireModel):
    id: str = ""
    question: str
    options: list[str] = Field(default_factory=list)


class DesignSystemSelectionIn(WireModel):
    font: FontIn
    vibe: VibeIn


class GenerateRequest(WireModel):
    """One conversation turn. Everything except ``prompt`` comes from the previous turn's state."""

    prompt: str
    conversation_history: list[TurnIn] = Field(default_factory=list)
    current_question: QuestionIn | None = None
    clarification_complete: bool = False
    enriched_request: str = ""
    planned_screens: list[ScreenIn] = Field(default_factory=list)
    planned_flows: list[FlowIn] = Field(default_factory=list)
    plan_issues: list[str] = Field(default_factory=list)
    skip_to_planning: bool = False
    design_approved: bool = False
    plan_feedback: str = ""
    generated_screens: list[GeneratedScreenIn] = Field(default_factory=list)
    design_system_options: DesignSystemOptionsIn | None = None
    selected_design_system: DesignSystemSelectionIn | None = None
    design_system_complete: bool = False
    current_screen_index: int = Field(default=0, ge=0)
    reference_html: str = ""

    def to_session_state(self) -> SessionState:
        selection = self.selected_design_system.model_dump() if self.selected_design_system else None
        return new_session(
            self.prompt.strip(),
            conversation_history=[t.to_turn() for t in self.conversation_history],
            current_question=self.current_question.model_dump() if self.current_question else None,
            clarification_complete=self.clarification_complete,
            enriched_request=self.enriched_request,
            planned_screens=[s.model_dump() for s in self.planned_screens],
            planned_flows=[f.to_flow() for f in self.planned_flows],
            plan_issues=self.plan_issues,
            skip_to_planning=self.skip_to_planning,
            design_approved=self.design_approved,
            plan_feedback=self.plan_feedback,
            generated_screens=[s.model_dump() for s in self.generated_screens],
            design_system_options=(
                self.design_system_options.model_dump() if self.design_system_options else None
            ),
            selected_design_system=selection,
            # A selection settles the design-system checkpoint.
            design_system_complete=self.design_system_complete or selection is not None,
            current_screen_index=self.current_screen_index,
            reference_html=self.reference_html,
        )


class HtmlRequest(WireModel):
    html: str


class DesignDocResponse(WireModel):
    markdown: str


class ProjectNameResponse(WireModel):
    name: str
