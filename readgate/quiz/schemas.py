"""Schemas pydantic de las respuestas de los dos pasos del pipeline de quiz."""

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field

from readgate.context.reader_state import EntityAdd, StateUpdate


# ---- Paso 1: facts + state_update ----

class Evidence(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["quote"]
    text: str


class Fact(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    fact: str
    evidence: Evidence


class EntityAddSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    desc: str


class StateUpdateSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    entities_add: List[EntityAddSchema] = Field(default_factory=list)
    summary_append: str = ""

    def to_state_update(self) -> StateUpdate:
        return StateUpdate(
            entities_add   = tuple(EntityAdd(name=e.name, desc=e.desc) for e in self.entities_add),
            summary_append = self.summary_append,
        )


class FactsResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    facts: List[Fact] = Field(..., min_length=1, max_length=6)
    state_update: StateUpdateSchema
    notes: str = ""


# ---- Paso 2: preguntas de opción múltiple ----

class McqChoices(BaseModel):
    model_config = ConfigDict(extra="forbid")

    A: str
    B: str
    C: str


class QuestionEvidence(BaseModel):
    model_config = ConfigDict(extra="forbid")

    fact_id: str
    quote: str


class McqQuestion(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    question: str
    choices: McqChoices
    correct_choice: Literal["A", "B", "C"]
    fact_ids: List[str] = Field(..., min_length=1)
    evidence: List[QuestionEvidence] = Field(default_factory=list)


class McqResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    questions: List[McqQuestion] = Field(..., min_length=1, max_length=4)
