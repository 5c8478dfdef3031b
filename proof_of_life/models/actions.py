# ABOUTME: Tagged action models accepted by the session reducer.
# ABOUTME: A pydantic discriminated union keyed on `kind` so actions can be parsed from wire payloads.

from typing import Annotated, Literal

from pydantic import BaseModel, Field, TypeAdapter

from .session import Beacon, Coord, Directive, Role


class RequestPing(BaseModel):
    """Dispatcher spends battery to learn the pursuer's squared distance to a beacon"""
    kind: Literal["request_ping"] = "request_ping"
    actor: Role
    beacon: Beacon

    model_config = {"frozen": True}


class Recharge(BaseModel):
    """Dispatcher skips the ping this turn and regains battery"""
    kind: Literal["recharge"] = "recharge"
    actor: Role

    model_config = {"frozen": True}


class SetCommand(BaseModel):
    """Dispatcher tells the ward what to do; hands control to the evader"""
    kind: Literal["set_command"] = "set_command"
    actor: Role
    directive: Directive

    model_config = {"frozen": True}


class ArmCommitment(BaseModel):
    """Evader locks in the pursuer's starting commitment"""
    kind: Literal["arm_commitment"] = "arm_commitment"
    actor: Role

    model_config = {"frozen": True}


class ResolveEvaderPhase(BaseModel):
    """Evader moves the pursuer (auto path when `path` is omitted) and ends the turn"""
    kind: Literal["resolve_evader_phase"] = "resolve_evader_phase"
    actor: Role
    path: list[Coord] | None = None

    model_config = {"frozen": True}


Action = Annotated[
    RequestPing | Recharge | SetCommand | ArmCommitment | ResolveEvaderPhase,
    Field(discriminator="kind"),
]

action_adapter: TypeAdapter[Action] = TypeAdapter(Action)


def parse_action(payload: dict) -> Action:
    """Validate a raw payload into one of the action models"""
    return action_adapter.validate_python(payload)
