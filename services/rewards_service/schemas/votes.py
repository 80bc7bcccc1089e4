"""Comment vote schemas."""

import uuid
from typing import Literal

from pydantic import BaseModel
from services.rewards_service.services.votes import VoteAction


class VoteRequest(BaseModel):
    value: Literal[1, -1]


class VoteResponse(BaseModel):
    ok: bool = True
    comment_id: uuid.UUID
    value: int
    score: int
    flip_count: int
    locked: bool
    action: VoteAction
