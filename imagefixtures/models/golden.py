"""Golden record models."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class GoldenState(str, Enum):
    """Lifecycle of a golden record.

    ABSENT only leaves through an explicit update; reads never create.
    """

    ABSENT = "absent"
    PRESENT = "present"


class GoldenRecord(BaseModel):
    """A test identity and where its expected bytes live."""

    model_config = ConfigDict(frozen=True)

    identity: str
    path: Path
    state: GoldenState
    size_bytes: int = 0
    sha256: str = ""
