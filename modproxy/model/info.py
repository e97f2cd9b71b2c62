from datetime import datetime

from pydantic import BaseModel, field_serializer


class ModuleInfo(BaseModel):
    """The .info record served for a module version."""

    Version: str
    Time: datetime

    @field_serializer("Time")
    def serialize_time(self, value: datetime) -> str:
        # keep the numeric offset, "+00:00" rather than "Z"
        return value.isoformat()


class RefOrigin(BaseModel):
    """Which destination ref a cache entry was built from"""

    kind: str
    ref: str
    commit: str

    @property
    def mutable(self) -> bool:
        return self.kind != "tag"
