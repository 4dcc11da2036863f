"""Per-node deployment options and secret key descriptors.

Input and serialized field names are camelCase (``targetHost``,
``keyCommand``); Python attributes are snake_case.
"""

from __future__ import annotations

import os
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class KeySpec(BaseModel):
    """A secret to be deployed to a node out of band.

    Exactly one of ``text``, ``key_command`` and ``key_file`` must be set,
    but that is checked by ``hiveforge.core.keys.validate_keys`` so that all
    offending keys of a hive are reported together.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    text: str | None = None
    key_file: str | None = None
    key_command: Annotated[list[str], Field(min_length=1)] | None = None
    dest_dir: str = "/run/keys"
    user: str = "root"
    group: str = "root"
    permissions: str = "0600"

    @field_validator("key_file", mode="before")
    @classmethod
    def _path_to_str(cls, value: Any) -> Any:
        if isinstance(value, os.PathLike):
            return os.fspath(value)
        return value

    @property
    def source_count(self) -> int:
        """Number of key sources that are set."""
        return sum(
            1 for v in (self.text, self.key_command, self.key_file) if v is not None
        )


class DeploymentOptions(BaseModel):
    """Resolved deployment options of one node."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    target_host: str | None = None
    target_port: Annotated[int, Field(ge=0)] | None = None
    target_user: str = "root"
    allow_local_deployment: bool = False
    tags: list[str] = Field(default_factory=list)
    keys: dict[str, KeySpec] = Field(default_factory=dict)
    replace_unknown_profiles: bool = True

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with camelCase keys and JSON-only value types."""
        return self.model_dump(mode="json", by_alias=True)
