"""
Request models for the VSS HTTP API.

Field names follow the wire schema. Missing fields take their proto3
defaults ("" / 0 / empty list); emptiness is rejected by the engine, not here.
Values travel as standard base64 strings.
"""

from __future__ import annotations

import base64
import binascii
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator

from ..engine import MAX_PAGE_SIZE_REQUEST
from ..store import MAX_VERSION, KeyValue

# Wire integer widths; anything larger is a malformed request
Int64 = Annotated[StrictInt, Field(le=MAX_VERSION)]
Int32 = Annotated[StrictInt, Field(le=MAX_PAGE_SIZE_REQUEST)]


def encode_value(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


class KeyValueModel(BaseModel):
    """A key with its version and base64 value."""

    model_config = ConfigDict(extra="ignore")

    key: StrictStr = ""
    version: Int64 = 0
    value: bytes = b""

    @field_validator("value", mode="before")
    @classmethod
    def decode_value(cls, v: Any) -> bytes:
        if v is None:
            return b""
        if not isinstance(v, str):
            raise ValueError("value must be a base64 string")
        try:
            return base64.b64decode(v, validate=True)
        except binascii.Error as e:
            raise ValueError(f"value is not valid base64: {e}") from e


class GetObjectRequest(BaseModel):
    """Body of POST /vss/getObject."""

    model_config = ConfigDict(extra="ignore")

    store_id: StrictStr = ""
    key: StrictStr = ""


class PutObjectRequest(BaseModel):
    """Body of POST /vss/putObjects."""

    model_config = ConfigDict(extra="ignore")

    store_id: StrictStr = ""
    global_version: Int64 | None = None
    transaction_items: list[KeyValueModel] = Field(default_factory=list)
    delete_items: list[KeyValueModel] = Field(default_factory=list)


class DeleteObjectRequest(BaseModel):
    """Body of POST /vss/deleteObject."""

    model_config = ConfigDict(extra="ignore")

    store_id: StrictStr = ""
    key_value: KeyValueModel | None = None


class ListKeyVersionsRequest(BaseModel):
    """Body of POST /vss/listKeyVersions."""

    model_config = ConfigDict(extra="ignore")

    store_id: StrictStr = ""
    key_prefix: StrictStr | None = None
    page_size: Int32 | None = None
    page_token: StrictStr | None = None


def key_value_to_json(kv: KeyValue, include_value: bool = True) -> dict[str, Any]:
    """Serialize a KeyValue for a response body."""
    data: dict[str, Any] = {"key": kv.key, "version": kv.version}
    if include_value:
        data["value"] = encode_value(kv.value)
    return data
