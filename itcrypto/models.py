"""
Wire models for itcrypto.

pydantic models for the JOSE shapes exchanged on the wire: flattened JWS
objects (signed logs, shared logs, shared headers) and the general JWE
envelope with one entry per recipient.
"""

import json
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class FlattenedJWS(BaseModel):
    """Flattened JWS JSON serialization (RFC 7515, section 7.2.2)."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    payload: str
    signature: str
    protected: Optional[str] = None
    header: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(',', ':'))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        return cls.model_validate(data)


class Recipient(BaseModel):
    """One per-recipient wrapped content key."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    encrypted_key: str
    header: Dict[str, Any] = Field(default_factory=dict)


class Envelope(BaseModel):
    """
    General JWE JSON serialization (RFC 7516, section 7.2.1).

    Single-recipient encodings produced by other JOSE libraries put
    ``encrypted_key`` and ``header`` at the top level; those are folded
    into ``recipients`` before validation.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    protected: str
    recipients: List[Recipient] = Field(min_length=1)
    iv: str
    ciphertext: str
    tag: str
    aad: Optional[str] = None
    unprotected: Optional[Dict[str, Any]] = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_flattened(cls, data: Any) -> Any:
        if isinstance(data, dict) and "recipients" not in data and "encrypted_key" in data:
            data = dict(data)
            entry = {"encrypted_key": data.pop("encrypted_key")}
            if "header" in data:
                entry["header"] = data.pop("header")
            data["recipients"] = [entry]
        return data

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(',', ':'))

    @classmethod
    def parse(cls, value: Union["Envelope", str, bytes, Dict[str, Any]]) -> "Envelope":
        """
        Accept an envelope as model, JSON text or decoded dict.

        Raises:
            ValueError: If the JSON text cannot be decoded
            pydantic.ValidationError: If the structure is not a JWE
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, (str, bytes)):
            value = json.loads(value)
        return cls.model_validate(value)
