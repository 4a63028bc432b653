"""
itcrypto Log Records

The record types carried inside an envelope:

- AccessLog: what a monitor attests it accessed on behalf of an owner
- SignedLog: a flattened JWS over an AccessLog's canonical bytes
- SharedLog: a SignedLog plus the share_id and creator of one sharing event
- SharedHeader: share_id, owner and receivers of one sharing event

JSON member names follow the wire format (camelCase); attributes are
snake_case. All records are immutable values.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Sequence, Tuple, Union

from .canonicalization import canonicalize
from .encoding import b64url_decode
from .models import FlattenedJWS


class _Serializable:
    """Canonical byte encoding shared by all record types."""

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError

    def as_bytes(self) -> bytes:
        return canonicalize(self.to_dict())

    def as_json(self) -> str:
        return self.as_bytes().decode('utf-8')

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        raise NotImplementedError

    @classmethod
    def from_json(cls, data: Union[str, bytes]):
        """
        Parse a record from JSON.

        Raises:
            ValueError: If the JSON is invalid or does not describe this record
        """
        try:
            obj = json.loads(data)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValueError(f"Invalid JSON for {cls.__name__}: {e}") from e
        if not isinstance(obj, dict):
            raise ValueError(f"JSON does not contain a valid {cls.__name__}")
        return cls.from_dict(obj)

    @classmethod
    def from_bytes(cls, data: bytes):
        return cls.from_json(data)


def _require_fields(name: str, data: Dict[str, Any], required: Sequence[str]) -> None:
    missing = [f for f in required if f not in data]
    if missing:
        raise ValueError(
            f"JSON does not contain a valid {name}. Missing required fields: {missing}"
        )


def _require_str(name: str, value: Any) -> None:
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string")


def _require_str_sequence(name: str, value: Any) -> None:
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{name} must be a list of strings")


@dataclass(frozen=True)
class AccessLog(_Serializable):
    """
    A raw AccessLog, not yet signed by a monitor.

    Fields:
    - monitor: id of the party that performed the access
    - owner: id of the data subject
    - tool: tool used for the access
    - justification: why the access happened
    - timestamp: when the access happened (number)
    - access_kind: kind of access (e.g. "aggregation")
    - data_type: ordered list of accessed data types
    """
    monitor: str
    owner: str
    tool: str
    justification: str
    timestamp: Union[int, float]
    access_kind: str
    data_type: Tuple[str, ...]

    def __post_init__(self):
        _require_str_sequence("dataType", self.data_type)
        object.__setattr__(self, "data_type", tuple(self.data_type))
        for name in ("monitor", "owner", "tool", "justification", "access_kind"):
            _require_str(name, getattr(self, name))
        if isinstance(self.timestamp, bool) or not isinstance(self.timestamp, (int, float)):
            raise ValueError("timestamp must be a number")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "monitor": self.monitor,
            "owner": self.owner,
            "tool": self.tool,
            "justification": self.justification,
            "timestamp": self.timestamp,
            "accessKind": self.access_kind,
            "dataType": list(self.data_type),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AccessLog':
        _require_fields(
            "AccessLog", data,
            ["monitor", "owner", "tool", "justification", "timestamp", "accessKind", "dataType"]
        )
        return cls(
            monitor=data["monitor"],
            owner=data["owner"],
            tool=data["tool"],
            justification=data["justification"],
            timestamp=data["timestamp"],
            access_kind=data["accessKind"],
            data_type=data["dataType"],
        )


class SignedLog(FlattenedJWS):
    """
    An AccessLog signed by a monitor.

    There is deliberately no signer field: who signed is only known once
    the signature has been checked against a claimed identity.
    """

    @classmethod
    def from_jws(cls, jws: FlattenedJWS) -> 'SignedLog':
        return cls.model_validate(jws.to_dict())

    def extract(self) -> AccessLog:
        """
        Parse the embedded AccessLog.

        This performs no verification. Use it on a SignedLog returned by
        decryption, which has already been verified.
        """
        return AccessLog.from_bytes(b64url_decode(self.payload))


@dataclass(frozen=True)
class SharedLog(_Serializable):
    """A SignedLog wrapped with the share_id and creator of a sharing event."""
    log: SignedLog
    share_id: str
    creator: str

    def __post_init__(self):
        if not isinstance(self.log, SignedLog):
            raise ValueError("log must be a SignedLog")
        _require_str("shareId", self.share_id)
        _require_str("creator", self.creator)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "log": self.log.to_dict(),
            "shareId": self.share_id,
            "creator": self.creator,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SharedLog':
        _require_fields("SharedLog", data, ["log", "shareId", "creator"])
        if not isinstance(data["log"], dict):
            raise ValueError("log must be a JWS object")
        return cls(
            log=SignedLog.from_dict(data["log"]),
            share_id=data["shareId"],
            creator=data["creator"],
        )


@dataclass(frozen=True)
class SharedHeader(_Serializable):
    """Who may legitimately hold the log shared under share_id."""
    share_id: str
    owner: str
    receivers: Tuple[str, ...]

    def __post_init__(self):
        _require_str_sequence("receivers", self.receivers)
        object.__setattr__(self, "receivers", tuple(self.receivers))
        _require_str("shareId", self.share_id)
        _require_str("owner", self.owner)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shareId": self.share_id,
            "owner": self.owner,
            "receivers": list(self.receivers),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SharedHeader':
        _require_fields("SharedHeader", data, ["shareId", "owner", "receivers"])
        return cls(
            share_id=data["shareId"],
            owner=data["owner"],
            receivers=data["receivers"],
        )
