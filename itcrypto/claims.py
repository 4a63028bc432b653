"""
Unverified claim accessors.

Decryption has to know whom to ask the directory for before anything is
verified. The only reads of unverified payloads happen here, and they
return a ClaimedId rather than a str: a claim can be used as a directory
lookup key and nothing else. Invariant checks take verified records only.
"""

import json
from dataclasses import dataclass

from .encoding import b64url_decode
from .models import FlattenedJWS


@dataclass(frozen=True)
class ClaimedId:
    """A user id read from a payload whose signature has not been checked."""
    value: str

    def __str__(self) -> str:
        return f"<claimed {self.value}>"


def _unverified_member(jws: FlattenedJWS, member: str, record: str) -> ClaimedId:
    try:
        obj = json.loads(b64url_decode(jws.payload))
    except ValueError as e:
        raise ValueError(f"JWS payload does not contain a valid {record}: {e}") from e
    if not isinstance(obj, dict) or not isinstance(obj.get(member), str):
        raise ValueError(f"JWS payload does not contain a valid {record}")
    return ClaimedId(obj[member])


def claimed_creator(jws_shared_log: FlattenedJWS) -> ClaimedId:
    """Creator named in a not yet verified SharedLog."""
    return _unverified_member(jws_shared_log, "creator", "SharedLog")


def claimed_monitor(jws_access_log: FlattenedJWS) -> ClaimedId:
    """Monitor named in a not yet verified AccessLog."""
    return _unverified_member(jws_access_log, "monitor", "AccessLog")


def claimed_owner(jws_access_log: FlattenedJWS) -> ClaimedId:
    """
    Owner named in a not yet verified AccessLog.

    Used by encryption to populate the SharedHeader. It carries no trust;
    decryption re-derives the owner from the verified log.
    """
    return _unverified_member(jws_access_log, "owner", "AccessLog")
