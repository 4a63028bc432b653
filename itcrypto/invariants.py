"""
Sharing-authorization invariants.

Checked only after every signature in the envelope has verified, and only
against verified records:

1. SharedHeader.owner == AccessLog.owner
2. SharedHeader.share_id == SharedLog.share_id
3. SharedLog.creator is the AccessLog's monitor or owner
4. A monitor may only hand the log to its owner, and to nobody else
5. The decrypting user is listed in SharedHeader.receivers
"""

from .errors import InvariantCode, InvariantViolation
from .logs import AccessLog, SharedHeader, SharedLog


def check_sharing_invariants(access_log: AccessLog, shared_log: SharedLog,
                             shared_header: SharedHeader, receiver_id: str) -> None:
    """
    Enforce the sharing invariants.

    Raises:
        InvariantViolation: With a distinct code for each invariant
    """
    if shared_header.owner != access_log.owner:
        raise InvariantViolation(
            InvariantCode.OWNER_MISMATCH,
            "The specified owners are not equal!"
        )

    if shared_header.share_id != shared_log.share_id:
        raise InvariantViolation(
            InvariantCode.SHARE_ID_MISMATCH,
            "The shareIds of SharedHeader and SharedLog are not equal!"
        )

    if shared_log.creator not in (access_log.monitor, access_log.owner):
        raise InvariantViolation(
            InvariantCode.UNAUTHORIZED_CREATOR,
            "Only the owner or the monitor of the AccessLog are allowed to share."
        )

    if shared_log.creator == access_log.monitor and \
            shared_header.receivers != (access_log.owner,):
        raise InvariantViolation(
            InvariantCode.MONITOR_RESHARE,
            "Monitors can only share the data with the owner of the log."
        )

    if receiver_id not in shared_header.receivers:
        raise InvariantViolation(
            InvariantCode.RECEIVER_NOT_LISTED,
            "Decrypting user not specified in receivers!"
        )
