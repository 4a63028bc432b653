#!/usr/bin/env python3
"""
itcrypto Example - Monitor to Owner to Colleague

A support engineer (monitor) reads a customer's (owner) records, hands a
signed access log to the customer, and the customer forwards it to a
colleague. Passing the log on any further is refused, and so is the
monitor handing it to anyone but the owner.

Run with: python examples/share_example.py
"""

import time

from itcrypto import (
    AccessLog,
    InvariantViolation,
    create_directory,
    generate_authenticated,
)


def main():
    print("=" * 70)
    print("itcrypto Sharing Example")
    print("=" * 70)

    # =========================================================================
    # IDENTITIES
    # =========================================================================

    monitor = generate_authenticated(user_id="support-engineer", is_monitor=True)
    owner = generate_authenticated(user_id="customer")
    colleague = generate_authenticated(user_id="colleague")
    outsider = generate_authenticated(user_id="outsider")
    directory = create_directory([monitor, owner, colleague, outsider])

    # =========================================================================
    # MONITOR -> OWNER
    # =========================================================================

    print("\n" + "-" * 70)
    print("Step 1: Monitor signs the access and hands it to the owner")
    print("-" * 70)

    log = AccessLog(
        monitor=monitor.id,
        owner=owner.id,
        tool="crm-console",
        justification="ticket #4711",
        timestamp=int(time.time()),
        access_kind="read",
        data_type=["email", "address"],
    )
    signed = monitor.sign_log(log)
    envelope = monitor.encrypt_log(signed, [owner])
    print(f"  Envelope: {len(envelope.to_json())} bytes, {len(envelope.recipients)} recipient(s)")

    received = owner.decrypt_log(envelope.to_json(), directory)
    print(f"  Owner verified: {received.extract().justification}")

    # =========================================================================
    # OWNER -> COLLEAGUE
    # =========================================================================

    print("\n" + "-" * 70)
    print("Step 2: Owner re-shares with a colleague")
    print("-" * 70)

    forwarded = owner.encrypt_log(received, [colleague])
    at_colleague = colleague.decrypt_log(forwarded, directory)
    print(f"  Colleague verified access by: {at_colleague.extract().monitor}")

    # =========================================================================
    # COLLEAGUE -> OUTSIDER (refused)
    # =========================================================================

    print("\n" + "-" * 70)
    print("Step 3: Colleague tries to pass it on")
    print("-" * 70)

    leaked = colleague.encrypt_log(at_colleague, [outsider])
    try:
        outsider.decrypt_log(leaked, directory)
        print("  ✗ Outsider accepted the log")
    except InvariantViolation as e:
        print(f"  ✓ Refused ({e.code.value}): {e.detail}")

    print("\n" + "-" * 70)
    print("Step 4: Monitor tries to share with the outsider directly")
    print("-" * 70)

    try:
        outsider.decrypt_log(monitor.encrypt_log(signed, [outsider]), directory)
        print("  ✗ Outsider accepted the log")
    except InvariantViolation as e:
        print(f"  ✓ Refused ({e.code.value}): {e.detail}")

    print("\n" + "=" * 70)
    print("Example Complete")
    print("=" * 70)


if __name__ == "__main__":
    main()
