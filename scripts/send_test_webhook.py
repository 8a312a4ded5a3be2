#!/usr/bin/env python3
"""
Dev helper: send a test ticket webhook to the local TCO Agent server.

Builds either a flat ticket reference or a full "ticket created" event
envelope for an existing Zendesk ticket and POST-s it to the server root.

Usage
-----
# Flat payload for ticket 5158, targeting localhost:8090
python scripts/send_test_webhook.py 5158

# Event envelope, as Zendesk sends it
python scripts/send_test_webhook.py 5158 --envelope

# Authenticate with the preshared key instead of the bearer token
python scripts/send_test_webhook.py 5158 --preshared

# Target a different server
python scripts/send_test_webhook.py 5158 --url http://staging.example.com

Environment / .env
------------------
BEARER_TOKEN    Sent as "Authorization: Bearer <token>" (default auth).
PRESHARED_KEY   Sent as X-Preshared-Key with --preshared.
PORT            Default port for --url (default: 8090).
"""

import argparse
import json
import os
import sys
import textwrap
import uuid
from datetime import datetime, timezone
from pathlib import Path

import httpx
from dotenv import load_dotenv


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------

def _build_flat_payload(ticket_id: str, subject: str) -> dict:
    return {"id": ticket_id, "subject": subject}


def _build_envelope_payload(ticket_id: str, subject: str) -> dict:
    """
    Build a "ticket created" event envelope.

    The ticket lives under "detail"; the top-level id and subject describe
    the event itself.
    """
    now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return {
        "detail": {
            "id": ticket_id,
            "subject": subject,
            "status": "OPEN",
            "created_at": now,
            "updated_at": now,
        },
        "event": {},
        "id": str(uuid.uuid4()),
        "subject": f"zen:ticket:{ticket_id}",
        "time": now,
        "type": "zen:event-type:ticket.created",
    }


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> int:
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    load_dotenv(project_root / "backend" / ".env")

    parser = argparse.ArgumentParser(
        prog="send_test_webhook.py",
        description="Send a test ticket webhook to the TCO Agent server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            Examples:
              python scripts/send_test_webhook.py 5158
              python scripts/send_test_webhook.py 5158 --envelope
              python scripts/send_test_webhook.py 5158 --preshared
        """),
    )
    parser.add_argument("ticket_id", help="Id of an existing Zendesk ticket")
    parser.add_argument(
        "--url",
        default=f"http://localhost:{os.getenv('PORT', '8090')}",
        help="Server base URL (default: http://localhost:$PORT)",
    )
    parser.add_argument("--subject", default="TCO removal order", help="Ticket subject")
    parser.add_argument(
        "--envelope",
        action="store_true",
        help="Wrap the ticket in a {detail: {...}} event envelope.",
    )
    parser.add_argument(
        "--preshared",
        action="store_true",
        help="Authenticate with X-Preshared-Key instead of a bearer token.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the payload JSON without sending it.",
    )

    args = parser.parse_args()

    builder = _build_envelope_payload if args.envelope else _build_flat_payload
    payload = builder(args.ticket_id, args.subject)

    if args.dry_run:
        print(json.dumps(payload, indent=2))
        return 0

    if args.preshared:
        secret = os.getenv("PRESHARED_KEY", "")
        headers = {"X-Preshared-Key": secret}
    else:
        secret = os.getenv("BEARER_TOKEN", "")
        headers = {"Authorization": f"Bearer {secret}"}
    if not secret:
        print(
            "ERROR: No credential found. Set BEARER_TOKEN (or PRESHARED_KEY with "
            "--preshared) in your environment or .env file.",
            file=sys.stderr,
        )
        return 1

    endpoint = f"{args.url.rstrip('/')}/"
    print(f"Endpoint : {endpoint}")
    print(f"Ticket   : {args.ticket_id}")
    print(f"Format   : {'envelope' if args.envelope else 'flat'}")

    try:
        response = httpx.post(endpoint, json=payload, headers=headers, timeout=30.0)
    except httpx.HTTPError as exc:
        print(f"\n[FAIL] {exc}", file=sys.stderr)
        return 1

    symbol = "OK" if response.status_code == 200 else "FAIL"
    print(f"\n[{symbol}] HTTP {response.status_code}")
    if response.text:
        print(response.text)
    return 0 if response.status_code == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
