#!/usr/bin/env python3
"""Smoke-check a running portal: health responds, anonymous session matches the auth mode, dev session resolves."""
from __future__ import annotations

import argparse
import sys

import httpx


def run_checks(
    client: httpx.Client, dev_email: str = "", dev_role: str = "STUDENT", open_session: bool = False
) -> list[str]:
    """``open_session`` marks a server running with DEV_ACTOR_EMAIL, where anonymous calls resolve to that actor."""
    errors: list[str] = []

    health = client.get("/api/health")
    if health.status_code != 200:
        errors.append(f"GET /api/health returned {health.status_code}, expected 200")
    else:
        body = health.json()
        print(f"health: status={body.get('status')} ok={body.get('ok')}")

    anonymous = client.get("/api/me/session")
    expected = 200 if open_session else 401
    if anonymous.status_code != expected:
        errors.append(f"anonymous GET /api/me/session returned {anonymous.status_code}, expected {expected}")

    if dev_email:
        session = client.get(
            "/api/me/session",
            headers={"x-portal-email": dev_email, "x-portal-role": dev_role},
        )
        if session.status_code != 200:
            errors.append(f"dev-header GET /api/me/session returned {session.status_code}, expected 200")
        else:
            data = session.json().get("data") or {}
            print(f"session: email={data.get('email')} role={data.get('role')} status={data.get('status')}")

    return errors


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--dev-email", default="", help="impersonate this email via dev headers")
    parser.add_argument("--dev-role", default="STUDENT")
    parser.add_argument(
        "--open-session",
        action="store_true",
        help="the server sets DEV_ACTOR_EMAIL, so anonymous session calls succeed",
    )
    parser.add_argument("--timeout", type=float, default=20.0)
    args = parser.parse_args(argv)

    try:
        with httpx.Client(base_url=args.base_url, timeout=args.timeout) as client:
            errors = run_checks(client, args.dev_email, args.dev_role, open_session=args.open_session)
    except httpx.HTTPError as exc:
        errors = [f"portal unreachable at {args.base_url}: {exc}"]

    if errors:
        for e in errors:
            print("ERROR:", e)
        return 1
    print("Smoke checks OK.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
