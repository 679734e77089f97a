#!/usr/bin/env python3
"""
luna - Command-line client for the Luna astrology API.

Usage:
    luna login ana@example.com
    luna ask "What does this week hold for my career?"
    luna history --limit 10
    luna count
    luna partner-ask "How can we communicate better?"
"""
import argparse
import json
import os
import sys
from urllib.parse import urljoin

import requests

from luna.sse import iter_sse_payloads

DEFAULT_BASE = os.environ.get("LUNA_URL", "http://localhost:8000")
DEFAULT_TOKEN = os.environ.get("LUNA_TOKEN", "")
DEFAULT_IDENTITY = os.environ.get("LUNA_IDENTITY", "")


def _headers(args) -> dict:
    headers = {"Content-Type": "application/json"}
    if args.token:
        headers["Authorization"] = f"Bearer {args.token}"
    return headers


def _api(args, path: str) -> str:
    return urljoin(args.url, f"/api{path}")


def _require_identity(args) -> str:
    if not args.identity:
        print("❌ No identity. Run `luna login <email>` and export LUNA_IDENTITY / LUNA_TOKEN.")
        sys.exit(1)
    return args.identity


def _fail(resp) -> None:
    try:
        message = resp.json().get("error", resp.text)
    except ValueError:
        message = resp.text
    print(f"❌ Error {resp.status_code}: {str(message)[:500]}")
    if resp.status_code == 429:
        data = resp.json()
        print(f"   Daily limit {data.get('limit')} reached ({data.get('count')} asked today).")
    sys.exit(1)


def stream_answer(resp) -> str:
    """Print streamed fragments as they arrive and return the full answer."""
    answer = []
    for payload in iter_sse_payloads(resp.iter_lines(decode_unicode=True)):
        if "content" in payload:
            answer.append(payload["content"])
            print(payload["content"], end="", flush=True)
        elif "error" in payload:
            print(f"\n❌ {payload['error']}")
            sys.exit(1)
    print()
    return "".join(answer)


def cmd_login(args):
    """Exchange an email for a token and print the exports to use it."""
    resp = requests.post(_api(args, "/auth/login"), json={"email": args.email}, timeout=10)
    if resp.status_code != 200:
        _fail(resp)
    data = resp.json()
    print(f"export LUNA_IDENTITY={data['userId']}")
    print(f"export LUNA_TOKEN={data['access_token']}")


def cmd_ask(args):
    """Ask a personal question and stream the answer."""
    identity = _require_identity(args)
    with requests.post(
        _api(args, f"/identities/{identity}/messages"),
        json={"content": args.question},
        headers=_headers(args),
        stream=True,
        timeout=(10, 180),
    ) as resp:
        if resp.status_code != 200:
            _fail(resp)
        stream_answer(resp)


def cmd_partner_ask(args):
    """Ask about the relationship with your partner and stream the answer."""
    identity = _require_identity(args)
    partner_id = args.partner
    if not partner_id:
        resp = requests.get(
            _api(args, f"/identities/{identity}/partner"), headers=_headers(args), timeout=10,
        )
        if resp.status_code != 200:
            _fail(resp)
        partner = resp.json()
        if not partner:
            print("❌ No partner registered for this identity.")
            sys.exit(1)
        partner_id = partner["id"]

    with requests.post(
        _api(args, f"/partners/{partner_id}/questions"),
        json={"question": args.question, "userId": identity},
        headers=_headers(args),
        stream=True,
        timeout=(10, 180),
    ) as resp:
        if resp.status_code != 200:
            _fail(resp)
        stream_answer(resp)


def cmd_history(args):
    """Print the personal chat history."""
    identity = _require_identity(args)
    resp = requests.get(
        _api(args, f"/identities/{identity}/messages"),
        params={"limit": args.limit},
        headers=_headers(args),
        timeout=10,
    )
    if resp.status_code != 200:
        _fail(resp)
    messages = resp.json()
    if args.json:
        print(json.dumps(messages, indent=2, ensure_ascii=False))
        return
    for m in messages:
        who = "you " if m["role"] == "user" else "luna"
        suffix = " [cut short]" if m.get("truncated") else ""
        print(f"[{m['createdAt'][:16]}] {who}: {m['content']}{suffix}")


def cmd_count(args):
    """Show how many questions were asked today."""
    identity = _require_identity(args)
    resp = requests.get(
        _api(args, f"/identities/{identity}/questions/count"), headers=_headers(args), timeout=10,
    )
    if resp.status_code != 200:
        _fail(resp)
    print(f"Questions today: {resp.json()}")


def main():
    parser = argparse.ArgumentParser(
        prog="luna",
        description="Luna CLI - talk to your astrologer from the terminal",
    )
    parser.add_argument("--url", default=DEFAULT_BASE, help="API base URL")
    parser.add_argument("--token", default=DEFAULT_TOKEN, help="Bearer token")
    parser.add_argument("--identity", default=DEFAULT_IDENTITY, help="Identity ID")

    sub = parser.add_subparsers(dest="command", help="Command")

    # login
    p_login = sub.add_parser("login", help="Get a token for a registered email")
    p_login.add_argument("email")
    p_login.set_defaults(func=cmd_login)

    # ask
    p_ask = sub.add_parser("ask", help="Ask a personal question")
    p_ask.add_argument("question")
    p_ask.set_defaults(func=cmd_ask)

    # partner-ask
    p_partner = sub.add_parser("partner-ask", help="Ask about your relationship")
    p_partner.add_argument("question")
    p_partner.add_argument("--partner", "-p", default=None, help="Partner ID (defaults to yours)")
    p_partner.set_defaults(func=cmd_partner_ask)

    # history
    p_hist = sub.add_parser("history", help="Show personal chat history")
    p_hist.add_argument("--limit", "-n", type=int, default=50)
    p_hist.add_argument("--json", action="store_true", help="Raw JSON output")
    p_hist.set_defaults(func=cmd_history)

    # count
    p_count = sub.add_parser("count", help="Questions asked today")
    p_count.set_defaults(func=cmd_count)

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        return

    try:
        args.func(args)
    except requests.ConnectionError:
        print(f"❌ Cannot connect to {args.url}")
        sys.exit(1)


if __name__ == "__main__":
    main()
