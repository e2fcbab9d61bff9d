# main.py
# Punto de entrada: petición (flags/entorno) -> fetch IMAP -> JSON por stdout
from __future__ import annotations
import argparse
import json
import logging
import sys
from config.settings import Settings
from interface_adapters.controllers.fetch_controller import FetchController

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fetch a page of messages from an IMAP mailbox with forensic header metadata."
    )
    parser.add_argument("--email", help="Mailbox account (defaults to IMAP_USERNAME).")
    parser.add_argument("--app-password", help="App password (defaults to IMAP_PASSWORD).")
    parser.add_argument("--mailbox", choices=("inbox", "spam"), default="inbox")
    parser.add_argument("--order", choices=("asc", "desc"), default="desc")
    parser.add_argument("--offset", type=int, default=1, help="1-based start position.")
    parser.add_argument("--limit", type=int, default=None, help="Page size (1..MAX_LIMIT).")
    parser.add_argument("--search", default="")
    parser.add_argument("--from-domain", default="")
    parser.add_argument("--from-address", default="")
    parser.add_argument("--to", dest="to_substring", default="")
    parser.add_argument("--pretty", action="store_true", help="Indent the JSON output.")
    return parser.parse_args(argv)


def build_payload(args: argparse.Namespace) -> dict[str, object]:
    payload: dict[str, object] = {
        "mailboxKind": args.mailbox,
        "order": args.order,
        "offset": args.offset,
        "search": args.search,
        "fromDomain": args.from_domain,
        "fromAddress": args.from_address,
        "toSubstring": args.to_substring,
    }
    if args.email:
        payload["email"] = args.email
    if args.app_password:
        payload["appPassword"] = args.app_password
    if args.limit is not None:
        payload["limit"] = args.limit
    return payload


def main(argv: list[str] | None = None) -> int:
    settings = Settings()
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        stream=sys.stderr,
    )
    args = parse_args(argv)
    controller = FetchController(settings=settings)

    logger.info("=== Mail Forensics Fetch ===")
    logger.info("IMAP host=%s mailbox=%s", settings.IMAP_HOST, args.mailbox)
    status, body = controller.handle(build_payload(args))
    print(json.dumps(body, ensure_ascii=False, indent=2 if args.pretty else None))

    if status == 200:
        return 0
    return 2 if status == 400 else 1


if __name__ == "__main__":
    raise SystemExit(main())
