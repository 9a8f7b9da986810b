"""
FX Rate Service command line entry point.

    python -m fxrates serve                 # run the HTTP API (with periodic refresh)
    python -m fxrates refresh               # one-shot refresh, exit 1 on failure
    python -m fxrates convert USD GBP 100   # convert from persisted rates
"""
import argparse
import json
import sys
from decimal import Decimal, InvalidOperation

from fxrates.core.config import get_settings
from fxrates.core.errors import RateNotFound, StorageError
from fxrates.core.logging import init_logging, job_context


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="fxrates",
        description="Fetch FX rates against a pivot currency and convert amounts.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8080)

    sub.add_parser("refresh", help="fetch and store the latest rates once")

    convert = sub.add_parser("convert", help="convert an amount from stored rates")
    convert.add_argument("from_currency", metavar="FROM")
    convert.add_argument("to_currency", metavar="TO")
    convert.add_argument("amount")

    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = get_settings()

    if args.command == "serve":
        import uvicorn

        uvicorn.run(
            "fxrates.main:create_app", factory=True, host=args.host, port=args.port
        )
        return 0

    from fxrates.main import build_rate_service

    init_logging(debug=settings.debug)
    try:
        _, service = build_rate_service(settings)
    except StorageError as e:
        print(f"rate store unavailable: {e}", file=sys.stderr)
        return 1

    if args.command == "refresh":
        with job_context("cli"):
            outcome = service.refresh_rates()
        print(outcome.message)
        return 0 if outcome.ok else 1

    try:
        amount = Decimal(args.amount)
    except InvalidOperation:
        print(f"invalid amount: {args.amount}", file=sys.stderr)
        return 2
    try:
        result = service.convert(args.from_currency, args.to_currency, amount)
    except (RateNotFound, ValueError, StorageError) as e:
        print(str(e), file=sys.stderr)
        return 1
    print(json.dumps(result.model_dump(mode="json"), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
