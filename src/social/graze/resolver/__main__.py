from typing import Any, Dict, List, Optional
import argparse
import aiohttp
import asyncio
import json
import logging
import sys

from social.graze.resolver.app.cli import configure_logging
from social.graze.resolver.app.config import Settings
from social.graze.resolver.errors import ResolutionException
from social.graze.resolver.resolver import LocalResolver

logger = logging.getLogger(__name__)


def parse_options(values: List[str]) -> Dict[str, Any]:
    options: Dict[str, Any] = {}
    for value in values:
        key, sep, option_value = value.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"Invalid option {value!r}, expected key=value")
        options[key] = option_value
    return options


async def realMain(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="didresolve", description="Resolve DIDs")
    parser.add_argument("did", nargs="+", help="The DID(s) to resolve.")
    parser.add_argument(
        "--config",
        default=None,
        help="Driver configuration file (uni-resolver config.json format).",
    )
    parser.add_argument(
        "--plc-hostname",
        default="plc.directory",
        help="The PLC hostname to use for resolving did-method-plc DIDs.",
    )
    parser.add_argument(
        "--no-atproto",
        action="store_true",
        help="Do not register the native did:plc and did:web drivers.",
    )
    parser.add_argument(
        "--verify-handles",
        action="store_true",
        help="Verify AT Protocol handles claimed by resolved documents.",
    )
    parser.add_argument(
        "-o",
        "--option",
        action="append",
        default=[],
        help="Resolution option as key=value, may be repeated.",
    )
    parser.add_argument(
        "--result",
        action="store_true",
        help="Print the complete resolve result instead of the DID document.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")

    args = parser.parse_args(argv)
    configure_logging(args.debug)

    try:
        resolution_options = parse_options(args.option)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))

    settings = Settings(
        config_file=args.config,
        plc_hostname=args.plc_hostname,
        atproto_drivers=not args.no_atproto,
        verify_handles=args.verify_handles,
        debug=args.debug,
    )  # type: ignore

    failures = 0
    async with aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=settings.http_timeout)
    ) as session:
        resolver = LocalResolver.from_settings(settings, session)
        for did in args.did:
            try:
                resolve_result = await resolver.resolve(did, resolution_options)
            except ResolutionException as e:
                failures += 1
                print(json.dumps(e.to_resolve_result().to_json_dict(), indent=2))
                continue
            except Exception:
                failures += 1
                logger.exception("Exception resolving DID %s", did)
                continue
            if args.result:
                print(json.dumps(resolve_result.to_json_dict(), indent=2))
            else:
                print(json.dumps(resolve_result.did_document, indent=2))

    return 1 if failures else 0


def main() -> None:
    sys.exit(asyncio.run(realMain()))


if __name__ == "__main__":
    main()
