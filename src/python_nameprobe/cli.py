"""Command line entry point: ``nameprobe``."""

import argparse
import json
import logging
import os
import sys
import time
from contextlib import ExitStack
from typing import Any, Callable, Dict, List, Optional, TextIO

from .checker import NameChecker, DEFAULT_INTERVAL
from .client import ProbeOutcome
from .errors import NameProbeError, CredentialsUnset
from .store import SessionStore

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_NOT_VALID = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nameprobe",
        description="Check whether filenames pass the cloud drive's filename censor "
                    "without uploading anything.",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="-v for progress logging, -vv for request details")
    parser.add_argument("--cache", help="session cache file (default: next to the executable)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("clean", help="remove the cached session")

    p_set = sub.add_parser("set-cookies", help="store the cookie header of a logged-in session")
    p_set.add_argument("cookies")

    p_check = sub.add_parser("check", help="check one name, or a file of names with --list")
    p_check.add_argument("name", nargs="?")
    p_check.add_argument("-l", "--list", dest="list_of_names", metavar="FILE",
                         help="newline separated names to check; blank lines are skipped")
    p_check.add_argument("--forbidden-out", metavar="PATH", help="write forbidden names here")
    p_check.add_argument("--failed-out", metavar="PATH", help="write names that could not be checked here")
    p_check.add_argument("--interval", default=str(DEFAULT_INTERVAL),
                         help=f"seconds to wait between probes (default {DEFAULT_INTERVAL})")

    p_status = sub.add_parser("status", help="show the cached session")
    group = p_status.add_mutually_exclusive_group()
    group.add_argument("--cookies", action="store_true", help="print the stored cookie header")
    group.add_argument("--session", action="store_true", help="print all stored session fields")
    return parser


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, stream=sys.stderr,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _open_outputs(stack: ExitStack, paths: List[Optional[str]]) -> Optional[List[Optional[TextIO]]]:
    """Create every given output exclusively.

    If one cannot be created, the ones already created by this call are removed again
    so a corrected rerun is not refused.
    """
    sinks: List[Optional[TextIO]] = []
    created: List[TextIO] = []
    for path in paths:
        if not path:
            sinks.append(None)
            continue
        try:
            sink = stack.enter_context(open(path, 'x', encoding='utf-8'))
        except OSError as e:
            if isinstance(e, FileExistsError):
                print(f"file already exist: {path}", file=sys.stderr)
            else:
                print(f"fail to create file: {path} ({e})", file=sys.stderr)
            for done in created:
                done.close()
                os.remove(done.name)
            return None
        created.append(sink)
        sinks.append(sink)
    return sinks


def _print_result(name: str, outcome: ProbeOutcome) -> None:
    if outcome.is_valid:
        print(f"checked {name}")
    elif outcome.is_forbidden:
        print(f"NAME NOT ALLOW: {name}")
    else:
        print(f"failed to check: {name}, cause by: {outcome.reason}")


def _cmd_check(args, store: SessionStore, client_kwargs: Dict[str, Any], sleep: Callable[[float], None]) -> int:
    try:
        interval = float(args.interval)
    except ValueError:
        interval = -1.0
    if interval < 0:
        print("interval must be a non-negative number", file=sys.stderr)
        return EXIT_FAILED
    if not args.list_of_names and not args.name:
        print("either a name or --list is required", file=sys.stderr)
        return EXIT_FAILED

    client = store.load(**client_kwargs)
    if client is None:
        print(CredentialsUnset(), file=sys.stderr)
        return EXIT_FAILED
    checker = NameChecker(client, interval=interval, sleep=sleep)

    if not args.list_of_names:
        try:
            is_valid = checker.check_one(args.name)
        except NameProbeError as e:
            logger.debug("check of %r failed", args.name, exc_info=True)
            print(f"fail to check {args.name}: {e}", file=sys.stderr)
            return EXIT_FAILED
        finally:
            # keys may have been derived during the check
            _persist(store, client)
        if is_valid:
            print("name is VALID")
            return EXIT_OK
        print("name is NOT valid")
        return EXIT_NOT_VALID

    with ExitStack() as stack:
        try:
            names = stack.enter_context(open(args.list_of_names, 'r', encoding='utf-8'))
        except OSError as e:
            print(f"fail to open file: {args.list_of_names} ({e})", file=sys.stderr)
            return EXIT_FAILED
        sinks = _open_outputs(stack, [args.forbidden_out, args.failed_out])
        if sinks is None:
            return EXIT_FAILED
        forbidden, failed = sinks
        try:
            checker.check_many(names, forbidden_sink=forbidden, failure_sink=failed,
                               on_result=_print_result)
        except (NameProbeError, OSError, UnicodeDecodeError) as e:
            print(f"bulk check failed: {e}", file=sys.stderr)
            return EXIT_FAILED
        finally:
            _persist(store, client)
    return EXIT_OK


def _persist(store: SessionStore, client) -> None:
    if not client.has_keys:
        return
    try:
        store.save(client)
    except OSError as e:
        logger.warning("could not update session cache %s: %s", store.path, e)


def _cmd_status(args, store: SessionStore) -> int:
    client = store.load()
    if args.cookies:
        print(client.cookies if client else "cookies not set!")
    elif args.session:
        print(json.dumps(client.to_dict(), indent=2) if client else "cookies not set!")
    elif client:
        print("You are in! (cookies may expire anytime!)")
    else:
        print("Warning: cookies not set!")
    return EXIT_OK


def main(argv: Optional[List[str]] = None, store: Optional[SessionStore] = None,
         client_kwargs: Optional[Dict[str, Any]] = None,
         sleep: Callable[[float], None] = time.sleep) -> int:
    """Run the CLI and return the process exit status.

    :param argv: Arguments without the program name; defaults to ``sys.argv[1:]``.
    :param store: Session store; built from ``--cache`` if omitted.
    :param client_kwargs: Extra keyword arguments for every :class:`ProbeClient`.
    :param sleep: Delay function used between bulk probes.
    """
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    store = store or SessionStore(args.cache)
    client_kwargs = client_kwargs or {}

    if args.command == "clean":
        try:
            store.clear()
        except OSError as e:
            print(f"clean failed, unable to delete {store.path}: {e}", file=sys.stderr)
            return EXIT_FAILED
        return EXIT_OK

    if args.command == "set-cookies":
        try:
            store.set_cookies(args.cookies, **client_kwargs)
        except (NameProbeError, OSError) as e:
            print(f"set-cookies failed: {e}", file=sys.stderr)
            return EXIT_FAILED
        return EXIT_OK

    if args.command == "check":
        return _cmd_check(args, store, client_kwargs, sleep)

    return _cmd_status(args, store)


def run() -> None:
    sys.exit(main())
