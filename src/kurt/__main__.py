"""
=============================================================================
COMMAND LINE
=============================================================================

    kurt                                 serve ./site.py on 127.0.0.1:8080
    kurt -a 0.0.0.0 -p 3000 -v           all interfaces, access logging on
    kurt --site examples/site.py         another site file
    kurt --delegate myapp.web:Delegate   a custom KurtDelegate subclass

Startup order:

    1. ServerConfig.from_env(), then command-line overrides, validate()
    2. logging, verbosity
    3. delegate: --delegate, else the embedder's default, else DefaultDelegate
    4. site file (if it exists) → delegate.configure_site()
    5. bind()  → non-zero status becomes the exit code
    6. run()

Configuration problems (bad flags, bad env vars, a delegate that cannot be
imported, a site file that fails or registers a malformed route) exit with
status 2.

=============================================================================
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional, Type

from . import __version__
from .config import LOG_LEVELS, ServerConfig
from .delegate import DefaultDelegate, KurtDelegate
from .errors import InvalidPatternError
from .server import Kurt, configure_logging


logger = logging.getLogger("kurt.cli")

EXIT_CONFIG_ERROR = 2


def resolve_delegate(import_string: str) -> Type[KurtDelegate]:
    """
    Resolve "package.module:ClassName" (or "package.module.ClassName").

    Raises:
        ImportError:    If the module cannot be imported.
        AttributeError: If the class does not exist.
        TypeError:      If the object is not a KurtDelegate subclass.
    """
    module_path, sep, attr_name = import_string.partition(":")
    if not sep:
        module_path, _, attr_name = import_string.rpartition(".")
    if not module_path or not attr_name:
        raise ImportError(f"Invalid delegate {import_string!r}, expected 'module:Class'")

    module = importlib.import_module(module_path)
    obj = getattr(module, attr_name)
    if not (isinstance(obj, type) and issubclass(obj, KurtDelegate)):
        raise TypeError(f"{import_string!r} is not a KurtDelegate subclass")
    return obj


def build_parser(defaults: ServerConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kurt",
        description="Embedded HTTP server that routes requests to handlers.",
    )
    parser.add_argument(
        "--site", "-s",
        default=defaults.site_file,
        help=f"Site description file (default: {defaults.site_file})",
    )
    parser.add_argument(
        "--delegate", "-d",
        default=defaults.delegate,
        help="Delegate class as module:Class (default: DefaultDelegate)",
    )
    parser.add_argument(
        "--address", "-a",
        default=defaults.host,
        help=f"Address to bind to (default: {defaults.host})",
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=defaults.port,
        help=f"Port to listen on (default: {defaults.port})",
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=defaults.max_workers,
        help=f"Maximum worker threads (default: {defaults.max_workers})",
    )
    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=LOG_LEVELS,
        default=defaults.log_level,
        help=f"Logging level (default: {defaults.log_level})",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        default=defaults.verbose,
        help="Log every request",
    )
    parser.add_argument(
        "--dump",
        action="store_true",
        help="Log the routing table before serving",
    )
    parser.add_argument("--version", action="version", version=f"kurt {__version__}")
    return parser


def main(argv: Optional[List[str]] = None, delegate_class_name: Optional[str] = None) -> int:
    """
    Run Kurt from the command line.

    Args:
        argv:                Arguments without the program name (sys.argv[1:]).
        delegate_class_name: Delegate used when --delegate is not given.

    Returns:
        Process exit status.
    """
    try:
        defaults = ServerConfig.from_env()
    except ValueError as e:
        print(f"kurt: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    args = build_parser(defaults).parse_args(argv)

    config = defaults
    config.host = args.address
    config.port = args.port
    config.max_workers = args.workers
    config.min_workers = min(config.min_workers, max(args.workers, 1))
    config.site_file = args.site
    config.log_level = args.log_level
    config.verbose = args.verbose
    try:
        config.validate()
    except ValueError as e:
        print(f"kurt: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    configure_logging(config.log_level)
    Kurt.set_verbose(config.verbose)

    delegate_name = args.delegate or delegate_class_name
    try:
        delegate_class = resolve_delegate(delegate_name) if delegate_name else DefaultDelegate
        delegate = delegate_class()
    except (ImportError, AttributeError, TypeError) as e:
        logger.error("Cannot load delegate %r: %s", delegate_name, e)
        return EXIT_CONFIG_ERROR

    kurt = Kurt.instance(config)
    kurt.set_delegate(delegate)

    site = Path(config.site_file)
    if site.is_file():
        try:
            delegate.configure_site(str(site))
        except InvalidPatternError as e:
            logger.error("Site %s: %s", site, e)
            return EXIT_CONFIG_ERROR
        except Exception:
            logger.exception("Site %s failed to load", site)
            return EXIT_CONFIG_ERROR
    else:
        logger.info("No site file at %s, serving registered routes only", site)

    if args.dump:
        delegate.dump()

    status = kurt.bind(config.host, config.port)
    if status != 0:
        return status

    kurt.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
