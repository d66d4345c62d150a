"""Argument parsing functionality for pkgwright."""

import argparse

from constants import Constants


def _add_global_arguments(parser):
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML, YML, or JSON)",
                        action="store",
                        type=str)
    parser.add_argument("--registry",
                        dest="REGISTRY_URL",
                        help=f"Registry base URL (default: {Constants.REGISTRY_URL})",
                        action="store",
                        type=str)
    parser.add_argument("--install-root",
                        dest="INSTALL_ROOT",
                        help=f"Directory packages are installed into (default: {Constants.INSTALL_ROOT})",
                        action="store",
                        type=str)
    parser.add_argument("--max-concurrency",
                        dest="MAX_CONCURRENCY",
                        help=f"Maximum concurrent registry and install operations (default: {Constants.MAX_CONCURRENCY})",
                        action="store",
                        type=int)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'])
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-q", "--quiet",
                        dest="QUIET",
                        help="Do not output log messages to the console.",
                        action="store_true")


def build_parser():
    """Build the top-level parser with one subparser per command."""
    parser = argparse.ArgumentParser(
        prog="pkgwright",
        description="pkgwright - install and manage packages from an npm-style registry",
        add_help=True,
    )
    _add_global_arguments(parser)
    subparsers = parser.add_subparsers(dest="action", metavar="COMMAND")
    subparsers.required = True

    list_parser = subparsers.add_parser("list", help="List catalog packages")
    list_parser.add_argument("--installed",
                             dest="INSTALLED_ONLY",
                             help="Only show installed packages",
                             action="store_true")
    list_parser.add_argument("--json",
                             dest="JSON",
                             help="Emit JSON instead of a table",
                             action="store_true")

    info_parser = subparsers.add_parser("info", help="Show package details and dependency status")
    info_parser.add_argument("name", metavar="NAME", help="Package name")
    info_parser.add_argument("--json",
                             dest="JSON",
                             help="Emit JSON instead of text",
                             action="store_true")

    install_parser = subparsers.add_parser("install", help="Install a package and its dependencies")
    install_parser.add_argument("package", metavar="NAME[@RANGE]",
                                help="Package to install, optionally with a version or range")
    install_parser.add_argument("-y", "--yes",
                                dest="ASSUME_YES",
                                help="Proceed without prompting on conflicts or missing dependencies",
                                action="store_true")

    uninstall_parser = subparsers.add_parser("uninstall", help="Remove an installed package")
    uninstall_parser.add_argument("name", metavar="NAME", help="Package name")
    uninstall_parser.add_argument("-y", "--yes",
                                  dest="ASSUME_YES",
                                  help="Do not ask for confirmation",
                                  action="store_true")

    conflicts_parser = subparsers.add_parser("conflicts", help="Report dependency conflicts for a package")
    conflicts_parser.add_argument("name", metavar="NAME", help="Package name")

    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
