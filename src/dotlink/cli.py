# Dotlink - deploy dotfiles as symbolic links into a destination tree
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Command-line interface for dotlink.

This module contains the CLI functions including argument parsing,
configuration file handling, and the main entry point.
"""

from __future__ import annotations

import os
import re
import shlex
import sys
import traceback
from typing import Callable, Sequence

from dotlink.apply import apply
from dotlink.plan import build_plan, format_plan, format_report, format_unresolved
from dotlink.resolve import AutoApprove, PromptDecisions, resolve
from dotlink.types import (
    ApplyError,
    DeployConfig,
    DotlinkError,
    DotlinkProgrammingError,
    ElevationError,
    ExitCode,
    ValidationError,
)
from dotlink.util import PROGRAM_NAME, VERSION, set_debug_level, warn

RC_FILE = ".dotlinkrc"


class UsageError(ValidationError):
    """Bad command line; the usage text is shown."""


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point for the dotlink command."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        code = _main(args)
    except DotlinkProgrammingError as e:
        print(
            f"\n{PROGRAM_NAME}: INTERNAL ERROR: {e.message}\n{traceback.format_exc()}",
            file=sys.stderr,
        )
        print("This _is_ a bug. Please report it.", file=sys.stderr)
        sys.exit(e.errno)
    except UsageError as e:
        print(e.message, file=sys.stderr)
        print(usage_text(), file=sys.stderr)
        sys.exit(e.errno)
    except ElevationError as e:
        if e.report is not None:
            _print_lines(format_report(e.report))
        print(f"{PROGRAM_NAME}: ERROR: {e.message}", file=sys.stderr)
        print("Run this command manually to finish creating the links:", file=sys.stderr)
        print(f"  {e.command}", file=sys.stderr)
        sys.exit(e.errno)
    except ApplyError as e:
        _print_lines(format_report(e.report))
        print(f"{PROGRAM_NAME}: ERROR: {e.message}", file=sys.stderr)
        sys.exit(e.errno)
    except DotlinkError as e:
        print(f"{PROGRAM_NAME}: ERROR: {e.message}", file=sys.stderr)
        sys.exit(e.errno)
    sys.exit(code)


def _main(args: Sequence[str], input_func: Callable[[str], str] = input) -> ExitCode:
    """Main implementation (can raise DotlinkError)."""
    options = process_options(args)

    config = DeployConfig(
        source=options["source"],
        target=options["target"],
        dry_run=options.get("dry_run", False),
        auto_approve=options.get("yes", False),
        verbose=options.get("verbose", 0),
        ignore=tuple(options.get("ignore", [])),
        script_path=os.path.abspath(sys.argv[0]) if sys.argv and sys.argv[0] else None,
    )
    set_debug_level(config.verbose)

    plan = build_plan(
        config.source, config.target, config.ignore, script_path=config.script_path
    )
    for skipped in plan.skipped:
        warn(f"skipping {skipped.relative}: {skipped.reason}")

    if plan.is_empty:
        print("Nothing to do.")
        return ExitCode.OK

    if config.auto_approve:
        decisions = AutoApprove()
    else:
        decisions = PromptDecisions(input_func=input_func)
    plan = resolve(plan, decisions)

    _print_lines(format_plan(plan))

    if config.dry_run:
        report = apply(plan, dry_run=True)
        print(
            "WARNING: in simulation mode so not modifying filesystem.",
            file=sys.stderr,
        )
        _print_lines(format_report(report))
        _print_unresolved(plan)
        return ExitCode.OK

    if plan.is_empty:
        print("Nothing left to do.")
        _print_unresolved(plan)
        return ExitCode.OK

    if not config.auto_approve and not confirm(input_func):
        print("All operations aborted.", file=sys.stderr)
        return ExitCode.DECLINED

    report = apply(plan)
    _print_lines(format_report(report))
    _print_unresolved(plan)
    return ExitCode.OK


def confirm(input_func: Callable[[str], str] = input) -> bool:
    """Ask whether to go ahead with the displayed plan."""
    try:
        answer = input_func("Proceed? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def _print_lines(lines: Sequence[str]) -> None:
    for line in lines:
        print(line)


def _print_unresolved(plan) -> None:
    if plan.unresolved:
        print(f"{len(plan.unresolved)} conflict(s) left unresolved:")
        _print_lines(format_unresolved(plan))


def process_options(args: Sequence[str]) -> dict:
    """Parse and process command line and .dotlinkrc file options."""
    cli_options = parse_cli_options(args)
    rc_options = get_config_file_options()

    # Merge .dotlinkrc and command line options
    options = dict(rc_options)
    for option, cli_value in cli_options.items():
        rc_value = rc_options.get(option)

        if isinstance(cli_value, list) and rc_value is not None:
            options[option] = list(rc_value) + list(cli_value)
        else:
            options[option] = cli_value

    sanitize_path_options(options)
    return options


def _parse_bundled_options(chars: str, options: dict) -> None:
    """Parse bundled short options like -nyv."""
    i = 0
    while i < len(chars):
        char = chars[i]
        rest = chars[i + 1:]

        match char:
            case "n":
                options["dry_run"] = True
            case "y":
                options["yes"] = True
            case "v" if (m := re.match(r"\d+", rest)):
                options["verbose"] = int(m.group())
                i += len(m.group())
            case "v":
                options["verbose"] = options.get("verbose", 0) + 1
            case "h":
                show_usage_and_exit()
            case "V":
                show_version_and_exit()
            case "s" | "t" if rest:
                options["source" if char == "s" else "target"] = rest
                i += len(rest)
            case "s" | "t":
                raise UsageError(f"Option {char} requires an argument")
            case _:
                raise UsageError(f"Unknown option: {char}")
        i += 1


def parse_cli_options(args: Sequence[str]) -> dict:
    """Parse command line options into a dict."""
    options: dict = {}

    i = 0
    while i < len(args):
        arg = args[i]

        if arg in ("-s", "--source") and i + 1 < len(args):
            i += 1
            options["source"] = args[i]
        elif arg.startswith("--source="):
            options["source"] = arg[9:]

        elif arg in ("-t", "--target") and i + 1 < len(args):
            i += 1
            options["target"] = args[i]
        elif arg.startswith("--target="):
            options["target"] = arg[9:]

        elif arg == "--ignore" and i + 1 < len(args):
            i += 1
            options.setdefault("ignore", []).append(args[i])
        elif arg.startswith("--ignore="):
            options.setdefault("ignore", []).append(arg[9:])

        elif arg == "--verbose":
            options["verbose"] = options.get("verbose", 0) + 1
        elif arg.startswith("--verbose="):
            try:
                options["verbose"] = int(arg[10:])
            except ValueError:
                options["verbose"] = 1

        elif arg in ("--dry-run", "--simulate", "--no"):
            options["dry_run"] = True
        elif arg == "--yes":
            options["yes"] = True

        elif arg == "--help":
            show_usage_and_exit()
        elif arg == "--version":
            show_version_and_exit()

        elif arg.startswith("--"):
            opt_name = arg[2:].split("=", 1)[0]
            raise UsageError(f"Unknown option: {opt_name}")
        elif arg.startswith("-") and len(arg) > 1:
            _parse_bundled_options(arg[1:], options)
        else:
            raise UsageError(f"Unexpected argument: {arg}")

        i += 1

    return options


def sanitize_path_options(options: dict) -> None:
    """Validate and set defaults for source and target options."""
    if "source" not in options:
        options["source"] = os.environ.get("DOTLINK_DIR") or os.getcwd()
    if "target" not in options:
        options["target"] = os.path.expanduser("~")

    options["source"] = os.path.abspath(options["source"])
    options["target"] = os.path.abspath(options["target"])

    if not os.path.isdir(options["source"]):
        raise ValidationError(
            f"--source value '{options['source']}' is not a valid directory"
        )
    if not os.path.isdir(options["target"]):
        raise ValidationError(
            f"--target value '{options['target']}' is not a valid directory"
        )


def get_config_file_options() -> dict:
    """Search for default settings in any .dotlinkrc files."""
    defaults: list[str] = []
    rc_candidate_paths = [RC_FILE]

    home = os.environ.get("HOME")
    if home:
        rc_candidate_paths.insert(0, os.path.join(home, RC_FILE))

    for file_path in rc_candidate_paths:
        try:
            with open(file_path, "r") as f:
                for line in f:
                    line = line.rstrip("\n\r")
                    if line.lstrip().startswith("#"):
                        continue
                    try:
                        defaults.extend(shlex.split(line))
                    except ValueError:
                        defaults.extend(line.split())
        except (FileNotFoundError, PermissionError):
            continue  # Skip missing or unreadable files
        except IsADirectoryError:
            raise ValidationError(f"Could not open {file_path} for reading")

    rc_options = parse_cli_options(defaults)

    if "target" in rc_options:
        rc_options["target"] = expand_filepath(rc_options["target"], "--target option")
    if "source" in rc_options:
        rc_options["source"] = expand_filepath(rc_options["source"], "--source option")

    return rc_options


def expand_filepath(path: str, source: str) -> str:
    """Expand environment variables and tilde in file paths."""
    path = expand_environment_variables(path, source)
    if "\\~" in path:
        return path.replace("\\~", "~")
    return os.path.expanduser(path)


def expand_environment_variables(path: str, source: str) -> str:
    """Expand environment variables in path.

    Replace non-escaped $VAR and ${VAR} with os.environ[VAR].
    """

    def replace_var(match):
        var = match.group(1)
        try:
            return os.environ[var]
        except KeyError:
            raise ValidationError(
                f"{source} references undefined environment variable ${var}; aborting!"
            )

    path = re.sub(r"(?<!\\)\$\{([^}]+)}", replace_var, path)
    path = re.sub(r"(?<!\\)\$(\w+)", replace_var, path)
    path = path.replace("\\$", "$")

    return path


def usage_text() -> str:
    return f"""{PROGRAM_NAME} version {VERSION}

SYNOPSIS:

    {PROGRAM_NAME} [OPTION ...]

Mirrors the folders of SOURCE into TARGET and links every file in TARGET
back to SOURCE.  Files already present in TARGET can be adopted into
SOURCE; links pointing elsewhere can be replaced.

OPTIONS:

    -s DIR, --source=DIR  Dotfiles tree to deploy (default: $DOTLINK_DIR
                          or the current directory)
    -t DIR, --target=DIR  Where to place the links (default: home directory)

    --ignore=PATTERN      Do not deploy paths equal to, starting with, or
                          matching PATTERN ('*' is a wildcard); may be repeated.
                          Patterns are also read from SOURCE/.dotlinkignore
    -y, --yes             Accept every conflict and skip the confirmation
                          (Use with care!  Adopting replaces files in SOURCE.)

    -n, --dry-run         Do not actually make any filesystem changes
    -v, --verbose[=N]     Increase verbosity (levels are from 0 to 5;
                            -v or --verbose adds 1; --verbose=N sets level)
    -V, --version         Show version number
    -h, --help            Show this help

Defaults can be placed in ~/.dotlinkrc or ./.dotlinkrc."""


def show_usage_and_exit() -> None:
    """Print program usage message and exit."""
    print(usage_text())
    sys.exit(0)


def show_version_and_exit() -> None:
    """Print version and exit."""
    print(f"{PROGRAM_NAME} version {VERSION}")
    sys.exit(0)


if __name__ == "__main__":
    main()
