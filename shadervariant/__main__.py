"""A tiny CLI.

Invoke using e.g. ``python -m shadervariant version`` or
``python -m shadervariant compile path/to/shader.wgsl -f VERTEX_COLOR``.
"""

import os
import sys
import json
import argparse

import jinja2

import shadervariant
from shadervariant.compiler import ShaderCompiler, ShaderCompileError


def main(argv=None):
    # Get argv so we can massage it
    if argv is None:
        argv = sys.argv
    if argv and argv[0].endswith(".py"):
        argv = argv[1:]

    # Defaults and aliases
    if not argv:
        argv = ["help"]
    if argv == ["--version"]:
        argv = ["version"]

    # Let the rest to argparse

    parser = argparse.ArgumentParser(
        prog="shadervariant",
        description="The (very basic) shadervariant CLI",
    )

    parser.add_argument(
        "command",
        action="store",
        help="The command to run: 'help', 'version' or 'compile'",
    )
    parser.add_argument(
        "template", nargs="?", help="The template file to compile (for 'compile')"
    )
    parser.add_argument(
        "-f",
        "--flag",
        action="append",
        default=[],
        dest="flags",
        help="A flag to enable (can be given multiple times)",
    )
    parser.add_argument(
        "-I",
        "--include-dir",
        action="append",
        default=[],
        dest="include_dirs",
        help="An extra directory to look for includes (can be given multiple times)",
    )
    parser.add_argument(
        "--reflection",
        action="store_true",
        help="Print the reflection table as json instead of the code",
    )

    args = parser.parse_args(argv)
    command = args.command.lower()

    if command == "help":
        parser.print_help()
    elif command == "version":
        print("shadervariant v" + shadervariant.__version__)
    elif command == "compile":
        return compile_command(parser, args)
    else:
        print(f"Invalid command '{command}'")
        return 1
    return 0


def compile_command(parser, args):
    if not args.template:
        parser.error("the compile command needs a template")

    # The template dir comes first, so that the template's own includes win
    template_dir, name = os.path.split(os.path.abspath(args.template))
    search_path = [template_dir] + [os.path.abspath(d) for d in args.include_dirs]
    compiler = ShaderCompiler(jinja2.FileSystemLoader(search_path))

    try:
        variant = compiler.compile(name, args.flags)
    except ShaderCompileError as err:
        print(f"{err.kind}: {err}", file=sys.stderr)
        return 1

    if args.reflection:
        print(json.dumps(variant.reflection.to_dict(), indent=2))
    else:
        print(variant.code, end="")
    return 0


if __name__ == "__main__":
    sys.exit(main())
