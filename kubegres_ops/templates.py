"""Generate a Python module that holds every YAML resource template as a string constant."""

from __future__ import annotations

import argparse
import keyword
from pathlib import Path

DEFAULT_TEMPLATE_DIR = "controllers/spec/template/yaml"
DEFAULT_DESTINATION_NAME = "templates.py"
TEMPLATE_SUFFIX = ".yaml"

_HEADER = (
    "# This file is auto generated from the YAML templates next to it.\n"
    "# Any manual modification to this file will be lost during next generation.\n"
)


def collect_templates(template_dir: str | Path) -> list[tuple[str, str]]:
    """Return ``(constant name, contents)`` for every ``.yaml`` file, ordered by file name."""
    directory = Path(template_dir)
    templates = []
    for path in sorted(directory.iterdir(), key=lambda p: p.name):
        if not path.is_file() or not path.name.endswith(TEMPLATE_SUFFIX):
            continue
        name = path.name[: -len(TEMPLATE_SUFFIX)]
        if not name.isidentifier() or keyword.iskeyword(name):
            raise ValueError(f"template file name {path.name!r} does not give a valid constant name")
        templates.append((name, path.read_text(encoding="utf-8")))
    return templates


def render_templates_module(templates: list[tuple[str, str]]) -> str:
    """Render the source text of a module defining one string constant per template."""
    lines = [_HEADER]
    for name, contents in templates:
        lines.append(f"{name} = {contents!r}\n")
    return "\n".join(lines)


def write_templates_module(template_dir: str | Path, destination: str | Path) -> list[Path]:
    """Write the templates module to ``destination``; return the template files it copied."""
    directory = Path(template_dir)
    destination = Path(destination)
    templates = collect_templates(directory)
    print(
        f"Setting constants in the file: '{destination}', "
        "by copying the YAML contents of the following files:"
    )
    copied = []
    for name, _ in templates:
        path = directory / f"{name}{TEMPLATE_SUFFIX}"
        print(f"- '{path}'")
        copied.append(path)
    destination.write_text(render_templates_module(templates), encoding="utf-8")
    return copied


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Copy YAML resource templates into a Python module of string constants."
    )
    parser.add_argument("template_dir", nargs="?", default=DEFAULT_TEMPLATE_DIR)
    parser.add_argument("-o", "--output", default=None, help="module to write")
    args = parser.parse_args(argv)
    destination = args.output or str(Path(args.template_dir) / DEFAULT_DESTINATION_NAME)
    write_templates_module(args.template_dir, destination)
    return 0