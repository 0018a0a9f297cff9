"""Template preview and validation CLI for jinja_collect."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from jinja_collect.config.project_config import ProjectConfig, ProjectDiscovery
from jinja_collect.config.settings import settings
from jinja_collect.template_engine.engine import Jinja2TemplateEngine, TemplateEngineError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jinja-collect",
        description="Render and validate Jinja2 templates using collect/append blocks"
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--template", "-t",
        help="Template name to render (looked up in the template directories)"
    )
    source.add_argument(
        "--file", "-f",
        help="Template file to render directly"
    )
    source.add_argument(
        "--string",
        help="Inline template source to render"
    )
    parser.add_argument(
        "--project", "-p",
        help="Project root directory (default: discovered upward from the current directory)"
    )
    parser.add_argument(
        "--project-name", "-n",
        help="Project name (default: derived from directory)"
    )
    parser.add_argument(
        "--template-dir", "-d",
        action="append",
        default=[],
        help="Extra template directory (may be repeated)"
    )
    parser.add_argument(
        "--meta", "-m",
        help="Metadata as JSON string"
    )
    parser.add_argument(
        "--meta-file",
        help="Metadata from JSON file"
    )
    parser.add_argument(
        "--security", "-s",
        choices=["sandbox", "immutable", "unrestricted", "none"],
        default=None,
        help="Security mode (default: from settings, usually sandbox)"
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write a default .collect/config.yaml into the project and exit"
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="Only validate template syntax, don't render"
    )
    parser.add_argument(
        "--list-templates",
        action="store_true",
        help="List available templates and exit"
    )
    parser.add_argument(
        "--extension",
        default=".j2",
        help="Template file extension used by --list-templates (default: .j2)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output"
    )
    return parser


def _load_metadata(args: argparse.Namespace) -> dict:
    if args.meta:
        try:
            metadata = json.loads(args.meta)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in --meta: {e}") from e
    elif args.meta_file:
        try:
            with open(args.meta_file, 'r', encoding='utf-8') as f:
                metadata = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ValueError(f"Cannot read metadata file {args.meta_file}: {e}") from e
    else:
        return {}

    if not isinstance(metadata, dict):
        raise ValueError("Metadata must be a JSON object")
    return metadata


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for template rendering."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.project:
        project_root = Path(args.project).resolve()
    else:
        project_root = ProjectDiscovery.find_project_root() or Path.cwd().resolve()

    if args.init_config:
        config_file = ProjectDiscovery.ensure_config(project_root, ProjectConfig.defaults_for_project(project_root))
        print(f"Project config: {config_file}")
        return 0

    if not (args.template or args.file or args.string is not None or args.list_templates):
        parser.error("one of --template, --file, --string or --list-templates is required")

    try:
        metadata = _load_metadata(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        engine = Jinja2TemplateEngine(
            project_root=project_root,
            project_name=args.project_name or project_root.name,
            security_mode=args.security,
            template_dirs=[Path(d) for d in args.template_dir],
        )
    except TemplateEngineError as e:
        print(f"Error: Failed to initialize template engine: {e}", file=sys.stderr)
        return 1

    if args.verbose:
        print(f"Project root: {engine.project_root}", file=sys.stderr)
        print(f"Security mode: {engine.security_mode}", file=sys.stderr)
        for i, entry in enumerate(engine.describe_template_directories(), 1):
            print(f"  {i}. {entry['path']} [{entry['type']}]", file=sys.stderr)

    if args.list_templates:
        templates = engine.list_templates(args.extension)
        if not templates:
            print("No templates found.")
            return 0
        print("Available templates:")
        for template in templates:
            info = engine.get_template_info(template)
            print(f"  {template} ({info['template_type']}, {info['size_bytes']} bytes)")
        return 0

    source: Optional[str] = args.string
    if args.file:
        try:
            source = Path(args.file).read_text(encoding="utf-8")
        except OSError as e:
            print(f"Error: Cannot read template file {args.file}: {e}", file=sys.stderr)
            return 1

    if args.validate_only:
        if source is not None:
            validation = engine.validate_string(source)
            label = args.file or "<string>"
        else:
            validation = engine.validate_template(args.template)
            label = args.template
        if not validation["valid"]:
            print(f"Template '{label}' validation failed:")
            for error in validation["errors"]:
                print(f"  - {error}")
            return 1
        print(f"Template '{label}' is valid")
        return 0

    try:
        if source is not None:
            result = engine.render_string(source, metadata)
        else:
            result = engine.render_template(args.template, metadata)
    except TemplateEngineError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    sys.stdout.write(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
