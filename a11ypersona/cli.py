"""
a11ypersona — command-line access to the scanner.

Usage:
    a11ypersona list-personas
    a11ypersona get-personas deaf-blind "Screen Reader User (NVDA)"
    a11ypersona scan-script --text "Press the green button now" --script-type phone
    a11ypersona scan-requirements --file requirements.md --personas deaf-blind
    a11ypersona analyze-persona cognitive-memory-loss --apply
    a11ypersona audit-personas
    a11ypersona serve --port 8000

Add --json to any command for machine-readable output.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from a11ypersona.config import settings
from a11ypersona.detector import PersonaScanner
from a11ypersona.errors import A11yError, ValidationError
from a11ypersona.logging import setup_logging
from a11ypersona.personas import format_persona


def _read_text(args) -> str:
    if args.file:
        return Path(args.file).read_text(encoding="utf-8")
    if args.text:
        return args.text
    return sys.stdin.read()


def _personas_arg(value: str | None) -> list[str] | None:
    if not value:
        return None
    return [p.strip() for p in value.split(",") if p.strip()]


def _print(args, payload, text: str) -> None:
    if args.json:
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        print(text)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="a11ypersona", description="A11y Persona Scanner")
    parser.add_argument("--json", action="store_true", help="Output JSON")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list-personas", help="List all personas")

    get_p = sub.add_parser("get-personas", help="Show personas by id or title")
    get_p.add_argument("queries", nargs="+")

    for name, help_text in (("scan-script", "Review a support script"),
                            ("scan-requirements", "Review product requirements")):
        scan_p = sub.add_parser(name, help=help_text)
        scan_p.add_argument("--text", help="Text to scan (default: stdin)")
        scan_p.add_argument("--file", help="Read text from a file")
        scan_p.add_argument("--personas", help="Comma-separated persona ids or titles")
        if name == "scan-script":
            scan_p.add_argument("--script-type", default="")
            scan_p.add_argument("--issue-category", default="")

    analyze_p = sub.add_parser("analyze-persona", help="Propose rule-set growth for a persona")
    analyze_p.add_argument("persona_id")
    analyze_p.add_argument("--apply", action="store_true", help="Write proposals to the rule set")

    sub.add_parser("audit-personas", help="Compare persona ids in rules with the catalog")

    serve_p = sub.add_parser("serve", help="Run the HTTP API")
    serve_p.add_argument("--host", default=settings.HOST)
    serve_p.add_argument("--port", type=int, default=settings.PORT)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    setup_logging(fmt="text")

    if args.command == "serve":
        import uvicorn
        uvicorn.run("api.main:app", host=args.host, port=args.port)
        return 0

    scanner = PersonaScanner.from_settings()

    try:
        if args.command == "list-personas":
            personas = scanner.list_personas()
            text = f"# Available Accessibility Personas ({len(personas)})\n\n" + "\n".join(
                f"- **{p['id']}**: {p['title']}" for p in personas
            )
            _print(args, personas, text)

        elif args.command == "get-personas":
            result = scanner.get_personas(args.queries)
            text = "\n\n---\n\n".join(format_persona(p) for p in result["personas"])
            if result["not_found"]:
                text += (f"\n\n> **Not found:** {', '.join(result['not_found'])}\n"
                         f"> Use `list-personas` to see all available personas.")
            payload = {
                "personas": [{"id": p.id, "title": p.title, "markdown": format_persona(p)}
                             for p in result["personas"]],
                "not_found": result["not_found"],
            }
            _print(args, payload, text.strip())

        elif args.command == "scan-script":
            report = scanner.scan_script(
                _read_text(args),
                script_type=args.script_type,
                issue_category=args.issue_category,
                personas=_personas_arg(args.personas),
            )
            _print(args, report.to_dict(), report.text)

        elif args.command == "scan-requirements":
            report = scanner.scan_requirements(
                _read_text(args), personas=_personas_arg(args.personas),
            )
            _print(args, report.to_dict(), report.text)

        elif args.command == "analyze-persona":
            result = scanner.analyze_persona(args.persona_id, auto_apply=args.apply)
            print(json.dumps(result, indent=2, ensure_ascii=False))

        elif args.command == "audit-personas":
            audit = scanner.audit_persona_references()
            text = (
                f"Persona ids referenced by rules: {audit['referenced_count']}\n"
                f"Unknown ids: {', '.join(audit['unknown_persona_ids']) or 'none'}\n"
                f"Unreferenced personas: {', '.join(audit['unreferenced_personas']) or 'none'}"
            )
            _print(args, audit, text)

    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        if e.valid_ids:
            print(f"Valid persona ids: {', '.join(e.valid_ids)}", file=sys.stderr)
        return 2
    except A11yError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: could not read input: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
