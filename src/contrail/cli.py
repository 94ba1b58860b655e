from __future__ import annotations

from pathlib import Path
from typing import Optional

import json
import typer
from rich.console import Console
from rich.table import Table

from contrail.analyze import analyze_contract, recommend_env
from contrail.classify.fields import FieldRole
from contrail.config import Settings
from contrail.contract.builder import build_registry
from contrail.contract.loader import load_contract
from contrail.dredd_config import write_dredd_config
from contrail.errors import ContractLoadError
from contrail.telemetry.logging import setup_logging


app = typer.Typer(no_args_is_help=True, add_completion=False)

endpoints_app = typer.Typer(no_args_is_help=True)
app.add_typer(endpoints_app, name="endpoints")

console = Console()


@app.callback()
def _main(
    debug: Optional[bool] = typer.Option(None, "--debug/--no-debug", help="Debug logging (default: ENABLE_DEBUG_LOGGING)"),
) -> None:
    settings = Settings()
    setup_logging(
        debug=settings.enable_debug_logging if debug is None else debug,
        fmt=settings.log_format,
    )


def _load(contract: Optional[str]) -> tuple[Settings, dict]:
    settings = Settings()
    path = Path(contract or settings.openapi_schema_path).expanduser()
    try:
        return settings, load_contract(path)
    except ContractLoadError as e:
        console.print(f"[bold red]error[/bold red] {e}")
        raise typer.Exit(code=1) from e


@app.command()
def analyze(
    contract: Optional[str] = typer.Argument(None, help="Contract file (default: OPENAPI_SCHEMA_PATH)"),
    out: str = typer.Option(".env.generated", help="Where to write the recommended settings"),
    write: bool = typer.Option(True, "--write/--no-write", help="Write recommendations to --out"),
) -> None:
    _, document = _load(contract)
    analysis = analyze_contract(document)

    console.print("[bold green]contrail[/bold green] analyze")
    console.print(f"Auth endpoints found: [bold]{len(analysis.auth_endpoints)}[/bold]")
    if analysis.login_path:
        console.print(f"  Login:    {analysis.login_path}")
    if analysis.register_path:
        console.print(f"  Register: {analysis.register_path}")
    console.print(f"Protected endpoints: [bold]{len(analysis.protected_endpoints)}[/bold]")
    console.print(f"Security schemes: [bold]{len(analysis.security_schemes)}[/bold]")
    for s in analysis.security_schemes:
        console.print(f"  {s.name}: {s.type} ({s.scheme or s.location or '-'})")

    for role in (FieldRole.EMAIL, FieldRole.PASSWORD, FieldRole.TOKEN, FieldRole.IDENTIFIER):
        names = analysis.fields.get(role, [])
        if names:
            console.print(f"  {role.value:<10} {', '.join(names)}")

    lines = recommend_env(analysis)
    console.print("")
    console.print("[bold]Recommended .env configuration:[/bold]")
    for line in lines:
        console.print(f"  {line}", markup=False)

    if write:
        out_path = Path(out).expanduser()
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        console.print("")
        console.print(f"[bold green]Wrote[/bold green] recommendations to: {out_path}")


@endpoints_app.command("list")
def endpoints_list(
    contract: Optional[str] = typer.Argument(None, help="Contract file (default: OPENAPI_SCHEMA_PATH)"),
    method: Optional[str] = typer.Option(None, help="Filter by HTTP method (GET/POST/...)"),
    path_contains: Optional[str] = typer.Option(None, help="Substring match on path template"),
    protected: bool = typer.Option(False, "--protected", help="Only endpoints that require auth"),
    format: str = typer.Option("table", help="Output format: table|json"),
) -> None:
    settings, document = _load(contract)
    registry = build_registry(
        document,
        auto_discovery=settings.enable_auto_discovery,
        login_path=settings.auth_login_endpoint,
        register_path=settings.auth_register_endpoint,
    )

    rows = [
        e
        for e in sorted(registry, key=lambda d: (d.path_template, d.method))
        if (method is None or e.method == method.upper())
        and (path_contains is None or path_contains in e.path_template)
        and (not protected or e.requires_auth)
    ]

    console.print(f"[bold]Endpoints:[/bold] {len(rows)} of {len(registry)}")
    console.print(f"[bold]Login:[/bold] {registry.login_path}  [bold]Register:[/bold] {registry.register_path}")

    if format.lower() == "json":
        payload = [
            {
                "method": e.method,
                "path": e.path_template,
                "requires_auth": e.requires_auth,
                "request_fields": sorted((e.request_schema or {}).get("properties", {}) or {}),
                "responses": sorted(e.response_schemas),
            }
            for e in rows
        ]
        console.print(json.dumps(payload, indent=2))
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("METHOD", no_wrap=True)
    table.add_column("PATH")
    table.add_column("AUTH", no_wrap=True)
    table.add_column("BODY FIELDS")
    table.add_column("RESPONSES", no_wrap=True)

    for e in rows:
        props = (e.request_schema or {}).get("properties") or {}
        table.add_row(
            e.method,
            e.path_template,
            "yes" if e.requires_auth else "",
            ", ".join(sorted(props)) or "-",
            ",".join(sorted(e.response_schemas)) or "-",
        )

    console.print(table)


@app.command("dredd-config")
def dredd_config(
    out: str = typer.Option("dredd.yml", help="Where to write the dredd configuration"),
) -> None:
    """Write dredd.yml for a python-hooks run (API_BASE_URL, OPENAPI_SCHEMA_PATH, DREDD_*)."""
    out_path, config = write_dredd_config(Settings(), out)

    console.print(f"[bold green]Wrote[/bold green] {out_path}")
    console.print(f"  API endpoint: {config['endpoint']}")
    console.print(f"  Contract:     {config['blueprint']}")
    console.print(f"  Hookfile:     {config['hookfiles']}")
    console.print(f"  Log level:    {config['loglevel']}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
