"""
CLI interface for AI Resume Builder.

Provides command-line access to document generation and the read-side
views of documents, usage history and quota.
"""

import json
import sqlite3
import sys
from typing import List, Optional

import typer
from openai import OpenAIError
from rich.console import Console
from rich.table import Table

from ai_resume_builder.config.loader import Settings, default_settings, load_settings
from ai_resume_builder.core.errors import GenerationError
from ai_resume_builder.core.orchestrator import build_orchestrator
from ai_resume_builder.core.request import GenerationRequest
from ai_resume_builder.demo.seed_demo_data import seed_demo_user
from ai_resume_builder.sdk.provider import CannedGenerationProvider
from ai_resume_builder.storage.repository import (
    NotFoundError,
    ResumeRepository,
    initialize_schema,
)

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Path to YAML settings file")


def _settings(config: Optional[str]) -> Settings:
    return load_settings(config) if config else default_settings()


def _format_currency(amount: float) -> str:
    """Format a cost; generation costs are usually fractions of a cent."""
    return f"${amount:,.6f}"


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """AI Resume Builder CLI."""
    if ctx.invoked_subcommand is None:
        console.print("AI Resume Builder - Use --help to see available commands")


@app.command()
def init(config: Optional[str] = CONFIG_OPTION):
    """Initialize the database."""
    try:
        settings = _settings(config)
        initialize_schema(settings.storage.database_path)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except (OSError, ValueError, sqlite3.Error) as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command("seed-demo")
def seed_demo(config: Optional[str] = CONFIG_OPTION):
    """Insert a demo user with profile data."""
    try:
        settings = _settings(config)
        initialize_schema(settings.storage.database_path)
        user = seed_demo_user(
            ResumeRepository(settings.storage.database_path),
            free_generations=settings.quota.free_generations,
        )
    except (OSError, ValueError, sqlite3.Error) as e:
        console.print(f"[red]Error seeding demo data:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    console.print(f"[green]✓[/] Demo user created: {user.id}")


@app.command()
def generate(
    user_id: str = typer.Option(..., "--user-id", "-u", help="Authenticated user id"),
    job_description: str = typer.Option(
        ..., "--job-description", "-j", help="Target job description"
    ),
    doc_type: str = typer.Option(
        "resume", "--type", "-t", help="Document type: resume or cover_letter"
    ),
    job_title: str = typer.Option("", "--job-title", help="Target job title"),
    company: str = typer.Option("", "--company", help="Target company name"),
    template: str = typer.Option("", "--template", help="Template identifier"),
    sections: Optional[List[str]] = typer.Option(
        None, "--section", help="Extra resume section (repeatable)"
    ),
    offline: bool = typer.Option(
        False, "--offline", help="Use the canned provider instead of OpenAI"
    ),
    config: Optional[str] = CONFIG_OPTION,
):
    """Generate a resume or cover letter for a user."""
    try:
        settings = _settings(config)
        request = GenerationRequest.from_payload({
            "type": doc_type,
            "job_description": job_description,
            "job_title": job_title,
            "company_name": company,
            "template_id": template,
            "custom_sections": sections or [],
        })
        provider = (
            CannedGenerationProvider(model=settings.generation.model) if offline else None
        )
        orchestrator = build_orchestrator(settings, provider=provider)
        result = orchestrator.generate(user_id, request)
    except GenerationError as e:
        console.print(f"[red]{e.code}:[/] {e.message}")
        sys.exit(EXIT_CODE_FAIL)
    except (OSError, ValueError, sqlite3.Error, OpenAIError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    console.print_json(json.dumps(result.to_response()))
    if result.history is not None:
        console.print(
            f"Tokens: {result.history.total_tokens}  "
            f"Cost: {_format_currency(result.history.total_cost)}"
        )
    sys.exit(EXIT_CODE_PASS)


@app.command()
def documents(
    user_id: str = typer.Option(..., "--user-id", "-u"),
    config: Optional[str] = CONFIG_OPTION,
):
    """List a user's generated documents."""
    repository = ResumeRepository(_settings(config).storage.database_path)
    docs = repository.list_documents(user_id)
    if not docs:
        console.print("\n[dim]No documents found.[/]")
        return

    table = Table(title="Documents")
    table.add_column("ID")
    table.add_column("Type")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Created")
    for doc in docs:
        table.add_row(
            doc.id, doc.type, doc.title, doc.status,
            doc.created_at.strftime("%Y-%m-%d %H:%M") if doc.created_at else "",
        )
    console.print(table)


@app.command()
def history(
    user_id: str = typer.Option(..., "--user-id", "-u"),
    limit: int = typer.Option(20, "--limit", "-n"),
    config: Optional[str] = CONFIG_OPTION,
):
    """Show a user's generation history with costs."""
    repository = ResumeRepository(_settings(config).storage.database_path)
    records = repository.list_history(user_id, limit=limit)
    if not records:
        console.print("\n[dim]No generation history found.[/]")
        return

    table = Table(title="Generation History")
    table.add_column("Document")
    table.add_column("Model")
    table.add_column("Tokens", justify="right")
    table.add_column("Time (ms)", justify="right")
    table.add_column("Cost", justify="right")
    for record in records:
        table.add_row(
            record.document_id, record.model, str(record.total_tokens),
            str(record.generation_time_ms), _format_currency(record.total_cost),
        )
    console.print(table)
    total = sum(record.total_cost for record in records)
    console.print(f"Total cost: {_format_currency(total)}")


@app.command()
def quota(
    user_id: str = typer.Option(..., "--user-id", "-u"),
    config: Optional[str] = CONFIG_OPTION,
):
    """Show remaining free generations for a user."""
    repository = ResumeRepository(_settings(config).storage.database_path)
    try:
        user = repository.load_user(user_id)
    except NotFoundError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if user.is_premium:
        console.print("[green]Premium[/] - unlimited generations")
    else:
        console.print(f"Free generations left: {user.free_generations_left}")


if __name__ == "__main__":
    app()
