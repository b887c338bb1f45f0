"""kidsafe CLI: check content and work the moderation review queue."""

from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from kidsafe import __version__
from kidsafe.config import Settings
from kidsafe.errors import AlreadyReviewedError, ConfigurationError, ModerationError, NotFoundError
from kidsafe.moderation.models import (
    Evaluation,
    ModerationAction,
    ModerationRecord,
    Page,
    RecordFilter,
    ReviewerRole,
    ReviewStatus,
)
from kidsafe.utils.logging import configure_logging

console = Console()

_ACTION_STYLE = {
    ModerationAction.ALLOW: "green",
    ModerationAction.WARN: "yellow",
    ModerationAction.FILTER: "yellow",
    ModerationAction.BLOCK: "red",
    ModerationAction.FLAG: "bold red",
}

REVIEW_CHOICES = [s.value.lower() for s in ReviewStatus if s.is_terminal]


def _pipeline(ctx: click.Context):
    from kidsafe.moderation.pipeline import ModerationPipeline

    try:
        return ModerationPipeline.from_settings(ctx.obj)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/] {e}")
        for issue in e.issues:
            console.print(f"  [red]x[/] {issue}")
        raise SystemExit(2)


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", default=None, help="Logging level (default: KIDSAFE_LOG_LEVEL or WARNING)")
@click.pass_context
def main(ctx: click.Context, log_level: Optional[str]):
    """kidsafe: content safety and moderation for children's text.

    Classify text, mask personal information, and review the moderation
    records left behind by blocked or flagged content.
    """
    settings = Settings()
    configure_logging(log_level or settings.log_level)
    ctx.obj = settings


# ── Check ────────────────────────────────────────────────────────────


def _print_evaluation(evaluation: Evaluation) -> None:
    style = _ACTION_STYLE[evaluation.action]
    lines = [
        f"Severity: [bold]{evaluation.severity.value}[/]",
        f"Action:   [{style}]{evaluation.action.value}[/]",
        f"Guardian notified: {'yes' if evaluation.notify_guardian else 'no'}",
        f"Admin notified:    {'yes' if evaluation.notify_admin else 'no'}",
        "",
        f"Masked text: {escape(evaluation.masked_text)}",
    ]
    console.print(Panel("\n".join(lines), title="Moderation Result"))

    if evaluation.classification and evaluation.classification.flagged_terms:
        console.print(f"  [red]x[/] Terms: {', '.join(evaluation.classification.flagged_terms)}")
    if evaluation.classification and evaluation.classification.matched_patterns:
        console.print(f"  [red]x[/] Patterns: {', '.join(evaluation.classification.matched_patterns)}")
    if evaluation.pii and evaluation.pii.detected:
        console.print(f"  [yellow]![/] PII: {', '.join(t.value for t in evaluation.pii.types)}")
    if evaluation.age_check and not evaluation.age_check.appropriate:
        suggested = evaluation.age_check.suggested_age
        console.print(f"  [yellow]![/] Not age-appropriate (suggested age: {suggested})")
    for warning in evaluation.warnings:
        console.print(f"  [dim]{escape(warning)}[/]")


@main.command()
@click.argument("text")
@click.option("--age", type=int, default=None, help="Author age for the age-appropriateness check")
@click.pass_context
def check(ctx: click.Context, text: str, age: Optional[int]):
    """Classify TEXT without recording anything.

    Exits with status 1 when the content would be blocked.
    """
    pipeline = _pipeline(ctx)
    evaluation = pipeline.quick_check(text, author_age=age)
    _print_evaluation(evaluation)
    if not evaluation.allowed:
        raise SystemExit(1)


@main.command()
@click.argument("text")
@click.pass_context
def simplify(ctx: click.Context, text: str):
    """Rewrite TEXT with child-friendly connectives."""
    console.print(_pipeline(ctx).simplify(text))


# ── Lexicon ──────────────────────────────────────────────────────────


@main.group()
def lexicon():
    """Inspect and validate moderation lexicons."""


@lexicon.command(name="validate")
@click.argument("path", required=False)
@click.option("--strict", is_flag=True, help="Treat warnings as errors")
@click.pass_context
def validate_lexicon_cmd(ctx: click.Context, path: Optional[str], strict: bool):
    """Validate a lexicon file (default: the configured lexicon)."""
    from kidsafe.lexicon.loader import DEFAULT_LEXICON_PATH, read_lexicon_document
    from kidsafe.lexicon.validator import validate_lexicon

    target = path or ctx.obj.lexicon_path or DEFAULT_LEXICON_PATH
    console.print(f"\n[bold blue]kidsafe[/] - Validating lexicon: {target}\n")

    try:
        data = read_lexicon_document(target)
    except ConfigurationError as e:
        console.print(f"  [red]Failed to parse:[/] {e}")
        raise SystemExit(1)

    result = validate_lexicon(data)
    for issue in result.errors:
        where = f" ({issue.path})" if issue.path else ""
        console.print(f"  [red]x[/] [{issue.code}] {issue.message}{where}")
    for w in result.warnings:
        where = f" ({w.path})" if w.path else ""
        console.print(f"  [yellow]![/] [{w.code}] {w.message}{where}")

    console.print(f"\n{result.summary()}")
    if not result.passed or (strict and result.warnings):
        raise SystemExit(1)
    console.print("[green]Valid![/]")


@lexicon.command(name="show")
@click.pass_context
def show_lexicon(ctx: click.Context):
    """Summarize the configured lexicon by tier."""
    pipeline = _pipeline(ctx)
    lex = pipeline.classifier.lexicon

    table = Table(title=f"Lexicon {lex.name} v{lex.version}")
    table.add_column("Tier", style="cyan")
    table.add_column("Severity")
    table.add_column("Terms", justify="right")
    table.add_column("Patterns", justify="right")
    for tier, terms in lex.terms.items():
        patterns = sum(1 for p in lex.patterns if p.tier is tier)
        table.add_row(tier.value, tier.severity.value, str(len(terms)), str(patterns))
    console.print(table)
    console.print(
        f"Context exceptions: {len(lex.context_exceptions)}  "
        f"Simplifications: {len(lex.simplifications)}"
    )


# ── Records ──────────────────────────────────────────────────────────


def _record_table(records: list[ModerationRecord], title: str) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Created")
    table.add_column("Type", style="cyan")
    table.add_column("Author")
    table.add_column("Severity")
    table.add_column("Action")
    table.add_column("Status")
    table.add_column("Flagged", justify="center")
    for r in records:
        table.add_row(
            r.id,
            r.created_at.strftime("%Y-%m-%d %H:%M"),
            r.content_type,
            r.author_id,
            r.severity.value,
            f"[{_ACTION_STYLE[r.action]}]{r.action.value}[/]",
            r.status.value + (" (superseded)" if r.is_superseded else ""),
            "yes" if r.flagged else "",
        )
    return table


@main.group()
def records():
    """Browse and review moderation records."""


@records.command(name="list")
@click.option("--status", type=click.Choice([s.value.lower() for s in ReviewStatus]), default=None)
@click.option("--content-type", default=None)
@click.option("--author", "author_id", default=None)
@click.option("--flagged/--not-flagged", default=None)
@click.option("--page", "page_number", type=int, default=1, show_default=True)
@click.option("--limit", type=int, default=20, show_default=True)
@click.pass_context
def list_records(
    ctx: click.Context,
    status: Optional[str],
    content_type: Optional[str],
    author_id: Optional[str],
    flagged: Optional[bool],
    page_number: int,
    limit: int,
):
    """List moderation records, newest first."""
    pipeline = _pipeline(ctx)
    record_filter = RecordFilter(
        status=ReviewStatus(status.upper()) if status else None,
        content_type=content_type,
        author_id=author_id,
        flagged=flagged,
    )
    try:
        page = Page(number=page_number, size=limit)
    except ValueError as e:
        raise click.BadParameter(str(e))

    result = pipeline.records.list_records(record_filter, page)
    if not result.items:
        console.print("[yellow]No moderation records found.[/]")
        return
    console.print(_record_table(result.items, f"Moderation Records (page {result.number}/{result.pages}, {result.total} total)"))


@records.command(name="show")
@click.argument("record_id")
@click.pass_context
def show_record(ctx: click.Context, record_id: str):
    """Show one moderation record."""
    pipeline = _pipeline(ctx)
    try:
        record = pipeline.records.get(record_id)
    except NotFoundError as e:
        console.print(f"[red]{e}[/]")
        raise SystemExit(1)

    lines = [
        f"Content:  {record.content_type} / {record.content_ref}",
        f"Author:   {record.author_id}",
        f"Severity: {record.severity.value}   Action: {record.action.value}   Flagged: {record.flagged}",
        f"Status:   {record.status.value}",
        f"Created:  {record.created_at.isoformat()}",
    ]
    if record.reviewer_id:
        role = record.reviewer_role.value if record.reviewer_role else "?"
        lines.append(f"Reviewed: {record.reviewed_at.isoformat() if record.reviewed_at else '?'} by {record.reviewer_id} ({role})")
    if record.review_notes:
        lines.append(f"Notes:    {record.review_notes}")
    if record.flagged_terms:
        lines.append(f"Terms:    {', '.join(record.flagged_terms)}")
    if record.pii_types:
        lines.append(f"PII:      {', '.join(record.pii_types)}")
    if record.masked_text:
        lines.append(f"Masked:   {escape(record.masked_text)}")
    if record.is_superseded:
        lines.append(f"Superseded {record.superseded_at.isoformat()}: {record.superseded_reason}")
    console.print(Panel("\n".join(lines), title=f"Record {record.id}"))


@records.command(name="review")
@click.argument("record_id")
@click.option("--status", type=click.Choice(REVIEW_CHOICES), required=True)
@click.option("--reviewer", "reviewer_id", required=True)
@click.option("--notes", default=None)
@click.option("--role", type=click.Choice([r.value for r in ReviewerRole]), default=ReviewerRole.MODERATOR.value)
@click.pass_context
def review_record(
    ctx: click.Context,
    record_id: str,
    status: str,
    reviewer_id: str,
    notes: Optional[str],
    role: str,
):
    """Approve, reject or flag a pending record."""
    pipeline = _pipeline(ctx)
    try:
        record = pipeline.records.review(
            record_id,
            reviewer_id=reviewer_id,
            new_status=ReviewStatus(status.upper()),
            notes=notes,
            role=ReviewerRole(role),
        )
    except NotFoundError as e:
        console.print(f"[red]{e}[/]")
        raise SystemExit(1)
    except AlreadyReviewedError as e:
        console.print(f"[yellow]{e}[/]")
        raise SystemExit(1)
    console.print(f"[green]Record {record.id} is now {record.status.value}[/]")


@records.command(name="supersede")
@click.argument("record_id")
@click.option("--reason", required=True)
@click.pass_context
def supersede_record(ctx: click.Context, record_id: str, reason: str):
    """Mark a record superseded after its content was retracted."""
    pipeline = _pipeline(ctx)
    try:
        record = pipeline.records.supersede(record_id, reason)
    except ModerationError as e:
        console.print(f"[red]{e}[/]")
        raise SystemExit(1)
    console.print(f"[green]Record {record.id} superseded[/]")


# ── Stats ────────────────────────────────────────────────────────────


@main.command()
@click.argument("author_id")
@click.pass_context
def stats(ctx: click.Context, author_id: str):
    """Show moderation statistics for one author."""
    pipeline = _pipeline(ctx)
    s = pipeline.records.stats(author_id)

    console.print(
        Panel(
            f"Total: {s.total}   Flagged: {s.flagged} ({s.flag_rate:.1f}%)\n"
            f"Pending: {s.pending}   Approved: {s.approved}   Rejected: {s.rejected}",
            title=f"Moderation Stats: {author_id}",
        )
    )
    if s.recent:
        console.print(_record_table(s.recent, "Recent"))


if __name__ == "__main__":
    main()
