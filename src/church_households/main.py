"""
Command line tooling for household consolidation.

1) Create the database and register people.
2) Record relationships; families are synchronized as they are added.
3) Re-run the consolidation for the whole congregation or one family.
4) Adjust family membership by hand.
5) Inspect families, check ledger consistency and draw family charts.
"""

from contextlib import contextmanager
from pathlib import Path
import time

import typer
from rich.console import Console
from rich.table import Table

from church_households.config import get_config
from church_households.consolidation import join_family, leave_family, set_family_role
from church_households.database import (
    add_person,
    create_database,
    get_family,
    list_families,
    table_counts,
)
from church_households.exceptions import FamilySyncError
from church_households.graph import build_graph
from church_households.logger import get_logger
from church_households.models import MEMBER, PERSON_CATEGORIES
from church_households.plotting import plot_family
from church_households.service import (
    create_relationship,
    family_summary,
    list_relationships,
    remove_relationship,
    run_consolidation,
)
from church_households.validation import validate_graph

logger = get_logger(__name__)

app = typer.Typer(
    name="households",
    help="Church family records: relationships, consolidation and charts",
    add_completion=False,
)

console = Console()

DB_OPTION = typer.Option(None, "--db", help="SQLite database (defaults to the configured path)")


@contextmanager
def session(db: Path | None):
    """Open the database and turn domain errors into a clean exit."""
    path = db or get_config().resolve_path("database")
    conn = create_database(path)
    try:
        yield conn
    except FamilySyncError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)
    finally:
        conn.close()


def _check_category(category: str) -> str:
    if category not in PERSON_CATEGORIES:
        raise typer.BadParameter(f"must be one of {', '.join(PERSON_CATEGORIES)}")
    return category


@app.command("init-db")
def init_db(db: Path = DB_OPTION):
    """Create the database tables."""
    with session(db):
        pass
    console.print("Database ready")


@app.command("add-person")
def add_person_command(
    given_names: str,
    surname: str,
    category: str = typer.Option(MEMBER, "--category", "-c", callback=_check_category),
    email: str = typer.Option(None, "--email"),
    phone: str = typer.Option(None, "--phone"),
    db: Path = DB_OPTION,
):
    """Register a person (no family yet)."""
    with session(db) as conn:
        person = add_person(conn, given_names, surname, category, email=email, phone=phone)
    console.print(f"Person {person.id}: {person.full_name} ({person.category})")


@app.command("relate")
def relate(
    person_a: int = typer.Argument(..., help="Person the relation is stated for"),
    kind: str = typer.Argument(..., help='Relation of A to B, e.g. "Esposo/a", "Hijo/a"'),
    person_b: int = typer.Argument(...),
    a_type: str = typer.Option(MEMBER, "--a-type", callback=_check_category),
    b_type: str = typer.Option(MEMBER, "--b-type", callback=_check_category),
    db: Path = DB_OPTION,
):
    """Record that PERSON_A is KIND of PERSON_B and synchronize their family."""
    with session(db) as conn:
        created = create_relationship(conn, person_a, a_type, person_b, b_type, kind)

    rel = created.relationship
    console.print(f"Relationship {rel.id}: {rel.person1_id} is {rel.kind} of {rel.person2_id}")
    console.print(created.message)
    if created.consolidation and created.consolidation.family_id is not None:
        console.print(f"Family: {created.consolidation.family_id}")


@app.command("relations")
def relations(person: int, db: Path = DB_OPTION):
    """List the relatives of a person."""
    with session(db) as conn:
        relatives = list_relationships(conn, person)

    table = Table(title=f"Relatives of person {person}")
    table.add_column("Rel. ID", justify="right")
    table.add_column("Relative")
    table.add_column("Is their")
    table.add_column("Type")
    for rel in relatives:
        table.add_row(str(rel.relationship_id), rel.person.full_name, rel.label, rel.person.category)
    console.print(table)


@app.command("unlink")
def unlink(person: int, relationship_id: int, db: Path = DB_OPTION):
    """Remove one relationship of a person."""
    with session(db) as conn:
        removed = remove_relationship(conn, person, relationship_id)
    console.print(f"Relationship {removed.id} removed")


@app.command("join")
def join(
    person: int,
    family: int,
    role: str = typer.Option(None, "--role", help='Family role, e.g. "Hijo/a"'),
    db: Path = DB_OPTION,
):
    """Place a person in a family and infer their relationships."""
    with session(db) as conn:
        result = join_family(conn, person, family, role=role)
    console.print(result.message)


@app.command("leave")
def leave(person: int, family: int, db: Path = DB_OPTION):
    """Take a person out of a family (not the head)."""
    with session(db) as conn:
        leave_family(conn, person, family)
    console.print(f"Person {person} removed from family {family}")


@app.command("set-role")
def set_role(
    person: int,
    family: int,
    role: str = typer.Argument(..., help='Family role, e.g. "Hijo/a"'),
    db: Path = DB_OPTION,
):
    """Change the family role of a member."""
    with session(db) as conn:
        stored = set_family_role(conn, person, family, role)
    console.print(f"Person {person} is now {stored} in family {family}")


@app.command("consolidate")
def consolidate(
    family: int = typer.Option(None, "--family", "-f", help="Only this family"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Confirm the consolidation"),
    db: Path = DB_OPTION,
):
    """Re-synchronize families with the relationship ledger."""
    with session(db) as conn:
        if family is not None:
            console.print(f"Consolidating {get_family(conn, family).display_name}")
        else:
            console.print("Consolidating all families")

        t0 = time.perf_counter()
        stats = run_consolidation(conn, family_id=family, confirm=yes)
        elapsed = time.perf_counter() - t0
    logger.info("CLI consolidation finished in %.2fs: %s", elapsed, stats)

    table = Table(title="Consolidation")
    table.add_column("Result", style="bold")
    table.add_column("Count", justify="right")
    table.add_row("Relationships created", str(stats["relationshipsCreated"]))
    table.add_row("Relationships updated", str(stats["relationshipsUpdated"]))
    table.add_row("Families consolidated", str(stats["familiesConsolidated"]))
    console.print(table)
    console.print(f"Finished in {elapsed:.2f}s")

    if not any(stats.values()):
        console.print("No inconsistencies found; everything is already synchronized.")


@app.command("family")
def family_command(family: int, db: Path = DB_OPTION):
    """Show a family and its members."""
    with session(db) as conn:
        summary = family_summary(conn, family)

    table = Table(title=f"{summary.family.display_name} ({summary.family.member_count} people)")
    table.add_column("ID", justify="right")
    table.add_column("Name")
    table.add_column("Role")
    table.add_column("Type")
    for person in summary.members:
        table.add_row(str(person.id), person.full_name, person.family_role or "", person.category)
    console.print(table)


@app.command("stats")
def stats(db: Path = DB_OPTION):
    """Show record counts."""
    with session(db) as conn:
        counts = table_counts(conn)
        families = list_families(conn)

    table = Table(title="Household statistics")
    table.add_column("Entity", style="bold")
    table.add_column("Count", justify="right")
    table.add_row("People", str(counts["person"]))
    table.add_row("Families", str(counts["family"]))
    table.add_row("Empty families", str(sum(1 for f in families if not f.member_count)))
    table.add_row("Relationships", str(counts["relationship"]))
    console.print(table)


@app.command("check")
def check(db: Path = DB_OPTION):
    """Report inconsistencies between relationships and families."""
    with session(db) as conn:
        G = build_graph(conn)

    warnings = validate_graph(G, category=get_config().eligible_category)
    if not warnings:
        console.print("No validation issues found")
        return

    console.print(f"Found {len(warnings)} validation warnings:")
    for w in warnings[:20]:
        console.print(f"  - {w}")
    if len(warnings) > 20:
        console.print(f"  ... and {len(warnings) - 20} more")
    raise typer.Exit(code=1)


@app.command("plot")
def plot(
    family: int,
    out: Path = typer.Option(None, "--out", "-o", help="PNG, SVG or PDF file"),
    db: Path = DB_OPTION,
):
    """Draw a family chart."""
    with session(db) as conn:
        get_family(conn, family)
        G = build_graph(conn)

    try:
        plot_family(G, family, out)
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)
    if out:
        console.print(f"Chart saved to {out}")


def main():
    app()


if __name__ == "__main__":
    main()
