"""SQLite storage for people, families and the relationship ledger."""

from contextlib import contextmanager
from itertools import count
from pathlib import Path
import sqlite3

from church_households.exceptions import (
    ConsolidationError,
    FamilyNotFoundError,
    PersonNotFoundError,
)
from church_households.logger import get_logger
from church_households.models import MEMBER, Family, Person, Relationship

logger = get_logger(__name__)

_savepoint_ids = count(1)


def create_database(db_path: Path | str) -> sqlite3.Connection:
    """Open (and create if needed) the database with person, family and relationship tables."""
    # Transactions are opened explicitly through ``transaction``
    conn = sqlite3.connect(db_path, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS family (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            surname TEXT NOT NULL,
            name TEXT,
            head_person_id INTEGER,
            status TEXT NOT NULL DEFAULT 'Activa',
            notes TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (head_person_id) REFERENCES person(id) ON DELETE SET NULL
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS person (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            given_names TEXT NOT NULL,
            surname TEXT NOT NULL,
            category TEXT NOT NULL DEFAULT 'member',
            family_id INTEGER,
            family_role TEXT,
            email TEXT,
            phone TEXT,
            FOREIGN KEY (family_id) REFERENCES family(id)
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS relationship (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            person1_id INTEGER NOT NULL,
            person2_id INTEGER NOT NULL,
            kind TEXT NOT NULL,
            inverse_kind TEXT NOT NULL,
            is_symmetric INTEGER NOT NULL DEFAULT 0,
            context_family_id INTEGER,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            CHECK (person1_id <> person2_id),
            FOREIGN KEY (person1_id) REFERENCES person(id),
            FOREIGN KEY (person2_id) REFERENCES person(id),
            FOREIGN KEY (context_family_id) REFERENCES family(id)
        )
    """)

    # One assertion per unordered pair
    cursor.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS relationship_pair
        ON relationship (min(person1_id, person2_id), max(person1_id, person2_id))
    """)
    cursor.execute("CREATE INDEX IF NOT EXISTS person_family ON person (family_id)")

    return conn


@contextmanager
def transaction(conn: sqlite3.Connection):
    """
    Run the enclosed statements atomically.

    The outermost call takes the database write lock up front (BEGIN IMMEDIATE),
    so concurrent read-modify-write sequences are serialized. Nested calls use
    savepoints and roll back only their own work.
    """
    if conn.in_transaction:
        name = f"sp_{next(_savepoint_ids)}"
        conn.execute(f"SAVEPOINT {name}")
        try:
            yield conn
        except BaseException:
            conn.execute(f"ROLLBACK TO {name}")
            conn.execute(f"RELEASE {name}")
            raise
        conn.execute(f"RELEASE {name}")
        return

    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


@contextmanager
def atomic(conn: sqlite3.Connection, operation: str):
    """Transaction that reports storage failures as ``ConsolidationError``."""
    try:
        with transaction(conn):
            yield
    except sqlite3.Error as exc:
        logger.error("%s rolled back: %s", operation, exc)
        raise ConsolidationError(f"{operation} failed: {exc}") from exc


# ----------------------------------------------------------------------------
# Row mapping
# ----------------------------------------------------------------------------


def _person(row: sqlite3.Row) -> Person:
    return Person(
        id=row["id"],
        given_names=row["given_names"],
        surname=row["surname"],
        category=row["category"],
        family_id=row["family_id"],
        family_role=row["family_role"],
        email=row["email"],
        phone=row["phone"],
    )


def _family(row: sqlite3.Row) -> Family:
    return Family(
        id=row["id"],
        surname=row["surname"],
        name=row["name"],
        head_person_id=row["head_person_id"],
        status=row["status"],
        notes=row["notes"],
        created_at=row["created_at"],
        member_count=row["member_count"],
    )


def _relationship(row: sqlite3.Row) -> Relationship:
    return Relationship(
        id=row["id"],
        person1_id=row["person1_id"],
        person2_id=row["person2_id"],
        kind=row["kind"],
        inverse_kind=row["inverse_kind"],
        is_symmetric=bool(row["is_symmetric"]),
        context_family_id=row["context_family_id"],
        created_at=row["created_at"],
    )


# ----------------------------------------------------------------------------
# Persons
# ----------------------------------------------------------------------------


def add_person(
    conn: sqlite3.Connection,
    given_names: str,
    surname: str,
    category: str = MEMBER,
    email: str | None = None,
    phone: str | None = None,
) -> Person:
    """Register a person without a family."""
    with transaction(conn):
        cursor = conn.execute(
            """
            INSERT INTO person (given_names, surname, category, email, phone)
            VALUES (?, ?, ?, ?, ?)
            """,
            (given_names, surname, category, email, phone),
        )
    return get_person(conn, cursor.lastrowid)


def find_person(conn: sqlite3.Connection, person_id: int) -> Person | None:
    row = conn.execute("SELECT * FROM person WHERE id = ?", (person_id,)).fetchone()
    return _person(row) if row else None


def get_person(conn: sqlite3.Connection, person_id: int) -> Person:
    person = find_person(conn, person_id)
    if person is None:
        raise PersonNotFoundError(person_id)
    return person


def set_membership(
    conn: sqlite3.Connection, person_id: int, family_id: int | None, role: str | None
) -> None:
    conn.execute(
        "UPDATE person SET family_id = ?, family_role = ? WHERE id = ?",
        (family_id, role, person_id),
    )


def family_members(
    conn: sqlite3.Connection, family_id: int, category: str | None = None
) -> list[Person]:
    """Members of a family ordered by surname then given names."""
    query = "SELECT * FROM person WHERE family_id = ?"
    params: list = [family_id]
    if category is not None:
        query += " AND category = ?"
        params.append(category)
    query += " ORDER BY surname, given_names, id"
    return [_person(row) for row in conn.execute(query, params)]


# ----------------------------------------------------------------------------
# Families
# ----------------------------------------------------------------------------

_FAMILY_SELECT = """
    SELECT f.*, (SELECT COUNT(*) FROM person p WHERE p.family_id = f.id) AS member_count
    FROM family f
"""


def insert_family(
    conn: sqlite3.Connection,
    surname: str,
    head_person_id: int | None = None,
    notes: str | None = None,
    name: str | None = None,
) -> int:
    cursor = conn.execute(
        """
        INSERT INTO family (surname, name, head_person_id, notes)
        VALUES (?, ?, ?, ?)
        """,
        (surname, name or f"Familia {surname}", head_person_id, notes),
    )
    return cursor.lastrowid


def find_family(conn: sqlite3.Connection, family_id: int) -> Family | None:
    row = conn.execute(_FAMILY_SELECT + " WHERE f.id = ?", (family_id,)).fetchone()
    return _family(row) if row else None


def get_family(conn: sqlite3.Connection, family_id: int) -> Family:
    family = find_family(conn, family_id)
    if family is None:
        raise FamilyNotFoundError(family_id)
    return family


def list_families(conn: sqlite3.Connection) -> list[Family]:
    return [_family(row) for row in conn.execute(_FAMILY_SELECT + " ORDER BY f.id")]


def member_count(conn: sqlite3.Connection, family_id: int) -> int:
    return conn.execute(
        "SELECT COUNT(*) FROM person WHERE family_id = ?", (family_id,)
    ).fetchone()[0]


def move_members(conn: sqlite3.Connection, from_family_id: int, to_family_id: int) -> int:
    """Re-point every person and ledger context from one family to another."""
    cursor = conn.execute(
        "UPDATE person SET family_id = ? WHERE family_id = ?",
        (to_family_id, from_family_id),
    )
    conn.execute(
        "UPDATE relationship SET context_family_id = ? WHERE context_family_id = ?",
        (to_family_id, from_family_id),
    )
    return cursor.rowcount


def delete_family(conn: sqlite3.Connection, family_id: int) -> None:
    conn.execute("DELETE FROM family WHERE id = ?", (family_id,))


# ----------------------------------------------------------------------------
# Relationship ledger
# ----------------------------------------------------------------------------


def insert_relationship(
    conn: sqlite3.Connection,
    person1_id: int,
    person2_id: int,
    kind: str,
    inverse_kind: str,
    is_symmetric: bool,
    context_family_id: int | None = None,
) -> int:
    cursor = conn.execute(
        """
        INSERT INTO relationship
        (person1_id, person2_id, kind, inverse_kind, is_symmetric, context_family_id)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (person1_id, person2_id, kind, inverse_kind, int(is_symmetric), context_family_id),
    )
    return cursor.lastrowid


def get_relationship(conn: sqlite3.Connection, relationship_id: int) -> Relationship | None:
    row = conn.execute(
        "SELECT * FROM relationship WHERE id = ?", (relationship_id,)
    ).fetchone()
    return _relationship(row) if row else None


def find_relationship_between(
    conn: sqlite3.Connection, person_a_id: int, person_b_id: int
) -> Relationship | None:
    """The assertion for the unordered pair, if any."""
    row = conn.execute(
        """
        SELECT * FROM relationship
        WHERE (person1_id = ? AND person2_id = ?) OR (person1_id = ? AND person2_id = ?)
        """,
        (person_a_id, person_b_id, person_b_id, person_a_id),
    ).fetchone()
    return _relationship(row) if row else None


def relationships_of(conn: sqlite3.Connection, person_id: int) -> list[Relationship]:
    rows = conn.execute(
        """
        SELECT * FROM relationship
        WHERE person1_id = ? OR person2_id = ?
        ORDER BY created_at DESC, id DESC
        """,
        (person_id, person_id),
    )
    return [_relationship(row) for row in rows]


def all_relationships(conn: sqlite3.Connection) -> list[Relationship]:
    return [_relationship(row) for row in conn.execute("SELECT * FROM relationship ORDER BY id")]


def update_relationship_derived(
    conn: sqlite3.Connection, relationship_id: int, inverse_kind: str, is_symmetric: bool
) -> None:
    conn.execute(
        "UPDATE relationship SET inverse_kind = ?, is_symmetric = ? WHERE id = ?",
        (inverse_kind, int(is_symmetric), relationship_id),
    )


def delete_relationship(conn: sqlite3.Connection, relationship_id: int) -> None:
    conn.execute("DELETE FROM relationship WHERE id = ?", (relationship_id,))


# ----------------------------------------------------------------------------
# Bulk loading and statistics
# ----------------------------------------------------------------------------


def store_data(
    conn: sqlite3.Connection,
    families: list[Family],
    persons: list[Person],
    relationships: list[Relationship],
):
    """Insert already-consistent families, persons and relationships (seed data or restores)."""
    with transaction(conn):
        # Heads are linked after the persons exist
        conn.executemany(
            """
            INSERT INTO family (id, surname, name, status, notes, created_at)
            VALUES (?, ?, ?, ?, ?, COALESCE(?, CURRENT_TIMESTAMP))
            """,
            [(f.id, f.surname, f.name, f.status, f.notes, f.created_at) for f in families],
        )

        conn.executemany(
            """
            INSERT INTO person
            (id, given_names, surname, category, family_id, family_role, email, phone)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    p.id,
                    p.given_names,
                    p.surname,
                    p.category,
                    p.family_id,
                    p.family_role,
                    p.email,
                    p.phone,
                )
                for p in persons
            ],
        )

        conn.executemany(
            "UPDATE family SET head_person_id = ? WHERE id = ?",
            [(f.head_person_id, f.id) for f in families if f.head_person_id is not None],
        )

        conn.executemany(
            """
            INSERT INTO relationship
            (id, person1_id, person2_id, kind, inverse_kind, is_symmetric, context_family_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, COALESCE(?, CURRENT_TIMESTAMP))
            """,
            [
                (
                    r.id,
                    r.person1_id,
                    r.person2_id,
                    r.kind,
                    r.inverse_kind,
                    int(r.is_symmetric),
                    r.context_family_id,
                    r.created_at,
                )
                for r in relationships
            ],
        )


def table_counts(conn: sqlite3.Connection) -> dict[str, int]:
    return {
        table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
        for table in ("person", "family", "relationship")
    }
