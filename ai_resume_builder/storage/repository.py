"""
Repository pattern for data access.

Handles database operations for users, profile data, generated documents
and the append-only generation ledger. Every per-user query is scoped by
the owner id so a user can only read or write their own rows.
"""

import json
import sqlite3
import uuid
from dataclasses import replace
from datetime import date, datetime
from typing import List, Optional, Sequence

from .db import DEFAULT_DB_PATH, get_connection
from .models import (
    Document,
    Education,
    Experience,
    GenerationHistoryRecord,
    Profile,
    Skill,
    User,
)


class NotFoundError(LookupError):
    """Raised when a requested row does not exist for the given owner."""


class UserNotFound(NotFoundError):
    pass


class ProfileNotFound(NotFoundError):
    pass


class DocumentNotFound(NotFoundError):
    pass


def new_id() -> str:
    """Return a fresh random identifier."""
    return str(uuid.uuid4())


def _to_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _to_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create all tables if they don't exist.

    ``generation_history`` is an append-only ledger: no UPDATE is ever
    performed on it. Its rows are removed only together with the
    document they reference.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                email TEXT NOT NULL UNIQUE,
                full_name TEXT NOT NULL,
                free_generations_left INTEGER NOT NULL DEFAULT 0
                    CHECK (free_generations_left >= 0),
                is_premium INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS profiles (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
                phone TEXT NOT NULL DEFAULT '',
                location TEXT NOT NULL DEFAULT '',
                linkedin_url TEXT NOT NULL DEFAULT '',
                github_url TEXT NOT NULL DEFAULT '',
                website_url TEXT NOT NULL DEFAULT '',
                summary TEXT NOT NULL DEFAULT ''
            );

            CREATE TABLE IF NOT EXISTS experiences (
                id TEXT PRIMARY KEY,
                profile_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
                company TEXT NOT NULL,
                position TEXT NOT NULL,
                start_date TEXT NOT NULL,
                end_date TEXT,
                is_current INTEGER NOT NULL DEFAULT 0,
                description TEXT NOT NULL DEFAULT '',
                achievements TEXT NOT NULL DEFAULT '[]'
            );

            CREATE TABLE IF NOT EXISTS education (
                id TEXT PRIMARY KEY,
                profile_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
                institution TEXT NOT NULL,
                degree TEXT NOT NULL,
                field_of_study TEXT NOT NULL DEFAULT '',
                start_date TEXT NOT NULL,
                end_date TEXT,
                gpa REAL
            );

            CREATE TABLE IF NOT EXISTS skills (
                id TEXT PRIMARY KEY,
                profile_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
                name TEXT NOT NULL,
                category TEXT NOT NULL,
                proficiency_level TEXT NOT NULL DEFAULT ''
            );

            CREATE TABLE IF NOT EXISTS documents (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                type TEXT NOT NULL CHECK (type IN ('resume', 'cover_letter')),
                title TEXT NOT NULL,
                content TEXT NOT NULL,
                template_id TEXT NOT NULL,
                job_title TEXT NOT NULL DEFAULT '',
                company_name TEXT NOT NULL DEFAULT '',
                job_description TEXT NOT NULL DEFAULT '',
                status TEXT NOT NULL CHECK (status IN ('draft', 'final')),
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS generation_history (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                document_id TEXT NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
                model TEXT NOT NULL DEFAULT '',
                prompt_tokens INTEGER NOT NULL,
                completion_tokens INTEGER NOT NULL,
                total_cost REAL NOT NULL,
                generation_time_ms INTEGER NOT NULL,
                created_at TEXT NOT NULL
            );
        """)
        conn.commit()
    finally:
        conn.close()


class ResumeRepository:
    """Repository for users, profile data, documents and generation history.

    Opens one connection per operation, which keeps it safe to share a
    single instance between worker threads.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def _query(self, sql: str, params: Sequence = ()) -> List[sqlite3.Row]:
        conn = get_connection(self.db_path)
        try:
            return conn.execute(sql, params).fetchall()
        finally:
            conn.close()

    def _execute(self, sql: str, params: Sequence = ()) -> int:
        """Run a single write statement and return the number of rows changed."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(sql, params)
            conn.commit()
            return cursor.rowcount
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # Users

    def create_user(
        self,
        email: str,
        full_name: str,
        free_generations: int = 3,
        is_premium: bool = False,
        user_id: Optional[str] = None,
    ) -> User:
        """Create an account with the given free-generation allowance."""
        if free_generations < 0:
            raise ValueError("free_generations must be >= 0")
        user = User(
            id=user_id or new_id(),
            email=email,
            full_name=full_name,
            free_generations_left=free_generations,
            is_premium=is_premium,
            created_at=datetime.now(),
        )
        self._execute(
            """
            INSERT INTO users (id, email, full_name, free_generations_left, is_premium, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (user.id, user.email, user.full_name, user.free_generations_left,
             int(user.is_premium), user.created_at.isoformat()),
        )
        return user

    def load_user(self, user_id: str) -> User:
        rows = self._query(
            "SELECT id, email, full_name, free_generations_left, is_premium, created_at "
            "FROM users WHERE id = ?",
            (user_id,),
        )
        if not rows:
            raise UserNotFound(f"User not found: {user_id}")
        row = rows[0]
        return User(
            id=row["id"],
            email=row["email"],
            full_name=row["full_name"],
            free_generations_left=row["free_generations_left"],
            is_premium=bool(row["is_premium"]),
            created_at=_to_datetime(row["created_at"]),
        )

    def set_premium(self, user_id: str, is_premium: bool) -> None:
        changed = self._execute(
            "UPDATE users SET is_premium = ? WHERE id = ?", (int(is_premium), user_id)
        )
        if changed == 0:
            raise UserNotFound(f"User not found: {user_id}")

    def decrement_quota(self, user_id: str) -> bool:
        """Consume one free generation in a single conditional UPDATE.

        The check and the decrement happen in the same statement, so two
        concurrent callers can never both succeed on the last unit.

        Returns:
            True if a unit was consumed, False if none was left (or the
            user does not exist)
        """
        changed = self._execute(
            """
            UPDATE users
            SET free_generations_left = free_generations_left - 1
            WHERE id = ? AND free_generations_left > 0
            """,
            (user_id,),
        )
        return changed == 1

    # Profile data

    def save_profile(
        self,
        user_id: str,
        phone: str = "",
        location: str = "",
        linkedin_url: str = "",
        github_url: str = "",
        website_url: str = "",
        summary: str = "",
    ) -> Profile:
        """Create or update the profile row of a user."""
        conn = get_connection(self.db_path)
        try:
            existing = conn.execute(
                "SELECT id FROM profiles WHERE user_id = ?", (user_id,)
            ).fetchone()
            profile_id = existing["id"] if existing else new_id()
            conn.execute(
                """
                INSERT INTO profiles
                (id, user_id, phone, location, linkedin_url, github_url, website_url, summary)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    phone = excluded.phone,
                    location = excluded.location,
                    linkedin_url = excluded.linkedin_url,
                    github_url = excluded.github_url,
                    website_url = excluded.website_url,
                    summary = excluded.summary
                """,
                (profile_id, user_id, phone, location, linkedin_url,
                 github_url, website_url, summary),
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        return Profile(
            id=profile_id,
            user_id=user_id,
            phone=phone,
            location=location,
            linkedin_url=linkedin_url,
            github_url=github_url,
            website_url=website_url,
            summary=summary,
        )

    def load_profile(self, user_id: str) -> Profile:
        rows = self._query(
            "SELECT id, user_id, phone, location, linkedin_url, github_url, website_url, summary "
            "FROM profiles WHERE user_id = ?",
            (user_id,),
        )
        if not rows:
            raise ProfileNotFound(f"Profile not found for user: {user_id}")
        row = rows[0]
        return Profile(**{key: row[key] for key in row.keys()})

    def _profile_id(self, user_id: str) -> str:
        return self.load_profile(user_id).id

    def add_experience(
        self,
        user_id: str,
        company: str,
        position: str,
        start_date: date,
        end_date: Optional[date] = None,
        is_current: bool = False,
        description: str = "",
        achievements: Sequence[str] = (),
    ) -> Experience:
        experience = Experience(
            id=new_id(),
            profile_id=self._profile_id(user_id),
            company=company,
            position=position,
            start_date=start_date,
            end_date=end_date,
            is_current=is_current,
            description=description,
            achievements=tuple(achievements),
        )
        self._execute(
            """
            INSERT INTO experiences
            (id, profile_id, company, position, start_date, end_date, is_current,
             description, achievements)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (experience.id, experience.profile_id, company, position,
             start_date.isoformat(), end_date.isoformat() if end_date else None,
             int(is_current), description, json.dumps(list(experience.achievements))),
        )
        return experience

    def load_experiences(self, user_id: str) -> List[Experience]:
        """Return a user's experiences in insertion order."""
        rows = self._query(
            """
            SELECT e.id, e.profile_id, e.company, e.position, e.start_date, e.end_date,
                   e.is_current, e.description, e.achievements
            FROM experiences e JOIN profiles p ON p.id = e.profile_id
            WHERE p.user_id = ?
            ORDER BY e.rowid
            """,
            (user_id,),
        )
        return [
            Experience(
                id=row["id"],
                profile_id=row["profile_id"],
                company=row["company"],
                position=row["position"],
                start_date=_to_date(row["start_date"]),
                end_date=_to_date(row["end_date"]),
                is_current=bool(row["is_current"]),
                description=row["description"],
                achievements=tuple(json.loads(row["achievements"])),
            )
            for row in rows
        ]

    def add_education(
        self,
        user_id: str,
        institution: str,
        degree: str,
        start_date: date,
        field_of_study: str = "",
        end_date: Optional[date] = None,
        gpa: Optional[float] = None,
    ) -> Education:
        education = Education(
            id=new_id(),
            profile_id=self._profile_id(user_id),
            institution=institution,
            degree=degree,
            start_date=start_date,
            field_of_study=field_of_study,
            end_date=end_date,
            gpa=gpa,
        )
        self._execute(
            """
            INSERT INTO education
            (id, profile_id, institution, degree, field_of_study, start_date, end_date, gpa)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (education.id, education.profile_id, institution, degree, field_of_study,
             start_date.isoformat(), end_date.isoformat() if end_date else None, gpa),
        )
        return education

    def load_education(self, user_id: str) -> List[Education]:
        """Return a user's education entries in insertion order."""
        rows = self._query(
            """
            SELECT e.id, e.profile_id, e.institution, e.degree, e.field_of_study,
                   e.start_date, e.end_date, e.gpa
            FROM education e JOIN profiles p ON p.id = e.profile_id
            WHERE p.user_id = ?
            ORDER BY e.rowid
            """,
            (user_id,),
        )
        return [
            Education(
                id=row["id"],
                profile_id=row["profile_id"],
                institution=row["institution"],
                degree=row["degree"],
                field_of_study=row["field_of_study"],
                start_date=_to_date(row["start_date"]),
                end_date=_to_date(row["end_date"]),
                gpa=row["gpa"],
            )
            for row in rows
        ]

    def add_skill(
        self, user_id: str, name: str, category: str, proficiency_level: str = ""
    ) -> Skill:
        skill = Skill(
            id=new_id(),
            profile_id=self._profile_id(user_id),
            name=name,
            category=category,
            proficiency_level=proficiency_level,
        )
        self._execute(
            "INSERT INTO skills (id, profile_id, name, category, proficiency_level) "
            "VALUES (?, ?, ?, ?, ?)",
            (skill.id, skill.profile_id, name, category, proficiency_level),
        )
        return skill

    def load_skills(self, user_id: str) -> List[Skill]:
        """Return a user's skills in insertion order."""
        rows = self._query(
            """
            SELECT s.id, s.profile_id, s.name, s.category, s.proficiency_level
            FROM skills s JOIN profiles p ON p.id = s.profile_id
            WHERE p.user_id = ?
            ORDER BY s.rowid
            """,
            (user_id,),
        )
        return [Skill(**{key: row[key] for key in row.keys()}) for row in rows]

    # Documents

    def save_document(self, document: Document) -> Document:
        """Insert a new document and return it with its timestamps set."""
        now = datetime.now()
        created_at = document.created_at or now
        updated_at = document.updated_at or created_at
        self._execute(
            """
            INSERT INTO documents
            (id, user_id, type, title, content, template_id, job_title, company_name,
             job_description, status, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (document.id, document.user_id, document.type, document.title,
             json.dumps(document.content), document.template_id, document.job_title,
             document.company_name, document.job_description, document.status,
             created_at.isoformat(), updated_at.isoformat()),
        )
        return replace(document, created_at=created_at, updated_at=updated_at)

    def _row_to_document(self, row: sqlite3.Row) -> Document:
        return Document(
            id=row["id"],
            user_id=row["user_id"],
            type=row["type"],
            title=row["title"],
            content=json.loads(row["content"]),
            template_id=row["template_id"],
            status=row["status"],
            job_title=row["job_title"],
            company_name=row["company_name"],
            job_description=row["job_description"],
            created_at=_to_datetime(row["created_at"]),
            updated_at=_to_datetime(row["updated_at"]),
        )

    def get_document(self, user_id: str, document_id: str) -> Document:
        rows = self._query(
            "SELECT * FROM documents WHERE id = ? AND user_id = ?", (document_id, user_id)
        )
        if not rows:
            raise DocumentNotFound(f"Document not found: {document_id}")
        return self._row_to_document(rows[0])

    def list_documents(self, user_id: str) -> List[Document]:
        """Return a user's documents, newest first."""
        rows = self._query(
            "SELECT * FROM documents WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
            (user_id,),
        )
        return [self._row_to_document(row) for row in rows]

    def update_document(self, document: Document) -> None:
        """Update the editable fields (title, content, status) of a document."""
        changed = self._execute(
            """
            UPDATE documents SET title = ?, content = ?, status = ?, updated_at = ?
            WHERE id = ? AND user_id = ?
            """,
            (document.title, json.dumps(document.content), document.status,
             datetime.now().isoformat(), document.id, document.user_id),
        )
        if changed == 0:
            raise DocumentNotFound(f"Document not found: {document.id}")

    def delete_document(self, user_id: str, document_id: str) -> None:
        changed = self._execute(
            "DELETE FROM documents WHERE id = ? AND user_id = ?", (document_id, user_id)
        )
        if changed == 0:
            raise DocumentNotFound(f"Document not found: {document_id}")

    # Generation history

    def save_history_record(self, record: GenerationHistoryRecord) -> None:
        """Append a record to the generation ledger.

        The referenced document must exist and belong to the same user.
        """
        conn = get_connection(self.db_path)
        try:
            owner = conn.execute(
                "SELECT user_id FROM documents WHERE id = ?", (record.document_id,)
            ).fetchone()
            if owner is None or owner["user_id"] != record.user_id:
                raise DocumentNotFound(f"Document not found: {record.document_id}")
            conn.execute(
                """
                INSERT INTO generation_history
                (id, user_id, document_id, model, prompt_tokens, completion_tokens,
                 total_cost, generation_time_ms, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (record.id, record.user_id, record.document_id, record.model,
                 record.prompt_tokens, record.completion_tokens, record.total_cost,
                 record.generation_time_ms, record.created_at.isoformat()),
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def list_history(self, user_id: str, limit: int = 100) -> List[GenerationHistoryRecord]:
        """Return a user's generation history, newest first."""
        rows = self._query(
            """
            SELECT id, user_id, document_id, model, prompt_tokens, completion_tokens,
                   total_cost, generation_time_ms, created_at
            FROM generation_history
            WHERE user_id = ?
            ORDER BY created_at DESC, rowid DESC
            LIMIT ?
            """,
            (user_id, limit),
        )
        return [
            GenerationHistoryRecord(
                id=row["id"],
                user_id=row["user_id"],
                document_id=row["document_id"],
                model=row["model"],
                prompt_tokens=row["prompt_tokens"],
                completion_tokens=row["completion_tokens"],
                total_cost=row["total_cost"],
                generation_time_ms=row["generation_time_ms"],
                created_at=_to_datetime(row["created_at"]),
            )
            for row in rows
        ]
