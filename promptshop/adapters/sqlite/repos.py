"""
SQLite repositories.

Each repository can run on its own short-lived connection or on a connection
owned by `SQLiteStore.transaction()`, in which case it never commits and the
unit of work decides the outcome.

Money is stored as integer minor units so balance changes can be applied
with a single atomic UPDATE.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID, uuid4

from promptshop.domain.entities import (
    Course,
    CourseLesson,
    CourseMaterial,
    CoursePurchase,
    Payment,
    PaymentStatus,
    PricingPlan,
    Profile,
    Prompt,
    PromptFile,
    PromptPurchase,
    ReferralTransaction,
    SubscriptionReminder,
    SubscriptionTier,
    User,
    WithdrawalRequest,
    WithdrawalStatus,
)
from promptshop.domain.errors import DuplicateGrantError, UpstreamUnavailable

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """Convert SQLite row to dictionary."""
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


def fmt_dt(dt: datetime | None) -> str | None:
    """Serialize as fixed-width UTC ISO text so string comparison orders correctly."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat(timespec="microseconds")


def parse_dt(s: str | None) -> datetime | None:
    if not s:
        return None
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def parse_uuid(s: str | None) -> UUID | None:
    return UUID(s) if s else None


def uuid_str(u: UUID | None) -> str | None:
    return str(u) if u is not None else None


def to_minor(amount: Decimal | None) -> int | None:
    if amount is None:
        return None
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor(value: int | None) -> Decimal | None:
    if value is None:
        return None
    return (Decimal(value) / 100).quantize(Decimal("0.01"))


def is_unique_violation(e: sqlite3.IntegrityError) -> bool:
    """UNIQUE or PRIMARY KEY collision, as opposed to a foreign key or NOT NULL failure."""
    return "UNIQUE constraint failed" in str(e)


# -----------------------------------------------------------------------------
# Base SQLite Repository
# -----------------------------------------------------------------------------


class SQLiteRepoBase:
    """Base class for SQLite repositories."""

    def __init__(self, db_path: str, connection: sqlite3.Connection | None = None):
        self.db_path = db_path
        self._external_conn = connection

    def _get_conn(self) -> sqlite3.Connection:
        """Get database connection (uses external if provided)."""
        if self._external_conn is not None:
            return self._external_conn
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.OperationalError as e:
            raise UpstreamUnavailable(str(e)) from e
        conn.row_factory = dict_factory
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def _should_close(self) -> bool:
        """Whether to close connection after use."""
        return self._external_conn is None

    def _done(self, conn: sqlite3.Connection, commit: bool = False) -> None:
        if self._should_close():
            if commit:
                conn.commit()
            conn.close()

    def _rollback(self, conn: sqlite3.Connection) -> None:
        """Undo a failed standalone write. Inside a transaction the unit of work decides."""
        if self._should_close():
            conn.rollback()


# -----------------------------------------------------------------------------
# Users
# -----------------------------------------------------------------------------


class SQLiteUserRepo(SQLiteRepoBase):
    def save(self, user: User) -> User:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO users (
                    id, email, display_name, password_hash, status, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    email=excluded.email,
                    display_name=excluded.display_name,
                    password_hash=excluded.password_hash,
                    status=excluded.status,
                    updated_at=excluded.updated_at
                """,
                (
                    str(user.id),
                    user.email,
                    user.display_name,
                    user.password_hash,
                    user.status,
                    fmt_dt(user.created_at),
                    fmt_dt(user.updated_at),
                ),
            )
            conn.execute("DELETE FROM role_assignments WHERE user_id = ?", (str(user.id),))
            for role in user.roles:
                conn.execute(
                    "INSERT INTO role_assignments (id, user_id, role, created_at) "
                    "VALUES (?, ?, ?, ?)",
                    (str(uuid4()), str(user.id), role, fmt_dt(datetime.now(UTC))),
                )
            return user
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    def get_by_id(self, user_id: UUID) -> User | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (str(user_id),)).fetchone()
            return self._map_row(conn, row) if row else None
        finally:
            self._done(conn)

    def get_by_email(self, email: str) -> User | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM users WHERE lower(email) = lower(?)", (email,)
            ).fetchone()
            return self._map_row(conn, row) if row else None
        finally:
            self._done(conn)

    def add_role(self, user_id: UUID, role: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO role_assignments (id, user_id, role, created_at) "
                "VALUES (?, ?, ?, ?) ON CONFLICT(user_id, role) DO NOTHING",
                (str(uuid4()), str(user_id), role, fmt_dt(datetime.now(UTC))),
            )
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    def _map_row(self, conn: sqlite3.Connection, row: dict[str, Any]) -> User:
        role_rows = conn.execute(
            "SELECT role FROM role_assignments WHERE user_id = ?", (row["id"],)
        ).fetchall()
        return User(
            id=UUID(row["id"]),
            email=row["email"],
            display_name=row["display_name"],
            password_hash=row["password_hash"],
            roles=[r["role"] for r in role_rows],
            status=row["status"],
            created_at=parse_dt(row["created_at"]),
            updated_at=parse_dt(row["updated_at"]),
        )


# -----------------------------------------------------------------------------
# Profiles
# -----------------------------------------------------------------------------


class SQLiteProfileRepo(SQLiteRepoBase):
    def create(self, profile: Profile) -> Profile:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO profiles (
                    id, user_id, email, full_name, subscription_type,
                    subscription_expires_at, has_agency_access, agency_access_expires_at,
                    referral_code, referral_earnings_minor, referred_by,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(profile.id),
                    str(profile.user_id),
                    profile.email,
                    profile.full_name,
                    profile.subscription_type,
                    fmt_dt(profile.subscription_expires_at),
                    int(profile.has_agency_access),
                    fmt_dt(profile.agency_access_expires_at),
                    profile.referral_code,
                    to_minor(profile.referral_earnings),
                    uuid_str(profile.referred_by),
                    fmt_dt(profile.created_at),
                    fmt_dt(profile.updated_at),
                ),
            )
            return profile
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    def get_by_id(self, profile_id: UUID) -> Profile | None:
        return self._get_one("SELECT * FROM profiles WHERE id = ?", str(profile_id))

    def get_by_user_id(self, user_id: UUID) -> Profile | None:
        return self._get_one("SELECT * FROM profiles WHERE user_id = ?", str(user_id))

    def get_by_referral_code(self, code: str) -> Profile | None:
        return self._get_one(
            "SELECT * FROM profiles WHERE referral_code = ?", code.strip().upper()
        )

    def referral_code_exists(self, code: str) -> bool:
        return self.get_by_referral_code(code) is not None

    def apply_subscription(
        self,
        profile_id: UUID,
        tier: SubscriptionTier,
        expires_at: datetime | None,
        grant_agency: bool,
        now: datetime,
    ) -> bool:
        """Write tier and expiry; also agency access when `grant_agency`."""
        conn = self._get_conn()
        try:
            if grant_agency:
                cur = conn.execute(
                    """
                    UPDATE profiles SET
                        subscription_type = ?, subscription_expires_at = ?,
                        has_agency_access = 1, agency_access_expires_at = ?,
                        updated_at = ?
                    WHERE id = ?
                    """,
                    (tier, fmt_dt(expires_at), fmt_dt(expires_at), fmt_dt(now), str(profile_id)),
                )
            else:
                cur = conn.execute(
                    """
                    UPDATE profiles SET
                        subscription_type = ?, subscription_expires_at = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (tier, fmt_dt(expires_at), fmt_dt(now), str(profile_id)),
                )
            return cur.rowcount == 1
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    def increment_earnings(self, profile_id: UUID, amount: Decimal, now: datetime) -> bool:
        """Atomic `balance = balance + amount`."""
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                UPDATE profiles
                SET referral_earnings_minor = referral_earnings_minor + ?, updated_at = ?
                WHERE id = ?
                """,
                (to_minor(amount), fmt_dt(now), str(profile_id)),
            )
            return cur.rowcount == 1
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    def decrement_earnings_if_sufficient(
        self, profile_id: UUID, amount: Decimal, now: datetime
    ) -> bool:
        """Atomic conditional decrement. False when the balance is too low."""
        conn = self._get_conn()
        try:
            minor = to_minor(amount)
            cur = conn.execute(
                """
                UPDATE profiles
                SET referral_earnings_minor = referral_earnings_minor - ?, updated_at = ?
                WHERE id = ? AND referral_earnings_minor >= ?
                """,
                (minor, fmt_dt(now), str(profile_id), minor),
            )
            return cur.rowcount == 1
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    def list_lapsed_subscriptions(self, now: datetime) -> list[Profile]:
        return self._get_many(
            """
            SELECT * FROM profiles
            WHERE subscription_type IS NOT NULL
              AND subscription_type NOT IN ('free', 'lifetime')
              AND subscription_expires_at IS NOT NULL
              AND subscription_expires_at <= ?
            """,
            fmt_dt(now),
        )

    def list_lapsed_agency(self, now: datetime) -> list[Profile]:
        return self._get_many(
            """
            SELECT * FROM profiles
            WHERE has_agency_access = 1
              AND agency_access_expires_at IS NOT NULL
              AND agency_access_expires_at <= ?
            """,
            fmt_dt(now),
        )

    def list_with_expiry_before(self, horizon: datetime) -> list[Profile]:
        return self._get_many(
            """
            SELECT * FROM profiles
            WHERE subscription_type IS NOT NULL
              AND subscription_type NOT IN ('free', 'lifetime')
              AND subscription_expires_at IS NOT NULL
              AND subscription_expires_at <= ?
            ORDER BY subscription_expires_at
            """,
            fmt_dt(horizon),
        )

    def downgrade_to_free(self, profile_id: UUID, now: datetime) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "UPDATE profiles SET subscription_type = 'free', updated_at = ? "
                "WHERE id = ? AND subscription_type NOT IN ('free', 'lifetime')",
                (fmt_dt(now), str(profile_id)),
            )
            return cur.rowcount == 1
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    def revoke_agency(self, profile_id: UUID, now: datetime) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "UPDATE profiles SET has_agency_access = 0, updated_at = ? "
                "WHERE id = ? AND has_agency_access = 1",
                (fmt_dt(now), str(profile_id)),
            )
            return cur.rowcount == 1
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    def _get_one(self, sql: str, *params: Any) -> Profile | None:
        conn = self._get_conn()
        try:
            row = conn.execute(sql, params).fetchone()
            return self._map_row(row) if row else None
        finally:
            self._done(conn)

    def _get_many(self, sql: str, *params: Any) -> list[Profile]:
        conn = self._get_conn()
        try:
            return [self._map_row(r) for r in conn.execute(sql, params).fetchall()]
        finally:
            self._done(conn)

    def _map_row(self, row: dict[str, Any]) -> Profile:
        return Profile(
            id=UUID(row["id"]),
            user_id=UUID(row["user_id"]),
            email=row["email"],
            full_name=row["full_name"],
            subscription_type=row["subscription_type"],
            subscription_expires_at=parse_dt(row["subscription_expires_at"]),
            has_agency_access=bool(row["has_agency_access"]),
            agency_access_expires_at=parse_dt(row["agency_access_expires_at"]),
            referral_code=row["referral_code"],
            referral_earnings=from_minor(row["referral_earnings_minor"]),
            referred_by=parse_uuid(row["referred_by"]),
            created_at=parse_dt(row["created_at"]),
            updated_at=parse_dt(row["updated_at"]),
        )


# -----------------------------------------------------------------------------
# Catalog (plans, prompts, courses, lessons)
# -----------------------------------------------------------------------------


class SQLiteCatalogRepo(SQLiteRepoBase):
    # --- Plans ---

    def save_plan(self, plan: PricingPlan) -> PricingPlan:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO pricing_plans (
                    id, name, slug, price_minor, duration_days, subscription_type,
                    is_active, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name=excluded.name,
                    slug=excluded.slug,
                    price_minor=excluded.price_minor,
                    duration_days=excluded.duration_days,
                    subscription_type=excluded.subscription_type,
                    is_active=excluded.is_active
                """,
                (
                    str(plan.id),
                    plan.name,
                    plan.slug,
                    to_minor(plan.price),
                    plan.duration_days,
                    plan.subscription_type,
                    int(plan.is_active),
                    fmt_dt(plan.created_at),
                ),
            )
            return plan
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    def get_plan(self, plan_id: UUID) -> PricingPlan | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM pricing_plans WHERE id = ?", (str(plan_id),)
            ).fetchone()
            return self._map_plan(row) if row else None
        finally:
            self._done(conn)

    def list_plans(self, active_only: bool = True) -> list[PricingPlan]:
        conn = self._get_conn()
        try:
            sql = "SELECT * FROM pricing_plans"
            if active_only:
                sql += " WHERE is_active = 1"
            sql += " ORDER BY price_minor"
            return [self._map_plan(r) for r in conn.execute(sql).fetchall()]
        finally:
            self._done(conn)

    # --- Prompts ---

    def save_prompt(self, prompt: Prompt) -> Prompt:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO prompts (
                    id, title, slug, description, content, instructions, examples,
                    is_premium, is_agency_only, price_minor, is_published,
                    category_id, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title=excluded.title,
                    slug=excluded.slug,
                    description=excluded.description,
                    content=excluded.content,
                    instructions=excluded.instructions,
                    examples=excluded.examples,
                    is_premium=excluded.is_premium,
                    is_agency_only=excluded.is_agency_only,
                    price_minor=excluded.price_minor,
                    is_published=excluded.is_published,
                    category_id=excluded.category_id
                """,
                (
                    str(prompt.id),
                    prompt.title,
                    prompt.slug,
                    prompt.description,
                    prompt.content,
                    prompt.instructions,
                    prompt.examples,
                    int(prompt.is_premium),
                    int(prompt.is_agency_only),
                    to_minor(prompt.price),
                    int(prompt.is_published),
                    uuid_str(prompt.category_id),
                    fmt_dt(prompt.created_at),
                ),
            )
            return prompt
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    def get_prompt(self, prompt_id: UUID) -> Prompt | None:
        return self._one_prompt("SELECT * FROM prompts WHERE id = ?", str(prompt_id))

    def get_prompt_by_slug(self, slug: str) -> Prompt | None:
        return self._one_prompt("SELECT * FROM prompts WHERE slug = ?", slug)

    def list_prompts(self, published_only: bool = True) -> list[Prompt]:
        conn = self._get_conn()
        try:
            sql = "SELECT * FROM prompts"
            if published_only:
                sql += " WHERE is_published = 1"
            sql += " ORDER BY created_at DESC"
            return [self._map_prompt(r) for r in conn.execute(sql).fetchall()]
        finally:
            self._done(conn)

    def save_prompt_file(self, prompt_file: PromptFile) -> PromptFile:
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO prompt_files (id, prompt_id, file_name, file_url) "
                "VALUES (?, ?, ?, ?)",
                (
                    str(prompt_file.id),
                    str(prompt_file.prompt_id),
                    prompt_file.file_name,
                    prompt_file.file_url,
                ),
            )
            return prompt_file
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    # --- Courses & Lessons ---

    def save_course(self, course: Course) -> Course:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO courses (
                    id, title, slug, description, price_minor, discount_price_minor,
                    is_published, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title=excluded.title,
                    slug=excluded.slug,
                    description=excluded.description,
                    price_minor=excluded.price_minor,
                    discount_price_minor=excluded.discount_price_minor,
                    is_published=excluded.is_published
                """,
                (
                    str(course.id),
                    course.title,
                    course.slug,
                    course.description,
                    to_minor(course.price),
                    to_minor(course.discount_price),
                    int(course.is_published),
                    fmt_dt(course.created_at),
                ),
            )
            return course
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    def get_course(self, course_id: UUID) -> Course | None:
        return self._one_course("SELECT * FROM courses WHERE id = ?", str(course_id))

    def get_course_by_slug(self, slug: str) -> Course | None:
        return self._one_course("SELECT * FROM courses WHERE slug = ?", slug)

    def list_courses(self, published_only: bool = True) -> list[Course]:
        conn = self._get_conn()
        try:
            sql = "SELECT * FROM courses"
            if published_only:
                sql += " WHERE is_published = 1"
            sql += " ORDER BY created_at DESC"
            return [self._map_course(r) for r in conn.execute(sql).fetchall()]
        finally:
            self._done(conn)

    def save_lesson(self, lesson: CourseLesson) -> CourseLesson:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO course_lessons (
                    id, course_id, title, slug, content_html, video_url, video_file_url,
                    is_preview, is_published, sort_order
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title=excluded.title,
                    slug=excluded.slug,
                    content_html=excluded.content_html,
                    video_url=excluded.video_url,
                    video_file_url=excluded.video_file_url,
                    is_preview=excluded.is_preview,
                    is_published=excluded.is_published,
                    sort_order=excluded.sort_order
                """,
                (
                    str(lesson.id),
                    str(lesson.course_id),
                    lesson.title,
                    lesson.slug,
                    lesson.content_html,
                    lesson.video_url,
                    lesson.video_file_url,
                    int(lesson.is_preview),
                    int(lesson.is_published),
                    lesson.sort_order,
                ),
            )
            return lesson
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    def get_lesson_by_id(self, lesson_id: UUID) -> CourseLesson | None:
        return self._one_lesson("SELECT * FROM course_lessons WHERE id = ?", str(lesson_id))

    def get_lesson(self, course_id: UUID, slug: str) -> CourseLesson | None:
        return self._one_lesson(
            "SELECT * FROM course_lessons WHERE course_id = ? AND slug = ?",
            str(course_id),
            slug,
        )

    def list_lessons(self, course_id: UUID) -> list[CourseLesson]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM course_lessons WHERE course_id = ? AND is_published = 1 "
                "ORDER BY sort_order, title",
                (str(course_id),),
            ).fetchall()
            return [self._map_lesson(r) for r in rows]
        finally:
            self._done(conn)

    def save_material(self, material: CourseMaterial) -> CourseMaterial:
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO course_lesson_materials (id, lesson_id, title, file_url) "
                "VALUES (?, ?, ?, ?)",
                (str(material.id), str(material.lesson_id), material.title, material.file_url),
            )
            return material
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    # --- Media ownership ---
    # Only published items in published courses own media

    def find_lessons_by_video(self, file_url: str) -> list[CourseLesson]:
        return self._many_lessons(
            """
            SELECT l.* FROM course_lessons l
            JOIN courses c ON c.id = l.course_id
            WHERE l.video_file_url = ? AND l.is_published = 1 AND c.is_published = 1
            """,
            file_url,
        )

    def find_lessons_by_material(self, file_url: str) -> list[CourseLesson]:
        return self._many_lessons(
            """
            SELECT DISTINCT l.* FROM course_lessons l
            JOIN courses c ON c.id = l.course_id
            JOIN course_lesson_materials m ON m.lesson_id = l.id
            WHERE m.file_url = ? AND l.is_published = 1 AND c.is_published = 1
            """,
            file_url,
        )

    def find_prompts_by_file(self, file_url: str) -> list[Prompt]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT DISTINCT p.* FROM prompts p
                JOIN prompt_files f ON f.prompt_id = p.id
                WHERE f.file_url = ? AND p.is_published = 1
                """,
                (file_url,),
            ).fetchall()
            return [self._map_prompt(r) for r in rows]
        finally:
            self._done(conn)

    # --- Mapping ---

    def _one_prompt(self, sql: str, *params: Any) -> Prompt | None:
        conn = self._get_conn()
        try:
            row = conn.execute(sql, params).fetchone()
            return self._map_prompt(row) if row else None
        finally:
            self._done(conn)

    def _one_course(self, sql: str, *params: Any) -> Course | None:
        conn = self._get_conn()
        try:
            row = conn.execute(sql, params).fetchone()
            return self._map_course(row) if row else None
        finally:
            self._done(conn)

    def _one_lesson(self, sql: str, *params: Any) -> CourseLesson | None:
        conn = self._get_conn()
        try:
            row = conn.execute(sql, params).fetchone()
            return self._map_lesson(row) if row else None
        finally:
            self._done(conn)

    def _many_lessons(self, sql: str, *params: Any) -> list[CourseLesson]:
        conn = self._get_conn()
        try:
            return [self._map_lesson(r) for r in conn.execute(sql, params).fetchall()]
        finally:
            self._done(conn)

    def _map_plan(self, row: dict[str, Any]) -> PricingPlan:
        return PricingPlan(
            id=UUID(row["id"]),
            name=row["name"],
            slug=row["slug"],
            price=from_minor(row["price_minor"]),
            duration_days=row["duration_days"],
            subscription_type=row["subscription_type"],
            is_active=bool(row["is_active"]),
            created_at=parse_dt(row["created_at"]),
        )

    def _map_prompt(self, row: dict[str, Any]) -> Prompt:
        return Prompt(
            id=UUID(row["id"]),
            title=row["title"],
            slug=row["slug"],
            description=row["description"],
            content=row["content"],
            instructions=row["instructions"],
            examples=row["examples"],
            is_premium=bool(row["is_premium"]),
            is_agency_only=bool(row["is_agency_only"]),
            price=from_minor(row["price_minor"]),
            is_published=bool(row["is_published"]),
            category_id=parse_uuid(row["category_id"]),
            created_at=parse_dt(row["created_at"]),
        )

    def _map_course(self, row: dict[str, Any]) -> Course:
        return Course(
            id=UUID(row["id"]),
            title=row["title"],
            slug=row["slug"],
            description=row["description"],
            price=from_minor(row["price_minor"]),
            discount_price=from_minor(row["discount_price_minor"]),
            is_published=bool(row["is_published"]),
            created_at=parse_dt(row["created_at"]),
        )

    def _map_lesson(self, row: dict[str, Any]) -> CourseLesson:
        return CourseLesson(
            id=UUID(row["id"]),
            course_id=UUID(row["course_id"]),
            title=row["title"],
            slug=row["slug"],
            content_html=row["content_html"],
            video_url=row["video_url"],
            video_file_url=row["video_file_url"],
            is_preview=bool(row["is_preview"]),
            is_published=bool(row["is_published"]),
            sort_order=row["sort_order"],
        )


# -----------------------------------------------------------------------------
# Purchases
# -----------------------------------------------------------------------------


class SQLitePurchaseRepo(SQLiteRepoBase):
    def add_prompt_purchase(self, purchase: PromptPurchase) -> PromptPurchase:
        """Raises DuplicateGrantError when (user, prompt) already exists."""
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO user_prompts (id, user_id, prompt_id, purchased_at) "
                "VALUES (?, ?, ?, ?)",
                (
                    str(purchase.id),
                    str(purchase.user_id),
                    str(purchase.prompt_id),
                    fmt_dt(purchase.purchased_at),
                ),
            )
            return purchase
        except sqlite3.IntegrityError as e:
            if not is_unique_violation(e):
                self._rollback(conn)
                raise
            raise DuplicateGrantError(
                "user_prompts", (purchase.user_id, purchase.prompt_id)
            ) from e
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    def add_course_purchase(self, purchase: CoursePurchase) -> CoursePurchase:
        """
        Record a course purchase.

        A row whose access lapsed before `purchase.purchased_at` is renewed in
        place with the new payment and expiry. Raises DuplicateGrantError when
        (user, course) already has live access.
        """
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                """
                INSERT INTO user_courses (
                    id, user_id, course_id, payment_id, access_expires_at, purchased_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, course_id) DO UPDATE SET
                    payment_id=excluded.payment_id,
                    access_expires_at=excluded.access_expires_at,
                    purchased_at=excluded.purchased_at
                WHERE user_courses.access_expires_at IS NOT NULL
                    AND user_courses.access_expires_at <= excluded.purchased_at
                """,
                (
                    str(purchase.id),
                    str(purchase.user_id),
                    str(purchase.course_id),
                    uuid_str(purchase.payment_id),
                    fmt_dt(purchase.access_expires_at),
                    fmt_dt(purchase.purchased_at),
                ),
            )
            if cursor.rowcount == 0:
                raise DuplicateGrantError(
                    "user_courses", (purchase.user_id, purchase.course_id)
                )
            return purchase
        except sqlite3.IntegrityError as e:
            if not is_unique_violation(e):
                self._rollback(conn)
                raise
            raise DuplicateGrantError(
                "user_courses", (purchase.user_id, purchase.course_id)
            ) from e
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    def get_prompt_purchase(self, user_id: UUID, prompt_id: UUID) -> PromptPurchase | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM user_prompts WHERE user_id = ? AND prompt_id = ?",
                (str(user_id), str(prompt_id)),
            ).fetchone()
            if not row:
                return None
            return PromptPurchase(
                id=UUID(row["id"]),
                user_id=UUID(row["user_id"]),
                prompt_id=UUID(row["prompt_id"]),
                purchased_at=parse_dt(row["purchased_at"]),
            )
        finally:
            self._done(conn)

    def get_course_purchase(self, user_id: UUID, course_id: UUID) -> CoursePurchase | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM user_courses WHERE user_id = ? AND course_id = ?",
                (str(user_id), str(course_id)),
            ).fetchone()
            return self._map_course_purchase(row) if row else None
        finally:
            self._done(conn)

    def count_course_purchases(self, user_id: UUID, course_id: UUID) -> int:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM user_courses WHERE user_id = ? AND course_id = ?",
                (str(user_id), str(course_id)),
            ).fetchone()
            return int(row["n"])
        finally:
            self._done(conn)

    def _map_course_purchase(self, row: dict[str, Any]) -> CoursePurchase:
        return CoursePurchase(
            id=UUID(row["id"]),
            user_id=UUID(row["user_id"]),
            course_id=UUID(row["course_id"]),
            payment_id=parse_uuid(row["payment_id"]),
            access_expires_at=parse_dt(row["access_expires_at"]),
            purchased_at=parse_dt(row["purchased_at"]),
        )


# -----------------------------------------------------------------------------
# Payments
# -----------------------------------------------------------------------------


class SQLitePaymentRepo(SQLiteRepoBase):
    def create(self, payment: Payment) -> Payment:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO payments (
                    id, user_id, amount_minor, status, plan_id, course_id, prompt_id,
                    receipt_url, payment_method, admin_notes, approved_by,
                    created_at, approved_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(payment.id),
                    str(payment.user_id),
                    to_minor(payment.amount),
                    payment.status,
                    uuid_str(payment.plan_id),
                    uuid_str(payment.course_id),
                    uuid_str(payment.prompt_id),
                    payment.receipt_url,
                    payment.payment_method,
                    payment.admin_notes,
                    uuid_str(payment.approved_by),
                    fmt_dt(payment.created_at),
                    fmt_dt(payment.approved_at),
                ),
            )
            return payment
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    def get_by_id(self, payment_id: UUID) -> Payment | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM payments WHERE id = ?", (str(payment_id),)
            ).fetchone()
            return self._map_row(row) if row else None
        finally:
            self._done(conn)

    def list_payments(
        self,
        status: PaymentStatus | None = None,
        user_id: UUID | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Payment], int]:
        conn = self._get_conn()
        try:
            where = " WHERE 1=1"
            params: list[Any] = []
            if status:
                where += " AND status = ?"
                params.append(status)
            if user_id:
                where += " AND user_id = ?"
                params.append(str(user_id))

            total = conn.execute(
                f"SELECT COUNT(*) AS n FROM payments{where}", params
            ).fetchone()["n"]
            rows = conn.execute(
                f"SELECT * FROM payments{where} ORDER BY created_at DESC LIMIT ? OFFSET ?",
                [*params, limit, offset],
            ).fetchall()
            return [self._map_row(r) for r in rows], int(total)
        finally:
            self._done(conn)

    def finalize(
        self,
        payment_id: UUID,
        status: PaymentStatus,
        admin_id: UUID | None,
        notes: str | None,
        at: datetime,
    ) -> bool:
        """Move a pending payment to `status`. False if it was no longer pending."""
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                UPDATE payments
                SET status = ?, approved_by = ?, admin_notes = ?, approved_at = ?
                WHERE id = ? AND status = 'pending'
                """,
                (
                    status,
                    uuid_str(admin_id),
                    notes,
                    fmt_dt(at) if status == "approved" else None,
                    str(payment_id),
                ),
            )
            return cur.rowcount == 1
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    def _map_row(self, row: dict[str, Any]) -> Payment:
        return Payment(
            id=UUID(row["id"]),
            user_id=UUID(row["user_id"]),
            amount=from_minor(row["amount_minor"]),
            status=row["status"],
            plan_id=parse_uuid(row["plan_id"]),
            course_id=parse_uuid(row["course_id"]),
            prompt_id=parse_uuid(row["prompt_id"]),
            receipt_url=row["receipt_url"],
            payment_method=row["payment_method"],
            admin_notes=row["admin_notes"],
            approved_by=parse_uuid(row["approved_by"]),
            created_at=parse_dt(row["created_at"]),
            approved_at=parse_dt(row["approved_at"]),
        )


# -----------------------------------------------------------------------------
# Referrals (transactions + withdrawals)
# -----------------------------------------------------------------------------


class SQLiteReferralRepo(SQLiteRepoBase):
    def add_transaction(self, tx: ReferralTransaction) -> ReferralTransaction:
        """Raises DuplicateGrantError when the payment already carries a commission."""
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO referral_transactions (
                    id, referrer_id, referred_user_id, payment_id, amount_minor, created_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    str(tx.id),
                    str(tx.referrer_id),
                    str(tx.referred_user_id),
                    str(tx.payment_id),
                    to_minor(tx.amount),
                    fmt_dt(tx.created_at),
                ),
            )
            return tx
        except sqlite3.IntegrityError as e:
            if not is_unique_violation(e):
                self._rollback(conn)
                raise
            raise DuplicateGrantError("referral_transactions", tx.payment_id) from e
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    def list_transactions(self, referrer_id: UUID) -> list[ReferralTransaction]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM referral_transactions WHERE referrer_id = ? "
                "ORDER BY created_at DESC",
                (str(referrer_id),),
            ).fetchall()
            return [
                ReferralTransaction(
                    id=UUID(r["id"]),
                    referrer_id=UUID(r["referrer_id"]),
                    referred_user_id=UUID(r["referred_user_id"]),
                    payment_id=UUID(r["payment_id"]),
                    amount=from_minor(r["amount_minor"]),
                    created_at=parse_dt(r["created_at"]),
                )
                for r in rows
            ]
        finally:
            self._done(conn)

    def count_for_referred(self, referrer_id: UUID, referred_id: UUID) -> int:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM referral_transactions "
                "WHERE referrer_id = ? AND referred_user_id = ?",
                (str(referrer_id), str(referred_id)),
            ).fetchone()
            return int(row["n"])
        finally:
            self._done(conn)

    def count_referred_profiles(self, referrer_id: UUID) -> int:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM profiles WHERE referred_by = ?",
                (str(referrer_id),),
            ).fetchone()
            return int(row["n"])
        finally:
            self._done(conn)

    def sum_transactions(self, referrer_id: UUID) -> Decimal:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT COALESCE(SUM(amount_minor), 0) AS total "
                "FROM referral_transactions WHERE referrer_id = ?",
                (str(referrer_id),),
            ).fetchone()
            return from_minor(row["total"])
        finally:
            self._done(conn)

    def sum_approved_withdrawals(self, profile_id: UUID) -> Decimal:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT COALESCE(SUM(amount_minor), 0) AS total "
                "FROM referral_withdrawals WHERE profile_id = ? AND status = 'approved'",
                (str(profile_id),),
            ).fetchone()
            return from_minor(row["total"])
        finally:
            self._done(conn)

    def create_withdrawal(self, request: WithdrawalRequest) -> WithdrawalRequest:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO referral_withdrawals (
                    id, profile_id, amount_minor, type, status, plan_id,
                    card_number, card_holder, admin_notes, approved_by, approved_at,
                    created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(request.id),
                    str(request.profile_id),
                    to_minor(request.amount),
                    request.type,
                    request.status,
                    uuid_str(request.plan_id),
                    request.card_number,
                    request.card_holder,
                    request.admin_notes,
                    uuid_str(request.approved_by),
                    fmt_dt(request.approved_at),
                    fmt_dt(request.created_at),
                ),
            )
            return request
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    def get_withdrawal(self, withdrawal_id: UUID) -> WithdrawalRequest | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM referral_withdrawals WHERE id = ?", (str(withdrawal_id),)
            ).fetchone()
            return self._map_withdrawal(row) if row else None
        finally:
            self._done(conn)

    def list_withdrawals(
        self,
        status: WithdrawalStatus | None = None,
        profile_id: UUID | None = None,
    ) -> list[WithdrawalRequest]:
        conn = self._get_conn()
        try:
            sql = "SELECT * FROM referral_withdrawals WHERE 1=1"
            params: list[Any] = []
            if status:
                sql += " AND status = ?"
                params.append(status)
            if profile_id:
                sql += " AND profile_id = ?"
                params.append(str(profile_id))
            sql += " ORDER BY created_at DESC"
            return [self._map_withdrawal(r) for r in conn.execute(sql, params).fetchall()]
        finally:
            self._done(conn)

    def finalize_withdrawal(
        self,
        withdrawal_id: UUID,
        status: WithdrawalStatus,
        admin_id: UUID | None,
        notes: str | None,
        at: datetime,
    ) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                UPDATE referral_withdrawals
                SET status = ?, approved_by = ?, admin_notes = ?, approved_at = ?
                WHERE id = ? AND status = 'pending'
                """,
                (
                    status,
                    uuid_str(admin_id),
                    notes,
                    fmt_dt(at) if status == "approved" else None,
                    str(withdrawal_id),
                ),
            )
            return cur.rowcount == 1
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    def _map_withdrawal(self, row: dict[str, Any]) -> WithdrawalRequest:
        return WithdrawalRequest(
            id=UUID(row["id"]),
            profile_id=UUID(row["profile_id"]),
            amount=from_minor(row["amount_minor"]),
            type=row["type"],
            status=row["status"],
            plan_id=parse_uuid(row["plan_id"]),
            card_number=row["card_number"],
            card_holder=row["card_holder"],
            admin_notes=row["admin_notes"],
            approved_by=parse_uuid(row["approved_by"]),
            approved_at=parse_dt(row["approved_at"]),
            created_at=parse_dt(row["created_at"]),
        )


# -----------------------------------------------------------------------------
# Subscription reminders
# -----------------------------------------------------------------------------


class SQLiteReminderRepo(SQLiteRepoBase):
    def exists(self, profile_id: UUID, reminder_type: str, expires_at: datetime | None) -> bool:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT 1 FROM subscription_reminders "
                "WHERE profile_id = ? AND reminder_type = ? AND expires_at IS ?",
                (str(profile_id), reminder_type, fmt_dt(expires_at)),
            ).fetchone()
            return row is not None
        finally:
            self._done(conn)

    def record(self, reminder: SubscriptionReminder) -> SubscriptionReminder:
        """Raises DuplicateGrantError when this reminder was already sent."""
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO subscription_reminders (
                    id, profile_id, reminder_type, subscription_type, expires_at, sent_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    str(reminder.id),
                    str(reminder.profile_id),
                    reminder.reminder_type,
                    reminder.subscription_type,
                    fmt_dt(reminder.expires_at),
                    fmt_dt(reminder.sent_at),
                ),
            )
            return reminder
        except sqlite3.IntegrityError as e:
            if not is_unique_violation(e):
                self._rollback(conn)
                raise
            raise DuplicateGrantError(
                "subscription_reminders", (reminder.profile_id, reminder.reminder_type)
            ) from e
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._done(conn, commit=True)

    def list_recent(self, limit: int = 100) -> list[SubscriptionReminder]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM subscription_reminders ORDER BY sent_at DESC LIMIT ?",
                (limit,),
            ).fetchall()
            return [
                SubscriptionReminder(
                    id=UUID(r["id"]),
                    profile_id=UUID(r["profile_id"]),
                    reminder_type=r["reminder_type"],
                    subscription_type=r["subscription_type"],
                    expires_at=parse_dt(r["expires_at"]),
                    sent_at=parse_dt(r["sent_at"]),
                )
                for r in rows
            ]
        finally:
            self._done(conn)


# -----------------------------------------------------------------------------
# Store / Unit of Work
# -----------------------------------------------------------------------------


@dataclass
class SQLiteUnitOfWork:
    """Repositories sharing one connection inside one transaction."""

    users: SQLiteUserRepo
    profiles: SQLiteProfileRepo
    catalog: SQLiteCatalogRepo
    purchases: SQLitePurchaseRepo
    payments: SQLitePaymentRepo
    referrals: SQLiteReferralRepo
    reminders: SQLiteReminderRepo

    @classmethod
    def bind(cls, db_path: str, conn: sqlite3.Connection | None = None) -> SQLiteUnitOfWork:
        return cls(
            users=SQLiteUserRepo(db_path, conn),
            profiles=SQLiteProfileRepo(db_path, conn),
            catalog=SQLiteCatalogRepo(db_path, conn),
            purchases=SQLitePurchaseRepo(db_path, conn),
            payments=SQLitePaymentRepo(db_path, conn),
            referrals=SQLiteReferralRepo(db_path, conn),
            reminders=SQLiteReminderRepo(db_path, conn),
        )


class SQLiteStore:
    """
    Entry point to persistence.

    `repos` gives autocommitting repositories for single-statement work;
    `transaction()` gives a unit of work whose writes commit together or not
    at all. `BEGIN IMMEDIATE` takes the write lock up front, so concurrent
    writers are serialized by the database.
    """

    def __init__(self, db_path: str, busy_timeout: float = 5.0):
        self.db_path = db_path
        self.busy_timeout = busy_timeout
        self.repos = SQLiteUnitOfWork.bind(db_path)

    @contextmanager
    def transaction(self) -> Iterator[SQLiteUnitOfWork]:
        try:
            conn = sqlite3.connect(
                self.db_path, timeout=self.busy_timeout, isolation_level=None
            )
            conn.row_factory = dict_factory
            conn.execute("PRAGMA foreign_keys = ON;")
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.OperationalError as e:
            raise UpstreamUnavailable(str(e)) from e

        try:
            yield SQLiteUnitOfWork.bind(self.db_path, conn)
            conn.execute("COMMIT")
        except sqlite3.OperationalError as e:
            conn.execute("ROLLBACK")
            raise UpstreamUnavailable(str(e)) from e
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()
