"""
Student Context Builder for the Tutor Gateway

This module condenses a learner's stored profile, recent progress and
mastery into the anonymized StudentContext used to ground learning-mode
prompts. The data store is an external collaborator reached through the
StudentDataSource protocol.

Design:
- Protocol-based data source (in-memory for tests/dev, Supabase REST in production)
- All reads issued concurrently; only the profile read is fatal
- Output carries a hashed learner reference and no profile PII

Usage:
    from tutor_gateway.services.student_context import (
        StudentContextBuilder,
        InMemoryStudentDataSource,
    )

    builder = StudentContextBuilder(InMemoryStudentDataSource())
    context = await builder.build(student_id)
"""

import asyncio
from typing import Any, Dict, Iterable, List, Optional, Protocol

import httpx

from tutor_gateway.exceptions import ContextUnavailableError
from tutor_gateway.logging_config import get_logger
from tutor_gateway.models.context import LessonSnapshot, StudentContext, SubjectMastery
from tutor_gateway.utils.text_utils import anonymize


logger = get_logger("context")

Row = Dict[str, Any]

MAX_RECENT_PROGRESS = 5
MAX_STRENGTHS = 4
MAX_FOCUS_AREAS = 4
DERIVED_FOCUS_AREAS = 2

CHAT_MODES = ("guided_only", "guided_preferred", "free")
STUDY_MODES = ("catch_up", "keep_up", "get_ahead")

# Learning-style keys written by different app versions
CHAT_MODE_KEYS = ("chatMode", "chat_mode", "mode")
CHAT_MODE_LOCKED_KEYS = ("chatModeLocked", "chat_mode_locked")
STUDY_MODE_KEYS = ("studyMode", "study_mode")
STUDY_MODE_LOCKED_KEYS = ("studyModeLocked", "study_mode_locked")
ALLOW_TUTOR_KEYS = ("allowTutor", "allow_tutor", "ai_enabled", "aiEnabled")
LESSON_ONLY_KEYS = (
    "tutorLessonOnly",
    "tutor_lesson_only",
    "lessonOnly",
    "lesson_only",
    "limitTutorToLessonContext",
    "ai_lesson_only",
)
DAILY_LIMIT_KEYS = (
    "tutorDailyLimit",
    "tutor_daily_limit",
    "maxTutorChatsPerDay",
    "max_tutor_chats_per_day",
    "dailyTutorLimit",
    "daily_tutor_limit",
)


# ===========================================
# Protocol (Interface)
# ===========================================


class StudentDataSource(Protocol):
    """
    Read-only access to the learner tables of the data store.

    Row shapes follow the store's tables:
        profile:  grade, level, strengths, weaknesses, learning_path, learning_style
        progress: status, mastery_pct, last_activity_at,
                  lessons {title, module_id, modules {title, subject}}
        mastery:  skill_id, mastery_pct
        skills:   id, subject_id, name
        subjects: id, name
    """

    async def fetch_profile(self, student_id: str) -> Optional[Row]:
        ...

    async def fetch_recent_progress(self, student_id: str, limit: int = MAX_RECENT_PROGRESS) -> List[Row]:
        ...

    async def fetch_mastery(self, student_id: str) -> List[Row]:
        ...

    async def fetch_skills(self) -> List[Row]:
        ...

    async def fetch_subjects(self) -> List[Row]:
        ...


# ===========================================
# In-Memory Implementation
# ===========================================


class InMemoryStudentDataSource:
    """
    Dict-backed data source for tests and local development.

    Attributes:
        profiles: student_id -> profile row
        progress: student_id -> progress rows (any order)
        mastery: student_id -> mastery rows
        skills: skill rows
        subjects: subject rows
    """

    def __init__(
        self,
        profiles: Optional[Dict[str, Row]] = None,
        progress: Optional[Dict[str, List[Row]]] = None,
        mastery: Optional[Dict[str, List[Row]]] = None,
        skills: Optional[List[Row]] = None,
        subjects: Optional[List[Row]] = None,
    ):
        self.profiles = profiles or {}
        self.progress = progress or {}
        self.mastery = mastery or {}
        self.skills = skills or []
        self.subjects = subjects or []

    async def fetch_profile(self, student_id: str) -> Optional[Row]:
        return self.profiles.get(student_id)

    async def fetch_recent_progress(self, student_id: str, limit: int = MAX_RECENT_PROGRESS) -> List[Row]:
        rows = sorted(
            self.progress.get(student_id, []),
            key=lambda row: row.get("last_activity_at") or "",
            reverse=True,
        )
        return rows[:limit]

    async def fetch_mastery(self, student_id: str) -> List[Row]:
        return list(self.mastery.get(student_id, []))

    async def fetch_skills(self) -> List[Row]:
        return list(self.skills)

    async def fetch_subjects(self) -> List[Row]:
        return list(self.subjects)


# ===========================================
# Supabase (PostgREST) Implementation
# ===========================================


class SupabaseStudentDataSource:
    """
    Data source backed by the Supabase REST interface.

    Uses the service-role key, so it must only run server-side.
    """

    PROFILE_COLUMNS = "grade,level,strengths,weaknesses,learning_path,learning_style"
    PROGRESS_COLUMNS = (
        "status,mastery_pct,last_activity_at,"
        "lessons(title,module_id,modules(title,subject))"
    )

    def __init__(
        self,
        base_url: str,
        service_key: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the data source.

        Args:
            base_url: Supabase project URL
            service_key: Service-role API key
            timeout: Per-request timeout in seconds
            client: Optional preconfigured client (tests)
        """
        self._client = client or httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/rest/v1",
            headers={
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
                "Accept": "application/json",
            },
            timeout=timeout,
        )

    async def _select(self, table: str, params: Dict[str, str]) -> List[Row]:
        response = await self._client.get(f"/{table}", params=params)
        response.raise_for_status()
        payload = response.json()
        return payload if isinstance(payload, list) else []

    async def fetch_profile(self, student_id: str) -> Optional[Row]:
        rows = await self._select(
            "student_profiles",
            {"select": self.PROFILE_COLUMNS, "id": f"eq.{student_id}", "limit": "1"},
        )
        return rows[0] if rows else None

    async def fetch_recent_progress(self, student_id: str, limit: int = MAX_RECENT_PROGRESS) -> List[Row]:
        return await self._select(
            "student_progress",
            {
                "select": self.PROGRESS_COLUMNS,
                "student_id": f"eq.{student_id}",
                "order": "last_activity_at.desc",
                "limit": str(limit),
            },
        )

    async def fetch_mastery(self, student_id: str) -> List[Row]:
        return await self._select(
            "student_mastery",
            {"select": "skill_id,mastery_pct", "student_id": f"eq.{student_id}"},
        )

    async def fetch_skills(self) -> List[Row]:
        return await self._select("skills", {"select": "id,subject_id,name"})

    async def fetch_subjects(self) -> List[Row]:
        return await self._select("subjects", {"select": "id,name"})

    async def aclose(self) -> None:
        await self._client.aclose()


# ===========================================
# Parsing Helpers
# ===========================================


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, str) and entry.strip()]


def _first_present(style: Row, keys: Iterable[str]) -> Any:
    for key in keys:
        if style.get(key) is not None:
            return style[key]
    return None


def _coerce_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _coerce_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def _as_bool(value: Any, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def _default_chat_mode(grade: Optional[int]) -> str:
    if grade is not None:
        if grade <= 3:
            return "guided_only"
        if grade <= 5:
            return "guided_preferred"
    return "free"


def _related(row: Row, key: str) -> Row:
    """Embedded relation from a REST row; to-many embeds yield their first item."""
    value = row.get(key)
    if isinstance(value, list):
        value = value[0] if value else None
    return value if isinstance(value, dict) else {}


def _active_lesson(progress_rows: List[Row]) -> Optional[LessonSnapshot]:
    for row in progress_rows:
        lesson = _related(row, "lessons")
        if not lesson.get("title"):
            continue
        module = _related(lesson, "modules")
        return LessonSnapshot(
            title=lesson["title"],
            module_title=module.get("title"),
            subject=module.get("subject"),
            status=row.get("status"),
            mastery_pct=_coerce_float(row.get("mastery_pct")),
            last_activity_at=row.get("last_activity_at"),
        )
    return None


def _next_lesson(learning_path: Any) -> Optional[LessonSnapshot]:
    if not isinstance(learning_path, list):
        return None
    for item in learning_path:
        if not isinstance(item, dict) or item.get("status") == "completed":
            continue
        return LessonSnapshot(
            title=item.get("title") or "Upcoming lesson",
            module_title=item.get("moduleTitle") or item.get("module"),
            subject=item.get("subject"),
            status=item.get("status"),
            mastery_pct=_coerce_float(item.get("mastery")),
        )
    return None


def aggregate_mastery_by_subject(
    mastery_rows: List[Row],
    skills: List[Row],
    subjects: List[Row],
) -> List[SubjectMastery]:
    """
    Average skill mastery per subject.

    Args:
        mastery_rows: skill_id / mastery_pct rows for the learner
        skills: id / subject_id skill lookup
        subjects: id / name subject lookup

    Returns:
        SubjectMastery entries sorted from weakest to strongest, averages
        rounded to two decimals
    """
    skill_subject = {
        row["id"]: row["subject_id"]
        for row in skills
        if row.get("id") is not None and row.get("subject_id") is not None
    }
    subject_names = {
        row["id"]: row["name"]
        for row in subjects
        if row.get("id") is not None and isinstance(row.get("name"), str)
    }

    totals: Dict[Any, List[float]] = {}
    for row in mastery_rows:
        subject_id = skill_subject.get(row.get("skill_id"))
        if not subject_id:
            continue
        mastery_pct = _coerce_float(row.get("mastery_pct"))
        bucket = totals.setdefault(subject_id, [])
        if mastery_pct is not None:
            bucket.append(mastery_pct)

    result = [
        SubjectMastery(
            subject=subject_names.get(subject_id, f"Subject {subject_id}"),
            mastery=round(sum(values) / len(values), 2),
        )
        for subject_id, values in totals.items()
        if values
    ]
    result.sort(key=lambda entry: entry.mastery)
    return result


# ===========================================
# Builder
# ===========================================


class StudentContextBuilder:
    """
    Builds a fresh StudentContext per learning request.

    Nothing is cached between requests.
    """

    def __init__(self, data_source: StudentDataSource):
        """
        Initialize the builder.

        Args:
            data_source: Read-only learner data source
        """
        self.data_source = data_source

    async def build(self, student_id: str) -> StudentContext:
        """
        Fetch and condense a learner's academic state.

        Args:
            student_id: Raw authenticated student id

        Returns:
            Anonymized StudentContext

        Raises:
            ContextUnavailableError: If the profile read fails
        """
        learner_ref = anonymize(student_id) or "learner"

        profile, progress, mastery, skills, subjects = await asyncio.gather(
            self.data_source.fetch_profile(student_id),
            self.data_source.fetch_recent_progress(student_id, MAX_RECENT_PROGRESS),
            self.data_source.fetch_mastery(student_id),
            self.data_source.fetch_skills(),
            self.data_source.fetch_subjects(),
            return_exceptions=True,
        )

        if isinstance(profile, BaseException):
            logger.error(
                "Failed to load learner profile",
                extra={
                    "component": "context",
                    "event": "profile_failed",
                    "learner": learner_ref,
                    "error": str(profile),
                },
            )
            raise ContextUnavailableError(
                "Unable to load learner context.",
                details={"learner": learner_ref, "error": str(profile)},
            ) from profile

        progress = self._optional_rows(progress, "progress", learner_ref)
        mastery = self._optional_rows(mastery, "mastery", learner_ref)
        skills = self._optional_rows(skills, "skills", learner_ref)
        subjects = self._optional_rows(subjects, "subjects", learner_ref)

        profile = profile or {}
        grade = _coerce_int(profile.get("grade"))
        style = profile.get("learning_style") if isinstance(profile.get("learning_style"), dict) else {}

        mastery_by_subject = aggregate_mastery_by_subject(mastery, skills, subjects)
        weaknesses = _string_list(profile.get("weaknesses"))
        focus_areas = weaknesses or [
            entry.subject for entry in mastery_by_subject[:DERIVED_FOCUS_AREAS]
        ]

        chat_mode = _first_present(style, CHAT_MODE_KEYS)
        if chat_mode not in CHAT_MODES:
            chat_mode = _default_chat_mode(grade)
        study_mode = _first_present(style, STUDY_MODE_KEYS)
        if study_mode not in STUDY_MODES:
            study_mode = None

        context = StudentContext(
            learner_ref=learner_ref,
            grade=grade,
            level=_coerce_int(profile.get("level")),
            strengths=_string_list(profile.get("strengths"))[:MAX_STRENGTHS],
            focus_areas=focus_areas[:MAX_FOCUS_AREAS],
            active_lesson=_active_lesson(progress),
            next_lesson=_next_lesson(profile.get("learning_path")),
            mastery_by_subject=mastery_by_subject,
            chat_mode=chat_mode,
            chat_mode_locked=_as_bool(_first_present(style, CHAT_MODE_LOCKED_KEYS), False),
            study_mode=study_mode,
            study_mode_locked=_as_bool(_first_present(style, STUDY_MODE_LOCKED_KEYS), False),
            allow_tutor=_as_bool(_first_present(style, ALLOW_TUTOR_KEYS), True),
            tutor_lesson_only=_as_bool(
                _first_present(style, LESSON_ONLY_KEYS),
                grade is not None and grade < 13,
            ),
            tutor_daily_limit=_coerce_int(_first_present(style, DAILY_LIMIT_KEYS)),
        )

        logger.debug(
            "Learner context built",
            extra={
                "component": "context",
                "event": "context_built",
                "learner": learner_ref,
                "data": {
                    "grade": context.grade,
                    "subjects": len(context.mastery_by_subject),
                    "has_active_lesson": context.active_lesson is not None,
                    "has_next_lesson": context.next_lesson is not None,
                },
            },
        )

        return context

    @staticmethod
    def _optional_rows(result: Any, label: str, learner_ref: str) -> List[Row]:
        """Unwrap a non-fatal sub-fetch, logging and dropping failures."""
        if isinstance(result, BaseException):
            logger.warning(
                f"Failed to load learner {label}",
                extra={
                    "component": "context",
                    "event": f"{label}_failed",
                    "learner": learner_ref,
                    "error": str(result),
                },
            )
            return []
        return [row for row in (result or []) if isinstance(row, dict)]
