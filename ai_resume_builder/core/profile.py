"""
Profile aggregation.

Builds the immutable, request-scoped snapshot of a user's profile data
that a single generation call works from.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import structlog

from ai_resume_builder.storage.models import Education, Experience, Skill, User
from ai_resume_builder.storage.repository import ResumeRepository

logger = structlog.get_logger().bind(module="profile")


@dataclass(frozen=True)
class ProfileSnapshot:
    """Point-in-time aggregate of everything the generator sees about a user.

    Experiences and education are ordered most recent start date first;
    skills are ordered by category, then name. Never persisted.
    """
    full_name: str
    email: str
    phone: str = ""
    location: str = ""
    linkedin_url: str = ""
    github_url: str = ""
    website_url: str = ""
    summary: str = ""
    experiences: Tuple[Experience, ...] = ()
    education: Tuple[Education, ...] = ()
    skills: Tuple[Skill, ...] = ()

    def to_prompt_dict(self) -> Dict[str, Any]:
        """Return a JSON-ready dict for prompt construction.

        Empty optional contact fields are left out.
        """
        data: Dict[str, Any] = {"full_name": self.full_name, "email": self.email}
        for key in ("phone", "location", "linkedin_url", "github_url", "website_url", "summary"):
            value = getattr(self, key)
            if value:
                data[key] = value

        data["experiences"] = [_experience_dict(e) for e in self.experiences]
        data["education"] = [_education_dict(e) for e in self.education]
        data["skills"] = [_skill_dict(s) for s in self.skills]
        return data


def _experience_dict(experience: Experience) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "company": experience.company,
        "position": experience.position,
        "start_date": experience.start_date.isoformat(),
        "end_date": experience.end_date.isoformat() if experience.end_date else None,
        "is_current": experience.is_current,
    }
    if experience.description:
        data["description"] = experience.description
    if experience.achievements:
        data["achievements"] = list(experience.achievements)
    return data


def _education_dict(education: Education) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "institution": education.institution,
        "degree": education.degree,
        "start_date": education.start_date.isoformat(),
        "end_date": education.end_date.isoformat() if education.end_date else None,
    }
    if education.field_of_study:
        data["field_of_study"] = education.field_of_study
    if education.gpa:
        data["gpa"] = education.gpa
    return data


def _skill_dict(skill: Skill) -> Dict[str, Any]:
    data = {"name": skill.name, "category": skill.category}
    if skill.proficiency_level:
        data["proficiency_level"] = skill.proficiency_level
    return data


class ProfileAggregator:
    """Composes a ``ProfileSnapshot`` from independent storage reads."""

    def __init__(self, repository: ResumeRepository):
        self.repository = repository

    def build(self, user_id: str, user: Optional[User] = None) -> ProfileSnapshot:
        """Load and compose the snapshot for ``user_id``.

        The profile, experience, education and skill reads run
        concurrently. The account is read as well unless ``user`` is
        already known. If any read fails the whole build fails; there is
        no partial snapshot.

        Raises:
            ProfileNotFound: If the user has no profile record
            UserNotFound: If ``user`` is not given and the account is missing
        """
        repo = self.repository
        with ThreadPoolExecutor(max_workers=5) as pool:
            user_future = pool.submit(repo.load_user, user_id) if user is None else None
            profile_future = pool.submit(repo.load_profile, user_id)
            experiences_future = pool.submit(repo.load_experiences, user_id)
            education_future = pool.submit(repo.load_education, user_id)
            skills_future = pool.submit(repo.load_skills, user_id)

            if user_future is not None:
                user = user_future.result()
            profile = profile_future.result()
            experiences = experiences_future.result()
            education = education_future.result()
            skills = skills_future.result()

        snapshot = ProfileSnapshot(
            full_name=user.full_name,
            email=user.email,
            phone=profile.phone,
            location=profile.location,
            linkedin_url=profile.linkedin_url,
            github_url=profile.github_url,
            website_url=profile.website_url,
            summary=profile.summary,
            # reverse=True keeps insertion order among equal start dates
            experiences=tuple(sorted(experiences, key=lambda e: e.start_date, reverse=True)),
            education=tuple(sorted(education, key=lambda e: e.start_date, reverse=True)),
            skills=tuple(sorted(skills, key=lambda s: (s.category, s.name))),
        )
        logger.debug(
            "snapshot_built",
            user_id=user_id,
            experiences=len(snapshot.experiences),
            education=len(snapshot.education),
            skills=len(snapshot.skills),
        )
        return snapshot
