# ai_resume_builder/demo/seed_demo_data.py

from datetime import date

from ai_resume_builder.storage.models import User
from ai_resume_builder.storage.repository import ResumeRepository, initialize_schema

DEMO_EMAIL = "demo@example.com"


def seed_demo_user(repository: ResumeRepository, free_generations: int = 3) -> User:
    """Insert a demo account with a filled-in profile."""
    user = repository.create_user(
        email=DEMO_EMAIL,
        full_name="Alex Demo",
        free_generations=free_generations,
    )
    repository.save_profile(
        user.id,
        phone="+1 555 0100",
        location="Berlin, Germany",
        github_url="https://github.com/alexdemo",
        summary="Backend engineer focused on data-heavy services.",
    )
    repository.add_experience(
        user.id,
        company="Streamline GmbH",
        position="Senior Backend Engineer",
        start_date=date(2021, 3, 1),
        is_current=True,
        description="Owns the ingestion platform.",
        achievements=["Cut p99 ingest latency by 40%", "Led migration to PostgreSQL 15"],
    )
    repository.add_experience(
        user.id,
        company="Parcel Labs",
        position="Software Engineer",
        start_date=date(2017, 9, 1),
        end_date=date(2021, 2, 28),
        achievements=["Built the shipment tracking API"],
    )
    repository.add_education(
        user.id,
        institution="TU Munich",
        degree="MSc",
        field_of_study="Computer Science",
        start_date=date(2015, 10, 1),
        end_date=date(2017, 7, 31),
    )
    for name, category, level in [
        ("Python", "technical", "expert"),
        ("PostgreSQL", "technical", "advanced"),
        ("Mentoring", "soft", ""),
        ("German", "language", "intermediate"),
    ]:
        repository.add_skill(user.id, name=name, category=category, proficiency_level=level)
    return user


if __name__ == "__main__":
    initialize_schema()
    demo_user = seed_demo_user(ResumeRepository())
    print(f"Demo user inserted: {demo_user.id}")
