"""
Prompt construction for resume and cover letter generation.

Prompts are deterministic: the same snapshot and job description always
produce the same messages.
"""

import json
from typing import Dict, List, Sequence

from ai_resume_builder.core.profile import ProfileSnapshot

RESUME_SYSTEM_PROMPT = (
    "You are a professional resume writer with 10+ years of experience. "
    "Create ATS-friendly, impactful resumes that highlight candidates' strengths."
)

COVER_LETTER_SYSTEM_PROMPT = (
    "You are an expert cover letter writer. Create compelling, personalized cover "
    "letters that showcase the candidate's fit for the role."
)

RESUME_INSTRUCTIONS = """\
Generate a professional, ATS-friendly resume based on the following candidate profile and job description.

CANDIDATE PROFILE:
{profile}

JOB DESCRIPTION:
{job_description}

REQUIREMENTS:
1. Create a strong professional summary (3-4 sentences) that highlights key qualifications
2. List relevant work experience with bullet points focusing on achievements and impact
3. Include education and relevant skills
4. Use action verbs and quantify achievements where possible
5. Tailor the content to match the job requirements
6. Keep it concise and professional
7. Format in clean, readable sections
{extra_sections}
Return the resume in JSON format with the following structure:
{{
  "summary": "Professional summary paragraph",
  "experience": [
    {{
      "company": "Company Name",
      "position": "Job Title",
      "period": "Start - End",
      "highlights": ["Achievement 1", "Achievement 2", "Achievement 3"]
    }}
  ],
  "education": [
    {{
      "institution": "School Name",
      "degree": "Degree",
      "period": "Start - End"
    }}
  ],
  "skills": {{
    "technical": ["skill1", "skill2"],
    "soft": ["skill1", "skill2"]
  }}
}}"""

COVER_LETTER_INSTRUCTIONS = """\
Generate a compelling cover letter based on the candidate profile and job description.

CANDIDATE PROFILE:
{profile}

JOB DESCRIPTION:
{job_description}

COMPANY NAME: {company_name}

REQUIREMENTS:
1. Start with a strong opening that shows enthusiasm and fit
2. Highlight 2-3 key qualifications that match the job requirements
3. Show understanding of the company/role
4. Demonstrate value the candidate brings
5. Close with a call to action
6. Keep it to 3-4 paragraphs
7. Professional but engaging tone

Return the cover letter in JSON format:
{{
  "opening": "Opening paragraph",
  "body1": "First body paragraph",
  "body2": "Second body paragraph (if needed)",
  "closing": "Closing paragraph"
}}"""


def serialize_snapshot(snapshot: ProfileSnapshot) -> str:
    return json.dumps(snapshot.to_prompt_dict(), indent=2, ensure_ascii=False)


def build_resume_messages(
    snapshot: ProfileSnapshot,
    job_description: str,
    custom_sections: Sequence[str] = (),
) -> List[Dict[str, str]]:
    """Build the chat messages for a resume."""
    extra = ""
    if custom_sections:
        extra = "8. Also include these sections: " + ", ".join(custom_sections) + "\n"
    body = RESUME_INSTRUCTIONS.format(
        profile=serialize_snapshot(snapshot),
        job_description=job_description,
        extra_sections=extra,
    )
    return [
        {"role": "system", "content": RESUME_SYSTEM_PROMPT},
        {"role": "user", "content": body},
    ]


def build_cover_letter_messages(
    snapshot: ProfileSnapshot, job_description: str, company_name: str = ""
) -> List[Dict[str, str]]:
    """Build the chat messages for a cover letter."""
    body = COVER_LETTER_INSTRUCTIONS.format(
        profile=serialize_snapshot(snapshot),
        job_description=job_description,
        company_name=company_name,
    )
    return [
        {"role": "system", "content": COVER_LETTER_SYSTEM_PROMPT},
        {"role": "user", "content": body},
    ]
