# scribeflow/api/v1/routers/guidelines.py
from typing import Optional
from fastapi import APIRouter, Depends, Query
from scribeflow.api.v1.deps import require_action
from scribeflow.services.entities import Action, DENIAL_REASON_LABELS

router = APIRouter(prefix="/guidelines", tags=["guidelines"])

GUIDELINE_SECTIONS = [
    {
        "id": "transcription-basics",
        "title": "Transcription Basics",
        "overview": "Fundamental principles for accurate Hassaniya Arabic transcription.",
        "rules": [
            "Transcribe exactly what is spoken, including hesitations and repetitions",
            "Use standard Arabic script with proper diacritics when necessary",
            "Maintain speaker identification when multiple speakers are present",
            "Include timestamps for significant pauses (longer than 3 seconds)",
            "Preserve the dialectal features specific to Hassaniya Arabic",
        ],
    },
    {
        "id": "audio-quality",
        "title": "Audio Quality Guidelines",
        "overview": "How to handle different audio quality scenarios and technical issues.",
        "rules": [
            "Mark unclear audio sections with [غير واضح] (unclear)",
            "Use [ضوضاء] for background noise that interferes with speech",
            "Indicate overlapping speech with [تداخل في الكلام]",
            "Mark inaudible sections with [غير مسموع] and timestamp",
            "Report technical issues that prevent accurate transcription",
        ],
    },
    {
        "id": "dialectal-features",
        "title": "Hassaniya Dialectal Features",
        "overview": "Specific guidelines for preserving Hassaniya Arabic linguistic features.",
        "rules": [
            "Preserve unique Hassaniya vocabulary and expressions",
            "Keep code-switching between Arabic, French, and local languages",
            "Preserve traditional greetings and cultural expressions",
        ],
    },
    {
        "id": "formatting-standards",
        "title": "Formatting Standards",
        "overview": "Consistent formatting rules for professional transcription output.",
        "rules": [
            "Use proper punctuation following Arabic writing conventions",
            "Start new paragraphs for topic changes or new speakers",
            "Use square brackets for transcriber notes and clarifications",
        ],
    },
    {
        "id": "quality-control",
        "title": "Quality Control",
        "overview": "Self-review and quality assurance practices for transcription work.",
        "rules": [
            "Review your work before submission",
            "Verify proper names and technical terms",
            "Confirm all unclear sections are properly marked",
        ],
    },
    {
        "id": "common-mistakes",
        "title": "Common Mistakes to Avoid",
        "overview": "Frequent errors in Hassaniya transcription and how to avoid them.",
        "rules": [
            "Do not standardize dialectal speech into Modern Standard Arabic",
            "Avoid adding words or phrases not actually spoken",
            "Do not correct speaker grammar or pronunciation",
        ],
    },
]

def _section_matches(section: dict, q: str) -> bool:
    q = q.lower()
    if q in section["title"].lower() or q in section["overview"].lower():
        return True
    return any(q in rule.lower() for rule in section["rules"])

@router.get("")
async def get_guidelines(
    q: Optional[str] = Query(default=None, description="Search titles, overviews and rules"),
    _user=Depends(require_action(Action.VIEW_GUIDELINES)),
):
    """
    Transcription guidelines and the denial reasons reviewers can pick from.

    Returns:
        dict: Response containing:
            - success: bool (always True)
            - data: dict with "sections" (filtered by q when given)
              and "denialReasons" ({code, label} pairs)
    """
    sections = GUIDELINE_SECTIONS
    if q and q.strip():
        sections = [s for s in sections if _section_matches(s, q.strip())]
    reasons = [{"code": r.value, "label": label} for r, label in DENIAL_REASON_LABELS.items()]
    return {"success": True, "data": {"sections": sections, "denialReasons": reasons}}
