"""Rendering of postings into notification content."""

from urllib.parse import quote

from job_alerts.domain.models import JobPosting

from .models import PushPayload


def posting_summary(posting: JobPosting) -> str:
    """Return ``"<company> - <location>"``, the line shown under the title."""
    return f"{posting.company} - {posting.location}"


def posting_url(posting: JobPosting) -> str:
    """Return the relative URL that opens the posting in the app."""
    return f"/?jobId={quote(posting.id, safe='')}"


def build_push_payload(posting: JobPosting) -> PushPayload:
    """Build the push message for a new posting.

    Example:
        >>> build_push_payload(posting)
        PushPayload(title='Backend Engineer', body='Acme - Madrid', url='/?jobId=42')
    """
    return PushPayload(title=posting.title, body=posting_summary(posting), url=posting_url(posting))
