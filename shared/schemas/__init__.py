"""Lead Inbox Shared Schemas"""

from .lead import (
    GENDER_LABELS,
    TYPE_EXPORT_LABELS,
    TYPE_TITLE_LABELS,
    ConsultationType,
    EncodedIssue,
    ExportResponse,
    ExportRow,
    Gender,
    GitHubIssue,
    IssueLabel,
    IssueRef,
    LeadRecord,
    LeadSubmission,
)

__all__ = [
    # Enums and display labels
    "ConsultationType",
    "Gender",
    "GENDER_LABELS",
    "TYPE_TITLE_LABELS",
    "TYPE_EXPORT_LABELS",
    # Lead schemas
    "LeadRecord",
    "LeadSubmission",
    "IssueRef",
    # Issue schemas
    "EncodedIssue",
    "GitHubIssue",
    "IssueLabel",
    # Export schemas
    "ExportRow",
    "ExportResponse",
]
