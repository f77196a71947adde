"""
Lead Inbox - Lead Schemas

Defines the canonical LeadRecord, the raw form submission, and the
GitHub issue view the codec reads and writes.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ConsultationType(str, Enum):
    """Kind of consultation the lead asked for"""
    PHONE = "phone"
    ONLINE = "online"


class Gender(str, Enum):
    """Gender as captured by the form or inferred from the RRN"""
    MALE = "male"
    FEMALE = "female"
    UNKNOWN = "unknown"


# Korean display labels used in issue titles and exports
TYPE_TITLE_LABELS = {
    ConsultationType.PHONE: "전화",
    ConsultationType.ONLINE: "온라인",
}

TYPE_EXPORT_LABELS = {
    ConsultationType.PHONE: "전화상담",
    ConsultationType.ONLINE: "온라인분석",
}

GENDER_LABELS = {
    Gender.MALE: "남",
    Gender.FEMALE: "여",
    Gender.UNKNOWN: "",
}


class IssueRef(BaseModel):
    """Identifier the issue store assigned to a lead (immutable)"""
    model_config = ConfigDict(frozen=True)

    number: int
    url: Optional[str] = None


class LeadRecord(BaseModel):
    """
    Canonical lead record.

    Never carries the RRN back digits: `birth_or_rrn` is either a 6-digit
    birth date (phone) or the masked display `FFFFFF-X******` (online).
    """
    model_config = ConfigDict(frozen=True)

    site: str = ""
    consultation_type: Optional[ConsultationType] = None
    name: str = ""
    phone_digits: str = ""
    birth_or_rrn: str = ""
    gender: Gender = Gender.UNKNOWN
    requested_at: Optional[datetime] = None
    issue_ref: Optional[IssueRef] = None


class LeadSubmission(BaseModel):
    """
    Raw form submission as posted by the intake page.

    This is the only model allowed to hold the full RRN back segment; it is
    reduced to its first digit before anything is persisted.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: Optional[str] = None
    site: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = Field(
        None, validation_alias=AliasChoices("phone", "phoneNumber")
    )
    birth: Optional[str] = Field(
        None, validation_alias=AliasChoices("birth", "birthDate")
    )
    rrn_front: Optional[str] = Field(
        None, validation_alias=AliasChoices("rrnFront", "rrn_front", "birthDateFirst")
    )
    rrn_back: Optional[str] = Field(
        None, validation_alias=AliasChoices("rrnBack", "rrn_back", "birthDateSecond")
    )
    gender: Optional[str] = None
    requested_at: Optional[str] = Field(
        None, validation_alias=AliasChoices("requestedAt", "requested_at")
    )

    @field_validator("*", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        # Forms post numbers for digit fields now and then
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class EncodedIssue(BaseModel):
    """Issue payload produced by the encoder"""
    title: str
    body: str
    labels: list[str] = Field(default_factory=list)


class IssueLabel(BaseModel):
    name: str = ""


class GitHubIssue(BaseModel):
    """
    The subset of a GitHub issue the codec depends on.
    Persisted by GitHub exactly as created (append-only).
    """
    model_config = ConfigDict(extra="ignore")

    number: Optional[int] = None
    html_url: Optional[str] = None
    created_at: Optional[datetime] = None
    title: str = ""
    body: Optional[str] = None
    labels: list[IssueLabel] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def _title_or_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("labels", mode="before")
    @classmethod
    def _labels_from_strings(cls, value: Any) -> Any:
        # GitHub returns objects; fixtures and older dumps use plain strings
        if not isinstance(value, (list, tuple)):
            return []
        labels = []
        for item in value:
            if isinstance(item, str):
                labels.append({"name": item})
            elif isinstance(item, dict):
                labels.append({"name": item.get("name") or ""})
        return labels

    @property
    def label_names(self) -> list[str]:
        return [label.name for label in self.labels if label.name]

    @property
    def ref(self) -> Optional[IssueRef]:
        if self.number is None:
            return None
        return IssueRef(number=self.number, url=self.html_url)


class ExportRow(BaseModel):
    """One row of the admin listing / export"""
    site: str = ""
    requested_at: str = ""
    request_type: str = ""
    name: str = ""
    birth_or_rrn: str = ""
    gender: str = ""
    phone: str = ""
    issue_number: Optional[int] = None
    issue_url: Optional[str] = None

    # Filter keys, not rendered
    consultation_type: Optional[ConsultationType] = Field(None, exclude=True)


class ExportResponse(BaseModel):
    ok: bool = True
    count: int
    items: list[ExportRow] = Field(default_factory=list)
