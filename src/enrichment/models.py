"""
Enrichment Data Models

Wire models (pydantic) for the directory and contact-enrichment payloads, and
frozen dataclasses for everything the pipeline produces internally.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Directory wire model
# =============================================================================


class DirectoryRecord(BaseModel):
    """
    A health system from the external directory.

    Field aliases follow the directory's OData property names.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    id: int = Field(alias="Id")
    name: str = Field(alias="Name")
    firm_type: str | None = Field(default=None, alias="FirmType")
    website: str | None = Field(default=None, alias="WebSite")
    address: str | None = Field(default=None, alias="Address")
    address1: str | None = Field(default=None, alias="Address1")
    city: str | None = Field(default=None, alias="HQCity")
    state: str | None = Field(default=None, alias="State")
    zip: str | None = Field(default=None, alias="Zip")
    country_code: str | None = Field(default=None, alias="CountryCode")
    phone: str | None = Field(default=None, alias="Phone")
    net_patient_revenue: float | None = Field(default=None, alias="NetPatientRev")
    network_name: str | None = Field(default=None, alias="NetworkName")
    network_parent_name: str | None = Field(default=None, alias="NetworkParentName")
    num_employees: int | None = Field(default=None, alias="NumEmployees")
    num_beds: int | None = Field(default=None, alias="NumBeds")
    hospital_type: str | None = Field(default=None, alias="HospitalType")
    emr_vendor_ambulatory: str | None = Field(default=None, alias="EMRVendorAmbulatory")
    emr_vendor_inpatient: str | None = Field(default=None, alias="EMRVendorInpatient")
    profile_url: str | None = Field(default=None, alias="DHCProfile")
    num_hospitals: int | None = Field(default=None, alias="NumHospitals")


# =============================================================================
# Contact-enrichment wire models
# =============================================================================


class MatchOrganization(BaseModel):
    """Organization attached to a person match."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str | None = None
    website_url: str | None = None
    industry: str | None = None
    estimated_num_employees: int | None = None


class EmploymentEntry(BaseModel):
    """One position in a person's employment history."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    organization_name: str | None = None
    title: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    current: bool = False


class PersonMatch(BaseModel):
    """A person returned by the contact-enrichment service."""

    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    name: str | None = None
    linkedin_url: str | None = None
    title: str | None = None
    headline: str | None = None
    email: str | None = None
    email_status: str | None = None
    phone: str | None = None
    photo_url: str | None = None
    organization: MatchOrganization | None = None
    employment_history: tuple[EmploymentEntry, ...] | None = None


class ContactEnrichmentResponse(BaseModel):
    """Aggregated result of one or more bulk-match requests."""

    model_config = ConfigDict(frozen=True)

    status: str = "success"
    total_requested_enrichments: int = 0
    unique_enriched_records: int = 0
    missing_records: int = 0
    credits_consumed: int = 0
    matches: tuple[PersonMatch, ...] = ()


# =============================================================================
# Local records
# =============================================================================


class EntityKind(str, Enum):
    """Kind of local record."""

    HEALTH_SYSTEM = "health_system"
    ATTENDEE = "attendee"
    CONFERENCE = "conference"


@dataclass(frozen=True)
class LocalRecord:
    """
    A caller-owned record, tagged with its kind at construction.

    ``fields`` holds the record's columns; the pipeline only reads
    identifying fields and proposes patches against them.
    """

    kind: EntityKind
    id: str
    fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def health_system(cls, id: str, name: str, **fields: Any) -> LocalRecord:
        return cls(EntityKind.HEALTH_SYSTEM, str(id), {"name": name, **fields})

    @classmethod
    def attendee(cls, id: str, first_name: str, last_name: str, **fields: Any) -> LocalRecord:
        return cls(
            EntityKind.ATTENDEE,
            str(id),
            {"first_name": first_name, "last_name": last_name, **fields},
        )

    @classmethod
    def conference(cls, id: str, name: str, **fields: Any) -> LocalRecord:
        return cls(EntityKind.CONFERENCE, str(id), {"name": name, **fields})

    @property
    def name(self) -> str:
        """Display name; attendees are named by first and last name."""
        if self.kind == EntityKind.ATTENDEE:
            return f"{self.first_name} {self.last_name}".strip()
        return str(self.fields.get("name") or "")

    @property
    def first_name(self) -> str:
        return str(self.fields.get("first_name") or "")

    @property
    def last_name(self) -> str:
        return str(self.fields.get("last_name") or "")

    def get(self, key: str, default: Any = None) -> Any:
        """Read a field, falling back to ``id``."""
        if key == "id":
            return self.id
        return self.fields.get(key, default)

    def with_fields(self, patch: dict[str, Any]) -> LocalRecord:
        """Return a copy with ``patch`` applied."""
        return LocalRecord(self.kind, self.id, {**self.fields, **patch})


# =============================================================================
# Matching results
# =============================================================================


@dataclass(frozen=True)
class MatchingSettings:
    """Tunable constants for directory matching."""

    threshold: float = 0.4
    contains_boost: float = 0.10
    contained_in_boost: float = 0.05
    search_confidence: float = 0.8
    search_alternative_confidence: float = 0.7
    fallback_confidence: float = 0.6
    fallback_alternative_confidence: float = 0.5
    max_alternatives: int = 3
    search_limit: int = 20


@dataclass(frozen=True)
class MatchCandidate:
    """A directory record paired with its match confidence."""

    record: DirectoryRecord
    confidence: float


@dataclass(frozen=True)
class MatchResult:
    """Best candidate and ranked alternatives for one query."""

    best: MatchCandidate | None = None
    alternatives: tuple[MatchCandidate, ...] = ()

    @property
    def confidence(self) -> float:
        return self.best.confidence if self.best else 0.0


@dataclass(frozen=True)
class AlternativeMatch:
    """Summary of a runner-up candidate, as reported to the caller."""

    id: int
    name: str
    confidence: float

    @classmethod
    def from_candidate(cls, candidate: MatchCandidate) -> AlternativeMatch:
        return cls(
            id=candidate.record.id,
            name=candidate.record.name,
            confidence=candidate.confidence,
        )


@dataclass(frozen=True)
class HealthSystemPatch:
    """Directory attributes proposed for a local health system."""

    definitive_id: str
    website: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    ambulatory_ehr: str | None = None
    net_patient_revenue: float | None = None
    number_of_beds: int | None = None
    number_of_hospitals_in_network: int = 1

    @classmethod
    def from_record(cls, record: DirectoryRecord) -> HealthSystemPatch:
        return cls(
            definitive_id=str(record.id),
            website=record.website,
            address=record.address,
            city=record.city,
            state=record.state,
            zip=record.zip,
            ambulatory_ehr=record.emr_vendor_ambulatory,
            net_patient_revenue=record.net_patient_revenue,
            number_of_beds=record.num_beds,
            number_of_hospitals_in_network=record.num_hospitals or 1,
        )

    def to_dict(self) -> dict[str, Any]:
        """Fields to write; attributes the directory did not supply are left out."""
        values = {
            "definitive_id": self.definitive_id,
            "website": self.website,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip": self.zip,
            "ambulatory_ehr": self.ambulatory_ehr,
            "net_patient_revenue": self.net_patient_revenue,
            "number_of_beds": self.number_of_beds,
            "number_of_hospitals_in_network": self.number_of_hospitals_in_network,
        }
        return {k: v for k, v in values.items() if v is not None}


class FailureReason(str, Enum):
    """Why a record could not be enriched."""

    NO_MATCH = "no_match"
    FETCH_FAILED = "fetch_failed"
    UNSUPPORTED_KIND = "unsupported_kind"
    ERROR = "error"


@dataclass(frozen=True)
class EnrichmentResult:
    """Outcome of enriching one local record from the directory."""

    record_id: str
    record_name: str
    success: bool
    patch: HealthSystemPatch | None = None
    confidence: float = 0.0
    alternatives: tuple[AlternativeMatch, ...] = ()
    error: str | None = None
    failure_reason: FailureReason | None = None


# =============================================================================
# Prompt enrichment results
# =============================================================================


class ColumnType(str, Enum):
    """Type of the column a generated value is written to."""

    TEXT = "text"
    BOOLEAN = "boolean"
    NUMBER = "number"


@dataclass(frozen=True)
class DirectoryContext:
    """
    Directory information appended to a system instruction.

    ``extracted_name`` is None when no organization could be identified.
    """

    text: str
    extracted_name: str | None = None
    matches: tuple[DirectoryRecord, ...] = ()

    @property
    def has_matches(self) -> bool:
        return len(self.matches) > 0


@dataclass(frozen=True)
class ResolvedValue:
    """A typed answer and the tier that produced it."""

    value: bool | float | str
    model_used: str
    raw: str
    escalated: bool = False
    match_info: str | None = None


@dataclass(frozen=True)
class PromptEnrichmentResult:
    """Outcome of one record in a batch prompt enrichment."""

    record_id: str
    success: bool
    data: dict[str, Any] = field(default_factory=dict)
    model_used: str | None = None
    raw: str | None = None
    error: str | None = None
