# policy_core/models.py
"""
Data models for the policy question-answering pipeline.

Design Decisions:
- Pydantic BaseModel for runtime validation and JSON serialization
- Python attributes are snake_case, the wire format is camelCase (billId, issuedOn)
- Models accept either spelling on input so upstream-shaped dicts validate directly
- BillLocator and PolicyDNAResult are frozen once built
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from policy_core.exceptions import InvalidBillIdError


class PolicyModel(BaseModel):
    """Base model with camelCase aliases for JSON output."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class BillLocator(PolicyModel):
    """
    (congress, bill type, bill number) triple identifying one bill.

    Serialized as "<congress>-<billType>-<billNumber>", e.g. "118-hr-1234".
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    congress: int = Field(..., gt=0)
    bill_type: str = Field(..., min_length=1)
    bill_number: str = Field(..., min_length=1)

    @classmethod
    def parse(cls, bill_id: str) -> "BillLocator":
        if not isinstance(bill_id, str):
            raise InvalidBillIdError(f"Invalid bill id: {bill_id!r}")
        parts = [part.strip() for part in bill_id.split("-")]
        if len(parts) < 3 or not all(parts[:3]):
            raise InvalidBillIdError(
                f"Invalid bill id '{bill_id}'. Expected <congress>-<billType>-<billNumber>"
            )
        congress, bill_type, bill_number = parts[0], parts[1], "-".join(parts[2:])
        if not congress.isdigit() or int(congress) <= 0:
            raise InvalidBillIdError(f"Invalid congress in bill id '{bill_id}'")
        return cls(congress=int(congress), bill_type=bill_type.lower(), bill_number=bill_number)

    @property
    def bill_id(self) -> str:
        return f"{self.congress}-{self.bill_type}-{self.bill_number}"

    @property
    def alias(self) -> str:
        """Display form, e.g. "HR 1234"."""
        return f"{self.bill_type.upper()} {self.bill_number}"


class DateRange(PolicyModel):
    date_from: Optional[str] = Field(None, alias="from")
    date_to: Optional[str] = Field(None, alias="to")


class PolicyFilters(PolicyModel):
    jurisdiction: Optional[str] = None
    congress: Optional[int] = None
    state: Optional[str] = None
    date_range: Optional[DateRange] = None
    bill_id: Optional[str] = None
    keywords: Optional[List[str]] = None


class PolicySectionHit(PolicyModel):
    id: str
    heading: Optional[str] = None
    snippet: str = ""
    score: float = Field(0.0, ge=0.0, le=0.99)
    source_uri: Optional[str] = None


class PolicySponsor(PolicyModel):
    name: str
    party: Optional[str] = None
    state: Optional[str] = None
    bioguide_id: Optional[str] = None


class PolicySearchHit(PolicyModel):
    """
    One ranked bill returned by policy search.

    relevance is the internal 0-0.99 score used for sorting; it never leaves
    the process. confidence is the user-facing 0-99 integer.
    """
    bill_id: str
    congress: int
    bill_type: str
    bill_number: str
    title: str
    status: str = "Unknown"
    latest_action: Optional[str] = None
    summary: Optional[str] = None
    jurisdiction: str = "federal"
    sections: List[PolicySectionHit] = Field(default_factory=list)
    confidence: int = Field(0, ge=0, le=99)
    sponsor: Optional[PolicySponsor] = None
    relevance: float = Field(0.0, exclude=True)


class ChangeSummary(PolicyModel):
    added: int = Field(0, ge=0)
    removed: int = Field(0, ge=0)
    modified: int = Field(0, ge=0)


class PolicyTimelineEntry(PolicyModel):
    version_id: str
    label: str
    issued_on: Optional[str] = None
    change_summary: Optional[ChangeSummary] = None
    source_uri: Optional[str] = None


class PolicyBlameEntry(PolicyModel):
    section_id: str
    heading: Optional[str] = None
    author: Optional[str] = None
    action_type: Optional[str] = None
    action_date: Optional[str] = None
    summary: Optional[str] = None
    source_uri: Optional[str] = None


class PolicyActionEvent(PolicyModel):
    type: str
    date: Optional[str] = None
    actor: Optional[str] = None
    description: Optional[str] = None
    link: Optional[str] = None


class PolicyMetadata(PolicyModel):
    title: Optional[str] = None
    summary: Optional[str] = None
    sponsor: Optional[PolicySponsor] = None
    congress: Optional[int] = None
    bill_type: Optional[str] = None
    bill_number: Optional[str] = None
    introduced_date: Optional[str] = None


class PolicyDNAResult(PolicyModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    bill_id: str
    timeline: List[PolicyTimelineEntry] = Field(default_factory=list)
    blame: List[PolicyBlameEntry] = Field(default_factory=list)
    actions: List[PolicyActionEvent] = Field(default_factory=list)
    metadata: PolicyMetadata = Field(default_factory=PolicyMetadata)


class LobbyingRecord(PolicyModel):
    id: str
    client: str
    registrant: str
    amount: Optional[float] = None
    issue: Optional[str] = None
    period: Optional[str] = None
    source_url: Optional[str] = None


class FinanceRecord(PolicyModel):
    candidate_id: str
    committee_name: str
    total_receipts: Optional[float] = None
    cycle: Optional[int] = None
    source_url: Optional[str] = None


class InfluenceMetadata(PolicyModel):
    notes: List[str] = Field(default_factory=list)
    links: Dict[str, str] = Field(default_factory=dict)
    search_terms: List[str] = Field(default_factory=list)


class InfluenceResult(PolicyModel):
    lobbying: List[LobbyingRecord] = Field(default_factory=list)
    finance: List[FinanceRecord] = Field(default_factory=list)
    metadata: InfluenceMetadata = Field(default_factory=InfluenceMetadata)


class Citation(PolicyModel):
    label: str
    url: str


class GroundedAnswer(PolicyModel):
    answer: str
    citations: List[Citation] = Field(default_factory=list)
    disclaimers: Optional[List[str]] = None


class GuardrailFinding(PolicyModel):
    ok: bool
    warnings: List[str] = Field(default_factory=list)


class OrchestratorState(PolicyModel):
    """Mutable per-request state. Stages append to logs; other fields are overwritten."""
    query: str
    normalized_query: str = ""
    filters: Optional[PolicyFilters] = None
    policies: List[PolicySearchHit] = Field(default_factory=list)
    dna: Optional[PolicyDNAResult] = None
    influence: Optional[InfluenceResult] = None
    answer: Optional[GroundedAnswer] = None
    guardrail_result: Optional[GuardrailFinding] = None
    logs: List[str] = Field(default_factory=list)


class OrchestratorResult(PolicyModel):
    query: str
    filters: Optional[PolicyFilters] = None
    policies: List[PolicySearchHit] = Field(default_factory=list)
    dna: Optional[PolicyDNAResult] = None
    influence: Optional[InfluenceResult] = None
    answer: GroundedAnswer
    guardrail: GuardrailFinding
    logs: List[str] = Field(default_factory=list)


class PolicyDetailResponse(PolicyModel):
    bill_id: str
    dna: PolicyDNAResult
    influence: InfluenceResult
