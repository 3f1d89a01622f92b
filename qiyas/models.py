"""Core domain models for Qiyas"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class CriteriaType(Enum):
    """Assessment criteria scoring modes"""
    PERCENTAGE = "percentage"
    MATURITY = "maturity"
    COMPLIANCE = "compliance"


class CapabilityLevel(Enum):
    """Specification capability levels"""
    FOUNDATIONAL = "foundational"
    ADVANCED = "advanced"
    VERY_ADVANCED = "veryAdvanced"


class Dimension(Enum):
    """Control dimensions"""
    PLAN = "plan"
    IMPLEMENT = "implement"
    OPERATE = "operate"


class ProjectStatus(Enum):
    """Project lifecycle status"""
    OPEN = "open"
    CLOSED = "closed"
    ON_HOLDING = "on-holding"


class UserRole(Enum):
    """Roles carried in the identity provider's custom claims"""
    ADMIN = "Admin"
    CONSULTANT = "Consultant"
    CLIENT = "Client"


class UserStatus(Enum):
    """User account status"""
    ACTIVE = "Active"
    INACTIVE = "Inactive"


@dataclass
class LocalizedText:
    """English/Arabic text pair"""
    en: str = ""
    ar: str = ""

    def to_dict(self) -> dict:
        return {"en": self.en, "ar": self.ar}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LocalizedText":
        if not data:
            return cls()
        if isinstance(data, str):
            return cls(en=data)
        return cls(en=data.get("en") or "", ar=data.get("ar") or "")

    def is_complete(self) -> bool:
        """Both languages filled in"""
        return bool(self.en.strip()) and bool(self.ar.strip())


def get_localized_value(obj, locale, fallback_locale="en", default_lang=None):
    """Pick the best string from a {lang: text} mapping.

    Tries the requested locale, then the record's default language, then the
    fallback locale and finally any non-empty value.
    """
    if not obj:
        return ""
    if isinstance(obj, LocalizedText):
        obj = obj.to_dict()
    if obj.get(locale):
        return obj[locale]
    if default_lang and obj.get(default_lang):
        return obj[default_lang]
    if obj.get(fallback_locale):
        return obj[fallback_locale]
    for value in obj.values():
        if value:
            return value
    return ""


def convert_legacy_capability_level(level) -> CapabilityLevel:
    """Map old numeric capability levels (1-5) to the named levels"""
    if isinstance(level, CapabilityLevel):
        return level
    if isinstance(level, str):
        for member in CapabilityLevel:
            if member.value == level:
                return member
    try:
        numeric = int(level)
    except (TypeError, ValueError):
        return CapabilityLevel.FOUNDATIONAL
    if numeric in (2, 3):
        return CapabilityLevel.ADVANCED
    if numeric in (4, 5):
        return CapabilityLevel.VERY_ADVANCED
    return CapabilityLevel.FOUNDATIONAL


@dataclass
class CriteriaLevel:
    """A maturity or compliance level with its percentage value"""
    label: LocalizedText
    description: LocalizedText
    value: float = 0

    def to_dict(self) -> dict:
        return {
            "label": self.label.to_dict(),
            "description": self.description.to_dict(),
            "value": self.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CriteriaLevel":
        return cls(
            label=LocalizedText.from_dict(data.get("label")),
            description=LocalizedText.from_dict(data.get("description")),
            value=data.get("value", 0),
        )

    def is_complete(self) -> bool:
        return self.label.is_complete() and self.description.is_complete()


@dataclass
class DomainWeight:
    """Share of the overall score carried by one domain (0-100)"""
    domain_id: str
    weight: float = 0

    def to_dict(self) -> dict:
        return {"domainId": self.domain_id, "weight": self.weight}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DomainWeight":
        return cls(domain_id=data.get("domainId", ""), weight=data.get("weight", 0))


@dataclass
class AssessmentCriteria:
    """One framework's scoring scheme"""
    framework_id: str
    type: CriteriaType
    domain_weights: List[DomainWeight] = field(default_factory=list)
    levels: List[CriteriaLevel] = field(default_factory=list)
    created_at: Any = None

    def to_dict(self) -> dict:
        data = {
            "frameworkId": self.framework_id,
            "type": self.type.value,
            "domainWeights": [w.to_dict() for w in self.domain_weights],
            "createdAt": self.created_at,
        }
        # Levels only mean something for maturity/compliance criteria
        if self.type != CriteriaType.PERCENTAGE and self.levels:
            data["levels"] = [level.to_dict() for level in self.levels]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssessmentCriteria":
        return cls(
            framework_id=data.get("frameworkId", ""),
            type=CriteriaType(data.get("type", CriteriaType.PERCENTAGE.value)),
            domain_weights=[DomainWeight.from_dict(w) for w in data.get("domainWeights") or []],
            levels=[CriteriaLevel.from_dict(level) for level in data.get("levels") or []],
            created_at=data.get("createdAt"),
        )


@dataclass
class Organization:
    """A client organization"""
    id: str
    name: LocalizedText
    description: LocalizedText = field(default_factory=LocalizedText)
    default_lang: str = "en"
    logo_url: Optional[str] = None
    project_ids: List[str] = field(default_factory=list)
    created_at: Any = None
    updated_at: Any = None

    def to_dict(self) -> dict:
        data = {
            "name": self.name.to_dict(),
            "description": self.description.to_dict(),
            "defaultLang": self.default_lang,
            "projectIds": list(self.project_ids),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.logo_url:
            data["logoUrl"] = self.logo_url
        return data

    @classmethod
    def from_dict(cls, doc_id: str, data: Dict[str, Any]) -> "Organization":
        return cls(
            id=doc_id,
            name=LocalizedText.from_dict(data.get("name")),
            description=LocalizedText.from_dict(data.get("description")),
            default_lang=data.get("defaultLang", "en"),
            logo_url=data.get("logoUrl"),
            project_ids=list(data.get("projectIds") or []),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )


@dataclass
class Project:
    """An assessment engagement for one organization against one framework"""
    id: str
    name: LocalizedText
    description: LocalizedText
    organization_id: str
    framework_id: str
    start_date: str = ""
    project_deadline: str = ""
    status: ProjectStatus = ProjectStatus.OPEN
    default_lang: str = "en"
    created_at: Any = None
    updated_at: Any = None

    def to_dict(self) -> dict:
        return {
            "name": self.name.to_dict(),
            "description": self.description.to_dict(),
            "organizationId": self.organization_id,
            "startDate": self.start_date,
            "projectDeadline": self.project_deadline,
            "status": self.status.value,
            "frameworkId": self.framework_id,
            "defaultLang": self.default_lang,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, doc_id: str, data: Dict[str, Any]) -> "Project":
        return cls(
            id=doc_id,
            name=LocalizedText.from_dict(data.get("name")),
            description=LocalizedText.from_dict(data.get("description")),
            organization_id=data.get("organizationId", ""),
            framework_id=data.get("frameworkId", ""),
            start_date=data.get("startDate", ""),
            project_deadline=data.get("projectDeadline", ""),
            status=ProjectStatus(data.get("status") or ProjectStatus.OPEN.value),
            default_lang=data.get("defaultLang", "en"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )


@dataclass
class Framework:
    """Top-level compliance scheme"""
    id: str
    name: str
    description: LocalizedText
    default_lang: str = "en"
    created_at: Any = None
    updated_at: Any = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description.to_dict(),
            "defaultLang": self.default_lang,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, doc_id: str, data: Dict[str, Any]) -> "Framework":
        return cls(
            id=doc_id,
            name=data.get("name", ""),
            description=LocalizedText.from_dict(data.get("description")),
            default_lang=data.get("defaultLang", "en"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )


@dataclass
class Domain:
    """Subdivision of a framework"""
    domain_id: str
    name: LocalizedText
    description: LocalizedText = field(default_factory=LocalizedText)
    domain_field: LocalizedText = field(default_factory=LocalizedText)
    default_lang: str = "en"

    def to_dict(self) -> dict:
        return {
            "domainId": self.domain_id,
            "name": self.name.to_dict(),
            "description": self.description.to_dict(),
            "domainField": self.domain_field.to_dict(),
            "defaultLang": self.default_lang,
        }

    @classmethod
    def from_dict(cls, doc_id: str, data: Dict[str, Any]) -> "Domain":
        return cls(
            domain_id=doc_id,
            name=LocalizedText.from_dict(data.get("name")),
            description=LocalizedText.from_dict(data.get("description")),
            domain_field=LocalizedText.from_dict(data.get("domainField")),
            default_lang=data.get("defaultLang", "en"),
        )


@dataclass
class Control:
    """Subdivision of a domain"""
    control_id: str
    name: LocalizedText
    description: LocalizedText
    dimension: Dimension

    def to_dict(self) -> dict:
        return {
            "controlId": self.control_id,
            "name": self.name.to_dict(),
            "description": self.description.to_dict(),
            "dimension": self.dimension.value,
        }

    @classmethod
    def from_dict(cls, doc_id: str, data: Dict[str, Any]) -> "Control":
        return cls(
            control_id=doc_id,
            name=LocalizedText.from_dict(data.get("name")),
            description=LocalizedText.from_dict(data.get("description")),
            dimension=Dimension((data.get("dimension") or "plan").lower()),
        )


@dataclass
class SubSpecification:
    name: LocalizedText
    description: LocalizedText = field(default_factory=LocalizedText)

    def to_dict(self) -> dict:
        return {"name": self.name.to_dict(), "description": self.description.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubSpecification":
        return cls(
            name=LocalizedText.from_dict(data.get("name")),
            description=LocalizedText.from_dict(data.get("description")),
        )


@dataclass
class VersionEntry:
    version: str
    date: str
    note: LocalizedText = field(default_factory=LocalizedText)

    def to_dict(self) -> dict:
        return {"version": self.version, "date": self.date, "note": self.note.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VersionEntry":
        return cls(
            version=data.get("version", ""),
            date=str(data.get("date", "")),
            note=LocalizedText.from_dict(data.get("note")),
        )


@dataclass
class Specification:
    """Leaf requirement under a control"""
    number: str
    name: LocalizedText
    description: LocalizedText = field(default_factory=LocalizedText)
    dependency: LocalizedText = field(default_factory=LocalizedText)
    capability_level: CapabilityLevel = CapabilityLevel.FOUNDATIONAL
    sub_specifications: List[SubSpecification] = field(default_factory=list)
    version_history: List[VersionEntry] = field(default_factory=list)
    created_at: Any = None
    updated_at: Any = None

    @property
    def id(self) -> str:
        # Specifications are keyed by their number
        return self.number

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "name": self.name.to_dict(),
            "description": self.description.to_dict(),
            "dependency": self.dependency.to_dict(),
            "capabilityLevel": self.capability_level.value,
            "subSpecifications": [s.to_dict() for s in self.sub_specifications],
            "versionHistory": [v.to_dict() for v in self.version_history],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, doc_id: str, data: Dict[str, Any]) -> "Specification":
        return cls(
            number=data.get("number") or doc_id,
            name=LocalizedText.from_dict(data.get("name")),
            description=LocalizedText.from_dict(data.get("description")),
            dependency=LocalizedText.from_dict(data.get("dependency")),
            capability_level=convert_legacy_capability_level(data.get("capabilityLevel")),
            sub_specifications=[SubSpecification.from_dict(s) for s in data.get("subSpecifications") or []],
            version_history=[VersionEntry.from_dict(v) for v in data.get("versionHistory") or []],
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )


@dataclass
class User:
    """Application user mirrored from the identity provider"""
    id: str
    name: str
    email: str
    role: UserRole = UserRole.CLIENT
    status: UserStatus = UserStatus.ACTIVE
    organization_id: str = ""
    assigned_project_ids: List[str] = field(default_factory=list)
    locale: Optional[str] = None
    created_at: Any = None
    last_login: Any = None

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "status": self.status.value,
            "organizationId": self.organization_id,
            "assignedProjectIds": list(self.assigned_project_ids),
            "locale": self.locale,
            "createdAt": self.created_at,
            "lastLogin": self.last_login,
        }

    @classmethod
    def from_dict(cls, doc_id: str, data: Dict[str, Any]) -> "User":
        return cls(
            id=doc_id,
            name=data.get("name", ""),
            email=data.get("email", ""),
            role=UserRole(data.get("role") or UserRole.CLIENT.value),
            status=UserStatus(data.get("status") or UserStatus.ACTIVE.value),
            organization_id=data.get("organizationId", ""),
            assigned_project_ids=list(data.get("assignedProjectIds") or []),
            locale=data.get("locale"),
            created_at=data.get("createdAt"),
            last_login=data.get("lastLogin"),
        )
