"""Assessment criteria wizard - step flow, validation and form state"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .models import AssessmentCriteria, CriteriaLevel, CriteriaType, Domain, DomainWeight, LocalizedText
from .translations import get_text

logger = logging.getLogger(__name__)


class WizardStep(Enum):
    """Wizard positions, in order"""
    TYPE = "type"
    LEVELS = "levels"
    DOMAINS = "domains"
    PREVIEW = "preview"


WIZARD_STEPS = [WizardStep.TYPE, WizardStep.LEVELS, WizardStep.DOMAINS, WizardStep.PREVIEW]


@dataclass
class ValidationErrors:
    """Inline messages keyed by the part of the wizard they belong to"""
    levels: Optional[str] = None
    domains: Optional[str] = None
    general: Optional[str] = None

    def has_errors(self) -> bool:
        return bool(self.levels or self.domains or self.general)

    def to_dict(self) -> dict:
        return {key: value for key, value in
                (("levels", self.levels), ("domains", self.domains), ("general", self.general)) if value}


@dataclass
class CriteriaFormState:
    """Editable copy of an AssessmentCriteria while the wizard is open"""
    type: CriteriaType = CriteriaType.PERCENTAGE
    levels: List[CriteriaLevel] = field(default_factory=list)
    domain_weights: List[DomainWeight] = field(default_factory=list)

    @classmethod
    def from_criteria(cls, criteria: AssessmentCriteria) -> "CriteriaFormState":
        return cls(
            type=criteria.type,
            levels=list(criteria.levels),
            domain_weights=list(criteria.domain_weights),
        )

    def to_criteria(self, framework_id: str) -> AssessmentCriteria:
        return AssessmentCriteria(
            framework_id=framework_id,
            type=self.type,
            domain_weights=list(self.domain_weights),
            levels=list(self.levels) if self.type != CriteriaType.PERCENTAGE else [],
        )

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "levels": [level.to_dict() for level in self.levels],
            "domainWeights": [w.to_dict() for w in self.domain_weights],
        }


def total_weight(domain_weights: List[DomainWeight]) -> float:
    return sum(w.weight for w in domain_weights)


def rounded_total(domain_weights: List[DomainWeight]) -> int:
    """Total weight rounded half up to a whole percentage."""
    return math.floor(total_weight(domain_weights) + 0.5)


def weights_sum_to_100(domain_weights: List[DomainWeight]) -> bool:
    """Rounded total must be exactly 100; slider drift below 0.5 is tolerated."""
    return rounded_total(domain_weights) == 100


def distribute_evenly(domain_ids: List[str]) -> List[DomainWeight]:
    """Equal integer weights; the first domain absorbs the remainder."""
    if not domain_ids:
        return []
    equal_weight = math.floor(100 / len(domain_ids))
    remaining_weight = 100 - equal_weight * len(domain_ids)
    return [
        DomainWeight(domain_id=domain_id, weight=equal_weight + remaining_weight if index == 0 else equal_weight)
        for index, domain_id in enumerate(domain_ids)
    ]


def insert_level(levels: List[CriteriaLevel], level: CriteriaLevel,
                 criteria_type: CriteriaType) -> List[CriteriaLevel]:
    updated = list(levels) + [level]
    if criteria_type == CriteriaType.MATURITY:
        updated.sort(key=lambda item: item.value)
    return updated


def swap_levels(levels: List[CriteriaLevel], index: int, other: int) -> List[CriteriaLevel]:
    """Swap two entries; out-of-range positions leave the list unchanged."""
    if not (0 <= index < len(levels) and 0 <= other < len(levels)):
        return list(levels)
    updated = list(levels)
    updated[index], updated[other] = updated[other], updated[index]
    return updated


def level_error_key(criteria_type: CriteriaType, levels: List[CriteriaLevel]) -> Optional[str]:
    """Name of the translation key describing what is wrong with the levels."""
    if criteria_type == CriteriaType.PERCENTAGE:
        return None
    if not levels:
        return "noLevels"
    values = [level.value for level in levels]
    if any(value < 0 or value > 100 for value in values):
        return "levelRange"
    if criteria_type == CriteriaType.MATURITY:
        if any(values[i] <= values[i - 1] for i in range(1, len(values))):
            return "levelOrder"
    return None


class CriteriaBuilder:
    """Drives the four-step criteria wizard for one framework.

    The builder owns the form state while the wizard is open. Persistence
    goes through ``store``, which must provide ``get_assessment_criteria``,
    ``save_criteria``, ``delete_criteria`` and ``get_framework_domains``.
    """

    def __init__(self, framework_id: str, store, lang: str = "en"):
        self.framework_id = framework_id
        self.store = store
        self.lang = lang
        self.form_state = CriteriaFormState()
        self.current_step = WizardStep.TYPE
        self.errors = ValidationErrors()
        self.is_open = False
        self.is_loading = False
        self.is_saving = False
        self.is_delete_modal_open = False
        self.has_criteria = False
        self.criteria: Optional[AssessmentCriteria] = None
        self.domains: List[Domain] = []

    def _message(self, key: str, **kwargs) -> str:
        text = get_text(self.lang)["errors"][key]
        return text.format(**kwargs) if kwargs else text

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self):
        """Fetch the framework's criteria and domains into the builder.

        Fetch failures are logged and degrade to no criteria / no domains.
        """
        self.is_loading = True
        try:
            try:
                self.criteria = self.store.get_assessment_criteria(self.framework_id)
            except Exception:
                logger.exception("Error fetching criteria for framework %s", self.framework_id)
                self.criteria = None
            try:
                self.domains = list(self.store.get_framework_domains(self.framework_id))
            except Exception:
                logger.exception("Error fetching domains for framework %s", self.framework_id)
                self.domains = []

            if not self.form_state.domain_weights and self.domains:
                self.form_state.domain_weights = distribute_evenly([d.domain_id for d in self.domains])

            if self.criteria is not None:
                self.form_state = CriteriaFormState.from_criteria(self.criteria)
                self.has_criteria = True
            else:
                self.has_criteria = False
        finally:
            self.is_loading = False

    def open_wizard(self):
        """Start a create/edit session at the first step."""
        self.form_state = CriteriaFormState()
        self.current_step = WizardStep.TYPE
        self.errors = ValidationErrors()
        self.is_open = True
        self.load()

    def close_wizard(self):
        """Leave the wizard and drop unsaved edits."""
        self.is_open = False
        self.current_step = WizardStep.TYPE
        self.errors = ValidationErrors()
        if self.criteria is not None:
            self.form_state = CriteriaFormState.from_criteria(self.criteria)
        else:
            self.form_state = CriteriaFormState()

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _levels_message(self) -> Optional[str]:
        key = level_error_key(self.form_state.type, self.form_state.levels)
        return self._message(key) if key else None

    def _weights_message(self) -> Optional[str]:
        if weights_sum_to_100(self.form_state.domain_weights):
            return None
        return self._message("weightSum", sum=rounded_total(self.form_state.domain_weights))

    def go_to_next_step(self) -> bool:
        """Advance one step if the current step allows it.

        Returns True when the wizard moved forward, or, on the preview step,
        when the criteria is ready to be saved.
        """
        if self.is_loading or self.is_saving:
            return False
        errors = ValidationErrors()

        if self.current_step == WizardStep.TYPE:
            self.current_step = WizardStep.LEVELS
        elif self.current_step == WizardStep.LEVELS:
            errors.levels = self._levels_message()
            if errors.levels:
                self.errors = errors
                return False
            self.current_step = WizardStep.DOMAINS
        elif self.current_step == WizardStep.DOMAINS:
            # Preview is always reachable; save stays disabled until weights add up
            errors.domains = self._weights_message()
            self.current_step = WizardStep.PREVIEW
        else:
            errors.domains = self._weights_message()
            errors.levels = self._levels_message()
            self.errors = errors
            return not errors.has_errors()

        self.errors = errors
        return True

    def go_to_prev_step(self):
        index = WIZARD_STEPS.index(self.current_step)
        if index == 0:
            return
        self.current_step = WIZARD_STEPS[index - 1]
        self.errors = ValidationErrors()

    # ------------------------------------------------------------------
    # Form edits
    # ------------------------------------------------------------------

    def update_form(self, type=None, levels=None, domain_weights=None):
        """Merge a partial update into the form state."""
        if type is not None:
            self.form_state.type = CriteriaType(type)
        if levels is not None:
            self.form_state.levels = list(levels)
        if domain_weights is not None:
            self.form_state.domain_weights = list(domain_weights)

    def add_level(self, level: CriteriaLevel) -> bool:
        """Append a level; maturity levels are kept sorted by value."""
        if not level.is_complete():
            self.errors = ValidationErrors(levels=self._message("levelIncomplete"))
            return False
        self.form_state.levels = insert_level(self.form_state.levels, level, self.form_state.type)
        self.errors = ValidationErrors()
        return True

    def remove_level(self, index: int):
        if 0 <= index < len(self.form_state.levels):
            levels = list(self.form_state.levels)
            del levels[index]
            self.form_state.levels = levels

    def move_level_up(self, index: int):
        if index > 0:
            self.form_state.levels = swap_levels(self.form_state.levels, index, index - 1)

    def move_level_down(self, index: int):
        if index < len(self.form_state.levels) - 1:
            self.form_state.levels = swap_levels(self.form_state.levels, index, index + 1)

    def update_level(self, index: int, label: Optional[Dict[str, str]] = None,
                     description: Optional[Dict[str, str]] = None, value=None):
        """Edit one level in place; language keys not given are left alone."""
        if not 0 <= index < len(self.form_state.levels):
            return
        current = self.form_state.levels[index]
        updated = CriteriaLevel(
            label=LocalizedText(en=(label or {}).get("en", current.label.en),
                                ar=(label or {}).get("ar", current.label.ar)),
            description=LocalizedText(en=(description or {}).get("en", current.description.en),
                                      ar=(description or {}).get("ar", current.description.ar)),
            value=current.value if value is None else value,
        )
        levels = list(self.form_state.levels)
        levels[index] = updated
        if value is not None and self.form_state.type == CriteriaType.MATURITY:
            levels.sort(key=lambda item: item.value)
        self.form_state.levels = levels

    def set_domain_weight(self, domain_id: str, weight):
        """Set one domain's weight, clamped to 0-100."""
        weight = min(100, max(0, weight))
        weights = list(self.form_state.domain_weights)
        for index, entry in enumerate(weights):
            if entry.domain_id == domain_id:
                weights[index] = DomainWeight(domain_id=domain_id, weight=weight)
                break
        else:
            weights.append(DomainWeight(domain_id=domain_id, weight=weight))
        self.form_state.domain_weights = weights

    def distribute_weights_evenly(self):
        self.form_state.domain_weights = distribute_evenly([d.domain_id for d in self.domains])

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def weight_total(self) -> float:
        return total_weight(self.form_state.domain_weights)

    @property
    def can_save(self) -> bool:
        return (not self.is_saving
                and weights_sum_to_100(self.form_state.domain_weights)
                and level_error_key(self.form_state.type, self.form_state.levels) is None)

    @property
    def missing_domain_ids(self) -> List[str]:
        """Framework domains that have no weight entry at all."""
        weighted = {w.domain_id for w in self.form_state.domain_weights}
        return [d.domain_id for d in self.domains if d.domain_id not in weighted]

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save_criteria(self, state: Optional[CriteriaFormState] = None) -> bool:
        """Persist the form; on failure the wizard stays open at its step."""
        if state is not None:
            self.form_state = state

        errors = ValidationErrors(levels=self._levels_message())
        weights_message = self._weights_message()
        if weights_message:
            errors.domains = weights_message
            errors.general = weights_message
        if errors.has_errors():
            self.errors = errors
            return False

        criteria = self.form_state.to_criteria(self.framework_id)
        self.is_saving = True
        try:
            saved = self.store.save_criteria(self.framework_id, criteria)
        except Exception:
            logger.exception("Error saving criteria for framework %s", self.framework_id)
            saved = False
        finally:
            self.is_saving = False

        if not saved:
            self.errors = ValidationErrors(general=self._message("saveFailed"))
            return False

        self.criteria = criteria
        self.has_criteria = True
        self.errors = ValidationErrors()
        self.is_open = False
        return True

    def delete_criteria(self) -> bool:
        self.is_saving = True
        try:
            deleted = self.store.delete_criteria(self.framework_id)
        except Exception:
            logger.exception("Error deleting criteria for framework %s", self.framework_id)
            deleted = False
        finally:
            self.is_saving = False

        if not deleted:
            self.errors = ValidationErrors(general=self._message("deleteFailed"))
            return False

        self.criteria = None
        self.has_criteria = False
        self.is_delete_modal_open = False
        self.form_state = CriteriaFormState()
        return True

    def set_is_delete_modal_open(self, value: bool):
        self.is_delete_modal_open = bool(value)

    def snapshot(self) -> dict:
        """JSON-ready view of the wizard for the page layer."""
        return {
            "frameworkId": self.framework_id,
            "isOpen": self.is_open,
            "currentStep": self.current_step.value,
            "formState": self.form_state.to_dict(),
            "errors": self.errors.to_dict(),
            "isLoading": self.is_loading,
            "isSaving": self.is_saving,
            "hasCriteria": self.has_criteria,
            "isDeleteModalOpen": self.is_delete_modal_open,
            "canSave": self.can_save,
            "weightTotal": self.weight_total,
            "missingDomainIds": self.missing_domain_ids,
            "domains": [d.to_dict() for d in self.domains],
        }
