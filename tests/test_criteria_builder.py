"""Test suite for the assessment criteria wizard"""

import pytest

from qiyas.criteria_builder import (
    CriteriaBuilder, CriteriaFormState, WizardStep, distribute_evenly, insert_level, level_error_key,
    weights_sum_to_100,
)
from qiyas.criteria_service import InMemoryCriteriaStore
from qiyas.models import (
    AssessmentCriteria, CriteriaLevel, CriteriaType, Domain, DomainWeight, LocalizedText,
)
from qiyas.translations import get_text


def make_level(name, value):
    return CriteriaLevel(
        label=LocalizedText(en=name, ar=f"{name}-ar"),
        description=LocalizedText(en=f"{name} description", ar=f"{name} وصف"),
        value=value,
    )


def make_store(*domain_ids):
    store = InMemoryCriteriaStore()
    for domain_id in domain_ids:
        store.add_domain("fw1", Domain(domain_id=domain_id, name=LocalizedText(en=domain_id)))
    return store


def open_builder(*domain_ids, lang="en"):
    builder = CriteriaBuilder("fw1", make_store(*domain_ids), lang=lang)
    builder.open_wizard()
    return builder


class FailingStore(InMemoryCriteriaStore):
    def get_assessment_criteria(self, framework_id):
        raise RuntimeError("firestore unavailable")

    def get_framework_domains(self, framework_id):
        raise RuntimeError("firestore unavailable")

    def save_criteria(self, framework_id, criteria):
        raise RuntimeError("firestore unavailable")


@pytest.mark.parametrize("count", range(1, 13))
def test_distribute_evenly_sums_to_100(count):
    """Test even distribution always totals exactly 100"""
    weights = distribute_evenly([f"D{i}" for i in range(count)])
    assert len(weights) == count
    assert sum(w.weight for w in weights) == 100


def test_distribute_evenly_gives_remainder_to_first():
    """Test the first domain absorbs the remainder"""
    weights = distribute_evenly(["A", "B", "C"])
    assert [w.weight for w in weights] == [34, 33, 33]
    assert distribute_evenly([]) == []


def test_maturity_levels_stay_sorted_on_insert():
    """Test maturity levels are ordered by value whatever the insertion order"""
    levels = []
    for value in [70, 10, 100, 40, 0]:
        levels = insert_level(levels, make_level(str(value), value), CriteriaType.MATURITY)
        values = [level.value for level in levels]
        assert values == sorted(values)


def test_compliance_levels_keep_insertion_order():
    """Test compliance levels are appended as entered"""
    levels = []
    for value in [100, 0, 50]:
        levels = insert_level(levels, make_level(str(value), value), CriteriaType.COMPLIANCE)
    assert [level.value for level in levels] == [100, 0, 50]


def test_can_save_requires_rounded_sum_of_100():
    """Test save is blocked at 99 and enabled at 100"""
    builder = open_builder("A", "B", "C")
    builder.update_form(domain_weights=[DomainWeight("A", 30), DomainWeight("B", 30), DomainWeight("C", 39)])
    assert not builder.can_save

    builder.update_form(domain_weights=[DomainWeight("A", 30), DomainWeight("B", 30), DomainWeight("C", 40)])
    assert builder.can_save


def test_can_save_tolerates_fractional_drift():
    """Test weights that round to 100 can be saved"""
    builder = open_builder("A", "B", "C")
    builder.update_form(domain_weights=[DomainWeight("A", 33.3), DomainWeight("B", 33.3), DomainWeight("C", 33.3)])
    assert builder.can_save


@pytest.mark.parametrize("weights, expected", [
    ([50.25, 50.25], False),
    ([49.75, 49.75], True),
    ([100.49], True),
])
def test_weight_total_rounds_half_up(weights, expected):
    """Test a total of 100.5 reads as 101 and 99.5 as 100"""
    domain_weights = [DomainWeight(f"D{i}", w) for i, w in enumerate(weights)]
    assert weights_sum_to_100(domain_weights) is expected


def test_weight_sum_message_shows_rounded_total():
    """Test the domains error reports the whole percentage"""
    builder = open_builder("A", "B")
    builder.go_to_next_step()
    builder.go_to_next_step()
    builder.update_form(domain_weights=[DomainWeight("A", 50.25), DomainWeight("B", 50.25)])
    builder.go_to_next_step()
    assert builder.errors.domains == get_text("en")["errors"]["weightSum"].format(sum=101)
    assert not builder.can_save


def test_next_from_levels_requires_a_maturity_level():
    """Test the levels step blocks an empty maturity scale"""
    builder = open_builder("A")
    builder.update_form(type="maturity")
    assert builder.go_to_next_step()
    assert builder.current_step == WizardStep.LEVELS

    assert builder.go_to_next_step() is False
    assert builder.errors.levels == get_text("en")["errors"]["noLevels"]
    assert builder.current_step == WizardStep.LEVELS

    assert builder.add_level(make_level("Initial", 0))
    assert builder.go_to_next_step() is True
    assert builder.current_step == WizardStep.DOMAINS
    assert builder.errors.levels is None


def test_percentage_passes_levels_step_without_levels():
    """Test percentage criteria needs no levels"""
    builder = open_builder("A")
    builder.go_to_next_step()
    assert builder.go_to_next_step()
    assert builder.current_step == WizardStep.DOMAINS


def test_level_values_must_be_in_range():
    """Test values outside 0-100 are rejected before order is checked"""
    assert level_error_key(CriteriaType.MATURITY, [make_level("a", 50), make_level("b", 120)]) == "levelRange"
    assert level_error_key(CriteriaType.COMPLIANCE, [make_level("a", -1)]) == "levelRange"


def test_only_maturity_levels_must_ascend():
    """Test strictly ascending values apply to maturity only"""
    levels = [make_level("a", 50), make_level("b", 50)]
    assert level_error_key(CriteriaType.MATURITY, levels) == "levelOrder"
    assert level_error_key(CriteriaType.COMPLIANCE, levels) is None
    assert level_error_key(CriteriaType.PERCENTAGE, []) is None


def test_domains_step_always_reaches_preview():
    """Test a bad weight total is reported but does not block preview"""
    builder = open_builder("A", "B")
    builder.go_to_next_step()
    builder.go_to_next_step()
    builder.set_domain_weight("A", 10)

    assert builder.go_to_next_step()
    assert builder.current_step == WizardStep.PREVIEW
    assert "60" in builder.errors.domains
    assert builder.go_to_next_step() is False
    assert builder.current_step == WizardStep.PREVIEW


def test_prev_from_first_step_is_noop():
    """Test going back from the type step changes nothing"""
    builder = open_builder("A")
    builder.go_to_prev_step()
    assert builder.current_step == WizardStep.TYPE


def test_prev_clears_errors():
    """Test going back drops step errors"""
    builder = open_builder("A")
    builder.update_form(type="compliance")
    builder.go_to_next_step()
    builder.go_to_next_step()
    assert builder.errors.levels
    builder.go_to_prev_step()
    assert builder.current_step == WizardStep.TYPE
    assert not builder.errors.has_errors()


def test_saved_criteria_round_trip():
    """Test loading then saving unchanged reproduces the criteria"""
    store = make_store("A", "B")
    original = AssessmentCriteria(
        framework_id="fw1",
        type=CriteriaType.MATURITY,
        domain_weights=[DomainWeight("A", 70), DomainWeight("B", 30)],
        levels=[make_level("Initial", 0), make_level("Managed", 60)],
    )
    store.save_criteria("fw1", original)

    builder = CriteriaBuilder("fw1", store)
    builder.load()
    assert builder.has_criteria
    assert builder.save_criteria()

    saved = store.get_assessment_criteria("fw1")
    assert saved.type == original.type
    assert {(w.domain_id, w.weight) for w in saved.domain_weights} == {("A", 70), ("B", 30)}
    assert [level.to_dict() for level in saved.levels] == [level.to_dict() for level in original.levels]


def test_form_state_drops_levels_for_percentage():
    """Test switching to percentage discards levels on save"""
    state = CriteriaFormState(type=CriteriaType.PERCENTAGE, levels=[make_level("a", 10)],
                              domain_weights=[DomainWeight("A", 100)])
    assert state.to_criteria("fw1").levels == []


def test_open_wizard_prefills_even_weights():
    """Test a new criteria starts with evenly distributed weights"""
    builder = open_builder("A", "B", "C")
    assert builder.is_open
    assert [w.weight for w in builder.form_state.domain_weights] == [34, 33, 33]
    assert builder.missing_domain_ids == []


def test_add_level_rejects_incomplete_translation():
    """Test a level needs label and description in both languages"""
    builder = open_builder("A")
    builder.update_form(type="maturity")
    level = CriteriaLevel(label=LocalizedText(en="Initial"), description=LocalizedText(en="x", ar="س"), value=0)
    assert builder.add_level(level) is False
    assert builder.errors.levels == get_text("en")["errors"]["levelIncomplete"]
    assert builder.form_state.levels == []


def test_compliance_levels_move_up_and_down():
    """Test reordering compliance levels by swapping neighbours"""
    builder = open_builder("A")
    builder.update_form(type="compliance")
    for name, value in [("Full", 100), ("Partial", 50), ("None", 0)]:
        builder.add_level(make_level(name, value))

    builder.move_level_up(2)
    assert [level.label.en for level in builder.form_state.levels] == ["Full", "None", "Partial"]
    builder.move_level_down(0)
    assert [level.label.en for level in builder.form_state.levels] == ["None", "Full", "Partial"]
    builder.move_level_up(0)
    builder.move_level_down(2)
    assert [level.label.en for level in builder.form_state.levels] == ["None", "Full", "Partial"]


def test_maturity_value_edit_resorts():
    """Test editing a maturity value keeps the scale ordered"""
    builder = open_builder("A")
    builder.update_form(type="maturity")
    builder.add_level(make_level("Low", 10))
    builder.add_level(make_level("High", 90))
    builder.update_level(0, value=95)
    assert [level.label.en for level in builder.form_state.levels] == ["High", "Low"]
    builder.update_level(0, label={"ar": "عالي"})
    assert builder.form_state.levels[0].label.en == "High"
    assert builder.form_state.levels[0].label.ar == "عالي"


def test_remove_level():
    """Test removing a level by position"""
    builder = open_builder("A")
    builder.update_form(type="compliance")
    builder.add_level(make_level("Yes", 100))
    builder.remove_level(5)
    builder.remove_level(0)
    assert builder.form_state.levels == []


def test_set_domain_weight_clamps_and_appends():
    """Test weights are clamped to 0-100 and missing domains are added"""
    builder = open_builder("A")
    builder.set_domain_weight("A", 150)
    builder.set_domain_weight("Z", -5)
    weights = {w.domain_id: w.weight for w in builder.form_state.domain_weights}
    assert weights == {"A": 100, "Z": 0}


def test_missing_domain_ids_are_reported():
    """Test domains without a weight entry are listed"""
    builder = open_builder("A", "B")
    builder.update_form(domain_weights=[DomainWeight("A", 100)])
    assert builder.missing_domain_ids == ["B"]
    assert builder.can_save


def test_save_failure_keeps_wizard_open():
    """Test a store error is reported and the wizard stays put"""
    store = FailingStore()
    builder = CriteriaBuilder("fw1", store)
    builder.open_wizard()
    builder.update_form(domain_weights=[DomainWeight("A", 100)])

    assert builder.save_criteria() is False
    assert builder.is_open
    assert not builder.has_criteria
    assert not builder.is_saving
    assert builder.errors.general == get_text("en")["errors"]["saveFailed"]


def test_save_validates_before_persisting():
    """Test invalid weights never reach the store"""
    builder = open_builder("A", "B")
    builder.update_form(domain_weights=[DomainWeight("A", 20), DomainWeight("B", 20)])
    assert builder.save_criteria() is False
    assert builder.errors.general
    assert builder.store.get_assessment_criteria("fw1") is None


def test_successful_save_closes_wizard():
    """Test saving closes the wizard and marks criteria present"""
    builder = open_builder("A", "B")
    assert builder.save_criteria()
    assert not builder.is_open
    assert builder.has_criteria
    assert builder.store.get_assessment_criteria("fw1").created_at is not None


def test_fetch_errors_degrade_to_empty():
    """Test failed reads leave no criteria and no domains"""
    builder = CriteriaBuilder("fw1", FailingStore())
    builder.load()
    assert builder.criteria is None
    assert builder.domains == []
    assert not builder.has_criteria
    assert not builder.is_loading


def test_close_wizard_discards_edits():
    """Test closing restores the saved criteria"""
    builder = open_builder("A", "B")
    builder.save_criteria()
    builder.open_wizard()
    builder.update_form(type="compliance", domain_weights=[DomainWeight("A", 1)])
    builder.close_wizard()
    assert not builder.is_open
    assert builder.form_state.type == CriteriaType.PERCENTAGE
    assert [w.weight for w in builder.form_state.domain_weights] == [50, 50]


def test_delete_criteria():
    """Test deleting criteria resets the builder"""
    builder = open_builder("A")
    builder.save_criteria()
    builder.set_is_delete_modal_open(True)
    assert builder.delete_criteria()
    assert not builder.has_criteria
    assert not builder.is_delete_modal_open
    assert builder.store.get_assessment_criteria("fw1") is None


def test_errors_follow_language():
    """Test messages come from the Arabic table when requested"""
    builder = open_builder("A", lang="ar")
    builder.update_form(type="maturity")
    builder.go_to_next_step()
    builder.go_to_next_step()
    assert builder.errors.levels == get_text("ar")["errors"]["noLevels"]


def test_snapshot_shape():
    """Test the JSON view of the wizard"""
    builder = open_builder("A")
    snapshot = builder.snapshot()
    assert snapshot["currentStep"] == "type"
    assert snapshot["isOpen"] is True
    assert snapshot["canSave"] is True
    assert snapshot["weightTotal"] == 100
    assert snapshot["formState"]["domainWeights"] == [{"domainId": "A", "weight": 100}]
    assert snapshot["errors"] == {}
