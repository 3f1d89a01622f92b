"""Main entry point for the Qiyas demo"""

import logging
import sys

from qiyas.criteria_builder import CriteriaBuilder
from qiyas.criteria_service import InMemoryCriteriaStore
from qiyas.models import CriteriaLevel, CriteriaType, Domain, LocalizedText, get_localized_value
from version import __version__, __application__, __description__


def build_demo_store():
    """A framework with three domains, kept in memory"""
    store = InMemoryCriteriaStore()
    store.add_domain("demo", Domain(
        domain_id="GOV",
        name=LocalizedText(en="Governance", ar="الحوكمة"),
    ))
    store.add_domain("demo", Domain(
        domain_id="DEF",
        name=LocalizedText(en="Defense", ar="الدفاع"),
    ))
    store.add_domain("demo", Domain(
        domain_id="RES",
        name=LocalizedText(en="Resilience", ar="الصمود"),
    ))
    return store


def run_wizard(builder):
    """Walk the wizard: maturity type, three levels, even weights, save."""
    builder.open_wizard()
    builder.update_form(type=CriteriaType.MATURITY.value)
    builder.go_to_next_step()

    for value, en, ar in [(100, "Optimized", "محسّن"), (0, "Initial", "مبدئي"), (50, "Defined", "معرّف")]:
        builder.add_level(CriteriaLevel(
            label=LocalizedText(en=en, ar=ar),
            description=LocalizedText(en=f"{en} practices", ar=f"ممارسات {ar}"),
            value=value,
        ))
    builder.go_to_next_step()

    builder.distribute_weights_evenly()
    builder.go_to_next_step()

    if builder.go_to_next_step():
        builder.save_criteria()
    return builder


def main(lang="en"):
    """Main application entry point"""
    logging.basicConfig(level=logging.WARNING)

    print(f"=" * 60)
    print(f"{__application__} v{__version__}")
    print(f"{__description__}")
    print(f"=" * 60)
    print()

    store = build_demo_store()
    builder = run_wizard(CriteriaBuilder("demo", store, lang=lang))
    criteria = store.get_assessment_criteria("demo")

    print("📊 Assessment Criteria")
    print("-" * 60)
    if criteria is None:
        print(f"  Not saved: {builder.errors.to_dict()}")
        return 1

    print(f"  Type: {criteria.type.value}")

    names = {d.domain_id: get_localized_value(d.name, lang) for d in builder.domains}
    print(f"\n🧭 Domain Weights ({len(criteria.domain_weights)} domains):")
    for entry in criteria.domain_weights:
        print(f"  - [{entry.domain_id}] {names.get(entry.domain_id, entry.domain_id)}: {entry.weight}%")
    print(f"  Total: {builder.weight_total:g}%")

    print(f"\n📶 Levels ({len(criteria.levels)}):")
    for level in criteria.levels:
        print(f"  - {get_localized_value(level.label, lang)} ({level.value}%)")

    print("\n" + "=" * 60)
    print("Criteria saved successfully! ✨")
    print("=" * 60)

    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1] if len(sys.argv) > 1 else "en"))
