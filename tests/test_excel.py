"""Test suite for Excel import and export"""

import io
from datetime import datetime

import pytest
from openpyxl import Workbook, load_workbook

from qiyas import excel, taxonomy
from qiyas.models import CapabilityLevel, Dimension, Domain, LocalizedText


def workbook_bytes(header, *rows):
    wb = Workbook()
    ws = wb.active
    ws.append(header)
    for row in rows:
        ws.append(list(row))
    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


def test_read_rows_uses_header_and_skips_blank_rows():
    """Test rows become dicts keyed by the header row"""
    data = workbook_bytes(
        ["domainId", "nameEn", "nameAr"],
        ["D1", "Governance", "الحوكمة"],
        [None, None, None],
        ["D2", "Defense", None],
    )
    rows = excel.read_rows(data)
    assert rows == [
        {"domainId": "D1", "nameEn": "Governance", "nameAr": "الحوكمة"},
        {"domainId": "D2", "nameEn": "Defense"},
    ]


def test_read_rows_rejects_non_workbook():
    """Test garbage bytes raise a parse error"""
    with pytest.raises(excel.ExcelParseError):
        excel.read_rows(b"not a spreadsheet")


def test_domain_row_aliases():
    """Test alternative column names are accepted"""
    domain = excel.domain_from_row({"id": "D9", "name": "Resilience", "name_ar": "الصمود", "field_en": "Ops"})
    assert domain.domain_id == "D9"
    assert domain.name == LocalizedText(en="Resilience", ar="الصمود")
    assert domain.domain_field.en == "Ops"
    assert domain.default_lang == "en"


def test_import_domains_reports_rows(db):
    """Test domain import counts, skips and duplicate detection"""
    taxonomy.create_domain(db, "fw1", Domain(domain_id="D1", name=LocalizedText(en="Existing")))
    rows = [
        {"domainId": "D1", "nameEn": "Governance"},
        {"nameEn": "No id"},
        {"domainId": "D2", "nameAr": "الدفاع"},
    ]
    result = excel.import_domains(db, "fw1", rows)

    assert result.total_rows == 3
    assert result.success_count == 1
    assert result.failed_count == 2
    assert not result.success
    assert result.errors[0] == {"row": 2, "error": 'Domain with ID "D1" already exists'}
    assert result.errors[1]["row"] == 3
    assert taxonomy.get_domain(db, "fw1", "D1").name.en == "Existing"
    assert taxonomy.get_domain(db, "fw1", "D2").name.ar == "الدفاع"


def test_import_controls_validates_dimension(db):
    """Test control rows need a known dimension"""
    rows = [
        {"controlId": "C1", "nameEn": "Access", "dimension": "Plan"},
        {"controlId": "C2", "nameEn": "Backups", "dimension": "monitor"},
    ]
    result = excel.import_controls(db, "fw1", "D1", rows)
    assert result.success_count == 1
    assert result.errors == [{
        "row": 3,
        "error": "Invalid dimension for control C2: 'monitor'. Must be one of: plan, implement, operate",
    }]
    assert taxonomy.get_control(db, "fw1", "D1", "C1").dimension == Dimension.PLAN


@pytest.mark.parametrize("value, expected", [
    ("foundational", CapabilityLevel.FOUNDATIONAL),
    ("Very Advanced", CapabilityLevel.VERY_ADVANCED),
    ("اساسيه", CapabilityLevel.FOUNDATIONAL),
    ("متقدمه", CapabilityLevel.ADVANCED),
    ("متقدمه جدا", CapabilityLevel.VERY_ADVANCED),
    (2, CapabilityLevel.ADVANCED),
    (5.0, CapabilityLevel.VERY_ADVANCED),
    (None, CapabilityLevel.FOUNDATIONAL),
])
def test_parse_capability_level(value, expected):
    """Test English, Arabic and numeric capability levels"""
    assert excel.parse_capability_level(value) == expected


def test_validate_specification_row():
    """Test row-level validation messages"""
    assert excel.validate_specification_row({"number": "1.1", "name_ar": "اسم"}) == []
    errors = excel.validate_specification_row({"capabilityLevel": "expert"})
    assert "Missing required field: number" in errors
    assert any("name" in e for e in errors)
    assert any("Invalid capability level" in e for e in errors)
    assert excel.validate_specification_row({"number": "1", "name_en": "N", "capabilityLevel": 7}) == [
        "Invalid capability level: if using numeric levels, must be between 1 and 5"
    ]


def test_specification_row_with_subspecs_and_version():
    """Test sub-specification columns and the version entry"""
    spec = excel.specification_from_row({
        "number": 1.1,
        "name_en": "Passwords",
        "name_ar": "كلمات المرور",
        "capabilityLevel": "advanced",
        "version": "v2",
        "versionDate": datetime(2026, 3, 1),
        "subSpec1_name_en": "Length",
        "subSpec3_name_ar": "التعقيد",
    })
    assert spec.number == "1.1"
    assert spec.capability_level == CapabilityLevel.ADVANCED
    assert [s.name.en or s.name.ar for s in spec.sub_specifications] == ["Length", "التعقيد"]
    assert spec.version_history[0].date == "2026-03-01"


def test_import_specifications(db):
    """Test valid rows are stored and invalid rows are reported by sheet row"""
    rows = [
        {"number": "1.1", "name_en": "Passwords", "name_ar": "كلمات المرور", "capabilityLevel": 3},
        {"name_en": "No number"},
        {"number": "1.2", "name_en": "MFA"},
    ]
    result = excel.import_specifications(db, "fw1", "D1", "C1", rows)
    assert result.success_count == 2
    assert result.failed_count == 1
    assert result.errors == [{"row": 3, "error": "Missing required field: number"}]

    specs = taxonomy.list_specifications(db, "fw1", "D1", "C1")
    assert [s.number for s in specs] == ["1.1", "1.2"]
    assert specs[0].capability_level == CapabilityLevel.ADVANCED


def test_templates_have_styled_headers():
    """Test each template opens with its header row"""
    for build, headers in [
        (excel.domain_template, excel.DOMAIN_HEADERS),
        (excel.control_template, excel.CONTROL_HEADERS),
        (excel.specification_template, excel.SPECIFICATION_HEADERS),
    ]:
        wb = load_workbook(io.BytesIO(build()))
        ws = wb.active
        assert [cell.value for cell in ws[1]] == headers
        assert ws["A1"].font.bold
        assert ws.max_row == 2


def test_exported_specifications_reimport(db):
    """Test an export can be read back as import rows"""
    excel.import_specifications(db, "fw1", "D1", "C1", [
        {"number": "1.1", "name_en": "Passwords", "name_ar": "كلمات المرور", "capabilityLevel": "veryAdvanced",
         "version": "v1", "subSpec1_name_en": "Length", "subSpec1_name_ar": "الطول"},
    ])
    data = excel.export_specifications(taxonomy.list_specifications(db, "fw1", "D1", "C1"))
    rows = excel.read_rows(data)
    assert rows[0]["number"] == "1.1"
    assert rows[0]["capabilityLevel"] == "veryAdvanced"
    assert rows[0]["subSpec1_name_ar"] == "الطول"
    assert excel.validate_specification_row(rows[0]) == []
