"""Excel import/export for domains, controls and specifications"""

import io
import logging
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Tuple

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from .exceptions import DuplicateEntityError, ValidationError
from .models import (
    CapabilityLevel, Control, Domain, LocalizedText, Specification, SubSpecification,
    VersionEntry, convert_legacy_capability_level,
)
from . import taxonomy
from .store import specifications_ref

logger = logging.getLogger(__name__)

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

MAX_SUB_SPECS = 5

CAPABILITY_ALIASES = {
    'foundational': CapabilityLevel.FOUNDATIONAL,
    'advanced': CapabilityLevel.ADVANCED,
    'veryadvanced': CapabilityLevel.VERY_ADVANCED,
    'very advanced': CapabilityLevel.VERY_ADVANCED,
    'اساسيه': CapabilityLevel.FOUNDATIONAL,
    'متقدمه': CapabilityLevel.ADVANCED,
    'متقدمه جدا': CapabilityLevel.VERY_ADVANCED,
}


class ExcelParseError(ValidationError):
    """The uploaded bytes are not a readable workbook"""


@dataclass
class ImportResult:
    total_rows: int = 0
    success_count: int = 0
    failed_count: int = 0
    errors: List[dict] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed_count == 0 and self.success_count > 0

    def fail(self, row, message):
        self.errors.append({"row": row, "error": message})
        self.failed_count += 1

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "totalRows": self.total_rows,
            "successCount": self.success_count,
            "failedCount": self.failed_count,
            "errors": self.errors,
        }


# ============================================================================
# READING
# ============================================================================

def _cell_text(value) -> str:
    if value is None:
        return ''
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def read_rows(data: bytes) -> List[Dict[str, object]]:
    """Rows of the first worksheet as dicts keyed by the header row.

    Blank rows are dropped; empty cells are left out of the dict.
    """
    try:
        wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        logger.warning("Excel parse error: %s", e)
        raise ExcelParseError('Failed to parse Excel file')
    try:
        ws = wb.worksheets[0]
        rows = ws.iter_rows(values_only=True)
        header = next(rows, None)
        if not header:
            return []
        keys = [_cell_text(cell) for cell in header]
        result = []
        for values in rows:
            row = {key: value for key, value in zip(keys, values)
                   if key and value is not None and _cell_text(value) != ''}
            if row:
                result.append(row)
        return result
    finally:
        wb.close()


def _pick(row, *keys) -> str:
    for key in keys:
        text = _cell_text(row.get(key))
        if text:
            return text
    return ''


# ============================================================================
# DOMAINS
# ============================================================================

def domain_from_row(row) -> Domain:
    return Domain(
        domain_id=_pick(row, 'domainId', 'id'),
        name=LocalizedText(en=_pick(row, 'nameEn', 'name_en', 'name'), ar=_pick(row, 'nameAr', 'name_ar')),
        description=LocalizedText(
            en=_pick(row, 'descriptionEn', 'description_en', 'description'),
            ar=_pick(row, 'descriptionAr', 'description_ar'),
        ),
        domain_field=LocalizedText(
            en=_pick(row, 'domainFieldEn', 'domain_field_en', 'field_en'),
            ar=_pick(row, 'domainFieldAr', 'domain_field_ar', 'field_ar'),
        ),
        default_lang=_pick(row, 'defaultLang', 'default_lang') or 'en',
    )


def import_domains(db, framework_id: str, rows) -> ImportResult:
    """Create one domain per row; existing ids are reported, not overwritten."""
    result = ImportResult(total_rows=len(rows))
    for index, row in enumerate(rows):
        row_number = index + 2
        domain = domain_from_row(row)
        if not domain.domain_id or not (domain.name.en or domain.name.ar):
            result.fail(row_number, 'Skipped row: Missing domain ID or name')
            continue
        try:
            taxonomy.create_domain(db, framework_id, domain)
        except DuplicateEntityError as e:
            result.fail(row_number, str(e))
            continue
        except Exception as e:
            logger.error("Error importing domain %s: %s", domain.domain_id, e)
            result.fail(row_number, f'Failed to import domain {domain.domain_id}')
            continue
        result.success_count += 1
    logger.info("Domain import into %s: %d ok, %d failed", framework_id, result.success_count, result.failed_count)
    return result


# ============================================================================
# CONTROLS
# ============================================================================

def import_controls(db, framework_id: str, domain_id: str, rows) -> ImportResult:
    result = ImportResult(total_rows=len(rows))
    for index, row in enumerate(rows):
        row_number = index + 2
        control_id = _pick(row, 'controlId', 'id')
        name = LocalizedText(en=_pick(row, 'nameEn', 'name_en', 'name'), ar=_pick(row, 'nameAr', 'name_ar'))
        if not control_id or not (name.en or name.ar):
            result.fail(row_number, 'Skipped row: Missing control ID or name')
            continue
        raw_dimension = _pick(row, 'dimension')
        try:
            dimension = taxonomy.parse_dimension(raw_dimension)
        except ValidationError:
            result.fail(row_number, f"Invalid dimension for control {control_id}: '{raw_dimension}'. "
                                    "Must be one of: plan, implement, operate")
            continue
        control = Control(
            control_id=control_id,
            name=name,
            description=LocalizedText(
                en=_pick(row, 'descriptionEn', 'description_en', 'description'),
                ar=_pick(row, 'descriptionAr', 'description_ar'),
            ),
            dimension=dimension,
        )
        try:
            taxonomy.create_control(db, framework_id, domain_id, control)
        except DuplicateEntityError as e:
            result.fail(row_number, str(e))
            continue
        except Exception as e:
            logger.error("Error importing control %s: %s", control_id, e)
            result.fail(row_number, f'Failed to import control {control_id}')
            continue
        result.success_count += 1
    return result


# ============================================================================
# SPECIFICATIONS
# ============================================================================

def _as_int(value):
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def validate_specification_row(row) -> List[str]:
    errors = []
    if not _pick(row, 'number'):
        errors.append('Missing required field: number')
    if not _pick(row, 'name_en') and not _pick(row, 'name_ar'):
        errors.append('Missing required field: name (either English or Arabic is required)')

    level = row.get('capabilityLevel')
    if isinstance(level, str):
        if level.strip().lower() not in CAPABILITY_ALIASES and _as_int(level) is None:
            errors.append('Invalid capability level: must be one of: foundational, advanced, '
                          'very advanced (or numeric 1-5)')
    elif isinstance(level, (int, float)) and not 1 <= level <= 5:
        errors.append('Invalid capability level: if using numeric levels, must be between 1 and 5')
    return errors


def parse_capability_level(value) -> CapabilityLevel:
    """English, Arabic or legacy numeric level to a CapabilityLevel."""
    if value is None or value == '':
        return CapabilityLevel.FOUNDATIONAL
    if isinstance(value, str) and value.strip().lower() in CAPABILITY_ALIASES:
        return CAPABILITY_ALIASES[value.strip().lower()]
    if isinstance(value, float):
        value = int(value)
    return convert_legacy_capability_level(value)


def specification_from_row(row) -> Specification:
    sub_specs = []
    for i in range(1, MAX_SUB_SPECS + 1):
        name_en = _pick(row, f'subSpec{i}_name_en')
        name_ar = _pick(row, f'subSpec{i}_name_ar')
        if name_en or name_ar:
            sub_specs.append(SubSpecification(
                name=LocalizedText(en=name_en, ar=name_ar),
                description=LocalizedText(en=_pick(row, f'subSpec{i}_description_en'),
                                          ar=_pick(row, f'subSpec{i}_description_ar')),
            ))

    version_history = []
    version = _pick(row, 'version')
    if version:
        version_history.append(VersionEntry(
            version=version,
            date=_pick(row, 'versionDate') or date.today().isoformat(),
            note=LocalizedText(en=_pick(row, 'versionNote_en'), ar=_pick(row, 'versionNote_ar')),
        ))

    return Specification(
        number=_pick(row, 'number'),
        name=LocalizedText(en=_pick(row, 'name_en'), ar=_pick(row, 'name_ar')),
        description=LocalizedText(en=_pick(row, 'description_en'), ar=_pick(row, 'description_ar')),
        dependency=LocalizedText(en=_pick(row, 'dependency_en'), ar=_pick(row, 'dependency_ar')),
        capability_level=parse_capability_level(row.get('capabilityLevel')),
        sub_specifications=sub_specs,
        version_history=version_history,
    )


def parse_specification_rows(rows) -> Tuple[List[Tuple[int, Specification]], List[dict]]:
    """Validate rows; returns (row number, specification) pairs and row errors."""
    parsed = []
    errors = []
    for index, row in enumerate(rows):
        row_number = index + 2
        row_errors = validate_specification_row(row)
        if row_errors:
            errors.extend({"row": row_number, "error": error} for error in row_errors)
            continue
        parsed.append((row_number, specification_from_row(row)))
    return parsed, errors


def import_specifications(db, framework_id: str, domain_id: str, control_id: str, rows) -> ImportResult:
    """Validate and write specification rows, keyed by their number.

    Rows that fail validation count as failures. Rows with only one of the two
    names are stored as given.
    """
    parsed, errors = parse_specification_rows(rows)
    result = ImportResult(total_rows=len(rows))
    for error in errors:
        result.errors.append(error)
    result.failed_count = len({error["row"] for error in errors})

    for row_number, specification in parsed:
        try:
            now = datetime.now().isoformat()
            specification.created_at = now
            specification.updated_at = now
            specifications_ref(db, framework_id, domain_id, control_id) \
                .document(specification.number).set(specification.to_dict())
        except Exception as e:
            logger.error("Error importing specification %s: %s", specification.number, e)
            result.fail(row_number, f'Failed to import: {e}')
            continue
        result.success_count += 1
    return result


# ============================================================================
# WRITING
# ============================================================================

HEADER_FONT = Font(bold=True, color='FFFFFF', size=11)
HEADER_FILL = PatternFill(start_color='667eea', end_color='667eea', fill_type='solid')
HEADER_ALIGNMENT = Alignment(horizontal='center', vertical='center', wrap_text=True)
CELL_ALIGNMENT = Alignment(horizontal='left', vertical='center', wrap_text=True)
RTL_ALIGNMENT = Alignment(horizontal='right', vertical='center', wrap_text=True)
THIN_BORDER = Border(
    left=Side(style='thin'),
    right=Side(style='thin'),
    top=Side(style='thin'),
    bottom=Side(style='thin')
)


def _write_sheet(title, headers, rows, widths=None) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = title

    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGNMENT
        cell.border = THIN_BORDER

    for row_idx, row in enumerate(rows, 2):
        for col, header in enumerate(headers, 1):
            cell = ws.cell(row=row_idx, column=col, value=row.get(header, ''))
            # Arabic columns read right-to-left
            cell.alignment = RTL_ALIGNMENT if header.lower().endswith('ar') else CELL_ALIGNMENT
            cell.border = THIN_BORDER

    for col, header in enumerate(headers, 1):
        width = (widths or {}).get(header) or max(12, len(header) + 4)
        ws.column_dimensions[get_column_letter(col)].width = width
    ws.freeze_panes = 'A2'

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


DOMAIN_HEADERS = ['domainId', 'nameEn', 'nameAr', 'descriptionEn', 'descriptionAr',
                  'domainFieldEn', 'domainFieldAr', 'defaultLang']

CONTROL_HEADERS = ['controlId', 'nameEn', 'nameAr', 'descriptionEn', 'descriptionAr', 'dimension']

SPECIFICATION_HEADERS = [
    'specificationId', 'number', 'name_en', 'name_ar', 'description_en', 'description_ar',
    'dependency_en', 'dependency_ar', 'capabilityLevel', 'version', 'versionDate',
    'versionNote_en', 'versionNote_ar',
    'subSpec1_name_en', 'subSpec1_name_ar', 'subSpec1_description_en', 'subSpec1_description_ar',
    'subSpec2_name_en', 'subSpec2_name_ar', 'subSpec2_description_en', 'subSpec2_description_ar',
]


def domain_template() -> bytes:
    sample = {
        'domainId': 'DOM-001',
        'nameEn': 'Example Domain Name',
        'nameAr': 'اسم المجال كمثال',
        'descriptionEn': 'Description of the domain in English',
        'descriptionAr': 'وصف المجال باللغة العربية',
        'domainFieldEn': 'Optional field in English',
        'domainFieldAr': 'حقل اختياري باللغة العربية',
        'defaultLang': 'en',
    }
    widths = {'domainId': 12, 'nameEn': 25, 'nameAr': 25, 'descriptionEn': 40, 'descriptionAr': 40,
              'domainFieldEn': 25, 'domainFieldAr': 25, 'defaultLang': 12}
    return _write_sheet('Domains Template', DOMAIN_HEADERS, [sample], widths)


def control_template() -> bytes:
    sample = {
        'controlId': 'CTRL-001',
        'nameEn': 'Example Control Name',
        'nameAr': 'اسم التحكم كمثال',
        'descriptionEn': 'Description of the control in English',
        'descriptionAr': 'وصف التحكم باللغة العربية',
        'dimension': 'plan',
    }
    widths = {'controlId': 12, 'nameEn': 25, 'nameAr': 25, 'descriptionEn': 40, 'descriptionAr': 40,
              'dimension': 15}
    return _write_sheet('Controls Template', CONTROL_HEADERS, [sample], widths)


def specification_template() -> bytes:
    sample = {
        'specificationId': 'spec123',
        'number': 'AC-1.1',
        'name_en': 'Sample Specification Name',
        'name_ar': 'اسم المواصفات النموذجية',
        'description_en': 'This is a sample specification description',
        'description_ar': 'هذا وصف المواصفات النموذجية',
        'dependency_en': 'Sample dependency',
        'dependency_ar': 'التبعية النموذجية',
        'capabilityLevel': 'foundational',
        'version': 'v1.0',
        'versionDate': date.today().isoformat(),
        'versionNote_en': 'Initial version',
        'versionNote_ar': 'الإصدار الأولي',
        'subSpec1_name_en': 'Sample Sub-Specification 1',
        'subSpec1_name_ar': 'المواصفات الفرعية النموذجية 1',
        'subSpec1_description_en': 'Description for sub-specification 1',
        'subSpec1_description_ar': 'وصف المواصفات الفرعية 1',
        'subSpec2_name_en': 'Sample Sub-Specification 2',
        'subSpec2_name_ar': 'المواصفات الفرعية النموذجية 2',
        'subSpec2_description_en': 'Description for sub-specification 2',
        'subSpec2_description_ar': 'وصف المواصفات الفرعية 2',
    }
    return _write_sheet('Specifications', SPECIFICATION_HEADERS, [sample])


def specification_to_row(specification: Specification) -> dict:
    row = {
        'specificationId': specification.id,
        'number': specification.number,
        'name_en': specification.name.en,
        'name_ar': specification.name.ar,
        'description_en': specification.description.en,
        'description_ar': specification.description.ar,
        'dependency_en': specification.dependency.en,
        'dependency_ar': specification.dependency.ar,
        'capabilityLevel': specification.capability_level.value,
    }
    if specification.version_history:
        latest = specification.version_history[-1]
        row.update({
            'version': latest.version,
            'versionDate': latest.date,
            'versionNote_en': latest.note.en,
            'versionNote_ar': latest.note.ar,
        })
    for i, sub in enumerate(specification.sub_specifications[:2], 1):
        row.update({
            f'subSpec{i}_name_en': sub.name.en,
            f'subSpec{i}_name_ar': sub.name.ar,
            f'subSpec{i}_description_en': sub.description.en,
            f'subSpec{i}_description_ar': sub.description.ar,
        })
    return row


def export_specifications(specifications: List[Specification]) -> bytes:
    """Workbook in the import layout, so an export can be edited and re-imported."""
    return _write_sheet('Specifications', SPECIFICATION_HEADERS,
                        [specification_to_row(s) for s in specifications])
