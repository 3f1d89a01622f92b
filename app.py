"""
Qiyas - Frameworks, Controls & Assessment Criteria
Flask Application - Bilingual (English / Arabic) JSON API
"""

import logging
import math
import os
import secrets
from datetime import timedelta

from flask import Flask, Response, g, jsonify, request, session
from werkzeug.exceptions import HTTPException

from qiyas import auth as qiyas_auth
from qiyas import directory, excel, taxonomy, users
from qiyas.auth import admin_required, authorize
from qiyas.config import config
from qiyas.criteria_builder import CriteriaBuilder
from qiyas.criteria_service import CriteriaStore, delete_assessment_criteria, get_assessment_criteria
from qiyas.events import RefreshNotifier
from qiyas.exceptions import DuplicateEntityError, NotFoundError, QiyasError, ValidationError
from qiyas.models import (
    Control, CriteriaLevel, Domain, DomainWeight, LocalizedText, ProjectStatus, Specification,
    SubSpecification, VersionEntry, convert_legacy_capability_level,
)
from qiyas.store import get_firestore
from qiyas.translations import get_text
from version import __version__

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.secret_key = os.getenv('SECRET_KEY') or secrets.token_hex(32)
app.permanent_session_lifetime = timedelta(days=config.SESSION_EXPIRATION_DAYS)

# Security configurations; the Firebase cookie owns the name "session"
app.config['SESSION_COOKIE_NAME'] = 'qiyas_prefs'
app.config['SESSION_COOKIE_SECURE'] = config.IS_PRODUCTION
app.config['SESSION_COOKIE_HTTPONLY'] = True
app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'

# One notifier for the process; mutating routes report what they touched
notifier = RefreshNotifier()

# Open wizards keyed by (uid, framework id)
WIZARDS = {}

# Dashboard numbers, dropped whenever the notifier reports a change
DASHBOARD_CACHE = {}


def _invalidate_dashboard(data_type, refreshed_at):
    DASHBOARD_CACHE.pop('stats', None)


notifier.subscribe(_invalidate_dashboard)


def get_db():
    """Firestore client for this request; tests put a double in app.config."""
    if 'db' not in g:
        g.db = app.config.get('FIRESTORE_CLIENT') or get_firestore()
    return g.db


def current_lang():
    return session.get('lang', config.DEFAULT_LANG)


def body():
    return request.get_json(silent=True) or {}


@app.after_request
def add_security_headers(response):
    """Add security headers to all responses."""
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['X-Frame-Options'] = 'SAMEORIGIN'
    response.headers['X-XSS-Protection'] = '1; mode=block'
    response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
    if config.IS_PRODUCTION:
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    return response


@app.errorhandler(QiyasError)
def handle_service_error(e):
    if isinstance(e, DuplicateEntityError):
        status = 409
    elif isinstance(e, ValidationError):
        status = 400
    elif isinstance(e, NotFoundError):
        status = 404
    else:
        status = 500
    return jsonify({'success': False, 'error': str(e)}), status


@app.errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return jsonify({'success': False, 'error': e.description}), e.code
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify({'success': False, 'error': str(e)}), 500


def not_found(kind, entity_id):
    return jsonify({'success': False, 'error': f'{kind} {entity_id} not found'}), 404


def xlsx_response(content, filename):
    return Response(
        content,
        mimetype=excel.XLSX_MIMETYPE,
        headers={'Content-Disposition': f'attachment; filename={filename}'}
    )


def uploaded_rows():
    upload = request.files.get('file')
    if upload is None:
        raise ValidationError('No file provided')
    return excel.read_rows(upload.read())


# ============================================================================
# LANGUAGE & APP INFO
# ============================================================================

@app.route('/')
def index():
    txt = get_text(current_lang())
    return jsonify({
        'name': txt['app_name'],
        'tagline': txt['tagline'],
        'version': __version__,
        'lang': current_lang(),
    })


@app.route('/api/set-language/<lang>')
def set_language(lang):
    """Set language preference."""
    session['lang'] = lang if lang in config.SUPPORTED_LANGS else config.DEFAULT_LANG
    return jsonify({'success': True, 'lang': session['lang']})


@app.route('/api/translations')
def translations():
    return jsonify(get_text(current_lang()))


# ============================================================================
# AUTH SESSION
# ============================================================================

@app.route('/api/auth/session', methods=['POST'])
def create_session():
    id_token = body().get('idToken')
    if not id_token:
        return jsonify({'success': False, 'error': 'ID token is required'}), 400
    try:
        session_cookie = qiyas_auth.create_session_cookie(qiyas_auth.auth_client(), id_token)
    except Exception as e:
        logger.warning("Session creation failed: %s", e)
        return jsonify({'success': False, 'error': 'Unauthorized'}), 401
    return qiyas_auth.set_session_cookie(jsonify({'success': True}), session_cookie)


@app.route('/api/auth/session', methods=['GET'])
@authorize()
def check_session():
    claims = g.claims
    return jsonify({
        'success': True,
        'uid': claims.get('uid'),
        'email': claims.get('email'),
        'role': qiyas_auth.role_of(claims),
    })


@app.route('/api/auth/session', methods=['DELETE'])
def delete_session():
    return qiyas_auth.clear_session_cookie(jsonify({'success': True}))


# ============================================================================
# ORGANIZATIONS
# ============================================================================

@app.route('/api/organizations', methods=['GET'])
@authorize()
def api_list_organizations():
    organizations = directory.list_organizations(get_db())
    return jsonify({'success': True, 'organizations': [dict(o.to_dict(), id=o.id) for o in organizations]})


@app.route('/api/organizations', methods=['POST'])
@admin_required
def api_create_organization():
    data = body()
    organization_id = directory.create_organization(
        get_db(),
        name=data.get('name'),
        project_ids=data.get('projectIds'),
        description=data.get('description'),
        default_lang=data.get('defaultLang', 'en'),
        logo_url=data.get('logoUrl'),
    )
    return jsonify({'success': True, 'id': organization_id}), 201


@app.route('/api/organizations/<organization_id>', methods=['GET'])
@authorize()
def api_get_organization(organization_id):
    organization = directory.get_organization(get_db(), organization_id)
    if organization is None:
        return not_found('Organization', organization_id)
    return jsonify({'success': True, 'organization': dict(organization.to_dict(), id=organization.id)})


@app.route('/api/organizations/<organization_id>', methods=['PUT'])
@admin_required
def api_update_organization(organization_id):
    directory.update_organization(get_db(), organization_id, body())
    return jsonify({'success': True})


@app.route('/api/organizations/<organization_id>', methods=['DELETE'])
@admin_required
def api_delete_organization(organization_id):
    directory.delete_organization(get_db(), organization_id)
    return jsonify({'success': True})


@app.route('/api/projects/<project_id>/organizations', methods=['GET'])
@authorize()
def api_organizations_by_project(project_id):
    organizations = directory.get_organizations_by_project(get_db(), project_id)
    return jsonify({'success': True, 'organizations': [dict(o.to_dict(), id=o.id) for o in organizations]})


# ============================================================================
# PROJECTS
# ============================================================================

@app.route('/api/projects', methods=['GET'])
@authorize()
def api_list_projects():
    projects = directory.filter_projects(
        directory.list_projects(get_db()),
        search_term=request.args.get('search', ''),
        status=request.args.get('status', 'all'),
        organization_id=request.args.get('organizationId', 'all'),
        framework_id=request.args.get('frameworkId', 'all'),
        locale=current_lang(),
    )
    return jsonify({'success': True, 'projects': [dict(p.to_dict(), id=p.id) for p in projects]})


@app.route('/api/projects', methods=['POST'])
@admin_required
def api_create_project():
    data = body()
    project_id = directory.create_project(
        get_db(),
        name=data.get('name'),
        description=data.get('description'),
        organization_id=data.get('organizationId'),
        start_date=data.get('startDate', ''),
        project_deadline=data.get('projectDeadline', ''),
        framework_id=data.get('frameworkId', ''),
        status=data.get('status', ProjectStatus.OPEN.value),
        default_lang=data.get('defaultLang', 'en'),
    )
    notifier.notify_refresh('projects')
    return jsonify({'success': True, 'id': project_id}), 201


@app.route('/api/projects/<project_id>', methods=['GET'])
@authorize()
def api_get_project(project_id):
    project = directory.get_project(get_db(), project_id)
    if project is None:
        return not_found('Project', project_id)
    return jsonify({'success': True, 'project': dict(project.to_dict(), id=project.id)})


@app.route('/api/projects/<project_id>', methods=['PUT'])
@admin_required
def api_update_project(project_id):
    directory.update_project(get_db(), project_id, body())
    notifier.notify_refresh('projects')
    return jsonify({'success': True})


@app.route('/api/projects/<project_id>', methods=['DELETE'])
@admin_required
def api_delete_project(project_id):
    directory.delete_project(get_db(), project_id)
    notifier.notify_refresh('projects')
    return jsonify({'success': True})


# ============================================================================
# FRAMEWORKS
# ============================================================================

@app.route('/api/frameworks', methods=['GET'])
@authorize()
def api_list_frameworks():
    frameworks = taxonomy.list_frameworks(get_db())
    return jsonify({'success': True, 'frameworks': [dict(f.to_dict(), id=f.id) for f in frameworks]})


@app.route('/api/frameworks', methods=['POST'])
@admin_required
def api_create_framework():
    data = body()
    framework_id = taxonomy.create_framework(get_db(), data.get('name'), data.get('description'))
    notifier.notify_refresh('frameworks')
    return jsonify({'success': True, 'id': framework_id}), 201


@app.route('/api/frameworks/npc', methods=['POST'])
@admin_required
def api_seed_npc_framework():
    taxonomy.create_or_update_npc_framework(get_db())
    notifier.notify_refresh('frameworks')
    return jsonify({'success': True, 'id': taxonomy.NPC_FRAMEWORK_ID})


@app.route('/api/frameworks/<framework_id>', methods=['GET'])
@authorize()
def api_get_framework(framework_id):
    framework = taxonomy.get_framework(get_db(), framework_id)
    if framework is None:
        return not_found('Framework', framework_id)
    return jsonify({'success': True, 'framework': dict(framework.to_dict(), id=framework.id)})


@app.route('/api/frameworks/<framework_id>', methods=['PUT'])
@admin_required
def api_update_framework(framework_id):
    data = body()
    taxonomy.update_framework(get_db(), framework_id, name=data.get('name'), description=data.get('description'))
    notifier.notify_refresh('frameworks')
    return jsonify({'success': True})


@app.route('/api/frameworks/<framework_id>', methods=['DELETE'])
@admin_required
def api_delete_framework(framework_id):
    taxonomy.delete_framework(get_db(), framework_id)
    notifier.notify_refresh('frameworks')
    return jsonify({'success': True})


@app.route('/api/frameworks/<framework_id>/migrate-npc', methods=['POST'])
@admin_required
def api_migrate_npc_framework(framework_id):
    if not taxonomy.migrate_to_npc_framework(get_db(), framework_id):
        return not_found('Framework', framework_id)
    notifier.notify_refresh('frameworks')
    return jsonify({'success': True, 'id': taxonomy.NPC_FRAMEWORK_ID})


# ============================================================================
# DOMAINS
# ============================================================================

@app.route('/api/frameworks/<framework_id>/domains', methods=['GET'])
@authorize()
def api_list_domains(framework_id):
    domains = taxonomy.list_domains(get_db(), framework_id)
    return jsonify({'success': True, 'domains': [d.to_dict() for d in domains]})


@app.route('/api/frameworks/<framework_id>/domains', methods=['POST'])
@admin_required
def api_create_domain(framework_id):
    domain = Domain.from_dict(body().get('domainId', ''), body())
    taxonomy.create_domain(get_db(), framework_id, domain)
    return jsonify({'success': True, 'id': domain.domain_id}), 201


@app.route('/api/frameworks/<framework_id>/domains/<domain_id>', methods=['GET'])
@authorize()
def api_get_domain(framework_id, domain_id):
    domain = taxonomy.get_domain(get_db(), framework_id, domain_id)
    if domain is None:
        return not_found('Domain', domain_id)
    return jsonify({'success': True, 'domain': domain.to_dict()})


@app.route('/api/frameworks/<framework_id>/domains/<domain_id>', methods=['PUT'])
@admin_required
def api_update_domain(framework_id, domain_id):
    taxonomy.update_domain(get_db(), framework_id, domain_id, body())
    return jsonify({'success': True})


@app.route('/api/frameworks/<framework_id>/domains/<domain_id>', methods=['DELETE'])
@admin_required
def api_delete_domain(framework_id, domain_id):
    taxonomy.delete_domain(get_db(), framework_id, domain_id)
    return jsonify({'success': True})


@app.route('/api/frameworks/<framework_id>/domains/import', methods=['POST'])
@admin_required
def api_import_domains(framework_id):
    result = excel.import_domains(get_db(), framework_id, uploaded_rows())
    return jsonify(result.to_dict())


# ============================================================================
# CONTROLS
# ============================================================================

@app.route('/api/frameworks/<framework_id>/domains/<domain_id>/controls', methods=['GET'])
@authorize()
def api_list_controls(framework_id, domain_id):
    controls = taxonomy.list_controls(get_db(), framework_id, domain_id)
    return jsonify({'success': True, 'controls': [c.to_dict() for c in controls]})


@app.route('/api/frameworks/<framework_id>/domains/<domain_id>/controls', methods=['POST'])
@admin_required
def api_create_control(framework_id, domain_id):
    data = body()
    control = Control(
        control_id=data.get('controlId', ''),
        name=LocalizedText.from_dict(data.get('name')),
        description=LocalizedText.from_dict(data.get('description')),
        dimension=taxonomy.parse_dimension(data.get('dimension')),
    )
    taxonomy.create_control(get_db(), framework_id, domain_id, control)
    return jsonify({'success': True, 'id': control.control_id}), 201


@app.route('/api/frameworks/<framework_id>/domains/<domain_id>/controls/<control_id>', methods=['GET'])
@authorize()
def api_get_control(framework_id, domain_id, control_id):
    control = taxonomy.get_control(get_db(), framework_id, domain_id, control_id)
    if control is None:
        return not_found('Control', control_id)
    return jsonify({'success': True, 'control': control.to_dict()})


@app.route('/api/frameworks/<framework_id>/domains/<domain_id>/controls/<control_id>', methods=['PUT'])
@admin_required
def api_update_control(framework_id, domain_id, control_id):
    taxonomy.update_control(get_db(), framework_id, domain_id, control_id, body())
    return jsonify({'success': True})


@app.route('/api/frameworks/<framework_id>/domains/<domain_id>/controls/<control_id>', methods=['DELETE'])
@admin_required
def api_delete_control(framework_id, domain_id, control_id):
    taxonomy.delete_control(get_db(), framework_id, domain_id, control_id)
    return jsonify({'success': True})


@app.route('/api/frameworks/<framework_id>/domains/<domain_id>/controls/import', methods=['POST'])
@admin_required
def api_import_controls(framework_id, domain_id):
    result = excel.import_controls(get_db(), framework_id, domain_id, uploaded_rows())
    return jsonify(result.to_dict())


# ============================================================================
# SPECIFICATIONS
# ============================================================================

SPEC_PATH = '/api/frameworks/<framework_id>/domains/<domain_id>/controls/<control_id>/specifications'


def specification_from_json(data):
    return Specification(
        number=str(data.get('number', '')).strip(),
        name=LocalizedText.from_dict(data.get('name')),
        description=LocalizedText.from_dict(data.get('description')),
        dependency=LocalizedText.from_dict(data.get('dependency')),
        capability_level=convert_legacy_capability_level(data.get('capabilityLevel')),
        sub_specifications=[SubSpecification.from_dict(s) for s in data.get('subSpecifications') or []],
        version_history=[VersionEntry.from_dict(v) for v in data.get('versionHistory') or []],
    )


@app.route(SPEC_PATH, methods=['GET'])
@authorize()
def api_list_specifications(framework_id, domain_id, control_id):
    specifications = taxonomy.filter_specifications(
        taxonomy.list_specifications(get_db(), framework_id, domain_id, control_id),
        search_term=request.args.get('search', ''),
        level=request.args.get('level', 'all'),
    )
    return jsonify({'success': True, 'specifications': [dict(s.to_dict(), id=s.id) for s in specifications]})


@app.route(SPEC_PATH, methods=['POST'])
@admin_required
def api_add_specification(framework_id, domain_id, control_id):
    specification_id = taxonomy.add_specification(
        get_db(), framework_id, domain_id, control_id, specification_from_json(body()))
    return jsonify({'success': True, 'id': specification_id}), 201


@app.route(SPEC_PATH + '/<specification_id>', methods=['PUT'])
@admin_required
def api_update_specification(framework_id, domain_id, control_id, specification_id):
    taxonomy.update_specification(get_db(), framework_id, domain_id, control_id, specification_id, body())
    return jsonify({'success': True})


@app.route(SPEC_PATH + '/<specification_id>', methods=['DELETE'])
@admin_required
def api_delete_specification(framework_id, domain_id, control_id, specification_id):
    taxonomy.delete_specification(get_db(), framework_id, domain_id, control_id, specification_id)
    return jsonify({'success': True})


@app.route(SPEC_PATH + '/import', methods=['POST'])
@admin_required
def api_import_specifications(framework_id, domain_id, control_id):
    result = excel.import_specifications(get_db(), framework_id, domain_id, control_id, uploaded_rows())
    return jsonify(result.to_dict())


@app.route(SPEC_PATH + '/export', methods=['GET'])
@authorize()
def api_export_specifications(framework_id, domain_id, control_id):
    specifications = taxonomy.list_specifications(get_db(), framework_id, domain_id, control_id)
    content = excel.export_specifications(specifications)
    return xlsx_response(content, f'specifications_{control_id}.xlsx')


# ============================================================================
# EXCEL TEMPLATES
# ============================================================================

TEMPLATES = {
    'domains': (excel.domain_template, 'domains_template.xlsx'),
    'controls': (excel.control_template, 'controls_template.xlsx'),
    'specifications': (excel.specification_template, 'specifications_template.xlsx'),
}


@app.route('/api/templates/<kind>', methods=['GET'])
@authorize()
def api_download_template(kind):
    if kind not in TEMPLATES:
        return not_found('Template', kind)
    build, filename = TEMPLATES[kind]
    return xlsx_response(build(), filename)


# ============================================================================
# ASSESSMENT CRITERIA
# ============================================================================

@app.route('/api/frameworks/<framework_id>/criteria', methods=['GET'])
@authorize()
def api_get_criteria(framework_id):
    criteria = get_assessment_criteria(get_db(), framework_id)
    return jsonify({'success': True, 'criteria': criteria.to_dict() if criteria else None})


@app.route('/api/frameworks/<framework_id>/criteria', methods=['DELETE'])
@admin_required
def api_delete_criteria(framework_id):
    delete_assessment_criteria(get_db(), framework_id)
    WIZARDS.pop(wizard_key(framework_id), None)
    return jsonify({'success': True})


def wizard_key(framework_id):
    return (g.claims.get('uid'), framework_id)


def get_wizard(framework_id) -> CriteriaBuilder:
    """The caller's builder for a framework, bound to this request's store."""
    key = wizard_key(framework_id)
    builder = WIZARDS.get(key)
    if builder is None:
        builder = CriteriaBuilder(framework_id, CriteriaStore(get_db()), lang=current_lang())
        builder.load()
        WIZARDS[key] = builder
    else:
        builder.store = CriteriaStore(get_db())
        builder.lang = current_lang()
    return builder


def wizard_response(builder, ok=True, status=200):
    return jsonify({'success': ok, 'wizard': builder.snapshot()}), status


WIZARD_PATH = '/api/frameworks/<framework_id>/criteria/wizard'


def as_number(value, label):
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{label} must be a number')
    if not math.isfinite(number):
        raise ValidationError(f'{label} must be a number')
    return number


def level_from_json(data):
    level = CriteriaLevel.from_dict(data)
    level.value = as_number(level.value, 'Level value')
    return level


def weight_from_json(data):
    weight = DomainWeight.from_dict(data)
    weight.weight = as_number(weight.weight, 'Weight')
    return weight


def apply_form(builder, data):
    """Merge a JSON form payload (type, levels, domainWeights) into the wizard."""
    levels = data.get('levels')
    weights = data.get('domainWeights')
    levels = [level_from_json(level) for level in levels] if levels is not None else None
    weights = [weight_from_json(w) for w in weights] if weights is not None else None
    try:
        builder.update_form(type=data.get('type'), levels=levels, domain_weights=weights)
    except ValueError:
        raise ValidationError(f"Invalid criteria type: {data.get('type')}")


@app.route(WIZARD_PATH, methods=['GET'])
@authorize()
def api_wizard_state(framework_id):
    return wizard_response(get_wizard(framework_id))


@app.route(WIZARD_PATH + '/open', methods=['POST'])
@admin_required
def api_wizard_open(framework_id):
    builder = get_wizard(framework_id)
    builder.open_wizard()
    return wizard_response(builder)


@app.route(WIZARD_PATH + '/close', methods=['POST'])
@admin_required
def api_wizard_close(framework_id):
    builder = get_wizard(framework_id)
    builder.close_wizard()
    response = wizard_response(builder)
    WIZARDS.pop(wizard_key(framework_id), None)
    return response


@app.route(WIZARD_PATH + '/next', methods=['POST'])
@admin_required
def api_wizard_next(framework_id):
    builder = get_wizard(framework_id)
    return wizard_response(builder, builder.go_to_next_step())


@app.route(WIZARD_PATH + '/prev', methods=['POST'])
@admin_required
def api_wizard_prev(framework_id):
    builder = get_wizard(framework_id)
    builder.go_to_prev_step()
    return wizard_response(builder)


@app.route(WIZARD_PATH + '/form', methods=['PATCH'])
@admin_required
def api_wizard_update_form(framework_id):
    builder = get_wizard(framework_id)
    apply_form(builder, body())
    return wizard_response(builder)


@app.route(WIZARD_PATH + '/levels', methods=['POST'])
@admin_required
def api_wizard_add_level(framework_id):
    builder = get_wizard(framework_id)
    ok = builder.add_level(level_from_json(body()))
    return wizard_response(builder, ok, 200 if ok else 400)


@app.route(WIZARD_PATH + '/levels/<int:index>', methods=['PUT'])
@admin_required
def api_wizard_update_level(framework_id, index):
    data = body()
    value = data.get('value')
    if value is not None:
        value = as_number(value, 'Level value')
    builder = get_wizard(framework_id)
    builder.update_level(index, label=data.get('label'), description=data.get('description'), value=value)
    return wizard_response(builder)


@app.route(WIZARD_PATH + '/levels/<int:index>', methods=['DELETE'])
@admin_required
def api_wizard_remove_level(framework_id, index):
    builder = get_wizard(framework_id)
    builder.remove_level(index)
    return wizard_response(builder)


@app.route(WIZARD_PATH + '/levels/<int:index>/<direction>', methods=['POST'])
@admin_required
def api_wizard_move_level(framework_id, index, direction):
    builder = get_wizard(framework_id)
    if direction == 'up':
        builder.move_level_up(index)
    elif direction == 'down':
        builder.move_level_down(index)
    else:
        return jsonify({'success': False, 'error': f'Unknown direction: {direction}'}), 400
    return wizard_response(builder)


@app.route(WIZARD_PATH + '/weights/<domain_id>', methods=['PUT'])
@admin_required
def api_wizard_set_weight(framework_id, domain_id):
    weight = as_number(body().get('weight', 0), 'Weight')
    builder = get_wizard(framework_id)
    builder.set_domain_weight(domain_id, weight)
    return wizard_response(builder)


@app.route(WIZARD_PATH + '/weights/distribute', methods=['POST'])
@admin_required
def api_wizard_distribute(framework_id):
    builder = get_wizard(framework_id)
    builder.distribute_weights_evenly()
    return wizard_response(builder)


@app.route(WIZARD_PATH + '/save', methods=['POST'])
@admin_required
def api_wizard_save(framework_id):
    builder = get_wizard(framework_id)
    data = body()
    if data:
        apply_form(builder, data)
    ok = builder.save_criteria()
    if not ok:
        return wizard_response(builder, ok, 400)
    notifier.notify_refresh('frameworks')
    response = wizard_response(builder)
    WIZARDS.pop(wizard_key(framework_id), None)
    return response


@app.route(WIZARD_PATH + '/delete-modal', methods=['POST'])
@admin_required
def api_wizard_delete_modal(framework_id):
    builder = get_wizard(framework_id)
    builder.set_is_delete_modal_open(body().get('open', False))
    return wizard_response(builder)


@app.route(WIZARD_PATH + '/delete', methods=['POST'])
@admin_required
def api_wizard_delete(framework_id):
    builder = get_wizard(framework_id)
    ok = builder.delete_criteria()
    if ok:
        notifier.notify_refresh('frameworks')
    return wizard_response(builder, ok, 200 if ok else 500)


# ============================================================================
# USERS
# ============================================================================

@app.route('/api/users', methods=['GET'])
@authorize()
def api_list_users():
    result = users.list_users(
        get_db(),
        claims=g.claims,
        role=request.args.get('role'),
        organization_id=request.args.get('organizationId'),
        limit=request.args.get('limit', config.USERS_PAGE_LIMIT, type=int),
    )
    return jsonify({'success': True, 'users': [dict(u.to_dict(), id=u.id) for u in result]})


@app.route('/api/users', methods=['POST'])
@admin_required
def api_create_user():
    data = body()
    user_id = users.create_user(
        get_db(), qiyas_auth.auth_client(),
        email=data.get('email'),
        password=data.get('password'),
        name=data.get('name'),
        role=data.get('role'),
        organization_id=data.get('organizationId', ''),
        assigned_project_ids=data.get('assignedProjectIds'),
        status=data.get('status', 'Active'),
        locale=data.get('locale'),
    )
    notifier.notify_refresh('users')
    return jsonify({'success': True, 'userId': user_id}), 201


@app.route('/api/users/<user_id>', methods=['GET'])
@authorize()
def api_get_user(user_id):
    if not qiyas_auth.can_manage_user(g.claims, user_id):
        return jsonify({'success': False, 'error': 'Forbidden - Insufficient permissions'}), 403
    user = users.get_user(get_db(), user_id)
    if user is None:
        return not_found('User', user_id)
    return jsonify({'success': True, 'user': dict(user.to_dict(), id=user.id)})


@app.route('/api/users/<user_id>', methods=['PUT'])
@authorize()
def api_update_user(user_id):
    if not qiyas_auth.can_manage_user(g.claims, user_id):
        return jsonify({'success': False, 'error': 'Forbidden - Insufficient permissions'}), 403
    data = body()
    if qiyas_auth.role_of(g.claims) != 'Admin':
        # Only admins may change roles, status or organization
        data = {key: value for key, value in data.items() if key in ('name', 'email', 'password', 'locale')}
    users.update_user(get_db(), qiyas_auth.auth_client(), user_id, data)
    notifier.notify_refresh('users')
    return jsonify({'success': True})


@app.route('/api/users/<user_id>/status', methods=['PUT'])
@admin_required
def api_set_user_status(user_id):
    users.set_user_status(get_db(), qiyas_auth.auth_client(), user_id, body().get('status'))
    notifier.notify_refresh('users')
    return jsonify({'success': True})


@app.route('/api/users/<user_id>', methods=['DELETE'])
@admin_required
def api_delete_user(user_id):
    users.delete_user(get_db(), qiyas_auth.auth_client(), user_id)
    notifier.notify_refresh('users')
    return jsonify({'success': True})


# ============================================================================
# DASHBOARD
# ============================================================================

@app.route('/api/dashboard/stats', methods=['GET'])
@authorize()
def api_dashboard_stats():
    if 'stats' not in DASHBOARD_CACHE:
        db = get_db()
        projects = directory.list_projects(db)
        by_status = {status.value: 0 for status in ProjectStatus}
        for project in projects:
            by_status[project.status.value] += 1
        DASHBOARD_CACHE['stats'] = {
            'users': users.user_stats(users.list_users(db)),
            'projects': {'total': len(projects), 'byStatus': by_status},
            'frameworks': {'total': len(taxonomy.list_frameworks(db))},
        }
    return jsonify({'success': True, 'stats': DASHBOARD_CACHE['stats'],
                    'lastRefreshed': {k: v.isoformat() if v else None for k, v in notifier.last_refreshed.items()}})


@app.route('/api/dashboard/refresh', methods=['POST'])
@authorize()
def api_dashboard_refresh():
    notifier.refresh_all()
    return jsonify({'success': True})


if __name__ == '__main__':
    app.run(debug=not config.IS_PRODUCTION, host='0.0.0.0', port=int(os.getenv('PORT', '5000')))
