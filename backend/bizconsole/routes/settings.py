from flask import Blueprint, request, abort
from flask_jwt_extended import jwt_required
from sqlalchemy import select
from bizconsole import get_db
from bizconsole.models.business import Business, Profile
from bizconsole.decorators.auth import require_owner
from bizconsole.decorators.audit import audit_log
from bizconsole.services.scope import current_scope, current_identity_id
from bizconsole.utils.validation import require_text, optional_text, validate_email, validate_phone

settings_bp = Blueprint('settings', __name__)

BUSINESS_FIELDS = ('name', 'address', 'phone', 'email', 'logo_url')


def _business_json(b: Business):
    return {
        'id': b.id,
        'name': b.name,
        'address': b.address,
        'phone': b.phone,
        'email': b.email,
        'logo_url': b.logo_url,
        'owner_id': b.owner_id,
    }


def _profile_json(p: Profile):
    return {
        'identity_id': p.identity_id,
        'first_name': p.first_name,
        'last_name': p.last_name,
        'avatar_url': p.avatar_url,
    }


def _owned_business() -> Business:
    return get_db().execute(
        select(Business).where(Business.id == current_scope().business_id)
    ).scalar_one()


@settings_bp.get('/business')
@require_owner
def get_business():
    return _business_json(_owned_business())


@settings_bp.put('/business')
@require_owner
@audit_log(
    'BUSINESS.UPDATE',
    entity='Business',
    entity_id_key='id',
    diff_keys=BUSINESS_FIELDS,
    pre_fetch=lambda a, kw: _business_json(_owned_business()),
)
def update_business():
    business = _owned_business()
    data = request.get_json(silent=True) or {}
    if 'name' in data:
        business.name = require_text(data, 'name')
    if 'address' in data:
        business.address = optional_text(data, 'address')
    if 'phone' in data:
        business.phone = validate_phone(optional_text(data, 'phone'))
    if 'email' in data:
        business.email = validate_email(optional_text(data, 'email'))
    if 'logo_url' in data:
        business.logo_url = optional_text(data, 'logo_url')
    get_db().commit()
    return _business_json(business)


def _own_profile(create: bool = False):
    session = get_db()
    identity_id = current_identity_id()
    profile = session.execute(select(Profile).where(Profile.identity_id == identity_id)).scalar_one_or_none()
    if profile is None and create:
        profile = Profile(identity_id=identity_id)
        session.add(profile)
    return profile


@settings_bp.get('/profile')
@jwt_required()
def get_profile():
    profile = _own_profile()
    if profile is None:
        abort(404)
    return _profile_json(profile)


@settings_bp.put('/profile')
@jwt_required()
def update_profile():
    data = request.get_json(silent=True) or {}
    profile = _own_profile(create=True)
    for key in ('first_name', 'last_name', 'avatar_url'):
        if key in data:
            setattr(profile, key, optional_text(data, key))
    get_db().commit()
    return _profile_json(profile)
