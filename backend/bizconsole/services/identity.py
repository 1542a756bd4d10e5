from __future__ import annotations
from typing import Dict, Optional
from flask import abort, current_app
from flask_jwt_extended import create_access_token
from sqlalchemy import select
from bizconsole import get_db
from bizconsole.models.authz import Identity, RevokedToken
from bizconsole.models.business import Business, Profile
from bizconsole.services.scope import find_owned_business_id, find_employee_profile
from bizconsole.utils.validation import validate_email

MIN_PASSWORD_LENGTH = 6


def _check_password(password) -> str:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        abort(400, description=f'password must be at least {MIN_PASSWORD_LENGTH} characters')
    return password


def create_identity(session, email: str, password: str) -> Identity:
    """Add a new identity to ``session`` without committing."""
    email = validate_email(email, required=True)
    _check_password(password)
    if session.execute(select(Identity).where(Identity.email == email)).scalar_one_or_none():
        abort(409, description='email already registered')
    ident = Identity(email=email, password_hash='')
    ident.set_password(password)
    session.add(ident)
    session.flush()
    return ident


def sign_up(email: str, password: str) -> Identity:
    session = get_db()
    ident = create_identity(session, email, password)
    session.commit()
    current_app.logger.info('Signed up identity %s', ident.id)
    return ident


def authenticate(email: Optional[str], password: Optional[str]) -> Identity:
    if not email or not password:
        abort(400, description='email & password required')
    if not isinstance(email, str) or not isinstance(password, str):
        abort(400, description='email & password must be strings')
    ident = get_db().execute(
        select(Identity).where(Identity.email == email.lower())
    ).scalar_one_or_none()
    if not ident or not ident.is_active or not ident.verify_password(password):
        current_app.logger.info('Failed sign-in for %s', email)
        abort(401, description='invalid credentials')
    return ident


def session_claims(identity_id: int) -> Dict:
    business_id = find_owned_business_id(identity_id)
    if business_id is not None:
        return {'business_id': business_id, 'is_owner': True, 'employee_id': None}
    profile = find_employee_profile(identity_id)
    if profile is not None:
        return {'business_id': profile.business_id, 'is_owner': False, 'employee_id': profile.id}
    return {'business_id': None, 'is_owner': False, 'employee_id': None}


def issue_token(ident: Identity) -> str:
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    return create_access_token(identity=str(ident.id), additional_claims=session_claims(ident.id))


def revoke_token(jti: str, identity_id: int):
    session = get_db()
    if not is_token_revoked(jti):
        session.add(RevokedToken(jti=jti, identity_id=identity_id))
        session.commit()


def is_token_revoked(jti: str) -> bool:
    return get_db().execute(
        select(RevokedToken.id).where(RevokedToken.jti == jti)
    ).scalar_one_or_none() is not None


def get_identity(identity_id: int) -> Identity:
    ident = get_db().execute(select(Identity).where(Identity.id == identity_id)).scalar_one_or_none()
    if ident is None:
        abort(404)
    return ident


def change_password(identity_id: int, new_password: str):
    ident = get_identity(identity_id)
    ident.set_password(_check_password(new_password))
    get_db().commit()


def split_full_name(full_name: str):
    parts = (full_name or '').split()
    if not parts:
        return None, None
    return parts[0], ' '.join(parts[1:]) or None


def setup_business(email: str, password: str, business_name: str, owner_name: str) -> Business:
    """Create owner identity, business and profile as one unit."""
    session = get_db()
    try:
        ident = create_identity(session, email, password)
        business = Business(name=business_name, owner_id=ident.id)
        session.add(business)
        first, last = split_full_name(owner_name)
        session.add(Profile(identity_id=ident.id, first_name=first, last_name=last))
        session.commit()
    except Exception:
        session.rollback()
        raise
    current_app.logger.info('Business %s set up for identity %s', business.id, ident.id)
    return business
