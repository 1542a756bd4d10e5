from flask import Blueprint, request
from flask_jwt_extended import jwt_required, get_jwt
from bizconsole.services.identity import (
    sign_up, authenticate, issue_token, revoke_token, get_identity, change_password,
)
from bizconsole.services.scope import current_identity_id
from bizconsole.services.session import ConsoleSession

auth_bp = Blueprint('auth', __name__)


@auth_bp.post('/signup')
def signup():
    data = request.get_json(silent=True) or {}
    ident = sign_up(data.get('email'), data.get('password'))
    return {'id': ident.id, 'email': ident.email}, 201


@auth_bp.post('/login')
def login():
    data = request.get_json(silent=True) or {}
    ident = authenticate(data.get('email'), data.get('password'))
    return {'access_token': issue_token(ident)}


@auth_bp.post('/logout')
@jwt_required()
def logout():
    claims = get_jwt()
    revoke_token(claims['jti'], current_identity_id())
    return {'status': 'signed_out'}


@auth_bp.get('/session')
@jwt_required()
def current_session():
    ident = get_identity(current_identity_id())
    return ConsoleSession(identity_id=ident.id, email=ident.email).load().to_json()


@auth_bp.put('/password')
@jwt_required()
def update_password():
    data = request.get_json(silent=True) or {}
    change_password(current_identity_id(), data.get('password'))
    return {'status': 'updated'}
