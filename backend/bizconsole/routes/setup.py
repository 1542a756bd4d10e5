from flask import Blueprint, request
from sqlalchemy import select
from bizconsole import get_db
from bizconsole.models.business import Business
from bizconsole.services.identity import setup_business
from bizconsole.services.audit import add_audit
from bizconsole.utils.validation import require_text

setup_bp = Blueprint('setup', __name__)


@setup_bp.get('/status')
def setup_status():
    first = get_db().execute(select(Business.id).limit(1)).scalar_one_or_none()
    return {'initialized': first is not None}


@setup_bp.post('')
def run_setup():
    data = request.get_json(silent=True) or {}
    business_name = require_text(data, 'business_name', 2)
    owner_name = require_text(data, 'owner_name', 2)
    business = setup_business(data.get('email'), data.get('password'), business_name, owner_name)
    add_audit('BUSINESS.SETUP', 'Business', business.id, {'name': business.name},
              business_id=business.id, actor_id=business.owner_id)
    get_db().commit()
    return {'business_id': business.id, 'name': business.name, 'owner_id': business.owner_id}, 201
