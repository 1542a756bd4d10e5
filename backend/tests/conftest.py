import os, sys, pytest
# Ensure the backend directory is on path so 'bizconsole' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from bizconsole import create_app, get_db
from bizconsole.models.authz import Base
# Import all model modules to ensure tables are registered before create_all
import bizconsole.models.business  # noqa: F401
import bizconsole.models.branch  # noqa: F401
import bizconsole.models.employee  # noqa: F401
import bizconsole.models.client  # noqa: F401
import bizconsole.models.product  # noqa: F401
import bizconsole.models.invoice  # noqa: F401
import bizconsole.models.audit  # noqa: F401


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    app = create_app({
        'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
        'JWT_SECRET_KEY': 'test-secret-key-with-enough-length-for-hs256',
        # Tests and requests share the thread's session
        'DB_SESSION_TEARDOWN': False,
        'TESTING': True,
    })
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def app_ctx(app_instance):
    with app_instance.test_request_context():
        yield app_instance
