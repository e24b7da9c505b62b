import os, sys, pytest
# Ensure backend directory is on path so 'taskhub' and 'tests' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from taskhub import create_app, get_db
from taskhub.models.authz import Base
# Import all model modules to ensure tables are registered before create_all
import taskhub.models.project  # noqa: F401
import taskhub.models.stage  # noqa: F401
import taskhub.models.task  # noqa: F401
import taskhub.models.document  # noqa: F401
import taskhub.models.activity  # noqa: F401
import taskhub.models.notification  # noqa: F401

@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({'DATABASE_URL': 'sqlite+pysqlite:///:memory:', 'JWT_SECRET_KEY': 'test-secret-key-with-enough-length'})
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app

@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()
