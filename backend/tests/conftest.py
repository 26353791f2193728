import os, sys, pytest
# Ensure backend directory is on path so 'repairdesk' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from repairdesk import create_app, get_db
from repairdesk.models.authz import Base
from repairdesk.services.transports import SendResult
# Import all model modules to ensure tables are registered before create_all
import repairdesk.models.audit  # noqa: F401
import repairdesk.models.client  # noqa: F401
import repairdesk.models.service  # noqa: F401
import repairdesk.models.spare_part_order  # noqa: F401
import repairdesk.models.removed_part  # noqa: F401
import repairdesk.models.notification  # noqa: F401


class RecordingSink:
    """In-memory transport: remembers every send; ``fail_with`` turns sends into failures."""

    def __init__(self, channel):
        self.channel = channel
        self.sent = []
        self.fail_with = None

    def send(self, recipient, body, subject=None):
        self.sent.append({'recipient': recipient, 'body': body, 'subject': subject})
        if self.fail_with:
            return SendResult(False, error=self.fail_with)
        return SendResult(True, message_id=f"{self.channel}-{len(self.sent)}")


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({'DATABASE_URL': 'sqlite+pysqlite:///:memory:', 'TESTING': True})
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture(autouse=True)
def sinks(app_instance):
    registry = {ch: RecordingSink(ch) for ch in ('sms', 'whatsapp', 'email')}
    app_instance.extensions['notification_sinks'] = registry
    yield registry


@pytest.fixture()
def client(app_instance):
    with app_instance.app_context():
        yield app_instance.test_client()
