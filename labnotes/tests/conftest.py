import pytest

from app import create_admin_user, create_app
from auth_database import AuthSessionLocal
from config import MailConfig, ServerConfig
from services.auth_service import AuthService
from services.notification_dispatcher import MailTransport, NotificationDispatcher
from services.user_management import user_manager

ADMIN_PASSWORD = 'admin123'
DEMO_PASSWORD = 'demo1234'


class RecordingTransport(MailTransport):
    """Accepts every message and keeps it for assertions."""

    name = 'recording'

    def __init__(self):
        self.messages = []

    async def deliver(self, message):
        self.messages.append(message)


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    monkeypatch.setenv('BCRYPT_ROUNDS', '4')


@pytest.fixture
def app(tmp_path):
    app = create_app(
        server_config=ServerConfig(secret_key='test-secret'),
        mail_config=MailConfig(),
        config_overrides={
            'TESTING': True,
            'DATABASE_URL': 'sqlite://',
            'BCRYPT_ROUNDS': 4,
            'RATELIMIT_ENABLED': False,
            'UPLOAD_DIR': str(tmp_path / 'uploads'),
        },
    )
    db = AuthSessionLocal()
    try:
        create_admin_user(db, 'admin', 'admin@example.com', ADMIN_PASSWORD)
        user_manager.create_user(
            db,
            username='demo',
            email='demo@example.com',
            hashed_password=AuthService(bcrypt_rounds=4).get_password_hash(DEMO_PASSWORD),
            display_name='Demo User',
        )
    finally:
        db.close()
    yield app


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def db(app):
    session = AuthSessionLocal()
    yield session
    session.close()


@pytest.fixture
def mail_outbox(app):
    transport = RecordingTransport()
    services = app.extensions['labnotes']
    services.mailer = NotificationDispatcher(
        MailConfig(host='smtp.example.com', user='notes@example.com', password='secret'),
        transport=transport,
        base_url='http://localhost:5000',
    )
    return transport.messages


def login(client, username='admin', password=ADMIN_PASSWORD):
    response = client.post('/api/auth/login', json={'username': username, 'password': password})
    assert response.status_code == 200, response.get_json()
    return response.get_json()['token']


def auth_header(token):
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_token(client):
    return login(client)


@pytest.fixture
def demo_token(client):
    return login(client, 'demo', DEMO_PASSWORD)
