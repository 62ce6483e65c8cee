import os
import sys
from contextlib import ExitStack
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

# Add project root to Python path
project_root = str(Path(__file__).parent.parent)
sys.path.append(project_root)

# Settings are read at import time
os.environ.update({
    'SUPABASE_URL': 'https://test-project.supabase.co',
    'SUPABASE_KEY': 'test-service-key',
    'TWILIO_ACCOUNT_SID': 'ACtest',
    'TWILIO_AUTH_TOKEN': 'test-token',
    'TWILIO_WHATSAPP_NUMBER': 'whatsapp:+14155238886',
    'WHATSAPP_ENABLED': 'true',
    'TRANSCRIBE_AUDIO': 'false',
})

# Mock Supabase before importing app
import supabase
def mock_create_client(*args, **kwargs):
    mock_client = MagicMock()
    mock_client.table = MagicMock()
    mock_client.auth = MagicMock()
    return mock_client

supabase.create_client = mock_create_client

# Now we can safely import the app
from api import routes
from api.models import InboundMessage
from api.services.matchers import default_matchers
from lib.database import Database

STORY_ID = '22222222-2222-2222-2222-222222222222'
OTHER_STORY_ID = '33333333-3333-3333-3333-333333333333'
QUESTION_ID = '11111111-1111-1111-1111-111111111111'
MEMBER_ID = '44444444-4444-4444-4444-444444444444'
USER_ID = '55555555-5555-5555-5555-555555555555'

JAN = {
    'id': MEMBER_ID,
    'story_id': STORY_ID,
    'user_id': USER_ID,
    'name': 'Jan',
    'email': 'jan@example.com',
    'phone_number': '+31612345678',
    'role': 'family',
    'status': 'active',
    'invited_at': '2025-03-01T10:00:00+00:00',
}

def make_question(question_id: str, story_id: str = STORY_ID, created_at: str = '2025-03-01T12:00:00+00:00', **fields):
    return {
        'id': question_id,
        'story_id': story_id,
        'question': 'Wat was je eerste baan?',
        'created_at': created_at,
        'sent_at': None,
        **fields
    }

def email_message(**fields) -> InboundMessage:
    data = {
        'channel': 'email',
        'sender': 'stranger@example.com',
        'sender_name': 'Stranger',
        'subject': 'Re: Vraag voor je verhaal - WriteMyStory',
        'text': 'Mijn antwoord',
        'message_id': '<reply-1@mail.example.com>',
        'service': 'postmark',
    }
    data.update(fields)
    return InboundMessage(**data)

def whatsapp_message(**fields) -> InboundMessage:
    data = {
        'channel': 'whatsapp',
        'sender': JAN['phone_number'],
        'sender_name': 'Jan',
        'text': 'Dat was bij de bakker op de hoek.',
        'message_id': 'SM123',
        'service': 'twilio',
    }
    data.update(fields)
    return InboundMessage(**data)

@pytest.fixture
def mock_database():
    """Datastore gateway with nothing in it"""
    mock_db = MagicMock(spec=Database)
    mock_db.get_question.return_value = None
    mock_db.find_team_members.return_value = []
    mock_db.list_questions.return_value = []
    mock_db.answered_question_ids.return_value = set()
    mock_db.insert_email_response.side_effect = lambda record: {'id': 'response-1', **record}
    mock_db.insert_answer.side_effect = lambda record: {'id': 'answer-1', **record}
    mock_db.insert_media_answer.side_effect = lambda record: {'id': 'media-1', **record}
    return mock_db

@pytest.fixture
def test_client(mock_database):
    """Flask client whose services all talk to mock_database"""
    routes.app.config['TESTING'] = True
    with ExitStack() as stack:
        stack.enter_context(patch.object(
            routes.resolver, 'matchers',
            default_matchers(mock_database, routes.settings.question_id_header)
        ))
        for service in (routes.email_service, routes.whatsapp_service, routes.tracking_service):
            stack.enter_context(patch.object(service, 'database', mock_database))
        yield routes.app.test_client()
