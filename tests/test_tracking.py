import json

import pytest

from api.services.tracking import QuestionTrackingService, decode_forwarded_to
from lib.error_handler import NotFoundError, PayloadError
from conftest import QUESTION_ID, STORY_ID, make_question

@pytest.fixture
def service(mock_database):
    return QuestionTrackingService(mock_database)

def test_decode_forwarded_to():
    assert decode_forwarded_to(None) == []
    assert decode_forwarded_to(['Jan']) == ['Jan']
    assert decode_forwarded_to('["Jan", "Els"]') == ['Jan', 'Els']
    assert decode_forwarded_to('not json') == []

def test_first_forward(service, mock_database):
    mock_database.get_question.return_value = make_question(QUESTION_ID)
    mock_database.update_question.side_effect = lambda question_id, fields: {'id': question_id, **fields}

    tracking = service.track_forward(QUESTION_ID, 'Jan', 'whatsapp', STORY_ID)

    assert tracking['forwarded_to'] == ['Jan']
    assert tracking['forwarded_count'] == 1
    assert tracking['last_forwarded_method'] == 'whatsapp'
    fields = mock_database.update_question.call_args[0][1]
    assert json.loads(fields['forwarded_to']) == ['Jan']
    assert fields['forwarded_at']

def test_repeat_forward_keeps_names_unique(service, mock_database):
    mock_database.get_question.return_value = make_question(
        QUESTION_ID, forwarded_to='["Jan"]', forwarded_count=1, last_forwarded_method='email'
    )
    mock_database.update_question.side_effect = lambda question_id, fields: {'id': question_id, **fields}

    tracking = service.track_forward(QUESTION_ID, 'Jan', 'whatsapp', STORY_ID)

    assert tracking['forwarded_to'] == ['Jan']
    assert tracking['forwarded_count'] == 2

def test_forward_requires_all_fields(service):
    with pytest.raises(PayloadError):
        service.track_forward(QUESTION_ID, 'Jan', '', STORY_ID)

def test_forward_of_unknown_question(service, mock_database):
    with pytest.raises(NotFoundError):
        service.track_forward(QUESTION_ID, 'Jan', 'email', STORY_ID)

def test_tracking_over_http(test_client, mock_database):
    mock_database.get_question.return_value = make_question(
        QUESTION_ID, forwarded_to=['Jan', 'Els'], forwarded_count=2, last_forwarded_method='email'
    )

    response = test_client.get(f'/questions/track?questionId={QUESTION_ID}')

    assert response.status_code == 200
    assert response.json['tracking']['forwarded_to'] == ['Jan', 'Els']
    assert response.json['tracking']['forwarded_count'] == 2

def test_tracking_unknown_question_over_http(test_client):
    response = test_client.get(f'/questions/track?questionId={QUESTION_ID}')

    assert response.status_code == 404

def test_track_post_over_http(test_client, mock_database):
    mock_database.get_question.return_value = make_question(QUESTION_ID)
    mock_database.update_question.side_effect = lambda question_id, fields: {'id': question_id, **fields}

    response = test_client.post('/questions/track', json={
        'questionId': QUESTION_ID,
        'teamMemberName': 'Els',
        'method': 'email',
        'storyId': STORY_ID,
    })

    assert response.status_code == 200
    assert response.json['tracking']['forwarded_to'] == ['Els']
