import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from api.models import MediaAttachment
from api.services.media import MediaService, classify_media

MEDIA_URL = 'https://api.twilio.com/2010-04-01/Accounts/ACtest/Messages/MM1/Media/ME1'

def fake_response(status=200, data=b'OggS' + b'\x00' * 60, content_type='audio/ogg'):
    mock_response = MagicMock()
    mock_response.status = status
    mock_response.read = AsyncMock(return_value=data)
    mock_response.headers = {'Content-Type': content_type}

    class AsyncContextManager:
        async def __aenter__(self):
            return mock_response
        async def __aexit__(self, exc_type, exc_val, exc_tb):
            pass

    return AsyncContextManager()

@pytest.mark.parametrize('content_type,media_type', [
    ('audio/ogg', 'audio'),
    ('image/jpeg', 'image'),
    ('video/mp4', 'video'),
    ('application/pdf', 'document'),
    ('', 'document'),
])
def test_classify_media(content_type, media_type):
    assert classify_media(content_type) == media_type

@pytest.mark.asyncio
async def test_downloads_with_twilio_credentials():
    service = MediaService(account_sid='ACtest', auth_token='secret')

    with patch('aiohttp.ClientSession.get', return_value=fake_response()) as mock_get:
        media = await service.process(MediaAttachment(url=MEDIA_URL, content_type='audio/ogg'))

    assert media == {'media_url': MEDIA_URL, 'media_type': 'audio', 'file_size': 64}
    auth = mock_get.call_args.kwargs['auth']
    assert (auth.login, auth.password) == ('ACtest', 'secret')

@pytest.mark.asyncio
async def test_failed_download_returns_none():
    service = MediaService(account_sid='ACtest', auth_token='secret')

    with patch('aiohttp.ClientSession.get', return_value=fake_response(status=404)):
        media = await service.process(MediaAttachment(url=MEDIA_URL, content_type='image/png'))

    assert media is None

@pytest.mark.asyncio
async def test_audio_is_transcribed_when_enabled():
    openai_client = MagicMock()
    openai_client.audio.transcriptions.create.return_value = 'Mijn opa werkte bij de haven.'
    service = MediaService(account_sid='ACtest', auth_token='secret', openai_client=openai_client)

    with patch('aiohttp.ClientSession.get', return_value=fake_response()):
        media = await service.process(MediaAttachment(url=MEDIA_URL, content_type='audio/ogg'))

    assert media['transcription'] == 'Mijn opa werkte bij de haven.'
    assert openai_client.audio.transcriptions.create.call_args.kwargs['model'] == 'whisper-1'

@pytest.mark.asyncio
async def test_images_are_not_transcribed():
    openai_client = MagicMock()
    service = MediaService(account_sid='ACtest', auth_token='secret', openai_client=openai_client)

    with patch('aiohttp.ClientSession.get', return_value=fake_response(content_type='image/jpeg')):
        media = await service.process(MediaAttachment(url=MEDIA_URL, content_type='image/jpeg'))

    assert media['media_type'] == 'image'
    assert 'transcription' not in media
    openai_client.audio.transcriptions.create.assert_not_called()

def test_extension_from_content_type():
    service = MediaService(account_sid='ACtest', auth_token='secret')

    assert service._get_extension_from_content_type('audio/ogg; codecs=opus') == 'ogg'
    assert service._get_extension_from_content_type('audio/mpeg') == 'mp3'
    assert service._get_extension_from_content_type('audio/unknown') == 'ogg'
