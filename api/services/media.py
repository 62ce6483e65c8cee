import asyncio
import logging
import os
import tempfile
from typing import Any, Dict, Optional

import aiohttp
from openai import OpenAI

from api.models import MediaAttachment

logger = logging.getLogger(__name__)

def classify_media(content_type: str) -> str:
    """Map a MIME type onto the media_answers media_type column"""
    content_type = (content_type or '').lower()
    for media_type in ('audio', 'image', 'video'):
        if content_type.startswith(f'{media_type}/'):
            return media_type
    return 'document'

class MediaService:
    """Download WhatsApp media from Twilio and describe it for storage"""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        timeout: int = 20,
        openai_client: Optional[OpenAI] = None
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.timeout = timeout
        self.openai_client = openai_client
        logger.info(f"Media service initialized, transcription: {bool(openai_client)}")

    async def process(self, attachment: MediaAttachment) -> Optional[Dict[str, Any]]:
        """Return media_answers fields for an attachment, None if it could not be downloaded"""
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
                download = await self._download_media(session, attachment.url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Error downloading Twilio media: {str(e)}")
            return None
        if download is None:
            return None

        content_type = download['content_type'] or attachment.content_type
        media_type = classify_media(attachment.content_type or content_type)
        media = {
            'media_url': attachment.url,
            'media_type': media_type,
            'file_size': download['size'],
        }

        if media_type == 'audio' and self.openai_client:
            media['transcription'] = await self.transcribe(download['data'], content_type)
        return media

    async def _download_media(self, session, url: str) -> Optional[Dict[str, Any]]:
        logger.info("Downloading media file...")
        auth = aiohttp.BasicAuth(login=self.account_sid, password=self.auth_token)

        async with session.get(url, auth=auth) as response:
            if response.status != 200:
                logger.error(f"Failed to download media: {response.status}")
                return None
            data = await response.read()
            logger.info(f"Media file downloaded: {len(data)} bytes")
            return {
                'data': data,
                'content_type': response.headers.get('Content-Type', ''),
                'size': len(data),
            }

    async def transcribe(self, data: bytes, content_type: str) -> Optional[str]:
        """Transcribe a voice message with Whisper; None when it fails"""
        extension = self._get_extension_from_content_type(content_type)
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, self._transcribe_sync, data, extension)
        except Exception as e:
            logger.error(f"Error transcribing audio: {str(e)}")
            return None

    def _transcribe_sync(self, data: bytes, extension: str) -> str:
        with tempfile.NamedTemporaryFile(suffix=f'.{extension}', delete=False) as temp_file:
            temp_file.write(data)
            temp_path = temp_file.name
        try:
            with open(temp_path, 'rb') as audio_file:
                transcript = self.openai_client.audio.transcriptions.create(
                    model="whisper-1",
                    file=audio_file,
                    response_format="text"
                )
        finally:
            os.remove(temp_path)
        logger.info(f"Transcription complete: {transcript[:50]}...")
        return transcript

    def _get_extension_from_content_type(self, content_type: str) -> str:
        """Convert content type to file extension"""
        content_type_map = {
            'audio/ogg': 'ogg',
            'audio/opus': 'ogg',
            'audio/mpeg': 'mp3',
            'audio/mp3': 'mp3',
            'audio/mp4': 'm4a',
            'audio/m4a': 'm4a',
            'audio/aac': 'm4a',
            'audio/wav': 'wav',
            'audio/x-wav': 'wav',
            'audio/webm': 'webm',
            'audio/amr': 'amr',
        }
        base_type = (content_type or '').split(';')[0].strip().lower()
        extension = content_type_map.get(base_type)
        if not extension:
            logger.warning(f"Unknown content type: {content_type}, defaulting to ogg")
            return 'ogg'
        return extension
