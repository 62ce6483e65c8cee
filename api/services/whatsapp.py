import logging
from typing import Optional

from api.models import InboundMessage
from api.services.media import MediaService
from api.services.resolver import ReplyResolver
from lib.database import Database
from lib.error_handler import ErrorHandler

logger = logging.getLogger(__name__)

MEDIA_PLACEHOLDER = '[Voice message or media]'

class WhatsAppReplyService:
    def __init__(self, database: Database, resolver: ReplyResolver, media_service: Optional[MediaService] = None):
        self.database = database
        self.resolver = resolver
        self.media = media_service
        self.error_handler = ErrorHandler()

    async def handle_reply(self, message: InboundMessage) -> str:
        """Store a WhatsApp reply as an answer and return the text to send back"""
        logger.info(f"Received WhatsApp message from {message.sender}: {message.text[:100]}")

        resolution = self.resolver.resolve(message)
        if not resolution.question_id:
            logger.info(f"No matching question found for phone number: {message.sender}")
            return self.error_handler.no_open_question()

        if not resolution.user_id:
            logger.warning(f"Answer for question {resolution.question_id} has no known team member")

        answer = self.database.insert_answer({
            'question_id': resolution.question_id,
            'story_id': resolution.story_id,
            'user_id': resolution.user_id,
            'answer': message.text or MEDIA_PLACEHOLDER
        })
        logger.info(f"Answer saved successfully: {answer['id']}")

        await self.store_media(answer['id'], message)

        member_name = resolution.team_member_name or message.sender_name or message.sender
        return self.error_handler.thank_you(member_name)

    async def store_media(self, answer_id: str, message: InboundMessage) -> int:
        """Link downloaded attachments to an answer, returns how many were stored"""
        if not message.media or not self.media:
            return 0

        stored = 0
        for attachment in message.media:
            logger.info(f"Processing media attachment: {attachment.content_type}")
            media = await self.media.process(attachment)
            if media is None:
                logger.error(f"Skipping media that could not be downloaded: {attachment.url}")
                continue
            self.database.insert_media_answer({'answer_id': answer_id, **media})
            stored += 1
        logger.info(f"Media answers saved: {stored}/{len(message.media)}")
        return stored
