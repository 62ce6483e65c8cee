import logging
from typing import Any, Dict, List, Optional

from api.models import InboundMessage
from api.services.inbound import clean_reply_content, html_to_text
from api.services.resolver import ReplyResolver
from lib.database import Database
from lib.error_handler import NotFoundError, PayloadError, TransitionError

logger = logging.getLogger(__name__)

# Moderation order; a response only ever moves forward
RESPONSE_STATUSES = ['received', 'reviewed', 'integrated']

class EmailReplyService:
    def __init__(self, database: Database, resolver: ReplyResolver):
        self.database = database
        self.resolver = resolver

    def handle_reply(self, message: InboundMessage) -> Dict[str, Any]:
        """Resolve an inbound email and store it as an email response.

        The row is written even when nothing matched, with null ids, so the
        reply can still be picked up by hand.
        """
        resolution = self.resolver.resolve(message)

        response_content = clean_reply_content(message.text or html_to_text(message.html, drop_quotes=True))
        logger.info(f"Cleaned response content: {response_content[:100]}...")

        member_name = resolution.team_member_name or message.sender_name or message.sender or 'Unknown Sender'
        record = {
            'question_id': resolution.question_id,
            'story_id': resolution.story_id,
            'team_member_id': resolution.team_member_id,
            'team_member_name': member_name,
            'sender_email': message.sender,
            'response_content': response_content,
            'email_message_id': message.message_id,
            'status': RESPONSE_STATUSES[0]
        }
        stored = self.database.insert_email_response(record)
        logger.info(f"Email response stored successfully: {stored['id']}")

        return {
            'responseId': stored['id'],
            **resolution.to_dict(),
            'memberName': member_name,
            'matchedBy': resolution.matched_by
        }

    def list_responses(
        self,
        question_id: Optional[str] = None,
        story_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        if not question_id and not story_id:
            raise PayloadError("Either question ID or story ID is required")
        return self.database.list_email_responses(question_id=question_id, story_id=story_id)

    def update_status(self, response_id: str, status: str) -> Dict[str, Any]:
        if not response_id or not status:
            raise PayloadError("Response ID and status are required")
        if status not in RESPONSE_STATUSES:
            raise PayloadError(f"Status must be one of: {', '.join(RESPONSE_STATUSES)}")

        current = self.database.get_email_response(response_id)
        if not current:
            raise NotFoundError(f"Email response {response_id} not found")

        current_status = current.get('status')
        if current_status not in RESPONSE_STATUSES:
            current_status = RESPONSE_STATUSES[0]
        if RESPONSE_STATUSES.index(status) <= RESPONSE_STATUSES.index(current_status):
            raise TransitionError(f"Cannot move email response from {current_status} to {status}")

        logger.info(f"Email response {response_id}: {current_status} -> {status}")
        return self.database.update_email_response(response_id, {'status': status})
