import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from api.models import InboundMessage, Resolution
from api.services.inbound import html_to_text
from lib.database import Database

logger = logging.getLogger(__name__)

UUID_PATTERN = r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}'
UUID_RE = re.compile(UUID_PATTERN, re.IGNORECASE)

# Tried in order, first hit wins
BODY_PATTERNS = [
    re.compile(rf'Question\s+ID:\s*({UUID_PATTERN})', re.IGNORECASE),
    re.compile(rf'\[Question:\s*({UUID_PATTERN})\]', re.IGNORECASE),
    re.compile(rf'Vraag\s+ID:\s*({UUID_PATTERN})', re.IGNORECASE),
    re.compile(rf'\bID:\s*({UUID_PATTERN})', re.IGNORECASE),
]

SUBJECT_PATTERN = re.compile(rf'\[({UUID_PATTERN})\]', re.IGNORECASE)

def extract_body_question_id(text: str, html: str = '') -> Optional[str]:
    html_text = html_to_text(html)
    for pattern in BODY_PATTERNS:
        for content in (text, html_text):
            match = pattern.search(content or '')
            if match:
                logger.info(f"Found question ID with pattern: {pattern.pattern}")
                return match.group(1).lower()
    return None

def extract_subject_question_id(subject: str) -> Optional[str]:
    match = SUBJECT_PATTERN.search(subject or '')
    return match.group(1).lower() if match else None

class Matcher(ABC):
    """One step of reply resolution; returns None to defer to the next step"""
    name = 'matcher'

    def __init__(self, database: Database):
        self.database = database

    @abstractmethod
    def match(self, message: InboundMessage) -> Optional[Resolution]:
        pass

    def find_sender(self, message: InboundMessage, story_id: Optional[str] = None) -> List[Dict[str, Any]]:
        if message.channel == 'whatsapp':
            return self.database.find_team_members(phone_number=message.sender, story_id=story_id)
        return self.database.find_team_members(email=message.sender, story_id=story_id)

    def resolution_for(
        self,
        story_id: str,
        member: Optional[Dict[str, Any]],
        question_id: Optional[str] = None,
        matched_by: Optional[str] = None
    ) -> Resolution:
        return Resolution(
            question_id=question_id,
            story_id=story_id,
            team_member_id=member['id'] if member else None,
            team_member_name=member.get('name') if member else None,
            user_id=(member.get('user_id') or member['id']) if member else None,
            matched_by=matched_by or self.name
        )

class IdentifierMatcher(Matcher):
    """Base for matchers that read an explicit question id from the message"""

    @abstractmethod
    def extract(self, message: InboundMessage) -> Optional[str]:
        pass

    def match(self, message: InboundMessage) -> Optional[Resolution]:
        question_id = self.extract(message)
        if not question_id:
            return None

        question = self.database.get_question(question_id)
        if not question:
            logger.warning(f"Question ID {question_id} from {self.name} not found, continuing")
            return None

        story_id = question['story_id']
        members = self.find_sender(message, story_id=story_id)
        member = members[0] if members else None
        logger.info(f"Found question ID in {self.name}: {question_id} (story {story_id})")
        return self.resolution_for(story_id, member, question_id=question_id)

class HeaderMatcher(IdentifierMatcher):
    name = 'header'

    def __init__(self, database: Database, header_name: str):
        super().__init__(database)
        self.header_name = header_name

    def extract(self, message: InboundMessage) -> Optional[str]:
        value = (message.header(self.header_name) or '').strip()
        if not value:
            return None
        if not UUID_RE.fullmatch(value):
            logger.warning(f"Ignoring malformed {self.header_name} header: {value!r}")
            return None
        return value.lower()

class BodyMatcher(IdentifierMatcher):
    name = 'body'

    def extract(self, message: InboundMessage) -> Optional[str]:
        return extract_body_question_id(message.text, message.html)

class SubjectMatcher(IdentifierMatcher):
    name = 'subject'

    def extract(self, message: InboundMessage) -> Optional[str]:
        return extract_subject_question_id(message.subject)

class SenderMatcher(Matcher):
    """Find the story through the sender's team membership, then fall back to
    the most recent unanswered question of that story."""
    name = 'sender'

    def match(self, message: InboundMessage) -> Optional[Resolution]:
        members = self.find_sender(message)
        if not members:
            logger.warning(f"Team member not found for {message.channel} sender: {message.sender}")
            return None
        if len(members) > 1:
            logger.warning(
                f"{len(members)} team members share {message.sender}, "
                f"using most recently invited: {members[0]['id']}"
            )

        member = members[0]
        story_id = member['story_id']
        logger.info(f"Found story ID from team member: {story_id}")

        question = self.latest_unanswered_question(story_id)
        if question is None:
            logger.warning(f"No unanswered questions found for story: {story_id}")
            return self.resolution_for(story_id, member)

        logger.info(f"Found recent question ID by team member lookup: {question['id']}")
        return self.resolution_for(story_id, member, question_id=question['id'], matched_by='fallback')

    def latest_unanswered_question(self, story_id: str) -> Optional[Dict[str, Any]]:
        answered = self.database.answered_question_ids(story_id)
        questions = self.database.list_questions(story_id)
        unanswered = [question for question in questions if question['id'] not in answered]
        if not unanswered:
            return None
        return max(unanswered, key=lambda question: question.get('created_at') or '')

def default_matchers(database: Database, question_id_header: str) -> List[Matcher]:
    return [
        HeaderMatcher(database, question_id_header),
        BodyMatcher(database),
        SubjectMatcher(database),
        SenderMatcher(database),
    ]
