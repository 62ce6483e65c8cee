import json
import logging
from typing import Any, Dict, List

from lib.database import Database, utc_now
from lib.error_handler import NotFoundError, PayloadError

logger = logging.getLogger(__name__)

def decode_forwarded_to(value: Any) -> List[str]:
    """forwarded_to is stored either as a JSON string or as an array"""
    if not value:
        return []
    if isinstance(value, list):
        return value
    try:
        decoded = json.loads(value)
    except (TypeError, ValueError):
        logger.warning(f"Could not parse forwarded_to: {value!r}")
        return []
    return decoded if isinstance(decoded, list) else []

class QuestionTrackingService:
    """Keeps track of who a question was forwarded to, and how"""

    def __init__(self, database: Database):
        self.database = database

    def track_forward(self, question_id: str, team_member_name: str, method: str, story_id: str) -> Dict[str, Any]:
        if not question_id or not team_member_name or not method or not story_id:
            raise PayloadError("Question ID, team member name, method, and story ID are required")

        question = self.database.get_question(question_id)
        if not question:
            raise NotFoundError("Question not found")

        forwarded_to = decode_forwarded_to(question.get('forwarded_to'))
        if team_member_name not in forwarded_to:
            forwarded_to.append(team_member_name)

        updated = self.database.update_question(question_id, {
            'forwarded_to': json.dumps(forwarded_to),
            'forwarded_at': utc_now(),
            'forwarded_count': (question.get('forwarded_count') or 0) + 1,
            'last_forwarded_method': method
        }) or {}
        logger.info(f"Question {question_id} forwarded to {team_member_name} via {method}")

        return {
            'forwarded_to': forwarded_to,
            'forwarded_at': updated.get('forwarded_at'),
            'forwarded_count': updated.get('forwarded_count'),
            'last_forwarded_method': updated.get('last_forwarded_method')
        }

    def get_tracking(self, question_id: str) -> Dict[str, Any]:
        if not question_id:
            raise PayloadError("Question ID is required")

        question = self.database.get_question(question_id)
        if not question:
            raise NotFoundError("Question not found")

        return {
            'forwarded_to': decode_forwarded_to(question.get('forwarded_to')),
            'forwarded_at': question.get('forwarded_at'),
            'forwarded_count': question.get('forwarded_count') or 0,
            'last_forwarded_method': question.get('last_forwarded_method')
        }
