import logging
from typing import List, Optional

from api.models import InboundMessage, Resolution
from api.services.matchers import Matcher, default_matchers
from lib.config import get_settings
from lib.database import Database

logger = logging.getLogger(__name__)

class ReplyResolver:
    """Map an inbound reply to the question, story and team member it answers.

    Matchers run in priority order (header, body, subject, sender with the
    unanswered-question fallback) and the first one returning a resolution
    wins. A miss is not an error: the returned Resolution then has no ids.
    Datastore failures propagate as DatastoreError.
    """

    def __init__(self, database: Database, matchers: Optional[List[Matcher]] = None):
        self.database = database
        self.matchers = matchers or default_matchers(database, get_settings().question_id_header)

    def resolve(self, message: InboundMessage) -> Resolution:
        logger.info(f"Resolving {message.channel} reply from {message.sender}")
        for matcher in self.matchers:
            resolution = matcher.match(message)
            if resolution is not None:
                logger.info(
                    f"Resolved by {resolution.matched_by}: question={resolution.question_id} "
                    f"story={resolution.story_id} member={resolution.team_member_id}"
                )
                return resolution

        logger.warning(f"Could not resolve {message.channel} reply from {message.sender}")
        return Resolution()
