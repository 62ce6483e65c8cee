from datetime import datetime, timezone
from typing import Dict, List, Optional, Any, Set
from supabase import create_client, Client

from lib.config import get_settings
from lib.error_handler import DatastoreError

settings = get_settings()

def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()

class Database:
    """Supabase access for the story tables used by the reply webhooks.

    Every method wraps the PostgREST call so that a failing query surfaces as a
    DatastoreError (HTTP 500) instead of a client-specific exception.
    """

    def __init__(self, client: Optional[Client] = None):
        self.supabase: Client = client or create_client(
            settings.supabase_url,
            settings.supabase_key
        )
        self.questions_table = 'questions'
        self.answers_table = 'answers'
        self.media_table = 'media_answers'
        self.team_table = 'story_team_members'
        self.responses_table = 'email_responses'

    def _execute(self, action: str, query) -> List[Dict[str, Any]]:
        try:
            result = query.execute()
        except Exception as e:
            raise DatastoreError(f"Error {action}: {str(e)}") from e
        return result.data or []

    def _first(self, rows: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        return rows[0] if rows else None

    # Questions

    def get_question(self, question_id: str) -> Optional[Dict[str, Any]]:
        query = self.supabase.table(self.questions_table)\
            .select('*')\
            .eq('id', question_id)\
            .limit(1)
        return self._first(self._execute("retrieving question", query))

    def list_questions(self, story_id: str) -> List[Dict[str, Any]]:
        """Questions of a story, latest created first"""
        query = self.supabase.table(self.questions_table)\
            .select('*')\
            .eq('story_id', story_id)\
            .order('created_at', desc=True)
        return self._execute("listing questions", query)

    def update_question(self, question_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        query = self.supabase.table(self.questions_table)\
            .update(fields)\
            .eq('id', question_id)
        return self._first(self._execute("updating question", query))

    # Team members

    def find_team_members(
        self,
        email: Optional[str] = None,
        phone_number: Optional[str] = None,
        story_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Team members matching a sender address, most recently invited first"""
        query = self.supabase.table(self.team_table).select('*')
        if email is not None:
            query = query.eq('email', email)
        if phone_number is not None:
            query = query.eq('phone_number', phone_number)
        if story_id is not None:
            query = query.eq('story_id', story_id)
        query = query.eq('status', 'active')
        query = query.order('invited_at', desc=True)
        return self._execute("querying team members", query)

    # Answers

    def answered_question_ids(self, story_id: str) -> Set[str]:
        query = self.supabase.table(self.answers_table)\
            .select('question_id')\
            .eq('story_id', story_id)
        rows = self._execute("querying answers", query)
        return {row['question_id'] for row in rows if row.get('question_id')}

    def insert_answer(self, answer: Dict[str, Any]) -> Dict[str, Any]:
        now = utc_now()
        record = {'created_at': now, 'updated_at': now, **answer}
        query = self.supabase.table(self.answers_table).insert(record)
        return self._first(self._execute("saving answer", query))

    def insert_media_answer(self, media: Dict[str, Any]) -> Dict[str, Any]:
        record = {'created_at': utc_now(), **media}
        query = self.supabase.table(self.media_table).insert(record)
        return self._first(self._execute("saving media answer", query))

    # Email responses

    def insert_email_response(self, response: Dict[str, Any]) -> Dict[str, Any]:
        now = utc_now()
        record = {'created_at': now, 'updated_at': now, **response}
        query = self.supabase.table(self.responses_table).insert(record)
        return self._first(self._execute("storing email response", query))

    def get_email_response(self, response_id: str) -> Optional[Dict[str, Any]]:
        query = self.supabase.table(self.responses_table)\
            .select('*')\
            .eq('id', response_id)\
            .limit(1)
        return self._first(self._execute("retrieving email response", query))

    def list_email_responses(
        self,
        question_id: Optional[str] = None,
        story_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        query = self.supabase.table(self.responses_table).select('*')
        if question_id:
            query = query.eq('question_id', question_id)
        elif story_id:
            query = query.eq('story_id', story_id)
        query = query.order('created_at', desc=True)
        return self._execute("listing email responses", query)

    def update_email_response(self, response_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        record = {**fields, 'updated_at': utc_now()}
        query = self.supabase.table(self.responses_table)\
            .update(record)\
            .eq('id', response_id)
        return self._first(self._execute("updating email response", query))
