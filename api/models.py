from typing import Dict, List, Optional, Any, Literal
from pydantic import BaseModel, Field

class MediaAttachment(BaseModel):
    url: str
    content_type: str = ''

class InboundMessage(BaseModel):
    """An inbound reply normalized from an email or WhatsApp webhook"""
    channel: Literal['email', 'whatsapp']
    sender: str
    sender_name: Optional[str] = None
    subject: str = ''
    text: str = ''
    html: str = ''
    # Header names are stored lower-cased
    headers: Dict[str, str] = Field(default_factory=dict)
    message_id: Optional[str] = None
    media: List[MediaAttachment] = Field(default_factory=list)
    service: Optional[str] = None

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

class Resolution(BaseModel):
    question_id: Optional[str] = None
    story_id: Optional[str] = None
    team_member_id: Optional[str] = None
    team_member_name: Optional[str] = None
    user_id: Optional[str] = None
    matched_by: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.story_id is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'questionId': self.question_id,
            'storyId': self.story_id,
            'teamMemberId': self.team_member_id,
        }
