import os
from typing import Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    # Supabase settings
    supabase_url: str = os.getenv('SUPABASE_URL', '')
    supabase_key: str = os.getenv('SUPABASE_KEY', '')

    # Twilio settings
    twilio_account_sid: str = os.getenv('TWILIO_ACCOUNT_SID', '')
    twilio_auth_token: str = os.getenv('TWILIO_AUTH_TOKEN', '')
    twilio_whatsapp_number: str = os.getenv('TWILIO_WHATSAPP_NUMBER', '')
    whatsapp_enabled: bool = os.getenv('WHATSAPP_ENABLED', 'false').lower() == 'true'

    # Inbound email settings
    inbound_email_address: str = os.getenv('INBOUND_EMAIL_ADDRESS', 'info@write-my-story.com')
    question_id_header: str = os.getenv('QUESTION_ID_HEADER', 'X-WriteMyStory-Question-ID')

    # Media settings
    openai_api_key: str = os.getenv('OPENAI_API_KEY', '')
    transcribe_audio: bool = os.getenv('TRANSCRIBE_AUDIO', 'false').lower() == 'true'
    media_download_timeout: int = int(os.getenv('MEDIA_DOWNLOAD_TIMEOUT', '20'))

    log_level: str = os.getenv('LOG_LEVEL', 'INFO')

    @property
    def has_twilio_credentials(self) -> bool:
        return bool(
            self.twilio_account_sid
            and self.twilio_auth_token
            and self.twilio_whatsapp_number
        )

    @property
    def whatsapp_available(self) -> bool:
        return self.whatsapp_enabled and self.has_twilio_credentials

    @property
    def whatsapp_disabled_reason(self) -> Optional[str]:
        if not self.whatsapp_enabled:
            return "WhatsApp functionality is currently disabled"
        if not self.has_twilio_credentials:
            return "WhatsApp configuration is incomplete"
        return None

def get_settings() -> Settings:
    return Settings()
