from typing import Optional
import logging

logger = logging.getLogger(__name__)

class AppError(Exception):
    def __init__(self, message: str, status_code: int = 500, user_message: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.user_message = user_message or "An error occurred. Please try again later."
        super().__init__(self.message)

class PayloadError(AppError):
    def __init__(self, message: str):
        super().__init__(message, status_code=400, user_message=message)

class NotFoundError(AppError):
    def __init__(self, message: str):
        super().__init__(message, status_code=404, user_message=message)

class TransitionError(AppError):
    def __init__(self, message: str):
        super().__init__(message, status_code=409, user_message=message)

class DatastoreError(AppError):
    def __init__(self, message: str):
        super().__init__(message, status_code=500)

class ServiceUnavailableError(AppError):
    def __init__(self, message: str):
        super().__init__(message, status_code=503, user_message=message)

class ErrorHandler:
    """User-facing WhatsApp replies for the outcomes of an inbound message."""

    @staticmethod
    def no_open_question() -> str:
        return (
            "Bedankt voor je bericht! We konden geen openstaande vraag voor je vinden. "
            "Neem contact op als je denkt dat dit een fout is."
        )

    @staticmethod
    def thank_you(member_name: str) -> str:
        return (
            f"Dank je wel voor je antwoord, {member_name}!\n\n"
            "Je reactie is opgeslagen en helpt om het verhaal compleet te maken. "
            "Je krijgt binnenkort misschien nog meer vragen.\n\n"
            "WriteMyStory.ai"
        )

    @staticmethod
    def handle_whatsapp_error(error: Exception) -> str:
        logger.error(f"WhatsApp error: {str(error)}")
        return (
            "Er is een fout opgetreden bij het verwerken van je bericht. "
            "Probeer het later opnieuw of neem contact op met support."
        )

