from flask import Flask, request, Response, jsonify
import logging
import sys
import time
from openai import OpenAI
from twilio.twiml.messaging_response import MessagingResponse

from .services.email_replies import EmailReplyService
from .services.inbound import normalize_email_payload, normalize_whatsapp_form
from .services.media import MediaService
from .services.resolver import ReplyResolver
from .services.tracking import QuestionTrackingService
from .services.whatsapp import WhatsAppReplyService
from lib.config import get_settings
from lib.database import Database
from lib.error_handler import AppError, ErrorHandler, PayloadError

settings = get_settings()

# Configure detailed logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stdout,
    force=True  # Ensure our config takes precedence
)

logger = logging.getLogger(__name__)

app = Flask(__name__)

logger.info("Initializing Supabase client...")
try:
    database = Database()
    logger.info("Supabase client initialized successfully")
except Exception as e:
    logger.error(f"Error initializing Supabase client: {str(e)}")
    raise

openai_client = None
if settings.transcribe_audio and settings.openai_api_key:
    logger.info("Initializing OpenAI client for voice transcription...")
    openai_client = OpenAI(api_key=settings.openai_api_key)

logger.info("Initializing services...")
resolver = ReplyResolver(database)
media_service = MediaService(
    account_sid=settings.twilio_account_sid,
    auth_token=settings.twilio_auth_token,
    timeout=settings.media_download_timeout,
    openai_client=openai_client
)
email_service = EmailReplyService(database=database, resolver=resolver)
whatsapp_service = WhatsAppReplyService(database=database, resolver=resolver, media_service=media_service)
tracking_service = QuestionTrackingService(database=database)
logger.info("All services initialized successfully")

def create_twiml_response(message: str, status: int = 200) -> Response:
    """Create a TwiML response with the given message"""
    resp = MessagingResponse()
    resp.message(message)
    return Response(str(resp), status=status, mimetype='text/xml')

def error_response(error: AppError, **extra):
    return jsonify({'success': False, 'error': error.user_message, 'details': error.message, **extra}), error.status_code

@app.route('/', methods=['GET'])
def root():
    """Basic health check"""
    return jsonify({'status': 'healthy'})

@app.route("/email/webhook", methods=['GET'])
def email_webhook_status():
    return jsonify({'message': 'WriteMyStory email webhook endpoint is active'})

@app.route("/email/webhook", methods=['POST'])
def email_webhook():
    started = time.monotonic()
    logger.info("Email webhook received")
    logger.info(f"User-Agent: {request.headers.get('User-Agent')}")

    try:
        payload = request.get_json(silent=True)
        service, message, skip_reason = normalize_email_payload(payload, settings.inbound_email_address)
        if message is None:
            return jsonify({
                'success': True,
                'message': skip_reason,
                'processed': False,
                'service': service
            })

        logger.info(f"Email from {message.sender}, subject: {message.subject}, message-id: {message.message_id}")
        result = email_service.handle_reply(message)
        processing_time = int((time.monotonic() - started) * 1000)
        logger.info(f"Email processed in {processing_time}ms: {result}")

        return jsonify({
            'success': True,
            'processed': True,
            'message': f"Email response processed successfully via {service}",
            'service': service,
            **result,
            'processingTime': processing_time
        })

    except AppError as e:
        processing_time = int((time.monotonic() - started) * 1000)
        logger.error(f"Email webhook failed after {processing_time}ms: {e.message}")
        return error_response(e, processingTime=processing_time)
    except Exception as e:
        logger.error(f"Email webhook error: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'error': 'Failed to process email webhook', 'details': str(e)}), 500

@app.route("/whatsapp/receive", methods=['POST'])
async def whatsapp_receive():
    if not settings.whatsapp_available:
        reason = settings.whatsapp_disabled_reason
        logger.info(f"WhatsApp webhook blocked: {reason}")
        return jsonify({'error': 'WhatsApp functionality is currently unavailable', 'reason': reason}), 503

    try:
        logger.info(f"Form data: {request.form.to_dict()}")
        message = normalize_whatsapp_form(request.form.to_dict())
        reply = await whatsapp_service.handle_reply(message)
        return create_twiml_response(reply)

    except PayloadError as e:
        logger.warning(f"Rejected WhatsApp webhook: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.error(f"Error in WhatsApp receive webhook: {str(e)}", exc_info=True)
        status = e.status_code if isinstance(e, AppError) else 500
        return create_twiml_response(ErrorHandler.handle_whatsapp_error(e), status=status)

@app.route("/email/responses", methods=['GET'])
def list_email_responses():
    try:
        responses = email_service.list_responses(
            question_id=request.args.get('questionId'),
            story_id=request.args.get('storyId')
        )
        return jsonify({'success': True, 'responses': responses})
    except AppError as e:
        logger.error(f"Error fetching email responses: {e.message}")
        return error_response(e)

@app.route("/email/responses", methods=['PATCH'])
def update_email_response():
    data = request.get_json(silent=True) or {}
    try:
        updated = email_service.update_status(data.get('responseId'), data.get('status'))
        return jsonify({
            'success': True,
            'message': 'Email response status updated successfully',
            'response': updated
        })
    except AppError as e:
        logger.error(f"Error updating email response status: {e.message}")
        return error_response(e)

@app.route("/questions/track", methods=['POST'])
def track_question():
    data = request.get_json(silent=True) or {}
    try:
        tracking = tracking_service.track_forward(
            question_id=data.get('questionId'),
            team_member_name=data.get('teamMemberName'),
            method=data.get('method'),
            story_id=data.get('storyId')
        )
        return jsonify({
            'success': True,
            'message': 'Question tracking updated successfully',
            'tracking': tracking
        })
    except AppError as e:
        logger.error(f"Error updating question tracking: {e.message}")
        return error_response(e)

@app.route("/questions/track", methods=['GET'])
def get_question_tracking():
    try:
        tracking = tracking_service.get_tracking(request.args.get('questionId'))
        return jsonify({'success': True, 'tracking': tracking})
    except AppError as e:
        logger.error(f"Error fetching question tracking: {e.message}")
        return error_response(e)
