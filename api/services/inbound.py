import logging
import re
from email.utils import parseaddr
from typing import Any, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from api.models import InboundMessage, MediaAttachment
from lib.error_handler import PayloadError

logger = logging.getLogger(__name__)

IGNORED_EVENTS = ('email.delivered', 'email.bounced', 'email.opened')
PROCESSED_EVENTS = ('email.received', 'email.replied')

# Everything from the first of these markers on is quoted history or footer
REPLY_SEPARATORS = [
    re.compile(r'-----\s*Original Message\s*-----', re.IGNORECASE),
    re.compile(r'_{20,}'),
    re.compile(r'^On .*wrote:', re.MULTILINE),
    re.compile(r'^Van: .*', re.MULTILINE),
    re.compile(r'^From: .*', re.MULTILINE),
    re.compile(r'^>', re.MULTILINE),
    re.compile(r'Dit bericht is verstuurd via WriteMyStory'),
]

NON_CONTENT_TAGS = ['script', 'style', 'head', 'title', 'meta', 'link', 'noscript']
QUOTE_CLASSES = ('gmail_quote', 'yahoo_quoted', 'divrplyfwdmsg')
BLOCK_TAGS = ['p', 'div', 'tr', 'table', 'section', 'article', 'header', 'footer', 'pre', 'li']

def _is_quote_class(value: Any) -> bool:
    if not value:
        return False
    joined = ' '.join(value) if isinstance(value, (list, tuple)) else str(value)
    return any(name in joined.lower() for name in QUOTE_CLASSES)

def html_to_text(html: str, drop_quotes: bool = False) -> str:
    """Plain text of an HTML mail body with entities decoded.

    With ``drop_quotes`` the quoted history (``<blockquote>`` and the quote
    containers Gmail, Yahoo and Outlook use) is removed as well.
    """
    if not html:
        return ''
    soup = BeautifulSoup(html, 'html.parser')

    for tag in soup.find_all(NON_CONTENT_TAGS):
        tag.decompose()
    if drop_quotes:
        for tag in soup.find_all('blockquote'):
            tag.decompose()
        for tag in soup.find_all(['div', 'span'], class_=_is_quote_class):
            tag.decompose()

    for br in soup.find_all('br'):
        br.replace_with('\n')
    for tag in soup.find_all(BLOCK_TAGS):
        tag.append('\n')

    text = soup.get_text().replace('\r\n', '\n').replace('\xa0', ' ')
    text = re.sub(r'[^\S\n]+', ' ', text)
    text = re.sub(r' *\n *', '\n', text)
    return re.sub(r'\n{3,}', '\n\n', text).strip()

def clean_reply_content(content: str) -> str:
    """Strip quoted history and signatures from an email reply"""
    if not content:
        return ''
    cut = len(content)
    for separator in REPLY_SEPARATORS:
        match = separator.search(content)
        if match and match.start() < cut:
            cut = match.start()
    return content[:cut].strip()

def detect_email_provider(payload: Dict[str, Any]) -> Optional[str]:
    if 'From' in payload and 'TextBody' in payload:
        return 'postmark'
    if 'type' in payload or ('from' in payload and 'message-id' in payload):
        return 'resend'
    return None

def _normalize_headers(headers: Any) -> Dict[str, str]:
    if isinstance(headers, dict):
        return {str(name).lower(): str(value) for name, value in headers.items()}
    normalized = {}
    for header in headers or []:
        name = header.get('Name') or header.get('name')
        if name:
            normalized[name.lower()] = str(header.get('Value', header.get('value', '')))
    return normalized

def _recipient_addresses(to: Any) -> List[str]:
    if isinstance(to, str):
        return [parseaddr(part)[1] or part.strip() for part in to.split(',')]
    addresses = []
    for recipient in to or []:
        if isinstance(recipient, dict):
            addresses.append(recipient.get('email') or recipient.get('Email') or '')
        else:
            addresses.append(str(recipient))
    return addresses

def _parse_sender(sender: Any) -> Tuple[str, Optional[str]]:
    if isinstance(sender, dict):
        return sender.get('email', ''), sender.get('name')
    name, address = parseaddr(sender or '')
    return address, name or None

def postmark_to_message(payload: Dict[str, Any], inbound_address: str) -> Optional[InboundMessage]:
    """Postmark inbound format, None when the mail was not sent to our inbox"""
    recipients = [address.lower() for address in _recipient_addresses(payload.get('ToFull') or payload.get('To'))]
    if inbound_address.lower() not in recipients and inbound_address.lower() not in (payload.get('To') or '').lower():
        logger.info(f"Email not sent to {inbound_address}, ignoring")
        return None

    return InboundMessage(
        channel='email',
        sender=payload.get('From', ''),
        sender_name=payload.get('FromName') or None,
        subject=payload.get('Subject') or '',
        text=payload.get('TextBody') or '',
        html=payload.get('HtmlBody') or '',
        headers=_normalize_headers(payload.get('Headers')),
        message_id=payload.get('MessageID'),
        service='postmark'
    )

def resend_to_message(payload: Dict[str, Any]) -> InboundMessage:
    email_data = payload.get('data') or payload
    sender, sender_name = _parse_sender(email_data.get('from'))
    return InboundMessage(
        channel='email',
        sender=sender,
        sender_name=sender_name,
        subject=email_data.get('subject') or '',
        text=email_data.get('text') or '',
        html=email_data.get('html') or '',
        headers=_normalize_headers(email_data.get('headers')),
        message_id=email_data.get('message-id') or email_data.get('message_id'),
        service='resend'
    )

def normalize_email_payload(
    payload: Any,
    inbound_address: str
) -> Tuple[str, Optional[InboundMessage], Optional[str]]:
    """Normalize an email webhook body.

    Returns ``(service, message, skip_reason)``. ``message`` is None when the
    payload is acknowledged without processing, with ``skip_reason`` saying why.
    Raises PayloadError for payloads of no known provider.
    """
    if not isinstance(payload, dict):
        raise PayloadError("Unknown webhook format")

    service = detect_email_provider(payload)
    logger.info(f"Webhook detection: {service}")

    if service == 'postmark':
        message = postmark_to_message(payload, inbound_address)
        if message is None:
            return service, None, "Email not for processing"
    elif service == 'resend':
        event_type = payload.get('type')
        if event_type in IGNORED_EVENTS:
            logger.info(f"Ignoring event type: {event_type}")
            return service, None, f"Event {event_type} acknowledged"
        if event_type is not None and event_type not in PROCESSED_EVENTS:
            logger.warning(f"Unknown event type: {event_type}")
            return service, None, f"Event {event_type} not processed"
        message = resend_to_message(payload)
    else:
        logger.warning(f"Unknown webhook format with keys: {sorted(payload.keys())}")
        raise PayloadError("Unknown webhook format")

    if not message.sender:
        raise PayloadError("Email payload has no sender address")
    return service, message, None

def normalize_whatsapp_form(form: Dict[str, Any]) -> InboundMessage:
    """Normalize a Twilio WhatsApp webhook form"""
    from_number = (form.get('From') or '').strip()
    if not from_number:
        raise PayloadError("Missing From in WhatsApp webhook")

    try:
        num_media = int(form.get('NumMedia') or 0)
    except ValueError:
        raise PayloadError(f"Invalid NumMedia: {form.get('NumMedia')}")
    if num_media == 0 and form.get('MediaUrl0'):
        num_media = 1

    media = []
    for index in range(num_media):
        url = form.get(f'MediaUrl{index}')
        if url:
            media.append(MediaAttachment(
                url=url,
                content_type=form.get(f'MediaContentType{index}') or ''
            ))

    return InboundMessage(
        channel='whatsapp',
        sender=from_number.replace('whatsapp:', ''),
        sender_name=form.get('ProfileName') or None,
        text=form.get('Body') or '',
        message_id=form.get('MessageSid'),
        media=media,
        service='twilio'
    )
