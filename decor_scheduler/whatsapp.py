import logging
import re
import requests

from .models import Appointment

logger = logging.getLogger(__name__)

GRAPH_URL = "https://graph.facebook.com/v20.0/{phone_number_id}/messages"
WEEKDAYS_PT = ("segunda-feira", "terça-feira", "quarta-feira", "quinta-feira", "sexta-feira", "sábado", "domingo")

def normalize_phone(phone: str, country_code: str = "55") -> str:
    digits = re.sub(r"\D", "", phone or "")
    if digits and not digits.startswith(country_code):
        digits = country_code + digits
    return digits

def send_whatsapp_text(access_token: str, phone_number_id: str, to: str, text: str, timeout: float = 10):
    if not (access_token and phone_number_id):
        # no Cloud API credentials configured: nothing leaves the process
        logger.debug("WhatsApp credentials missing, message to %s not sent", to)
        return {"ok": True, "queued": False}
    url = GRAPH_URL.format(phone_number_id=phone_number_id)
    headers = {"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"}
    payload = {"messaging_product": "whatsapp", "to": normalize_phone(to), "type": "text", "text": {"body": text}}
    resp = requests.post(url, headers=headers, json=payload, timeout=timeout)
    resp.raise_for_status()
    return resp.json()

def reminder_message(a: Appointment, business_name: str | None) -> str:
    d = a.event_date
    when = f"{WEEKDAYS_PT[d.weekday()]}, {d.strftime('%d/%m/%Y')}"
    text = f"🎉 Olá {a.client_name}!\n\nLembramos que sua festa está agendada para *{when}*"
    if a.event_time:
        text += f" às *{a.event_time.strftime('%H:%M')}*"
    if a.location:
        text += f"\n📍 Local: {a.location}"
    if a.event_type:
        text += f"\n🎈 Evento: {a.event_type}"
    text += "\n\nQualquer dúvida, entre em contato conosco!"
    text += f"\n\n{business_name or 'Equipe'}"
    return text
