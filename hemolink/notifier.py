"""
Donor notification delivery.

SMS goes through the Twilio REST API, email through the Resend REST API.
Each donor gets an SMS attempt first, then an email attempt; a donor counts
as notified when either channel succeeds.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Optional

import requests

from .config import Settings
from .models import BloodRequest, CandidateDonor, HospitalProfile

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"
RESEND_EMAILS_URL = "https://api.resend.com/emails"

TWILIO_OK_STATUSES = {"queued", "sending", "sent", "delivered"}

_PHONE_FORMATTING = re.compile(r"[\s\-().]")
_INDIAN_MOBILE = re.compile(r"^[6-9]\d{9}$")


@dataclass
class PhoneNumber:
    formatted: str
    valid: bool
    error: Optional[str] = None


def format_phone_number(phone: Optional[str]) -> PhoneNumber:
    """
    Normalize a phone number to E.164, defaulting to the Indian +91 prefix.

    Args:
        phone: Raw phone number as stored on the donor

    Returns:
        PhoneNumber with the formatted value and whether it can be sent to
    """
    if not phone:
        return PhoneNumber("", False, "Phone number is empty")

    cleaned = _PHONE_FORMATTING.sub("", phone)

    if cleaned.startswith("+91"):
        number = cleaned[3:]
        if _INDIAN_MOBILE.match(number):
            return PhoneNumber("+91" + number, True)
        return PhoneNumber(
            cleaned, False,
            f"Invalid Indian mobile number. Must be 10 digits starting with 6-9. Got: {number} (length: {len(number)})"
        )

    if cleaned.startswith("91") and len(cleaned) == 12:
        number = cleaned[2:]
        if _INDIAN_MOBILE.match(number):
            return PhoneNumber("+" + cleaned, True)
        return PhoneNumber(
            "+" + cleaned, False,
            f"Invalid Indian mobile number. Must be 10 digits starting with 6-9. Got: {number}"
        )

    if _INDIAN_MOBILE.match(cleaned):
        return PhoneNumber("+91" + cleaned, True)

    with_plus = cleaned if cleaned.startswith("+") else "+" + cleaned
    if len(cleaned) < 10:
        return PhoneNumber(
            with_plus, False,
            f"Phone number too short ({len(cleaned)} digits). Minimum 10 digits required."
        )
    return PhoneNumber(with_plus, True)


def _truncate(text: str, limit: int, keep: int) -> str:
    return text[:keep] + "..." if len(text) > limit else text


def compose_sms(request: BloodRequest, hospital: HospitalProfile) -> str:
    """Compact alert body. Kept short to fit a single standard SMS segment where possible."""
    address = _truncate(hospital.address, 25, 22) if hospital.address else "Address not provided"
    return (
        "URGENT BLOOD NEEDED\n"
        f"Type: {request.blood_group}\n"
        f"Units: {request.units_needed}\n"
        f"Patient: {_truncate(request.patient_name, 15, 12)}\n"
        f"Hospital: {_truncate(hospital.name, 20, 17)}\n"
        f"Address: {address}\n"
        f"Contact: {hospital.phone or 'Contact not provided'}\n"
        '"Save a life! Please respond if available"   HEMO LINK Team'
    )


def compose_email_html(donor_name: str, request: BloodRequest, hospital: HospitalProfile) -> str:
    address_line = f"<p><strong>Address:</strong> {hospital.address}</p>" if hospital.address else ""
    return f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h1 style="color: #dc2626;">URGENT BLOOD NEEDED</h1>
  <p>Dear <strong>{donor_name}</strong>,</p>
  <p>A patient urgently needs blood donation. Your blood type matches!</p>
  <p><strong>Blood Type:</strong> {request.blood_group}</p>
  <p><strong>Units Needed:</strong> {request.units_needed}</p>
  <p><strong>Urgency:</strong> {request.urgency_level.upper()}</p>
  <p><strong>Patient:</strong> {request.patient_name}</p>
  <p><strong>Contact:</strong> {request.patient_contact}</p>
  <p><strong>Hospital:</strong> {hospital.name}</p>
  {address_line}
  <p>Your donation can save a life! Please respond if available.</p>
  <p>Thank you for being a blood donor.<br>- HEMO LINK Team</p>
</div>
"""


@dataclass
class DeliveryResult:
    donor_name: str
    sms_success: bool = False
    email_success: bool = False

    @property
    def success(self) -> bool:
        return self.sms_success or self.email_success


class Notifier:
    """Sends alert SMS and email to individual donors."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or requests.Session()

    @property
    def twilio_configured(self) -> bool:
        return self.settings.twilio_configured

    def send_sms(self, phone: str, body: str) -> bool:
        """
        Send one SMS through Twilio.

        Returns:
            True if Twilio accepted the message, False otherwise
        """
        if not self.twilio_configured:
            logger.warning("Skipping SMS: Twilio not configured")
            return False

        number = format_phone_number(phone)
        if not number.valid:
            logger.error(f"Invalid phone number {phone!r}: {number.error}")
            return False

        s = self.settings
        try:
            response = self.session.post(
                TWILIO_MESSAGES_URL.format(sid=s.twilio_account_sid),
                data={"To": number.formatted, "From": s.twilio_phone_number, "Body": body},
                auth=(s.twilio_account_sid, s.twilio_auth_token),
                timeout=s.http_timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Error sending SMS to {number.formatted}: {str(e)}")
            return False

        if not response.ok:
            logger.error(f"SMS failed for {number.formatted}: {response.status_code} {response.text}")
            return False

        try:
            payload = response.json()
        except ValueError:
            # 2xx without a JSON body
            return True

        if payload.get("error_code") or payload.get("error_message"):
            logger.error(
                f"Twilio error for {number.formatted}: "
                f"{payload.get('error_code')} {payload.get('error_message')}"
            )
            return False

        status = payload.get("status")
        if status in TWILIO_OK_STATUSES:
            logger.info(f"SMS {status} to {number.formatted} (sid: {payload.get('sid')})")
            return True

        logger.warning(f"Unexpected Twilio status for {number.formatted}: {status}")
        return False

    def send_email(self, to: str, subject: str, html: str) -> bool:
        """
        Send one email through Resend.

        Returns:
            True if Resend accepted the message, False otherwise
        """
        if not self.settings.email_configured:
            return False

        try:
            response = self.session.post(
                RESEND_EMAILS_URL,
                headers={
                    "Authorization": f"Bearer {self.settings.resend_api_key}",
                    "Content-Type": "application/json",
                },
                data=json.dumps({
                    "from": self.settings.resend_from_address,
                    "to": [to],
                    "subject": subject,
                    "html": html,
                }),
                timeout=self.settings.http_timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Error sending email to {to}: {str(e)}")
            return False

        if not response.ok:
            logger.error(f"Email failed for {to}: {response.status_code} {response.text}")
            return False
        return True

    def notify(
        self,
        donor: CandidateDonor,
        request: BloodRequest,
        hospital: HospitalProfile,
        sms_body: str,
    ) -> DeliveryResult:
        """Try SMS, then email, for one donor."""
        result = DeliveryResult(donor_name=donor.full_name)

        if donor.phone:
            result.sms_success = self.send_sms(donor.phone, sms_body)
        else:
            logger.warning(f"Skipping SMS for {donor.full_name}: no phone number")

        if donor.email:
            result.email_success = self.send_email(
                donor.email,
                f"URGENT: {request.blood_group} Blood Needed - HEMO LINK",
                compose_email_html(donor.full_name, request, hospital),
            )

        return result
