"""WhatsApp channel sender (WhatsApp Business Cloud API)"""

import re
import httpx
from typing import Optional
from debtflow.domain.exceptions import SendFailed
from debtflow.config import settings
from debtflow.infrastructure.observability.metrics import sender_latency_histogram, sender_failure_counter


def normalize_phone(phone: str, country_code: str = "972") -> str:
    """
    Convert a stored phone number to the digits-only international form.

    "052-1234567" -> "972521234567", "+1 (555) 010-0000" -> "15550100000"
    """
    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith("00"):
        return digits[2:]
    if digits.startswith("0"):
        return country_code + digits[1:]
    return digits


class WhatsAppSender:
    """Client for the WhatsApp Business messages endpoint"""

    channel = "whatsapp"

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        phone_number_id: str | None = None,
        country_code: str | None = None,
        timeout: float | None = None,
    ):
        self.base_url = base_url or settings.whatsapp_api_base
        self.token = token if token is not None else settings.whatsapp_token
        self.phone_number_id = phone_number_id or settings.whatsapp_phone_number_id
        self.country_code = country_code or settings.whatsapp_country_code
        self.timeout = timeout or settings.sender_timeout_seconds

    async def send(self, to: str, subject: Optional[str], body: str) -> str:
        """
        Send a text message and return the WhatsApp message id.

        WhatsApp has no subject line; it is ignored.

        Raises:
            SendFailed: On timeout, HTTP errors, or an unexpected response
        """
        payload = {
            "messaging_product": "whatsapp",
            "to": normalize_phone(to, self.country_code),
            "type": "text",
            "text": {"body": body},
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                with sender_latency_histogram.labels(channel=self.channel).time():
                    response = await client.post(
                        f"{self.base_url}/{self.phone_number_id}/messages",
                        json=payload,
                        headers={"Authorization": f"Bearer {self.token}"},
                    )
                response.raise_for_status()
                return str(response.json()["messages"][0]["id"])

            except httpx.TimeoutException as e:
                sender_failure_counter.labels(channel=self.channel).inc()
                raise SendFailed(f"WhatsApp API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                sender_failure_counter.labels(channel=self.channel).inc()
                raise SendFailed(f"WhatsApp API error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                sender_failure_counter.labels(channel=self.channel).inc()
                raise SendFailed(f"WhatsApp API unreachable: {e}") from e
            except (KeyError, IndexError, ValueError, TypeError) as e:
                sender_failure_counter.labels(channel=self.channel).inc()
                raise SendFailed(f"Invalid response from WhatsApp API: {e}") from e
