"""Email channel sender (Resend-compatible HTTP API)"""

import httpx
from typing import Optional
from debtflow.domain.exceptions import SendFailed
from debtflow.config import settings
from debtflow.infrastructure.observability.metrics import sender_latency_histogram, sender_failure_counter


class EmailSender:
    """Client for the transactional email provider"""

    channel = "email"

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        from_address: str | None = None,
        from_name: str | None = None,
        timeout: float | None = None,
    ):
        self.base_url = base_url or settings.email_api_base
        self.api_key = api_key if api_key is not None else settings.email_api_key
        self.from_address = from_address or settings.email_from_address
        self.from_name = from_name if from_name is not None else settings.email_from_name
        self.timeout = timeout or settings.sender_timeout_seconds

    @property
    def sender(self) -> str:
        return f"{self.from_name} <{self.from_address}>" if self.from_name else self.from_address

    async def send(self, to: str, subject: Optional[str], body: str) -> str:
        """
        Send one email and return the provider message id.

        Raises:
            SendFailed: On timeout, HTTP errors, or an unexpected response
        """
        payload = {
            "from": self.sender,
            "to": [to],
            "subject": subject or "",
            "text": body,
            "html": body.replace("\n", "<br/>"),
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                with sender_latency_histogram.labels(channel=self.channel).time():
                    response = await client.post(
                        f"{self.base_url}/emails",
                        json=payload,
                        headers={"Authorization": f"Bearer {self.api_key}"},
                    )
                response.raise_for_status()
                return str(response.json()["id"])

            except httpx.TimeoutException as e:
                sender_failure_counter.labels(channel=self.channel).inc()
                raise SendFailed(f"Email provider timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                sender_failure_counter.labels(channel=self.channel).inc()
                raise SendFailed(f"Email provider error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                sender_failure_counter.labels(channel=self.channel).inc()
                raise SendFailed(f"Email provider unreachable: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                sender_failure_counter.labels(channel=self.channel).inc()
                raise SendFailed(f"Invalid response from email provider: {e}") from e
