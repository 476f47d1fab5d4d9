"""Mailgun implementation of EmailProvider.

POSTs ``{api_base_url}/messages`` with HTTP basic auth (``api:<key>``) and a
form-encoded body. Credentials arrive per call because a form reference may
override the deployment-wide ones.
"""

from infrastructure.email.protocol import EmailCredentials, EmailMessage
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)


class MailgunEmailProvider:
    def __init__(self, http_client: HttpClient) -> None:
        self._http = http_client

    async def send(self, creds: EmailCredentials, message: EmailMessage) -> int:
        url = f"{creds.api_base_url.rstrip('/')}/messages"
        data = {
            "from": message.from_address,
            "to": message.to,
            "subject": message.subject,
            "text": message.text,
            "html": message.html,
        }
        response = await self._http.post(
            url, data=data, auth=("api", creds.api_key)
        )
        if response.status_code == 200:
            log.info("email_sent_success", subject=message.subject)
        else:
            log.error(
                "email_sent_failed",
                subject=message.subject,
                status_code=response.status_code,
                response=response.text[:200],
            )
        return response.status_code
