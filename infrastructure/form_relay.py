"""Form relay: POSTs a verified submission to the real form endpoint.

Text fields go in the form body, binary fields as multipart file parts.
"""

from typing import Mapping

from infrastructure.http_client import HttpClient
from shared.form_codec import FieldValue, FormBlob
from shared.logging import get_logger

log = get_logger(__name__)


class FormRelay:
    def __init__(self, http_client: HttpClient) -> None:
        self._http = http_client

    async def submit(self, form_url: str, fields: Mapping[str, FieldValue]) -> int:
        """POST *fields* to *form_url*; return the endpoint's HTTP status."""
        data: dict[str, str] = {}
        files: dict[str, tuple] = {}
        for name, value in fields.items():
            if isinstance(value, FormBlob):
                files[name] = (value.filename or name, value.data, value.content_type)
            else:
                data[name] = value

        kwargs: dict = {"data": data}
        if files:
            kwargs["files"] = files
        response = await self._http.post(form_url, **kwargs)

        if response.status_code == 200:
            log.info("form_relayed", status_code=response.status_code)
        else:
            log.error(
                "form_relay_failed",
                status_code=response.status_code,
                response=response.text[:200],
            )
        return response.status_code
