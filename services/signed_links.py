"""
Stateless signed links.

Instead of a stored token, the redemption URL carries the serialized
submission and a signature over it:

    signature = SHA-256(data || form_url || secret)

Nothing is stored, so nothing expires and nothing is consumed: a signed link
stays redeemable, any number of times, for as long as the secret and the
form URL are unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from errors import SignatureMismatchError
from shared.crypto import compute_signature, signatures_match
from shared.form_codec import FieldValue, FormFields, dumps_form, loads_form


def sign(data: str, form_url: str, secret: str) -> str:
    return compute_signature(data, form_url, secret)


def verify(data: str, form_url: str, secret: str, signature: str) -> bool:
    return signatures_match(compute_signature(data, form_url, secret), signature)


@dataclass(frozen=True)
class SignedPayload:
    data: str
    signature: str


class SignedLinkSigner:
    def __init__(self, secret: str) -> None:
        self._secret = secret

    def seal(self, fields: Mapping[str, FieldValue], form_url: str) -> SignedPayload:
        data = dumps_form(fields)
        return SignedPayload(data=data, signature=sign(data, form_url, self._secret))

    def open(self, payload: SignedPayload, form_url: str) -> FormFields:
        """Return the submission if the signature matches *form_url*.

        Raises:
            SignatureMismatchError: the signature does not match.
        """
        if not verify(payload.data, form_url, self._secret, payload.signature):
            raise SignatureMismatchError()
        return loads_form(payload.data)

    @staticmethod
    def peek(payload: SignedPayload) -> FormFields:
        """Decode the submission without checking the signature.

        Only for resolving which form the payload claims to target; the
        result must not be trusted until open() succeeds.
        """
        return loads_form(payload.data)
