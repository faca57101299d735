# Overview: Client half of trusted silent printing; certificate trust anchor plus remote signature requests.

"""
Signing Bridge

The local print agent only prints silently for callers it trusts. Trust is
established with two callbacks the bridge installs on the agent:

    certificate provider  -> the public certificate, fetched once from the
                             gateway at setup and handed over verbatim
    signature provider    -> for each challenge the agent raises, POST
                             {message, algorithm} to the signing function
                             with the operator's bearer token and return
                             the base64 signature

The private key never reaches this process. If the certificate cannot be
fetched or does not look like a certificate, the bridge stays disabled and
the agent falls back to asking the operator on screen. Each signing
request stands alone; a failure rejects that print attempt only.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from .gateway import GatewayClient, GatewayError


logger = logging.getLogger(__name__)

CERTIFICATE_PATH = "qz-digital-certificate.txt"
CERTIFICATE_MARKER = "BEGIN CERTIFICATE"
SIGN_FUNCTION = "qz-sign"
DEFAULT_SIGN_TIMEOUT = 15.0

ALGORITHMS = ("SHA1", "SHA256")


class SigningError(RuntimeError):
    """A signature could not be obtained for one challenge."""


TokenProvider = Callable[[], "str | None | Awaitable[str | None]"]


class SigningBridge:
    def __init__(
        self,
        gateway: GatewayClient,
        token_provider: TokenProvider,
        *,
        timeout: float = DEFAULT_SIGN_TIMEOUT,
        certificate_path: str = CERTIFICATE_PATH,
    ):
        self.gateway = gateway
        self._token_provider = token_provider
        self.timeout = timeout
        self.certificate_path = certificate_path
        self._certificate: str | None = None

    @property
    def enabled(self) -> bool:
        return self._certificate is not None

    async def setup(self) -> bool:
        """Fetch the certificate. Never raises; returns whether silent signing is on."""
        try:
            text = await self.gateway.fetch_asset(self.certificate_path)
        except GatewayError as exc:
            logger.warning("Signing certificate unavailable (%s); silent printing disabled", exc)
            self._certificate = None
            return False

        if CERTIFICATE_MARKER not in text:
            logger.warning("Signing certificate at %s is malformed; silent printing disabled", self.certificate_path)
            self._certificate = None
            return False

        self._certificate = text
        logger.info("Silent printing enabled")
        return True

    def certificate(self) -> str:
        if self._certificate is None:
            raise SigningError("Silent signing is disabled")
        return self._certificate

    async def _token(self) -> str | None:
        token = self._token_provider()
        if asyncio.iscoroutine(token) or isinstance(token, asyncio.Future):
            token = await token
        return token

    async def sign(self, message: str, algorithm: str = "SHA1") -> str:
        """Return the base64 signature of `message` from the signing authority."""
        algorithm = (algorithm or "SHA1").upper()
        if algorithm not in ALGORITHMS:
            raise SigningError(f"Unsupported algorithm: {algorithm}")

        token = await self._token()
        if not token:
            raise SigningError("No active session for signing")

        body = {"message": message, "algorithm": algorithm}
        try:
            result = await asyncio.wait_for(
                self.gateway.invoke(SIGN_FUNCTION, body, token=token), timeout=self.timeout
            )
        except asyncio.TimeoutError as exc:
            logger.error("Signing request timed out after %ss", self.timeout)
            raise SigningError("Signing request timed out") from exc
        except GatewayError as exc:
            logger.error("Signing request failed: %s", exc)
            raise SigningError(f"Signing request failed: {exc}") from exc

        signature = (result or {}).get("signature")
        if not signature:
            logger.error("Signing authority returned no signature: %s", (result or {}).get("error"))
            raise SigningError("No signature returned")
        return signature

    def install(self, agent) -> bool:
        """Register providers on the print agent. Does nothing while disabled."""
        if not self.enabled:
            return False
        agent.set_certificate_provider(self.certificate)
        agent.set_signature_provider(self.sign)
        return True
