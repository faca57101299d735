# Overview: Signing authority for the print agent trust handshake; RSA PKCS#1 v1.5 over caller-supplied challenges.

"""
Signing Authority

WHY: The local print agent only prints silently for a site that proves it
holds the private key matching the certificate the agent trusts. The key
stays here (QZ_PRIVATE_KEY); consoles send the agent's opaque challenge and
get back a base64 signature.

RULES:
1. Only authenticated operators reach sign_message (enforced by the route).
2. The message is signed as raw UTF-8 bytes, never parsed or rewritten.
3. Two digests are supported: SHA1 (legacy agents) and SHA256. A request
   without an algorithm is treated as SHA1, which is what older agents send.
4. Nothing about the message is logged beyond its length, the algorithm,
   and a short hex prefix used to debug signature mismatches.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.x509.oid import NameOID

from pressdesk.time_utils import utcnow


ALGORITHMS = {
    "SHA1": hashes.SHA1,
    "SHA256": hashes.SHA256,
}
DEFAULT_ALGORITHM = "SHA1"
DEBUG_PREFIX_BYTES = 32


class SigningConfigError(RuntimeError):
    """Signing key material is missing or unusable (server misconfiguration)."""


class SigningRequestError(ValueError):
    """The caller sent something that cannot be signed."""


@dataclass(frozen=True)
class SignatureResult:
    signature: str
    algorithm: str

    def to_dict(self) -> dict:
        return {"signature": self.signature, "algoUsed": self.algorithm}


def resolve_algorithm(name: str | None) -> str:
    algo = (name or DEFAULT_ALGORITHM).strip().upper().replace("-", "")
    if algo not in ALGORITHMS:
        raise SigningRequestError(f"Unsupported algorithm '{name}'. Must be one of: {', '.join(ALGORITHMS)}")
    return algo


@lru_cache(maxsize=4)
def load_private_key(pem: str) -> rsa.RSAPrivateKey:
    """
    Load an RSA private key from PEM text.

    Accepts PKCS#8 ("BEGIN PRIVATE KEY") and PKCS#1 ("BEGIN RSA PRIVATE KEY").
    Environment-provided PEMs often arrive with literal "\\n" sequences.
    """
    if not pem or not pem.strip():
        raise SigningConfigError("QZ_PRIVATE_KEY is not configured")
    text = pem.strip().replace("\\n", "\n")
    try:
        key = serialization.load_pem_private_key(text.encode("utf-8"), password=None)
    except (ValueError, TypeError) as exc:
        raise SigningConfigError(f"QZ_PRIVATE_KEY could not be loaded: {exc}") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise SigningConfigError("QZ_PRIVATE_KEY must be an RSA key")
    return key


def debug_prefix(message: str) -> str:
    return message.encode("utf-8")[:DEBUG_PREFIX_BYTES].hex()


def sign_message(message: str, algorithm: str | None, *, private_key_pem: str | None) -> SignatureResult:
    if not isinstance(message, str) or message == "":
        raise SigningRequestError("No message to sign")

    algo = resolve_algorithm(algorithm)
    key = load_private_key(private_key_pem or "")

    signature = key.sign(message.encode("utf-8"), padding.PKCS1v15(), ALGORITHMS[algo]())
    return SignatureResult(signature=base64.b64encode(signature).decode("ascii"), algorithm=algo)


def verify_signature(certificate_pem: str, message: str, signature_b64: str, algorithm: str | None) -> bool:
    """Check a signature the way the print agent does, against its trusted certificate."""
    cert = x509.load_pem_x509_certificate(certificate_pem.encode("utf-8"))
    try:
        cert.public_key().verify(
            base64.b64decode(signature_b64),
            message.encode("utf-8"),
            padding.PKCS1v15(),
            ALGORITHMS[resolve_algorithm(algorithm)](),
        )
    except InvalidSignature:
        return False
    return True


def generate_signing_material(*, common_name: str = "localhost", days: int = 3650) -> tuple[str, str]:
    """
    Create a 2048-bit RSA key and a self-signed X.509 certificate for it.

    Returns (private_key_pem_pkcs8, certificate_pem). The key goes into the
    server's QZ_PRIVATE_KEY; the certificate is both served to consoles and
    imported into the print agent's site manager.
    """
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    subject = x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, "US"),
        x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, "State"),
        x509.NameAttribute(NameOID.LOCALITY_NAME, "City"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "PressDesk"),
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
    ])
    now = utcnow()
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=5))
        .not_valid_after(now + timedelta(days=days))
        .sign(key, hashes.SHA256())
    )

    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    cert_pem = cert.public_bytes(serialization.Encoding.PEM).decode("ascii")
    return key_pem, cert_pem
