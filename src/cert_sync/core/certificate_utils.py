"""Key, CSR and certificate helpers."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Sequence, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import ExtensionOID, NameOID

from .logging import get_logger


PEM_CERT_BEGIN = b"-----BEGIN CERTIFICATE-----"
PEM_CERT_END = b"-----END CERTIFICATE-----"


@dataclass
class CertificateInfo:
    """Certificate information container."""

    name: str
    subject: str
    issuer: str
    serial_number: str
    not_valid_before: datetime
    not_valid_after: datetime
    domains: List[str] = field(default_factory=list)
    fingerprint_sha256: str = ""
    chain_length: int = 0
    days_remaining: int = 0
    status: str = "valid"

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "subject": self.subject,
            "issuer": self.issuer,
            "serial_number": self.serial_number,
            "not_valid_before": self.not_valid_before.isoformat(),
            "not_valid_after": self.not_valid_after.isoformat(),
            "domains": self.domains,
            "fingerprint_sha256": self.fingerprint_sha256,
            "chain_length": self.chain_length,
            "days_remaining": self.days_remaining,
            "status": self.status,
        }


class CertificateUtils:
    """Utility class for certificate operations."""

    def __init__(self):
        self.logger = get_logger("certificate_utils")

    def generate_private_key(self, key_type: str = "rsa", key_size: int = 2048):
        """Generate a certificate private key.

        Args:
            key_type: 'rsa' or 'ec'
            key_size: RSA modulus size; for EC, 384 selects P-384, else P-256

        Returns:
            Tuple of (key object, PEM-encoded key)
        """
        if key_type == "ec":
            curve = ec.SECP384R1() if key_size == 384 else ec.SECP256R1()
            key = ec.generate_private_key(curve)
        else:
            key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)

        key_pem = key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return key, key_pem

    def create_csr(self, domains: Sequence[str], key) -> bytes:
        """Create a PEM CSR with the first domain as CN and all as SANs."""
        builder = x509.CertificateSigningRequestBuilder().subject_name(
            x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domains[0])])
        ).add_extension(
            x509.SubjectAlternativeName([x509.DNSName(d) for d in domains]),
            critical=False,
        )
        csr = builder.sign(key, hashes.SHA256())
        return csr.public_bytes(serialization.Encoding.PEM)

    def split_chain(self, chain_pem: bytes) -> List[bytes]:
        """Split a PEM bundle into individual certificates, leaf first."""
        certs = []
        data = chain_pem
        while PEM_CERT_BEGIN in data:
            start = data.find(PEM_CERT_BEGIN)
            end = data.find(PEM_CERT_END, start)
            if end < 0:
                break
            end += len(PEM_CERT_END)
            certs.append(data[start:end] + b"\n")
            data = data[end:]
        return certs

    def leaf_not_after(self, chain_pem: bytes) -> Tuple[datetime, List[str]]:
        """Expiry and DNS names of the leaf certificate in a chain.

        Raises:
            ValueError: If the chain holds no parseable certificate
        """
        certs = self.split_chain(chain_pem)
        if not certs:
            raise ValueError("certificate chain is empty")
        leaf = x509.load_pem_x509_certificate(certs[0])
        return leaf.not_valid_after_utc, self._dns_names(leaf)

    def parse_certificate(self, chain_pem: bytes, name: str = "unknown") -> CertificateInfo:
        """Parse the leaf of a PEM chain.

        Args:
            chain_pem: PEM-encoded certificate or full chain
            name: Certificate name/identifier

        Returns:
            CertificateInfo object
        """
        certs = self.split_chain(chain_pem)
        if not certs:
            raise ValueError("certificate chain is empty")
        cert = x509.load_pem_x509_certificate(certs[0])

        now = datetime.now(timezone.utc)
        days_remaining = (cert.not_valid_after_utc - now).days

        if now < cert.not_valid_before_utc:
            status = "not_yet_valid"
        elif now > cert.not_valid_after_utc:
            status = "expired"
        else:
            status = "valid"

        return CertificateInfo(
            name=name,
            subject=cert.subject.rfc4514_string(),
            issuer=cert.issuer.rfc4514_string(),
            serial_number=format(cert.serial_number, "X"),
            not_valid_before=cert.not_valid_before_utc,
            not_valid_after=cert.not_valid_after_utc,
            domains=self._dns_names(cert),
            fingerprint_sha256=cert.fingerprint(hashes.SHA256()).hex().upper(),
            chain_length=len(certs) - 1,
            days_remaining=days_remaining,
            status=status,
        )

    @staticmethod
    def _dns_names(cert: x509.Certificate) -> List[str]:
        try:
            san_ext = cert.extensions.get_extension_for_oid(
                ExtensionOID.SUBJECT_ALTERNATIVE_NAME
            )
        except x509.ExtensionNotFound:
            return []
        return san_ext.value.get_values_for_type(x509.DNSName)
