import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from keyhold.backends import InMemoryKeyProvider


def _oaep_encrypt(public_key, plaintext: bytes) -> bytes:
    return public_key.encrypt(
        plaintext,
        padding.OAEP(
            mgf=padding.MGF1(algorithm=hashes.SHA256()),
            algorithm=hashes.SHA256(),
            label=None,
        ),
    )


@pytest.fixture
def oaep_encrypt():
    """Encrypt like a client would: RSA-OAEP with SHA-256."""
    return _oaep_encrypt


@pytest.fixture(scope="session")
def rsa_keys():
    """Two 2048-bit keys shared across tests; generation is slow."""
    return [
        rsa.generate_private_key(public_exponent=65537, key_size=2048)
        for _ in range(2)
    ]


@pytest.fixture
def memory_provider(rsa_keys):
    provider = InMemoryKeyProvider()
    provider.add_key("key-2024", rsa_keys[0])
    provider.add_key("key-2023", rsa_keys[1])
    return provider
