"""Pytest configuration for sealdrop tests."""
import sys
from datetime import datetime, timezone
from pathlib import Path

# Flat layout: make the repo root importable without installation
_PROJECT_ROOT = Path(__file__).parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

import pytest

from crypto.dedupe import DedupeTagger
from crypto.passphrase import KdfParams, PBKDF2_SHA256
from documents.lifecycle import DocumentService
from documents.store import InMemoryDocumentStore


# Low iteration count keeps the suite fast; production minimum is enforced by Config
FAST_KDF = KdfParams(algorithm=PBKDF2_SHA256, iterations=1000, key_length=32)

PEPPER = b"test-pepper"


class FakeClock:
    """Settable clock for expiry tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def fast_kdf():
    return FAST_KDF


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def tagger():
    return DedupeTagger(PEPPER)


@pytest.fixture
def service(store, tagger, clock):
    return DocumentService(store=store, tagger=tagger, kdf_params=FAST_KDF, clock=clock)
