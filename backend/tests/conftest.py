import sys
from pathlib import Path

import httpx
import pytest

# Ensure the backend root is on sys.path for direct pytest runs
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


class RecordingReporter:
    def __init__(self):
        self.reports = []

    def report(self, report):
        self.reports.append(report)


@pytest.fixture
def reporter():
    return RecordingReporter()


def mock_http(handler) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by handler(request)."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def chat_reply(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}
