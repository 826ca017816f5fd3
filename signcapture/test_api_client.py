import asyncio

import httpx
import orjson

from signcapture.api_client import CONTRIBUTE_PATH, ContributionClient
from signcapture.core.submission import SubmissionStatus

PAYLOAD = {"word": "HELLO", "frames": [], "num_attempts": 3}


def _submit(handler, payload=PAYLOAD):
    async def scenario():
        async with ContributionClient(base_url="http://backend.test",
                                      transport=httpx.MockTransport(handler)) as client:
            return await client.submit(payload)
    return asyncio.run(scenario())


def test_success_updates_progress():
    seen = {}

    def handler(request: httpx.Request):
        seen["path"] = request.url.path
        seen["body"] = orjson.loads(request.content)
        return httpx.Response(200, json={"total_contributions": 7, "progress_percentage": 70})

    result = _submit(handler)

    assert result.ok
    assert result.progress.total_contributions == 7
    assert result.progress.progress_percentage == 70.0
    assert seen["path"] == CONTRIBUTE_PATH
    assert seen["body"]["word"] == "HELLO"


def test_server_rejection_is_surfaced_verbatim():
    def handler(request):
        return httpx.Response(400, json={"detail": "Contribution rejected: quality too low: 0.31"})

    result = _submit(handler)

    assert result.status == SubmissionStatus.REJECTED
    assert result.reason == "Contribution rejected: quality too low: 0.31"
    assert result.quality_score == 0.31
    assert result.status_code == 400


def test_network_failure_becomes_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    result = _submit(handler)

    assert result.status == SubmissionStatus.TRANSPORT_ERROR
    assert not result.ok


def test_unexpected_success_body():
    result = _submit(lambda request: httpx.Response(200, text="<html>ok</html>"))
    assert result.status == SubmissionStatus.TRANSPORT_ERROR
    assert result.status_code == 200


def test_non_json_error_body():
    result = _submit(lambda request: httpx.Response(503, text="Service Unavailable"))
    assert result.status == SubmissionStatus.REJECTED
    assert result.reason == "Service Unavailable"
