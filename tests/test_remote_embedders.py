import json

import pytest
import requests
import responses

from librarian.domain import RecoverableError, TerminalError
from librarian.remote_embedders import (
    MissingApiKeyError,
    OpenAiConfig,
    OpenAiEmbedder,
    VoyageConfig,
    VoyageEmbedder,
    classify,
    truncate,
)

ENDPOINT = "http://mock.example.com/v1/embeddings"
ONE = {"data": [{"embedding": [0.0, 0.0, 0.0, 0.0]}]}
TWO = {"data": [{"embedding": [0.0, 0.0, 0.0, 0.0]}, {"embedding": [0.0, 0.0, 0.0, 0.0]}]}
PAIR = {"data": [{"embedding": [0.1, 0.2, 0.3, 0.4]}, {"embedding": [0.5, 0.6, 0.7, 0.8]}]}


@pytest.fixture
def rsps():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as mock:
        yield mock


def openai_cfg(batch=96):
    return OpenAiConfig(
        model="text-embedding-3-small", dimensions=4, endpoint=ENDPOINT,
        batch_size=batch, timeout=2.0,
    )


def voyage_cfg(batch=96):
    return VoyageConfig(
        model="voyage-code-3", dimensions=4, endpoint=ENDPOINT,
        batch_size=batch, timeout=2.0,
    )


# --- classify / truncate ---

@pytest.mark.parametrize("status", [500, 503, 599, 408, 429])
def test_classify_recoverable(status):
    err = classify(status, "")
    assert isinstance(err, RecoverableError)
    assert err.message == f"http {status}: "


@pytest.mark.parametrize("status", [400, 401, 404, 403])
def test_classify_terminal(status):
    err = classify(status, "")
    assert isinstance(err, TerminalError)
    assert err.message == f"http {status}: "


def test_classify_message_carries_status_and_body():
    err = classify(503, "boom")
    assert err.message == "http 503: boom"
    assert str(err) == "recoverable: http 503: boom"


def test_truncate_caps_long_bodies():
    out = truncate("a" * 500)
    assert len(out) <= 250
    assert out == "a" * 200 + "…"
    assert truncate("short") == "short"


# --- construction ---

def test_openai_empty_api_key_is_build_error():
    with pytest.raises(MissingApiKeyError, match="OPENAI_API_KEY missing"):
        OpenAiEmbedder("", openai_cfg())


def test_voyage_empty_api_key_is_build_error():
    with pytest.raises(MissingApiKeyError, match="VOYAGE_API_KEY missing"):
        VoyageEmbedder("", voyage_cfg())


def test_from_env_missing_variable(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(MissingApiKeyError):
        OpenAiEmbedder.from_env(openai_cfg())


def test_from_env_reads_key(monkeypatch, rsps):
    monkeypatch.setenv("VOYAGE_API_KEY", "secret")
    rsps.add(responses.POST, ENDPOINT, json=ONE, status=200)
    e = VoyageEmbedder.from_env(voyage_cfg())
    vectors = e.embed(["x"])
    assert vectors == [[0.0, 0.0, 0.0, 0.0]]
    assert rsps.calls[0].request.headers["Authorization"] == "Bearer secret"


def test_identity_strings():
    e = OpenAiEmbedder("placeholder", openai_cfg())
    assert e.name == "embedder-openai"
    assert e.version() == "text-embedding-3-small"
    assert e.config_hash() == "model=text-embedding-3-small;dim=4"
    assert e.dimension() == 4
    v = VoyageEmbedder("placeholder", voyage_cfg())
    assert v.name == "embedder-voyage"
    assert v.version() == "voyage-code-3"
    assert v.config_hash() == "model=voyage-code-3;dim=4"
    assert v.dimension() == 4


@pytest.mark.parametrize("cls,cfg", [(OpenAiEmbedder, openai_cfg), (VoyageEmbedder, voyage_cfg)])
def test_empty_batch_is_terminal(cls, cfg):
    e = cls("placeholder", cfg())
    with pytest.raises(TerminalError, match="empty batch"):
        e.embed([])


# --- OpenAI HTTP behaviour ---

def test_openai_returns_one_vector_per_input(rsps):
    rsps.add(responses.POST, ENDPOINT, json=PAIR, status=200)
    e = OpenAiEmbedder("placeholder", openai_cfg())
    v = e.embed(["alpha", "beta"])
    assert len(v) == 2
    assert v[0] == [0.1, 0.2, 0.3, 0.4]
    assert len(rsps.calls) == 1


def test_openai_batches_split_at_boundary(rsps):
    rsps.add(responses.POST, ENDPOINT, json=TWO, status=200)
    rsps.add(responses.POST, ENDPOINT, json=TWO, status=200)
    rsps.add(responses.POST, ENDPOINT, json=ONE, status=200)
    e = OpenAiEmbedder("placeholder", openai_cfg(batch=2))
    v = e.embed(["a", "b", "c", "d", "e"])
    assert len(v) == 5
    assert len(rsps.calls) == 3
    inputs = [json.loads(c.request.body)["input"] for c in rsps.calls]
    assert inputs == [["a", "b"], ["c", "d"], ["e"]]


def test_openai_500_is_recoverable(rsps):
    rsps.add(responses.POST, ENDPOINT, body="server boom", status=500)
    e = OpenAiEmbedder("placeholder", openai_cfg())
    with pytest.raises(RecoverableError) as info:
        e.embed(["x"])
    assert "500" in info.value.message


def test_openai_429_is_recoverable(rsps):
    rsps.add(responses.POST, ENDPOINT, body="rate limit", status=429)
    e = OpenAiEmbedder("placeholder", openai_cfg())
    with pytest.raises(RecoverableError):
        e.embed(["x"])


def test_openai_401_is_terminal(rsps):
    rsps.add(responses.POST, ENDPOINT, body='{"error":"bad key"}', status=401)
    e = OpenAiEmbedder("placeholder", openai_cfg())
    with pytest.raises(TerminalError) as info:
        e.embed(["x"])
    assert "401" in info.value.message


def test_openai_request_carries_bearer_auth_and_model(rsps):
    rsps.add(responses.POST, ENDPOINT, json=ONE, status=200)
    e = OpenAiEmbedder("secret", openai_cfg())
    vectors = e.embed(["hi"])
    assert vectors == [[0.0, 0.0, 0.0, 0.0]]
    request = rsps.calls[0].request
    assert request.headers["Authorization"] == "Bearer secret"
    body = json.loads(request.body)
    assert body == {"input": ["hi"], "model": "text-embedding-3-small", "dimensions": 4}


def test_openai_wrong_count_is_terminal(rsps):
    rsps.add(responses.POST, ENDPOINT, json=ONE, status=200)
    e = OpenAiEmbedder("placeholder", openai_cfg())
    with pytest.raises(TerminalError) as info:
        e.embed(["a", "b"])
    assert "expected 2" in info.value.message


def test_openai_undecodable_body_is_terminal(rsps):
    rsps.add(responses.POST, ENDPOINT, body="not json", status=200)
    e = OpenAiEmbedder("placeholder", openai_cfg())
    with pytest.raises(TerminalError) as info:
        e.embed(["a"])
    assert info.value.message.startswith("decode:")


def test_connection_error_is_recoverable(rsps):
    rsps.add(responses.POST, ENDPOINT, body=requests.ConnectionError("refused"))
    e = OpenAiEmbedder("placeholder", openai_cfg())
    with pytest.raises(RecoverableError) as info:
        e.embed(["a"])
    assert info.value.message.startswith("transport:")


def test_timeout_is_recoverable(rsps):
    rsps.add(responses.POST, ENDPOINT, body=requests.Timeout("slow"))
    e = OpenAiEmbedder("placeholder", openai_cfg())
    with pytest.raises(RecoverableError):
        e.embed(["a"])


def test_other_transport_error_is_terminal(rsps):
    rsps.add(responses.POST, ENDPOINT, body=requests.TooManyRedirects("loop"))
    e = OpenAiEmbedder("placeholder", openai_cfg())
    with pytest.raises(TerminalError) as info:
        e.embed(["a"])
    assert info.value.message.startswith("transport:")


# --- Voyage HTTP behaviour ---

def test_voyage_returns_one_vector_per_input(rsps):
    rsps.add(responses.POST, ENDPOINT, json=PAIR, status=200)
    e = VoyageEmbedder("placeholder", voyage_cfg())
    v = e.embed(["alpha", "beta"])
    assert len(v) == 2
    assert v[0] == [0.1, 0.2, 0.3, 0.4]
    assert len(rsps.calls) == 1


@pytest.mark.parametrize("status,expected", [
    (500, RecoverableError), (429, RecoverableError), (401, TerminalError),
])
def test_voyage_status_classification(rsps, status, expected):
    rsps.add(responses.POST, ENDPOINT, body="", status=status)
    e = VoyageEmbedder("placeholder", voyage_cfg())
    with pytest.raises(expected):
        e.embed(["x"])


def test_voyage_body_carries_model_and_input_type_document(rsps):
    rsps.add(responses.POST, ENDPOINT, json=ONE, status=200)
    e = VoyageEmbedder("placeholder", voyage_cfg())
    vectors = e.embed(["fn main(){}"])
    assert vectors == [[0.0, 0.0, 0.0, 0.0]]
    body = json.loads(rsps.calls[0].request.body)
    assert body == {"input": ["fn main(){}"], "model": "voyage-code-3", "input_type": "document"}


def test_voyage_batches_split_at_boundary(rsps):
    rsps.add(responses.POST, ENDPOINT, json=TWO, status=200)
    rsps.add(responses.POST, ENDPOINT, json=TWO, status=200)
    rsps.add(responses.POST, ENDPOINT, json=ONE, status=200)
    e = VoyageEmbedder("placeholder", voyage_cfg(batch=2))
    v = e.embed(["a", "b", "c", "d", "e"])
    assert len(v) == 5
    assert len(rsps.calls) == 3


def test_voyage_embed_query_uses_query_input_type(rsps):
    rsps.add(responses.POST, ENDPOINT, json={"data": [{"embedding": [1.0, 2.0, 3.0, 4.0]}]}, status=200)
    e = VoyageEmbedder("placeholder", voyage_cfg())
    v = e.embed_query("what is a hexagon")
    assert v == [1.0, 2.0, 3.0, 4.0]
    body = json.loads(rsps.calls[0].request.body)
    assert body["input_type"] == "query"
    assert body["input"] == ["what is a hexagon"]