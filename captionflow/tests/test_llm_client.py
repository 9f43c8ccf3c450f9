"""GroqGenerationClient against a fake SDK client."""
from types import SimpleNamespace
from unittest.mock import Mock

import groq
import httpx
import pytest

from captionflow.core.errors import GenerationFailedError
from captionflow.features.llm.client import (
    CompletionRequest,
    GroqGenerationClient,
    ImagePayload,
    _compute_backoff,
    build_messages,
    complete_json,
)

_REQUEST = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")


def _response(content, refusal=None):
    message = SimpleNamespace(content=content, refusal=refusal)
    return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason="stop")])


def _status_error(cls, status):
    return cls("boom", response=httpx.Response(status, request=_REQUEST), body=None)


def _client(sdk, max_retries=2):
    sleeps = []
    client = GroqGenerationClient(
        "key",
        text_model="text-model",
        vision_model="vision-model",
        max_retries=max_retries,
        client=sdk,
        sleep=sleeps.append,
    )
    return client, sleeps


def _sdk(side_effect):
    sdk = Mock()
    sdk.chat.completions.create.side_effect = side_effect
    return sdk


def test_text_request_uses_text_model_and_plain_content():
    sdk = _sdk([_response("CAPTION: hi\nHASHTAGS: #a")])
    client, _ = _client(sdk)

    text = client.complete(CompletionRequest(system="sys", user="usr", temperature=0.8, max_tokens=500))

    assert text == "CAPTION: hi\nHASHTAGS: #a"
    kwargs = sdk.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "text-model"
    assert kwargs["messages"] == [{"role": "system", "content": "sys"}, {"role": "user", "content": "usr"}]
    assert kwargs["max_tokens"] == 500
    assert "response_format" not in kwargs


def test_vision_request_sends_low_detail_data_url():
    image = ImagePayload(data_base64="QUJD", mime_type="image/png")
    messages = build_messages(CompletionRequest(system="s", user="u", image=image))
    parts = messages[1]["content"]
    assert parts[0] == {"type": "image_url", "image_url": {"url": "data:image/png;base64,QUJD", "detail": "low"}}
    assert parts[1] == {"type": "text", "text": "u"}

    sdk = _sdk([_response("ok")])
    client, _ = _client(sdk)
    client.complete(CompletionRequest(system="s", user="u", image=image, json_mode=True))
    kwargs = sdk.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "vision-model"
    assert kwargs["response_format"] == {"type": "json_object"}


def test_retries_transient_errors_with_backoff():
    sdk = _sdk([
        groq.APIConnectionError(request=_REQUEST),
        _status_error(groq.RateLimitError, 429),
        _response("done"),
    ])
    client, sleeps = _client(sdk, max_retries=2)

    assert client.complete(CompletionRequest(system="s", user="u")) == "done"
    assert sdk.chat.completions.create.call_count == 3
    assert sleeps == [0.5, 1.0]


def test_gives_up_after_max_retries():
    sdk = _sdk([_status_error(groq.InternalServerError, 503)] * 3)
    client, sleeps = _client(sdk, max_retries=1)

    with pytest.raises(GenerationFailedError):
        client.complete(CompletionRequest(system="s", user="u"))
    assert sdk.chat.completions.create.call_count == 2
    assert len(sleeps) == 1


def test_request_errors_are_not_retried():
    sdk = _sdk([_status_error(groq.BadRequestError, 400)])
    client, sleeps = _client(sdk)

    with pytest.raises(GenerationFailedError) as exc:
        client.complete(CompletionRequest(system="s", user="u"))
    assert sdk.chat.completions.create.call_count == 1
    assert sleeps == []
    assert exc.value.code == "generation_failed"
    assert "boom" not in exc.value.message


@pytest.mark.parametrize("response", [_response(""), _response(None), _response("x", refusal="no"), SimpleNamespace(choices=[])])
def test_empty_refused_or_malformed_responses_fail(response):
    client, _ = _client(_sdk([response]))
    with pytest.raises(GenerationFailedError):
        client.complete(CompletionRequest(system="s", user="u"))


def test_backoff_is_exponential_and_capped():
    assert _compute_backoff(0).total_seconds() == 0.5
    assert _compute_backoff(2).total_seconds() == 2.0
    assert _compute_backoff(10).total_seconds() == 8.0


def test_complete_json_decodes_objects(fake_llm):
    fake_llm.responses = ['{"hooks": ["a"]}', "not json"]
    request = CompletionRequest(system="s", user="u", json_mode=True)
    assert complete_json(fake_llm, request) == {"hooks": ["a"]}
    with pytest.raises(GenerationFailedError):
        complete_json(fake_llm, request)
    with pytest.raises(ValueError):
        complete_json(fake_llm, CompletionRequest(system="s", user="u"))
