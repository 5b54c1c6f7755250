"""Tests for request schemas and payload construction."""

import pytest
from pydantic import ValidationError

from workers_chat.schemas.chat import ChatMessage, ChatRequest, ensure_system_prompt
from workers_chat.schemas.images import ImageGenerationRequest

SYSTEM = "You are a test assistant."


class TestEnsureSystemPrompt:
    def test_prepends_instruction_when_missing(self):
        messages = [
            ChatMessage(role="user", content="hi"),
            ChatMessage(role="assistant", content="hello"),
            ChatMessage(role="user", content="how are you?"),
        ]

        result = ensure_system_prompt(messages, SYSTEM)

        assert result[0] == ChatMessage(role="system", content=SYSTEM)
        assert result[1:] == messages

    def test_existing_system_message_anywhere_is_kept(self):
        messages = [
            ChatMessage(role="user", content="hi"),
            ChatMessage(role="system", content="custom"),
        ]

        result = ensure_system_prompt(messages, SYSTEM)

        assert result == messages

    def test_is_idempotent(self):
        once = ensure_system_prompt([ChatMessage(role="user", content="hi")], SYSTEM)
        twice = ensure_system_prompt(once, SYSTEM)

        assert twice == once
        assert [m.role for m in twice].count("system") == 1

    def test_does_not_mutate_input(self):
        messages = [ChatMessage(role="user", content="hi")]
        ensure_system_prompt(messages, SYSTEM)
        assert len(messages) == 1


class TestChatRequest:
    def test_messages_default_to_empty(self):
        payload = ChatRequest.model_validate({}).to_workers_ai_payload(SYSTEM, 1024)

        assert payload == {
            "messages": [{"role": "system", "content": SYSTEM}],
            "max_tokens": 1024,
            "stream": True,
        }

    def test_payload_keeps_order(self):
        request = ChatRequest.model_validate(
            {
                "messages": [
                    {"role": "user", "content": "a"},
                    {"role": "assistant", "content": "b"},
                    {"role": "user", "content": "c"},
                ]
            }
        )

        payload = request.to_workers_ai_payload(SYSTEM, 64)

        assert [m["content"] for m in payload["messages"]] == [SYSTEM, "a", "b", "c"]
        assert payload["max_tokens"] == 64

    def test_rejects_unknown_role(self):
        with pytest.raises(ValidationError):
            ChatRequest.model_validate({"messages": [{"role": "tool", "content": "x"}]})


class TestImageGenerationRequest:
    def test_txt2img_defaults(self):
        request = ImageGenerationRequest.model_validate({"prompt": "a red fox"})

        assert request.wants_img2img is False
        assert request.to_workers_ai_payload(0.75) == {
            "prompt": "a red fox",
            "width": 512,
            "height": 512,
            "num_steps": 20,
            "strength": 1.0,
            "guidance": 7.5,
        }

    @pytest.mark.parametrize(
        "extra",
        [
            {"type": "img2img"},
            {"image": [137, 80, 78, 71]},
            {"image_b64": "iVBORw0KGgo="},
        ],
    )
    def test_img2img_selected_by_type_or_source_image(self, extra):
        request = ImageGenerationRequest.model_validate({"prompt": "fox", **extra})

        assert request.wants_img2img is True
        assert request.to_workers_ai_payload(0.6)["strength"] == 0.6

    def test_explicit_strength_is_kept(self):
        request = ImageGenerationRequest.model_validate(
            {"prompt": "fox", "type": "img2img", "strength": 0.3}
        )
        assert request.to_workers_ai_payload(0.75)["strength"] == 0.3

    def test_optional_fields_pass_through(self):
        request = ImageGenerationRequest.model_validate(
            {
                "prompt": "fox",
                "negative_prompt": "blurry",
                "seed": 42,
                "mask": [0, 255],
                "unknown": "dropped",
            }
        )

        payload = request.to_workers_ai_payload(0.75)

        assert payload["negative_prompt"] == "blurry"
        assert payload["seed"] == 42
        assert payload["mask"] == [0, 255]
        assert "unknown" not in payload
        assert "type" not in payload and "generation_type" not in payload

