"""AI chat check.

Verifies that the AI service reports itself configured and answers a
one-turn prompt.  Chat is stateless, so there is nothing to clean up.
Degradation the platform reports itself (not configured, quota exhausted)
produces ``skip`` steps rather than failures.
"""

from __future__ import annotations

from typing import Any

from canary_engine.base import BaseCheck, StepRecorder
from canary_engine.http import AuthMode, HttpExecutor
from canary_engine.models import CheckResult, CheckStatus
from canary_engine.steps import expect_object, skip_if_status

STATUS_PATH = "/v1/ai/status"
CHAT_PATH = "/v1/ai/chat"

CANARY_PROMPT: dict[str, Any] = {
    "messages": [{"role": "user", "content": "Reply with exactly: CANARY_OK"}],
    "max_tokens": 50,
    "temperature": 0,
}

_STATUS_STEP = f"GET {STATUS_PATH} (check configured)"
_CHAT_STEP = f"POST {CHAT_PATH} (1-turn canary prompt)"


def extract_chat_content(body: Any) -> str | None:
    """Pull the reply text out of the response shapes the AI proxy may return.

    Accepted shapes, in order: ``{"text"}``, ``{"content"}``, ``{"response"}``,
    ``{"choices": [{"message": {"content"}}]}``, ``{"choices": [{"text"}]}``
    and ``{"message": {"content"}}``.
    """
    obj = expect_object(body)
    if obj is None:
        return None

    for key in ("text", "content", "response"):
        if isinstance(obj.get(key), str):
            return obj[key]

    choices = obj.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        choice = choices[0]
        message = choice.get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]
        if isinstance(choice.get("text"), str):
            return choice["text"]

    message = obj.get("message")
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]
    return None


def _validate_status(body: Any) -> str | None:
    obj = expect_object(body)
    if obj is None:
        return "Response is not an object"
    if obj.get("configured") is not True:
        return f"configured expected true, got {obj.get('configured')}"
    return None


def _validate_reply(body: Any) -> str | None:
    if expect_object(body) is None:
        return "Response is not an object"
    content = extract_chat_content(body)
    if not content or not content.strip():
        return "Chat response contained no text content"
    return None


class AiChatCheck(BaseCheck):
    """Status probe plus one stateless chat completion (privileged auth)."""

    @property
    def name(self) -> str:
        return "ai-chat"

    async def execute(self, http: HttpExecutor) -> CheckResult:
        recorder = StepRecorder(self.name)

        status = await http.get(STATUS_PATH, AuthMode.PRIVILEGED)
        skipped = skip_if_status(_STATUS_STEP, status, [503], "AI service not configured")
        if skipped is not None:
            recorder.add(skipped)
            return recorder.finish()

        step = recorder.record(_STATUS_STEP, status, 200, _validate_status)
        if step.status == CheckStatus.FAIL:
            return recorder.finish("AI status check failed")
        recorder.annotate_last(
            f"provider={status.body.get('provider', 'unknown')}, model={status.body.get('model', 'unknown')}"
        )

        chat = await http.post(CHAT_PATH, CANARY_PROMPT, AuthMode.PRIVILEGED)

        skipped = skip_if_status(_CHAT_STEP, chat, [402], "AI quota exceeded") or skip_if_status(
            _CHAT_STEP, chat, [503], "AI service unavailable"
        )
        if skipped is not None:
            recorder.add(skipped)
            return recorder.finish()

        recorder.record(_CHAT_STEP, chat, 200, _validate_reply)
        content = extract_chat_content(chat.body)
        if content:
            recorder.annotate_last(f'response="{content[:100]}"')
        return recorder.finish()
