from __future__ import annotations

import base64
import json
import logging
import re
import time
from typing import Any, Dict, List, Optional
from uuid import uuid4

import httpx

logger = logging.getLogger(__name__)

PROVIDER_URLS = {
    "dashscope": "https://dashscope-intl.aliyuncs.com/compatible-mode/v1/chat/completions",
    "openai": "https://api.openai.com/v1/chat/completions",
}
CHAT_COMPLETIONS_PATH = "/chat/completions"
CODE_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class LLMClient:
    def __init__(
        self,
        provider: str,
        model: str,
        api_key: str,
        api_url: Optional[str] = None,
        timeout_s: float = 60.0,
        temperature: float = 0.1,
        top_p: float = 0.95,
        max_tokens: int = 4096,
    ) -> None:
        self.provider = provider
        self.model = model
        self.api_key = api_key
        api_url = self._resolve_api_url(provider, api_url)
        if not api_url:
            raise ValueError("LLM API URL is required")
        self.api_url: str = api_url
        self.timeout_s = timeout_s
        self.temperature = temperature
        self.top_p = top_p
        self.max_tokens = max_tokens
        self.last_latency_ms: Optional[float] = None
        self.last_request_id: Optional[str] = None

    @staticmethod
    def _resolve_api_url(provider: str, api_url: Optional[str]) -> Optional[str]:
        if api_url:
            api_url = api_url.rstrip("/")
            if not api_url.endswith(CHAT_COMPLETIONS_PATH):
                api_url = f"{api_url}{CHAT_COMPLETIONS_PATH}"
            return api_url
        return PROVIDER_URLS.get(provider)

    @staticmethod
    def _extract_content(data: Dict[str, Any]) -> Optional[str]:
        if isinstance(data.get("content"), str):
            return data["content"]
        choices = data.get("choices")
        if isinstance(choices, list) and choices:
            first = choices[0]
            if isinstance(first, dict):
                message = first.get("message")
                if isinstance(message, dict):
                    content = message.get("content")
                    if isinstance(content, str):
                        return content
                    if isinstance(content, list):
                        parts = [
                            part.get("text", "")
                            for part in content
                            if isinstance(part, dict) and part.get("type") == "text"
                        ]
                        if parts:
                            return "".join(parts)
                if isinstance(first.get("text"), str):
                    return first["text"]
        return None

    @staticmethod
    def _strip_code_fence(text: str) -> str:
        text = text.strip()
        match = CODE_FENCE_PATTERN.match(text)
        return match.group(1) if match else text

    @staticmethod
    def image_data_url(image_bytes: bytes, mime_type: str = "image/jpeg") -> str:
        encoded = base64.b64encode(image_bytes).decode("ascii")
        return f"data:{mime_type};base64,{encoded}"

    def build_payload(
        self,
        system_prompt: str,
        user_prompt: str,
        image_bytes: Optional[bytes] = None,
        mime_type: str = "image/jpeg",
    ) -> Dict[str, Any]:
        user_content: List[Dict[str, Any]] = [{"type": "text", "text": user_prompt}]
        if image_bytes is not None:
            user_content.append(
                {
                    "type": "image_url",
                    "image_url": {"url": self.image_data_url(image_bytes, mime_type)},
                }
            )
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            "response_format": {"type": "json_object"},
            "temperature": self.temperature,
            "top_p": self.top_p,
            "max_tokens": self.max_tokens,
        }

    def request_json(
        self,
        system_prompt: str,
        user_prompt: str,
        image_bytes: Optional[bytes] = None,
        mime_type: str = "image/jpeg",
    ) -> Dict[str, Any]:
        request_id = str(uuid4())
        self.last_request_id = request_id
        payload = self.build_payload(system_prompt, user_prompt, image_bytes, mime_type)
        response_text = self._send_request(payload, request_id)
        try:
            parsed = json.loads(self._strip_code_fence(response_text))
        except json.JSONDecodeError as exc:
            raise ValueError(
                f"Invalid JSON response from provider={self.provider} "
                f"request_id={request_id}"
            ) from exc
        if not isinstance(parsed, dict):
            raise ValueError(
                f"Expected a JSON object from provider={self.provider} "
                f"request_id={request_id} got={type(parsed).__name__}"
            )
        return parsed

    def _send_request(self, payload: Dict[str, Any], request_id: str) -> str:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        start_time = time.monotonic()
        try:
            with httpx.Client(timeout=self.timeout_s) as client:
                response = client.post(self.api_url, headers=headers, json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            raise ValueError(
                f"LLM request failed for provider={self.provider} "
                f"request_id={request_id}: {exc}"
            ) from exc
        except ValueError as exc:
            raise ValueError(
                f"Invalid JSON response from provider={self.provider} "
                f"request_id={request_id}"
            ) from exc
        finally:
            self.last_latency_ms = (time.monotonic() - start_time) * 1000
            logger.debug(
                "LLM request completed request_id=%s provider=%s model=%s latency_ms=%.2f",
                request_id,
                self.provider,
                self.model,
                self.last_latency_ms,
            )
        content = self._extract_content(data) if isinstance(data, dict) else None
        if content is None:
            keys = sorted(list(data.keys())) if isinstance(data, dict) else []
            raise ValueError(
                "Unexpected LLM response format from provider="
                f"{self.provider} request_id={request_id} keys={keys}"
            )
        return content
