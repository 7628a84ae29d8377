"""Model gateway for chat completions in minessh."""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from ..constants import (
    DEFAULT_MODEL, DEFAULT_OPENAI_MODEL, DEFAULT_REQUEST_TIMEOUT, OPENAI_COMPATIBLE_PROVIDERS
)
from ..models import ModelParams
from ..utils.helpers import clip_text
from ..utils.logging import logger
from .context import ConversationContext


class GatewayError(Exception):
    """Base class for model gateway failures."""


class NetworkError(GatewayError):
    """The endpoint could not be reached."""


class StatusError(GatewayError):
    """The endpoint answered with a non-200 status."""

    def __init__(self, status: int, body: str = ""):
        super().__init__(f"AI API Error: {status} - {body}" if body else f"AI API Error: {status}")
        self.status = status
        self.body = body


class FormatError(GatewayError):
    """The endpoint answered with something that is not a usable reply."""


@dataclass(frozen=True)
class AssistantMessage:
    content: str


class ModelGateway:
    """Talks to Ollama or OpenAI-compatible chat endpoints.

    Requests go through ``curl`` in a subprocess; the HTTP status code is
    appended to stdout with ``-w`` so it can be checked separately from the body.
    """

    STATUS_MARKER = "\n__HTTP_STATUS__:"

    def __init__(self, request_timeout: int = DEFAULT_REQUEST_TIMEOUT):
        """Initialize the gateway.

        Args:
            request_timeout: Seconds curl may spend on one request (0 disables the limit)
        """
        self.request_timeout = request_timeout

    @staticmethod
    def is_openai(params: ModelParams) -> bool:
        return params.provider in OPENAI_COMPATIBLE_PROVIDERS

    def chat_url(self, params: ModelParams) -> str:
        base = params.base_url.rstrip("/")
        return f"{base}/chat/completions" if self.is_openai(params) else f"{base}/api/chat"

    def models_url(self, params: ModelParams) -> str:
        base = params.base_url.rstrip("/")
        return f"{base}/models" if self.is_openai(params) else f"{base}/api/tags"

    async def chat(self, context: ConversationContext, params: ModelParams) -> AssistantMessage:
        """Send the conversation and return the assistant's reply.

        Raises:
            NetworkError, StatusError, FormatError
        """
        model = params.model or (DEFAULT_OPENAI_MODEL if self.is_openai(params) else DEFAULT_MODEL)
        payload = {
            "model": model,
            "messages": context.to_payload(),
            "stream": False,
        }
        logger.debug(f"Chat request to {self.chat_url(params)} (model {model}, {len(context)} messages)")
        data = await self._request("POST", self.chat_url(params), params.api_key, payload)

        if self.is_openai(params):
            choices = data.get("choices") if isinstance(data, dict) else None
            if not isinstance(choices, list) or not choices:
                raise FormatError("Invalid OpenAI response format")
            message = choices[0].get("message") if isinstance(choices[0], dict) else None
        else:
            message = data.get("message") if isinstance(data, dict) else None

        if not isinstance(message, dict) or not isinstance(message.get("content"), str):
            raise FormatError("No response from AI.")
        return AssistantMessage(content=message["content"])

    async def list_models(self, params: ModelParams) -> List[str]:
        """List the model names the endpoint offers."""
        data = await self._request("GET", self.models_url(params), params.api_key)
        if not isinstance(data, dict):
            raise FormatError("Invalid model list response")

        if self.is_openai(params):
            return [str(m["id"]) for m in data.get("data") or [] if isinstance(m, dict) and "id" in m]
        return [str(m["name"]) for m in data.get("models") or [] if isinstance(m, dict) and "name" in m]

    async def _request(self, method: str, url: str, api_key: Optional[str], payload: Any = None) -> Any:
        cmd = self._build_curl_command(method, url, api_key, has_body=payload is not None)
        body = json.dumps(payload).encode("utf-8") if payload is not None else None

        returncode, stdout, stderr = await self._run_curl(cmd, body)
        if returncode != 0:
            logger.error(f"Model API call failed with curl exit code {returncode}")
            raise NetworkError(stderr.strip() or f"curl exited with code {returncode}")

        text, status = self._split_status(stdout)
        if status != 200:
            raise StatusError(status, text.strip())

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            logger.debug(f"Raw response: {clip_text(text, 500)}")
            raise FormatError(f"Failed to parse model response as JSON: {e}") from e

    def _build_curl_command(self, method: str, url: str, api_key: Optional[str], has_body: bool) -> List[str]:
        """Build curl command for an API call."""
        cmd = [
            "curl",
            "-s",  # Silent mode
            "-S",  # but still report errors on stderr
            "-X", method,
            "-w", self.STATUS_MARKER + "%{http_code}",
        ]
        if has_body:
            cmd.extend(["-H", "Content-Type: application/json", "--data-binary", "@-"])
        if api_key:
            cmd.extend(["-H", f"Authorization: Bearer {api_key}"])
        if self.request_timeout:
            cmd.extend(["--max-time", str(self.request_timeout)])

        cmd.append(url)
        return cmd

    async def _run_curl(self, cmd: List[str], body: Optional[bytes]) -> Tuple[int, str, str]:
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE if body is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise NetworkError(f"Could not start curl: {e}") from e

        stdout, stderr = await process.communicate(body)
        return (
            process.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    def _split_status(self, stdout: str) -> Tuple[str, int]:
        text, marker, status = stdout.rpartition(self.STATUS_MARKER)
        if not marker:
            raise FormatError("Response did not include an HTTP status")
        try:
            return text, int(status.strip())
        except ValueError as e:
            raise FormatError(f"Unreadable HTTP status: {status!r}") from e


def create_model_gateway(request_timeout: int = DEFAULT_REQUEST_TIMEOUT) -> ModelGateway:
    """Create a model gateway with the given request timeout."""
    return ModelGateway(request_timeout)
