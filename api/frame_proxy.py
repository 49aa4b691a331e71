"""
Server-side proxy for per-frame analysis.

The frame classifier never talks to the hosted model directly: it posts
``{image, index}`` here and this module forwards the frame to the DashScope
multimodal generation endpoint using the server-held credential. The upstream
JSON is returned unchanged on success so the classifier can read
``output.choices[0].message.content`` from it.
"""

import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from processing.prompts import build_frame_prompt

logger = logging.getLogger(__name__)

ProxyResult = Tuple[int, Dict[str, Any]]


class DashScopeProxy:
    """Forwards frame analysis requests to the hosted multimodal model."""

    def __init__(
        self,
        api_key: Optional[str],
        url: str,
        model: str = "qwen-vl-max",
        timeout_seconds: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize the proxy.

        Args:
            api_key: DashScope credential; requests are rejected when empty
            url: Multimodal generation endpoint
            model: Model name sent upstream
            timeout_seconds: HTTP timeout for the upstream call
            client: Shared AsyncClient; one is created when omitted
        """
        self.api_key = api_key
        self.url = url
        self.model = model
        self.session = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))

    def build_request_body(self, image: str, index: Any) -> Dict[str, Any]:
        """Upstream request body for one frame."""
        return {
            "model": self.model,
            "input": {
                "messages": [
                    {
                        "role": "user",
                        "content": [
                            {"image": image},
                            {"text": build_frame_prompt(index)}
                        ]
                    }
                ]
            }
        }

    async def handle(self, payload: Any) -> ProxyResult:
        """
        Validate an analyze-frame request and forward it.

        Args:
            payload: Decoded JSON request body, or None when it was not JSON

        Returns:
            (status_code, body) to send back to the caller
        """
        if not self.api_key:
            logger.error("Rejected analyze-frame request: QWEN_API_KEY is not configured")
            return 500, {"error": "Missing QWEN_API_KEY on server"}

        if not isinstance(payload, dict):
            payload = {}
        image = payload.get("image")
        if not image or not isinstance(image, str):
            return 400, {"error": "Invalid image payload"}

        return await self.forward(image, payload.get("index"))

    async def forward(self, image: str, index: Any) -> ProxyResult:
        """Send one frame upstream and relay the outcome."""
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

        try:
            response = await self.session.post(
                self.url, json=self.build_request_body(image, index), headers=headers
            )
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Frame {index} upstream call failed: {e}")
            return 500, {"error": "Internal server error", "details": str(e) or type(e).__name__}

        if response.is_error:
            logger.warning(f"Frame {index} rejected upstream with HTTP {response.status_code}")
            return response.status_code, {"error": "DashScope request failed", "details": data}

        logger.debug(f"Frame {index} analysed upstream")
        return 200, data

    async def close(self) -> None:
        """Close the HTTP session."""
        await self.session.aclose()


async def get_frame_proxy():
    """Provide a DashScopeProxy configured from the environment for one request."""
    import config
    proxy = DashScopeProxy(
        api_key=config.QWEN_API_KEY,
        url=config.DASHSCOPE_URL,
        model=config.QWEN_MODEL,
        timeout_seconds=config.UPSTREAM_TIMEOUT
    )
    try:
        yield proxy
    finally:
        await proxy.close()
