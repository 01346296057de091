from __future__ import annotations

import base64
import logging
from typing import Any, Dict, Optional

from langchain.chat_models import init_chat_model
from langchain_core.messages import HumanMessage

from gallery_search.errors import CollaboratorError
from gallery_search.utils.text_cleaning import clean_text


logger = logging.getLogger(__name__)

DESCRIPTION_PROMPT = """Please analyze this image and provide a detailed, descriptive caption.
Focus on:
- Main subjects and objects
- Setting and environment
- Colors, lighting, and mood
- Activities or actions taking place
- Any notable details or features

Keep the description natural and searchable, as it will be used
for finding similar images through text queries."""


class ImageDescriber:
    """Caption images with a vision-capable chat model.

    The model is built with LangChain's ``init_chat_model`` from the
    ``vision_model`` section of the config (provider, model and any extra
    keyword arguments such as temperature or max_tokens).
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        *,
        chat_model: Any = None,
        prompt: str = DESCRIPTION_PROMPT,
    ) -> None:
        self.prompt = prompt
        if chat_model is not None:
            self._chat_model = chat_model
            return

        vision_cfg = dict((config or {}).get("vision_model") or {})
        provider = vision_cfg.pop("provider", None)
        model = vision_cfg.pop("model", None)
        if not provider or not model:
            raise ValueError(
                "Vision configuration missing 'provider' and/or 'model'. "
                "Set them in gallery_search/config.yaml under 'vision_model'."
            )
        logger.info(
            "Initializing vision model via init_chat_model provider=%s model=%s",
            provider,
            model,
        )
        self._chat_model = init_chat_model(model, model_provider=provider, **vision_cfg)

    def build_message(self, image_bytes: bytes, mime_type: str) -> HumanMessage:
        encoded = base64.b64encode(image_bytes).decode("ascii")
        return HumanMessage(
            content=[
                {"type": "text", "text": self.prompt},
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{mime_type};base64,{encoded}"},
                },
            ]
        )

    async def describe(self, image_bytes: bytes, mime_type: str) -> str:
        response = await self._chat_model.ainvoke([self.build_message(image_bytes, mime_type)])
        description = clean_text(_read_message_text(response))
        if not description:
            raise CollaboratorError("Vision model returned an empty description")
        logger.info("Generated description: %s...", description[:100])
        return description


def _read_message_text(message) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    # Some providers answer with a list of content blocks
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(str(block.get("text", "")))
        return " ".join(parts)
    return ""
