"""OCR providers and dispatch for the screenshot-to-paste workflow.

Each provider kind speaks its own wire protocol; all of them hand back an
:class:`OcrResult` and none of them raise. Configuration mistakes, HTTP
errors, malformed bodies and transport exceptions all come back as
``OcrResult(success=False, error=...)``.

Chat-completion kinds (``siliconflow``, ``openai``, ``custom``) post a
single user message holding the image and a prompt. The ``mathpix`` kind
posts to the dedicated Mathpix endpoint with the credential split into the
``app_id`` / ``app_key`` headers.
"""

from __future__ import annotations

import base64
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

import aiohttp

from .logging_utils import get_logger

_LOGGER = get_logger(__name__)

DEFAULT_CHAT_URL = "https://api.siliconflow.cn/v1/chat/completions"
DEFAULT_CHAT_MODEL = "deepseek-ai/DeepSeek-V3"
BUILTIN_MODEL = "deepseek-ai/DeepSeek-OCR"
MATHPIX_URL = "https://api.mathpix.com/v3/text"

MAX_TOKENS = 4096
MATH_TEMPERATURE = 0
TEXT_TEMPERATURE = 0.1

# Raw image bytes, a bare base64 string, or a data URL
ImageInput = Union[bytes, bytearray, memoryview, str]


class ProviderType(Enum):
    """Closed set of OCR backends"""
    SILICONFLOW = "siliconflow"
    OPENAI = "openai"
    MATHPIX = "mathpix"
    CUSTOM = "custom"


@dataclass(frozen=True)
class OcrProviderConfig:
    """One configured OCR backend. Never mutated, only replaced."""

    id: str
    name: str
    type: ProviderType
    api_key: str = field(default="", repr=False)
    base_url: Optional[str] = None
    model: Optional[str] = None
    is_builtin: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OcrProviderConfig":
        """Build a config from its settings-file form.

        Raises:
            ValueError: if ``id``/``name`` are missing or ``type`` is unknown
        """
        try:
            provider_id = str(data["id"])
            name = str(data["name"])
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Provider entry is missing a field: {exc}") from exc

        try:
            provider_type = ProviderType(data.get("type"))
        except ValueError as exc:
            raise ValueError(f"Unknown provider type: {data.get('type')!r}") from exc

        return cls(
            id=provider_id,
            name=name,
            type=provider_type,
            api_key=str(data.get("api_key") or ""),
            base_url=data.get("base_url") or None,
            model=data.get("model") or None,
            is_builtin=bool(data.get("is_builtin", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "api_key": self.api_key,
            "base_url": self.base_url,
            "model": self.model,
            "is_builtin": self.is_builtin,
        }


@dataclass(frozen=True)
class OcrRequest:
    """Input of one OCR invocation. ``config=None`` means the built-in provider."""

    image: ImageInput = field(repr=False)
    math_mode: bool = False
    config: Optional[OcrProviderConfig] = None


@dataclass(frozen=True)
class OcrResult:
    """Outcome of one OCR invocation: fully successful or fully failed."""

    success: bool
    text: Optional[str] = None
    latex: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, text: str, latex: Optional[str] = None) -> "OcrResult":
        return cls(success=True, text=text, latex=latex)

    @classmethod
    def fail(cls, error: str) -> "OcrResult":
        return cls(success=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        for key in ("text", "latex", "error"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


# ---------------------------------------------------------------------------
# Image and content helpers
# ---------------------------------------------------------------------------

_DATA_URL_PREFIX = re.compile(r"^data:image/\w+;base64,")
_LATEX_PATTERN = re.compile(r"\$[^$]+\$|\$\$[^$]+\$\$|\\[a-zA-Z]+")


def strip_data_url(image: ImageInput) -> str:
    """Return the bare base64 payload of ``image``."""
    if isinstance(image, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(image)).decode("ascii")
    return _DATA_URL_PREFIX.sub("", image, count=1)


def to_data_url(image: ImageInput) -> str:
    """Re-wrap ``image`` as a PNG data URL."""
    return "data:image/png;base64," + strip_data_url(image)


def has_latex(text: Optional[str]) -> bool:
    """Presence test for LaTeX: ``$..$``, ``$$..$$`` or a ``\\command``.

    Not a validator. Stray currency amounts may match; a lone ``$`` does not.
    """
    if not text:
        return False
    return _LATEX_PATTERN.search(text) is not None


def _describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def _is_success(status: int) -> bool:
    return 200 <= status < 300


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

OCR_MODEL_MARKER = "DeepSeek-OCR"
OCR_MODEL_PROMPT = "Free OCR."
OCR_MODEL_MATH_PROMPT = "Convert the document to markdown."

MATH_PROMPT = """You are a mathematical formula OCR expert. Extract all mathematical content from this image.

Rules:
1. Output ALL formulas in LaTeX format
2. Use $...$ for inline math
3. Use $$...$$ for display/block math
4. Preserve equation numbering if present
5. For matrices, use \\begin{pmatrix}...\\end{pmatrix} or \\begin{bmatrix}...\\end{bmatrix}
6. For aligned equations, use \\begin{align}...\\end{align}
7. Include any surrounding text context
8. Do not explain, just output the extracted content

Output the LaTeX directly:"""

TEXT_PROMPT = """Please extract all text and mathematical formulas from this image.
For mathematical formulas, output them in LaTeX format wrapped with $ for inline math or $$ for display math.
Output the content in a clean, readable format preserving the original structure.
If there are no formulas, just output the plain text.
Do not add any explanations, just output the extracted content directly."""


def build_prompt(model: str, math_mode: bool) -> str:
    """Pick the instruction text for ``model``.

    The dedicated OCR model is tuned for two short instructions and gets
    worse with long ones, so it only ever sees those.
    """
    if OCR_MODEL_MARKER in model:
        return OCR_MODEL_MATH_PROMPT if math_mode else OCR_MODEL_PROMPT
    return MATH_PROMPT if math_mode else TEXT_PROMPT


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------

class OcrProvider(ABC):
    """One wire protocol for turning an image into text"""

    @abstractmethod
    async def recognize(
        self,
        image: ImageInput,
        config: OcrProviderConfig,
        math_mode: bool,
        session: aiohttp.ClientSession,
    ) -> OcrResult:
        """Run recognition and normalize the response. Must not raise."""


class ChatCompletionProvider(OcrProvider):
    """OpenAI-style ``/chat/completions`` vision endpoints"""

    def build_payload(
        self, image: ImageInput, config: OcrProviderConfig, math_mode: bool
    ) -> Dict[str, Any]:
        model = config.model or DEFAULT_CHAT_MODEL
        return {
            "model": model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "image_url", "image_url": {"url": to_data_url(image)}},
                        {"type": "text", "text": build_prompt(model, math_mode)},
                    ],
                }
            ],
            "max_tokens": MAX_TOKENS,
            "temperature": MATH_TEMPERATURE if math_mode else TEXT_TEMPERATURE,
        }

    @staticmethod
    def extract_content(data: Any) -> Optional[str]:
        """Return ``choices[0].message.content`` or None when absent."""
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return None
        return content if isinstance(content, str) else None

    async def recognize(self, image, config, math_mode, session):
        url = config.base_url or DEFAULT_CHAT_URL
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {config.api_key}",
        }
        try:
            payload = self.build_payload(image, config, math_mode)
            async with session.post(url, json=payload, headers=headers) as resp:
                if not _is_success(resp.status):
                    body = await resp.text()
                    _LOGGER.error("API error %s from %s: %s", resp.status, config.name, body)
                    return OcrResult.fail(f"API error: {resp.status}")
                data = await resp.json(content_type=None)
        except Exception as exc:
            _LOGGER.error("OCR request to %s failed: %s", config.name, _describe(exc))
            return OcrResult.fail(_describe(exc))

        _LOGGER.debug("Response from %s: %r", config.name, data)
        content = self.extract_content(data)
        if not content:
            _LOGGER.error("No content in response from %s", config.name)
            return OcrResult.fail("No content in response")

        return OcrResult.ok(content, latex=content if has_latex(content) else None)


CREDENTIAL_FORMAT_ERROR = 'Mathpix API key format should be "app_id:app_key"'


def split_credentials(api_key: str) -> Tuple[str, str]:
    """Split ``"app_id:app_key"``; a missing half comes back empty."""
    parts = (api_key or "").split(":")
    return parts[0], parts[1] if len(parts) > 1 else ""


class MathpixProvider(OcrProvider):
    """Mathpix ``v3/text`` endpoint. Math mode does not change the request."""

    @staticmethod
    def build_payload(image: ImageInput) -> Dict[str, Any]:
        return {
            "src": to_data_url(image),
            "formats": ["text", "latex_styled"],
            "data_options": {
                "include_asciimath": True,
                "include_latex": True,
            },
        }

    async def recognize(self, image, config, math_mode, session):
        app_id, app_key = split_credentials(config.api_key)
        if not app_id or not app_key:
            _LOGGER.warning("Rejected malformed Mathpix credential for %s", config.name)
            return OcrResult.fail(CREDENTIAL_FORMAT_ERROR)

        headers = {
            "Content-Type": "application/json",
            "app_id": app_id,
            "app_key": app_key,
        }

        try:
            async with session.post(
                MATHPIX_URL, json=self.build_payload(image), headers=headers
            ) as resp:
                if not _is_success(resp.status):
                    body = await resp.text()
                    _LOGGER.error("Mathpix error %s: %s", resp.status, body)
                    return OcrResult.fail(f"Mathpix error: {resp.status} - {body}")
                data = await resp.json(content_type=None)
        except Exception as exc:
            _LOGGER.error("Mathpix request failed: %s", _describe(exc))
            return OcrResult.fail(_describe(exc))

        if not isinstance(data, dict):
            return OcrResult.fail("No content in response")

        latex = data.get("latex_styled") or data.get("text")
        if not latex and data.get("error"):
            # Mathpix reports some failures inside a 200 body
            return OcrResult.fail(f"Mathpix error: {data['error']}")

        return OcrResult.ok(latex or "", latex=latex or None)


_CHAT = ChatCompletionProvider()

PROVIDERS: Dict[ProviderType, OcrProvider] = {
    ProviderType.SILICONFLOW: _CHAT,
    ProviderType.OPENAI: _CHAT,
    ProviderType.CUSTOM: _CHAT,
    ProviderType.MATHPIX: MathpixProvider(),
}


async def perform_ocr(
    image: ImageInput,
    config: OcrProviderConfig,
    math_mode: bool = False,
    session: Optional[aiohttp.ClientSession] = None,
) -> OcrResult:
    """Recognize ``image`` with the provider selected by ``config.type``.

    Args:
        image: PNG bytes, bare base64 or a ``data:image/...;base64,`` URL
        config: provider to call
        math_mode: stricter LaTeX prompt and zero temperature
        session: shared aiohttp session; a temporary one is used if omitted

    Returns:
        OcrResult, never raises
    """
    provider = PROVIDERS.get(config.type)
    if provider is None:
        return OcrResult.fail("Unknown API type")

    if session is not None:
        return await provider.recognize(image, config, math_mode, session)

    try:
        async with aiohttp.ClientSession() as own_session:
            return await provider.recognize(image, config, math_mode, own_session)
    except Exception as exc:
        _LOGGER.error("OCR session for %s failed: %s", config.name, _describe(exc))
        return OcrResult.fail(_describe(exc))


async def perform_math_ocr(
    image: ImageInput,
    api_key: str,
    session: Optional[aiohttp.ClientSession] = None,
) -> OcrResult:
    """Math-mode OCR against the default endpoint with a bare API key."""
    config = OcrProviderConfig(
        id="legacy",
        name="Legacy",
        type=ProviderType.SILICONFLOW,
        api_key=api_key,
        base_url=DEFAULT_CHAT_URL,
        model=DEFAULT_CHAT_MODEL,
    )
    return await perform_ocr(image, config, math_mode=True, session=session)


class OcrDispatcher:
    """Chooses between a caller's provider and the built-in one.

    The built-in config is held privately; only its identity leaves this
    object, through :meth:`builtin_info`.
    """

    def __init__(self, builtin: OcrProviderConfig):
        if not builtin.is_builtin:
            raise ValueError(f"Provider {builtin.id!r} is not flagged as built-in")
        self._builtin = builtin

    def resolve(self, config: Optional[OcrProviderConfig]) -> OcrProviderConfig:
        if config is not None and not config.is_builtin:
            return config
        return self._builtin

    async def dispatch(
        self,
        image: ImageInput,
        config: Optional[OcrProviderConfig] = None,
        math_mode: bool = False,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> OcrResult:
        resolved = self.resolve(config)
        _LOGGER.info(
            "OCR via %s (%s), math_mode=%s", resolved.name, resolved.type.value, math_mode
        )
        return await perform_ocr(image, resolved, math_mode, session=session)

    async def run(
        self, request: OcrRequest, session: Optional[aiohttp.ClientSession] = None
    ) -> OcrResult:
        return await self.dispatch(
            request.image, request.config, request.math_mode, session=session
        )

    def builtin_info(self) -> Dict[str, Any]:
        """Display identity of the built-in provider, without its credential."""
        return {
            "id": self._builtin.id,
            "name": self._builtin.name,
            "type": self._builtin.type.value,
            "is_builtin": True,
        }
