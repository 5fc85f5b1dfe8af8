from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Optional, Protocol, Tuple, Type, TypeVar

import google.generativeai as genai
try:  # optional dependency
    from openai import AsyncOpenAI  # type: ignore
except Exception:  # pragma: no cover - openai may not be installed in minimal env
    AsyncOpenAI = None  # type: ignore
from pydantic import BaseModel, ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .cache import Cache
from .coords import as_float_pair
from .geocode import reverse_geocode
from .prompts import (
    FLIGHT_HINT_TEMPLATE,
    FLIGHT_PROMPT_TEMPLATE,
    GUESS_PROMPT,
    IMAGE_PROMPT_TEMPLATE,
    PROMPT_VERSION,
    REVEAL_PROMPT_TEMPLATE,
    SYSTEM_PROMPT,
)
from .types import Coordinates, FlightDestination, GuessAnalysis, RevealResult
from .utils import b64_data_url, sha256_bytes


logger = logging.getLogger(__name__)

GEMINI_DEFAULT_MODEL = os.environ.get("WHERE_IS_THIS_GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_IMAGE_MODEL = os.environ.get("WHERE_IS_THIS_GEMINI_IMAGE_MODEL", "gemini-2.5-flash-image")
OPENAI_DEFAULT_MODEL = os.environ.get("WHERE_IS_THIS_OPENAI_MODEL", "gpt-4o-mini")
OPENAI_IMAGE_MODEL = os.environ.get("WHERE_IS_THIS_OPENAI_IMAGE_MODEL", "gpt-image-1")
DEFAULT_PROVIDER = os.environ.get("WHERE_IS_THIS_PROVIDER", "gemini")  # gemini or openai
PROVIDERS = ("gemini", "openai")

ImageInput = Tuple[bytes, str]
M = TypeVar("M", bound=BaseModel)


class InferenceError(RuntimeError):
    """A model call failed or returned something unusable."""


class JsonParseError(InferenceError):
    pass


class MissingCredentials(InferenceError):
    """Not worth retrying: the provider cannot be called at all."""


class ImageSynthesisError(RuntimeError):
    pass


class InferenceGateway(Protocol):
    """What the game needs from a model provider.

    Every method either returns the typed result or raises InferenceError.
    """

    async def analyze_image(self, image: bytes, mime_type: str) -> GuessAnalysis: ...

    async def evaluate_reveal(self, image: bytes, mime_type: str, location_text: str) -> RevealResult: ...

    async def resolve_coordinates(self, lat_text: str, lng_text: str) -> FlightDestination: ...


def _configure_gemini() -> None:
    api_key = os.environ.get("GOOGLE_API_KEY")
    if not api_key:
        raise MissingCredentials("GOOGLE_API_KEY not set. Set it in env or .env")
    genai.configure(api_key=api_key)


def _configure_openai():  # -> AsyncOpenAI
    if AsyncOpenAI is None:
        raise MissingCredentials("openai package not installed. Install with pip install 'where-is-this[openai]'")
    api_key = os.environ.get("OPENAI_API_KEY")
    if not api_key:
        raise MissingCredentials("OPENAI_API_KEY not set. Set it in env or .env")
    return AsyncOpenAI(api_key=api_key)


class ModelClient:
    """Gemini (default) or OpenAI implementation of :class:`InferenceGateway`.

    Structured answers are cached on disk by provider, model, prompt version
    and inputs. Destination pictures and map hints are best-effort extras:
    when they fail the flight result is returned without them.
    """

    def __init__(
        self,
        provider: str = DEFAULT_PROVIDER,
        model_name: Optional[str] = None,
        image_model: Optional[str] = None,
        cache: Optional[Cache] = None,
        use_cache: bool = True,
        synthesize_images: bool = True,
        geocode_hints: bool = True,
        max_attempts: int = 3,
        backoff: float = 1.0,
        timeout: float = 120.0,
    ) -> None:
        provider = provider.lower()
        if provider not in PROVIDERS:
            raise ValueError(f"Unknown provider '{provider}'. Use 'gemini' or 'openai'.")
        self.provider = provider
        if provider == "openai":
            self.model_name = model_name or OPENAI_DEFAULT_MODEL
            self.image_model = image_model or OPENAI_IMAGE_MODEL
        else:
            self.model_name = model_name or GEMINI_DEFAULT_MODEL
            self.image_model = image_model or GEMINI_IMAGE_MODEL
        self.cache = cache or Cache()
        self.use_cache = use_cache
        self.synthesize_images = synthesize_images
        self.geocode_hints = geocode_hints
        self.max_attempts = max(1, max_attempts)
        self.backoff = backoff
        self.timeout = timeout

    async def analyze_image(self, image: bytes, mime_type: str) -> GuessAnalysis:
        key = Cache.key("guess", self.provider, self.model_name, PROMPT_VERSION, sha256_bytes(image))
        return await self._structured(GuessAnalysis, key, GUESS_PROMPT, image=(image, mime_type), temperature=0.7)

    async def evaluate_reveal(self, image: bytes, mime_type: str, location_text: str) -> RevealResult:
        location_text = location_text.strip()
        key = Cache.key(
            "reveal", self.provider, self.model_name, PROMPT_VERSION, sha256_bytes(image), location_text.lower()
        )
        prompt = REVEAL_PROMPT_TEMPLATE.replace("<<LOCATION>>", location_text)
        return await self._structured(RevealResult, key, prompt, image=(image, mime_type), temperature=0.8)

    async def resolve_coordinates(self, lat_text: str, lng_text: str) -> FlightDestination:
        numeric = as_float_pair(lat_text, lng_text)
        hint = ""
        if numeric and self.geocode_hints:
            place = await self._lookup_place(*numeric)
            if place:
                hint = FLIGHT_HINT_TEMPLATE.replace("<<PLACE>>", place)
        prompt = (
            FLIGHT_PROMPT_TEMPLATE.replace("<<LAT>>", lat_text)
            .replace("<<LNG>>", lng_text)
            .replace("<<HINT>>", hint)
        )
        key = Cache.key("flight", self.provider, self.model_name, PROMPT_VERSION, lat_text, lng_text, hint)
        destination = await self._structured(FlightDestination, key, prompt, temperature=0.7)

        if numeric:
            destination = destination.model_copy(
                update={"coordinates": Coordinates(lat=numeric[0], lng=numeric[1])}
            )
        if self.synthesize_images:
            picture = await self.synthesize_image(destination)
            if picture:
                destination = destination.model_copy(update={"image": picture})
        return destination

    async def synthesize_image(self, destination: FlightDestination) -> Optional[str]:
        """Return a data URL picturing ``destination``, or None if that did not work."""
        place = ", ".join(
            p for p in (destination.location_name, destination.city, destination.country) if p
        )
        prompt = IMAGE_PROMPT_TEMPLATE.replace("<<PLACE>>", place)
        try:
            return await self._generate_image(prompt)
        except ImageSynthesisError as e:
            logger.info("Image synthesis for %s failed: %s", place, e)
            return None

    async def _lookup_place(self, lat: float, lng: float) -> Optional[str]:
        try:
            place = await asyncio.to_thread(reverse_geocode, lat, lng, self.cache)
        except OSError as e:
            logger.info("Skipping map hint: %s", e)
            return None
        return place.label() if place else None

    async def _structured(
        self,
        model_cls: Type[M],
        cache_key: str,
        prompt: str,
        image: Optional[ImageInput] = None,
        temperature: float = 0.7,
    ) -> M:
        if self.use_cache:
            cached = await asyncio.to_thread(self.cache.get, cache_key)
            if cached is not None:
                try:
                    return model_cls.model_validate(cached)
                except ValidationError:
                    pass

        output: Optional[M] = None
        async for attempt in AsyncRetrying(
            wait=wait_exponential(multiplier=self.backoff, min=2 * self.backoff, max=20 * self.backoff),
            stop=stop_after_attempt(self.max_attempts),
            retry=retry_if_exception_type(InferenceError) & retry_if_not_exception_type(MissingCredentials),
            reraise=True,
        ):
            with attempt:
                text = await self._complete(prompt, image, temperature)
                output = _parse_output(model_cls, text)
        assert output is not None

        if self.use_cache:
            try:
                await asyncio.to_thread(self.cache.set, cache_key, output.model_dump(mode="json"))
            except OSError as e:
                logger.info("Not caching %s: %s", cache_key, e)
        return output

    async def _complete(self, prompt: str, image: Optional[ImageInput], temperature: float) -> str:
        if self.provider == "gemini":
            _configure_gemini()
            model = genai.GenerativeModel(
                model_name=self.model_name,
                system_instruction=SYSTEM_PROMPT,
                generation_config={
                    "temperature": temperature,
                    "response_mime_type": "application/json",
                },
            )
            content: list = []
            if image is not None:
                content.append({"mime_type": image[1], "data": image[0]})
            content.append(prompt)
            try:
                resp = await model.generate_content_async(content, request_options={"timeout": self.timeout})
                text = resp.text
            except Exception as e:
                raise InferenceError(f"Gemini call failed: {e}") from e
        else:
            client = _configure_openai()
            user_content: list = [{"type": "text", "text": prompt}]
            if image is not None:
                user_content.append({"type": "image_url", "image_url": {"url": b64_data_url(image[0], image[1])}})
            messages = [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_content},
            ]
            try:
                completion = await client.chat.completions.create(
                    model=self.model_name,
                    messages=messages,
                    temperature=temperature,
                    response_format={"type": "json_object"},
                    timeout=self.timeout,
                )
            except Exception as first_err:
                # some preview models refuse response_format; retry once without it
                try:
                    completion = await client.chat.completions.create(
                        model=self.model_name,
                        messages=messages,
                        timeout=self.timeout,
                    )
                except Exception:
                    raise InferenceError(f"OpenAI call failed: {first_err}") from first_err
            text = completion.choices[0].message.content or ""
        if not text:
            raise InferenceError(f"Empty response from {self.provider}")
        return text

    async def _generate_image(self, prompt: str) -> str:
        try:
            if self.provider == "gemini":
                _configure_gemini()
                model = genai.GenerativeModel(model_name=self.image_model)
                resp = await model.generate_content_async(prompt, request_options={"timeout": self.timeout})
                for candidate in resp.candidates or []:
                    for part in candidate.content.parts:
                        inline = getattr(part, "inline_data", None)
                        if inline is not None and inline.data:
                            return b64_data_url(inline.data, inline.mime_type or "image/png")
            else:
                client = _configure_openai()
                resp = await client.images.generate(
                    model=self.image_model,
                    prompt=prompt,
                    size="1536x1024",
                    n=1,
                )
                if resp.data and resp.data[0].b64_json:
                    return f"data:image/png;base64,{resp.data[0].b64_json}"
        except Exception as e:
            raise ImageSynthesisError(str(e)) from e
        raise ImageSynthesisError("response contained no image")


def _parse_output(model_cls: Type[M], text: str) -> M:
    try:
        data = _parse_model_json(text)
        return model_cls.model_validate(data)
    except (ValueError, TypeError) as e:
        raise JsonParseError(f"Failed to parse model JSON: {e}") from e


def _parse_model_json(text: str) -> dict:
    """Parse model output into a JSON object with light recovery.

    - Tries direct json.loads
    - Strips markdown code fences if present
    - Extracts the outermost {...} block as fallback
    """
    try:
        data = json.loads(text)
    except ValueError:
        data = None
    if data is None and "```" in text:
        parts = text.replace("```json", "```").split("```")
        # fenced blocks sit at odd indexes; the largest one is most likely the payload
        fenced = [p for i, p in enumerate(parts) if i % 2 == 1]
        if fenced:
            largest = max(fenced, key=len)
            try:
                data = json.loads(largest)
            except ValueError:
                text = largest
    if data is None:
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("no JSON object in response")
        data = json.loads(text[start : end + 1])
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data
