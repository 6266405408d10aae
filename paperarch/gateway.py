"""Gemini gateway: one request/response exchange per workflow stage.

The gateway owns no session state. It turns domain requests into
``generate_content`` calls and decodes the responses into domain values,
raising the matching ``GatewayError`` subclass when a response cannot be used.
"""

import json
import os
import time

import pydantic

from paperarch.errors import (
    AnalysisError,
    ConfigurationError,
    RefineError,
    RenderError,
    ValidationError,
)
from paperarch.models import DEFAULT_IMAGE_MIME, PaperAnalysis, decode_data_uri, encode_data_uri
from paperarch.prompts import (
    LAYOUT_STRATEGIES,
    build_analysis_prompt,
    build_generation_prompt,
    build_refinement_prompt,
)

# ═══════════════════════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════

ANALYSIS_MODEL = "gemini-3-pro-preview"
IMAGE_MODEL = "gemini-2.5-flash-image"
ASPECT_RATIO = "4:3"

API_KEY_VARIABLES = ("GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY")

ANALYSIS_FIELDS = ("title", "summary", "layoutStrategy", "architectureBlueprint", "keyComponents")


def resolve_api_key(environ=None):
    """Return the first non-blank API key found in the environment."""
    environ = os.environ if environ is None else environ
    for name in API_KEY_VARIABLES:
        value = environ.get(name)
        if value and value.strip():
            return value.strip()
    raise ConfigurationError(
        "GEMINI_API_KEY (or GOOGLE_API_KEY) environment variable is required."
    )


def _analysis_schema():
    from google.genai import types

    text = types.Schema(type=types.Type.STRING)
    return types.Schema(
        type=types.Type.OBJECT,
        properties={
            "title": text,
            "summary": text,
            "layoutStrategy": text,
            "architectureBlueprint": text,
            "keyComponents": types.Schema(type=types.Type.ARRAY, items=text),
        },
        required=list(ANALYSIS_FIELDS),
    )


# ═══════════════════════════════════════════════════════════════════════════
# RESPONSE DECODING
# ═══════════════════════════════════════════════════════════════════════════


def parse_analysis(text):
    """Decode the analysis JSON into a PaperAnalysis, all or nothing."""
    if not text or not text.strip():
        raise AnalysisError("The analysis response was empty.")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise AnalysisError(f"The analysis response was not valid JSON: {e.msg}") from e
    if not isinstance(data, dict):
        raise AnalysisError("The analysis response was not a JSON object.")

    missing = [name for name in ANALYSIS_FIELDS if name not in data]
    if missing:
        raise AnalysisError(f"The analysis response is missing: {', '.join(missing)}")
    try:
        return PaperAnalysis.model_validate(data)
    except pydantic.ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise AnalysisError(f"The analysis response is malformed: {problems}") from e


def _response_parts(response):
    candidates = getattr(response, "candidates", None)
    if candidates:
        content = getattr(candidates[0], "content", None)
        return getattr(content, "parts", None) or []
    return getattr(response, "parts", None) or []


def extract_image(response):
    """Return the first inline image of a response as a data URI, or None."""
    for part in _response_parts(response):
        inline = getattr(part, "inline_data", None)
        if inline is None or not getattr(inline, "data", None):
            continue
        mime_type = getattr(inline, "mime_type", None) or DEFAULT_IMAGE_MIME
        return encode_data_uri(inline.data, mime_type)
    return None


# ═══════════════════════════════════════════════════════════════════════════
# GATEWAY
# ═══════════════════════════════════════════════════════════════════════════


class Gateway:
    """Issues the analyze / generate / refine exchanges against Gemini.

    A ``client`` may be injected (anything exposing ``models.generate_content``);
    otherwise a ``google.genai.Client`` is created on first use.
    """

    def __init__(self, client=None, analysis_model=ANALYSIS_MODEL, image_model=IMAGE_MODEL,
                 aspect_ratio=ASPECT_RATIO, api_key=None):
        self._client = client
        self._api_key = api_key
        self.analysis_model = analysis_model
        self.image_model = image_model
        self.aspect_ratio = aspect_ratio

    def _get_client(self):
        if self._client is None:
            from google import genai

            self._client = genai.Client(api_key=self._api_key or resolve_api_key())
        return self._client

    def _generate_content(self, model, contents, config, error_cls, action):
        from google.genai import errors

        try:
            return self._get_client().models.generate_content(
                model=model,
                contents=contents,
                config=config,
            )
        except errors.APIError as e:
            raise error_cls(f"Failed to {action}: {e.message or e}") from e

    def _image_config(self):
        from google.genai import types

        return types.GenerateContentConfig(
            response_modalities=["IMAGE"],
            image_config=types.ImageConfig(aspect_ratio=self.aspect_ratio),
        )

    # ── Stage 1: Analysis ────────────────────────────────────────────

    def analyze(self, document, conference):
        """Extract the visual schema of a paper."""
        from google.genai import types

        if document.is_text:
            content_part = types.Part.from_text(text=document.text)
        else:
            content_part = types.Part.from_bytes(data=document.data, mime_type=document.mime_type)

        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=_analysis_schema(),
        )

        print(f"[Analyzer] Analyzing {document.describe()} for {getattr(conference, 'value', conference)}...")
        t0 = time.perf_counter()
        response = self._generate_content(
            self.analysis_model,
            [content_part, build_analysis_prompt(conference)],
            config,
            AnalysisError,
            "analyze paper",
        )
        analysis = parse_analysis(getattr(response, "text", None))

        if not analysis.is_known_layout:
            print(
                f"Warning: layout strategy '{analysis.layout_strategy}' is not one of "
                f"{', '.join(LAYOUT_STRATEGIES)}"
            )
        print(
            f"[Analyzer] '{analysis.title}': {analysis.layout_strategy}, "
            f"{len(analysis.key_components)} components ({time.perf_counter() - t0:.1f}s)"
        )
        return analysis

    # ── Stage 2: Generation ──────────────────────────────────────────

    def generate(self, blueprint):
        """Render the initial diagram from a blueprint."""
        print(f"[Renderer] Generating diagram ({len(blueprint)} char blueprint)...")
        t0 = time.perf_counter()
        response = self._generate_content(
            self.image_model,
            build_generation_prompt(blueprint),
            self._image_config(),
            RenderError,
            "generate diagram",
        )
        image_url = extract_image(response)
        if image_url is None:
            raise RenderError("Failed to generate image data: the response contained no image.")
        print(f"[Renderer] Received image ({time.perf_counter() - t0:.1f}s)")
        return image_url

    # ── Stage 3: Refinement ──────────────────────────────────────────

    def refine(self, current_image, instruction, blueprint):
        """Edit the current diagram according to a natural-language instruction."""
        from google.genai import types

        try:
            data, mime_type = decode_data_uri(current_image)
        except ValidationError as e:
            raise RefineError(f"Failed to refine diagram: {e}") from e
        contents = [
            types.Part.from_bytes(data=data, mime_type=mime_type),
            build_refinement_prompt(instruction, blueprint),
        ]

        print(f"[Refiner] Applying: {instruction}")
        t0 = time.perf_counter()
        response = self._generate_content(
            self.image_model,
            contents,
            self._image_config(),
            RefineError,
            "refine diagram",
        )
        image_url = extract_image(response)
        if image_url is None:
            raise RefineError("Failed to refine diagram: the response contained no image.")
        print(f"[Refiner] Received image ({time.perf_counter() - t0:.1f}s)")
        return image_url
