"""Pytest configuration and fixtures."""

import base64
import threading
from io import BytesIO
from types import SimpleNamespace

import pytest
from PIL import Image

from paperarch.models import PaperAnalysis


def make_png(color=(255, 255, 255), size=(8, 6)):
    buf = BytesIO()
    Image.new("RGB", size, color=color).save(buf, format="PNG")
    return buf.getvalue()


def make_data_uri(color=(255, 255, 255)):
    return "data:image/png;base64," + base64.b64encode(make_png(color)).decode("ascii")


SAMPLE_ANALYSIS_JSON = {
    "title": "T",
    "summary": "S",
    "layoutStrategy": "Linear Pipeline",
    "architectureBlueprint": "B",
    "keyComponents": ["Encoder", "Decoder"],
}


class FakeGateway:
    """Scripted stand-in for paperarch.gateway.Gateway.

    ``images`` is consumed in order by generate/refine. Setting ``release`` to an
    Event makes every call block until it is set.
    """

    def __init__(self, analysis=None, images=None):
        self.analysis = analysis or PaperAnalysis.model_validate(SAMPLE_ANALYSIS_JSON)
        self.images = list(images or [])
        self.errors = {}
        self.calls = []
        self.release = None
        self.started = threading.Event()

    def _enter(self, op, *args):
        self.calls.append((op,) + args)
        self.started.set()
        if self.release is not None:
            self.release.wait(5)
        if op in self.errors:
            raise self.errors[op]

    def analyze(self, document, conference):
        self._enter("analyze", document, conference)
        return self.analysis

    def generate(self, blueprint):
        self._enter("generate", blueprint)
        return self.images.pop(0)

    def refine(self, current_image, instruction, blueprint):
        self._enter("refine", current_image, instruction, blueprint)
        return self.images.pop(0)

    def ops(self):
        return [call[0] for call in self.calls]


class FakeModels:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def generate_content(self, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


class FakeClient:
    """Minimal google-genai client exposing ``models.generate_content``."""

    def __init__(self, response):
        self.models = FakeModels(response)


def text_response(text):
    return SimpleNamespace(text=text, candidates=None, parts=None)


def image_response(*parts):
    content = SimpleNamespace(parts=list(parts))
    return SimpleNamespace(text=None, candidates=[SimpleNamespace(content=content)])


def inline_part(data, mime_type="image/png"):
    return SimpleNamespace(text=None, inline_data=SimpleNamespace(data=data, mime_type=mime_type))


def text_part(text):
    return SimpleNamespace(text=text, inline_data=None)


@pytest.fixture
def sample_analysis() -> PaperAnalysis:
    return PaperAnalysis.model_validate(SAMPLE_ANALYSIS_JSON)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway(images=["img1", "img2", "img3"])


@pytest.fixture
def png_gateway() -> FakeGateway:
    """Fake gateway returning real PNG data URIs."""
    colors = [(200, 220, 255), (255, 200, 180), (200, 255, 200)]
    return FakeGateway(images=[make_data_uri(c) for c in colors])
