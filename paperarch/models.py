"""Domain values shared by the gateway, the workflow and the CLI."""

import base64
import binascii
import enum
import mimetypes
import re
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field

from paperarch.errors import ValidationError
from paperarch.prompts import LAYOUT_STRATEGIES

DEFAULT_IMAGE_MIME = "image/png"

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<payload>.*)$", re.DOTALL)


class Conference(str, enum.Enum):
    ACL = "ACL"
    EMNLP = "EMNLP"
    KDD = "KDD"
    ICML = "ICML"
    NEURIPS = "NeurIPS"
    CVPR = "CVPR"
    ICCV = "ICCV"
    AAAI = "AAAI"

    @classmethod
    def parse(cls, value):
        """Look up a venue by name, ignoring case."""
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value.lower() == str(value).strip().lower():
                return member
        choices = ", ".join(m.value for m in cls)
        raise ValidationError(f"Unknown conference '{value}'. Choose one of: {choices}")


DEFAULT_CONFERENCE = Conference.ACL


class Stage(enum.IntEnum):
    SETUP = 0
    UNDERSTANDING = 1
    GENERATION = 2
    REFINEMENT = 3

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            if isinstance(value, int):
                return cls(value)
            return cls[str(value).strip().upper()]
        except (KeyError, ValueError):
            raise ValidationError(f"Unknown stage '{value}'") from None


# ═══════════════════════════════════════════════════════════════════════════
# ANALYSIS
# ═══════════════════════════════════════════════════════════════════════════


class PaperAnalysis(BaseModel):
    """Structured visual schema extracted from a paper.

    Attribute names are snake_case; the wire format (and ``model_dump(by_alias=True)``)
    uses the camelCase keys the backend is asked to produce.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str = Field(description="Short descriptive title of the paper")
    summary: str = Field(description="2-3 sentence summary of the core contribution")
    layout_strategy: str = Field(alias="layoutStrategy", description="One of the layout archetypes")
    architecture_blueprint: str = Field(
        alias="architectureBlueprint",
        description="The complete Golden Schema consumed by image generation",
    )
    key_components: Tuple[str, ...] = Field(alias="keyComponents", description="Main modules, in order")

    @property
    def is_known_layout(self):
        return self.layout_strategy in LAYOUT_STRATEGIES

    def to_json_dict(self):
        return self.model_dump(mode="json", by_alias=True)


# ═══════════════════════════════════════════════════════════════════════════
# IMAGES
# ═══════════════════════════════════════════════════════════════════════════


def encode_data_uri(data, mime_type=DEFAULT_IMAGE_MIME):
    """Wrap raw image bytes (or an already base64 encoded str) in a data URI."""
    if isinstance(data, str):
        payload = data
    else:
        payload = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type or DEFAULT_IMAGE_MIME};base64,{payload}"


def decode_data_uri(uri):
    """Split a base64 data URI into ``(bytes, mime_type)``."""
    match = _DATA_URI_RE.match(uri or "")
    if not match:
        raise ValidationError("Image reference is not a base64 data URI.")
    try:
        data = base64.b64decode(match.group("payload"), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Image reference has an invalid base64 payload: {e}") from e
    return data, match.group("mime")


def open_image(uri):
    data, _ = decode_data_uri(uri)
    return Image.open(BytesIO(data))


def save_image(uri, path):
    """Write an image reference to ``path``; the extension picks the format."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    image = open_image(uri)
    if path.suffix.lower() in (".jpg", ".jpeg") and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    image.save(path)
    return path


# ═══════════════════════════════════════════════════════════════════════════
# DOCUMENTS
# ═══════════════════════════════════════════════════════════════════════════

# mimetypes has no entry for these on every platform
_TEXT_SUFFIXES = {".txt", ".md", ".tex", ".rst"}


@dataclass(frozen=True)
class Document:
    """Paper content handed to the analysis exchange: text, or bytes + mime type."""

    text: Optional[str] = None
    data: Optional[bytes] = None
    mime_type: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_text(cls, text, name=None):
        return cls(text=text, name=name)

    @classmethod
    def from_bytes(cls, data, mime_type, name=None):
        return cls(data=data, mime_type=mime_type, name=name)

    @property
    def is_text(self):
        return self.text is not None

    @property
    def is_empty(self):
        if self.is_text:
            return not self.text.strip()
        return not self.data

    def describe(self):
        label = self.name or "document"
        if self.is_text:
            return f"{label} (text, {len(self.text)} chars)"
        return f"{label} ({self.mime_type}, {len(self.data or b'')} bytes)"


def load_document(path):
    """Read a paper from disk, guessing its mime type from the file name."""
    path = Path(path)
    if not path.exists():
        raise ValidationError(f"Input file not found: {path}")
    mime_type, _ = mimetypes.guess_type(path.name)
    if path.suffix.lower() in _TEXT_SUFFIXES or (mime_type or "").startswith("text/"):
        return Document.from_text(path.read_text(encoding="utf-8"), name=path.name)
    return Document.from_bytes(
        path.read_bytes(), mime_type or "application/octet-stream", name=path.name
    )


# ═══════════════════════════════════════════════════════════════════════════
# WORKFLOW STATE
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class HistoryItem:
    prompt: str
    image_url: str
    timestamp: int


@dataclass(frozen=True)
class WorkflowState:
    """Read-only snapshot of a session. ``WorkflowState()`` is the default state."""

    stage: Stage = Stage.SETUP
    conference: Conference = DEFAULT_CONFERENCE
    is_loading: bool = False
    last_error: Optional[str] = None
    analysis: Optional[PaperAnalysis] = None
    current_image: Optional[str] = None
    history: Tuple[HistoryItem, ...] = field(default_factory=tuple)
    refinement_draft: str = ""

    def find_entry(self, timestamp):
        for item in self.history:
            if item.timestamp == timestamp:
                return item
        return None

    def invariant_violations(self):
        """Return a description of every broken session invariant."""
        problems = []
        if self.stage >= Stage.GENERATION and self.current_image is None:
            problems.append(f"stage {self.stage.name} without a current image")
        if self.stage >= Stage.UNDERSTANDING and self.analysis is None:
            problems.append(f"stage {self.stage.name} without an analysis")
        if self.current_image is not None and not self.history:
            problems.append("current image without history")
        return problems
