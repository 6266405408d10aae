"""Workflow state machine for the diagram workbench.

    SETUP -> UNDERSTANDING -> GENERATION -> REFINEMENT

The Workbench owns the only copy of the session state and exposes it as an
immutable ``WorkflowState`` snapshot. Every change goes through a command.
The three backend-bound commands (``submit_document``, ``request_generation``,
``request_refinement``) block until the gateway answers, fails, times out or
is cancelled; at most one of them runs at a time.
"""

import threading
import time
from dataclasses import replace

from paperarch.errors import CancelledError, GatewayError, RequestTimeoutError, ValidationError
from paperarch.models import (
    Conference,
    Document,
    HistoryItem,
    Stage,
    WorkflowState,
)
from paperarch.prompts import INITIAL_PROMPT

CANCELLED_MESSAGE = "Request cancelled."


class _Flight:
    """Cancellable handle for the single in-flight backend exchange."""

    def __init__(self, label):
        self.label = label
        self.invalidated = False
        self.result = None
        self.error = None
        self._settled = threading.Event()

    def run(self, call):
        try:
            self.result = call()
        except Exception as e:
            # reported by the waiting command
            self.error = e
        finally:
            self._settled.set()

    def invalidate(self):
        self.invalidated = True
        self._settled.set()

    def wait(self, timeout=None):
        return self._settled.wait(timeout)


class Workbench:
    """Three-stage paper-to-diagram session.

    Args:
        gateway: Object with ``analyze``, ``generate`` and ``refine`` methods
            (normally a ``paperarch.gateway.Gateway``).
        timeout: Seconds to wait for a backend exchange, or None to wait forever.
    """

    def __init__(self, gateway, timeout=None):
        self.gateway = gateway
        self.timeout = timeout
        self.last_exception = None
        self._state = WorkflowState()
        self._flight = None
        self._last_timestamp = 0
        self._lock = threading.RLock()

    @property
    def state(self) -> WorkflowState:
        return self._state

    # ═══════════════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════════════

    def can_navigate(self, target) -> bool:
        target = Stage.parse(target)
        state = self._state
        if state.is_loading:
            return False
        if target == Stage.SETUP:
            return True
        if target == Stage.UNDERSTANDING:
            return state.analysis is not None
        if target == Stage.GENERATION:
            return state.current_image is not None
        return len(state.history) > 0

    # ═══════════════════════════════════════════════════════════════════
    # BACKEND-BOUND COMMANDS
    # ═══════════════════════════════════════════════════════════════════

    def submit_document(self, document, conference=None) -> WorkflowState:
        """Analyze a paper (a ``Document`` or plain text) and enter UNDERSTANDING."""
        if isinstance(document, str):
            document = Document.from_text(document)
        with self._lock:
            self._ensure_idle()
            if document is None or document.is_empty:
                raise ValidationError("The document is empty.")
            if conference is not None:
                self._state = replace(self._state, conference=Conference.parse(conference))
            conference = self._state.conference
            flight = self._begin("analyze")

        return self._settle(
            flight,
            lambda: self.gateway.analyze(document, conference),
            self._apply_analysis,
            "Failed to analyze paper.",
        )

    def request_generation(self) -> WorkflowState:
        """Render the initial diagram from the analysis blueprint."""
        with self._lock:
            self._ensure_idle()
            analysis = self._state.analysis
            if analysis is None:
                raise ValidationError("Analyze a paper before generating a diagram.")
            flight = self._begin("generate")

        blueprint = analysis.architecture_blueprint
        return self._settle(
            flight,
            lambda: self.gateway.generate(blueprint),
            self._apply_generation,
            "Failed to generate diagram.",
        )

    def request_refinement(self, instruction=None) -> WorkflowState:
        """Edit the current diagram.

        An explicit ``instruction`` replaces the refinement draft; without one
        the current draft is used.
        """
        with self._lock:
            self._ensure_idle()
            state = self._state
            text = state.refinement_draft if instruction is None else instruction
            text = (text or "").strip()
            if not text:
                raise ValidationError("Describe the change to make before refining.")
            if state.current_image is None or state.analysis is None:
                raise ValidationError("Generate a diagram before refining it.")
            if instruction is not None:
                self._state = replace(state, refinement_draft=text)
            current_image = state.current_image
            blueprint = state.analysis.architecture_blueprint
            flight = self._begin("refine")

        return self._settle(
            flight,
            lambda: self.gateway.refine(current_image, text, blueprint),
            lambda image_url: self._apply_refinement(text, image_url),
            "Failed to refine diagram.",
        )

    def cancel(self) -> bool:
        """Abandon the in-flight exchange. Returns False when nothing was running."""
        with self._lock:
            flight = self._flight
            if flight is None or not self._state.is_loading:
                return False
            self._flight = None
            flight.invalidate()
            self.last_exception = CancelledError(CANCELLED_MESSAGE)
            self._state = replace(self._state, is_loading=False, last_error=CANCELLED_MESSAGE)
            return True

    # ═══════════════════════════════════════════════════════════════════
    # LOCAL COMMANDS
    # ═══════════════════════════════════════════════════════════════════

    def navigate_to(self, target) -> WorkflowState:
        target = Stage.parse(target)
        with self._lock:
            if not self.can_navigate(target):
                raise ValidationError(f"Cannot navigate to {target.name} now.")
            self._state = replace(self._state, stage=target, last_error=None)
            return self._state

    def select_history_entry(self, timestamp) -> WorkflowState:
        """Show an earlier image again; history itself is left untouched."""
        with self._lock:
            self._ensure_idle()
            entry = self._state.find_entry(timestamp)
            if entry is None:
                raise ValidationError(f"No history entry with timestamp {timestamp}.")
            stage = max(self._state.stage, Stage.GENERATION)
            self._state = replace(self._state, current_image=entry.image_url, stage=stage)
            return self._state

    def reset(self) -> WorkflowState:
        with self._lock:
            if self._flight is not None:
                self._flight.invalidate()
                self._flight = None
            self.last_exception = None
            self._state = WorkflowState()
            return self._state

    def set_conference(self, value) -> WorkflowState:
        with self._lock:
            self._state = replace(self._state, conference=Conference.parse(value))
            return self._state

    def set_refinement_draft(self, text) -> WorkflowState:
        with self._lock:
            self._ensure_idle()
            self._state = replace(self._state, refinement_draft=text or "")
            return self._state

    # ═══════════════════════════════════════════════════════════════════
    # INTERNALS
    # ═══════════════════════════════════════════════════════════════════

    def _ensure_idle(self):
        if self._state.is_loading:
            raise ValidationError("Another request is still in progress.")

    def _begin(self, label):
        flight = _Flight(label)
        self._flight = flight
        self.last_exception = None
        self._state = replace(self._state, is_loading=True, last_error=None)
        return flight

    def _settle(self, flight, call, apply, default_message):
        worker = threading.Thread(
            target=flight.run, args=(call,), name=f"paperarch-{flight.label}", daemon=True
        )
        worker.start()
        settled = flight.wait(self.timeout)

        with self._lock:
            if flight.invalidated or self._flight is not flight:
                # cancelled or reset while waiting: the late result is dropped
                return self._state
            self._flight = None
            if not settled:
                self._fail(
                    RequestTimeoutError(f"The {flight.label} request timed out after {self.timeout:g}s."),
                    default_message,
                )
            elif flight.error is not None or flight.result is None:
                self._fail(flight.error or GatewayError(default_message), default_message)
            else:
                self._state = replace(apply(flight.result), is_loading=False)
            return self._state

    def _fail(self, error, default_message):
        self.last_exception = error
        message = str(error).strip() or default_message
        self._state = replace(self._state, is_loading=False, last_error=message)

    def _next_timestamp(self):
        now = int(time.time() * 1000)
        self._last_timestamp = max(now, self._last_timestamp + 1)
        return self._last_timestamp

    def _apply_analysis(self, analysis):
        return replace(self._state, stage=Stage.UNDERSTANDING, analysis=analysis)

    def _apply_generation(self, image_url):
        item = HistoryItem(prompt=INITIAL_PROMPT, image_url=image_url, timestamp=self._next_timestamp())
        return replace(
            self._state,
            stage=Stage.GENERATION,
            current_image=image_url,
            history=(item,),
        )

    def _apply_refinement(self, instruction, image_url):
        item = HistoryItem(prompt=instruction, image_url=image_url, timestamp=self._next_timestamp())
        return replace(
            self._state,
            stage=Stage.REFINEMENT,
            current_image=image_url,
            history=(item,) + self._state.history,
            refinement_draft="",
        )
