from __future__ import annotations

import copy
import logging
import math
import queue
import re
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, List, Optional, Type

from ai_assist import AIAssistClient, NotesEnhancement, ServiceAnalysis
from pricing_engine import grand_total
from quote_config import QuoteConfig
from quote_export import ExportFormat, ExportPipeline, ExportResult
from quote_model import (
    BillingCycle,
    ContactMode,
    Currency,
    LineItem,
    QuotationDraft,
    QuoteFieldError,
    new_draft,
    new_item_id,
)
from quote_views import normalize_logo_png
from service_catalog import get_service

logger = logging.getLogger(__name__)

FIRST_STEP = 1
LAST_STEP = 3
STEP_LABELS = ("Client Details", "Services", "Review & Export")


class Operation(str, Enum):
    ENHANCE_NOTES = "enhance_notes"
    ANALYZE_SERVICE = "analyze_service"
    EXPORT = "export"


class OperationState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


# region field commands

_LEADING_NUMBER_RE = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")


def parse_amount(value: object) -> float:
    """
    Lenient numeric parse for form input: leading number wins ("1200 USD" -> 1200),
    anything unparseable, negative or non-finite becomes 0.
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        f = float(value)
    else:
        m = _LEADING_NUMBER_RE.match(str(value or ""))
        if not m:
            return 0.0
        f = float(m.group(0))
    if not math.isfinite(f) or f < 0:
        return 0.0
    return f


def parse_price(value: object) -> Optional[float]:
    """Strict parse for a custom item price; None when missing, malformed or negative."""
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(str(value).strip()) if not isinstance(value, (int, float)) else float(value)
    except ValueError:
        return None
    if not math.isfinite(f) or f < 0:
        return None
    return f


@dataclass(frozen=True)
class FieldCommand:
    """One draft field update. Subclasses pick the field and how the raw input is parsed."""

    field_name: ClassVar[str] = ""

    def parsed_value(self) -> Any:
        raise NotImplementedError

    def apply(self, draft: QuotationDraft) -> None:
        setattr(draft, self.field_name, self.parsed_value())


@dataclass(frozen=True)
class _TextCommand(FieldCommand):
    value: str

    def parsed_value(self) -> str:
        return "" if self.value is None else str(self.value)


@dataclass(frozen=True)
class _AmountCommand(FieldCommand):
    value: object

    def parsed_value(self) -> float:
        return parse_amount(self.value)


class SetSenderName(_TextCommand):
    field_name = "sender_name"


class SetSenderAddress(_TextCommand):
    field_name = "sender_address"


class SetSenderEmail(_TextCommand):
    field_name = "sender_email"


class SetSenderPhone(_TextCommand):
    field_name = "sender_phone"


class SetClientName(_TextCommand):
    field_name = "client_name"


class SetClientAddress(_TextCommand):
    field_name = "client_address"


class SetClientEmail(_TextCommand):
    field_name = "client_email"


class SetClientPhone(_TextCommand):
    field_name = "client_phone"


class SetClientWhatsapp(_TextCommand):
    field_name = "client_whatsapp"


class SetClientWebsite(_TextCommand):
    field_name = "client_website"


class SetExpiryDate(_TextCommand):
    field_name = "expiry_date"


class SetNotes(_TextCommand):
    field_name = "notes"


class SetClientBudget(_AmountCommand):
    field_name = "client_budget"


class SetTaxRate(_AmountCommand):
    field_name = "tax_rate"


class SetDiscount(_AmountCommand):
    field_name = "discount"


@dataclass(frozen=True)
class SetPreferredContactMode(FieldCommand):
    value: object
    field_name: ClassVar[str] = "preferred_contact_mode"

    def parsed_value(self) -> ContactMode:
        try:
            return ContactMode(self.value)
        except ValueError:
            raise QuoteFieldError(f"Unknown contact mode: {self.value!r}") from None


@dataclass(frozen=True)
class SetCurrency(FieldCommand):
    value: object
    field_name: ClassVar[str] = "currency"

    def parsed_value(self) -> Currency:
        try:
            return Currency(self.value)
        except ValueError:
            raise QuoteFieldError(f"Unknown currency: {self.value!r}") from None


FIELD_COMMANDS: Dict[str, Type[FieldCommand]] = {
    cls.field_name: cls
    for cls in (
        SetSenderName,
        SetSenderAddress,
        SetSenderEmail,
        SetSenderPhone,
        SetClientName,
        SetClientAddress,
        SetClientEmail,
        SetClientPhone,
        SetClientWhatsapp,
        SetClientWebsite,
        SetExpiryDate,
        SetNotes,
        SetClientBudget,
        SetTaxRate,
        SetDiscount,
        SetPreferredContactMode,
        SetCurrency,
    )
}


def command_for_field(name: str, value: object) -> FieldCommand:
    try:
        cls = FIELD_COMMANDS[name]
    except KeyError:
        raise QuoteFieldError(f"Unknown draft field: {name!r}") from None
    return cls(value)  # type: ignore[call-arg]


# endregion field commands


# region events


@dataclass(frozen=True)
class NotesEnhanced:
    generation: int
    result: NotesEnhancement


@dataclass(frozen=True)
class CustomServiceAnalyzed:
    generation: int
    description: str
    unit_price: float
    billing_cycle: BillingCycle
    result: ServiceAnalysis


@dataclass(frozen=True)
class ExportFinished:
    generation: int
    result: Optional[ExportResult]


@dataclass(frozen=True)
class OperationFailed:
    operation: Operation
    generation: int


# endregion events


class WizardController:
    """
    Owns the quotation draft and the current wizard step.

    All draft changes happen on the owner's thread: user actions call methods directly, and
    background work (AI requests, exports) posts its result to an event queue that the owner
    drains with `pump_events()`. Results are applied to whatever the draft looks like at that
    moment (last applied wins); results addressed to a draft that `reset()` has since replaced
    are dropped.
    """

    def __init__(
        self,
        *,
        ai_client: AIAssistClient,
        export_pipeline: ExportPipeline,
        executor: Optional[Executor] = None,
        draft_factory: Callable[[], QuotationDraft] = new_draft,
    ) -> None:
        self.ai_client = ai_client
        self.export_pipeline = export_pipeline
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="quote-wizard")
        self._draft_factory = draft_factory
        self._events: "queue.SimpleQueue[object]" = queue.SimpleQueue()
        self._deferred: List[object] = []
        self._states: Dict[Operation, OperationState] = {op: OperationState.IDLE for op in Operation}
        self._generation = 0
        self.draft: QuotationDraft = draft_factory()
        self.step = FIRST_STEP
        self.professional_summary: Optional[str] = None
        self.last_export: Optional[ExportResult] = None
        self.last_export_failed = False

    @classmethod
    def from_config(cls, config: QuoteConfig, **kwargs: Any) -> "WizardController":
        return cls(
            ai_client=AIAssistClient.from_config(config),
            export_pipeline=ExportPipeline(output_dir=config.export_dir),
            **kwargs,
        )

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    # -- navigation -------------------------------------------------------

    @property
    def step_label(self) -> str:
        return STEP_LABELS[self.step - 1]

    def is_step_valid(self, step: int) -> bool:
        d = self.draft
        if step == 1:
            basic = all(v.strip() for v in (d.client_name, d.client_email, d.client_address))
            if d.preferred_contact_mode == ContactMode.WHATSAPP:
                return basic and bool(d.client_whatsapp.strip())
            return basic
        if step == 2:
            return len(d.items) > 0
        return True

    def can_advance(self) -> bool:
        return self.step < LAST_STEP and self.is_step_valid(self.step)

    def advance(self) -> bool:
        if not self.can_advance():
            return False
        self.step += 1
        logger.debug("Wizard advanced", extra={"step": self.step})
        return True

    def retreat(self) -> bool:
        if self.step <= FIRST_STEP:
            return False
        self.step -= 1
        return True

    def reset(self, *, confirmed: bool) -> bool:
        """
        Start over with a fresh draft. `confirmed` is the user's answer to the "are you sure" prompt.
        """
        if not confirmed or not self._draft_is_writable("reset"):
            return False
        previous = self.draft.quote_number
        self._generation += 1
        self.draft = self._draft_factory()
        self.step = FIRST_STEP
        self.professional_summary = None
        self.last_export = None
        self.last_export_failed = False
        logger.info("Draft reset", extra={"previous_quote_number": previous, "quote_number": self.draft.quote_number})
        return True

    # -- field edits ------------------------------------------------------

    def dispatch(self, command: FieldCommand) -> bool:
        value = command.parsed_value()
        if not self._draft_is_writable(command.field_name):
            return False
        setattr(self.draft, command.field_name, value)
        return True

    def set_field(self, name: str, value: object) -> bool:
        return self.dispatch(command_for_field(name, value))

    def set_logo(self, image_bytes: bytes) -> bool:
        try:
            png = normalize_logo_png(image_bytes)
        except OSError as exc:
            raise QuoteFieldError("Logo must be a readable image of reasonable size") from exc
        if not self._draft_is_writable("logo"):
            return False
        self.draft.logo_png_bytes = png
        return True

    def remove_logo(self) -> bool:
        if not self._draft_is_writable("logo"):
            return False
        self.draft.logo_png_bytes = None
        return True

    # -- line items -------------------------------------------------------

    @property
    def grand_total(self) -> float:
        return grand_total(self.draft.items)

    def is_service_selected(self, service_id: str) -> bool:
        return self.draft.find_catalog_item(service_id) is not None

    def toggle_service(self, service_id: str) -> bool:
        """
        Add the catalog service at quantity 1, or remove it entirely if already on the quote.

        Returns whether the service is selected afterwards.
        """
        service = get_service(service_id)
        existing = self.draft.find_catalog_item(service.id)
        if not self._draft_is_writable("items"):
            return existing is not None
        if existing is not None:
            self.draft.items = [item for item in self.draft.items if item.id != existing.id]
            return False
        self.draft.items = [*self.draft.items, service.to_line_item()]
        return True

    def update_quantity(self, item_id: str, delta: int) -> Optional[LineItem]:
        """
        Step an item's quantity by `delta`; never below 1 and never removes the item.
        """
        item = self.draft.find_item(item_id)
        if item is None or not self._draft_is_writable("items"):
            return item
        updated = item.with_quantity(item.quantity + int(delta))
        self.draft.replace_item(updated)
        return updated

    def update_service_quantity(self, service_id: str, delta: int) -> Optional[LineItem]:
        item = self.draft.find_catalog_item(get_service(service_id).id)
        if item is None:
            return None
        return self.update_quantity(item.id, delta)

    def remove_item(self, item_id: str) -> bool:
        if self.draft.find_item(item_id) is None or not self._draft_is_writable("items"):
            return False
        self.draft.items = [item for item in self.draft.items if item.id != item_id]
        return True

    # -- background operations --------------------------------------------

    def state_of(self, operation: Operation) -> OperationState:
        return self._states[operation]

    def is_running(self, operation: Operation) -> bool:
        return self._states[operation] is OperationState.RUNNING

    def request_enhance_notes(self) -> Optional[Future]:
        if self.is_running(Operation.ENHANCE_NOTES) or not self.draft.items:
            return None
        snapshot = copy.deepcopy(self.draft)
        generation = self._generation
        return self._submit(
            Operation.ENHANCE_NOTES,
            lambda: self.ai_client.enhance_notes(snapshot),
            lambda result: NotesEnhanced(generation=generation, result=result),
        )

    def request_custom_service(
        self,
        description: str,
        price: object,
        billing_cycle: object = BillingCycle.FIXED,
    ) -> Optional[Future]:
        """
        Ask the AI to name and scope a free-text service; the item is appended when the result
        comes back (fallback content included).
        """
        text = (description or "").strip()
        unit_price = parse_price(price)
        try:
            cycle = BillingCycle(billing_cycle)
        except ValueError:
            raise QuoteFieldError(f"Unknown billing cycle: {billing_cycle!r}") from None
        if not text or unit_price is None or self.is_running(Operation.ANALYZE_SERVICE):
            return None
        generation = self._generation
        return self._submit(
            Operation.ANALYZE_SERVICE,
            lambda: self.ai_client.analyze_custom_service(text),
            lambda result: CustomServiceAnalyzed(
                generation=generation,
                description=text,
                unit_price=unit_price,
                billing_cycle=cycle,
                result=result,
            ),
        )

    def can_export(self) -> bool:
        return self.step == LAST_STEP and self.grand_total > 0 and not self.is_running(Operation.EXPORT)

    def request_export(self, fmt: ExportFormat = ExportFormat.PDF) -> Optional[Future]:
        if not self.can_export():
            return None
        snapshot = copy.deepcopy(self.draft)
        generation = self._generation
        return self._submit(
            Operation.EXPORT,
            lambda: self.export_pipeline.export(snapshot, fmt),
            lambda result: ExportFinished(generation=generation, result=result),
        )

    def pump_events(self) -> int:
        """
        Apply finished background results on the caller's thread. Returns how many were applied.

        While an export is running, results that would change the draft wait in the queue.
        """
        pending = self._deferred
        self._deferred = []
        while True:
            try:
                pending.append(self._events.get_nowait())
            except queue.Empty:
                break

        applied = 0
        progress = True
        while pending and progress:
            progress = False
            waiting: List[object] = []
            for event in pending:
                if self.is_running(Operation.EXPORT) and not self._is_export_event(event):
                    waiting.append(event)
                    continue
                self._apply_event(event)
                applied += 1
                progress = True
            pending = waiting
        self._deferred = pending
        return applied

    def _submit(self, operation: Operation, work: Callable[[], Any], to_event: Callable[[Any], object]) -> Future:
        self._states[operation] = OperationState.RUNNING
        generation = self._generation

        def job() -> Any:
            try:
                result = work()
            except Exception:
                logger.exception("Background operation failed", extra={"operation": operation.value})
                self._events.put(OperationFailed(operation=operation, generation=generation))
                return None
            self._events.put(to_event(result))
            return result

        return self._executor.submit(job)

    @staticmethod
    def _is_export_event(event: object) -> bool:
        if isinstance(event, ExportFinished):
            return True
        return isinstance(event, OperationFailed) and event.operation is Operation.EXPORT

    def _apply_event(self, event: object) -> None:
        if isinstance(event, OperationFailed):
            self._states[event.operation] = OperationState.IDLE
            if event.operation is Operation.EXPORT:
                self.last_export_failed = True
            return

        if isinstance(event, ExportFinished):
            self._states[Operation.EXPORT] = OperationState.IDLE
            if event.generation == self._generation:
                self.last_export = event.result
                self.last_export_failed = event.result is None
            return

        if isinstance(event, NotesEnhanced):
            self._states[Operation.ENHANCE_NOTES] = OperationState.IDLE
            if self._is_stale(event.generation, "notes enhancement"):
                return
            self.draft.notes = event.result.enhanced_notes
            self.professional_summary = event.result.professional_summary
            return

        if isinstance(event, CustomServiceAnalyzed):
            self._states[Operation.ANALYZE_SERVICE] = OperationState.IDLE
            if self._is_stale(event.generation, "custom service"):
                return
            item = LineItem(
                id=new_item_id(),
                description=event.result.name,
                service_description=event.description,
                quantity=1,
                unit_price=event.unit_price,
                includes=event.result.includes,
                excludes=event.result.excludes,
                billing_cycle=event.billing_cycle,
            )
            self.draft.items = [*self.draft.items, item]
            return

        raise TypeError(f"Unhandled wizard event: {event!r}")

    def _is_stale(self, generation: int, what: str) -> bool:
        if generation == self._generation:
            return False
        logger.info("Dropping %s result for a draft that was reset", what)
        return True

    def _draft_is_writable(self, what: str) -> bool:
        if self.is_running(Operation.EXPORT):
            logger.info("Ignoring %s change while an export is running", what)
            return False
        return True
