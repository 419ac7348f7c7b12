"""
Order Lifecycle Status Codec

The backend only knows five sale.order states. The storefront lifecycle is
richer (awaiting payment, under review, shipped, ...), so the extra states
are written as a tag line in the order note:

    [WAITING_PAYMENT] customer notes

This module is the SINGLE place that maps between effective statuses and
(native state, note) pairs. Both directions are pure functions.

Decoding is total: every note, including an empty one, yields exactly one
effective status. Unknown tags are passed through lower-cased so newer
clients can introduce statuses without breaking older ones.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from storefront.core.annotation import (
    RESERVED_TAGS,
    AnnotationLine,
    AnnotationValueError,
    parse_annotation,
    render_annotation,
)
from storefront.core.enum_utils import get_enum_value, humanize_code, to_enum
from storefront.schemas.order import NativeOrderState, OrderStatus


# =============================================================================
# STATUS TABLES
# =============================================================================

# Nearest native state to write alongside each tagged status.
# Statuses missing from this table (forward-compatible codes) use SALE.
NEAREST_NATIVE_STATE: Dict[OrderStatus, NativeOrderState] = {
    OrderStatus.WAITING_PAYMENT: NativeOrderState.DRAFT,
    OrderStatus.PAYMENT_CONFIRMED: NativeOrderState.SALE,
    OrderStatus.ADMIN_REVIEW: NativeOrderState.SALE,
    OrderStatus.APPROVED: NativeOrderState.SALE,
    OrderStatus.PROCESSING: NativeOrderState.SALE,
    OrderStatus.SHIPPED: NativeOrderState.SALE,
    OrderStatus.INSPECTING: NativeOrderState.SALE,
    OrderStatus.DELIVERED: NativeOrderState.DONE,
    OrderStatus.RETURN_APPROVED: NativeOrderState.CANCEL,
}

# Display labels for native states when the note carries no tag
NATIVE_STATE_LABELS: Dict[str, str] = {
    NativeOrderState.DRAFT.value: "Draft",
    NativeOrderState.SENT.value: "Quotation Sent",
    NativeOrderState.SALE.value: "Sales Order",
    NativeOrderState.DONE.value: "Completed",
    NativeOrderState.CANCEL.value: "Cancelled",
}

# Localized labels for tagged statuses
TAGGED_STATUS_LABELS: Dict[str, str] = {
    OrderStatus.WAITING_PAYMENT.value: "Menunggu Pembayaran",
    OrderStatus.PAYMENT_CONFIRMED.value: "Pembayaran Dikonfirmasi",
    OrderStatus.ADMIN_REVIEW.value: "Sedang Ditinjau Admin",
    OrderStatus.APPROVED.value: "Disetujui",
    OrderStatus.PROCESSING.value: "Sedang Diproses",
    OrderStatus.SHIPPED.value: "Dikirim",
    OrderStatus.DELIVERED.value: "Terkirim",
    OrderStatus.RETURN_APPROVED.value: "Pengembalian Disetujui",
    OrderStatus.INSPECTING.value: "Pemeriksaan Barang",
}

STATUS_LABELS: Dict[str, str] = {**NATIVE_STATE_LABELS, **TAGGED_STATUS_LABELS}

# Legacy spellings accepted on input
STATUS_ALIASES: Dict[str, str] = {
    "cancelled": OrderStatus.CANCEL.value,
    "confirmed": OrderStatus.SALE.value,
    "completed": OrderStatus.DONE.value,
}

_STATUS_CODE = re.compile(r"^[a-z_]+$")


# =============================================================================
# VALUE TYPES
# =============================================================================

@dataclass(frozen=True)
class EffectiveStatus:
    """Decoded order status."""
    code: str
    label: str
    tagged: bool = False

    @property
    def known(self) -> Optional[OrderStatus]:
        """Matching enum member, or None for forward-compatible codes."""
        return to_enum(self.code, OrderStatus)


@dataclass(frozen=True)
class EncodedStatus:
    """What to write back to the backend for a status change."""
    native_state: NativeOrderState
    annotation: str


# =============================================================================
# DECODE
# =============================================================================

def decode_status(native_state: Union[NativeOrderState, str, None], annotation: Optional[str]) -> EffectiveStatus:
    """
    Derive the effective status from a native state and an order note.

    The first lifecycle tag line wins; later ones are ignored, not repaired.
    """
    for line in parse_annotation(annotation):
        if line.is_lifecycle:
            code = line.tag.lower()
            return EffectiveStatus(code=code, label=status_label(code), tagged=True)

    code = (get_enum_value(native_state) or NativeOrderState.DRAFT.value).lower()
    return EffectiveStatus(code=code, label=status_label(code), tagged=False)


def status_label(code: str) -> str:
    """Display label for a status code, humanized if the code is unknown."""
    return STATUS_LABELS.get(code) or humanize_code(code)


# =============================================================================
# ENCODE
# =============================================================================

def encode_status(status: Union[OrderStatus, str], annotation: Optional[str]) -> EncodedStatus:
    """
    Compute the native state and note that represent `status`.

    Any lifecycle tag already in the note is removed; the free text that
    followed it stays. Native statuses need no tag. Payment lines are left
    exactly as they are.

    Raises:
        AnnotationValueError: if `status` is not a lower-case `[a-z_]+` code
    """
    code = normalize_status_code(status)
    lines = strip_lifecycle_tags(parse_annotation(annotation))

    native = to_enum(code, NativeOrderState)
    if native is not None:
        return EncodedStatus(native_state=native, annotation=render_annotation(lines))

    known = to_enum(code, OrderStatus)
    nearest = NEAREST_NATIVE_STATE.get(known, NativeOrderState.SALE)
    return EncodedStatus(
        native_state=nearest,
        annotation=render_annotation(_insert_tag(lines, code.upper())),
    )


def normalize_status_code(status: Union[OrderStatus, str]) -> str:
    """Canonical status code for an enum member, code or legacy alias."""
    code = (get_enum_value(status) or "").strip().lower()
    code = STATUS_ALIASES.get(code, code)
    if not _STATUS_CODE.match(code):
        raise AnnotationValueError(f"Invalid order status: {status!r}")
    if code.upper() in RESERVED_TAGS:
        raise AnnotationValueError(f"Reserved annotation tag cannot be used as a status: {status!r}")
    return code


def strip_lifecycle_tags(lines: List[AnnotationLine]) -> List[AnnotationLine]:
    """
    Remove lifecycle tags, keeping any text that followed them on the line.

    Text that itself starts with a reserved tag is dropped along with the
    lifecycle tag, so unwrapping can never produce a new payment line.
    """
    result = []
    for line in lines:
        if not line.is_lifecycle:
            result.append(line)
            continue
        while line.is_lifecycle:
            line = AnnotationLine.parse(line.text)
        if line.tag is not None:
            continue
        # A tag-only line disappears with its tag
        if line.raw:
            result.append(line)
    return result


def _insert_tag(lines: List[AnnotationLine], tag: str) -> List[AnnotationLine]:
    """Put `tag` in front of the first free-text line, or on a line of its own."""
    for index, line in enumerate(lines):
        if line.is_free_text:
            return lines[:index] + [AnnotationLine.tagged(tag, line.text)] + lines[index + 1:]
    return lines + [AnnotationLine.tagged(tag)]
