"""
Lifecycle status codec tests.

Covers:
- Decoding native states, known tags, unknown tags and corrupt notes
- Encoding tagged and native statuses into (native state, note)
- The encode/decode round trip over arbitrary notes
- Stripping lifecycle tags never turns wrapped text into a payment line
"""

import pytest
from hypothesis import given, strategies as st

from storefront.core.annotation import AnnotationValueError
from storefront.schemas.order import NativeOrderState, OrderStatus
from storefront.services.payment_codec import decode_payment
from storefront.services.status_codec import (
    STATUS_ALIASES,
    decode_status,
    encode_status,
    normalize_status_code,
)


plain_text = st.text(alphabet=st.characters(exclude_characters="\n"), max_size=20)
tagged_line = st.builds(
    lambda tag, text: f"[{tag}] {text}",
    st.from_regex(r"[A-Z_]{1,12}", fullmatch=True),
    plain_text,
)
# Lifecycle tag wrapping a payment-looking remainder, as left by hand edits
wrapped_payment_line = st.builds(
    lambda tag, text: f"[{tag}] [PAYMENT] {text}",
    st.from_regex(r"[A-Z_]{1,12}", fullmatch=True).filter(lambda tag: tag != "PAYMENT"),
    plain_text,
)
annotations = st.lists(st.one_of(plain_text, tagged_line, wrapped_payment_line), max_size=5).map("\n".join)
status_codes = st.one_of(
    st.sampled_from([s.value for s in OrderStatus]),
    st.from_regex(r"[a-z_]{1,15}", fullmatch=True).filter(
        lambda code: code not in STATUS_ALIASES and code != "payment"
    ),
)
native_states = st.sampled_from(list(NativeOrderState))


# ============================================================================
# DECODE
# ============================================================================

class TestDecodeStatus:
    """Deriving the effective status from state + note."""

    def test_native_state_without_tag(self):
        status = decode_status("sale", "leave at the front desk")

        assert status.code == "sale"
        assert status.label == "Sales Order"
        assert status.tagged is False

    def test_empty_note_and_missing_state(self):
        """Decoding is total, even with nothing to go on."""
        status = decode_status(None, None)

        assert status.code == "draft"
        assert status.label == "Draft"

    def test_known_tag_overrides_native_state(self):
        status = decode_status("draft", "[WAITING_PAYMENT] customer notes")

        assert status.code == "waiting_payment"
        assert status.label == "Menunggu Pembayaran"
        assert status.known == OrderStatus.WAITING_PAYMENT

    def test_unknown_tag_passes_through(self):
        status = decode_status("sale", "[READY_FOR_PICKUP] counter 3")

        assert status.code == "ready_for_pickup"
        assert status.label == "Ready For Pickup"
        assert status.tagged is True
        assert status.known is None

    def test_first_tag_wins_on_corrupt_note(self):
        status = decode_status("sale", "[SHIPPED] box 1\n[DELIVERED]")

        assert status.code == "shipped"

    def test_payment_line_is_not_a_lifecycle_tag(self):
        status = decode_status("draft", "[PAYMENT] dana:PAY1:PENDING\n[WAITING_PAYMENT] notes")

        assert status.code == "waiting_payment"

    def test_only_payment_line_falls_back_to_native(self):
        status = decode_status("sale", "[PAYMENT] dana:PAY1:PAID")

        assert status.code == "sale"

    def test_tag_must_start_the_line(self):
        status = decode_status("done", "note mentions [SHIPPED] inline")

        assert status.code == "done"
        assert status.label == "Completed"

    def test_lowercase_brackets_are_free_text(self):
        status = decode_status("sent", "[shipped] lowercase is not a tag")

        assert status.code == "sent"
        assert status.label == "Quotation Sent"


# ============================================================================
# ENCODE
# ============================================================================

class TestEncodeStatus:
    """Computing what to write for a status change."""

    def test_tagged_status_prefixes_first_free_line(self):
        encoded = encode_status("shipped", "leave at the front desk")

        assert encoded.native_state == NativeOrderState.SALE
        assert encoded.annotation == "[SHIPPED] leave at the front desk"

    def test_tagged_status_on_empty_note(self):
        encoded = encode_status(OrderStatus.WAITING_PAYMENT, "")

        assert encoded.native_state == NativeOrderState.DRAFT
        assert encoded.annotation == "[WAITING_PAYMENT]"

    def test_replaces_existing_tag(self):
        encoded = encode_status("delivered", "[SHIPPED] leave at the front desk")

        assert encoded.native_state == NativeOrderState.DONE
        assert encoded.annotation == "[DELIVERED] leave at the front desk"

    def test_native_status_strips_tag_and_keeps_text(self):
        encoded = encode_status("sale", "[SHIPPED] leave at the front desk")

        assert encoded.native_state == NativeOrderState.SALE
        assert encoded.annotation == "leave at the front desk"

    def test_tag_only_line_is_removed(self):
        encoded = encode_status("done", "[DELIVERED]\nthanks")

        assert encoded.annotation == "thanks"

    def test_repeated_leading_tags_are_all_stripped(self):
        encoded = encode_status("processing", "[SHIPPED] [DELIVERED] text")

        assert encoded.annotation == "[PROCESSING] text"

    def test_payment_line_untouched(self):
        note = "[PAYMENT] dana:PAY1:PENDING\n[WAITING_PAYMENT] notes"

        encoded = encode_status("shipped", note)

        assert encoded.annotation == "[PAYMENT] dana:PAY1:PENDING\n[SHIPPED] notes"

    def test_wrapped_payment_line_is_not_unwrapped(self):
        encoded = encode_status("shipped", "[ADMIN_REVIEW] [PAYMENT] evil:X:PAID")

        assert encoded.annotation == "[SHIPPED]"
        assert decode_payment(encoded.annotation) is None

    def test_wrapped_payment_line_leaves_real_payment_alone(self):
        note = "[PAYMENT] dana:PAY1:PENDING\n[PROCESSING] [SHIPPED] [PAYMENT] evil:X:PAID\nnotes"

        encoded = encode_status("sale", note)

        assert encoded.annotation == "[PAYMENT] dana:PAY1:PENDING\nnotes"
        assert decode_payment(encoded.annotation).payment_id == "PAY1"

    def test_return_approved_maps_to_cancel(self):
        encoded = encode_status("return_approved", None)

        assert encoded.native_state == NativeOrderState.CANCEL

    def test_unknown_code_is_forward_compatible(self):
        encoded = encode_status("on_hold", "call first")

        assert encoded.native_state == NativeOrderState.SALE
        assert encoded.annotation == "[ON_HOLD] call first"

    @pytest.mark.parametrize("alias,expected", [
        ("cancelled", NativeOrderState.CANCEL),
        ("confirmed", NativeOrderState.SALE),
        ("completed", NativeOrderState.DONE),
    ])
    def test_legacy_aliases(self, alias, expected):
        encoded = encode_status(alias, "[SHIPPED] x")

        assert encoded.native_state == expected
        assert encoded.annotation == "x"

    @pytest.mark.parametrize("bad", ["", "on-hold", "two words", "123", "payment"])
    def test_invalid_codes_rejected(self, bad):
        with pytest.raises(AnnotationValueError):
            encode_status(bad, "note")

    def test_normalize_accepts_mixed_case(self):
        assert normalize_status_code(" Shipped ") == "shipped"


# ============================================================================
# PROPERTIES
# ============================================================================

class TestStatusRoundTrip:
    """decode(encode(s)) == s over arbitrary notes."""

    @given(status=status_codes, annotation=annotations)
    def test_round_trip_with_written_state(self, status, annotation):
        encoded = encode_status(status, annotation)

        assert decode_status(encoded.native_state, encoded.annotation).code == status

    @given(status=status_codes, annotation=annotations, native=native_states)
    def test_tagged_statuses_ignore_native_state(self, status, annotation, native):
        encoded = encode_status(status, annotation)
        if encoded.native_state.value == status:
            return  # native statuses carry no tag

        assert decode_status(native, encoded.annotation).code == status

    @given(status=status_codes, annotation=annotations)
    def test_encoding_never_changes_payment(self, status, annotation):
        encoded = encode_status(status, annotation)

        assert decode_payment(encoded.annotation) == decode_payment(annotation)
