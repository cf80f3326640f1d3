from __future__ import annotations

import pytest

from relay.dispatch.contracts import Batch, CountedResult, DispatchOutcome, OpaqueResult, ProviderCallError, ResponsesOnlyResult
from relay.dispatch.normalizer import MASK_PREFIX_CHARS, MASK_SUFFIX_CHARS, NO_TARGET_INFO, extract_error_message, mask_identifier, normalize

# cleaned position -> original input position, with gaps where inputs were rejected
_ORIGINAL = {cleaned: cleaned * 3 + 1 for cleaned in range(20)}


def _batch(start: int, size: int) -> Batch:
  return Batch(members=tuple(f"token-{start + index:04d}-abcdefghijklmnop" for index in range(size)), start_offset=start)


def test_counted_result_uses_provider_counts_and_maps_indices():
  batch = _batch(5, 3)
  result = CountedResult(responses=(DispatchOutcome(True), DispatchOutcome(False, "messaging/invalid-argument"), DispatchOutcome(True)), success_count=2, failure_count=1)

  summary = normalize(result, batch, _ORIGINAL.__getitem__)

  assert (summary.batch_size, summary.success_count, summary.failure_count) == (3, 2, 1)
  assert [detail.success for detail in summary.details] == [True, False, True]
  assert summary.details[1].error == "messaging/invalid-argument"
  for detail in summary.details:
    assert detail.cleaned_index == batch.start_offset + detail.index_in_batch
    assert _ORIGINAL[detail.cleaned_index] == detail.original_index


def test_responses_only_result_derives_counts():
  result = ResponsesOnlyResult(responses=(DispatchOutcome(False, {"message": "Requested entity was not found."}), DispatchOutcome(True)))

  summary = normalize(result, _batch(0, 2), _ORIGINAL.__getitem__)

  assert (summary.success_count, summary.failure_count) == (1, 1)
  assert summary.details[0].error == "Requested entity was not found."
  assert summary.details[1].error is None


def test_opaque_result_marks_every_target_unknown():
  batch = _batch(10, 4)

  summary = normalize(OpaqueResult(raw="projects/x/messages/1"), batch, _ORIGINAL.__getitem__)

  assert summary.batch_size == 4
  assert (summary.success_count, summary.failure_count) == (0, 0)
  assert [detail.success for detail in summary.details] == [None] * 4
  assert {detail.error for detail in summary.details} == {NO_TARGET_INFO}
  assert [detail.original_index for detail in summary.details] == [_ORIGINAL[index] for index in range(10, 14)]


def test_missing_responses_are_reported_as_unknown():
  summary = normalize(ResponsesOnlyResult(responses=(DispatchOutcome(True),)), _batch(0, 3), _ORIGINAL.__getitem__)

  assert len(summary.details) == 3
  assert [detail.success for detail in summary.details] == [True, None, None]
  assert (summary.success_count, summary.failure_count) == (1, 0)


def test_extra_responses_are_ignored():
  result = ResponsesOnlyResult(responses=(DispatchOutcome(True), DispatchOutcome(True), DispatchOutcome(False, "x")))

  summary = normalize(result, _batch(0, 2), _ORIGINAL.__getitem__)

  assert len(summary.details) == 2
  assert (summary.success_count, summary.failure_count) == (2, 0)


def test_snippets_are_masked():
  summary = normalize(ResponsesOnlyResult(responses=(DispatchOutcome(True),)), _batch(0, 1), _ORIGINAL.__getitem__)

  assert summary.details[0].identifier_snippet == "token-00...klmnop"


@pytest.mark.parametrize("length", [15, 20, 64, 163])
def test_mask_never_reveals_more_than_prefix_and_suffix(length):
  value = "".join(chr(ord("a") + index % 26) for index in range(length))

  masked = mask_identifier(value)

  assert masked != value
  assert masked == f"{value[:MASK_PREFIX_CHARS]}...{value[-MASK_SUFFIX_CHARS:]}"
  assert len(masked.replace("...", "")) == MASK_PREFIX_CHARS + MASK_SUFFIX_CHARS


def test_mask_leaves_values_at_or_below_threshold_untouched():
  assert mask_identifier("short") == "short"
  assert mask_identifier("x" * 14) == "x" * 14


class _CodeOnly:
  code = "messaging/mismatched-credential"


@pytest.mark.parametrize(
  ("error", "expected"),
  [
    (None, None),
    ("plain text", "plain text"),
    ({"message": "from message"}, "from message"),
    ({"code": "from-code"}, "from-code"),
    ({"other": 1}, '{"other": 1}'),
    (ProviderCallError("Auth error from APNS or Web Push Service", code="THIRD_PARTY_AUTH_ERROR"), "Auth error from APNS or Web Push Service"),
    (_CodeOnly(), "messaging/mismatched-credential"),
    ([1, 2], "[1, 2]"),
  ],
)
def test_extract_error_message(error, expected):
  assert extract_error_message(error) == expected


def test_extract_error_message_falls_back_to_exception_code():
  class _SilentError(Exception):
    code = "UNAVAILABLE"

  assert extract_error_message(_SilentError()) == "UNAVAILABLE"
