from __future__ import annotations

import pytest
from eth_abi import encode

from fake_chain import ALICE, BOB
from xo.clients.bindings import PREDICTION_MARKET, PREDICTION_TUPLE, TRC20
from xo.clients.normalize import normalize_prediction
from xo.domain import PredictionOption, PredictionStatus
from xo.domain.address import SENTINEL_BASE58, to_evm_hex
from xo.errors import ContractCallShapeError, MalformedRecord


def _raw(**overrides):
    fields = dict(
        id=3,
        creator=ALICE,
        opponent=SENTINEL_BASE58,
        title="Title",
        description="Desc",
        option_a="Yes",
        option_b="No",
        bet_amount=5_000000,
        creator_choice=1,
        opponent_choice=0,
        status=0,
        winning_option=0,
        created_at=1_000,
        expiry_time=5_000,
    )
    fields.update(overrides)
    return tuple(fields.values())


def test_signature_is_built_from_declared_inputs():
    assert PREDICTION_MARKET.method("joinPrediction").signature == "joinPrediction(uint256,uint8)"
    assert TRC20.method("approve").signature == "approve(address,uint256)"


def test_unknown_method_is_a_shape_error():
    with pytest.raises(ContractCallShapeError):
        PREDICTION_MARKET.method("stealFunds")


def test_argument_count_is_checked():
    with pytest.raises(ContractCallShapeError):
        PREDICTION_MARKET.method("joinPrediction").check_arguments((1,))


def test_argument_types_are_checked():
    join = PREDICTION_MARKET.method("joinPrediction")
    with pytest.raises(ContractCallShapeError):
        join.check_arguments(("1", 1))
    with pytest.raises(ContractCallShapeError):
        join.check_arguments((1, 256))
    with pytest.raises(ContractCallShapeError):
        join.check_arguments((True, 1))
    with pytest.raises(ContractCallShapeError):
        TRC20.method("balanceOf").check_arguments(("not-an-address",))


def test_enum_arguments_encode_as_integers():
    join = PREDICTION_MARKET.method("joinPrediction")
    encoded = join.encode_arguments((9, PredictionOption.OPTION_B))
    assert encoded == encode(["uint256", "uint8"], [9, 2]).hex()


def test_addresses_are_sent_as_twenty_bytes():
    encoded = TRC20.method("allowance").encode_arguments((ALICE, BOB))
    expected = encode(["address", "address"], [to_evm_hex(ALICE), to_evm_hex(BOB)]).hex()
    assert encoded == expected


def test_methods_without_inputs_encode_to_empty_parameter():
    assert PREDICTION_MARKET.method("admin").encode_arguments(()) == ""


def test_decoded_addresses_come_back_as_base58():
    payload = encode(["address"], [to_evm_hex(BOB)])
    assert PREDICTION_MARKET.method("admin").decode_result(payload.hex()) == (BOB,)


def test_decode_id_page():
    payload = encode(["uint256[]", "uint256"], [[4, 5], 12])
    ids, total = PREDICTION_MARKET.method("getOpenPredictions").decode_result("0x" + payload.hex())
    assert ids == (4, 5)
    assert total == 12


def test_prediction_tuple_decodes_into_domain_record():
    raw = _raw()
    values = list(raw)
    values[1] = to_evm_hex(ALICE)
    values[2] = to_evm_hex(SENTINEL_BASE58)
    payload = encode([PREDICTION_TUPLE], [tuple(values)])
    (decoded,) = PREDICTION_MARKET.method("getPrediction").decode_result(payload)

    record = normalize_prediction(decoded)
    assert record.id == 3
    assert record.creator == ALICE
    assert record.opponent is None
    assert record.status is PredictionStatus.OPEN
    assert record.creator_choice is PredictionOption.OPTION_A


def test_missing_record_is_reported():
    with pytest.raises(MalformedRecord, match="does not exist"):
        normalize_prediction(_raw(creator=SENTINEL_BASE58))


@pytest.mark.parametrize(
    "overrides",
    [
        {"bet_amount": 0},
        {"expiry_time": 1_000},
        {"opponent": BOB},
        {"status": 1},
        {"status": 1, "opponent": BOB, "opponent_choice": 1},
        {"status": 2, "opponent": BOB, "opponent_choice": 2},
        {"winning_option": 1},
        {"status": 9},
    ],
)
def test_invariant_violations_are_malformed(overrides):
    with pytest.raises(MalformedRecord):
        normalize_prediction(_raw(**overrides))


def test_cancelled_record_may_or_may_not_have_an_opponent():
    assert normalize_prediction(_raw(status=3)).opponent is None
    refunded = normalize_prediction(_raw(status=3, opponent=BOB, opponent_choice=2))
    assert refunded.opponent == BOB
