"""Typed method bindings for the settlement and token contracts.

Every remote call goes through a :class:`ContractMethod`, which declares the
method's ABI input and output types. Arguments are checked against those types
before anything is encoded, and addresses are translated between the TRON
base58 form used everywhere in the client and the 20-byte form used on the wire.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from eth_abi import decode, encode, is_encodable
from eth_abi.grammar import BasicType, TupleType, parse

from xo.domain.address import is_valid_address, to_base58, to_evm_hex
from xo.errors import ContractCallShapeError

UINT256_MAX = 2**256 - 1

PREDICTION_TUPLE = (
    "(uint256,address,address,string,string,string,string,"
    "uint256,uint8,uint8,uint8,uint8,uint256,uint256)"
)


def _to_wire(abi_type: Any, value: Any) -> Any:
    if isinstance(abi_type, TupleType) and not abi_type.arrlist:
        return tuple(_to_wire(component, item) for component, item in zip(abi_type.components, value))
    if abi_type.arrlist:
        return [_to_wire(abi_type.item_type, item) for item in value]
    if isinstance(abi_type, BasicType) and abi_type.base == "address":
        if not isinstance(value, str) or not is_valid_address(value):
            raise ContractCallShapeError(f"Expected a TRON address, got {value!r}")
        return to_evm_hex(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return int(value)
    return value


def _from_wire(abi_type: Any, value: Any) -> Any:
    if isinstance(abi_type, TupleType) and not abi_type.arrlist:
        return tuple(_from_wire(component, item) for component, item in zip(abi_type.components, value))
    if abi_type.arrlist:
        return tuple(_from_wire(abi_type.item_type, item) for item in value)
    if isinstance(abi_type, BasicType) and abi_type.base == "address":
        return to_base58(value)
    return value


@dataclass(frozen=True, slots=True)
class ContractMethod:
    name: str
    inputs: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()
    mutating: bool = False

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    def check_arguments(self, args: Sequence[Any]) -> list[Any]:
        """Validate ``args`` against the declared inputs and return wire values."""

        if len(args) != len(self.inputs):
            raise ContractCallShapeError(
                f"{self.signature} takes {len(self.inputs)} arguments, got {len(args)}"
            )
        wire: list[Any] = []
        for position, (type_str, value) in enumerate(zip(self.inputs, args)):
            if isinstance(value, bool) and type_str != "bool":
                raise ContractCallShapeError(
                    f"{self.signature} argument {position} must be {type_str}, got bool"
                )
            converted = _to_wire(parse(type_str), value)
            if not is_encodable(type_str, converted):
                raise ContractCallShapeError(
                    f"{self.signature} argument {position} is not a valid {type_str}: {value!r}"
                )
            wire.append(converted)
        return wire

    def encode_arguments(self, args: Sequence[Any]) -> str:
        wire = self.check_arguments(args)
        if not self.inputs:
            return ""
        return encode(list(self.inputs), wire).hex()

    def decode_result(self, payload: str | bytes) -> tuple[Any, ...]:
        raw = bytes.fromhex(payload.removeprefix("0x")) if isinstance(payload, str) else payload
        if not self.outputs:
            return ()
        values = decode(list(self.outputs), raw)
        return tuple(
            _from_wire(parse(type_str), value) for type_str, value in zip(self.outputs, values)
        )


@dataclass(frozen=True, slots=True)
class ContractInterface:
    name: str
    methods: Mapping[str, ContractMethod]

    def method(self, name: str) -> ContractMethod:
        try:
            return self.methods[name]
        except KeyError as exc:
            raise ContractCallShapeError(f"{self.name} has no method '{name}'") from exc


def _interface(name: str, *methods: ContractMethod) -> ContractInterface:
    return ContractInterface(name=name, methods={method.name: method for method in methods})


PREDICTION_MARKET = _interface(
    "PredictionMarket",
    ContractMethod("admin", outputs=("address",)),
    ContractMethod("platformFeePercent", outputs=("uint256",)),
    ContractMethod("predictionCounter", outputs=("uint256",)),
    ContractMethod("paused", outputs=("bool",)),
    ContractMethod("accumulatedFees", outputs=("uint256",)),
    ContractMethod("getPrediction", inputs=("uint256",), outputs=(PREDICTION_TUPLE,)),
    ContractMethod("getUserPredictions", inputs=("address",), outputs=("uint256[]",)),
    ContractMethod(
        "getOpenPredictions", inputs=("uint256", "uint256"), outputs=("uint256[]", "uint256")
    ),
    ContractMethod(
        "getMatchedPredictions", inputs=("uint256", "uint256"), outputs=("uint256[]", "uint256")
    ),
    ContractMethod("getWinner", inputs=("uint256",), outputs=("address",)),
    ContractMethod(
        "createPrediction",
        inputs=("string", "string", "string", "string", "uint256", "uint8", "uint256"),
        outputs=("uint256",),
        mutating=True,
    ),
    ContractMethod("joinPrediction", inputs=("uint256", "uint8"), mutating=True),
    ContractMethod("resolvePrediction", inputs=("uint256", "uint8"), mutating=True),
    ContractMethod("claimWinnings", inputs=("uint256",), mutating=True),
    ContractMethod("cancelPrediction", inputs=("uint256",), mutating=True),
    ContractMethod("emergencyRefund", inputs=("uint256",), mutating=True),
    ContractMethod("withdrawFees", inputs=("address",), mutating=True),
    ContractMethod("pause", mutating=True),
    ContractMethod("unpause", mutating=True),
)

TRC20 = _interface(
    "TRC20",
    ContractMethod("balanceOf", inputs=("address",), outputs=("uint256",)),
    ContractMethod("allowance", inputs=("address", "address"), outputs=("uint256",)),
    ContractMethod("approve", inputs=("address", "uint256"), outputs=("bool",), mutating=True),
    ContractMethod("decimals", outputs=("uint8",)),
    ContractMethod("symbol", outputs=("string",)),
    ContractMethod("faucet", mutating=True),
)


__all__ = [
    "ContractInterface",
    "ContractMethod",
    "PREDICTION_MARKET",
    "PREDICTION_TUPLE",
    "TRC20",
    "UINT256_MAX",
]
