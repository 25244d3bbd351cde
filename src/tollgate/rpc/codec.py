"""RPC envelope codec.

Requests arrive in one of two shapes and decode to the same
:class:`CallRequest`:

- flat: ``{"id", "toolName", "arguments", "paymentProof"?}``
- JSON-RPC ``tools/call``: ``{"jsonrpc": "2.0", "id", "method": "tools/call",
  "params": {"name", "arguments"}}`` with the proof in ``arguments._payment``

Outcomes encode to JSON-RPC 2.0 envelopes. ``PAYMENT_REQUIRED_CODE`` is
stable API surface and never used for failures.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Final, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
)

from tollgate.core.errors import (
    INTERNAL_ERROR_CODE,
    INVALID_REQUEST_CODE,
    ParseError,
    ProtocolError,
)
from tollgate.invocation.outcome import (
    CallRequest,
    ErrorKind,
    Failure,
    PaymentRequired,
    Success,
)
from tollgate.payments.proof import PAYMENT_ARGUMENT, PaymentProof
from tollgate.payments.requirements import PaymentRequirement
from tollgate.tools.base import Asset, ContentBlock, ToolResult

JSONRPC_VERSION: Final = "2.0"
TOOLS_CALL_METHOD: Final = "tools/call"
METHOD_NOT_FOUND_CODE: Final = -32601

PAYMENT_REQUIRED_CODE: Final = -32001
PAYMENT_REQUIRED_MESSAGE: Final = "Payment required for this tool"

ERROR_CODES: Final[dict[ErrorKind, int]] = {
    ErrorKind.PAYMENT_REJECTED: -32002,
    ErrorKind.PROOF_ALREADY_USED: -32003,
    ErrorKind.VERIFIER_UNAVAILABLE: -32004,
    ErrorKind.TOOL_NOT_FOUND: -32005,
    ErrorKind.HANDLER_ERROR: -32006,
    ErrorKind.PROTOCOL_ERROR: INVALID_REQUEST_CODE,
    ErrorKind.NOT_PRICED: INTERNAL_ERROR_CODE,
}

_KIND_BY_CODE: Final = {code: kind for kind, code in ERROR_CODES.items()}
_KIND_BY_VALUE: Final = {kind.value: kind for kind in ErrorKind}

_MAX_DEPTH = 16


def _check_value(value: Any, path: str, depth: int = 0) -> None:
    """Allow only str, number, bool and nested mappings of those."""
    if depth > _MAX_DEPTH:
        msg = f"{path}: nesting too deep"
        raise ValueError(msg)
    if isinstance(value, (str, bool, int, float)):
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                msg = f"{path}: keys must be strings"
                raise ValueError(msg)
            _check_value(item, f"{path}.{key}", depth + 1)
        return
    msg = f"{path}: unsupported value type {type(value).__name__}"
    raise ValueError(msg)


# ── Wire models ──────────────────────────────────────────────────


class _ProofModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    signature: StrictStr = Field(min_length=1)
    amount: NonNegativeInt
    payer: StrictStr = Field(validation_alias=AliasChoices("payer", "from"))
    timestamp: datetime | None = None

    def to_proof(self) -> PaymentProof:
        if self.timestamp is None:
            return PaymentProof(
                signature=self.signature, amount=self.amount, payer=self.payer
            )
        return PaymentProof(
            signature=self.signature,
            amount=self.amount,
            payer=self.payer,
            timestamp=self.timestamp,
        )


class _ArgumentsModel(BaseModel):
    arguments: dict[str, Any] = Field(default_factory=dict)

    @field_validator("arguments")
    @classmethod
    def _restrict_values(cls, value: dict[str, Any]) -> dict[str, Any]:
        for key, item in value.items():
            if key == PAYMENT_ARGUMENT:
                continue
            _check_value(item, f"arguments.{key}")
        return value


class _FlatRequest(_ArgumentsModel):
    id: StrictInt | StrictStr
    tool_name: StrictStr = Field(alias="toolName", min_length=1)
    payment_proof: _ProofModel | None = Field(default=None, alias="paymentProof")


class _ToolCallParams(_ArgumentsModel):
    name: StrictStr = Field(min_length=1)


class _JsonRpcRequest(BaseModel):
    jsonrpc: Literal["2.0"]
    id: StrictInt | StrictStr
    method: StrictStr
    params: _ToolCallParams


# ── Decoding ─────────────────────────────────────────────────────


def _load(raw: str | bytes | dict[str, Any]) -> dict[str, Any]:
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            msg = f"Invalid JSON: {e}"
            raise ParseError(msg) from e
    else:
        data = raw
    if not isinstance(data, dict):
        msg = "Request envelope must be a JSON object"
        raise ProtocolError(msg)
    return data


def _summarize(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "envelope"
        parts.append(f"{loc}: {err['msg']}")
    return "Invalid request: " + "; ".join(parts)


def _split_payment(
    arguments: dict[str, Any], top_level: _ProofModel | None
) -> tuple[dict[str, Any], PaymentProof | None]:
    """Separate the reserved payment argument from business arguments."""
    if PAYMENT_ARGUMENT not in arguments:
        return arguments, top_level.to_proof() if top_level else None
    if top_level is not None:
        msg = f"Payment proof given both as paymentProof and arguments.{PAYMENT_ARGUMENT}"
        raise ProtocolError(msg)
    business = {k: v for k, v in arguments.items() if k != PAYMENT_ARGUMENT}
    try:
        proof = _ProofModel.model_validate(arguments[PAYMENT_ARGUMENT])
    except ValidationError as e:
        raise ProtocolError(_summarize(e)) from e
    return business, proof.to_proof()


def decode_request(raw: str | bytes | dict[str, Any]) -> CallRequest:
    """Parse an inbound envelope into a :class:`CallRequest`.

    Raises:
        ParseError: If ``raw`` is not valid JSON.
        ProtocolError: If the envelope is malformed.
    """
    data = _load(raw)

    if "jsonrpc" in data or "method" in data:
        try:
            rpc = _JsonRpcRequest.model_validate(data)
        except ValidationError as e:
            raise ProtocolError(_summarize(e)) from e
        if rpc.method != TOOLS_CALL_METHOD:
            msg = f"Method not found: {rpc.method}"
            raise ProtocolError(msg, code=METHOD_NOT_FOUND_CODE)
        arguments, proof = _split_payment(rpc.params.arguments, None)
        return CallRequest(
            id=rpc.id,
            tool_name=rpc.params.name,
            arguments=arguments,
            payment_proof=proof,
        )

    try:
        flat = _FlatRequest.model_validate(data)
    except ValidationError as e:
        raise ProtocolError(_summarize(e)) from e
    arguments, proof = _split_payment(flat.arguments, flat.payment_proof)
    return CallRequest(
        id=flat.id,
        tool_name=flat.tool_name,
        arguments=arguments,
        payment_proof=proof,
    )


def peek_id(raw: str | bytes | dict[str, Any]) -> str | int | None:
    """Best-effort request id for error envelopes of undecodable requests."""
    try:
        data = _load(raw)
    except ProtocolError:
        return None
    value = data.get("id")
    if isinstance(value, (str, int)) and not isinstance(value, bool):
        return value
    return None


def encode_request(request: CallRequest) -> dict[str, Any]:
    """Flat wire form of a call request (caller side)."""
    envelope: dict[str, Any] = {
        "id": request.id,
        "toolName": request.tool_name,
        "arguments": dict(request.arguments),
    }
    if request.payment_proof is not None:
        envelope["paymentProof"] = request.payment_proof.to_dict()
    return envelope


# ── Encoding ─────────────────────────────────────────────────────


def _envelope(call_id: str | int | None, **body: Any) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": call_id, **body}


def encode_outcome(
    call_id: str | int | None, outcome: Success | PaymentRequired | Failure
) -> dict[str, Any]:
    """Map an outcome to its JSON-RPC envelope."""
    if isinstance(outcome, Success):
        return _envelope(call_id, result=outcome.result.to_dict())
    if isinstance(outcome, PaymentRequired):
        return _envelope(
            call_id,
            error={
                "code": PAYMENT_REQUIRED_CODE,
                "message": PAYMENT_REQUIRED_MESSAGE,
                "data": {"paymentRequirement": outcome.requirement.to_dict()},
            },
        )
    return _envelope(
        call_id,
        error={
            "code": ERROR_CODES[outcome.kind],
            "message": outcome.message,
            "data": {"kind": outcome.kind.value, "retryable": outcome.retryable},
        },
    )


def encode_protocol_error(call_id: str | int | None, exc: ProtocolError) -> dict[str, Any]:
    """Envelope for a request rejected before reaching the invoker."""
    return _envelope(
        call_id,
        error={
            "code": exc.code,
            "message": str(exc),
            "data": {"kind": ErrorKind.PROTOCOL_ERROR.value, "retryable": False},
        },
    )


# ── Response decoding (caller side) ──────────────────────────────


def _decode_block(block: dict[str, Any]) -> ContentBlock:
    if block.get("type") == "text":
        return ContentBlock(type="text", text=str(block.get("text", "")))
    data = block.get("data")
    if not isinstance(data, dict):
        data = {k: v for k, v in block.items() if k != "type"}
    return ContentBlock(type="structured", data=data)


def decode_requirement(data: dict[str, Any]) -> PaymentRequirement:
    """Rebuild a requirement from ``error.data.paymentRequirement``.

    Raises:
        ProtocolError: If a field is missing or malformed.
    """
    try:
        return PaymentRequirement(
            amount=int(data["amount"]),
            asset=Asset(address=str(data["asset"]["address"])),
            currency=str(data["currency"]),
            recipient=str(data["recipient"]),
            description=str(data.get("description", "")),
            network=str(data["network"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        msg = f"Malformed payment requirement: {e}"
        raise ProtocolError(msg) from e


def decode_response(envelope: dict[str, Any]) -> Success | PaymentRequired | Failure:
    """Map a response envelope back to an outcome.

    Raises:
        ProtocolError: If the envelope has neither ``result`` nor ``error``.
    """
    if "result" in envelope:
        result = envelope["result"] or {}
        return Success(
            ToolResult(
                content=tuple(_decode_block(b) for b in result.get("content", [])),
                metadata=dict(result.get("metadata") or {}),
            )
        )

    error = envelope.get("error")
    if not isinstance(error, dict) or "code" not in error:
        msg = "Response envelope has neither result nor error"
        raise ProtocolError(msg)

    code = error["code"]
    data = error.get("data") or {}
    if code == PAYMENT_REQUIRED_CODE:
        return PaymentRequired(decode_requirement(data.get("paymentRequirement") or {}))

    kind = _KIND_BY_CODE.get(code, ErrorKind.PROTOCOL_ERROR)
    if isinstance(data, dict) and isinstance(data.get("kind"), str):
        kind = _KIND_BY_VALUE.get(data["kind"], kind)
    return Failure(kind, str(error.get("message", "")))
