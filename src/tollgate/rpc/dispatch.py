"""Raw envelope in, envelope out."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from tollgate.core.errors import ProtocolError
from tollgate.rpc.codec import (
    decode_request,
    encode_outcome,
    encode_protocol_error,
    peek_id,
)

if TYPE_CHECKING:
    from tollgate.invocation.engine import ToolInvoker

logger = logging.getLogger(__name__)


async def dispatch(
    raw: str | bytes | dict[str, Any], invoker: ToolInvoker
) -> dict[str, Any]:
    """Decode, invoke, encode. Malformed envelopes never reach the invoker."""
    try:
        request = decode_request(raw)
    except ProtocolError as exc:
        logger.info("Rejected malformed envelope: %s", exc)
        return encode_protocol_error(peek_id(raw), exc)
    outcome = await invoker.invoke(request)
    return encode_outcome(request.id, outcome)
