"""Directive scanning and the CommandExtractor.

Agents address each other by embedding directives in their replies::

    [HANDOFF:code] Implement the API described above
    [MSG:security] Can you review the token handling?
    [BROADCAST] Release freeze starts tomorrow

A directive's payload runs from the end of its marker to the next marker of
the same kind, or to the end of the text. Markers of a different kind do not
end it, so ``[HANDOFF:a] x [MSG:b] y`` hands off the task ``x [MSG:b] y``
and also sends ``y`` to ``b``.
"""

import hashlib
import re
from dataclasses import dataclass
from enum import Enum

from ..config import BROADCAST
from ..directory import IAgentDirectory
from ..errors import WorkspaceError
from ..logging_config import get_logger
from ..models import Message, MessageType
from .agent_bus import MAX_CONTENT_LENGTH, MAX_TASK_LENGTH, IAgentBus

logger = get_logger(__name__)

SOURCE_PREFIX_LENGTH = 500

_MARKER = re.compile(
    r"\[(?:(?P<kind>HANDOFF|MSG):(?P<target>[\w-]+)|(?P<broadcast>BROADCAST))\]"
)


class DirectiveKind(str, Enum):
    """Recognized directive markers."""

    HANDOFF = "HANDOFF"
    MSG = "MSG"
    BROADCAST = "BROADCAST"


@dataclass(frozen=True)
class Directive:
    """One directive found in a response."""

    kind: DirectiveKind
    target: str | None
    payload: str
    ordinal: int  # position among directives of the same kind


def scan_directives(text: str) -> list[Directive]:
    """Scan ``text`` for directives, in order of appearance.

    Directives with an empty payload are dropped.
    """
    markers = []
    for match in _MARKER.finditer(text):
        if match.group("broadcast"):
            kind, target = DirectiveKind.BROADCAST, None
        else:
            kind, target = DirectiveKind(match.group("kind")), match.group("target")
        markers.append((kind, target, match.start(), match.end()))

    directives = []
    ordinals = {kind: 0 for kind in DirectiveKind}
    for index, (kind, target, _start, end) in enumerate(markers):
        stop = len(text)
        for other_kind, _t, other_start, _e in markers[index + 1:]:
            if other_kind is kind:
                stop = other_start
                break

        payload = text[end:stop].strip()
        ordinal = ordinals[kind]
        ordinals[kind] += 1
        if not payload:
            logger.debug("Skipping empty %s directive at offset %s", kind.value, end)
            continue
        directives.append(Directive(kind, target, payload, ordinal))

    return directives


def origin_key(author_id: str, text: str, directive: Directive) -> str:
    """Stable key for a directive so reprocessing the same reply is a no-op."""
    digest = hashlib.sha256(f"{author_id}\x00{text}".encode("utf-8")).hexdigest()[:32]
    return f"{digest}:{directive.kind.value}:{directive.ordinal}"


class CommandExtractor:
    """Turns directives in a completed reply into bus traffic."""

    def __init__(self, bus: IAgentBus, directory: IAgentDirectory):
        self._bus = bus
        self._directory = directory

    async def process(self, author_id: str, text: str) -> list[Directive]:
        """Apply every directive in ``text``. Returns the ones that were applied.

        Best effort: unresolved targets and failed writes are logged and
        skipped, never raised. Payloads longer than the bus accepts are cut
        to its limit.
        """
        applied = []
        for directive in scan_directives(text):
            try:
                if await self._apply(author_id, text, directive):
                    applied.append(directive)
            except WorkspaceError as e:
                logger.warning(
                    "Dropped %s directive from %s: %s",
                    directive.kind.value,
                    author_id,
                    e,
                    extra={"agent_id": author_id},
                )
            except Exception as e:
                logger.error(
                    "Failed to apply %s directive from %s: %s",
                    directive.kind.value,
                    author_id,
                    e,
                    exc_info=True,
                    extra={"agent_id": author_id},
                )
        return applied

    async def _apply(self, author_id: str, text: str, directive: Directive) -> bool:
        key = origin_key(author_id, text, directive)

        if directive.kind is DirectiveKind.BROADCAST:
            await self._bus.send(
                author_id,
                BROADCAST,
                directive.payload[:MAX_CONTENT_LENGTH],
                MessageType.BROADCAST,
                origin_key=key,
            )
            logger.info("Broadcast from %s: %s", author_id, directive.payload[:50])
            return True

        target = self._directory.resolve(directive.target)
        if target is None:
            logger.debug(
                "Unknown %s target %r from %s",
                directive.kind.value,
                directive.target,
                author_id,
            )
            return False

        if directive.kind is DirectiveKind.HANDOFF:
            await self._bus.create_handoff(
                author_id,
                target,
                directive.payload[:MAX_TASK_LENGTH],
                {"source_response": text[:SOURCE_PREFIX_LENGTH]},
                origin_key=key,
            )
            logger.info(
                "Handoff directive: %s -> %s: %s", author_id, target, directive.payload[:50]
            )
        else:
            message: Message = await self._bus.send(
                author_id,
                target,
                directive.payload[:MAX_CONTENT_LENGTH],
                MessageType.REQUEST,
                origin_key=key,
            )
            logger.info("Message directive %s: %s -> %s", message.id, author_id, target)
        return True
