"""Coral side of the agent: answer every mention in its thread.

The messaging transport and the hosted LLM are supplied by the caller. This
module only routes: it waits for mentions, asks the responder for an answer
and sends the answer back to the sender.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Protocol
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .config import Settings
from .prompts import AGENT_PROMPTS, agent_instructions, coral_bridge_prompt
from .tools import Tool, default_tools

logger = logging.getLogger(__name__)

AGENT_DESCRIPTION = "Liora: generates images or videos end-to-end using best practices & execution"


def build_coral_url(base_url: str, agent_id: str, agent_description: str = AGENT_DESCRIPTION) -> str:
    """Add agentId/agentDescription to the Coral SSE URL, keeping other query params."""
    parts = urlsplit(base_url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
             if k not in ("agentId", "agentDescription")]
    query += [("agentId", agent_id), ("agentDescription", agent_description)]
    return urlunsplit(parts._replace(query=urlencode(query)))


@dataclass
class Mention:
    thread_id: str
    sender_id: str
    content: str


def _first(payload: dict, *keys):
    for key in keys:
        value = payload.get(key)
        if value:
            return value
    return None


def extract_mention(payload: Any) -> Optional[Mention]:
    """Read routing ids and content from a mention payload, or None if unroutable."""
    if not isinstance(payload, dict):
        return None
    nested = payload.get("data") if isinstance(payload.get("data"), dict) else {}

    thread_id = _first(payload, "threadId", "thread_id", "thread") or _first(nested, "threadId", "thread_id")
    sender_id = (_first(payload, "senderId", "sender_id", "sender", "from")
                 or _first(nested, "senderId", "sender_id"))
    content = _first(payload, "content", "message", "text") or _first(nested, "content", "message", "text")

    if not thread_id or not sender_id:
        return None
    if not isinstance(content, str):
        content = json.dumps(content if content is not None else {})
    return Mention(thread_id=str(thread_id), sender_id=str(sender_id), content=content)


class MessagingTransport(Protocol):
    def wait_for_mentions(self, timeout_ms: int) -> List[Any]:
        ...

    def send_message(self, thread_id: str, recipient_id: str, content: str) -> None:
        ...


class Responder(Protocol):
    def generate(self, prompt: str) -> str:
        ...


class MentionLoop:
    """Supervised wait-answer-reply loop.

    Failures while waiting or sending are retried with exponential backoff;
    set the stop event to end run() at the next wait.
    """

    def __init__(
            self,
            transport: MessagingTransport,
            responder: Responder,
            wait_timeout_ms: int = 30000,
            idle_delay: float = 2.0,
            backoff_base: float = 1.0,
            backoff_factor: float = 2.0,
            backoff_max: float = 30.0,
    ):
        self.transport = transport
        self.responder = responder
        self.wait_timeout_ms = wait_timeout_ms
        self.idle_delay = idle_delay
        self.backoff_base = backoff_base
        self.backoff_factor = backoff_factor
        self.backoff_max = backoff_max

    def _answer(self, mention: Mention) -> str:
        try:
            answer = self.responder.generate(mention.content)
        except Exception as e:
            logger.exception("Responder failed for thread %s", mention.thread_id)
            return f"error: {e}"
        return answer if isinstance(answer, str) else json.dumps(answer)

    def run_once(self) -> int:
        """Handle one batch of mentions; return the number of replies sent."""
        result = self.transport.wait_for_mentions(self.wait_timeout_ms)
        mentions = result if isinstance(result, list) else ([result] if result else [])

        sent = 0
        failed = []
        for payload in mentions:
            mention = extract_mention(payload)
            if mention is None:
                logger.warning("Received mention without routing identifiers: %r", payload)
                continue
            answer = self._answer(mention)
            try:
                self.transport.send_message(mention.thread_id, mention.sender_id, answer)
            except Exception as e:
                logger.error("Failed to reply in thread %s: %s", mention.thread_id, e)
                failed.append(e)
                continue
            sent += 1
        # Raise only after the whole batch is answered so run() still backs off
        if failed:
            raise failed[0]
        return sent

    def backoff_delay(self, failures: int) -> float:
        return min(self.backoff_base * self.backoff_factor ** (failures - 1), self.backoff_max)

    def run(self, stop: Optional[threading.Event] = None) -> None:
        stop = stop or threading.Event()
        failures = 0
        logger.info("Starting mention loop")
        while not stop.is_set():
            try:
                sent = self.run_once()
            except Exception:
                failures += 1
                delay = self.backoff_delay(failures)
                logger.exception("Error in mention loop (attempt %d), retrying in %.1fs", failures, delay)
                stop.wait(delay)
                continue
            failures = 0
            if sent == 0:
                stop.wait(self.idle_delay)
        logger.info("Mention loop stopped")


# ------------------------------ Wiring ------------------------------

@dataclass
class AgentSetup:
    """Everything a hosted agent needs to join a Coral session."""

    url: str
    instructions: str
    tools: Dict[str, Tool]


def prepare_agent(
        settings: Settings,
        coral_tools: Iterable[str] = (),
        kind: str = "generator",
        coral_instructions: str = "",
        claim_amount: Optional[float] = None,
) -> AgentSetup:
    """Coral SSE URL, system instructions and local tools for one agent kind."""
    if kind not in AGENT_PROMPTS:
        raise ValueError(f"Unknown agent kind: {kind}")
    settings.require("coral_sse_url")

    tools = default_tools(settings, claim_amount)
    bridge = coral_bridge_prompt(coral_tools, tools)
    if coral_instructions.strip():
        bridge = f"{bridge}\n\n{coral_instructions.strip()}"
    return AgentSetup(
        url=build_coral_url(settings.coral_sse_url, settings.coral_agent_id),
        instructions=agent_instructions(AGENT_PROMPTS[kind], bridge),
        tools=tools,
    )


def run_agent(settings: Settings, transport: MessagingTransport, responder: Responder,
              stop: Optional[threading.Event] = None, **loop_options) -> None:
    """Answer Coral mentions until stop is set, waiting up to settings.timeout_ms per batch."""
    loop = MentionLoop(transport, responder, wait_timeout_ms=settings.timeout_ms, **loop_options)
    loop.run(stop)
