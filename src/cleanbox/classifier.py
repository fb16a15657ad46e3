"""Rule-based classification of messages into Keep / MoveTo / Junk decisions.

Each entry point walks an ordered tuple of rules. A rule returns a Decision
when it matches and ``None`` otherwise; the first match wins and the entry
point's fallback covers everything else, so every message gets exactly one
decision.
"""

from __future__ import annotations

from typing import Callable

from .models import ClassificationContext, Decision, Junk, Keep, MessageView, MoveTo

Rule = Callable[[MessageView, ClassificationContext], "Decision | None"]


def is_valid_list_email(message: MessageView, context: ClassificationContext) -> bool:
    """True when the sender domain is a registered list domain.

    A suspicious header vetoes the match. The Authentication-Results header
    is recorded on the message but deliberately does not gate the result.
    """
    if message.has_suspicious_header:
        return False
    return bool(message.from_domain) and message.from_domain in context.list_domains


def list_folder_for(domain: str, context: ClassificationContext) -> str:
    return context.list_domain_destinations.get(domain) or context.default_list_folder


# --- incoming rules ---


def _allowed_address(message: MessageView, context: ClassificationContext) -> Decision | None:
    if message.from_address and message.from_address in context.allowed_addresses:
        return Keep()
    return None


def _allowed_domain(message: MessageView, context: ClassificationContext) -> Decision | None:
    if message.from_domain and message.from_domain in context.allowed_domains:
        return Keep()
    return None


def _list_email(message: MessageView, context: ClassificationContext) -> Decision | None:
    if is_valid_list_email(message, context):
        return MoveTo(list_folder_for(message.from_domain, context))
    return None


# --- filing rules ---


def _known_sender(message: MessageView, context: ClassificationContext) -> Decision | None:
    folder = context.sender_destinations.get(message.from_address) if message.from_address else None
    if folder:
        return MoveTo(folder)
    return None


def _mapped_list_domain(message: MessageView, context: ClassificationContext) -> Decision | None:
    if message.from_domain and message.from_domain in context.list_domain_destinations:
        return MoveTo(list_folder_for(message.from_domain, context))
    return None


INCOMING_RULES: tuple[Rule, ...] = (_allowed_address, _allowed_domain, _list_email)
FILING_RULES: tuple[Rule, ...] = (_known_sender, _mapped_list_domain)


def _first_match(
    rules: tuple[Rule, ...],
    message: MessageView,
    context: ClassificationContext,
    fallback: Decision,
) -> Decision:
    for rule in rules:
        decision = rule(message, context)
        if decision is not None:
            return decision
    return fallback


def classify_incoming(message: MessageView, context: ClassificationContext) -> Decision:
    """Decide what to do with a newly arrived inbox message.

    Allow-listed address, then allow-listed domain keep the message; a valid
    list email is filed into its list folder; anything else is junk.
    """
    return _first_match(INCOMING_RULES, message, context, Junk())


def classify_for_filing(message: MessageView, context: ClassificationContext) -> Decision:
    """Decide where an existing message belongs.

    Known senders win over list domain mappings; unmatched mail is kept.
    """
    return _first_match(FILING_RULES, message, context, Keep())


def classify_for_unjunking(message: MessageView, context: ClassificationContext) -> Decision:
    """Re-file a message found in the junk folder. Same rules as filing."""
    return classify_for_filing(message, context)
