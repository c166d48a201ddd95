"""Heuristic fallbacks for assistant suggestions.

Keyword-based triage and timeline summaries used when no model provider is
wired in. Pure functions; persistence is left to the handlers.
"""

import base64
import re
from dataclasses import dataclass, field
from typing import Any

# Order matters: the first category / priority with a hit wins
CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "trip": ["trip", "transport", "delivery", "driver", "pickup", "transit", "truck", "vehicle"],
    "order": ["order", "purchase", "buy", "payment", "refund", "amount", "price"],
    "listing": ["listing", "product", "stock", "crop", "quantity", "sell"],
    "account": ["account", "login", "password", "profile", "locked", "otp", "phone"],
    "payment": ["payment", "payout", "settle", "upi", "bank", "money", "rupee", "rs"],
    "kyc": ["kyc", "aadhaar", "pan", "document", "verify", "identity"],
}

PRIORITY_SIGNALS: dict[str, list[str]] = {
    "urgent": ["urgent", "emergency", "asap", "immediately", "blocked", "stuck for days"],
    "high": ["stuck", "failed", "error", "not working", "critical", "lost"],
    "low": ["question", "how to", "suggestion", "feedback", "minor"],
}

TRIAGE_CONFIDENCE = 0.6
TIMELINE_CONFIDENCE = 0.5
VOICE_NOTE_SUMMARY_CHARS = 300

UUID_RE = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE
)
# Indian mobile number, optional +91 / 0 prefix
PHONE_RE = re.compile(r"(?:\+91|0)?[6-9]\d{9}")


@dataclass
class TriageResult:
    category: str = "other"
    priority: str = "normal"
    entities: dict[str, str] = field(default_factory=dict)

    @property
    def suggested_actions(self) -> list[str]:
        if self.priority == "urgent":
            return ["Escalate immediately", "Contact user"]
        return ["Review and respond"]

    def to_output(self) -> dict[str, Any]:
        return {
            "suggested_category": self.category,
            "suggested_priority": self.priority,
            "extracted_entities": dict(self.entities),
            "suggested_actions": self.suggested_actions,
        }


def triage_ticket(message: str) -> TriageResult:
    """Classify a support ticket by keyword and extract ids / phone numbers."""
    lower = (message or "").lower()
    result = TriageResult()

    for category, keywords in CATEGORY_KEYWORDS.items():
        if any(kw in lower for kw in keywords):
            result.category = category
            break

    for priority, signals in PRIORITY_SIGNALS.items():
        if any(s in lower for s in signals):
            result.priority = priority
            break

    uuid_match = UUID_RE.search(message or "")
    if uuid_match:
        result.entities["extracted_id"] = uuid_match.group(0)
    phone_match = PHONE_RE.search(message or "")
    if phone_match:
        result.entities["phone"] = phone_match.group(0)

    return result


def ticket_input_hash(message: str) -> str:
    """Stable key for a ticket's input: base64 of the first 200 chars, cut to 64."""
    prefix = (message or "")[:200].encode("utf-8")
    return base64.b64encode(prefix).decode("ascii")[:64]


def summarize_timeline(
    entity_type: str, entity_id: str, events: list[dict[str, Any]]
) -> dict[str, Any]:
    """Summarize workflow events (newest first) for one entity."""
    event_types = [e.get("event_type") or "" for e in events]
    cancellations = sum(1 for t in event_types if "CANCEL" in t)

    anomalies = []
    if cancellations > 0:
        anomalies.append(f"{cancellations} cancellation(s) detected")

    latest = events[0] if events else None
    latest_type = latest.get("event_type") if latest else None
    latest_at = latest.get("created_at") if latest else None

    lines = [
        f"Entity: {entity_type} {entity_id}",
        f"Total events: {len(events)}",
        f"Latest event: {latest_type or 'none'} at {latest_at or 'N/A'}",
        f"Anomalies: {'; '.join(anomalies)}" if anomalies else "No anomalies detected",
    ]
    return {
        "summary": "\n".join(lines),
        "anomalies": anomalies,
        "event_count": len(events),
        "latest_event": latest_type,
    }


def timeline_input_hash(entity_type: str, entity_id: str, event_count: int) -> str:
    return f"{entity_type}:{entity_id}:{event_count}"


def summarize_voice_note(text: str) -> str:
    return (text or "")[:VOICE_NOTE_SUMMARY_CHARS]
