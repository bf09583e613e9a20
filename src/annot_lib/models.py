from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

MEMORY_TYPES = ("direct", "indirect")
TIME_SCOPES = ("recent", "long_term", "past_only", "unknown")
EMOTIONS = ("Positive", "Negative", "Neutral")
PREFERENCE_ATTITUDES = ("like", "dislike")


@dataclass
class EvidenceRef:
    """One cited utterance; ``text`` is captured when the annotation is made."""
    utterance_index: int
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"utterance_index": self.utterance_index, "text": self.text}


@dataclass
class IntentJudgment:
    intent_category: str
    probability: float
    reasoning: str
    evidence: List[EvidenceRef] = field(default_factory=list)
    intent_subtype: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "IntentJudgment":
        return cls(
            intent_category=raw.get("intent_category") or "",
            probability=float(raw.get("probability") or 0.0),
            reasoning=raw.get("reasoning") or "",
            evidence=[
                EvidenceRef(int(e.get("utterance_index", -1)), e.get("text") or "")
                for e in raw.get("evidence") or []
                if isinstance(e, dict)
            ],
            intent_subtype=raw.get("intent_subtype") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intent_category": self.intent_category,
            "intent_subtype": self.intent_subtype,
            "probability": self.probability,
            "reasoning": self.reasoning,
            "evidence": [e.to_dict() for e in self.evidence],
        }


@dataclass
class MemoryEvidence:
    """Single evidence reference of a memory entry."""
    session_id: str
    utterance_index: int
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"session_id": self.session_id, "utterance_index": self.utterance_index, "text": self.text}


@dataclass
class MemoryEntry:
    type: str
    label: str
    value: str
    reasoning: str
    evidence: Optional[MemoryEvidence]
    confidence: float = 0.9
    time_scope: str = "recent"
    emotion: Optional[str] = None
    preference_attitude: Optional[str] = None
    memory_id: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "MemoryEntry":
        ev = raw.get("evidence")
        evidence = None
        if isinstance(ev, dict):
            evidence = MemoryEvidence(
                session_id=ev.get("session_id") or "unknown",
                utterance_index=int(ev.get("utterance_index", -1)),
                text=ev.get("text") or "",
            )
        return cls(
            type=raw.get("type") or "direct",
            label=raw.get("label") or "",
            value=raw.get("value") or "",
            reasoning=raw.get("reasoning") or "",
            evidence=evidence,
            confidence=float(raw.get("confidence", 0.9)),
            time_scope=raw.get("time_scope") or "recent",
            emotion=raw.get("emotion"),
            preference_attitude=raw.get("preference_attitude"),
            memory_id=raw.get("memory_id") or "",
            updated_at=raw.get("updated_at") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "memory_id": self.memory_id,
            "type": self.type,
            "label": self.label,
            "value": self.value,
            "reasoning": self.reasoning,
            "evidence": self.evidence.to_dict() if self.evidence else None,
            "confidence": self.confidence,
            "time_scope": self.time_scope,
            "emotion": self.emotion,
            "preference_attitude": self.preference_attitude,
            "updated_at": self.updated_at,
        }
