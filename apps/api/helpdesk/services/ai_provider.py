"""Suggestion providers for ticket triage.

Gemini is used when configured; the keyword heuristic needs no network and
doubles as the fallback.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from helpdesk.core.exceptions import OperationTimeoutError, UpstreamError

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 5
PRIORITY_HINTS = ("urgent", "high", "normal", "low")


@dataclass
class SuggestionRequest:
    """What the caller knows about the problem so far."""

    title: str
    description: str
    done_actions: list[str] = field(default_factory=list)
    rejected_actions: list[str] = field(default_factory=list)
    prior_suggestions: list[str] = field(default_factory=list)

    @property
    def excluded(self) -> set[str]:
        return {
            s.strip().lower()
            for s in (*self.done_actions, *self.rejected_actions, *self.prior_suggestions)
            if s and s.strip()
        }


@dataclass
class Suggestion:
    """Triage suggestion returned by a provider."""

    source: str
    suggestions: list[str] = field(default_factory=list)
    department_guess: str | None = None
    confidence: float | None = None
    priority_hint: str | None = None
    rationale: str | None = None
    next_action: str | None = None
    follow_up_questions: list[str] = field(default_factory=list)

    @property
    def is_meaningful(self) -> bool:
        return bool(self.suggestions) or self.department_guess is not None


class SuggestionProvider(ABC):
    """Abstract base class for suggestion providers."""

    name: str

    @abstractmethod
    async def suggest(self, request: SuggestionRequest, departments: list[str]) -> Suggestion:
        """Produce a suggestion; ``departments`` are the routable department names."""
        pass


def _dedupe(items: list[str], excluded: set[str], limit: int) -> list[str]:
    seen: set[str] = set()
    result = []
    for item in items:
        key = item.strip().lower()
        if not key or key in excluded or key in seen:
            continue
        seen.add(key)
        result.append(item.strip())
        if len(result) >= limit:
            break
    return result


# =============================================================================
# Gemini
# =============================================================================

def _extract_json(text: str) -> str:
    """Strip markdown fences and surrounding prose from a model reply."""
    fenced = re.search(r"```(?:json)?\s*(.*?)```", text, re.DOTALL)
    if fenced:
        text = fenced.group(1)
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        raise ValueError("No JSON object in model reply")
    return text[start : end + 1]


class GeminiSuggestionProvider(SuggestionProvider):
    """Google Gemini generateContent provider."""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.transport = transport
        self.base_url = "https://generativelanguage.googleapis.com/v1beta"

    def _prompt(self, request: SuggestionRequest, departments: list[str]) -> str:
        lines = [
            "You are an assistant triaging IT support tickets.",
            "",
            f"Title: {request.title}",
            f"Description: {request.description}",
            "",
        ]
        for label, items in (
            ("Actions the user already tried (do not suggest again)", request.done_actions),
            ("Actions that did not help (avoid)", request.rejected_actions),
            ("Suggestions already shown", request.prior_suggestions),
        ):
            if items:
                lines.append(f"{label}:")
                lines.extend(f"- {item}" for item in dict.fromkeys(items))
                lines.append("")
        lines += [
            "Available departments (pick one by exact NAME):",
            ", ".join(departments),
            "",
            "Return ONLY a JSON object with keys:",
            "{ suggestions: string[], predictedDepartmentName?: string, confidence?: number, "
            "priorityHint?: 'urgent'|'high'|'normal'|'low', rationale?: string, "
            "nextAction?: string, followUpQuestions?: string[] }",
        ]
        return "\n".join(lines)

    def _parse(self, data: dict[str, Any], request: SuggestionRequest) -> Suggestion:
        parts = data["candidates"][0]["content"]["parts"]
        text = "\n".join(p.get("text", "") for p in parts if p.get("text"))
        root = json.loads(_extract_json(text))

        result = Suggestion(source=self.name)
        if isinstance(root.get("suggestions"), list):
            result.suggestions = _dedupe(
                [str(s) for s in root["suggestions"]], request.excluded, MAX_SUGGESTIONS
            )
        if root.get("predictedDepartmentName"):
            result.department_guess = str(root["predictedDepartmentName"])
        confidence = root.get("confidence")
        if isinstance(confidence, (int, float)):
            result.confidence = min(max(float(confidence), 0.0), 1.0)
        hint = str(root.get("priorityHint") or "").lower()
        if hint in PRIORITY_HINTS:
            result.priority_hint = hint
        result.rationale = root.get("rationale")
        result.next_action = root.get("nextAction")
        if isinstance(root.get("followUpQuestions"), list):
            result.follow_up_questions = _dedupe(
                [str(q) for q in root["followUpQuestions"]], set(), MAX_SUGGESTIONS
            )
        return result

    async def suggest(self, request: SuggestionRequest, departments: list[str]) -> Suggestion:
        body = {
            "contents": [{"role": "user", "parts": [{"text": self._prompt(request, departments)}]}],
            "generationConfig": {"temperature": 0.2},
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/models/{self.model}:generateContent",
                    params={"key": self.api_key},
                    headers={"Content-Type": "application/json"},
                    json=body,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as exc:
            logger.warning("Gemini request timed out model=%s", self.model)
            raise OperationTimeoutError() from exc
        except httpx.HTTPError as exc:
            logger.warning("Gemini request failed model=%s: %s", self.model, type(exc).__name__)
            raise UpstreamError() from exc

        try:
            return self._parse(data, request)
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            logger.warning("Gemini reply not understood model=%s", self.model)
            raise UpstreamError() from exc


# =============================================================================
# Heuristic
# =============================================================================

_SIGNALS: dict[str, tuple[str, list[str]]] = {
    "network": (
        r"\b(network|internet|wifi|wi-fi|ethernet|vpn|dns|gateway)\b",
        [
            "Ping the gateway and an external site to tell LAN from Internet issues",
            "Compare a wired and a Wi-Fi connection if possible",
            "Renew the IP lease and flush the DNS cache",
        ],
    ),
    "access": (
        r"\b(access|login|log in|password|permission|authenticat\w*|sso|ldap)\b",
        [
            "Confirm the account is active and has the right permissions",
            "Reset or resync the password and wait for replication",
            "Check for lockouts caused by failed attempts",
        ],
    ),
    "email": (
        r"\b(email|e-mail|outlook|gmail|exchange|mailbox)\b",
        [
            "Check mailbox quota and attachment sizes",
            "Start the mail client in safe mode with add-ins disabled",
            "Compare with webmail access",
        ],
    ),
    "browser": (
        r"\b(browser|chrome|edge|firefox|safari|cache|cookies?|extensions?)\b",
        [
            "Clear cache and cookies and retry in a private window",
            "Disable extensions to rule out interference",
            "Compare in another browser",
        ],
    ),
    "device": (
        r"\b(mouse|keyboard|monitor|usb|webcam|headset|microphone|printer|device)\b",
        [
            "Try the device on another port or computer",
            "Reinstall or update the device driver",
            "Check cables, power and physical connections",
        ],
    ),
    "app": (
        r"\b(app|application|system|client|update|version)\b",
        [
            "Confirm the application version and compatibility",
            "Reproduce the error with minimal steps and note them",
            "Check the application logs for related messages",
        ],
    ),
}

_ERROR_CODE = r"\b(error|exception|code|0x[0-9a-f]+|\d{3,})\b"

# (text keywords, department name/description keywords, score)
_DEPARTMENT_RULES: list[tuple[tuple[str, ...], tuple[str, ...], int]] = [
    (("invoice", "payment", "billing", "refund", "charge", "budget"), ("financ", "billing"), 3),
    (("payroll", "benefit", "vacation", "hiring", "onboarding", "employee"), ("hr", "human resources", "people"), 3),
    (("production", "machine", "warehouse", "stock", "inventory", "logistics"), ("produc", "operations", "logistic"), 3),
    (
        ("network", "system", "bug", "error", "printer", "computer", "access", "vpn", "server"),
        ("it", "support", "infrastructure", "systems", "tech"),
        3,
    ),
    (("mouse", "keyboard", "peripheral", "laptop", "desktop"), ("it", "support"), 2),
]

_URGENT = r"\b(down|urgent|critical|outage|inaccessible|blocked)\b"
_HIGH = r"\b(important|failing|unstable|intermittent)\b"


def _keyword_in(keyword: str, text: str) -> bool:
    return re.search(rf"\b{re.escape(keyword)}", text) is not None


class HeuristicSuggestionProvider(SuggestionProvider):
    """Keyword rules; deterministic and offline."""

    name = "heuristic"

    def guess_department(self, text: str, departments: list[str]) -> tuple[str | None, int]:
        best, best_score = None, 0
        for department in departments:
            label = department.lower()
            score = sum(
                weight
                for text_keys, dept_keys, weight in _DEPARTMENT_RULES
                if any(_keyword_in(k, text) for k in text_keys)
                and any(_keyword_in(k, label) for k in dept_keys)
            )
            if score > best_score:
                best, best_score = department, score
        return best, best_score

    async def suggest(self, request: SuggestionRequest, departments: list[str]) -> Suggestion:
        text = f"{request.title} {request.description}".lower()
        has_error_code = re.search(_ERROR_CODE, text) is not None

        candidates = [
            "Describe when the problem started and whether it is constant or intermittent",
            "Check whether it happens for another user or computer",
            "Describe the business impact (who and how many are affected)",
        ]
        if not has_error_code:
            candidates.append("Copy the exact error message (text or screenshot)")
        for pattern, steps in _SIGNALS.values():
            if re.search(pattern, text):
                candidates.extend(steps)

        suggestions = _dedupe(candidates, request.excluded, MAX_SUGGESTIONS)
        if not suggestions:
            suggestions = _dedupe(
                [
                    "Send the full error message and the approximate time it happened",
                    "Tell us whether other users are affected or only you",
                ],
                {s.strip().lower() for s in request.prior_suggestions},
                MAX_SUGGESTIONS,
            )

        result = Suggestion(
            source=self.name,
            suggestions=suggestions,
            next_action=suggestions[0] if suggestions else None,
        )
        if not has_error_code:
            result.follow_up_questions.append("What is the exact error message shown?")
        result.follow_up_questions.append("Does the problem happen for other users or devices?")

        department, score = self.guess_department(text, departments)
        if department is not None:
            result.department_guess = department
            result.confidence = min(0.9, 0.5 + 0.1 * score)
            result.rationale = f"Keyword match for '{department}'."

        if re.search(_URGENT, text):
            result.priority_hint = "urgent"
        elif re.search(_HIGH, text):
            result.priority_hint = "high"
        return result
