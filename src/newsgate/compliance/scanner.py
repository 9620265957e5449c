"""
Compliance risk scanner.

Regex rules over Korean and English wording, grouped into categories:

- privacy: identifier numbers, phone numbers, e-mail addresses, and
  disclosure of identifiers (high); bare identifier mentions (medium)
- defamation, medical, financial, violence: medium
- weapon-making instructions: high
- factual: quoted text with no attribution wording nearby (low)

``publish_blocked`` is True iff any flag is high.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from ..config import constants
from ..state import ComplianceAssessment, ComplianceFlag, Severity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComplianceRule:
    category: str
    severity: Severity
    pattern: re.Pattern
    message: str


def _rule(category: str, severity: Severity, pattern: str, message: str) -> ComplianceRule:
    return ComplianceRule(category, severity, re.compile(pattern, re.IGNORECASE), message)


_IDENTIFIER_TERMS = (
    r"주민등록번호|주민번호|계좌번호|카드번호|여권번호|"
    r"social security number|resident registration number|"
    r"bank account number|credit card number|passport number"
)
_DISCLOSURE_TERMS = r"공개|유출|노출|게시|폭로|publish|leak|disclos|reveal|expose|post"

DEFAULT_RULES: tuple[ComplianceRule, ...] = (
    # Privacy / PII
    _rule(
        "privacy", Severity.HIGH,
        r"\b\d{6}\s?-\s?[1-4]\d{6}\b",
        "resident registration number pattern",
    ),
    _rule(
        "privacy", Severity.HIGH,
        r"\b(?:\d{4}[- ]){3}\d{4}\b",
        "card number pattern",
    ),
    _rule(
        "privacy", Severity.HIGH,
        r"\b\d{3,6}-\d{2,6}-\d{4,8}\b",
        "bank account number pattern",
    ),
    _rule(
        "privacy", Severity.HIGH,
        r"(?:\+82[- ]?|\b0)1[016789][- ]?\d{3,4}[- ]?\d{4}\b",
        "mobile phone number",
    ),
    _rule(
        "privacy", Severity.HIGH,
        r"\b[\w.+-]+@[\w-]+\.[\w.-]+\b",
        "e-mail address",
    ),
    _rule(
        "privacy", Severity.HIGH,
        rf"(?:{_IDENTIFIER_TERMS})[^.!?\n]{{0,40}}(?:{_DISCLOSURE_TERMS})|"
        rf"(?:{_DISCLOSURE_TERMS})[^.!?\n]{{0,40}}(?:{_IDENTIFIER_TERMS})",
        "disclosure of personal identifiers",
    ),
    _rule(
        "privacy", Severity.MEDIUM,
        _IDENTIFIER_TERMS,
        "mentions a personal identifier",
    ),
    # Defamation
    _rule(
        "defamation", Severity.MEDIUM,
        r"사기꾼|파렴치|범죄자|쓰레기 같은|매국노|횡령범|"
        r"\b(?:liar|fraudster|crook|scumbag|criminal mastermind)\b",
        "defamatory labelling of a person or group",
    ),
    # Absolute medical claims
    _rule(
        "medical", Severity.MEDIUM,
        r"100\s?%\s?(?:치료|완치|효과)|완치 보장|만병통치|부작용(?:이)? 전혀 없|"
        r"\b(?:guaranteed cure|miracle cure|cures? (?:cancer|all)|100\s?% (?:cure|effective)|no side effects)\b",
        "absolute medical claim",
    ),
    # Guaranteed-return financial claims
    _rule(
        "financial", Severity.MEDIUM,
        r"원금\s?보장|무조건\s?수익|확정\s?수익|수익\s?보장|고수익 보장|"
        r"\b(?:guaranteed (?:returns?|profits?)|risk-free (?:investment|returns?)|"
        r"principal guaranteed|double your money)\b",
        "guaranteed-return financial claim",
    ),
    # Violence
    _rule(
        "violence", Severity.HIGH,
        r"(?:폭탄|총기|사제\s?총|화염병)[^.!?\n]{0,12}(?:만드는\s?법|제조\s?법|제작\s?방법)|"
        r"\bhow to (?:make|build|assemble) (?:a )?(?:bomb|gun|explosive|weapon)s?\b",
        "weapon-making instructions",
    ),
    _rule(
        "violence", Severity.MEDIUM,
        r"살해|살인|폭행|테러|흉기|총격|학살|"
        r"\b(?:murder(?:ed)?|kill(?:ed|ing)?|assault(?:ed)?|terror(?:ist|ism)?|shooting|stabbing|massacre)\b",
        "violence-related wording",
    ),
)

_QUOTE_RE = re.compile(r'"([^"\n]{8,})"|“([^”\n]{8,})”|‘([^’\n]{8,})’')
_ATTRIBUTION_RE = re.compile(
    r"밝혔|말했|전했|따르면|의하면|주장했|설명했|강조했|발표|인용|"
    r"\b(?:said|says|told|stated|according to|reported|announced|wrote|quoted|claimed|added)\b",
    re.IGNORECASE,
)


class ComplianceScanner:
    """Scans text for compliance risks; never raises on content."""

    def __init__(
        self,
        rules: Optional[tuple[ComplianceRule, ...]] = None,
        attribution_window: int = constants.ATTRIBUTION_WINDOW_CHARS,
    ) -> None:
        self.rules = DEFAULT_RULES if rules is None else rules
        self.attribution_window = attribution_window

    def assess(self, text: str) -> ComplianceAssessment:
        """
        Assess text for compliance risks.

        Args:
            text: Title and body of an artifact, or free text

        Returns:
            ComplianceAssessment with the highest flag severity as risk level
        """
        text = text or ""
        flags: list[ComplianceFlag] = []
        seen: set[tuple[str, str]] = set()

        for rule in self.rules:
            match = rule.pattern.search(text)
            if not match:
                continue
            key = (rule.category, match.group(0))
            if key in seen:
                continue
            seen.add(key)
            flags.append(
                ComplianceFlag(
                    category=rule.category,
                    severity=rule.severity,
                    matched=match.group(0),
                    message=rule.message,
                )
            )

        flags += self._unattributed_quotes(text)

        risk = Severity.LOW
        for flag in flags:
            if flag.severity.rank > risk.rank:
                risk = flag.severity
        blocked = risk is Severity.HIGH
        if flags:
            logger.info(f"Compliance scan: risk={risk.value}, flags={len(flags)}, blocked={blocked}")
        return ComplianceAssessment(risk_level=risk, flags=flags, publish_blocked=blocked)

    def _unattributed_quotes(self, text: str) -> list[ComplianceFlag]:
        flags = []
        for match in _QUOTE_RE.finditer(text):
            start = max(0, match.start() - self.attribution_window)
            end = min(len(text), match.end() + self.attribution_window)
            context = text[start : match.start()] + text[match.end() : end]
            if _ATTRIBUTION_RE.search(context):
                continue
            flags.append(
                ComplianceFlag(
                    category="factual",
                    severity=Severity.LOW,
                    matched=match.group(0),
                    message="quoted text without nearby source attribution",
                )
            )
        return flags
