"""
Pattern testing: find matches for a pattern in text and redact them.

Matches come from three sources:

1. the pattern's own regular expressions (method ``regex``)
2. its examples, both as a learned regex and as exact occurrences
   (method ``example``)
3. built-in context detectors related to the pattern type (method
   ``context``), more confident when a context keyword precedes the match
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

REGEX_CONFIDENCE = 0.9
LEARNED_CONFIDENCE = 0.85
EXACT_EXAMPLE_CONFIDENCE = 0.95
CONTEXT_CONFIDENCE = 0.8
CONTEXT_BOOSTED_CONFIDENCE = 0.95
CONTEXT_WINDOW = 50


@dataclass
class PatternMatch:
    value: str
    start: int
    end: int
    method: str
    confidence: float
    detector: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# (type, format) pairs per pattern type; the first entry is the default.
REDACTION_STYLES: Dict[str, List[Dict[str, str]]] = {
    "PII": [
        {"type": "full", "format": "[REDACTED]"},
        {"type": "partial", "format": "XXX-XX-####"},
        {"type": "token", "format": "[PII-{index}]"},
        {"type": "mask", "format": "****"},
    ],
    "FINANCIAL": [
        {"type": "full", "format": "[REDACTED-FINANCIAL]"},
        {"type": "partial", "format": "****-****-****-####"},
        {"type": "token", "format": "[FIN-{index}]"},
        {"type": "mask", "format": "################"},
    ],
    "MEDICAL": [
        {"type": "full", "format": "[REDACTED-MEDICAL]"},
        {"type": "token", "format": "[MED-{index}]"},
        {"type": "mask", "format": "[MEDICAL-INFO]"},
    ],
    "CLASSIFICATION": [
        {"type": "full", "format": "[CLASSIFIED]"},
        {"type": "token", "format": "[CLASS-{index}]"},
        {"type": "mask", "format": "[REDACTED-GOV]"},
    ],
    "CUSTOM": [
        {"type": "full", "format": "[REDACTED]"},
        {"type": "token", "format": "[CUSTOM-{index}]"},
        {"type": "mask", "format": "****"},
    ],
}


@dataclass(frozen=True)
class ContextDetector:
    name: str
    regex: "re.Pattern[str]"
    clues: Sequence[str]


CONTEXT_DETECTORS: List[ContextDetector] = [
    ContextDetector(
        "Social Security Number",
        re.compile(r"\b\d{3}[-.\s]?\d{2}[-.\s]?\d{4}\b"),
        ("ssn", "social security", "ss#", "soc sec", "taxpayer"),
    ),
    ContextDetector(
        "Email Address",
        re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
        ("email", "e-mail", "mail", "contact"),
    ),
    ContextDetector(
        "Phone Number",
        re.compile(r"(?:\+?1[-.\s]?)?\(?\b\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b"),
        ("phone", "tel", "mobile", "cell", "fax", "call"),
    ),
    ContextDetector(
        "Date of Birth",
        re.compile(
            r"\b(?:\d{1,2}[-/]\d{1,2}[-/]\d{2,4}|\d{4}[-/]\d{1,2}[-/]\d{1,2}|"
            r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\s+\d{1,2},?\s+\d{2,4})\b",
            re.IGNORECASE,
        ),
        ("dob", "birth", "born", "birthday"),
    ),
    ContextDetector(
        "Address",
        re.compile(
            r"\b\d+\s+[A-Za-z]+(?:\s+[A-Za-z]+)*\s+(?:Street|St|Avenue|Ave|Boulevard|Blvd|"
            r"Road|Rd|Lane|Ln|Drive|Dr|Court|Ct|Plaza|Pl)\b",
            re.IGNORECASE,
        ),
        ("address", "street", "suite", "apt"),
    ),
    ContextDetector(
        "Credit Card Number",
        re.compile(r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{3,4}\b"),
        ("card", "credit", "debit", "visa", "mastercard", "amex", "payment"),
    ),
    ContextDetector(
        "Bank Account",
        re.compile(r"\b\d{8,17}\b"),
        ("account", "acct", "routing", "iban", "bank"),
    ),
    ContextDetector(
        "Medical Record Number",
        re.compile(r"\b(?:MRN|MR)[-:\s#]*\d{5,10}\b", re.IGNORECASE),
        ("mrn", "medical record", "patient", "chart"),
    ),
    ContextDetector(
        "Classification Marking",
        re.compile(
            r"\b(?:TOP SECRET|SECRET|CONFIDENTIAL|CUI|FOUO)(?://[A-Z/ ]+)?\b"
        ),
        ("classification", "classified", "marking", "clearance"),
    ),
]

DETECTORS_BY_TYPE: Dict[str, Sequence[str]] = {
    "PII": (
        "Social Security Number",
        "Email Address",
        "Phone Number",
        "Date of Birth",
        "Address",
    ),
    "FINANCIAL": ("Credit Card Number", "Bank Account"),
    "MEDICAL": ("Medical Record Number",),
    "CLASSIFICATION": ("Classification Marking",),
}

_ADDRESS_RE = re.compile(
    r"^\d+\s+[A-Za-z]+(?:\s+[A-Za-z]+)*\s+(?:Street|St|Avenue|Ave|Boulevard|Blvd|Road|Rd|"
    r"Lane|Ln|Drive|Dr|Court|Ct|Plaza|Pl|Way|Circle|Cir|Parkway|Pkwy|Highway|Hwy)$",
    re.IGNORECASE,
)
_DATE_RE = re.compile(
    r"^(?:\d{1,2}[-/]\d{1,2}[-/]\d{2,4}|\d{4}[-/]\d{1,2}[-/]\d{1,2}|"
    r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\s+\d{1,2},?\s+\d{2,4})$",
    re.IGNORECASE,
)


def _looks_like_phone(text: str) -> bool:
    return bool(re.match(r"^\+?1?\d{10}$", re.sub(r"[\s\-.()]", "", text)))


def _looks_like_email(text: str) -> bool:
    return bool(re.match(r"^[^\s@]+@[^\s@]+\.[^\s@]+$", text))


def _looks_like_credit_card(text: str) -> bool:
    return bool(re.match(r"^\d{13,19}$", re.sub(r"[\s\-]", "", text)))


_STRUCTURE_RE = re.compile(r"(\d+)|([A-Z][a-z]+)|([a-z]+)|([A-Z]+)")


def _structure(text: str) -> str:
    """Shape of a string: digit runs become N, Capitalized words W,
    lowercase runs w and uppercase runs U."""
    text = _STRUCTURE_RE.sub(lambda m: "NWwU"[m.lastindex - 1], text)
    return re.sub(r"\s+", " ", text)


def _similar_structure(first: str, second: str) -> bool:
    if first == second:
        return True
    parts1, parts2 = first.split(" "), second.split(" ")
    if len(parts1) != len(parts2):
        return False
    return all(a == b or {a, b} == {"W", "w"} for a, b in zip(parts1, parts2))


_STRUCTURE_TOKENS = {"N": r"\d+", "W": r"[A-Z][a-z]+", "w": r"[a-z]+", "U": r"[A-Z]+"}


def _structure_pattern(examples: List[str]) -> Optional[str]:
    if len(examples) < 2:
        return None
    structures = [_structure(e) for e in examples]
    if not all(_similar_structure(s, structures[0]) for s in structures):
        return None
    pieces = [
        r"\s+" if char == " " else _STRUCTURE_TOKENS.get(char, re.escape(char))
        for char in structures[0]
    ]
    return r"\b" + "".join(pieces) + r"\b"


def learn_pattern(examples: Sequence[str]) -> Optional[str]:
    """Derive a regular expression that generalizes the given examples."""
    clean = [e.strip() for e in examples if e and e.strip()]
    if not clean:
        return None

    if all(_ADDRESS_RE.match(e) for e in clean):
        return (
            r"\b\d{1,6}\s+[A-Za-z]+\s+[A-Za-z]+(?:\s+[A-Za-z]+)*\s+(?:Street|St|Avenue|Ave|"
            r"Boulevard|Blvd|Road|Rd|Lane|Ln|Drive|Dr|Court|Ct|Plaza|Pl|Way|Circle|Cir|"
            r"Parkway|Pkwy|Highway|Hwy)\b"
        )
    if all(re.match(r"^\d{3}[-.\s]?\d{2}[-.\s]?\d{4}$", e) for e in clean):
        return r"\b\d{3}[-.\s]?\d{2}[-.\s]?\d{4}\b"
    if all(_looks_like_phone(e) for e in clean):
        return r"\b(?:\+?1[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b"
    if all(_looks_like_email(e) for e in clean):
        return r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"
    if all(_looks_like_credit_card(e) for e in clean):
        shapes = [
            r"[-\s]?".join(rf"\d{{{len(p)}}}" for p in re.split(r"[-\s]", e)) for e in clean
        ]
        if all(s == shapes[0] for s in shapes):
            return rf"\b{shapes[0]}\b"
        return r"\b\d{3,4}(?:[-\s]?\d{3,6}){2,4}\b"
    if all(_DATE_RE.match(e) for e in clean):
        return (
            r"\b(?:\d{1,2}[-/]\d{1,2}[-/]\d{2,4}|\d{4}[-/]\d{1,2}[-/]\d{1,2}|"
            r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\s+\d{1,2},?\s+\d{2,4})\b"
        )
    if all(re.match(r"^[\d\s\-.]+$", e) for e in clean):
        groups = [re.split(r"[-\s.]", e) for e in clean]
        if all(len(g) > 1 for g in groups):
            lengths = [[len(p) for p in g] for g in groups]
            if all(lens == lengths[0] for lens in lengths):
                separator = re.search(r"[-\s.]", clean[0]).group(0)
                sep = {" ": r"\s", ".": r"\."}.get(separator, "-")
                return r"\b" + f"[{sep}]?".join(rf"\d{{{n}}}" for n in lengths[0]) + r"\b"
        digit_counts = [len(re.sub(r"[\s\-.]", "", e)) for e in clean]
        low, high = min(digit_counts), max(digit_counts)
        if low == high:
            return rf"\b\d{{{low}}}\b"
        return rf"\b\d{{{low},{high}}}\b"

    return _structure_pattern(clean)


def find_regex_matches(text: str, pattern: str, method: str = "regex",
                       confidence: float = REGEX_CONFIDENCE) -> List[PatternMatch]:
    try:
        compiled = re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        logger.warning(f"Ignoring invalid regex {pattern!r}: {e}")
        return []
    return [
        PatternMatch(m.group(0), m.start(), m.end(), method, confidence)
        for m in compiled.finditer(text)
        if m.group(0)
    ]


def find_example_matches(text: str, examples: Sequence[str]) -> List[PatternMatch]:
    matches: List[PatternMatch] = []
    learned = learn_pattern(examples)
    if learned:
        matches.extend(find_regex_matches(text, learned, "example", LEARNED_CONFIDENCE))

    lowered = text.lower()
    for example in examples:
        if not example:
            continue
        needle = example.lower()
        index = lowered.find(needle)
        while index != -1:
            matches.append(
                PatternMatch(
                    text[index : index + len(example)],
                    index,
                    index + len(example),
                    "example",
                    EXACT_EXAMPLE_CONFIDENCE,
                )
            )
            index = lowered.find(needle, index + 1)
    return matches


def find_context_matches(
    text: str, pattern_type: str, pattern_name: str, context_keywords: Sequence[str] = ()
) -> List[PatternMatch]:
    related = DETECTORS_BY_TYPE.get(pattern_type, ())
    lowered = text.lower()
    matches: List[PatternMatch] = []
    for detector in CONTEXT_DETECTORS:
        named = bool(pattern_name) and pattern_name.lower() in detector.name.lower()
        if detector.name not in related and not named:
            continue
        clues = [c.lower() for c in (*detector.clues, *context_keywords) if c]
        for m in detector.regex.finditer(text):
            before = lowered[max(0, m.start() - CONTEXT_WINDOW) : m.start()]
            boosted = any(clue in before for clue in clues)
            matches.append(
                PatternMatch(
                    m.group(0),
                    m.start(),
                    m.end(),
                    "context",
                    CONTEXT_BOOSTED_CONFIDENCE if boosted else CONTEXT_CONFIDENCE,
                    detector=detector.name,
                )
            )
    return matches


def filter_overlapping(matches: List[PatternMatch]) -> List[PatternMatch]:
    """Keep matches in start order, highest confidence first at equal starts,
    dropping any that overlap an already kept match."""
    ordered = sorted(matches, key=lambda m: (m.start, -m.confidence))
    kept: List[PatternMatch] = []
    for match in ordered:
        overlaps = any(
            (k.start <= match.start < k.end) or (k.start < match.end <= k.end)
            for k in kept
        )
        if not overlaps:
            kept.append(match)
    return kept


def drop_refined_matches(
    matches: List[PatternMatch], excluded: Sequence[str], threshold: Optional[float] = None
) -> List[PatternMatch]:
    """Remove matches the user marked as false positives or below the pattern's threshold."""
    skip = {e.strip().lower() for e in excluded}
    return [
        m for m in matches
        if m.value.strip().lower() not in skip and (threshold is None or m.confidence >= threshold)
    ]


def redaction_styles(pattern_type: str) -> List[Dict[str, str]]:
    return REDACTION_STYLES.get(pattern_type, REDACTION_STYLES["CUSTOM"])


def resolve_style(pattern_type: str, style_type: Optional[str]) -> Dict[str, str]:
    """Pick the named style for a pattern type, falling back to its default."""
    styles = redaction_styles(pattern_type)
    if style_type:
        for style in styles:
            if style["type"] == style_type:
                return style
    return styles[0]


def _partial(value: str, fmt: str) -> str:
    digits = re.sub(r"\D", "", value)
    if fmt == "XXX-XX-####" and re.match(r"^\d{3}-?\d{2}-?\d{4}$", value):
        return f"XXX-XX-{digits[-4:]}"
    if fmt == "****-****-****-####" and len(digits) >= 16:
        return f"****-****-****-{digits[-4:]}"
    if len(value) > 4:
        return "*" * (len(value) - 4) + value[-4:]
    return "*" * len(value)


def _mask(value: str, fmt: str) -> str:
    if fmt == "****":
        return "*" * len(value)
    if "#" in fmt:
        return "#" * len(value)
    return fmt


def apply_redaction(text: str, matches: List[PatternMatch], style: Dict[str, str]) -> str:
    """Replace matches from the end of the string backwards."""
    redacted = text
    token_index = 1
    for match in sorted(matches, key=lambda m: m.start, reverse=True):
        fmt = style["format"]
        if style["type"] == "partial":
            replacement = _partial(match.value, fmt)
        elif style["type"] == "token":
            replacement = fmt.replace("{index}", str(token_index))
            token_index += 1
        elif style["type"] == "mask":
            replacement = _mask(match.value, fmt)
        else:
            replacement = fmt
        redacted = redacted[: match.start] + replacement + redacted[match.end :]
    return redacted


def run_pattern_test(
    text: str,
    pattern: Dict[str, Any],
    redaction_style: Optional[str] = None,
) -> Dict[str, Any]:
    """Run every detection method for a pattern over text.

    ``pattern`` is a dict with the Pattern fields (name, type, regex,
    regex_patterns, examples, context_keywords).
    """
    pattern_type = pattern.get("type") or "CUSTOM"
    matches: List[PatternMatch] = []

    if pattern.get("regex"):
        matches.extend(find_regex_matches(text, pattern["regex"]))
    for extra in pattern.get("regex_patterns") or []:
        matches.extend(find_regex_matches(text, extra))
    matches.extend(find_example_matches(text, pattern.get("examples") or []))
    matches.extend(
        find_context_matches(
            text,
            pattern_type,
            pattern.get("name") or "",
            pattern.get("context_keywords") or [],
        )
    )

    matches = drop_refined_matches(
        matches, pattern.get("excluded_examples") or [], pattern.get("confidence_threshold")
    )
    filtered = filter_overlapping(matches)
    style = resolve_style(pattern_type, redaction_style)
    total = len(filtered)

    return {
        "matches": [m.to_dict() for m in filtered],
        "redacted_text": apply_redaction(text, filtered, style),
        "redaction_style": style,
        "available_styles": redaction_styles(pattern_type),
        "statistics": {
            "total_matches": total,
            "regex_matches": sum(1 for m in filtered if m.method == "regex"),
            "example_matches": sum(1 for m in filtered if m.method == "example"),
            "context_matches": sum(1 for m in filtered if m.method == "context"),
            "average_confidence": round(sum(m.confidence for m in filtered) / total, 4)
            if total
            else 0.0,
        },
    }
