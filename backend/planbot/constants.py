# constants.py
from typing import Dict, List, Tuple

SUPPORTED_OPERATORS: Tuple[str, ...] = ("jio", "airtel", "vi")
PLAN_TYPES: Tuple[str, ...] = ("prepaid", "postpaid")
DEFAULT_PLAN_TYPE = "prepaid"

# Exact-match spellings, checked before the substring rules below.
OPERATOR_CORRECTIONS: Dict[str, str] = {
    "geo": "jio",
    "artel": "airtel",
    "vodafone idea": "vi",
    "vodaphone": "vi",
    "idea": "vi",
}

# Order matters: the first operator whose hints appear in the text wins.
OPERATOR_SUBSTRINGS: List[Tuple[str, Tuple[str, ...]]] = [
    ("jio", ("jio", "geo")),
    ("airtel", ("airtel", "artel")),
    ("vi", ("vi", "vodafone", "idea")),
]

# Billing-cycle months (28 days), not calendar months.
MONTH_MAPPINGS: Dict[str, int] = {
    "1 month": 28,
    "one month": 28,
    "a month": 28,
    "2 month": 56,
    "two month": 56,
    "2 months": 56,
    "two months": 56,
    "3 month": 84,
    "three month": 84,
    "3 months": 84,
    "three months": 84,
}

# keyword found in text -> canonical feature name
FEATURE_KEYWORDS: List[Tuple[str, str]] = [
    ("international roaming", "international roaming"),
    ("ott", "ott"),
    ("amazon prime", "amazon prime"),
    ("prime video", "amazon prime"),
    ("netflix", "netflix"),
    ("hotstar", "hotstar"),
]
KNOWN_FEATURES: Tuple[str, ...] = ("international roaming", "ott", "amazon prime", "netflix", "hotstar")

VOICE_ONLY_PHRASES: Tuple[str, ...] = ("voice only", "voice-only", "calling only", "call only", "calling-only")

INTERNATIONAL_MARKERS: Tuple[str, ...] = (
    "international roaming",
    "iro",
    "international call",
    "global roaming",
    "international pack",
)

# Validity strings that describe a period without a day count.
UNDATED_VALIDITIES = {"base plan", "plan validity", "bill cycle"}

CONVERSATIONAL_RESPONSES: Dict[str, List[str]] = {
    "hi": [
        "Hello! How can I help you today?",
        "Hi there! Looking for a mobile plan?",
        "Hello! Need help finding a plan?",
    ],
    "hello": [
        "Hi! How can I assist you?",
        "Hello there! Need help with mobile plans?",
        "Hello! Ready to find your perfect plan?",
    ],
    "hey": [
        "Hey! How can I help?",
        "Hi there! Looking for a mobile plan?",
        "Hey! Ready to find your perfect plan?",
    ],
    "how are you": [
        "I'm doing great, thanks for asking! How can I help you today?",
        "I'm well, thanks! Ready to find you the perfect mobile plan?",
    ],
    "thanks": [
        "You're welcome! Let me know if you need anything else.",
        "Happy to help! Need anything else?",
        "Glad I could help! Feel free to ask about any other plans.",
    ],
    "thank you": [
        "You're welcome! Let me know if you need anything else.",
        "Happy to help! Need anything else?",
        "My pleasure! Feel free to ask about other plans.",
    ],
    "bye": [
        "Goodbye! Have a great day!",
        "Take care! Come back if you need more help.",
        "Bye! Feel free to return if you need assistance.",
    ],
}
