"""
Note category rules.

Evaluated in order against the lower-cased note text; the first rule with a
matching phrase wins. 'startswith' phrases only match at the beginning of the note.
"""

CATEGORY_W9 = "W9 Form Management"
CATEGORY_MANUAL_REVIEW = "Manual Review (Rachael/Payer)"
CATEGORY_ADJUDICATION_ERRORS = "Adjudication & Processing Errors"
CATEGORY_HIGH_DOLLAR = "High-Dollar Amount Review"
CATEGORY_CONTRACT_PROVIDER = "Contract & Provider Data Issues"
CATEGORY_SYSTEM_ACTIONS = "System Actions & Reprocessing"
CATEGORY_AUTH_DUPLICATE = "Authorization & Duplicate Issues"
CATEGORY_MISCELLANEOUS = "Miscellaneous"

NOTE_CATEGORY_RULES = [
    {
        "category": CATEGORY_W9,
        "contains": ["w9 req", "w9 requested", "w9 recvd", "w9 past due"],
        "startswith": [],
    },
    {
        "category": CATEGORY_MANUAL_REVIEW,
        "contains": ["rachael", "payer review", "hold for", "red tab", "move to pr"],
        "startswith": [],
    },
    {
        "category": CATEGORY_ADJUDICATION_ERRORS,
        "contains": ["incorrectly", "missed to"],
        "startswith": ["error -", "error-"],
    },
    {
        "category": CATEGORY_HIGH_DOLLAR,
        "contains": ["payment >", "net pay >", ">$10000", "exceeds total payment", "10k"],
        "startswith": [],
    },
    {
        "category": CATEGORY_CONTRACT_PROVIDER,
        "contains": ["contract", "provider not found", "no data for", "pay to name mismatch"],
        "startswith": [],
    },
    {
        "category": CATEGORY_SYSTEM_ACTIONS,
        "contains": ["remap", "rerun", "reprocess", "pv updated"],
        "startswith": [],
    },
    {
        "category": CATEGORY_AUTH_DUPLICATE,
        "contains": ["auth", "duplicate"],
        "startswith": [],
    },
]

ALL_CATEGORIES = [rule["category"] for rule in NOTE_CATEGORY_RULES] + [CATEGORY_MISCELLANEOUS]
