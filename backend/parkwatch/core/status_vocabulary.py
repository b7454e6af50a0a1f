"""
Canonical status vocabulary for DPA / PP sale statuses.

Upstream wording varies (Japanese page labels, English feeds, cosmetic edits), so every raw
phrase is folded into one canonical token before comparison. Downstream code only ever sees
the tokens below. Maintain the tables, not the code.
"""
import re
import unicodedata

ACTIVE = "active"
SOLD_OUT = "sold_out"
INACTIVE = "inactive"
SUSPENDED = "suspended"
UNRECOGNIZED = "unrecognized"

CANONICAL_TOKENS = (ACTIVE, SOLD_OUT, INACTIVE, SUSPENDED, UNRECOGNIZED)

# Exact phrase -> token. Keys are already normalized (see normalize_phrase).
PHRASE_TABLE: dict[str, str] = {
    # active
    "販売中": ACTIVE,
    "ディズニー・プレミアアクセス販売中": ACTIVE,
    "発行中": ACTIVE,
    "発行中/対象": ACTIVE,
    "pp発行中": ACTIVE,
    "プライオリティパス発行中": ACTIVE,
    "active": ACTIVE,
    "on sale": ACTIVE,
    "selling": ACTIVE,
    "available": ACTIVE,
    "issuing": ACTIVE,
    # sold out / ended
    "販売終了": SOLD_OUT,
    "完売": SOLD_OUT,
    "売り切れ": SOLD_OUT,
    "発行終了": SOLD_OUT,
    "pp発行終了": SOLD_OUT,
    "sold out": SOLD_OUT,
    "sold_out": SOLD_OUT,
    "soldout": SOLD_OUT,
    "no stock": SOLD_OUT,
    "out of stock": SOLD_OUT,
    "discontinued": SOLD_OUT,
    "ended": SOLD_OUT,
    # not offered
    "販売なし": INACTIVE,
    "販売を行わない": INACTIVE,
    "発行なし": INACTIVE,
    "pp発行なし": INACTIVE,
    "記載なし": INACTIVE,
    "inactive": INACTIVE,
    "none": INACTIVE,
    "not on sale": INACTIVE,
    "not available": INACTIVE,
    "n/a": INACTIVE,
    "-": INACTIVE,
    "": INACTIVE,
    # paused
    "一時休止": SUSPENDED,
    "販売一時停止": SUSPENDED,
    "発行一時停止": SUSPENDED,
    "suspended": SUSPENDED,
    "paused": SUSPENDED,
    # listed but undetermined
    "要確認(記載あり)": UNRECOGNIZED,
    "対象": UNRECOGNIZED,
    "pp対象": UNRECOGNIZED,
    "unrecognized": UNRECOGNIZED,
}

# Fallback when no exact phrase matches: first keyword found wins, so negative and
# terminal phrasings come before the positive ones they contain ("not available" ⊃ "available").
KEYWORD_TABLE: tuple[tuple[str, str], ...] = (
    ("一時停止", SUSPENDED),
    ("休止", SUSPENDED),
    ("suspend", SUSPENDED),
    ("pause", SUSPENDED),
    ("販売終了", SOLD_OUT),
    ("発行終了", SOLD_OUT),
    ("完売", SOLD_OUT),
    ("売り切れ", SOLD_OUT),
    ("sold out", SOLD_OUT),
    ("no stock", SOLD_OUT),
    ("out of stock", SOLD_OUT),
    ("discontinued", SOLD_OUT),
    ("販売なし", INACTIVE),
    ("発行なし", INACTIVE),
    ("行わない", INACTIVE),
    ("not on sale", INACTIVE),
    ("not available", INACTIVE),
    ("販売中", ACTIVE),
    ("発行中", ACTIVE),
    ("on sale", ACTIVE),
    ("available", ACTIVE),
)

_WHITESPACE = re.compile(r"\s+")
_DASHES = re.compile(r"[‐‑‒–—―]")


def normalize_phrase(raw: str) -> str:
    """NFKC, unify dashes, collapse whitespace, trim, casefold."""
    s = unicodedata.normalize("NFKC", raw)
    s = _DASHES.sub("-", s)
    s = _WHITESPACE.sub(" ", s).strip()
    return s.casefold()


def canonicalize_status(raw: str | None) -> str | None:
    """
    Map a raw status phrase to its canonical token.
    Returns None when raw is None (field not reported by the source).
    """
    if raw is None:
        return None
    phrase = normalize_phrase(raw)
    if phrase in PHRASE_TABLE:
        return PHRASE_TABLE[phrase]
    for keyword, token in KEYWORD_TABLE:
        if keyword in phrase:
            return token
    return UNRECOGNIZED
