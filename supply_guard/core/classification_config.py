"""Default configuration values for TCS classification."""

DEFAULT_CLASSIFY_PROC_MACROS = True
DEFAULT_CLASSIFY_BUILD_DEPS = False
DEFAULT_MECHANICAL_CATEGORY = "other"
DEFAULT_CONFIDENCE_THRESHOLD = 0.7
DEFAULT_PATTERN_CONFIDENCE = 0.8

# Evaluated top to bottom, first match wins. Regexes use re.search semantics.
# Short crate names are anchored (ring to the whole name, serde, tokio, hyper
# and rand to a name prefix) so "string", "operand" or "miniserde" do not
# match. Embedded names need an operator-supplied custom pattern.
# (name, regex, category, description)
DEFAULT_TCS_PATTERNS = [
    ("crypto-sha2", r"sha2", "cryptography", "SHA-2 cryptographic functions"),
    ("crypto-aes", r"aes", "cryptography", "AES cryptographic functions"),
    ("crypto-ring", r"^ring$", "cryptography", "Ring cryptographic library"),
    ("auth-jwt", r"jwt", "authentication", "JWT token handling"),
    ("auth-oauth", r"oauth", "authentication", "OAuth authentication"),
    ("serde-core", r"^serde([_-]|$)", "serialization", "Serde serialization framework"),
    ("serialization-toml", r"toml", "serialization", "TOML serialization"),
    ("transport-tokio", r"^tokio([_-]|$)", "transport", "Tokio async runtime"),
    ("transport-hyper", r"^hyper([_-]|$)", "transport", "HTTP client/server library"),
    ("database-diesel", r"diesel", "database", "Diesel ORM"),
    ("database-sqlx", r"sqlx", "database", "SQLx async SQL toolkit"),
    ("random-rand", r"^rand([_-]|$)", "random", "Random number generation"),
]
