"""Application configuration."""

import os

# SDM MAC key slot (KEY3 on our tags): 16-byte base key as hex.
# The factory default key is all zeros.
BASE_KEY_HEX = os.getenv("SDM_BASE_KEY", "00" * 16)

# "diversified": per-tag key derived from BASE_KEY, SYSTEM_IDENTIFIER, KEY_VERSION
# "direct": BASE_KEY used as-is
DERIVE_MODE = os.getenv("SDM_DERIVE_MODE", "diversified").lower()
SYSTEM_IDENTIFIER = os.getenv("SDM_SYSTEM_IDENTIFIER", "testing")
KEY_VERSION = int(os.getenv("SDM_KEY_VERSION", "1"))

# Tags running in LRP secure messaging (not supported yet, fails at startup)
USES_LRP = os.getenv("SDM_USES_LRP", "false").lower() in ("1", "true", "yes")

# Replay cache: empty keeps counters in memory for the process lifetime
COUNTER_DB_URL = os.getenv("SDM_COUNTER_DB_URL", "")

# Query parameters the NDEF URL template mirrors into
UID_PARAM = os.getenv("SDM_UID_PARAM", "u")
CTR_PARAM = os.getenv("SDM_CTR_PARAM", "c")
MAC_PARAM = os.getenv("SDM_MAC_PARAM", "m")
