import os

# Redis Connection

REDIS_HOST              = os.environ.get("AINIMO_REDIS_HOST", "localhost")
REDIS_PORT              = int(os.environ.get("AINIMO_REDIS_PORT", "6379"))
REDIS_SAVE_DB           = 0          # Logical DB for save records
REDIS_SOCKET_TIMEOUT    = 5          # seconds

# Key Namespace

STORAGE_KEY             = "ainimo_save"
STORAGE_PROBE_KEY       = "__storage_test__"

# Payload Format

PAYLOAD_VERSION         = 1
IV_LENGTH               = 12         # AES-GCM nonce, 96 bit
SALT_LENGTH             = 16
KEY_LENGTH              = 32         # 256 bit
HMAC_LENGTH             = 32         # HMAC-SHA256

# Key Derivation

PBKDF2_ITERATIONS       = 100_000
KEY_CACHE_SIZE          = 4          # derived keys remembered per KeyDeriver
HKDF_ENC_INFO           = b"ainimo-save/v1/aes-gcm"
HKDF_MAC_INFO           = b"ainimo-save/v1/hmac-sha256"

# Persistence Controller

SAVE_DEBOUNCE_SECONDS   = 0.5

# Game Model

VALID_SPEAKERS          = {"user", "pet"}

INITIAL_PARAMETERS = {
    "level":        1,
    "xp":           0,
    "intelligence": 10,
    "memory":       5,
    "friendliness": 50,
    "energy":       100,
    "mood":         60,
}

# Environment

ENV_ENCRYPTION_ENABLED      = "AINIMO_ENCRYPTION_ENABLED"
ENV_KDF_ITERATIONS          = "AINIMO_KDF_ITERATIONS"
ENV_ALLOW_PLAINTEXT         = "AINIMO_ALLOW_PLAINTEXT_MIGRATION"
ENV_STORAGE_SECRET          = "AINIMO_STORAGE_SECRET"
