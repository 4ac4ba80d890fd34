# rln_core/constants.py

# Encoded keystore envelope
KEYSTORE_APPLICATION = "waku-rln-relay"
KEYSTORE_APP_IDENTIFIER = "01234567890abcdef"
KEYSTORE_VERSION = "0.2"
SUPPORTED_KEYSTORE_VERSIONS = ("0.2",)

# Entry crypto
CIPHER_NAME = "aes-256-gcm"
KDF_NAME = "scrypt"
KEY_LEN = 32
SALT_LEN = 32
IV_LEN = 12
TAG_LEN = 16

# Host storage keys
STORAGE_KEY_KEYSTORE = "waku-rln-keystore"
STORAGE_KEY_ALIASES = "waku-rln-keystore-aliases"

# Export filenames
EXPORT_FILENAME_KEYSTORE = "waku-rln-keystore.json"
EXPORT_FILENAME_CREDENTIAL = "waku-rln-credential-{prefix}.json"

# Identity challenge; a timestamp is appended per registration
SIGNATURE_MESSAGE = "Sign this message to generate your RLN credentials"

MAX_UINT256 = 2**256 - 1
