"""
Protocol constants for the encrypted file transfer client.

Codes, field sizes and struct layouts shared by the codec and the session.
All sizes are in bytes.
"""

# ============================================================================
# Protocol Version
# ============================================================================

CLIENT_VERSION = 3

# ============================================================================
# Request Codes (from client to server)
# ============================================================================

REQUEST_REGISTRATION = 1100
REQUEST_SEND_PUBLIC_KEY = 1101
REQUEST_SEND_FILE = 1103
REQUEST_CRC_VALID = 1104
REQUEST_CRC_INVALID = 1105
REQUEST_CRC_INVALID_ABORT = 1106

# ============================================================================
# Response Codes (from server to client)
# ============================================================================

RESPONSE_REGISTRATION_SUCCESS = 2100
RESPONSE_REGISTRATION_FAILED = 2101
RESPONSE_ENCRYPTED_KEY = 2102
RESPONSE_FILE_ACCEPTED = 2103
RESPONSE_ACK = 2104
RESPONSE_GENERIC_ERROR = 9999

# ============================================================================
# Field Sizes
# ============================================================================

CLIENT_ID_SIZE = 16
NAME_FIELD_SIZE = 255  # NUL terminated, so at most 254 characters
MAX_NAME_LENGTH = NAME_FIELD_SIZE - 1
PUBLIC_KEY_SIZE = 160
SYMMETRIC_KEY_SIZE = 16
ENCRYPTED_KEY_SIZE = 128
CONTENT_SIZE_SIZE = 4
CRC_SIZE = 4
MAX_CONTENT_SIZE = 0xFFFFFFFF

# ============================================================================
# Struct Layouts (little-endian, no padding)
# ============================================================================

REQUEST_HEADER_FORMAT = "<16sBHI"    # ClientID(16) + Version(1) + Code(2) + PayloadSize(4)
RESPONSE_HEADER_FORMAT = "<BHI"      # Version(1) + Code(2) + PayloadSize(4)
FILE_REQUEST_PREFIX_FORMAT = "<I255s"          # ContentSize(4) + FileName(255)
FILE_ACCEPTED_FORMAT = "<16sI255sI"            # ClientID + ContentSize + FileName + CRC

REQUEST_HEADER_SIZE = 16 + 1 + 2 + 4
RESPONSE_HEADER_SIZE = 1 + 2 + 4
FILE_REQUEST_PREFIX_SIZE = CONTENT_SIZE_SIZE + NAME_FIELD_SIZE
FILE_ACCEPTED_SIZE = CLIENT_ID_SIZE + CONTENT_SIZE_SIZE + NAME_FIELD_SIZE + CRC_SIZE

# Response codes whose payload size is known in advance. Every other
# recognised code carries a variable payload and trusts the header's size.
FIXED_PAYLOAD_SIZES = {
    RESPONSE_REGISTRATION_SUCCESS: CLIENT_ID_SIZE,
}

# ============================================================================
# Retry Policy
# ============================================================================

MAX_CRC_RETRIES = 3
