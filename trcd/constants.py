# Relay policy defaults and wire strings

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 6969

# Minimum seconds between two accepted messages from one session.
MESSAGE_INTERVAL_S = 1.0

# Seconds a host stays banned after exceeding the strike limit.
BAN_DURATION_S = 10.0

# A session is banned once its strike count exceeds this value.
STRIKE_LIMIT = 10

READ_CHUNK_BYTES = 512
NAME_MAX_CHARS = 32
NAME_READ_BYTES = 64
WRITE_TIMEOUT_S = 5.0

PLACEHOLDER_NAME = "anon"
REDACTED = "[REDACTED]"

NAME_PROMPT = "Enter your name: "
BANNED_NOTICE = "You are banned!\n"

# Violation kinds. Also used as stats counter keys.
E_ADMISSION_DENIED = "admission_denied"
E_PROTOCOL_VIOLATION = "protocol_violation"
E_RATE_VIOLATION = "rate_violation"
E_MALFORMED_PAYLOAD = "malformed_payload"
E_DELIVERY_FAILURE = "delivery_failure"


def ban_rejection_notice(remaining_s: float) -> str:
    return f"You are banned buddy: {remaining_s:f} seconds left\n"
