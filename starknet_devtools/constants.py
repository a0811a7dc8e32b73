"""Constants used across the project."""

from starkware.cairo.lang.cairo_constants import DEFAULT_PRIME
from starkware.starknet.public.abi import get_selector_from_name

FIELD_PRIME = DEFAULT_PRIME

DEFAULT_RPC_URL = "http://127.0.0.1:5050/rpc"

# the script library is compiled by scarb to target/dev/<package>.sierra.json
# and kept alongside the package contracts under this key
SCRIPT_LIB_ARTIFACT_NAME = "__SCRIPT_LIB_ARTIFACT__"
SCRIPT_MAIN_FUNCTION = "main"

DEFAULT_TARGET_DIR = "target"
DEFAULT_PROFILE = "dev"

STATE_FILE_VERSION = 1
STATE_FILE_SUFFIX = "_state.json"

DEFAULT_WAIT_TIMEOUT = 300  # seconds
DEFAULT_WAIT_RETRY_INTERVAL = 5  # seconds

DEFAULT_MAX_FEE = 10**16  # wei

SUPPORTED_TX_VERSION = 1
SUPPORTED_DECLARE_TX_VERSION = 2

# Precalculated to fixed address; the same on all public networks and on devnet
UDC_ADDRESS = 0x41A78E741E5AF2FEC34B695679BC6891742439F7AFB8484ECD7766661AD02BF

UDC_DEPLOY_SELECTOR = get_selector_from_name("deployContract")

# the scripts `main` accepts no arguments except for this sentinel
# which the entry code wrapper passes as the available gas (i64::MAX)
SCRIPT_GAS_SENTINEL = 2**63 - 1

# memory word encoding of the Cairo `ret` instruction
RET_INSTRUCTION = 0x208B7FFF7FFF7FFE

# first felt of panic data holding a serialized ByteArray
BYTE_ARRAY_MAGIC = 0x46A6158A16A947E5916B2A2CA68501A45E93D7110E81AA2D6438B1C57C879A3

CHAIN_ID_TO_NETWORK_NAME = {
    # int.from_bytes(b"SN_MAIN", "big")
    0x534E5F4D41494E: "alpha-mainnet",
    # int.from_bytes(b"SN_SEPOLIA", "big")
    0x534E5F5345504F4C4941: "alpha-sepolia",
}
