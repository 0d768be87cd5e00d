"""
Wyvern Protocol Constants

This module consolidates all global constants and environment configuration
used throughout the codebase. Constants are organized by category for easy
reference and maintenance.
"""
import ast
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
}


# WARNING: THE PROTOCOL VALUES BELOW ARE PART OF THE SIGNING DOMAIN. CHANGING THE NAME, VERSION OR
# PREFIX MAKES EVERY SIGNATURE PRODUCED BY EXISTING TOOLING INVALID AGAINST THIS DEPLOYMENT.

# ==================================================================================
# EXCHANGE (EIP-712 DOMAIN)
# ==================================================================================
EXCHANGE_NAME = 'Wyvern Exchange'
EXCHANGE_VERSION = '3.1'
PERSONAL_SIGN_PREFIX = b'\x19Ethereum Signed Message:\n'
DEFAULT_CHAIN_ID = 1
DEFAULT_GENESIS_TIMESTAMP = 1_600_000_000

EIP712_DOMAIN_TYPE = 'EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)'
ORDER_TYPE = (
    'Order(address registry,address maker,address staticTarget,bytes4 staticSelector,'
    'bytes staticExtradata,uint256 maximumFill,uint256 listingTime,uint256 expirationTime,uint256 salt)'
)

# Auth blob layout: abi.encode(uint8 v, bytes32 r, bytes32 s), optionally followed by
# a one-byte tag marking a prefixed-message signature.
SIGNATURE_BODY_LENGTH = 96
PERSONAL_SIGNATURE_SUFFIX = 0x03

# ERC-1271 isValidSignature(bytes32,bytes) magic value for contract makers
EIP_1271_MAGIC_VALUE = bytes.fromhex('1626ba7e')


# ==================================================================================
# REGISTRY
# ==================================================================================
# Cooldown between start_grant_authentication and end_grant_authentication
GRANT_DELAY_PERIOD = 2 * 7 * 24 * 60 * 60  # 2 weeks

# Identifies OwnableDelegateProxy as an upgradeable (EIP-897 "2") proxy
PROXY_TYPE = 2


# ==================================================================================
# ADDRESSES & HASHES
# ==================================================================================
ZERO_ADDRESS = '0x' + '00' * 20
ZERO_HASH = b'\x00' * 32

# Appended to every predicate name to build its 4-byte selector
PREDICATE_SIGNATURE_ARGS = '(bytes,address[7],uint8[2],uint256[6],bytes,bytes)'


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
DEFAULTS = dict(LOGGER_DEFAULTS)
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        return ast.literal_eval(s.title())
    return v

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
