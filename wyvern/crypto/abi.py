"""
ABI helpers

Function selectors and call-data encoding for the ledger's contracts.
"""

from typing import Any, List, Sequence, Tuple

from eth_abi import decode, encode

from .hashing import keccak256


def compute_function_selector(function_signature: str) -> bytes:
    """
    Compute function selector (first 4 bytes of keccak256(sig)).

    Args:
        function_signature: Function signature like "transfer(address,uint256)"

    Returns:
        4-byte function selector
    """
    return keccak256(function_signature.encode('utf-8'))[:4]


def parse_argument_types(function_signature: str) -> List[str]:
    """
    Split the parameter list of a signature into ABI type strings.

    Commas inside nested tuples are kept, so "f((uint256,bytes),address)"
    yields ["(uint256,bytes)", "address"].
    """
    start = function_signature.index('(') + 1
    end = function_signature.rindex(')')
    body = function_signature[start:end]

    types: List[str] = []
    depth = 0
    current = ''
    for char in body:
        if char == ',' and depth == 0:
            types.append(current.strip())
            current = ''
            continue
        if char == '(':
            depth += 1
        elif char == ')':
            depth -= 1
        current += char
    if current.strip():
        types.append(current.strip())
    return types


def encode_args(types: Sequence[str], args: Sequence[Any]) -> bytes:
    if not types:
        return b''
    return encode(list(types), list(args))


def decode_args(types: Sequence[str], data: bytes) -> Tuple[Any, ...]:
    if not types:
        return ()
    return decode(list(types), data)


def encode_function_call(function_signature: str, *args) -> bytes:
    """
    Encode function call data (selector + ABI-encoded arguments).

    Args:
        function_signature: Function signature
        *args: Function arguments

    Returns:
        Encoded call data
    """
    selector = compute_function_selector(function_signature)
    return selector + encode_args(parse_argument_types(function_signature), args)


def decode_function_call(data: bytes) -> Tuple[bytes, bytes]:
    """
    Split call data into selector and encoded arguments.

    Data shorter than a selector yields empty parts.
    """
    if len(data) < 4:
        return b'', b''
    return data[:4], data[4:]
