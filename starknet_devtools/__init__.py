"""
Cheatcode dispatch and idempotent script execution for Starknet deployment scripts.
This file contains monkeypatches used across the project. Advice for monkeypatch atomicity:
- Define a patching function
    - The function should import the places to be patched
    - The function can define the implementation to use for overwriting
- Call the patching function
"""

# pylint: disable=import-outside-toplevel

__version__ = "0.1.0"


def _patch_pedersen_hash():
    """
    Improves performance by substituting the default Python implementation of Pedersen hash
    with Software Mansion's Python wrapper of C++ implementation.
    Used when computing transaction hashes and contract addresses.
    """

    import starkware.crypto.signature.fast_pedersen_hash
    from crypto_cpp_py.cpp_bindings import cpp_hash as patched_pedersen_hash

    starkware.crypto.signature.fast_pedersen_hash.pedersen_hash = patched_pedersen_hash


_patch_pedersen_hash()


def _patch_poseidon_hash():
    """
    Substitutes the Python implementation of Poseidon hash, which transaction ids
    are derived with, by the C implementation wrapped in poseidon_py.
    """

    import starkware.cairo.common.poseidon_hash
    from poseidon_py import poseidon_hash

    for name in ("poseidon_hash", "poseidon_hash_many"):
        setattr(starkware.cairo.common.poseidon_hash, name, getattr(poseidon_hash, name))


_patch_poseidon_hash()
