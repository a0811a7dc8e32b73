"""
Deterministic transaction ids used as keys of the state file.
The same logical operation always maps to the same id, so a re-run script can find
the outcome of a transaction it already sent.
"""

from typing import List, Optional

from starkware.cairo.common.poseidon_hash import poseidon_hash_many

from .serde import serialize_byte_array, serialize_option
from .util import assert_felt, fixed_length_hex, str_to_felt


def _felt_array(values: List[int]) -> List[int]:
    return [len(values), *(assert_felt(value) for value in values)]


def generate_id(kind: str, inputs: List[int]) -> str:
    """Hashes the operation kind together with its canonical inputs"""
    return fixed_length_hex(poseidon_hash_many([str_to_felt(kind), *inputs]))


def generate_declare_tx_id(contract_name: str) -> str:
    """Id of declaring the contract named `contract_name`"""
    if not isinstance(contract_name, str):
        raise ValueError(f"Contract name must be a string, got: {contract_name!r}")
    return generate_id("declare", serialize_byte_array(contract_name))


def generate_deploy_tx_id(
    class_hash: int,
    constructor_calldata: List[int],
    salt: Optional[int],
    unique: bool,
) -> str:
    """
    Id of deploying `class_hash`.
    `unique` is part of the id: the chain does not deduplicate a unique deployment
    against a non-unique one with otherwise identical arguments.
    """
    if not isinstance(unique, bool):
        raise ValueError(f"Unique flag must be a bool, got: {unique!r}")

    salt_part = serialize_option(None if salt is None else [assert_felt(salt)])
    return generate_id(
        "deploy",
        [
            assert_felt(class_hash),
            *_felt_array(constructor_calldata),
            *salt_part,
            int(unique),
        ],
    )


def generate_invoke_tx_id(
    contract_address: int, entry_point_selector: int, calldata: List[int]
) -> str:
    """Id of invoking `entry_point_selector` of `contract_address` with `calldata`"""
    return generate_id(
        "invoke",
        [
            assert_felt(contract_address),
            assert_felt(entry_point_selector),
            *_felt_array(calldata),
        ],
    )
