"""Module for configuration of a script run specified by user"""

import argparse
import os
import sys
from dataclasses import dataclass
from typing import List

from . import __version__
from .constants import (
    CHAIN_ID_TO_NETWORK_NAME,
    DEFAULT_MAX_FEE,
    DEFAULT_RPC_URL,
    DEFAULT_TARGET_DIR,
    DEFAULT_WAIT_RETRY_INTERVAL,
    DEFAULT_WAIT_TIMEOUT,
    STATE_FILE_SUFFIX,
)

DEFAULT_ACCOUNTS_FILE = "~/.starknet_accounts/starknet_open_zeppelin_accounts.json"


@dataclass(frozen=True)
class WaitParams:
    """How long and how often to poll a sent transaction"""

    timeout: int = DEFAULT_WAIT_TIMEOUT
    retry_interval: int = DEFAULT_WAIT_RETRY_INTERVAL


def network_name(chain_id: int) -> str:
    """Name of the network identified by `chain_id`; hex chain id for unknown ones"""
    return CHAIN_ID_TO_NETWORK_NAME.get(chain_id, hex(chain_id))


def default_state_file_path(script_dir: str, script_name: str, chain_id: int) -> str:
    """State file of `script_name` run against the network of `chain_id`"""
    file_name = f"{script_name}_{network_name(chain_id)}{STATE_FILE_SUFFIX}"
    return os.path.join(script_dir, file_name)


class NonNegativeAction(argparse.Action):
    """
    Action for parsing the non negative int argument.
    """

    def __call__(self, parser, namespace, values, option_string=None):
        error_msg = f"{option_string} must be a non-negative integer; got: {values}."
        try:
            value = int(values, 0)
        except ValueError:
            parser.error(error_msg)

        if value < 0:
            parser.error(error_msg)

        setattr(namespace, self.dest, value)


class PositiveAction(argparse.Action):
    """
    Action for parsing positive int argument;
    """

    def __call__(self, parser, namespace, values, option_string=None):
        error_msg = f"argument {option_string} must be a positive integer; got: {values}."
        try:
            value = int(values)
        except ValueError:
            parser.error(error_msg)

        if value <= 0:
            parser.error(error_msg)

        setattr(namespace, self.dest, value)


def _parse_sierra_compiler_path(compiler_path: str):
    if not (os.path.isfile(compiler_path) and os.access(compiler_path, os.X_OK)):
        sys.exit("Error: The argument of --sierra-compiler-path must be an executable")
    return compiler_path


def parse_args(raw_args: List[str]):
    """
    Parses CLI arguments of a script run.
    """
    parser = argparse.ArgumentParser(description="Execute a deployment script")
    parser.add_argument(
        "-v",
        "--version",
        help="Print the version",
        action="version",
        version=__version__,
    )
    parser.add_argument(
        "script_name",
        help="Module name that contains the `main` function, which will be executed",
    )
    parser.add_argument(
        "--package", help="Specify the scarb package to be used; defaults to the script name"
    )
    parser.add_argument(
        "--project-dir",
        help="Specify the directory of the scarb project; defaults to the current directory",
        default=os.getcwd(),
    )
    parser.add_argument(
        "--target-dir",
        help=f"Specify the scarb target directory; defaults to <project-dir>/{DEFAULT_TARGET_DIR}",
    )
    parser.add_argument(
        "--no-state-file",
        action="store_true",
        help="Do not use the state file; every transaction of the script is sent",
    )
    parser.add_argument(
        "--url",
        "-u",
        help=f"Specify the RPC url of the node; defaults to {DEFAULT_RPC_URL}",
        default=DEFAULT_RPC_URL,
    )
    parser.add_argument(
        "--account",
        "-a",
        help="Specify the name of the account used to send transactions",
        default="",
    )
    parser.add_argument(
        "--accounts-file",
        "-f",
        help=f"Specify the path to the accounts file; defaults to {DEFAULT_ACCOUNTS_FILE}",
        default=DEFAULT_ACCOUNTS_FILE,
    )
    parser.add_argument(
        "--max-fee",
        action=NonNegativeAction,
        default=DEFAULT_MAX_FEE,
        help="Specify the max fee used if the script does not set one; "
        f"defaults to {DEFAULT_MAX_FEE:g}",
    )
    parser.add_argument(
        "--wait-timeout",
        action=PositiveAction,
        default=DEFAULT_WAIT_TIMEOUT,
        help="Specify the number of seconds to wait for a transaction to be accepted; "
        f"defaults to {DEFAULT_WAIT_TIMEOUT}",
    )
    parser.add_argument(
        "--wait-retry-interval",
        action=PositiveAction,
        default=DEFAULT_WAIT_RETRY_INTERVAL,
        help="Specify the number of seconds between transaction status queries; "
        f"defaults to {DEFAULT_WAIT_RETRY_INTERVAL}",
    )
    parser.add_argument(
        "--sierra-compiler-path",
        type=_parse_sierra_compiler_path,
        help="Specify the path to the binary executable of starknet-sierra-compile "
        "used when a contract has no casm artifact",
    )

    parsed_args = parser.parse_args(raw_args)
    if parsed_args.wait_retry_interval > parsed_args.wait_timeout:
        sys.exit("Error: --wait-retry-interval cannot be greater than --wait-timeout")

    return parsed_args


# pylint: disable=too-few-public-methods
# pylint: disable=too-many-instance-attributes
class ScriptConfig:
    """Class holding configuration specified by user"""

    def __init__(self, args: argparse.Namespace):
        self.script_name = args.script_name
        self.package = args.package or args.script_name
        self.project_dir = os.path.abspath(args.project_dir)
        self.target_dir = os.path.abspath(
            args.target_dir or os.path.join(self.project_dir, DEFAULT_TARGET_DIR)
        )
        self.use_state_file = not args.no_state_file
        self.url = args.url
        self.account = args.account
        self.accounts_file = args.accounts_file
        self.max_fee = args.max_fee
        self.wait_params = WaitParams(
            timeout=args.wait_timeout, retry_interval=args.wait_retry_interval
        )
        self.sierra_compiler_path = args.sierra_compiler_path
