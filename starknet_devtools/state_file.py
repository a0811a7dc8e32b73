"""
Stores outcomes of successful script transactions.
"""

import json
import logging
import os
import tempfile
import time
from typing import Optional

from .constants import STATE_FILE_VERSION
from .responses import ScriptResponse, load_response
from .util import StateFileError

logger = logging.getLogger(__name__)

SUCCESS_STATUS = "success"


class TransactionStore:
    """
    Stores outcomes of script transactions under their deterministic ids.
    Only successful outcomes are ever recorded, so failed transactions are retried
    when the script is run again.
    """

    def lookup(self, tx_id: str) -> Optional[ScriptResponse]:
        """Returns the recorded successful outcome of `tx_id` or None"""
        entry = self._storage_read(tx_id)
        if entry is None or entry.get("status") != SUCCESS_STATUS:
            return None

        try:
            return load_response(entry.get("output"))
        except ValueError as error:
            raise StateFileError(
                f"Invalid output of transaction {tx_id} in state file: {error}"
            ) from error

    def record(self, tx_id: str, selector: str, response: ScriptResponse):
        """
        Records the successful outcome of `tx_id` and makes it durable before returning.
        Entries of other statuses are overwritten. Recording a success twice is a logic
        error; callers look it up first.
        """
        existing = self._storage_read(tx_id)
        assert (
            existing is None or existing.get("status") != SUCCESS_STATUS
        ), f"Transaction {tx_id} is already recorded in the state file"

        self._storage_write(
            tx_id,
            {
                "name": selector,
                "output": response.to_document(),
                "status": SUCCESS_STATUS,
                "timestamp": int(time.time()),
            },
        )

    def _storage_read(self, tx_id: str) -> Optional[dict]:
        raise NotImplementedError

    def _storage_write(self, tx_id: str, entry: dict):
        raise NotImplementedError


class NullTransactionStore(TransactionStore):
    """
    Used when no state file is requested: nothing is ever found and records are dropped,
    so every run executes all of its transactions.
    """

    def _storage_read(self, tx_id: str) -> Optional[dict]:
        return None

    def _storage_write(self, tx_id: str, entry: dict):
        pass


class FileTransactionStore(TransactionStore):
    """
    Stores transaction outcomes in a JSON state file.
    Every record re-reads the document and merges into it, so fields written by
    other versions of the tool survive.
    Not safe for concurrent use of the same path.
    """

    def __init__(self, path: str):
        super().__init__()
        self.path = os.path.abspath(path)
        self.__document = self.__load()

    def __load(self) -> dict:
        if not os.path.exists(self.path):
            logger.info("Creating state file %s", self.path)
            document = {"version": STATE_FILE_VERSION, "transactions": {}}
            self.__flush(document)
            return document

        try:
            with open(self.path, mode="r", encoding="utf-8") as state_file:
                document = json.load(state_file)
        except json.JSONDecodeError as error:
            raise StateFileError(
                f"State file {self.path} is not a valid JSON file: {error}"
            ) from error
        except OSError as error:
            raise StateFileError(
                f"Cannot read state file {self.path}: {error}"
            ) from error

        if not isinstance(document, dict):
            raise StateFileError(f"State file {self.path} must contain a JSON object")
        document.setdefault("version", STATE_FILE_VERSION)
        transactions = document.setdefault("transactions", {})
        if not isinstance(transactions, dict) or not all(
            isinstance(entry, dict) for entry in transactions.values()
        ):
            raise StateFileError(
                f"State file {self.path} has an invalid `transactions` section"
            )

        logger.debug(
            "Loaded %d transaction(s) from state file %s", len(transactions), self.path
        )
        return document

    def __flush(self, document: dict):
        directory = os.path.dirname(self.path)
        try:
            file_descriptor, tmp_path = tempfile.mkstemp(
                dir=directory, prefix=".state-", suffix=".json"
            )
            try:
                with os.fdopen(file_descriptor, mode="w", encoding="utf-8") as tmp_file:
                    json.dump(document, tmp_file, indent=2)
                    tmp_file.flush()
                    os.fsync(tmp_file.fileno())
                os.replace(tmp_path, self.path)
            except BaseException:
                os.unlink(tmp_path)
                raise
        except OSError as error:
            raise StateFileError(
                f"Cannot write state file {self.path}: {error}"
            ) from error

    def _storage_read(self, tx_id: str) -> Optional[dict]:
        return self.__document["transactions"].get(tx_id)

    def _storage_write(self, tx_id: str, entry: dict):
        # merge into the current file content rather than overwrite it
        document = self.__load()
        document["transactions"][tx_id] = entry
        self.__flush(document)
        self.__document = document
        logger.debug("Recorded %s transaction %s", entry["name"], tx_id)


def state_manager_from(path: Optional[str]) -> TransactionStore:
    """Returns a store backed by the file at `path`, or one which records nothing"""
    if path is None:
        return NullTransactionStore()
    return FileTransactionStore(path)
