"""
Execution of deployment scripts.
"""

import asyncio
import json
import logging
import sys
from typing import Callable, Dict, List, Optional, Tuple

from starkware.cairo.lang.compiler.preprocessor.flow import (
    FlowTrackingDataActual,
    RegTrackingData,
)
from starkware.cairo.lang.compiler.program import CairoHint
from starkware.cairo.lang.vm.relocatable import RelocatableValue

from .account import Account
from .artifacts import ContractArtifacts, inject_lib_artifact, load_package_artifacts
from .chain_client import ChainClient, RpcChainClient
from .compiler import select_compiler
from .config import (
    ScriptConfig,
    WaitParams,
    default_state_file_path,
    network_name,
    parse_args,
)
from .constants import (
    DEFAULT_MAX_FEE,
    RET_INSTRUCTION,
    SCRIPT_LIB_ARTIFACT_NAME,
    SCRIPT_MAIN_FUNCTION,
)
from .extension import CastScriptExtension, ExtendedRuntime, ScriptRuntime
from .handlers import CheatcodeHandlers
from .interpreter import EntryCodeConfig, Hint, InterpreterError, ScriptProgram
from .responses import ScriptRunResponse
from .serde import build_readable_text
from .state_file import NullTransactionStore, TransactionStore, state_manager_from
from .util import EntryPointNotFoundError, StarknetDevtoolsException, warn

logger = logging.getLogger(__name__)

ProgramLoader = Callable[[str], ScriptProgram]


# pylint: disable=too-many-instance-attributes
class ScriptExecutionContext:
    """
    Everything the cheatcode handlers of a single script run need.
    Owns the event loop chain requests are driven on; close it when the run ends.
    """

    # pylint: disable=too-many-arguments
    def __init__(
        self,
        client: ChainClient,
        artifacts: Dict[str, ContractArtifacts],
        store: Optional[TransactionStore] = None,
        account: Optional[Account] = None,
        wait_params: WaitParams = WaitParams(),
        max_fee: int = DEFAULT_MAX_FEE,
    ):
        self.client = client
        self.artifacts = dict(artifacts)
        self.store = store or NullTransactionStore()
        self.account = account
        self.wait_params = wait_params
        self.max_fee = max_fee
        self.__loop = asyncio.new_event_loop()

    def block_on(self, coroutine):
        """
        Runs the coroutine to completion and returns its result.
        Blocks the whole script run; must not be called from within a coroutine it runs.
        """
        return self.__loop.run_until_complete(coroutine)

    def close(self):
        """Closes the event loop"""
        self.__loop.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


def create_code_footer() -> List[int]:
    """Code placed after the program: a single `ret`"""
    return [RET_INSTRUCTION]


def hints_to_params(
    hints: List[Tuple[int, List[Hint]]]
) -> Tuple[Dict[int, List[CairoHint]], Dict[str, Hint]]:
    """
    Builds the hint table of the interpreter: hint params keyed by pc offset and hints
    keyed by the string they are registered under.
    """
    hints_dict: Dict[int, List[CairoHint]] = {}
    string_to_hint: Dict[str, Hint] = {}

    for offset, offset_hints in hints:
        for hint in offset_hints:
            string_to_hint[hint.representing_string()] = hint
        hints_dict[offset] = [
            CairoHint(
                code=hint.representing_string(),
                accessible_scopes=[],
                flow_tracking_data=FlowTrackingDataActual(
                    ap_tracking=RegTrackingData(group=0, offset=0),
                    reference_ids={},
                ),
            )
            for hint in offset_hints
        ]

    return hints_dict, string_to_hint


def syscall_handler_offset(builtins_len: int, has_segment_arena: bool) -> int:
    """Index of the memory segment the runner creates for syscalls"""
    # program and execution segments come first, then builtins
    offset = 2 + builtins_len
    if has_segment_arena:
        # the segment arena needs three segments of its own
        offset += 3
    return offset


def run(
    module_name: str, program: ScriptProgram, context: ScriptExecutionContext
) -> ScriptRunResponse:
    """
    Runs `<module_name>::main` of the script program once.
    A panic of the script is a regular response; a fault of the interpreter is raised.
    """
    name_suffix = f"{module_name}::{SCRIPT_MAIN_FUNCTION}"
    function = program.find_function(name_suffix)
    if function is None:
        raise EntryPointNotFoundError(name_suffix)

    wrapper_info = program.create_wrapper_info(function, EntryCodeConfig.for_testing())
    assembled_program = program.assemble(wrapper_info.header, create_code_footer())
    hints_dict, string_to_hint = hints_to_params(assembled_program.hints)

    segment_index = syscall_handler_offset(
        len(wrapper_info.builtins), function.has_segment_arena()
    )
    runtime = ExtendedRuntime(
        extension=CastScriptExtension(CheatcodeHandlers(context)),
        extended_runtime=ScriptRuntime(
            syscall_ptr=RelocatableValue(segment_index=segment_index, offset=0),
            string_to_hint=string_to_hint,
        ),
    )

    logger.info("Running %s", name_suffix)
    result = program.run_function(
        function,
        runtime,
        hints_dict,
        assembled_program.bytecode,
        wrapper_info.builtins,
    )

    message = build_readable_text(result.values)
    if result.panicked:
        logger.info("Script %s panicked", name_suffix)
        return ScriptRunResponse(status=ScriptRunResponse.PANICKED, message=message)
    return ScriptRunResponse(status=ScriptRunResponse.SUCCESS, message=message)


def run_script(
    config: ScriptConfig,
    program_loader: ProgramLoader,
    client: Optional[ChainClient] = None,
    account: Optional[Account] = None,
) -> ScriptRunResponse:
    """
    Loads the artifacts of the script package and runs the script against the chain.
    `program_loader` builds the program from the sierra of the script package.
    """
    client = client or RpcChainClient(config.url)
    artifacts = load_package_artifacts(
        config.target_dir, config.package, select_compiler(config)
    )
    artifacts = inject_lib_artifact(artifacts, config.target_dir, config.package)

    with ScriptExecutionContext(
        client=client,
        artifacts=artifacts,
        account=account,
        wait_params=config.wait_params,
        max_fee=config.max_fee,
    ) as context:
        chain_id = None
        if config.use_state_file or (account is None and config.account):
            chain_id = context.block_on(client.get_chain_id())

        if config.use_state_file:
            context.store = state_manager_from(
                default_state_file_path(config.project_dir, config.script_name, chain_id)
            )
        else:
            warn(
                "Running without a state file: transactions which already succeeded "
                "will be sent again"
            )

        if account is None and config.account:
            context.account = Account.from_accounts_file(
                config.accounts_file, config.account, network_name(chain_id)
            )

        program = program_loader(artifacts[SCRIPT_LIB_ARTIFACT_NAME].sierra)
        return run(config.script_name, program, context)


def main(program_loader: ProgramLoader, raw_args: Optional[List[str]] = None):
    """Runs the script given on the command line and prints the response"""
    logging.basicConfig(level=logging.WARNING)
    config = ScriptConfig(parse_args(sys.argv[1:] if raw_args is None else raw_args))

    try:
        response = run_script(config, program_loader)
    except StarknetDevtoolsException as error:
        sys.exit(f"Error: {error.message}")
    except InterpreterError:
        logger.error("Got an unexpected exception from the interpreter.", exc_info=True)
        raise

    print(json.dumps(response.dump(), indent=2))
    if response.status == ScriptRunResponse.PANICKED:
        sys.exit(1)
