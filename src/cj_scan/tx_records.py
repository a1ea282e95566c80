from dataclasses import dataclass
from typing import Optional

from bitcoin.core.script import CScript, CScriptInvalidError, OP_RETURN


@dataclass(frozen=True)
class OutputRecord:
    value: int                   # in sats
    script: bytes                # scriptPubKey
    script_type: str = 'unknown'  # template name as reported by node (witness_v0_keyhash, nulldata...)

    def is_null_data(self) -> bool:
        return is_null_data_script(self.script)


@dataclass(frozen=True)
class InputRecord:
    prev_txid: Optional[str]                 # None for coinbase input
    prev_index: Optional[int]
    prev_output: Optional[OutputRecord] = None  # Spent output (value and script), if resolved
    sequence: Optional[int] = None

    @property
    def is_coinbase(self) -> bool:
        return self.prev_txid is None


@dataclass(frozen=True)
class BlockInfo:
    height: int
    block_hash: str
    block_time: Optional[int] = None  # unix timestamp


@dataclass(frozen=True)
class TransactionRecord:
    txid: str
    block_info: Optional[BlockInfo]
    inputs: tuple
    outputs: tuple

    @property
    def is_coinbase(self) -> bool:
        return any(tx_in.is_coinbase for tx_in in self.inputs)

    @property
    def has_resolved_inputs(self) -> bool:
        return all(tx_in.prev_output is not None for tx_in in self.inputs)

    def has_null_data_output(self) -> bool:
        return any(output.is_null_data() for output in self.outputs)


def is_null_data_script(script: bytes) -> bool:
    """
    Data carrying output: OP_RETURN followed only by data pushes (no spending condition).
    """
    if len(script) == 0 or script[0] != OP_RETURN:
        return False
    try:
        return CScript(script[1:]).is_push_only()
    except CScriptInvalidError:  # truncated push data
        return False


@dataclass(frozen=True)
class VerboseBlock:
    height: int
    block_hash: str
    block_time: Optional[int]
    transactions: tuple  # TransactionRecord in block order, coinbase first
