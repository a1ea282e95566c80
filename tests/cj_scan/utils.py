import hashlib
import os
from pathlib import Path

from cj_scan.cj_structs import ProtocolConstants
from cj_scan.tx_records import TransactionRecord, InputRecord, OutputRecord, BlockInfo, VerboseBlock

COORD_SCRIPT = bytes.fromhex('0014') + bytes(20)
OP_RETURN_SCRIPT = bytes.fromhex('6a04deadbeef')

# Synthetic protocol parameters (low heights, easy to construct blocks)
TEST_CONSTANTS = ProtocolConstants(first_wasabi_block=100,
                                   first_wasabi_no_coord_address_block=150,
                                   wasabi_coord_scripts=frozenset({COORD_SCRIPT}),
                                   approximate_wasabi_base_denomination=10000000,
                                   wasabi_base_denomination_precision=500000,
                                   wasabi_min_equal_outputs=10,
                                   first_samourai_block=120,
                                   whirlpool_pool_sizes=(1000000, 5000000),
                                   whirlpool_pool_precision=10000,
                                   other_coinjoin_max_input_margin=10000)


def txid(label: str) -> str:
    return hashlib.sha256(label.encode()).hexdigest()


def p2wpkh(label: str) -> bytes:
    return bytes.fromhex('0014') + hashlib.sha256(label.encode()).digest()[:20]


def make_output(value: int, script: bytes = None, label: str = '') -> OutputRecord:
    if script is None:
        script = p2wpkh(f'{label}_{value}')
    script_type = 'nulldata' if script[:1] == b'\x6a' else 'witness_v0_keyhash'
    return OutputRecord(value, script, script_type)


def make_input(prev_txid: str, prev_index: int = 0, value: int = 1000000, script: bytes = None) -> InputRecord:
    if script is None:
        script = p2wpkh(f'{prev_txid}_{prev_index}')
    return InputRecord(prev_txid, prev_index, OutputRecord(value, script, 'witness_v0_keyhash'), 0xFFFFFFFD)


def make_tx(label: str, inputs: list, outputs: list, height: int = None) -> TransactionRecord:
    block_info = None if height is None else BlockInfo(height, txid(f'block_{height}'), 1600000000 + height * 600)
    return TransactionRecord(txid(label), block_info, tuple(inputs), tuple(outputs))


def make_coinbase(height: int) -> TransactionRecord:
    return make_tx(f'coinbase_{height}', [InputRecord(None, None, None, 0xFFFFFFFF)],
                   [make_output(625000000, label=f'miner_{height}')], height)


def with_height(tx: TransactionRecord, height: int) -> TransactionRecord:
    return TransactionRecord(tx.txid, BlockInfo(height, txid(f'block_{height}'), 1600000000 + height * 600),
                             tx.inputs, tx.outputs)


def wasabi_tx(label: str, num_inputs: int = 12, num_equal: int = 10, value: int = 10050000, height: int = None):
    inputs = [make_input(txid(f'{label}_funding_{i}'), i % 2, 12000000) for i in range(num_inputs)]
    outputs = [make_output(value, label=f'{label}_mix_{i}') for i in range(num_equal)]
    outputs.append(make_output(3000000, label=f'{label}_change'))
    return make_tx(label, inputs, outputs, height)


def whirlpool_tx(label: str, inputs: list = None, value: int = 1000170, height: int = None):
    if inputs is None:
        inputs = [make_input(txid(f'{label}_premix_{i}'), 0, value + 2000) for i in range(5)]
    outputs = [make_output(value, label=f'{label}_mix_{i}') for i in range(5)]
    return make_tx(label, inputs, outputs, height)


def other_tx(label: str, height: int = None):
    inputs = [make_input(txid(f'{label}_funding_{i}'), 0, 1100000) for i in range(3)]
    outputs = [make_output(1000000, label=f'{label}_eq_{i}') for i in range(3)]
    outputs.extend(make_output(value, label=f'{label}_change') for value in (120000, 110000, 100000))
    return make_tx(label, inputs, outputs, height)


def tx0_tx(label: str, num_premix: int = 3, height: int = None):
    inputs = [make_input(txid(f'{label}_deposit'), 1, 5000000)]
    outputs = [make_output(0, OP_RETURN_SCRIPT)]
    outputs.extend(make_output(1000170 + 2000, label=f'{label}_premix_{i}') for i in range(num_premix))
    outputs.append(make_output(42000, label=f'{label}_fee'))
    return make_tx(label, inputs, outputs, height)


def deposit_tx(tx0_label: str):
    """Transaction funding tx0_tx(tx0_label), its output 1 is spent by the tx0."""
    label = f'{tx0_label}_deposit'
    outputs = [make_output(700000, label=f'{label}_other'), make_output(5000000, p2wpkh(f'{txid(label)}_1'))]
    return make_tx(label, [make_input(txid(f'{label}_parent'), 0, 5800000)], outputs)


def spend(tx: TransactionRecord, index: int) -> InputRecord:
    return InputRecord(tx.txid, index, tx.outputs[index], 0xFFFFFFFD)


def unresolved(tx: TransactionRecord) -> TransactionRecord:
    """Transaction as returned by getrawtransaction (no prevout information)."""
    inputs = tuple(InputRecord(tx_in.prev_txid, tx_in.prev_index, None, tx_in.sequence) for tx_in in tx.inputs)
    return TransactionRecord(tx.txid, tx.block_info, inputs, tx.outputs)


class FakeRpc:
    """
    In-memory node. Blocks are stored by height, transactions outside of scanned blocks can be added by add_tx().
    """
    def __init__(self):
        self.blocks = {}
        self.txs = {}
        self.tip_sequence = []  # If not empty, get_block_count() returns these values first
        self.fail_at_height = None
        self.calls = {}

    def _count(self, method):
        self.calls[method] = self.calls.get(method, 0) + 1

    def add_tx(self, tx: TransactionRecord):
        self.txs[tx.txid] = tx

    def add_block(self, height: int, txs: list) -> VerboseBlock:
        txs = [make_coinbase(height)] + [with_height(tx, height) for tx in txs]
        for tx in txs:
            self.add_tx(tx)
        block = VerboseBlock(height, txid(f'block_{height}'), 1600000000 + height * 600, tuple(txs))
        self.blocks[height] = block
        return block

    def get_block_count(self) -> int:
        self._count('get_block_count')
        if self.tip_sequence:
            return self.tip_sequence.pop(0)
        return max(self.blocks)

    def get_verbose_block(self, height: int) -> VerboseBlock:
        self._count('get_verbose_block')
        if height == self.fail_at_height:
            from helpers.rpc_commands import RpcError
            raise RpcError(f'getblock {height} failed')
        return self.blocks[height]

    def get_transaction_with_block_info(self, tx_id: str) -> TransactionRecord:
        self._count('get_transaction_with_block_info')
        return unresolved(self.txs[tx_id])

    def get_transaction(self, tx_id: str) -> TransactionRecord:
        self._count('get_transaction')
        if tx_id not in self.txs:
            from helpers.rpc_commands import RpcError
            raise RpcError(f'No such mempool or blockchain transaction {tx_id}')
        tx = self.txs[tx_id]
        return TransactionRecord(tx.txid, None, unresolved(tx).inputs, tx.outputs)


def read_work_folder(work_folder: str | Path) -> dict:
    files = {}
    for file_name in sorted(os.listdir(work_folder)):
        with open(os.path.join(work_folder, file_name), 'r') as file:
            files[file_name] = file.read()
    return files


def run_scanner(env_vars, target_path, config_file=None, rescan=False, must_succeed=True):
    from cj_scan.run_scanner import main as run_scanner_main
    arguments = []
    if rescan:
        arguments.append("--rescan")
    if config_file:
        arguments.extend(["--load-config", f"{config_file}"])
    if env_vars:
        arguments.extend(["--env_vars", f"{env_vars}"])
    if target_path:
        arguments.extend(["--target-path", f"{target_path}"])

    print(f"Running arguments: {arguments}")
    returncode = run_scanner_main(arguments)
    if must_succeed:
        assert returncode == 0, f"cj_scan/run_scanner.py {arguments} failed"
    return returncode
