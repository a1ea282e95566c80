import logging

from cj_scan.tx_cache import OpReturnTxCache
from cj_scan.tx_records import TransactionRecord, InputRecord


def resolve_input_prevouts(tx: TransactionRecord, rpc) -> TransactionRecord:
    """
    Returns copy of transaction with all spent outputs resolved (one node request per input).
    :param tx: transaction with input outpoints
    :param rpc: node connection (BitcoinRpc)
    :return: TransactionRecord with resolved InputRecord.prev_output
    """
    inputs = []
    for tx_in in tx.inputs:
        prev_tx = rpc.get_transaction(tx_in.prev_txid)
        if tx_in.prev_index >= len(prev_tx.outputs):
            raise LookupError(f'Output {tx_in.prev_txid}:{tx_in.prev_index} spent by {tx.txid} does not exist')
        inputs.append(InputRecord(tx_in.prev_txid, tx_in.prev_index, prev_tx.outputs[tx_in.prev_index], tx_in.sequence))
    return TransactionRecord(tx.txid, tx.block_info, tuple(inputs), tx.outputs)


def find_tx0_candidates(whirlpool_txs: list, whirlpool_txids: set, tx0_txids: set) -> list:
    candidates = {}  # dict keeps insertion order
    for tx in whirlpool_txs:
        for tx_in in tx.inputs:
            txid = tx_in.prev_txid
            if txid not in whirlpool_txids and txid not in tx0_txids:
                candidates[txid] = None
    return list(candidates)


def resolve_whirlpool_tx0s(whirlpool_txs: list, whirlpool_txids: set, tx0_txids: set,
                           cache: OpReturnTxCache, rpc) -> list:
    """
    Finds premix (tx0) transactions funding Whirlpool coinjoins of the current block.
    Input of coinjoin not coming from other Whirlpool coinjoin (remix) or already known tx0 is candidate.
    Candidate is tx0 if it contains OP_RETURN output. Newly found tx0 txids are added into tx0_txids.
    :param whirlpool_txs: Whirlpool coinjoins of current block
    :param whirlpool_txids: all known Whirlpool coinjoin txids
    :param tx0_txids: all known tx0 txids, updated in place
    :param cache: cache of recently seen OP_RETURN transactions
    :param rpc: node connection (BitcoinRpc)
    :return: list of new tx0 TransactionRecord with resolved inputs
    """
    tx0s = []
    for txid in find_tx0_candidates(whirlpool_txs, whirlpool_txids, tx0_txids):
        tx0_candidate = cache.get(txid)
        if tx0_candidate is None:
            tx0_candidate = rpc.get_transaction_with_block_info(txid)
        else:
            logging.debug(f'tx0 candidate {txid} found in cache')

        # Coinbase may carry OP_RETURN witness commitment, but never funds a mix
        if tx0_candidate.is_coinbase or not tx0_candidate.has_null_data_output():
            continue
        if not tx0_candidate.has_resolved_inputs:
            tx0_candidate = resolve_input_prevouts(tx0_candidate, rpc)

        tx0_txids.add(txid)
        tx0s.append(tx0_candidate)

    return tx0s
