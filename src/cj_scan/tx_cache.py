from collections import OrderedDict
from collections.abc import Mapping

from cj_scan import cj_consts as cjc
from cj_scan.tx_records import TransactionRecord


class OpReturnTxCache(Mapping):
    """
    Bounded in-memory view: cache[txid] -> TransactionRecord.
    Least recently used record is evicted when max_size is exceeded. Lookups are best effort only,
    a miss must always be resolvable from the node.
    """
    def __init__(self, max_size: int = cjc.OPRETURN_TX_CACHE_SIZE):
        self.max_size = max_size
        self._data: OrderedDict[str, TransactionRecord] = OrderedDict()

    @staticmethod
    def is_cacheable(tx: TransactionRecord) -> bool:
        # Possible tx0: more than two outputs with OP_RETURN among them
        return len(tx.outputs) > 2 and tx.has_null_data_output()

    def add(self, tx: TransactionRecord):
        self._data[tx.txid] = tx
        self._data.move_to_end(tx.txid)
        if len(self._data) > self.max_size:
            self._data.popitem(last=False)

    def get(self, txid, default=None):
        tx = self._data.get(txid)
        if tx is None:
            return default
        self._data.move_to_end(txid)
        return tx

    # ---- Mapping API --------------------------------------------------
    def __getitem__(self, txid):
        tx = self.get(txid)
        if tx is None:
            raise KeyError(txid)
        return tx

    def __iter__(self):
        return iter(self._data)

    def __len__(self):
        return len(self._data)

    def __contains__(self, txid):  # no reordering on membership test
        return txid in self._data
