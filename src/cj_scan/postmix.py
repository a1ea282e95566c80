from cj_scan.cj_structs import CJ_CATEGORY, CJ_CATEGORIES_TRACKED


def detect_postmix_txs(txs: list, categories: dict, category_sets: dict) -> dict:
    """
    Detects transactions spending output(s) of already known coinjoins.
    Transaction is postmix of a category if it is not itself coinjoin of that category and at least one
    of its inputs spends coinjoin of that category. Every transaction is reported at most once per category.
    :param txs: transactions of the current block (TransactionRecord), in block order
    :param categories: txid -> CJ_CATEGORY assigned to transactions of current block
    :param category_sets: CJ_CATEGORY -> set of all coinjoin txids known so far (including current block)
    :return: CJ_CATEGORY -> list of postmix TransactionRecord
    """
    postmix = {category: [] for category in CJ_CATEGORIES_TRACKED}
    for tx in txs:
        tx_category = categories.get(tx.txid, CJ_CATEGORY.NONE)
        spent_txids = {tx_in.prev_txid for tx_in in tx.inputs if tx_in.prev_txid is not None}
        for category in CJ_CATEGORIES_TRACKED:
            if tx_category != category and not spent_txids.isdisjoint(category_sets[category]):
                postmix[category].append(tx)
    return postmix
