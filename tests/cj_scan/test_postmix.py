import utils
from utils import make_tx, make_input, make_output, spend, txid
from cj_scan.cj_structs import CJ_CATEGORY
from cj_scan.postmix import detect_postmix_txs


def empty_sets():
    return {CJ_CATEGORY.WASABI: set(), CJ_CATEGORY.WHIRLPOOL: set(), CJ_CATEGORY.OTHER: set()}


def test_postmix_of_known_coinjoin():
    cjtx = utils.wasabi_tx('ww1')
    postmix_tx = make_tx('postmix', [spend(cjtx, 0), make_input(txid('unrelated'))], [make_output(9000000, label='pm')])
    unrelated_tx = make_tx('unrelated_spend', [make_input(txid('x'))], [make_output(1000, label='u')])
    sets = empty_sets()
    sets[CJ_CATEGORY.WASABI].add(cjtx.txid)

    postmix = detect_postmix_txs([postmix_tx, unrelated_tx], {}, sets)
    assert postmix[CJ_CATEGORY.WASABI] == [postmix_tx]
    assert postmix[CJ_CATEGORY.WHIRLPOOL] == []
    assert postmix[CJ_CATEGORY.OTHER] == []


def test_postmix_reported_once():
    cjtx = utils.wasabi_tx('ww1')
    postmix_tx = make_tx('consolidation', [spend(cjtx, i) for i in range(5)], [make_output(50000000, label='c')])
    sets = empty_sets()
    sets[CJ_CATEGORY.WASABI].add(cjtx.txid)
    postmix = detect_postmix_txs([postmix_tx], {}, sets)
    assert postmix[CJ_CATEGORY.WASABI] == [postmix_tx]


def test_remix_is_not_postmix_of_same_category():
    cjtx = utils.whirlpool_tx('sw1')
    remix = utils.whirlpool_tx('sw2', inputs=[spend(cjtx, 0)] + [make_input(txid(f'premix_{i}'), 0, 1002170) for i in range(4)])
    sets = empty_sets()
    sets[CJ_CATEGORY.WHIRLPOOL].update({cjtx.txid, remix.txid})
    postmix = detect_postmix_txs([remix], {remix.txid: CJ_CATEGORY.WHIRLPOOL}, sets)
    assert postmix[CJ_CATEGORY.WHIRLPOOL] == []


def test_postmix_of_multiple_categories():
    wasabi_cj = utils.wasabi_tx('ww1')
    whirlpool_cj = utils.whirlpool_tx('sw1')
    # Coinjoin of other category spending Wasabi output is Wasabi postmix
    other_cj = make_tx('other', [spend(wasabi_cj, 1), spend(whirlpool_cj, 2)], [make_output(1, label='o')])
    sets = empty_sets()
    sets[CJ_CATEGORY.WASABI].add(wasabi_cj.txid)
    sets[CJ_CATEGORY.WHIRLPOOL].add(whirlpool_cj.txid)
    sets[CJ_CATEGORY.OTHER].add(other_cj.txid)

    postmix = detect_postmix_txs([other_cj], {other_cj.txid: CJ_CATEGORY.OTHER}, sets)
    assert postmix[CJ_CATEGORY.WASABI] == [other_cj]
    assert postmix[CJ_CATEGORY.WHIRLPOOL] == [other_cj]
    assert postmix[CJ_CATEGORY.OTHER] == []


def test_coinbase_is_never_postmix():
    sets = empty_sets()
    postmix = detect_postmix_txs([utils.make_coinbase(5)], {}, sets)
    assert all(len(txs) == 0 for txs in postmix.values())
