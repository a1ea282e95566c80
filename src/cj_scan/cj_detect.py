from collections import Counter
from typing import NamedTuple

from cj_scan import cj_consts as cjc
from cj_scan.cj_structs import CJ_CATEGORY, ProtocolConstants
from cj_scan.tx_records import TransactionRecord


class OutputGroup(NamedTuple):
    value: int
    count: int


def group_outputs(outputs, include_single: bool = False) -> list:
    """
    Groups outputs by exact value. Groups are returned in order of first appearance of the value.
    :param outputs: iterable of OutputRecord
    :param include_single: if False, values present only once are omitted
    :return: list of OutputGroup(value, count)
    """
    counts = Counter(output.value for output in outputs)
    return [OutputGroup(value, count) for value, count in counts.items() if include_single or count > 1]


def most_frequent_equal_output(groups: list) -> OutputGroup:
    # max() keeps the first of equally frequent groups
    return max(groups, key=lambda group: group.count)


def almost_equal(value: int, target: int, tolerance: int) -> bool:
    return abs(value - target) <= tolerance


def is_wasabi_coinjoin(tx: TransactionRecord, block_height: int, groups: list, constants: ProtocolConstants) -> bool:
    if block_height < constants.first_wasabi_block:
        return False
    # Before, Wasabi had constant coordinator addresses and different base denominations at the beginning.
    if block_height < constants.first_wasabi_no_coord_address_block:
        return (any(output.script in constants.wasabi_coord_scripts for output in tx.outputs)
                and any(group.count > 2 for group in groups))

    most_frequent = most_frequent_equal_output(groups)
    return (most_frequent.count >= constants.wasabi_min_equal_outputs
            and len(tx.inputs) >= most_frequent.count  # More inputs than equal outputs
            and almost_equal(most_frequent.value, constants.approximate_wasabi_base_denomination,
                             constants.wasabi_base_denomination_precision))


def is_whirlpool_coinjoin(tx: TransactionRecord, block_height: int, constants: ProtocolConstants) -> bool:
    if block_height < constants.first_samourai_block:
        return False
    return (len(tx.inputs) == cjc.WHIRLPOOL_NUM_INPUTS and len(tx.outputs) == cjc.WHIRLPOOL_NUM_OUTPUTS
            and len({output.value for output in tx.outputs}) == 1  # Outputs are always equal
            and any(almost_equal(tx.outputs[0].value, pool_size, constants.whirlpool_pool_precision)
                    for pool_size in constants.whirlpool_pool_sizes))


def is_other_coinjoin(tx: TransactionRecord, groups: list, constants: ProtocolConstants) -> bool:
    # More groups of equal outputs would be likely multi-denomination coinjoin, which only Wasabi does
    if len(groups) != 1 or not tx.has_resolved_inputs:
        return False
    value, count = groups[0]
    if count != len(tx.outputs) - count:
        return False
    if len({output.script for output in tx.outputs}) < count:
        return False
    # Otherwise more participants would be single actors which makes no sense
    if len({tx_in.prev_output.script for tx_in in tx.inputs}) < count:
        return False

    # Cheap necessary condition instead of expensive subset sum:
    # no single input may be larger than equal output plus the largest change.
    max_change = max(output.value for output in tx.outputs if output.value != value)
    max_input = max(tx_in.prev_output.value for tx_in in tx.inputs)
    return max_input <= value + max_change - constants.other_coinjoin_max_input_margin


def classify_transaction(tx: TransactionRecord, block_height: int, constants: ProtocolConstants) -> CJ_CATEGORY:
    """
    Assigns coinjoin category to transaction. Checks are evaluated in order Wasabi, Whirlpool, Other
    and the first match wins.
    :param tx: transaction with resolved inputs
    :param block_height: height of block containing the transaction
    :param constants: protocol thresholds
    :return: CJ_CATEGORY
    """
    if len(tx.inputs) == 0 or tx.is_coinbase:
        return CJ_CATEGORY.NONE
    groups = group_outputs(tx.outputs)
    if len(groups) == 0:
        return CJ_CATEGORY.NONE

    if is_wasabi_coinjoin(tx, block_height, groups, constants):
        return CJ_CATEGORY.WASABI
    if is_whirlpool_coinjoin(tx, block_height, constants):
        return CJ_CATEGORY.WHIRLPOOL
    if is_other_coinjoin(tx, groups, constants):
        return CJ_CATEGORY.OTHER
    return CJ_CATEGORY.NONE
