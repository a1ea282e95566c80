import logging
from dataclasses import dataclass, field, fields, replace
from enum import Enum

from bitcoin.wallet import CBitcoinAddress

from cj_scan import cj_consts as cjc


class CJ_CATEGORY(Enum):
    NONE = 'NONE'            # not a coinjoin
    WASABI = 'WASABI'        # Wasabi 1.x coinjoin
    WHIRLPOOL = 'WHIRLPOOL'  # Samourai Whirlpool coinjoin
    OTHER = 'OTHER'          # Other equal output coinjoin-like transaction


# Categories which are tracked in cumulative sets and for postmix spends
CJ_CATEGORIES_TRACKED = [CJ_CATEGORY.WASABI, CJ_CATEGORY.WHIRLPOOL, CJ_CATEGORY.OTHER]


class SCAN_STATUS(Enum):
    IDLE = 'IDLE'            # scanner created, nothing loaded yet
    RUNNING = 'RUNNING'      # blocks are being processed
    COMPLETED = 'COMPLETED'  # chain tip block was reached and processing stopped there
    CAUGHT_UP = 'CAUGHT_UP'  # nothing to process, all blocks up to chain tip already persisted


class SummaryMessages:
    def __init__(self):
        self.summary_messages = []

    def print(self, message: str):
        logging.info(message)
        self.summary_messages.append(message)

    def print_summary(self):
        print(f'Total log messages: {len(self.summary_messages)}')
        for message in self.summary_messages:
            print(message)


@dataclass(frozen=True)
class ProtocolConstants:
    """
    Heuristic thresholds used by the classifier. All values are in satoshis or block heights.
    """
    first_wasabi_block: int = cjc.FIRST_WASABI_BLOCK
    first_wasabi_no_coord_address_block: int = cjc.FIRST_WASABI_NO_COORD_ADDRESS_BLOCK
    wasabi_coord_scripts: frozenset = field(default_factory=frozenset)
    approximate_wasabi_base_denomination: int = cjc.APPROXIMATE_WASABI_BASE_DENOMINATION
    wasabi_base_denomination_precision: int = cjc.WASABI_BASE_DENOMINATION_PRECISION
    wasabi_min_equal_outputs: int = cjc.WASABI_MIN_EQUAL_OUTPUTS
    first_samourai_block: int = cjc.FIRST_SAMOURAI_BLOCK
    whirlpool_pool_sizes: tuple = tuple(cjc.WHIRLPOOL_POOL_SIZES.values())
    whirlpool_pool_precision: int = cjc.WHIRLPOOL_POOL_PRECISION
    other_coinjoin_max_input_margin: int = cjc.OTHER_COINJOIN_MAX_INPUT_MARGIN

    @property
    def first_activation_block(self) -> int:
        return min(self.first_wasabi_block, self.first_samourai_block)

    def updated(self, values: dict) -> 'ProtocolConstants':
        """
        Returns copy with values overwritten from (json) dictionary. Coordinator scripts can be given
        either as 'wasabi_coord_scripts' (hex) or 'wasabi_coord_addresses' (mainnet addresses).
        :param values: dictionary with attribute names as keys
        :return: new ProtocolConstants
        """
        known = {item.name for item in fields(self)}
        changes = {}
        for key, value in values.items():
            if key == 'wasabi_coord_addresses':
                changes['wasabi_coord_scripts'] = addresses_to_scripts(value)
            elif key == 'wasabi_coord_scripts':
                changes[key] = frozenset(bytes.fromhex(script) for script in value)
            elif key == 'whirlpool_pool_sizes':
                changes[key] = tuple(int(size) for size in value)
            elif key in known:
                changes[key] = int(value)
            else:
                logging.warning(f"'{key}' is not a recognized protocol constant and will be ignored.")
        return replace(self, **changes)


def addresses_to_scripts(addresses) -> frozenset:
    return frozenset(bytes(CBitcoinAddress(address).to_scriptPubKey()) for address in addresses)


def default_protocol_constants() -> ProtocolConstants:
    return ProtocolConstants(wasabi_coord_scripts=addresses_to_scripts(cjc.WASABI_COORD_ADDRESSES))
