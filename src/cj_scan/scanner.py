import logging
import os
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path

from tqdm import tqdm

from cj_scan import cj_consts as cjc
from cj_scan.cj_detect import classify_transaction
from cj_scan.cj_structs import CJ_CATEGORY, CJ_CATEGORIES_TRACKED, SCAN_STATUS, ProtocolConstants, SummaryMessages
from cj_scan.dumplings_format import DumplingsFormatError, load_records_from_file, append_records_to_file
from cj_scan.postmix import detect_postmix_txs
from cj_scan.tx0 import resolve_whirlpool_tx0s
from cj_scan.tx_cache import OpReturnTxCache
from cj_scan.tx_records import VerboseBlock

COINJOIN_FILES = {CJ_CATEGORY.WASABI: cjc.WASABI_COINJOINS_FILE,
                  CJ_CATEGORY.WHIRLPOOL: cjc.SAMOURAI_COINJOINS_FILE,
                  CJ_CATEGORY.OTHER: cjc.OTHER_COINJOINS_FILE}
POSTMIX_FILES = {CJ_CATEGORY.WASABI: cjc.WASABI_POSTMIX_FILE,
                 CJ_CATEGORY.WHIRLPOOL: cjc.SAMOURAI_POSTMIX_FILE,
                 CJ_CATEGORY.OTHER: cjc.OTHER_POSTMIX_FILE}


class ScanStateError(Exception):
    pass


@dataclass
class ScanState:
    next_height: int
    wasabi_txids: set = field(default_factory=set)
    whirlpool_txids: set = field(default_factory=set)
    other_txids: set = field(default_factory=set)
    tx0_txids: set = field(default_factory=set)

    def category_sets(self) -> dict:
        return {CJ_CATEGORY.WASABI: self.wasabi_txids,
                CJ_CATEGORY.WHIRLPOOL: self.whirlpool_txids,
                CJ_CATEGORY.OTHER: self.other_txids}

    def rollback(self, result: 'BlockScanResult'):
        """
        Removes txids added while processing block which is not going to be persisted.
        """
        for category, txs in result.coinjoins.items():
            self.category_sets()[category].difference_update(tx.txid for tx in txs)
        self.tx0_txids.difference_update(tx.txid for tx in result.tx0s)


@dataclass
class BlockScanResult:
    height: int
    coinjoins: dict = field(default_factory=lambda: {category: [] for category in CJ_CATEGORIES_TRACKED})
    postmix: dict = field(default_factory=lambda: {category: [] for category in CJ_CATEGORIES_TRACKED})
    tx0s: list = field(default_factory=list)

    def counts(self) -> dict:
        counts = {f'{category.name}_coinjoins': len(txs) for category, txs in self.coinjoins.items()}
        counts.update({f'{category.name}_postmix': len(txs) for category, txs in self.postmix.items()})
        counts['WHIRLPOOL_tx0s'] = len(self.tx0s)
        return counts


def _find_line_start(file, line_end: int) -> int:
    pos = line_end
    while pos > 0:
        read_size = min(4096, pos)
        file.seek(pos - read_size)
        idx = file.read(read_size).rfind(b'\n')
        if idx >= 0:
            return pos - read_size + idx + 1
        pos -= read_size
    return 0


def _record_height(line: bytes):
    parts = line.decode('utf-8', errors='replace').split(cjc.VerboseTransactionInfoLineSeparator, 3)
    if len(parts) < 3 or not parts[2].strip().isdigit():
        return None
    return int(parts[2])


def truncate_records_above(target_file: str | Path, max_height: int | None) -> int:
    """
    Removes trailing records left by interrupted run: incomplete last line and (if max_height is given)
    all trailing records from blocks above max_height.
    :param target_file: Dumplings file
    :param max_height: last block height which was fully persisted, None for files not ordered by block height
    :return: number of removed lines
    """
    if not os.path.exists(target_file):
        return 0
    removed = 0
    with open(target_file, 'rb+') as file:
        end = file.seek(0, os.SEEK_END)
        if end == 0:
            return 0
        file.seek(end - 1)
        if file.read(1) != b'\n':
            end = _find_line_start(file, end)
            removed += 1
        while max_height is not None and end > 0:
            start = _find_line_start(file, end - 1)
            file.seek(start)
            height = _record_height(file.read(end - start))
            if height is None or height <= max_height:
                break
            end = start
            removed += 1
        file.truncate(end)
    return removed


class ProgressLog:
    """
    Logs progress with estimated remaining time whenever at least 0.1 % more blocks were processed.
    """
    def __init__(self, total_blocks: int):
        self.total_blocks = total_blocks
        self.previous_percentage = -1
        self.processed_at_start = 0
        self.start_time = time.time()

    def update(self, processed: int, height: int, best_height: int):
        if self.total_blocks <= 0:
            return
        percentage = processed * 100 / self.total_blocks
        if percentage - self.previous_percentage < 0.1 or processed == self.processed_at_start:
            return
        seconds_per_block = (time.time() - self.start_time) / (processed - self.processed_at_start)
        hours_left = seconds_per_block * max(best_height - height, 0) / 3600
        logging.info(f'Progress: {percentage:.1f}%, Current height: {height}, '
                     f'Estimated time left: {hours_left:.1f} hours.')
        self.previous_percentage = percentage
        self.processed_at_start = processed
        self.start_time = time.time()


class Scanner:
    """
    Resumable block by block scan for coinjoins, their postmix spends and Whirlpool tx0s.
    Results of each block are appended to work folder files, last persisted height is the checkpoint.
    """
    def __init__(self, rpc, constants: ProtocolConstants, work_folder: str | Path = cjc.WORK_FOLDER,
                 cache_size: int = cjc.OPRETURN_TX_CACHE_SIZE, show_progress: bool = True):
        self.rpc = rpc
        self.constants = constants
        self.work_folder = Path(work_folder)
        self.cache = OpReturnTxCache(cache_size)
        self.show_progress = show_progress
        self.status = SCAN_STATUS.IDLE
        self.state = None
        self.summary = SummaryMessages()

    def path(self, file_name: str) -> Path:
        return self.work_folder / file_name

    def prepare_work_folder(self, rescan: bool):
        if rescan:
            logging.warning('Rescanning...')
            if self.work_folder.exists():
                shutil.rmtree(self.work_folder)
        os.makedirs(self.work_folder, exist_ok=True)

    def load_state(self) -> ScanState:
        start_height = self.constants.first_activation_block
        last_height = start_height - 1
        height_file = self.path(cjc.LAST_PROCESSED_BLOCK_HEIGHT_FILE)
        resumed = height_file.exists()
        if resumed:
            try:
                last_height = int(height_file.read_text().strip())
            except ValueError as e:
                raise ScanStateError(f'Invalid content of {height_file}: {e}') from e

        total_removed = 0
        for file_name in list(COINJOIN_FILES.values()) + list(POSTMIX_FILES.values()):
            removed = truncate_records_above(self.path(file_name), last_height)
            if removed > 0:
                logging.warning(f'{file_name}: {removed} records of unfinished block(s) above {last_height} removed')
            total_removed += removed
        if not resumed and total_removed > 0:
            logging.warning(f'{height_file} not found, {total_removed} records stored without checkpoint removed')
        if truncate_records_above(self.path(cjc.SAMOURAI_TX0S_FILE), None) > 0:
            logging.warning(f'{cjc.SAMOURAI_TX0S_FILE}: incomplete last record removed')

        state = ScanState(last_height + 1)
        try:
            for category, txids in state.category_sets().items():
                txids.update(tx.txid for tx in load_records_from_file(self.path(COINJOIN_FILES[category])))
            state.tx0_txids.update(tx.txid for tx in load_records_from_file(self.path(cjc.SAMOURAI_TX0S_FILE)))
        except DumplingsFormatError as e:
            raise ScanStateError(str(e)) from e

        sets = list(state.category_sets().items())
        for index, (category, txids) in enumerate(sets):
            for other_category, other_txids in sets[index + 1:]:
                common = txids & other_txids
                if common:
                    raise ScanStateError(f'{len(common)} txs classified as both {category.name} and '
                                         f'{other_category.name}, e.g., {next(iter(common))}')

        if resumed:
            logging.warning(f'{last_height - start_height + 1} blocks already processed. Continue scanning...')
        return state

    def classify_block(self, block: VerboseBlock, state: ScanState, result: BlockScanResult) -> dict:
        categories = {}
        category_sets = state.category_sets()
        for tx in block.transactions:
            if self.cache.is_cacheable(tx):
                self.cache.add(tx)

            category = classify_transaction(tx, block.height, self.constants)
            if category != CJ_CATEGORY.NONE:
                categories[tx.txid] = category
                result.coinjoins[category].append(tx)
                category_sets[category].add(tx.txid)
        return categories

    def process_block(self, block: VerboseBlock, state: ScanState) -> BlockScanResult:
        """
        Classifies all transactions of block, detects postmix spends and resolves new tx0s.
        Cumulative sets in state are updated, use ScanState.rollback() if result is not persisted.
        """
        result = BlockScanResult(block.height)
        categories = self.classify_block(block, state, result)
        result.postmix = detect_postmix_txs(block.transactions, categories, state.category_sets())
        result.tx0s = resolve_whirlpool_tx0s(result.coinjoins[CJ_CATEGORY.WHIRLPOOL], state.whirlpool_txids,
                                             state.tx0_txids, self.cache, self.rpc)
        logging.debug(f'Block {block.height}: {result.counts()}')
        return result

    def persist_block(self, result: BlockScanResult):
        append_records_to_file(self.path(COINJOIN_FILES[CJ_CATEGORY.WASABI]), result.coinjoins[CJ_CATEGORY.WASABI])
        append_records_to_file(self.path(COINJOIN_FILES[CJ_CATEGORY.WHIRLPOOL]), result.coinjoins[CJ_CATEGORY.WHIRLPOOL])
        append_records_to_file(self.path(cjc.SAMOURAI_TX0S_FILE), result.tx0s)
        append_records_to_file(self.path(COINJOIN_FILES[CJ_CATEGORY.OTHER]), result.coinjoins[CJ_CATEGORY.OTHER])
        for category in CJ_CATEGORIES_TRACKED:
            append_records_to_file(self.path(POSTMIX_FILES[category]), result.postmix[category])

        # Checkpoint is written only after all records of the block are stored
        height_file = self.path(cjc.LAST_PROCESSED_BLOCK_HEIGHT_FILE)
        tmp_file = height_file.with_name(height_file.name + '.tmp')
        with open(tmp_file, 'w') as file:
            file.write(str(result.height))
            file.flush()
            os.fsync(file.fileno())
        os.replace(tmp_file, height_file)

    def scan(self, rescan: bool = False) -> SCAN_STATUS:
        self.status = SCAN_STATUS.RUNNING
        self.prepare_work_folder(rescan)
        state = self.load_state()
        self.state = state

        best_height = self.rpc.get_block_count()
        logging.info(f'Last processed block: {state.next_height - 1}.')
        total_blocks = max(best_height - state.next_height + 1, 0)
        logging.info(f'About {total_blocks} ({total_blocks // 144} days) blocks will be processed.')

        totals = {}
        processed = 0
        progress_log = ProgressLog(total_blocks)
        with tqdm(total=total_blocks, unit='block', disable=not self.show_progress) as progress:
            while True:
                if state.next_height > best_height:
                    # New block might have arrived in the meantime
                    best_height = self.rpc.get_block_count()
                    if state.next_height > best_height:
                        self.status = SCAN_STATUS.CAUGHT_UP
                        break

                height = state.next_height
                block = self.rpc.get_verbose_block(height)
                result = self.process_block(block, state)

                if best_height <= height:
                    # Refresh best height and if still no new block, then end here without storing tip block.
                    # Tip block is processed again by next run, possibly after reorg.
                    best_height = self.rpc.get_block_count()
                    if best_height <= height:
                        state.rollback(result)
                        self.status = SCAN_STATUS.COMPLETED
                        break
                    progress_log.total_blocks = processed + best_height - height + 1
                    progress.total = progress_log.total_blocks
                    progress.refresh()

                self.persist_block(result)
                state.next_height += 1
                for key, value in result.counts().items():
                    totals[key] = totals.get(key, 0) + value
                progress.update(1)
                processed += 1
                progress_log.update(processed, height, best_height)

        self.summary.print(f'Scan finished with status {self.status.name}, last processed block: {state.next_height - 1}')
        for key, value in totals.items():
            self.summary.print(f'  {key}: {value} new')
        self.summary.print(f'  Known coinjoins: wasabi={len(state.wasabi_txids)}, whirlpool={len(state.whirlpool_txids)}, '
                           f'other={len(state.other_txids)}, tx0s={len(state.tx0_txids)}')
        return self.status
