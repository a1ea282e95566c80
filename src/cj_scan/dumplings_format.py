"""
Line oriented text format of transaction records stored by the scanner.

One transaction per line:
    txid:::block_hash:::block_height:::block_time:::inputs:::outputs
where inputs are '{prev_txid-prev_index+value+script_hex+script_type[-sequence]' items and
outputs are '{value+script_hex+script_type' items, both joined by '}'. Unknown values are empty.
"""
import logging
import os
from pathlib import Path

from cj_scan.cj_consts import VerboseTransactionInfoLineSeparator, VerboseInOutInfoInLineSeparator, \
    VerboseInOutInfoStart, OutPointSeparator, InOutSegmentSeparator
from cj_scan.tx_records import TransactionRecord, InputRecord, OutputRecord, BlockInfo


class DumplingsFormatError(ValueError):
    pass


def _str_or_empty(value) -> str:
    return '' if value is None else str(value)


def _int_or_none(value: str):
    return None if value == '' else int(value)


def input_to_string(tx_in: InputRecord) -> str:
    prev = tx_in.prev_output
    segments = [_str_or_empty(None if prev is None else prev.value),
                '' if prev is None else prev.script.hex(),
                '' if prev is None else prev.script_type]
    item = (f'{VerboseInOutInfoStart}{_str_or_empty(tx_in.prev_txid)}{OutPointSeparator}{_str_or_empty(tx_in.prev_index)}'
            f'{InOutSegmentSeparator}{InOutSegmentSeparator.join(segments)}')
    if tx_in.sequence is not None:
        item += f'{OutPointSeparator}{tx_in.sequence}'
    return item


def output_to_string(tx_out: OutputRecord) -> str:
    return f'{VerboseInOutInfoStart}{tx_out.value}{InOutSegmentSeparator}{tx_out.script.hex()}{InOutSegmentSeparator}{tx_out.script_type}'


def to_line(record: TransactionRecord) -> str:
    block = record.block_info
    parts = [record.txid,
             '' if block is None else block.block_hash,
             '' if block is None else str(block.height),
             '' if block is None else _str_or_empty(block.block_time),
             VerboseInOutInfoInLineSeparator.join(input_to_string(tx_in) for tx_in in record.inputs),
             VerboseInOutInfoInLineSeparator.join(output_to_string(tx_out) for tx_out in record.outputs)]
    return VerboseTransactionInfoLineSeparator.join(parts)


def input_from_string(item: str) -> InputRecord:
    # Split to segments using - and + separators
    segments_pipe = item.strip(VerboseInOutInfoStart).split(OutPointSeparator)
    segments = [segment.split(InOutSegmentSeparator) for segment in segments_pipe]
    segments = [item for sublist in segments for item in sublist]
    if len(segments) not in (5, 6):  # Older format had no 'sequence' value
        raise DumplingsFormatError(f'Invalid input item {item}')

    prev_output = None
    if segments[2] != '':
        prev_output = OutputRecord(int(segments[2]), bytes.fromhex(segments[3]), segments[4].strip())
    sequence = int(segments[5].strip()) if len(segments) > 5 else None
    return InputRecord(segments[0] if segments[0] else None, _int_or_none(segments[1]), prev_output, sequence)


def output_from_string(item: str) -> OutputRecord:
    segments = item.strip(VerboseInOutInfoStart).split(InOutSegmentSeparator)
    if len(segments) != 3:
        raise DumplingsFormatError(f'Invalid output item {item}')
    return OutputRecord(int(segments[0]), bytes.fromhex(segments[1]), segments[2].strip())


def from_line(line: str) -> TransactionRecord:
    parts = line.rstrip('\r\n').split(VerboseTransactionInfoLineSeparator)
    if len(parts) != 6 or not parts[0]:
        raise DumplingsFormatError(f'Invalid number of parts in line: {line[:80]}')
    try:
        block_info = None
        if parts[1] or parts[2]:
            block_info = BlockInfo(int(parts[2]), parts[1], _int_or_none(parts[3]))
        inputs = tuple(input_from_string(item) for item in parts[4].split(VerboseInOutInfoInLineSeparator)) if parts[4] else ()
        outputs = tuple(output_from_string(item) for item in parts[5].split(VerboseInOutInfoInLineSeparator)) if parts[5] else ()
    except ValueError as e:
        if isinstance(e, DumplingsFormatError):
            raise
        raise DumplingsFormatError(f'Unable to parse transaction {parts[0]}: {e}') from e

    return TransactionRecord(parts[0], block_info, inputs, outputs)


def load_records_from_file(target_file: str | Path):
    """
    Yields parsed records from one Dumplings file (if exists)
    :param target_file: path to file
    :return: generator of TransactionRecord
    """
    if not Path(target_file).exists():
        return
    logging.debug(f'load_records_from_file() Processing file {target_file}')
    with open(target_file, 'r') as file:
        for line_num, line in enumerate(file, start=1):
            if not line.strip():
                continue
            try:
                yield from_line(line)
            except DumplingsFormatError as e:
                raise DumplingsFormatError(f'{target_file}:{line_num}: {e}') from e


def append_records_to_file(target_file: str | Path, records: list):
    with open(target_file, 'a') as file:
        for record in records:
            file.write(to_line(record) + '\n')
        file.flush()
        os.fsync(file.fileno())
