import argparse
import ast
import logging
import os
import subprocess
import sys
import time
from datetime import datetime
from pathlib import Path

import orjson

import helpers.global_constants as global_constants
from cj_scan import cj_consts as cjc
from cj_scan.cj_structs import SCAN_STATUS, default_protocol_constants
from cj_scan.scanner import Scanner, ScanStateError
from helpers.rpc_commands import BitcoinRpc, RpcError
from helpers.utils import setup_logging, write_to_file


def parse_arguments(argv):
    parser = argparse.ArgumentParser(description="Scan bitcoin blocks for Wasabi, Samourai Whirlpool and other "
                                                 "equal output coinjoins and their postmix spends.")
    # --target-path c:\!blockchains\CoinJoin\Dumplings_Stats_20241225\ --rpc-url http://127.0.0.1:8332/
    parser.add_argument("-r", "--rescan",
                        help="Delete all previously scanned data and start from the first activation block",
                        action="store_true", required=False)
    parser.add_argument("-tp", "--target-path",
                        help="Base path where 'Scanner' work folder with results is created",
                        action="store", metavar="PATH",
                        required=False)
    parser.add_argument("-u", "--rpc-url",
                        help="Bitcoin Core rpc endpoint, e.g., http://127.0.0.1:8332/",
                        action="store", metavar="URL",
                        required=False)
    parser.add_argument("--rpc-user",
                        help="Bitcoin Core rpc user (cookie file is used if not provided)",
                        action="store", metavar="USER",
                        required=False)
    parser.add_argument("--rpc-password",
                        help="Bitcoin Core rpc password (cookie file is used if not provided)",
                        action="store", metavar="PASSWORD",
                        required=False)
    parser.add_argument("-lc", "--load-config",
                        help="Load configuration from json file. Key 'protocol' holds protocol constants, "
                             "key 'options' holds ScannerOptions attributes",
                        action="store", metavar="FILE",
                        required=False)
    parser.add_argument("-ev", "--env_vars",
                        help="Allows to set internal variable and switches. Use with maximal care.",
                        action="store", metavar="ENV_VARS",
                        required=False)

    return parser.parse_args(argv)


class ScannerOptions:
    RESCAN = False
    DEBUG = False
    SHOW_PROGRESS = True
    OPRETURN_TX_CACHE_SIZE = cjc.OPRETURN_TX_CACHE_SIZE

    target_base_path = ''
    rpc_url = None
    rpc_user = None
    rpc_pswd = None
    protocol_overrides = {}
    cmd_str = ''  # Command line string

    def __init__(self):
        self.default_values()

    def default_values(self):
        self.RESCAN = False
        self.DEBUG = False
        self.SHOW_PROGRESS = True
        self.OPRETURN_TX_CACHE_SIZE = cjc.OPRETURN_TX_CACHE_SIZE

        self.target_base_path = ''
        self.rpc_url = global_constants.GLOBAL_CONSTANTS.rpc_url
        self.rpc_user = None
        self.rpc_pswd = None
        self.protocol_overrides = {}

    def set_attributes(self, values: dict):
        for key, value in values.items():
            if hasattr(self, key):  # Only set existing attributes
                setattr(self, key, value)
            else:
                logging.warning(f"'{key}' is not a recognized attribute and will be ignored.")

    def set_args(self, a):
        if a.load_config is not None:
            with open(a.load_config, "rb") as file:
                config = orjson.loads(file.read())
            self.protocol_overrides = config.get('protocol', {})
            self.set_attributes(config.get('options', {}))

        if a.rescan:
            self.RESCAN = True
        if a.target_path is not None:
            self.target_base_path = a.target_path
        if a.rpc_url is not None:
            self.rpc_url = a.rpc_url
        if a.rpc_user is not None:
            self.rpc_user = a.rpc_user
        if a.rpc_password is not None:
            self.rpc_pswd = a.rpc_password

        if a.env_vars is not None:
            for item in a.env_vars.split(";"):
                item = item.strip()  # Remove extra spaces
                if "=" in item:
                    key, value = map(str.strip, item.split("=", 1))  # Split and strip spaces

                    try:
                        value = ast.literal_eval(value)  # Try to evaluate the value (e.g., bool, list, int)
                    except (ValueError, SyntaxError):
                        logging.warning(f"Unable to parse value '{value}' for key '{key}', using raw string.")
                    self.set_attributes({key: value})

    @property
    def work_folder(self) -> str:
        return os.path.join(self.target_base_path, cjc.WORK_FOLDER)

    def print_attributes(self):
        logging.info('*******************************************')
        logging.info('ScannerOptions parameters:')
        for attr, value in vars(self).items():
            if attr != 'rpc_pswd':
                logging.info(f'  {attr}={value}')
        logging.info('*******************************************')


op = ScannerOptions()


def main(argv=None):
    global op
    op = ScannerOptions()
    # parse arguments, overwrite default settings if required
    args = parse_arguments(argv)
    setup_logging(logging.INFO)
    op.set_args(args)
    if op.DEBUG:
        logging.getLogger().setLevel(logging.DEBUG)
    op.print_attributes()

    os.makedirs(op.work_folder, exist_ok=True)
    op.cmd_str = subprocess.list2cmdline(sys.argv if argv is None else argv)
    write_to_file(f"[{datetime.now().strftime('%Y-%m-%d %H:%M:%S')}] {op.cmd_str}\n",
                  Path(op.work_folder).parent / "summary.log", 'a')

    script_start_time = time.time()
    try:
        constants = default_protocol_constants().updated(op.protocol_overrides)
        rpc = BitcoinRpc(op.rpc_url, op.rpc_user, op.rpc_pswd)
        scanner = Scanner(rpc, constants, op.work_folder, op.OPRETURN_TX_CACHE_SIZE, op.SHOW_PROGRESS)
        status = scanner.scan(op.RESCAN)
    except (RpcError, ScanStateError, LookupError) as e:
        logging.error(f'Scanning aborted: {e}')
        return 1

    scanner.summary.print(f'Total time: {round((time.time() - script_start_time) / 60, 1)} minutes')
    scanner.summary.print_summary()
    return 0 if status in (SCAN_STATUS.COMPLETED, SCAN_STATUS.CAUGHT_UP) else 1


if __name__ == "__main__":
    sys.exit(main())
