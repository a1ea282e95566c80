import itertools

import orjson
import requests

import helpers.global_constants as global_constants
from cj_scan.cj_consts import SATS_IN_BTC
from cj_scan.tx_records import TransactionRecord, InputRecord, OutputRecord, BlockInfo, VerboseBlock


class RpcError(Exception):
    pass


_request_ids = itertools.count(1)


def send_post(method: str, params: list = None,
              different_endpoint: str = None,
              rpc_user: str = None, rpc_pswd: str = None, timeout: float = None):
    """
    Sends single JSON-RPC request to bitcoind and returns its result.
    :param method: rpc method name (e.g., getblockcount)
    :param params: positional parameters of the method
    :param different_endpoint: allows to specify different endpoint than the one from global constants
    :param rpc_user: rpc user, global constants used if not provided
    :param rpc_pswd: rpc password, global constants used if not provided
    :param timeout: request timeout in seconds
    :return: 'result' part of the response
    """
    efective_endpoint = different_endpoint if different_endpoint is not None else global_constants.GLOBAL_CONSTANTS.rpc_url
    rpc_user = rpc_user if rpc_user is not None else global_constants.GLOBAL_CONSTANTS.rpc_user
    rpc_pswd = rpc_pswd if rpc_pswd is not None else global_constants.GLOBAL_CONSTANTS.rpc_pswd
    timeout = timeout if timeout is not None else global_constants.GLOBAL_CONSTANTS.rpc_timeout

    content = orjson.dumps({"jsonrpc": "1.0", "id": next(_request_ids), "method": method,
                            "params": [] if params is None else params})
    auth = (rpc_user, rpc_pswd) if rpc_user != "" and rpc_pswd != "" else None
    try:
        response = requests.post(efective_endpoint, data=content, auth=auth, timeout=timeout,
                                 headers={"Content-Type": "application/json"})
    except requests.RequestException as e:
        raise RpcError(f"{method} failed: {e}") from e

    # bitcoind returns rpc errors with HTTP 500 and json body, other failures have no json body
    try:
        resp_json = orjson.loads(response.content)
    except orjson.JSONDecodeError as e:
        raise RpcError(f"{method} failed with HTTP {response.status_code}: {response.text[:200]}") from e

    if resp_json.get("error") is not None:
        raise RpcError(f"{method} {params} failed: {resp_json['error']}")
    return resp_json["result"]


def btc_to_sats(value) -> int:
    return int(round(value * SATS_IN_BTC))


def output_from_json(vout: dict) -> OutputRecord:
    script_pubkey = vout["scriptPubKey"]
    return OutputRecord(btc_to_sats(vout["value"]), bytes.fromhex(script_pubkey["hex"]), script_pubkey.get("type", "unknown"))


def input_from_json(vin: dict) -> InputRecord:
    if "coinbase" in vin:
        return InputRecord(None, None, None, vin.get("sequence"))
    prevout = output_from_json(vin["prevout"]) if "prevout" in vin else None
    return InputRecord(vin["txid"], vin["vout"], prevout, vin.get("sequence"))


def tx_from_json(tx: dict, block_info: BlockInfo | None) -> TransactionRecord:
    return TransactionRecord(tx["txid"], block_info,
                             tuple(input_from_json(vin) for vin in tx["vin"]),
                             tuple(output_from_json(vout) for vout in tx["vout"]))


class BitcoinRpc:
    """
    Minimal bitcoind client used by the scanner. Requires txindex=1 for lookups of arbitrary transactions
    and Bitcoin Core >= 23 for getblock verbosity 3 (inputs with prevout).
    """
    def __init__(self, rpc_url: str = None, rpc_user: str = None, rpc_pswd: str = None, timeout: float = None):
        self.rpc_url = rpc_url
        self.rpc_user = rpc_user
        self.rpc_pswd = rpc_pswd
        self.timeout = timeout

    def call(self, method: str, *params):
        return send_post(method, list(params), self.rpc_url, self.rpc_user, self.rpc_pswd, self.timeout)

    def get_block_count(self) -> int:
        return int(self.call("getblockcount"))

    def get_verbose_block(self, height: int) -> VerboseBlock:
        block_hash = self.call("getblockhash", height)
        block = self.call("getblock", block_hash, 3)
        block_info = BlockInfo(block["height"], block["hash"], block.get("time"))
        return VerboseBlock(block["height"], block["hash"], block.get("time"),
                            tuple(tx_from_json(tx, block_info) for tx in block["tx"]))

    def get_transaction_with_block_info(self, txid: str) -> TransactionRecord:
        tx = self.call("getrawtransaction", txid, True)
        block_info = None
        if "blockhash" in tx:
            header = self.call("getblockheader", tx["blockhash"])
            block_info = BlockInfo(header["height"], header["hash"], header.get("time"))
        return tx_from_json(tx, block_info)

    def get_transaction(self, txid: str) -> TransactionRecord:
        tx = self.call("getrawtransaction", txid, True)
        return tx_from_json(tx, None)
