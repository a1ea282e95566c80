import os
from pathlib import Path


class GlobalConstants():
    bitcoin_mainnet_rpc_url = "http://127.0.0.1:8332/"
    bitcoin_testnet_rpc_url = "http://127.0.0.1:18332/"
    bitcoin_regtest_rpc_url = "http://127.0.0.1:18443/"

    network = "MainNet"  # one of MainNet, TestNet, RegTest

    bitcoin_data_dir = os.path.join(Path.home(), ".bitcoin")

    # timeout (seconds) for single rpc request, getblock with verbosity 3 can take a while
    rpc_timeout = 300

    rpc_user = ""
    rpc_pswd = ""

    def __init__(self):
        network_dirs = {"MainNet": "", "TestNet": "testnet3", "RegTest": "regtest"}
        self.cookie_path = os.path.join(self.bitcoin_data_dir, network_dirs[self.network], ".cookie")
        if os.path.exists(self.cookie_path):
            with open(self.cookie_path, "r") as f:
                self.rpc_user, self.rpc_pswd = f.read().strip().split(":", 1)
        else:
            print('WARNING: {} not found'.format(self.cookie_path))

    @property
    def rpc_url(self):
        return {"MainNet": self.bitcoin_mainnet_rpc_url, "TestNet": self.bitcoin_testnet_rpc_url,
                "RegTest": self.bitcoin_regtest_rpc_url}[self.network]


GLOBAL_CONSTANTS = GlobalConstants()
