SATS_IN_BTC = 100000000

VerboseTransactionInfoLineSeparator = ':::'
VerboseInOutInfoInLineSeparator = '}'
VerboseInOutInfoStart = '{'
OutPointSeparator = '-'
InOutSegmentSeparator = '+'

# Names of the files created by the scanner inside its work folder
WORK_FOLDER = 'Scanner'
LAST_PROCESSED_BLOCK_HEIGHT_FILE = 'LastProcessedBlockHeight.txt'
WASABI_COINJOINS_FILE = 'WasabiCoinJoins.txt'
SAMOURAI_COINJOINS_FILE = 'SamouraiCoinJoins.txt'
SAMOURAI_TX0S_FILE = 'SamouraiTx0s.txt'
OTHER_COINJOINS_FILE = 'OtherCoinJoins.txt'
WASABI_POSTMIX_FILE = 'WasabiPostMixTxs.txt'
SAMOURAI_POSTMIX_FILE = 'SamouraiPostMixTxs.txt'
OTHER_POSTMIX_FILE = 'OtherCoinJoinPostMixTxs.txt'

# Wasabi 1.x
FIRST_WASABI_BLOCK = 530500
FIRST_WASABI_NO_COORD_ADDRESS_BLOCK = 610000  # From here on coordinator fee outputs are no longer on static address
WASABI_COORD_ADDRESSES = ['bc1qs604c7jv6amk4cxqlnvuxv26hv3e48cds4m0ew', 'bc1qa24tsgchvuxsaccp8vrnkfd85hrcpafg20kmjw']
APPROXIMATE_WASABI_BASE_DENOMINATION = 10000000  # 0.1 btc
WASABI_BASE_DENOMINATION_PRECISION = 500000      # 0.005 btc
WASABI_MIN_EQUAL_OUTPUTS = 10

# Samourai Whirlpool
FIRST_SAMOURAI_BLOCK = 570000
WHIRLPOOL_POOL_SIZES = {'whirlpool_100k': 100000, 'whirlpool_1M': 1000000, 'whirlpool_5M': 5000000, 'whirlpool_50M': 50000000}
WHIRLPOOL_POOL_PRECISION = 1000000  # 0.01 btc
WHIRLPOOL_NUM_INPUTS = 5
WHIRLPOOL_NUM_OUTPUTS = 5

# Other equal output coinjoins
OTHER_COINJOIN_MAX_INPUT_MARGIN = 10000  # 0.0001 btc

# Capacity of run-time cache of OP_RETURN transactions (possible tx0s)
OPRETURN_TX_CACHE_SIZE = 100000
