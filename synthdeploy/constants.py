from pathlib import Path

import synthdeploy

#
# Filesystem
#

PACKAGE_DIR = Path(synthdeploy.__file__).parent
CONFIGS_DIR = PACKAGE_DIR / "configs"
ARTIFACTS_DIR = Path("artifacts")
FLATTENED_CONTRACTS_DIR = Path("flattened-contracts")

LIBRARY_ROOT = Path("node_modules")
CONTRACT_ROOT = Path("contracts")
SOURCE_EXTENSION = ".sol"

#
# Ledger
#

ZERO_ADDRESS = "0x" + "0" * 40

CONTRACT_DEPLOYMENT_GAS_LIMIT = 8_000_000
METHOD_CALL_GAS_LIMIT = 150_000
GAS_PRICE_GWEI = "10.0"

#
# Contracts
#

SAFE_DECIMAL_MATH = "SafeDecimalMath"
EXCHANGE_RATES = "ExchangeRates"

# shared libraries linked into every contract deployed after them
LIBRARIES = (SAFE_DECIMAL_MATH,)

# the proxy pattern of these defeats verification through the explorer API
SKIP_VERIFICATION = (EXCHANGE_RATES,)

SYNTHS = (
    "XDR",
    "sUSD",
    "sEUR",
    "sJPY",
    "sAUD",
    "sKRW",
    "sXAU",
    "sGBP",
    "sCHF",
    "sCNY",
    "sSGD",
    "sCAD",
    "sRUB",
    "sINR",
    "sBRL",
    "sNZD",
    "sPLN",
    "sXAG",
    "sBTC",
)

#
# Compiler
#

OPTIMIZER_RUNS = 200

#
# Explorer
#

ETHERSCAN_API_KEY_ENVVAR = "ETHERSCAN_API_KEY"
ETHERSCAN_MAINNET_API_URL = "https://api.etherscan.io/api"
ETHERSCAN_TESTNET_API_URL = "https://api-{network}.etherscan.io/api"

# loosely-typed status strings returned by the explorer
NOT_VERIFIED = "Contract source code not verified"
ALREADY_VERIFIED = "Contract source code already verified"
PASS_VERIFIED = "Pass - Verified"
FAIL_UNABLE_TO_VERIFY = "Fail - Unable to verify"

# number of trailing hex characters of the compiled code used to locate
# constructor arguments in the creation transaction input
BYTECODE_SUFFIX_LENGTH = 50

POLL_INTERVAL = 5  # seconds
MAX_POLL_ATTEMPTS = 60
