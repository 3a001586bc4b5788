"""
The deployment order and wiring of the synthetic-asset system.

The order below is a topological sort of the contracts' dependency graph:
the shared math library first (everything after it is linked against it),
then the price oracle, the fee pool and its proxy, the core token with its
proxy and state contracts, the escrow, one proxy, token state and synth per
supported asset, and finally the purchasing contract. Do not reorder.
"""

from typing import List, Sequence

from web3 import Web3

from synthdeploy.constants import SAFE_DECIMAL_MATH, ZERO_ADDRESS
from synthdeploy.deployer import DeploymentStep
from synthdeploy.params import ContractAddress, DeployerAccount
from synthdeploy.registry import DeploymentRegistry
from synthdeploy.types import ContractIdentifier
from synthdeploy.wiring import WiringStep

DEPLOYER = DeployerAccount()

SAFE_DECIMAL_MATH_ID = ContractIdentifier(SAFE_DECIMAL_MATH)
EXCHANGE_RATES = ContractIdentifier("ExchangeRates")
FEE_POOL = ContractIdentifier("FeePool")
FEE_POOL_PROXY = ContractIdentifier("Proxy", "FeePool")
SYNTHETIX = ContractIdentifier("Synthetix")
SYNTHETIX_PROXY = ContractIdentifier("Proxy", "Synthetix")
SYNTHETIX_STATE = ContractIdentifier("SynthetixState")
SYNTHETIX_TOKEN_STATE = ContractIdentifier("TokenState", "Synthetix")
SYNTHETIX_ESCROW = ContractIdentifier("SynthetixEscrow")
DEPOT = ContractIdentifier("Depot")

DEPOT_SYNTH = "sUSD"
INITIAL_SNX_RATE = Web3.to_wei("0.2", "ether")
TRANSFER_FEE_RATE = Web3.to_wei("0.0015", "ether")
EXCHANGE_FEE_RATE = Web3.to_wei("0.0015", "ether")
INITIAL_DEPLOYER_BALANCE = Web3.to_wei("100000000", "ether")
DEPOT_MINIMUM_DEPOSIT = Web3.to_wei("500", "ether")
DEPOT_USD_TO_ETH_RATE = Web3.to_wei(".10", "ether")


def currency_key(symbol: str) -> str:
    return Web3.to_hex(text=symbol)


def synth_identifiers(currency: str) -> List[ContractIdentifier]:
    """The token state, proxy and synth of a single asset, in deployment order."""
    return [
        ContractIdentifier("TokenState", currency),
        ContractIdentifier("Proxy", currency),
        ContractIdentifier("Synth", currency),
    ]


def deployment_plan(synths: Sequence[str]) -> List[DeploymentStep]:
    plan = [
        DeploymentStep(SAFE_DECIMAL_MATH_ID),
        DeploymentStep(
            EXCHANGE_RATES,
            (DEPLOYER, DEPLOYER, [currency_key("SNX")], [INITIAL_SNX_RATE]),
        ),
        DeploymentStep(FEE_POOL_PROXY, (DEPLOYER,)),
        DeploymentStep(
            FEE_POOL,
            (
                ContractAddress(FEE_POOL_PROXY),
                DEPLOYER,
                DEPLOYER,
                DEPLOYER,
                TRANSFER_FEE_RATE,
                EXCHANGE_FEE_RATE,
            ),
        ),
        DeploymentStep(SYNTHETIX_STATE, (DEPLOYER, DEPLOYER)),
        DeploymentStep(SYNTHETIX_PROXY, (DEPLOYER,)),
        DeploymentStep(SYNTHETIX_TOKEN_STATE, (DEPLOYER, DEPLOYER)),
        DeploymentStep(
            SYNTHETIX,
            (
                ContractAddress(SYNTHETIX_PROXY),
                ContractAddress(SYNTHETIX_TOKEN_STATE),
                ContractAddress(SYNTHETIX_STATE),
                DEPLOYER,
                ContractAddress(EXCHANGE_RATES),
                ContractAddress(FEE_POOL),
            ),
        ),
        DeploymentStep(SYNTHETIX_ESCROW, (DEPLOYER, ContractAddress(SYNTHETIX))),
    ]

    for currency in synths:
        token_state, proxy, synth = synth_identifiers(currency)
        plan.extend(
            [
                DeploymentStep(token_state, (DEPLOYER, ZERO_ADDRESS)),
                DeploymentStep(proxy, (DEPLOYER,)),
                DeploymentStep(
                    synth,
                    (
                        ContractAddress(proxy),
                        ContractAddress(token_state),
                        ContractAddress(SYNTHETIX),
                        ContractAddress(FEE_POOL),
                        f"Synth {currency}",
                        currency,
                        DEPLOYER,
                        currency_key(currency),
                    ),
                ),
            ]
        )

    plan.append(
        DeploymentStep(
            DEPOT,
            (
                DEPLOYER,
                DEPLOYER,
                ContractAddress(SYNTHETIX),
                ContractAddress(ContractIdentifier("Synth", DEPOT_SYNTH)),
                ContractAddress(FEE_POOL),
                DEPLOYER,
                DEPOT_MINIMUM_DEPOSIT,
                DEPOT_USD_TO_ETH_RATE,
            ),
        )
    )
    return plan


def _depot_needs_synthetix(registry: DeploymentRegistry) -> bool:
    # a new depot already received the core token in its constructor
    return registry.is_new(SYNTHETIX) and not registry.is_new(DEPOT)


def wiring_plan(synths: Sequence[str]) -> List[WiringStep]:
    plan = [
        WiringStep(
            FEE_POOL_PROXY,
            "setTarget",
            (ContractAddress(FEE_POOL),),
            description="Setting target on FeePool Proxy",
        ),
        WiringStep(
            SYNTHETIX_PROXY,
            "setTarget",
            (ContractAddress(SYNTHETIX),),
            description="Setting target on Synthetix Proxy",
        ),
        WiringStep(
            SYNTHETIX_TOKEN_STATE,
            "setBalanceOf",
            (DEPLOYER, INITIAL_DEPLOYER_BALANCE),
            description="Setting balance on Synthetix Token State",
        ),
        WiringStep(
            SYNTHETIX_TOKEN_STATE,
            "setAssociatedContract",
            (ContractAddress(SYNTHETIX),),
            description="Setting associated contract on Synthetix Token State",
        ),
        WiringStep(
            SYNTHETIX_STATE,
            "setAssociatedContract",
            (ContractAddress(SYNTHETIX),),
            triggers=(SYNTHETIX_STATE, SYNTHETIX_TOKEN_STATE, SYNTHETIX),
            description="Setting associated contract on Synthetix State",
        ),
        WiringStep(
            SYNTHETIX,
            "setEscrow",
            (ContractAddress(SYNTHETIX_ESCROW),),
            description="Setting escrow on Synthetix",
        ),
        WiringStep(
            SYNTHETIX_ESCROW,
            "setSynthetix",
            (ContractAddress(SYNTHETIX),),
            description="Setting Synthetix on Synthetix Escrow",
        ),
        WiringStep(
            FEE_POOL,
            "setSynthetix",
            (ContractAddress(SYNTHETIX),),
            description="Setting Synthetix on Fee Pool",
        ),
    ]

    for currency in synths:
        token_state, proxy, synth = synth_identifiers(currency)
        plan.extend(
            [
                WiringStep(
                    token_state,
                    "setAssociatedContract",
                    (ContractAddress(synth),),
                    description=f"Setting associated contract for {currency} TokenState",
                ),
                WiringStep(
                    proxy,
                    "setTarget",
                    (ContractAddress(synth),),
                    description=f"Setting proxy target for {currency} Proxy",
                ),
                # requires the deployer to own the core token contract
                WiringStep(
                    SYNTHETIX,
                    "addSynth",
                    (ContractAddress(synth),),
                    description=f"Adding {currency} to Synthetix contract",
                ),
            ]
        )

    plan.append(
        # requires the deployer to own the depot
        WiringStep(
            DEPOT,
            "setSynthetix",
            (ContractAddress(SYNTHETIX),),
            condition=_depot_needs_synthetix,
            description="Setting Synthetix on Depot contract",
        )
    )
    return plan
