from __future__ import annotations

ETHERSCAN_V2_API_BASE = "https://api.etherscan.io/v2/api"
SOURCIFY_REPO_BASE = "https://repo.sourcify.dev"

USER_AGENT = "contract-analyzer/1.3"

# Etherscan-style APIs cap getLogs / txlist pages at 1000 rows.
EXPLORER_PAGE_CAP = 1000
DEFAULT_CHUNK_BLOCKS = 100_000

DEFAULT_TIMEOUT_S = 30
DEFAULT_HTTP_RETRIES = 3
DEFAULT_API_RETRIES = 3

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Markers of well-known upgradeable proxy implementations.
PROXY_SOURCE_MARKERS = (
    "ERC1967Proxy",
    "ERC1967Upgrade",
    "TransparentUpgradeableProxy",
    "UUPSUpgradeable",
    "BeaconProxy",
    "UpgradeableProxy",
    "AdminUpgradeabilityProxy",
    "eip1967.proxy.implementation",
    "0x360894a13ba1a3210667c828492db98dca3e2076cc3735a920a3ca505d382bbc",
)

# Function names that expose a proxy admin surface in an ABI.
PROXY_ABI_FUNCTIONS = ("upgradeTo", "upgradeToAndCall", "implementation")
