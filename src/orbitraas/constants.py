"""Pinned external resources and filesystem constants."""

DOCKER_IMAGE = "availj/avail-nitro-node:v2.2.1-upstream-v3.2.1"
ORBIT_SDK_REPO = "https://github.com/availproject/arbitrum-orbit-sdk.git"
ORBIT_SDK_BRANCH = "avail-develop-upstream-v0.20.1"
SETUP_SCRIPT_REPO = "https://github.com/availproject/orbit-setup-script.git"

DEPLOYMENT_DIR = "orbit-deployment"
ORBIT_SDK_DIR = "arbitrum-orbit-sdk"
ROLLUP_EXAMPLE_DIR = ("examples", "create-avail-rollup-eth")
SETUP_SCRIPT_DIR = "orbit-setup-script"
SETUP_CONFIG_DIR = "config"

NODE_CONFIG_FILE = "nodeConfig.json"
SETUP_SCRIPT_CONFIG_FILE = "orbitSetupScriptConfig.json"
ENV_FILE = ".env"
GENERATED_CONFIG_FILES = (NODE_CONFIG_FILE, SETUP_SCRIPT_CONFIG_FILE)

DEPLOY_SCRIPT = "deploy-avail-orbit-rollup"
BRIDGE_SCRIPT = "setup"

DEFAULT_CHAIN_ID = 412346
DEFAULT_ROLLUP_NAME = "Avail Orbit Rollup"
DEFAULT_LOCAL_RPC = "http://localhost:8449"
DEFAULT_EXPLORER_URL = "http://localhost:4000"

BRIDGE_L2_RPC_URL = "https://sepolia-rollup.arbitrum.io/rpc"
BRIDGE_L3_RPC_URL = "http://localhost:8449"

DEFAULT_NETWORK_TIMEOUT = 900.0
DEFAULT_SCRIPT_TIMEOUT = 3600.0

DEFAULT_BIND_HOST = "127.0.0.1"
DEFAULT_BIND_PORT = 3000

DIR_MODE = 0o755
SECRET_FILE_MODE = 0o600
