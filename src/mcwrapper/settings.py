"""
This module contains the configuration settings for the MCWrapper application.
It defines working directories, bundled artifact names, the fixed network layout
and the templates for the generated proxy configuration.
"""

import os
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)

#* --- Core Paths ---
BASE_DIR = pathlib.Path(os.getenv("MCW_BASE_DIR", os.getcwd())).resolve()
SERVER_DIR_NAME = "minecraft_server"
PROXY_DIR_NAME = "velocity_proxy"
LOGS_DIR_NAME = "logs"

# Bundled jars shipped next to the wrapper (server.jar, velocity.jar, plugins/...)
BUNDLE_DIR = pathlib.Path(os.getenv("MCW_BUNDLE_DIR", BASE_DIR / "bundle")).resolve()

#* --- Artifact Names ---
SERVER_JAR_NAME = "server.jar"
EULA_FILE_NAME = "eula.txt"
VELOCITY_JAR_NAME = "velocity.jar"
PLUGINS_DIR_NAME = "plugins"
GEYSER_JAR_NAME = "Geyser-Velocity.jar"
FLOODGATE_JAR_NAME = "floodgate-velocity.jar"

#* --- Generated Config Files ---
SERVER_PROPERTIES_NAME = "server.properties"
PAPER_GLOBAL_CONFIG = pathlib.Path("config") / "paper-global.yml"
VELOCITY_CONFIG_NAME = "velocity.toml"
FORWARDING_SECRET_NAME = "forwarding.secret"
FORWARDING_SECRET_LENGTH = 12

#* --- Network Topology (fixed) ---
PUBLIC_HOST = "0.0.0.0"
PUBLIC_PORT = 25565
BEDROCK_PORT = 19132
BACKEND_HOST = "127.0.0.1"
BACKEND_PORT = 25566
BACKEND_SERVER_NAME = "lobby"
PROXY_MOTD = "&3A Velocity Proxy"

#* --- Runtime Settings ---
SERVER_MEMORY = os.getenv("MC_SERVER_MEMORY", "1024M")
PROXY_MEMORY = os.getenv("MC_PROXY_MEMORY", "512M")
SERVER_GUI_ENABLED = os.getenv("MC_GUI", "true").lower() in ('true', '1', 't', 'yes')
NATIVE_KILL_TIMEOUT = 10  # seconds to wait for taskkill

#* --- Optional single-attempt downloads for artifacts missing from the bundle ---
ARTIFACT_DOWNLOAD_URLS = {
    SERVER_JAR_NAME: os.getenv("MCW_SERVER_JAR_URL", ""),
    VELOCITY_JAR_NAME: os.getenv("MCW_VELOCITY_JAR_URL", ""),
    GEYSER_JAR_NAME: os.getenv("MCW_GEYSER_JAR_URL", ""),
    FLOODGATE_JAR_NAME: os.getenv("MCW_FLOODGATE_JAR_URL", ""),
}
DOWNLOAD_TIMEOUT = 30

#* --- Guidance for artifacts that must be bundled manually ---
ARTIFACT_SOURCES = {
    SERVER_JAR_NAME: ("Minecraft Vanilla Server", "https://www.minecraft.net/en-us/download/server"),
    VELOCITY_JAR_NAME: ("Velocity Proxy Server", "https://papermc.io/downloads/velocity"),
    GEYSER_JAR_NAME: ("Geyser for Velocity", "https://geysermc.org/download"),
    FLOODGATE_JAR_NAME: ("Floodgate for Velocity", "https://geysermc.org/download#floodgate"),
}

#* --- Configuration Templates ---
VELOCITY_CONFIG_TEMPLATE = """# This file is generated once by MCWrapper. Edits are preserved across restarts.
config-version = "2.7"
bind = "{bind_host}:{bind_port}"
motd = "{motd}"
show-max-players = 500
online-mode = true
prevent-client-proxy-connections = false
player-info-forwarding-mode = "modern"
forwarding-secret-file = "{secret_file}"
announce-forge = false
kick-existing-players = false
force-key-authentication = false
ping-passthrough = "ALL"

[servers]
{server_name} = "{backend_host}:{backend_port}"
try = ["{server_name}"]

[forced-hosts]
"""
