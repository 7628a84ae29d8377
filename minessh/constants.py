"""Constants used throughout the minessh package."""

from pathlib import Path
from colorama import Fore, Style

# Configuration paths
CONFIG_DIR = Path.home() / ".config" / "minessh"
CONFIG_FILE_NAME = "config.yaml"

# ANSI Color Codes (using colorama)
CLR_RESET = Style.RESET_ALL
CLR_RED = Fore.RED
CLR_BOLD_RED = Style.BRIGHT + Fore.RED
CLR_GREEN = Fore.GREEN
CLR_BOLD_GREEN = Style.BRIGHT + Fore.GREEN
CLR_YELLOW = Fore.YELLOW
CLR_BOLD_YELLOW = Style.BRIGHT + Fore.YELLOW
CLR_BLUE = Fore.BLUE
CLR_BOLD_BLUE = Style.BRIGHT + Fore.BLUE
CLR_MAGENTA = Fore.MAGENTA
CLR_BOLD_MAGENTA = Style.BRIGHT + Fore.MAGENTA
CLR_CYAN = Fore.CYAN
CLR_BOLD_CYAN = Style.BRIGHT + Fore.CYAN
CLR_WHITE = Fore.WHITE
CLR_BOLD_WHITE = Style.BRIGHT + Fore.WHITE

# Model providers
PROVIDERS = ["ollama", "openai", "deepseek"]
OPENAI_COMPATIBLE_PROVIDERS = ["openai", "deepseek"]

# Default configuration values
DEFAULT_PROVIDER = "ollama"
DEFAULT_BASE_URL = "http://127.0.0.1:11434"
DEFAULT_MODEL = "llama3"
DEFAULT_OPENAI_MODEL = "deepseek-chat"
DEFAULT_REQUEST_TIMEOUT = 120
DEFAULT_AUTO_RUN = True
DEFAULT_ENABLE_DEBUG = False
DEFAULT_SSH_PORT = 22

# Completion detection
DEFAULT_QUIESCENCE_SECONDS = 5.0
DEFAULT_TICK_INTERVAL = 1.0
PROMPT_CHARACTERS = "#$%>➜"

# Transcript text
STOP_MESSAGE = "Task stopped by user. Forget previous pending tasks and wait for new instructions."
SEND_ENTER_LABEL = "(Sending Enter)"
