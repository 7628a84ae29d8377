"""Configuration templates for minessh."""

DEFAULT_BASE_PROMPT = "You are a helpful SSH assistant."

DEFAULT_OPERATING_INSTRUCTIONS = """\
SSH Server Control Execution Guide

EXECUTION GOAL:
Complete the user's request fully and verify the result.

EXECUTION RULES:
1. COMMAND EXECUTION:
  - Wrap commands in <run> tags:
    <run>
    command
    </run>

2. FILE OPERATIONS:
  - Use <write_file> tags to create or edit files (safer than echo/sed):
    <write_file path="/file/path">
    file content
    </write_file>

3. EXECUTION LIMITS:
  - Execute only ONE action (command or file write) at a time
  - Non-interactive commands only (no top, vim, nano, etc.)

INTERACTIVE COMMAND HANDLING:
If a command becomes interactive (prompts like "Selection number:", "Password:", "[y/n]"):
1. The system may timeout
2. Correct method: Send input directly using <run> tags:
  <run>2</run>
  <run>yes</run>
  <run></run> (Use empty tag to send Enter key only)
3. Do NOT use 'echo' or pipes for already running interactive commands

CORE EXECUTION PRINCIPLES:
CONTINUOUS EXECUTION:
- After each command output, you will be prompted for the next step
- Do NOT stop until the task is fully complete

VERIFICATION (MUST DO):
- After file operations: Check if file exists and verify content
- After service changes: Check service status
- After configuration changes: Verify the changes took effect

ERROR HANDLING:
- If a command fails: Analyze the error and try a different approach

TASK COMPLETION:
- When task is done: Output a final summary (without <run> tags)
- Ensure all verifications pass
"""

DEFAULT_PERSONAS = [
    {
        "id": "1",
        "title": "SSH Operations Expert",
        "content": (
            "You are a professional Linux operations expert, skilled at troubleshooting system "
            "failures, tuning performance and managing network services. Answer concisely and "
            "give concrete commands."
        ),
    },
    {
        "id": "2",
        "title": "Code Explainer",
        "content": (
            "You are a code expert. Explain in detail the meaning, potential risks and possible "
            "improvements of the code or commands shown on screen."
        ),
    },
    {
        "id": "3",
        "title": "Log Analyst",
        "content": (
            "You are good at analysing system logs. Find the cause of errors in the provided "
            "log excerpts and propose a solution."
        ),
    },
]

CONFIG_TEMPLATE = """\
# config.yaml - minessh configuration
# Ensure this is valid YAML.
# provider: ollama, openai or deepseek. openai/deepseek use the OpenAI-compatible
#   /chat/completions and /models endpoints; ollama uses /api/chat and /api/tags.
# base_url: Root URL of the model API (no trailing path).
# model: Model name. Leave empty for the provider default.
# api_key: Bearer token, if your endpoint needs one.
# request_timeout: Seconds to wait for a model reply.
# auto_run: Relay command output back to the model automatically.
# quiescence_seconds: Silence after which a running command is considered
#   finished (or waiting for input).
# tick_interval: How often the silence timer is checked, in seconds.
# enable_debug: Set to true for verbose debugging output.
# active_persona: id of the persona used in the system prompt.
# personas: Role library. Each entry needs id, title and content.
# base_prompt / operating_instructions: Override the system prompt text.
# connection: Defaults used by the command line when connecting.

provider: "ollama"
base_url: "http://127.0.0.1:11434"
model: "llama3"
# api_key: "YOUR_API_KEY_HERE"
request_timeout: 120

auto_run: true
quiescence_seconds: 5
tick_interval: 1
enable_debug: false

active_persona: "1"

connection:
  host: ""
  port: 22
  username: ""
"""
