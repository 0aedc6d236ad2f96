# opencode-gateway

A launcher that prepares and supervises an OpenCode server with the local
gateway plugin loaded. It also holds the typed prompt, command and message
model that gateway hosts use to drive OpenCode sessions.

## Installation

```
pip install .
```

## Commands

The package installs one command, `opencode-gateway-launcher`:

```
opencode-gateway-launcher init     # prepare gateway config and managed OpenCode files
opencode-gateway-launcher warm     # warm the gateway plugin for the configured workspace
opencode-gateway-launcher serve    # start OpenCode with the local gateway plugin
opencode-gateway-launcher doctor   # check runtime prerequisites and generated paths
```

Running it with no command, or with one it does not know, prints the help.

`serve` starts `opencode serve` and then keeps watching it. While it runs it
checks the control directory for a restart request. When it finds one, it waits
until no session is busy, restarts the server and records each step in
`control/restart-status.json`. The states written there are `idle`, `pending`,
`restarting` and `failed`.

## Environment

| Variable | Meaning |
| --- | --- |
| `OPENCODE_GATEWAY_LAUNCHER_MANAGED` | `1` keeps OpenCode config under `$XDG_CONFIG_HOME/opencode-gateway/opencode` |
| `OPENCODE_GATEWAY_LAUNCHER_CONFIG_DIR` | explicit OpenCode config directory |
| `OPENCODE_GATEWAY_LAUNCHER_SERVER_HOST` | server host override (default `127.0.0.1`) |
| `OPENCODE_GATEWAY_LAUNCHER_SERVER_PORT` | server port override (default `4096`) |
| `OPENCODE_GATEWAY_PACKAGE_ROOT` | root of the packaged plugin runtime |
| `OPENCODE_BIN_PATH` | path of the `opencode` executable |
| `OPENCODE_CONFIG_DIR` | OpenCode config directory when not managed |

## Library use

```python
from opencode_gateway.prompts import Prompt, TextPromptPart
from opencode_gateway.rendering import prompt_message_id, prompt_command_parts

prompt = Prompt("mailbox:1", [TextPromptPart("hello")])
prompt_message_id(prompt)      # "msg_gateway_mailbox_1"
prompt_command_parts(prompt)   # [TextCommandPart(part_id="prt_gateway_mailbox_1_0", text="hello")]
```

Constructors check their input. An empty required field raises `ValueError`.