"""claude-model-switch - one local endpoint, many model providers.

Claude Code is pointed at a local gateway once; the gateway forwards each
request to the active provider (or the one named in a ``/p/<name>/`` path),
rewriting haiku/sonnet/opus model ids to the provider's own models.

Layers:
    core/       Provider profiles, presets, logging setup
    gateway/    Routing, model rewriting, hot-reloadable store, aiohttp proxy
    daemon      PID-file lifecycle of the background gateway
    frontends/  Command line interface

Quick Start:
    $ claude-model-switch init
    $ claude-model-switch add glm sk-...
    $ claude-model-switch start
    $ claude-model-switch use glm
"""

from model_switch.__version__ import __version__

__all__ = ["__version__"]
