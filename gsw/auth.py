from __future__ import annotations

from .db import log_event
from .kong import KongAdmin, KongError


def _is_global(plugin: dict, name: str) -> bool:
    return (
        plugin.get("name") == name
        and plugin.get("service") is None
        and plugin.get("route") is None
        and plugin.get("consumer") is None
    )


def ensure_global_auth(kong: KongAdmin, introspection_url: str | None, plugin_name: str) -> bool:
    """Make sure a global instance of the authentication plugin exists.

    Returns True when the plugin is (now) enabled globally. Any failure is
    logged and the watcher keeps running with the gateway unprotected.
    """
    try:
        plugins = kong.list_plugins()
    except KongError as e:
        log_event("WARN", f"unable to check global authentication: {e}. services may be unprotected")
        return False

    if any(_is_global(p, plugin_name) for p in plugins):
        log_event("INFO", f"global authentication plugin {plugin_name} already enabled")
        return True

    if not introspection_url:
        log_event("WARN", "INTROSPECTION_URL not set. unable to enable global authentication. services may be unprotected")
        return False

    try:
        kong.create_plugin(
            {
                "name": plugin_name,
                "config": {
                    # key spelling defined by the plugin schema
                    "intospection_url": introspection_url,
                    "auth_header": "ignore",
                },
                "enabled": True,
            }
        )
    except KongError as e:
        log_event("WARN", f"unable to enable global authentication: {e}. services may be unprotected")
        return False
    log_event("INFO", f"enabled global authentication plugin {plugin_name}")
    return True
