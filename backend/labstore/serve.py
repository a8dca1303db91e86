# backend/labstore/serve.py
"""
Process entry point: `python -m labstore.serve`.

Everything is read from the environment so the same image runs on a
lab PC (plain HTTP on port 3000) or behind a TLS-terminating proxy.
"""

import os
from typing import Any, Dict

import uvicorn

_TRUTHY = {"1", "true", "yes", "on"}


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def _server_options() -> Dict[str, Any]:
    options: Dict[str, Any] = {
        "host": os.getenv("HOST", "0.0.0.0"),
        "port": int(os.getenv("PORT", "3000")),
        "reload": _flag("RELOAD"),
        "log_level": os.getenv("LOG_LEVEL", "info").lower(),
        "proxy_headers": True,
        "forwarded_allow_ips": os.getenv("FORWARDED_ALLOW_IPS", "127.0.0.1"),
    }

    # uvicorn only switches to TLS when a certificate is given.
    for env_name, option in (
        ("SSL_CERTFILE", "ssl_certfile"),
        ("SSL_KEYFILE", "ssl_keyfile"),
        ("SSL_KEYFILE_PASSWORD", "ssl_keyfile_password"),
    ):
        value = os.getenv(env_name)
        if value:
            options[option] = value
    return options


def main() -> None:
    uvicorn.run("labstore.main:app", **_server_options())


if __name__ == "__main__":
    main()
