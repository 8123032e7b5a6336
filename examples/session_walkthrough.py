"""End-to-end walkthrough of a session against a vCenter or ESXi host."""

from __future__ import annotations

import asyncio
import os
from typing import Any

from vimsdk_client import ClientOptions, SessionExpiredError, SoapFaultError, VimClient


def log_section(title: str) -> None:
    print("\n" + "=" * 80)
    print(title)
    print("=" * 80)


def describe(value: Any, indent: str = "  ") -> None:
    if isinstance(value, dict):
        for key, item in value.items():
            if isinstance(item, (dict, list)):
                print(f"{indent}{key}:")
                describe(item, indent + "  ")
            else:
                print(f"{indent}{key}: {item}")
    elif isinstance(value, list):
        for item in value:
            describe(item, indent)
    else:
        print(f"{indent}{value}")


async def main() -> None:
    options = ClientOptions.from_env(log_level=os.getenv("VIMSDK_CLIENT_LOG", "info"))
    log_section("vSphere session client walkthrough")
    print(f"Connecting to {options.host} as {options.username}")

    client = VimClient.from_options(options)

    log_section("Step 1: Login")
    session = await client.connect()
    print(f"→ Logged in as {session.user_name} ({session.full_name})")

    log_section("Step 2: Service content")
    about = (client.service_content or {}).get("about", {})
    describe(about)

    log_section("Step 3: Server clock")
    now = await client.call("CurrentTime", {"_this": "ServiceInstance"})
    print(f"→ Server time {now.get('returnval')}")

    log_section("Step 4: Expired session recovery")
    # drop the cookie to make the server reject the next call
    assert client.transport is not None
    client.transport.set_security(None)
    try:
        await client.call("CurrentTime", {"_this": "ServiceInstance"})
        print(f"→ Recovered; session state is {client.state}")
    except SessionExpiredError as exc:
        print(f"→ Gave up after {client.reconnect_limit} attempts: {exc}")
    except SoapFaultError as exc:
        print(f"→ Server refused the call: {exc}")

    log_section("Step 5: Logout")
    await client.close()
    print(f"→ Session state is {client.state}")


if __name__ == "__main__":
    asyncio.run(main())
