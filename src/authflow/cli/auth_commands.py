"""Sign-in smoke-test commands."""

import asyncio
import hashlib

import typer
from rich.console import Console
from rich.table import Table

from authflow.core.models.actions import Failure, LoggedIn, SignIn
from authflow.core.models.auth_state import AuthState, UserRecord
from authflow.core.providers.base import AuthProvider
from authflow.core.providers.identity_toolkit import IdentityToolkitProvider
from authflow.core.providers.in_memory import InMemoryAuthProvider
from authflow.core.services.flow_coordinator import FlowCoordinator
from authflow.core.store.auth_store import AuthStore
from authflow.runtime.context import get_config
from authflow.utils.app_startup import configure_logging

console = Console()


async def run_sign_in(
    provider: AuthProvider, action: SignIn, timeout: float
) -> tuple[LoggedIn | Failure, AuthState]:
    """Dispatch ``action`` through a fresh store and coordinator and wait for its outcome.

    Raises:
        asyncio.TimeoutError: If neither LoggedIn nor Failure arrives within ``timeout``
    """
    store = AuthStore()
    coordinator = FlowCoordinator(provider)
    await store.attach(coordinator)
    try:
        outcome = store.expect(lambda a: isinstance(a, (LoggedIn, Failure)))
        store.dispatch(action)
        result = await asyncio.wait_for(outcome, timeout)
        return result, store.state
    finally:
        await coordinator.close()


def demo_provider(provider_id: str, identity_token: str, nonce: str) -> InMemoryAuthProvider:
    """In-memory provider that accepts exactly the given credentials."""
    provider = InMemoryAuthProvider()
    uid = hashlib.sha256(identity_token.encode()).hexdigest()[:20]
    provider.register(
        identity_token, UserRecord(provider_id=provider_id, uid=uid), nonce=nonce
    )
    return provider


def render_state(state: AuthState) -> Table:
    table = Table(title="Auth state")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    user = state.user
    table.add_row("uid", user.uid if user else "-")
    table.add_row("provider", user.provider_id if user else "-")
    table.add_row("email", (user.email if user else None) or "-")
    table.add_row("display name", (user.display_name if user else None) or "-")
    linked = ", ".join(f"{r.provider_id}:{r.uid}" for r in state.provider_data or ())
    table.add_row("linked identities", linked or "-")
    if state.metadata:
        table.add_row("last sign-in", str(state.metadata.last_sign_in_at or "-"))
        table.add_row("created", str(state.metadata.created_at or "-"))
    table.add_row("tenant", state.tenant_id or "-")
    table.add_row(
        "new user", "unknown" if state.is_new_user is None else str(state.is_new_user)
    )
    table.add_row("error", state.error.value if state.error else "-")
    return table


def sign_in(
    provider_id: str = typer.Option(..., "--provider-id", "-p", help="Identity provider ID, e.g. apple.com"),
    token: str = typer.Option(
        ..., "--token", "-t", envvar="AUTHFLOW_IDENTITY_TOKEN", help="Identity token from the upstream SDK"
    ),
    nonce: str = typer.Option(..., "--nonce", "-n", help="Raw nonce used to obtain the token"),
    in_memory: bool = typer.Option(
        False, "--in-memory", help="Use an in-memory provider that accepts these credentials"
    ),
    timeout: float = typer.Option(30.0, "--timeout", help="Seconds to wait for an outcome"),
) -> None:
    """Run one sign-in through the flow coordinator and print the resulting state."""
    configure_logging()

    async def _main() -> tuple[LoggedIn | Failure, AuthState]:
        action = SignIn(identity_token=token, nonce=nonce, provider_id=provider_id)
        if in_memory:
            return await run_sign_in(demo_provider(provider_id, token, nonce), action, timeout)

        if not get_config().identity_toolkit.api_key:
            console.print("[red]❌ identity_toolkit.api_key is not configured[/red]")
            raise typer.Exit(code=2)
        async with IdentityToolkitProvider() as provider:
            return await run_sign_in(provider, action, timeout)

    try:
        outcome, state = asyncio.run(_main())
    except asyncio.TimeoutError as e:
        console.print(f"[red]❌ No outcome within {timeout}s[/red]")
        raise typer.Exit(code=1) from e

    if isinstance(outcome, Failure):
        console.print(f"[red]❌ Sign-in failed: {outcome.error.value}[/red]")
        raise typer.Exit(code=1)

    console.print(render_state(state))
    console.print("[green]✅ Signed in[/green]")


def show_config(
    reveal: bool = typer.Option(False, "--reveal", help="Show secrets instead of masking them"),
) -> None:
    """Print the resolved configuration."""
    config = get_config().model_copy(deep=True)
    if config.identity_toolkit.api_key and not reveal:
        config.identity_toolkit.api_key = "***"
    console.print_json(config.model_dump_json())
