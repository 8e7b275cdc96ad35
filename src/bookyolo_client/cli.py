"""CLI for the BookYolo client core.

Commands:
- login: Sign in and adopt the backend scan balance
- logout: Sign out and end the login session
- signup: Create an account (tracks an optional referral code)
- verify: Verify the email address of a new account
- status: Restore the stored session and show the user and balance
- balance: Refresh the scan balance from the backend
- refresh: Refresh the user profile (new-account guard applies)
- scan: Scan a listing URL
- ask: Ask a question about the current listing (costs 0.5 scans)
- compare: Compare two listings (costs 1 scan)
- history: Show the scan balance history
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, NoReturn, Protocol

import typer
from rich import print as rprint

from .application.account import AccountService
from .application.client import BookYoloClient
from .application.session import SessionManager
from .config import ClientConfig
from .config_file import load_client_config_file
from .domain.balance import Balance
from .domain.outcomes import ApiResult
from .exceptions import InsufficientBalanceError
from .observability import set_log_level


class DependenciesBuilder(Protocol):
    """Protocol for constructing CLI dependencies."""

    def __call__(self, *, config: ClientConfig) -> CliDependencies:
        """Build dependencies for CLI commands."""
        ...


@dataclass(frozen=True)
class CliDependencies:
    """Concrete dependencies required by the CLI."""

    client: BookYoloClient
    sessions: SessionManager
    account: AccountService


@dataclass(frozen=True)
class CliContext:
    """Runtime CLI context for a single command invocation."""

    config: ClientConfig
    deps_builder: DependenciesBuilder

    def build_dependencies(self) -> CliDependencies:
        """Return dependencies using the configured builder."""
        return self.deps_builder(config=self.config)


class CliContextNotInitialisedError(typer.BadParameter):
    """Raised when CLI context is missing."""

    def __init__(self) -> None:
        super().__init__("CLI context is not initialised. Use the bookyolo entry point.")


def _get_context(ctx: typer.Context) -> CliContext:
    if not isinstance(ctx.obj, CliContext):
        raise CliContextNotInitialisedError()
    return ctx.obj


def _fail(message: str) -> NoReturn:
    rprint(f"[red]✗ {message}[/red]")
    raise typer.Exit(code=1)


def _require_ok(result: ApiResult) -> object:
    if result.error is not None:
        _fail(result.error)
    return result.data


def _print_balance(balance: Balance | None) -> None:
    if balance is None:
        rprint("  Balance: unknown")
        return
    rprint(
        f"  Balance: {balance.remaining:g} of {balance.total_limit} scans remaining "
        f"({balance.used:g} used, {balance.plan.value} plan)"
    )
    if balance.is_new_account:
        rprint("  [yellow]New account: waiting for the backend to initialise usage[/yellow]")


def _print_user(user: dict[str, object] | None) -> None:
    if not user:
        return
    label = user.get("email") or user.get("full_name") or user.get("id") or "unknown"
    rprint(f"  User: {label}")


def create_app(deps_builder: DependenciesBuilder) -> typer.Typer:
    """Create a Typer app wired with the provided dependencies builder."""
    app = typer.Typer(
        add_completion=False,
        help="BookYolo client: sign in, scan listings, ask questions and track scan balance",
    )

    @app.callback()
    def main(
        ctx: typer.Context,
        config_path: Annotated[
            Path | None,
            typer.Option(
                "--config",
                "-c",
                help="TOML config file overriding environment settings",
            ),
        ] = None,
    ) -> None:
        """Initialise CLI context."""
        config = ClientConfig.from_env()
        if config_path is not None:
            config = config.with_file_overrides(load_client_config_file(config_path))
        set_log_level(config.log_level)
        ctx.obj = CliContext(config=config, deps_builder=deps_builder)

    @app.command()
    def login(
        ctx: typer.Context,
        email: Annotated[str, typer.Argument(help="Account email address")],
        password: Annotated[
            str,
            typer.Option("--password", "-p", prompt=True, hide_input=True, help="Password"),
        ],
    ) -> None:
        """Sign in and adopt the backend scan balance."""
        deps = _get_context(ctx).build_dependencies()
        _require_ok(deps.account.sign_in(email, password))
        rprint("[green]✓ Signed in[/green]")
        _print_user(deps.account.user)
        _print_balance(deps.account.balance)

    @app.command()
    def logout(ctx: typer.Context) -> None:
        """Sign out and end the login session."""
        deps = _get_context(ctx).build_dependencies()
        _require_ok(deps.account.sign_out())
        rprint("[green]✓ Signed out[/green]")

    @app.command()
    def signup(
        ctx: typer.Context,
        email: Annotated[str, typer.Argument(help="Account email address")],
        first_name: Annotated[
            str,
            typer.Option("--first-name", "-n", prompt=True, help="First name"),
        ],
        password: Annotated[
            str,
            typer.Option(
                "--password",
                "-p",
                prompt=True,
                hide_input=True,
                confirmation_prompt=True,
                help="Password",
            ),
        ],
        referral_code: Annotated[
            str | None,
            typer.Option("--referral-code", "-r", help="Referral code from an existing user"),
        ] = None,
    ) -> None:
        """Create an account; verify the email address before signing in."""
        deps = _get_context(ctx).build_dependencies()
        data = _require_ok(deps.account.sign_up(email, password, first_name, referral_code))
        message = data.get("message") if isinstance(data, dict) else None
        rprint(f"[green]✓ {message or 'Signed up'}[/green]")

    @app.command()
    def verify(
        ctx: typer.Context,
        token: Annotated[str, typer.Argument(help="Verification token from the email")],
    ) -> None:
        """Verify the email address of a new account."""
        deps = _get_context(ctx).build_dependencies()
        data = _require_ok(deps.account.verify_email(token))
        email = data.get("email") if isinstance(data, dict) else None
        suffix = f" for {email}" if email else ""
        rprint(f"[green]✓ Email verified{suffix}[/green]")

    @app.command()
    def status(ctx: typer.Context) -> None:
        """Restore the stored session and show the user and balance."""
        deps = _get_context(ctx).build_dependencies()
        _require_ok(deps.account.check_auth_status())
        rprint("[green]✓ Signed in[/green]")
        _print_user(deps.account.user)
        _print_balance(deps.account.balance)

    @app.command()
    def balance(ctx: typer.Context) -> None:
        """Refresh the scan balance from the backend."""
        deps = _get_context(ctx).build_dependencies()
        _require_ok(deps.account.refresh_scan_balance())
        _print_balance(deps.account.balance)

    @app.command()
    def refresh(ctx: typer.Context) -> None:
        """Refresh the user profile; a new account keeps its bootstrapped balance."""
        deps = _get_context(ctx).build_dependencies()
        _require_ok(deps.account.refresh_user())
        _print_user(deps.account.user)
        _print_balance(deps.account.balance)

    @app.command()
    def scan(
        ctx: typer.Context,
        listing_url: Annotated[str, typer.Argument(help="Airbnb/Booking/VRBO listing URL")],
    ) -> None:
        """Scan a listing URL."""
        deps = _get_context(ctx).build_dependencies()
        data = _require_ok(deps.client.scan_listing(listing_url))
        rprint("[green]✓ Scan complete:[/green]")
        rprint(data)

    @app.command()
    def ask(
        ctx: typer.Context,
        question: Annotated[str, typer.Argument(help="Question about the listing")],
    ) -> None:
        """Ask a question about the current listing (costs 0.5 scans)."""
        deps = _get_context(ctx).build_dependencies()
        _require_ok(deps.account.check_auth_status())
        try:
            data = _require_ok(deps.account.ask_question(question))
        except InsufficientBalanceError as exc:
            _fail(str(exc))
        rprint(data)
        _print_balance(deps.account.balance)

    @app.command()
    def compare(
        ctx: typer.Context,
        scan_a_url: Annotated[str, typer.Argument(help="First listing URL")],
        scan_b_url: Annotated[str, typer.Argument(help="Second listing URL")],
        question: Annotated[
            str | None,
            typer.Option("--question", "-q", help="Optional comparison question"),
        ] = None,
    ) -> None:
        """Compare two listings (costs 1 scan)."""
        deps = _get_context(ctx).build_dependencies()
        _require_ok(deps.account.check_auth_status())
        try:
            data = _require_ok(deps.account.compare_listings(scan_a_url, scan_b_url, question))
        except InsufficientBalanceError as exc:
            _fail(str(exc))
        rprint(data)
        _print_balance(deps.account.balance)

    @app.command()
    def history(ctx: typer.Context) -> None:
        """Show the scan balance history."""
        deps = _get_context(ctx).build_dependencies()
        data = _require_ok(deps.client.get_scan_balance_history())
        rprint(data)

    _ = (
        main,
        login,
        logout,
        signup,
        verify,
        status,
        balance,
        refresh,
        scan,
        ask,
        compare,
        history,
    )

    return app
