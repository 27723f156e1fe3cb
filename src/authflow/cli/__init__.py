"""Main CLI application module."""

import typer

from .auth_commands import show_config, sign_in

app = typer.Typer(
    help="🔐 authflow - OAuth sign-in flow coordinator",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("sign-in")(sign_in)
app.command("config")(show_config)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
