import logging
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.tree import Tree

from .catalog import CatalogClient, Credentials, Installation, Method, MethodTreeNode, Session
from .catalog.tree import DEFAULT_METHOD_PATH, should_expand_all
from .config import get_settings
from .errors import ProtocolError, SigningError, TransportError, UsosApiBrowserError
from .oauth.browser import open_in_browser
from .oauth.flow import TokenAcquisitionFlow
from .transport import HttpTransport

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ValueCache:
    """Last entered form values, kept for the lifetime of the process only."""

    def __init__(self):
        self._values: dict[str, object] = {}

    def get(self, key: str, default=None):
        return self._values.get(key, default)

    def set(self, key: str, value) -> None:
        self._values[key] = value


class BrowserCLI:
    """Interactive terminal host for the USOS API browser core"""

    def __init__(self):
        self.settings = get_settings()
        self.console = Console()
        self.cache = ValueCache()
        self.transport = HttpTransport(timeout=self.settings.HTTP_TIMEOUT)
        mother = Installation(base_url=self.settings.MOTHER_SERVER_URL)
        self.session = Session(CatalogClient(self.transport, mother), mother)

    def display_welcome(self):
        """Display welcome banner"""
        self.console.print(Panel(
            "[bold cyan]USOS API Browser[/bold cyan]\n"
            "This is a development tool. Pick an installation, browse its methods,\n"
            "sign and execute calls, or run [bold]:quickfill[/bold] to get an Access Token.\n\n"
            f"Mother server: {self.settings.MOTHER_SERVER_URL}",
            title="Welcome",
            border_style="cyan"
        ))
        self.console.print()

    def show_error(self, title: str, error: Exception):
        """Render a core error, including the server's response body if any"""
        message = f"[bold red]{title}[/bold red]\n{escape(str(error))}"
        if isinstance(error, TransportError) and error.body_text:
            message += f"\n\n{escape(error.body_text)}"
        self.console.print(Panel(message, title="Error", border_style="red"))

    def choose_installation(self) -> Installation:
        """Load installations from the mother server and let the user pick one"""
        extra = [Installation(base_url=url) for url in self.settings.EXTRA_INSTALLATIONS]
        try:
            installations = self.session.load_installations(extra)
        except UsosApiBrowserError as e:
            self.show_error("Could not populate the installations list.", e)
            installations = extra

        for i, installation in enumerate(installations, start=1):
            self.console.print(f"  [cyan]{i}[/cyan]. {installation.base_url}")
        while True:
            answer = Prompt.ask(
                "[bold]Installation (number or base URL)[/bold]",
                default=str(len(installations)) if installations else "",
                console=self.console
            ).strip()
            if answer.isdigit() and 1 <= int(answer) <= len(installations):
                return installations[int(answer) - 1]
            if answer:
                return Installation(base_url=answer)

    def reload_installation(self, installation: Installation) -> bool:
        """Switch to an installation and rebuild its method tree"""
        self.session.switch_installation(installation)
        try:
            self.session.refresh()
        except UsosApiBrowserError as e:
            self.show_error("Could not connect to selected installation.", e)
            return False
        self.display_tree()
        return True

    def display_tree(self):
        """Render the method tree; large trees are shown collapsed except for oauth"""
        root = self.session.tree
        expand_all = should_expand_all(root)
        tree = Tree(f"[bold]{self.session.current_installation.base_url}[/bold]")

        def add(node: MethodTreeNode, branch: Tree, expanded: bool):
            for child in node:
                label = child.segment
                if child.method is not None:
                    label = f"[green]{child.segment}[/green] [dim]{escape(child.method.brief_description)}[/dim]"
                sub = branch.add(label)
                if expanded or DEFAULT_METHOD_PATH.startswith(child.path + "/"):
                    add(child, sub, expanded)

        add(root, tree, expand_all)
        self.console.print(tree)
        self.console.print()

    def ask_credentials(self) -> Credentials:
        """Prompt for consumer/token credentials, defaulting to the last values"""
        values = {}
        for key in ("consumer_key", "consumer_secret", "token", "token_secret"):
            secret = key.endswith("secret")
            values[key] = Prompt.ask(
                key,
                default=self.cache.get(key, ""),
                password=secret,
                show_default=not secret,
                console=self.console
            )
            self.cache.set(key, values[key])
        return Credentials(**values)

    def cached_credentials(self) -> Credentials:
        return Credentials(**{
            key: self.cache.get(key, "")
            for key in ("consumer_key", "consumer_secret", "token", "token_secret")
        })

    def ask_bool(self, key: str, label: str) -> bool:
        value = Confirm.ask(label, default=self.cache.get(key, False), console=self.console)
        self.cache.set(key, value)
        return value

    def handle_method(self, method_name: str):
        """Show a method's form, then sign and execute the call"""
        try:
            method: Method = self.session.get_method_detail(method_name)
        except UsosApiBrowserError as e:
            self.show_error(f"Could not load method {method_name}.", e)
            return

        self.console.print(Panel(
            f"[bold]{escape(method.brief_description)}[/bold]\n"
            f"Full description: [link]{method.ref_url}[/link]\n"
            f"Consumer: {method.auth_options_consumer.value}, "
            f"Token: {method.auth_options_token.value}"
            + (", SSL required" if method.auth_options_ssl_required else ""),
            title=method.name,
            border_style="blue"
        ))

        arguments = {}
        for arg in method.form_arguments():
            key = f"{method.name}#{arg.name}"
            label = f"[bold]{arg.name}[/bold]" if arg.is_required else f"[italic]{arg.name}[/italic]"
            arguments[arg.name] = Prompt.ask(label, default=self.cache.get(key, ""), console=self.console)
            self.cache.set(key, arguments[arg.name])

        use_ssl = self.ask_bool("use_ssl", "Use SSL" + (" (required)" if method.auth_options_ssl_required else ""))
        sign_with_consumer = self.ask_bool(
            "sign_with_consumer_key", f"Sign with Consumer Key ({method.auth_options_consumer.value})"
        )
        sign_with_token = False
        if sign_with_consumer:
            sign_with_token = self.ask_bool("sign_with_token", f"Sign with Token ({method.auth_options_token.value})")
        readable = self.ask_bool("make_it_readable", "Try to make it more human-readable")
        action = Prompt.ask(
            "Action",
            choices=["execute", "browser"],
            default=self.cache.get("action", "execute"),
            console=self.console
        )
        self.cache.set("action", action)

        try:
            credentials = self.cached_credentials()
            if sign_with_consumer and not credentials.has_consumer:
                credentials = self.ask_credentials()
            credentials = credentials.for_signing(sign_with_consumer, sign_with_token)
            url = self.session.method_url(method.name, arguments, credentials, use_ssl)
        except SigningError as e:
            self.show_error("Invalid signing options.", e)
            return

        self.console.print(f"[dim]{escape(url)}[/dim]")
        if action == "browser":
            self.launch_url(url)
            return

        try:
            result = self.session.call(url, readable)
        except TransportError as e:
            self.show_error("Method call failed.", e)
            return

        self.console.print(Panel(escape(result), title="Response", border_style="green"))

    def launch_url(self, url: str) -> bool:
        """Open a URL in the system browser, printing it when that is not possible"""
        if open_in_browser(url):
            return True
        self.console.print(f"Could not open a browser. Open this URL manually:\n[link]{escape(url)}[/link]")
        return False

    def open_reference(self, method_name: str):
        """Open a method's reference documentation page"""
        try:
            method = self.session.get_method_detail(method_name)
        except UsosApiBrowserError as e:
            self.show_error(f"Could not load method {method_name}.", e)
            return
        if not method.ref_url:
            self.console.print(f"[yellow]{method_name} has no reference page[/yellow]")
            return
        self.launch_url(method.ref_url)

    def quick_fill(self):
        """Acquire an Access Token through the three-legged OAuth flow"""
        credentials = self.cached_credentials()
        installation = self.session.current_installation
        if not credentials.has_consumer:
            developers_url = self.session.catalog.developers_url(installation)
            if Confirm.ask(
                "In order to get Access Tokens, you have to register a Consumer Key first. "
                "Would you like to register a new Consumer Key now?",
                console=self.console
            ):
                self.launch_url(developers_url)
            return

        scope_keys = []
        if self.session.scopes:
            for scope in self.session.scopes:
                self.console.print(f"  [cyan]{scope.key}[/cyan] {scope.description}")
            answer = Prompt.ask("Scopes (space separated, empty for none)", default="", console=self.console)
            scope_keys = answer.split()

        flow = TokenAcquisitionFlow(
            self.transport,
            installation,
            credentials.consumer_key,
            credentials.consumer_secret,
            scopes=scope_keys,
            schemes=self.settings.TOKEN_SCHEMES
        )

        def read_verifier(authorize_url: str) -> str:
            self.console.print(Panel(
                f"Authorize the request token in your browser:\n[link]{authorize_url}[/link]",
                title="Authorization",
                border_style="blue"
            ))
            return Prompt.ask("[bold cyan]PIN[/bold cyan]", console=self.console)

        try:
            pair = flow.run(read_verifier)
        except ProtocolError as e:
            self.show_error("Couldn't parse the token. Try to do this sequence manually!", e)
            return
        except UsosApiBrowserError as e:
            self.show_error("A problem occurred. Couldn't complete the Quick Fill.", e)
            return

        self.cache.set("token", pair.token)
        self.cache.set("token_secret", pair.token_secret)
        self.console.print("[green]✓[/green] Access Token stored for this session")

    def run(self):
        """Main CLI loop"""
        try:
            self.loop()
        finally:
            self.transport.close()

    def loop(self):
        self.display_welcome()
        if not self.reload_installation(self.choose_installation()):
            self.console.print("[dim]Use :switch to pick another installation[/dim]")

        self.console.print(
            "[dim]Enter a method path, :open <method path>, :quickfill, :switch, :tree, :creds, or 'quit'[/dim]\n"
        )

        while True:
            try:
                command = Prompt.ask(
                    "[bold green]>[/bold green]",
                    default=DEFAULT_METHOD_PATH if self.session.tree.find(DEFAULT_METHOD_PATH) else "",
                    console=self.console
                ).strip()
            except (KeyboardInterrupt, EOFError):
                self.console.print("\n[cyan]Goodbye![/cyan]")
                break

            if command.lower() in ("quit", "exit", "q"):
                self.console.print("[cyan]Goodbye![/cyan]")
                break
            if not command:
                continue
            if command == ":quickfill":
                self.quick_fill()
            elif command == ":switch":
                self.reload_installation(self.choose_installation())
            elif command == ":tree":
                self.display_tree()
            elif command == ":creds":
                self.ask_credentials()
            elif command.startswith(":open"):
                method_name = command[len(":open"):].strip()
                node = self.session.tree.find(method_name) if method_name else None
                if node is None or node.method is None:
                    self.console.print(f"[yellow]No method named {escape(method_name)}[/yellow]")
                    continue
                self.open_reference(node.method.name)
            else:
                node = self.session.tree.find(command)
                if node is None or node.method is None:
                    self.console.print(f"[yellow]No method named {escape(command)}[/yellow]")
                    continue
                self.handle_method(node.method.name)


def main(log_level: Optional[int] = None):
    """Entry point for CLI"""
    settings = get_settings()
    if log_level is None:
        log_level = logging.DEBUG if settings.ENABLE_DEBUG_LOGGING else logging.WARNING
    logging.basicConfig(level=log_level, format=LOG_FORMAT)
    BrowserCLI().run()


if __name__ == "__main__":
    main()
